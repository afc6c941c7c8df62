# portal/core/rate_limiter.py

import os

from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address

from portal.core.config import settings


# ----------------------------------------------------------------
# 1. CLIENT IP BEHIND PROXIES
# ----------------------------------------------------------------
def get_real_ip(request):
    """
    X-Forwarded-For (leftmost entry), then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


# ----------------------------------------------------------------
# 2. STORAGE URI (managed Redis needs rediss://)
# ----------------------------------------------------------------
storage_uri = settings.REDIS_URL

if storage_uri and storage_uri.startswith("redis://") and not os.environ.get("DEV_MODE"):
    storage_uri = storage_uri.replace("redis://", "rediss://", 1)


# ----------------------------------------------------------------
# 3. LIMITER (falls back to in-memory storage)
# ----------------------------------------------------------------
def build_limiter() -> Limiter:
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting disabled by configuration")
        return Limiter(key_func=get_real_ip, enabled=False)

    if storage_uri:
        try:
            logger.info("Initializing rate limiter with Redis storage")
            return Limiter(
                key_func=get_real_ip,
                storage_uri=storage_uri,
                strategy="fixed-window",
                storage_options={"socket_connect_timeout": 5, "retry_on_timeout": True},
            )
        except Exception as e:
            logger.error(f"Failed to configure Redis rate limiting: {e}")

    logger.warning("REDIS_URL not set. Using in-memory rate limiting.")
    return Limiter(key_func=get_real_ip)


limiter = build_limiter()
