# portal/core/security.py
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import jwt
from passlib.context import CryptContext
from portal.core.config import settings

# 1. Configuration
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
ALGORITHM = "HS256"

# 2. Password Handling
def _pre_hash_password(password: str) -> str:
    """
    Handle the 'bcrypt 72-byte limit' safely.
    If a password is longer than 72 bytes, we hash it first using SHA-256.
    This ensures the entire password matters, regardless of length.
    """
    if len(password.encode('utf-8')) <= 72:
        return password

    # SHA-256 hexdigest is 64 chars, which fits inside 72 bytes.
    return hashlib.sha256(password.encode('utf-8')).hexdigest()

def hash_password(password: str) -> str:
    safe_password = _pre_hash_password(password)
    return pwd_context.hash(safe_password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    safe_password = _pre_hash_password(plain_password)
    return pwd_context.verify(safe_password, hashed_password)

# 3. Token Creation

def token_lifetime(remember_me: bool = False) -> timedelta:
    if remember_me:
        return timedelta(days=settings.REMEMBER_ME_EXPIRE_DAYS)
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    data: Optional[dict] = None
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or token_lifetime())

    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
        "nbf": now,
    }

    # Update with the dictionary passed in 'data'
    if data:
        to_encode.update(data)

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)

# 4. Decoding
def decode_token(token: str) -> dict:
    """Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError to the caller."""
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[ALGORITHM],
        options={"verify_exp": True}
    )

# 5. Email verification tokens (opaque, stored on the user row)
def generate_verification_token() -> str:
    return secrets.token_urlsafe(32)
