# portal/main.py

import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from portal.core.config import settings
from portal.core.database import AsyncSessionLocal, init_db, test_connection
from portal.core.rate_limiter import limiter
from portal.core.storage import LOCAL_URL_PREFIX, upload_root
from portal.models.user import UserType
from portal.services.auth_service import create_user, get_user_by_email

# Routers
from portal.api.endpoints import (
    activities as activities_router,
    auth as auth_router,
    cards as cards_router,
    departments as departments_router,
    metrics as metrics_router,
    submissions as submissions_router,
    users as users_router,
)

# ------------------------------------------------------------
# LOGURU CONFIGURATION
# ------------------------------------------------------------
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "<level>{message}</level>",
    colorize=True,
    backtrace=True,
    diagnose=settings.ENV != "prod",
)

# ------------------------------------------------------------
# FASTAPI APP INIT
# ------------------------------------------------------------
app = FastAPI(
    title="PSU Portal Backend",
    version="1.0.0",
    description="Backend service for the PSU Portal: departments, cards and file submissions.",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

DB_STATUS = "Connecting..."

# ------------------------------------------------------------
# LOCAL UPLOADS
# ------------------------------------------------------------
if settings.STORAGE_BACKEND == "local":
    Path(upload_root()).mkdir(parents=True, exist_ok=True)
    app.mount(LOCAL_URL_PREFIX, StaticFiles(directory=str(upload_root())), name="uploads")

# ------------------------------------------------------------
# CORS CONFIGURATION
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "*"],
)

# ------------------------------------------------------------
# REGISTER ROUTERS
# ------------------------------------------------------------
app.include_router(auth_router.router)
app.include_router(departments_router.router)
app.include_router(cards_router.router)
app.include_router(submissions_router.router)
app.include_router(users_router.router)
app.include_router(activities_router.router)
app.include_router(metrics_router.router)


# ------------------------------------------------------------
# SUPER ADMIN SEEDING
# ------------------------------------------------------------
async def seed_super_admin() -> None:
    if not settings.SUPER_ADMIN_EMAIL or not settings.SUPER_ADMIN_PASSWORD:
        logger.warning("Missing Super Admin credentials in settings.")
        return

    async with AsyncSessionLocal() as session:
        if await get_user_by_email(session, settings.SUPER_ADMIN_EMAIL):
            logger.info("Super Admin already exists. Skipping.")
            return

        logger.info(f"Seeding Super Admin: {settings.SUPER_ADMIN_EMAIL}")
        await create_user(
            session,
            username=settings.SUPER_ADMIN_USERNAME,
            email=settings.SUPER_ADMIN_EMAIL,
            password=settings.SUPER_ADMIN_PASSWORD,
            user_type=UserType.ADMIN,
            first_name="Super",
            last_name="Admin",
        )
        logger.success("Super Admin created successfully.")


# ------------------------------------------------------------
# APPLICATION STARTUP EVENTS
# ------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    global DB_STATUS
    logger.info("Starting PSU Portal Backend...")

    # 1) Database connection test
    try:
        await test_connection()
        DB_STATUS = "Connected"
        logger.success("Database connection established.")
    except Exception:
        DB_STATUS = "Error"
        logger.exception("Startup aborted: Database connection failed.")
        return

    # 2) Initialize database tables
    try:
        await init_db()
        logger.success("Database tables ready.")
    except Exception as e:
        logger.warning(f"Table initialization encountered an issue: {e}")

    # 3) Seed Super Admin
    try:
        await seed_super_admin()
    except Exception:
        logger.exception("Super Admin seeding failed.")

    logger.success("Backend startup completed successfully.")


# ------------------------------------------------------------
# ROOT HEALTH CHECK
# ------------------------------------------------------------
@app.get("/", tags=["System"])
async def root():
    return {
        "status": "ok",
        "service": "PSU Portal Backend",
        "version": app.version,
        "database": DB_STATUS,
        "message": "Backend running successfully",
    }
