# portal/core/database.py

import ssl
from typing import AsyncGenerator

from dotenv import load_dotenv
from loguru import logger
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import NullPool
from sqlalchemy import text

from portal.core.config import settings

# ----------------------------------------------------
# Load environment
# ----------------------------------------------------
load_dotenv()
DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set")


# ----------------------------------------------------
# SSL for hosted Postgres poolers
# ----------------------------------------------------
def make_ssl():
    ctx = ssl.create_default_context()
    if not settings.DB_SSL_VERIFY:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def build_connect_args(url: str) -> dict:
    """asyncpg needs pooler-safe settings; sqlite needs nothing."""
    if url.startswith("postgresql+asyncpg"):
        return {
            "ssl": make_ssl() if settings.ENV == "prod" else None,
            "statement_cache_size": 0,           # disable prepared statements
            "prepared_statement_name_func": None # prevent SQLAlchemy from naming statements
        }
    return {}


logger.info("Configuring database engine")


# ----------------------------------------------------
# Engine (NO POOLING -> external pooler handles it)
# ----------------------------------------------------
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    connect_args=build_connect_args(DATABASE_URL),
    pool_pre_ping=True,
    poolclass=NullPool,
)


# ----------------------------------------------------
# Sessions
# ----------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


# ----------------------------------------------------
# Create tables
# ----------------------------------------------------
async def init_db():
    # Import models so every table is registered on SQLModel.metadata
    from portal.models import activity, card, department, submission, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


# ----------------------------------------------------
# Test Connection
# ----------------------------------------------------
async def test_connection():
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
        logger.debug("DB connection OK")
