# portal/api/endpoints/metrics.py

import os
import socket
import time

import psutil
from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from portal.api.deps import get_db_session
from portal.core.config import settings
from portal.core.database import test_connection
from portal.core.rbac import AllowRoles
from portal.models.card import Card
from portal.models.department import Department
from portal.models.submission import Submission
from portal.models.user import User, UserType

router = APIRouter(prefix="/api/metrics", tags=["System & Metrics"])

# Module load time, for uptime
START_TIME = time.time()


# ===================================================================
# 1. SYSTEM METRICS (status page)
# ===================================================================
@router.get("")
async def system_metrics():
    uptime_seconds = int(time.time() - START_TIME)
    cpu_usage = psutil.cpu_percent(interval=None)
    ram_usage = psutil.virtual_memory().percent
    try:
        disk_usage = psutil.disk_usage("/").percent
    except OSError:
        disk_usage = 0

    db_start = time.time()
    try:
        await test_connection()
        db_status = "Connected"
        db_latency = round((time.time() - db_start) * 1000, 2)
    except Exception as e:
        logger.error(f"Metrics DB ping failed: {e}")
        db_status = "Error"
        db_latency = 0

    current_time = time.strftime("%H:%M:%S")
    logs = [{"time": current_time, "level": "INFO", "msg": f"Health check: DB Latency {db_latency}ms"}]
    if db_status != "Connected":
        logs.append({"time": current_time, "level": "ERROR", "msg": "Database connection failed."})

    return {
        "status": "Online",
        "cpu": cpu_usage,
        "ram": ram_usage,
        "disk": disk_usage,
        "uptime": uptime_seconds,
        "database": db_status,
        "db_latency": db_latency,
        "logs": logs,
    }


# ===================================================================
# 2. SERVICE HEALTH (DB + SMTP reachability)
# ===================================================================
@router.get("/health")
async def system_health():
    db_status = "Disconnected"
    try:
        await test_connection()
        db_status = "Connected"
    except Exception:
        db_status = "Error"

    smtp_status = "Not Configured"
    if settings.SMTP_HOST:
        try:
            sock = socket.create_connection((settings.SMTP_HOST, settings.SMTP_PORT), timeout=2)
            sock.close()
            smtp_status = "Connected"
        except OSError:
            smtp_status = "Error"

    return {
        "status": "Online",
        "uptime_seconds": int(time.time() - START_TIME),
        "database": db_status,
        "smtp_server": smtp_status,
        "storage_backend": settings.STORAGE_BACKEND,
        "environment": "Serverless (Vercel)" if os.environ.get("VERCEL") else settings.ENV,
    }


# ===================================================================
# 3. ENTITY COUNTS (Admin only)
# ===================================================================
@router.get("/dashboard-stats")
async def dashboard_stats(
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(AllowRoles(UserType.ADMIN)),
):
    role_res = await session.execute(select(User.user_type, func.count(User.id)).group_by(User.user_type))
    roles = {(r.value if hasattr(r, "value") else r): n for r, n in role_res.all()}

    departments = (await session.execute(select(func.count(Department.id)))).scalar_one()
    cards = (await session.execute(select(func.count(Card.id)))).scalar_one()
    files = (await session.execute(select(func.count(Submission.id)))).scalar_one()

    return {
        "users": {t.value: roles.get(t.value, 0) for t in UserType},
        "departments": departments,
        "cards": cards,
        "files": files,
    }
