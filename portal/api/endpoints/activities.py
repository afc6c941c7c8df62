# portal/api/endpoints/activities.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_db_session
from portal.core.config import settings
from portal.core.rbac import AllowRoles, is_admin
from portal.models.enums import ActivityAction
from portal.models.user import User, UserType
from portal.schemas.activity import ActivityRead, RealtimeStats
from portal.services.activity_service import list_activities, realtime_stats

router = APIRouter(prefix="/activities", tags=["Activities"])


def _scope(user: User) -> Optional[int]:
    """ADMIN sees every department, HEAD only their own."""
    return None if is_admin(user) else user.department_id


@router.get("", response_model=List[ActivityRead])
async def get_activities(
    action: Optional[ActivityAction] = None,
    limit: int = Query(default=100, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    return await list_activities(session, department_id=_scope(current_user), action=action, limit=limit)


@router.get("/recent", response_model=List[ActivityRead])
async def recent_activities(
    limit: int = Query(default=8, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    return await list_activities(session, department_id=_scope(current_user), limit=limit)


@router.get("/stats/realtime", response_model=RealtimeStats)
async def realtime(
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    return await realtime_stats(
        session,
        window_minutes=settings.ACTIVE_WINDOW_MINUTES,
        department_id=_scope(current_user),
    )
