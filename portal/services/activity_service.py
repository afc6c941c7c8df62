# portal/services/activity_service.py

from datetime import timedelta
from typing import Optional, Dict, Any, List

from loguru import logger
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from portal.core.display import display_name
from portal.models.activity import Activity
from portal.models.base import utcnow
from portal.models.card import Card
from portal.models.department import Department
from portal.models.enums import ActivityAction, UserType
from portal.models.submission import Submission
from portal.models.user import User
from portal.schemas.activity import ActivityRead, RealtimeStats


async def log_activity(
    session: AsyncSession,
    action: ActivityAction,
    actor: Optional[User],
    description: Optional[str] = None,
    card_id: Optional[int] = None,
    department_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Records an activity row in its own commit, after the caller's change
    is already committed. A failure here is logged and rolled back so it
    never undoes or breaks the request that triggered it.
    """
    try:
        entry = Activity(
            user_id=actor.id if actor else None,
            department_id=department_id if department_id is not None else (actor.department_id if actor else None),
            card_id=card_id,
            action=action,
            description=description,
            details=details or {},
        )
        session.add(entry)
        await session.commit()
    except Exception:
        logger.exception(f"Failed to record activity {action.value}")
        await session.rollback()


async def _to_reads(session: AsyncSession, rows: List[Activity]) -> List[ActivityRead]:
    user_ids = {a.user_id for a in rows if a.user_id}
    dept_ids = {a.department_id for a in rows if a.department_id}
    card_ids = {a.card_id for a in rows if a.card_id}

    users = {}
    if user_ids:
        res = await session.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in res.scalars().all()}
    depts = {}
    if dept_ids:
        res = await session.execute(select(Department.id, Department.name).where(Department.id.in_(dept_ids)))
        depts = dict(res.all())
    cards = {}
    if card_ids:
        res = await session.execute(select(Card.id, Card.title).where(Card.id.in_(card_ids)))
        cards = dict(res.all())

    return [
        ActivityRead(
            id=a.id,
            action=a.action,
            description=a.description,
            user_id=a.user_id,
            user_name=display_name(users.get(a.user_id)) or None,
            department_id=a.department_id,
            department=depts.get(a.department_id),
            card_id=a.card_id,
            card=cards.get(a.card_id),
            details=a.details or {},
            created_at=a.created_at,
        )
        for a in rows
    ]


async def list_activities(
    session: AsyncSession,
    department_id: Optional[int] = None,
    action: Optional[ActivityAction] = None,
    limit: int = 100,
) -> List[ActivityRead]:
    query = select(Activity).order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    if department_id is not None:
        query = query.where(Activity.department_id == department_id)
    if action is not None:
        query = query.where(Activity.action == action)

    result = await session.execute(query)
    return await _to_reads(session, result.scalars().all())


async def realtime_stats(
    session: AsyncSession,
    window_minutes: int,
    department_id: Optional[int] = None,
) -> RealtimeStats:
    """
    activeTeachers: distinct STAFF/HEAD users with any activity inside the window.
    uploadsToday: files uploaded since midnight UTC.
    """
    now = utcnow()
    since = now - timedelta(minutes=window_minutes)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    active_q = (
        select(func.count(func.distinct(Activity.user_id)))
        .select_from(Activity)
        .join(User, User.id == Activity.user_id)
        .where(Activity.created_at >= since)
        .where(User.user_type.in_([UserType.STAFF, UserType.HEAD]))
    )
    uploads_q = select(func.count(Submission.id)).select_from(Submission).where(Submission.created_at >= midnight)

    if department_id is not None:
        active_q = active_q.where(User.department_id == department_id)
        uploads_q = uploads_q.join(User, User.id == Submission.user_id).where(User.department_id == department_id)

    active = (await session.execute(active_q)).scalar_one()
    uploads = (await session.execute(uploads_q)).scalar_one()

    return RealtimeStats(
        active_teachers=active or 0,
        uploads_today=uploads or 0,
        window_minutes=window_minutes,
    )
