# portal/services/card_service.py

from typing import Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import delete as sa_delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from portal.core.display import display_name
from portal.core.storage import delete_stored_file
from portal.models.base import as_utc, utcnow
from portal.models.card import Card, CardDepartment
from portal.models.department import Department
from portal.models.enums import ActivityAction
from portal.models.submission import Submission
from portal.models.user import User, UserType
from portal.schemas.card import (
    CardAnalytics,
    CardCreate,
    CardRead,
    CardUpdate,
    UserStatus,
    UserSubmissionStatus,
)
from portal.schemas.user import DepartmentRef
from portal.services.activity_service import log_activity

CARD_SORTS = ("recent", "title")


# ============================================================================
# LOOKUPS
# ============================================================================
async def get_card(session: AsyncSession, card_id: int) -> Optional[Card]:
    result = await session.execute(select(Card).where(Card.id == card_id))
    return result.scalar_one_or_none()


async def card_department_ids(session: AsyncSession, card_id: int) -> List[int]:
    result = await session.execute(
        select(CardDepartment.department_id).where(CardDepartment.card_id == card_id)
    )
    return list(result.scalars().all())


async def list_cards(
    session: AsyncSession,
    department_id: Optional[int] = None,
    search: Optional[str] = None,
    sort: str = "recent",
) -> List[Card]:
    if sort not in CARD_SORTS:
        raise ValueError(f"Invalid sort '{sort}'. Allowed: {list(CARD_SORTS)}")

    query = select(Card)
    if department_id is not None:
        query = query.join(CardDepartment, CardDepartment.card_id == Card.id).where(
            CardDepartment.department_id == department_id
        )
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Card.title.ilike(pattern), Card.description.ilike(pattern)))

    if sort == "title":
        query = query.order_by(func.lower(Card.title), Card.id)
    else:
        query = query.order_by(Card.created_at.desc(), Card.id.desc())

    result = await session.execute(query)
    return result.scalars().all()


def is_expired(card: Card) -> bool:
    expires_at = as_utc(card.expires_at)
    return expires_at is not None and expires_at <= utcnow()


# ============================================================================
# RESPONSE SHAPING
# ============================================================================
async def to_card_reads(session: AsyncSession, cards: Iterable[Card]) -> List[CardRead]:
    cards = list(cards)
    if not cards:
        return []
    ids = [c.id for c in cards]

    link_res = await session.execute(
        select(CardDepartment.card_id, Department)
        .select_from(CardDepartment)
        .join(Department, Department.id == CardDepartment.department_id)
        .where(CardDepartment.card_id.in_(ids))
        .order_by(Department.name)
    )
    departments: Dict[int, List[DepartmentRef]] = {}
    for card_id, dept in link_res.all():
        departments.setdefault(card_id, []).append(DepartmentRef.model_validate(dept))

    count_res = await session.execute(
        select(Submission.card_id, func.count(Submission.id))
        .where(Submission.card_id.in_(ids))
        .group_by(Submission.card_id)
    )
    counts = dict(count_res.all())

    reads = []
    for card in cards:
        depts = departments.get(card.id, [])
        reads.append(CardRead(
            id=card.id,
            title=card.title,
            description=card.description,
            created_by_id=card.created_by_id,
            head_id=card.head_id,
            created_at=card.created_at,
            expires_at=card.expires_at,
            allowed_file_types=card.allowed_file_types,
            departments=depts,
            department_names=", ".join(d.name for d in depts),
            display_department=depts[0] if depts else None,
            file_count=counts.get(card.id, 0),
            is_expired=is_expired(card),
        ))
    return reads


async def to_card_read(session: AsyncSession, card: Card) -> CardRead:
    return (await to_card_reads(session, [card]))[0]


# ============================================================================
# CREATE / UPDATE / DELETE
# ============================================================================
async def _check_departments(session: AsyncSession, department_ids: List[int], actor: User) -> None:
    res = await session.execute(select(Department.id).where(Department.id.in_(department_ids)))
    found = set(res.scalars().all())
    missing = [d for d in department_ids if d not in found]
    if missing:
        raise ValueError(f"Department not found: {missing[0]}")

    if actor.user_type != UserType.ADMIN and set(department_ids) != {actor.department_id}:
        raise PermissionError("Heads can only create cards for their own department")


async def _check_head(session: AsyncSession, head_id: Optional[int]) -> None:
    if head_id is None:
        return
    res = await session.execute(select(User).where(User.id == head_id))
    head = res.scalar_one_or_none()
    if not head or head.user_type != UserType.HEAD:
        raise ValueError("Assigned head must be a HEAD user")


async def create_card(session: AsyncSession, data: CardCreate, actor: User) -> Card:
    await _check_departments(session, data.department_ids, actor)
    await _check_head(session, data.head_id)

    card = Card(
        title=data.title,
        description=data.description,
        created_by_id=actor.id,
        head_id=data.head_id,
        expires_at=data.expires_at,
        allowed_file_types=data.allowed_file_types,
    )
    session.add(card)

    try:
        await session.flush()
        for dept_id in data.department_ids:
            session.add(CardDepartment(card_id=card.id, department_id=dept_id))
        await session.commit()
        await session.refresh(card)
    except IntegrityError:
        await session.rollback()
        raise ValueError("Failed to create card")

    logger.info(f"Card {card.id} created by {actor.username}")
    await log_activity(
        session,
        ActivityAction.CARD_CREATED,
        actor,
        description=f"Created card {card.title}",
        card_id=card.id,
        department_id=data.department_ids[0],
    )
    return card


async def update_card(session: AsyncSession, card: Card, data: CardUpdate, actor: User) -> Card:
    fields = data.model_fields_set

    if "department_ids" in fields and data.department_ids is not None:
        await _check_departments(session, data.department_ids, actor)
    if "head_id" in fields:
        await _check_head(session, data.head_id)

    if "title" in fields and data.title:
        card.title = data.title
    for field in ("description", "head_id", "expires_at", "allowed_file_types"):
        if field in fields:
            setattr(card, field, getattr(data, field))
    card.updated_at = utcnow()
    session.add(card)

    try:
        if "department_ids" in fields and data.department_ids is not None:
            await session.execute(sa_delete(CardDepartment).where(CardDepartment.card_id == card.id))
            for dept_id in dict.fromkeys(data.department_ids):
                session.add(CardDepartment(card_id=card.id, department_id=dept_id))
        await session.commit()
        await session.refresh(card)
    except IntegrityError:
        await session.rollback()
        raise ValueError("Failed to update card")

    await log_activity(
        session,
        ActivityAction.CARD_UPDATED,
        actor,
        description=f"Updated card {card.title}",
        card_id=card.id,
    )
    return card


async def delete_card(session: AsyncSession, card: Card, actor: User) -> None:
    """Removes the card, its department links, its submissions and their stored files."""
    title = card.title
    res = await session.execute(select(Submission.path).where(Submission.card_id == card.id))
    paths = res.scalars().all()

    await session.execute(sa_delete(Submission).where(Submission.card_id == card.id))
    await session.execute(sa_delete(CardDepartment).where(CardDepartment.card_id == card.id))
    await session.delete(card)
    await session.commit()

    for path in paths:
        delete_stored_file(path)

    await log_activity(session, ActivityAction.CARD_DELETED, actor, description=f"Deleted card {title}")


# ============================================================================
# ANALYTICS (admin dashboard)
# ============================================================================
async def analytics(session: AsyncSession, recent_limit: int = 5) -> CardAnalytics:
    total_cards = (await session.execute(select(func.count(Card.id)))).scalar_one()

    by_dept_res = await session.execute(
        select(Department.name, func.count(CardDepartment.card_id))
        .select_from(Department)
        .join(CardDepartment, CardDepartment.department_id == Department.id, isouter=True)
        .group_by(Department.id, Department.name)
        .order_by(Department.name)
    )
    by_department = {name: count for name, count in by_dept_res.all()}

    totals = (await session.execute(
        select(func.count(Submission.id), func.coalesce(func.sum(Submission.size), 0))
    )).one()
    total_files, total_bytes = totals[0], int(totals[1])

    # One submission per (card, user) pair counts as a completed submission
    pairs = (await session.execute(
        select(Submission.card_id, Submission.user_id).distinct()
    )).all()

    recent = await list_cards(session, sort="recent")
    return CardAnalytics(
        total_cards=total_cards,
        cards_by_department=by_department,
        total_submissions=len(pairs),
        total_files=total_files,
        total_bytes=total_bytes,
        recent_cards=await to_card_reads(session, recent[:recent_limit]),
    )


# ============================================================================
# PER-STAFF STATUS
# ============================================================================
async def user_status(session: AsyncSession, card: Card, department_id: Optional[int] = None) -> UserStatus:
    """
    Staff of the card's departments (or of one department) and whether each
    has uploaded anything against the card. Earliest upload wins for submittedAt.
    """
    dept_ids = await card_department_ids(session, card.id)
    if department_id is not None:
        dept_ids = [d for d in dept_ids if d == department_id]

    staff = []
    if dept_ids:
        res = await session.execute(
            select(User)
            .where(User.user_type == UserType.STAFF)
            .where(User.department_id.in_(dept_ids))
            .order_by(User.first_name, User.username)
        )
        staff = res.scalars().all()

    sub_res = await session.execute(
        select(Submission.user_id, func.min(Submission.created_at))
        .where(Submission.card_id == card.id)
        .group_by(Submission.user_id)
    )
    first_upload = dict(sub_res.all())

    users = [
        UserSubmissionStatus(
            id=u.id,
            name=display_name(u),
            email=u.email,
            has_submitted=u.id in first_upload,
            submitted_at=first_upload.get(u.id),
        )
        for u in staff
    ]
    submitted = sum(1 for u in users if u.has_submitted)
    return UserStatus(
        users=users,
        submitted_count=submitted,
        pending_count=len(users) - submitted,
        total_users=len(users),
    )
