# portal/services/department_service.py

from typing import List, Optional

from sqlalchemy import delete as sa_delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from portal.core.errors import ConflictError
from portal.models.base import utcnow
from portal.models.card import Card, CardDepartment
from portal.models.department import Department
from portal.models.enums import ActivityAction
from portal.models.submission import Submission
from portal.models.user import User, UserType
from portal.schemas.department import (
    DepartmentCompletion,
    DepartmentCreate,
    DepartmentRead,
    DepartmentStorage,
    DepartmentUpdate,
)
from portal.services.activity_service import log_activity
from portal.services.auth_service import get_department  # noqa: F401
from portal.services.file_listing import format_file_size


# ============================================================================
# COUNTS
# ============================================================================
async def _user_counts(session: AsyncSession) -> dict:
    res = await session.execute(
        select(User.department_id, func.count(User.id))
        .where(User.department_id.is_not(None))
        .group_by(User.department_id)
    )
    return dict(res.all())


async def _card_counts(session: AsyncSession) -> dict:
    res = await session.execute(
        select(CardDepartment.department_id, func.count(CardDepartment.card_id))
        .group_by(CardDepartment.department_id)
    )
    return dict(res.all())


def _to_read(dept: Department, users: dict, cards: dict) -> DepartmentRead:
    read = DepartmentRead.model_validate(dept)
    read.user_count = users.get(dept.id, 0)
    read.card_count = cards.get(dept.id, 0)
    return read


async def list_departments(session: AsyncSession) -> List[DepartmentRead]:
    result = await session.execute(select(Department).order_by(Department.name))
    users = await _user_counts(session)
    cards = await _card_counts(session)
    return [_to_read(d, users, cards) for d in result.scalars().all()]


async def department_read(session: AsyncSession, dept: Department) -> DepartmentRead:
    users = await _user_counts(session)
    cards = await _card_counts(session)
    return _to_read(dept, users, cards)


# ============================================================================
# CREATE / UPDATE / DELETE
# ============================================================================
async def _ensure_unique(session: AsyncSession, name: Optional[str], code: Optional[str], exclude_id: Optional[int] = None):
    if name is not None:
        q = select(Department).where(func.lower(Department.name) == name.lower())
        if exclude_id is not None:
            q = q.where(Department.id != exclude_id)
        if (await session.execute(q)).scalar_one_or_none():
            raise ConflictError("Department with this name already exists")

    if code is not None:
        q = select(Department).where(Department.code == code)
        if exclude_id is not None:
            q = q.where(Department.id != exclude_id)
        if (await session.execute(q)).scalar_one_or_none():
            raise ConflictError("Department with this code already exists")


async def create_department(session: AsyncSession, data: DepartmentCreate, actor: User) -> Department:
    await _ensure_unique(session, data.name, data.code)

    dept = Department(name=data.name, code=data.code, description=data.description)
    session.add(dept)
    try:
        await session.commit()
        await session.refresh(dept)
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Department with this name or code already exists")

    await log_activity(
        session,
        ActivityAction.DEPARTMENT_CREATED,
        actor,
        description=f"Created department {dept.name}",
        department_id=dept.id,
    )
    return dept


async def update_department(session: AsyncSession, dept: Department, data: DepartmentUpdate, actor: User) -> Department:
    await _ensure_unique(session, data.name, data.code, exclude_id=dept.id)

    for field in ("name", "code", "description"):
        if field in data.model_fields_set and (field == "description" or getattr(data, field) is not None):
            setattr(dept, field, getattr(data, field))
    dept.updated_at = utcnow()

    session.add(dept)
    try:
        await session.commit()
        await session.refresh(dept)
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Department with this name or code already exists")

    await log_activity(
        session,
        ActivityAction.DEPARTMENT_UPDATED,
        actor,
        description=f"Updated department {dept.name}",
        department_id=dept.id,
    )
    return dept


async def delete_department(session: AsyncSession, dept: Department, actor: User) -> None:
    """Refuses while users are still assigned; card links are dropped, cards survive."""
    in_use = (await session.execute(
        select(func.count(User.id)).where(User.department_id == dept.id)
    )).scalar_one()
    if in_use:
        raise ConflictError(f"Department still has {in_use} assigned user(s)")

    name = dept.name
    await session.execute(sa_delete(CardDepartment).where(CardDepartment.department_id == dept.id))
    await session.delete(dept)
    await session.commit()

    await log_activity(session, ActivityAction.DEPARTMENT_DELETED, actor, description=f"Deleted department {name}")


# ============================================================================
# ADMIN DASHBOARD AGGREGATES
# ============================================================================
async def completion_rates(session: AsyncSession) -> List[DepartmentCompletion]:
    """
    expected = cards linked to the department x staff in it.
    submitted = distinct (card, staff) pairs with at least one upload.
    """
    depts = (await session.execute(select(Department).order_by(Department.name))).scalars().all()
    cards = await _card_counts(session)

    staff_res = await session.execute(
        select(User.department_id, func.count(User.id))
        .where(User.user_type == UserType.STAFF)
        .group_by(User.department_id)
    )
    staff = dict(staff_res.all())

    pairs_res = await session.execute(
        select(CardDepartment.department_id, Submission.card_id, Submission.user_id)
        .select_from(CardDepartment)
        .join(Submission, Submission.card_id == CardDepartment.card_id)
        .join(User, User.id == Submission.user_id)
        .where(User.user_type == UserType.STAFF)
        .where(User.department_id == CardDepartment.department_id)
        .distinct()
    )
    submitted: dict = {}
    for dept_id, _card_id, _user_id in pairs_res.all():
        submitted[dept_id] = submitted.get(dept_id, 0) + 1

    rates = []
    for d in depts:
        total_cards = cards.get(d.id, 0)
        staff_count = staff.get(d.id, 0)
        expected = total_cards * staff_count
        done = submitted.get(d.id, 0)
        rates.append(DepartmentCompletion(
            department_id=d.id,
            department_name=d.name,
            total_cards=total_cards,
            staff_count=staff_count,
            expected_submissions=expected,
            submitted=done,
            completion_rate=round(done * 100 / expected) if expected else 0,
        ))
    return rates


async def storage_usage(session: AsyncSession) -> List[DepartmentStorage]:
    """Bytes and file counts grouped by the uploader's department."""
    depts = (await session.execute(select(Department).order_by(Department.name))).scalars().all()
    res = await session.execute(
        select(User.department_id, func.count(Submission.id), func.coalesce(func.sum(Submission.size), 0))
        .select_from(Submission)
        .join(User, User.id == Submission.user_id)
        .where(User.department_id.is_not(None))
        .group_by(User.department_id)
    )
    usage = {dept_id: (count, total) for dept_id, count, total in res.all()}

    rows = []
    for d in depts:
        count, total = usage.get(d.id, (0, 0))
        rows.append(DepartmentStorage(
            department_id=d.id,
            department_name=d.name,
            file_count=count,
            total_bytes=int(total),
            total_size=format_file_size(int(total)),
        ))
    return rows
