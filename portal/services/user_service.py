# portal/services/user_service.py

from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy import delete as sa_delete, or_, update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from portal.core.errors import ConflictError
from portal.core.security import hash_password
from portal.core.storage import IMAGE_MIME_TYPES, delete_stored_file, save_upload
from portal.models.activity import Activity
from portal.models.base import utcnow
from portal.models.card import Card
from portal.models.enums import ActivityAction
from portal.models.submission import Submission
from portal.models.user import User, UserType
from portal.schemas.user import UserUpdate
from portal.services.activity_service import log_activity
from portal.services.auth_service import (
    get_user_by_email,
    get_user_by_username,
    validate_assignment,
)

MAX_AVATAR_SIZE = 2 * 1024 * 1024


# ============================================================================
# LIST USERS
# ============================================================================
async def list_users(
    session: AsyncSession,
    department_id: Optional[int] = None,
    user_type: Optional[UserType] = None,
    search: Optional[str] = None,
) -> List[User]:
    query = select(User).order_by(User.created_at.desc(), User.id.desc())

    if department_id is not None:
        query = query.where(User.department_id == department_id)
    if user_type is not None:
        query = query.where(User.user_type == user_type)
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )

    result = await session.execute(query)
    return result.scalars().all()


# ============================================================================
# UPDATE USER
# ============================================================================
async def update_user(session: AsyncSession, user: User, data: UserUpdate, actor: User) -> User:
    """
    Applies only the fields present in the payload.
    Role and department changes are for ADMIN only; the router enforces that.
    """
    fields = data.model_fields_set

    if "email" in fields and data.email and data.email.lower() != user.email:
        if await get_user_by_email(session, data.email):
            raise ConflictError("Email already in use")
        user.email = data.email.lower()

    if "username" in fields and data.username and data.username != user.username:
        if await get_user_by_username(session, data.username):
            raise ConflictError("Username is already taken")
        user.username = data.username.strip()

    if "first_name" in fields:
        user.first_name = data.first_name
    if "last_name" in fields:
        user.last_name = data.last_name

    if "password" in fields and data.password:
        user.password_hash = hash_password(data.password)

    if "user_type" in fields or "department_id" in fields:
        new_type = data.user_type if data.user_type is not None else user.user_type
        if "department_id" in fields:
            new_department = data.department_id
        elif new_type == UserType.ADMIN:
            new_department = None
        else:
            new_department = user.department_id
        await validate_assignment(session, new_type, new_department)
        user.user_type = new_type
        user.department_id = new_department

    user.updated_at = utcnow()
    session.add(user)

    try:
        await session.commit()
        await session.refresh(user)
    except IntegrityError:
        await session.rollback()
        raise ValueError("Failed to update user")

    await log_activity(
        session,
        ActivityAction.USER_UPDATED,
        actor,
        description=f"Updated user {user.username}",
        department_id=user.department_id,
        details={"user_id": user.id, "fields": sorted(fields)},
    )
    return user


# ============================================================================
# AVATAR
# ============================================================================
async def set_avatar(session: AsyncSession, user: User, file: UploadFile) -> User:
    if file.content_type not in IMAGE_MIME_TYPES:
        raise ValueError("Avatar must be a PNG, JPEG, GIF or WEBP image")

    stored = await save_upload(file, f"avatars/{user.id}", max_size=MAX_AVATAR_SIZE)
    previous = user.avatar

    user.avatar = stored.path
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    if previous:
        delete_stored_file(previous)
    return user


# ============================================================================
# DELETE USER
# ============================================================================
async def delete_user(session: AsyncSession, user: User, actor: User) -> None:
    username, department_id, avatar = user.username, user.department_id, user.avatar

    # Explicit cleanup so behaviour does not depend on the backend enforcing FKs
    res = await session.execute(select(Submission.path).where(Submission.user_id == user.id))
    file_paths = res.scalars().all()
    await session.execute(sa_delete(Submission).where(Submission.user_id == user.id))
    await session.execute(sa_update(Card).where(Card.created_by_id == user.id).values(created_by_id=None))
    await session.execute(sa_update(Card).where(Card.head_id == user.id).values(head_id=None))
    await session.execute(sa_update(Activity).where(Activity.user_id == user.id).values(user_id=None))

    await session.delete(user)
    await session.commit()

    for path in file_paths:
        delete_stored_file(path)
    if avatar:
        delete_stored_file(avatar)

    await log_activity(
        session,
        ActivityAction.USER_DELETED,
        actor,
        description=f"Deleted user {username}",
        department_id=department_id,
    )
