# portal/services/auth_service.py

from typing import Iterable, List

from loguru import logger
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from portal.core.errors import ConflictError
from portal.models.base import utcnow
from portal.models.department import Department
from portal.models.enums import ActivityAction
from portal.models.user import User, UserType
from portal.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    generate_verification_token,
    token_lifetime,
)
from portal.schemas.auth import SignupRequest, TokenWithUser
from portal.schemas.user import DepartmentRef, UserRead
from portal.services.activity_service import log_activity
from portal.services.email_service import send_verification_email


DASHBOARD_PATHS = {
    UserType.ADMIN: "/AdminDashboard",
    UserType.HEAD: "/headdashboard",
    UserType.STAFF: "/staffdashboard",
}


def dashboard_path_for(user_type) -> str:
    """Where the SPA sends a user after login."""
    try:
        return DASHBOARD_PATHS[UserType(user_type)]
    except ValueError:
        return "/dashboard"


# ============================================================================
# LOOKUPS
# ============================================================================
async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_user_by_username(session: AsyncSession, username: str) -> User | None:
    result = await session.execute(select(User).where(User.username == username.strip()))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: int) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_department(session: AsyncSession, department_id: int) -> Department | None:
    result = await session.execute(select(Department).where(Department.id == department_id))
    return result.scalar_one_or_none()


# ============================================================================
# RESPONSE SHAPING
# ============================================================================
async def to_user_reads(session: AsyncSession, users: Iterable[User]) -> List[UserRead]:
    users = list(users)
    dept_ids = {u.department_id for u in users if u.department_id}
    depts = {}
    if dept_ids:
        result = await session.execute(select(Department).where(Department.id.in_(dept_ids)))
        depts = {d.id: d for d in result.scalars().all()}

    reads = []
    for user in users:
        read = UserRead.model_validate(user)
        dept = depts.get(user.department_id)
        if dept:
            read.department = DepartmentRef.model_validate(dept)
        reads.append(read)
    return reads


async def to_user_read(session: AsyncSession, user: User) -> UserRead:
    return (await to_user_reads(session, [user]))[0]


# ============================================================================
# CREATE USER
# ============================================================================
async def validate_assignment(session: AsyncSession, user_type: UserType, department_id: int | None) -> None:
    # 1) HEAD and STAFF MUST have a department
    if user_type in (UserType.HEAD, UserType.STAFF) and department_id is None:
        raise ValueError(f"{user_type.value} must be assigned to a department")

    # 2) ADMIN cannot have a department
    if user_type == UserType.ADMIN and department_id is not None:
        raise ValueError("ADMIN cannot have a department")

    # 3) Department must exist
    if department_id is not None and not await get_department(session, department_id):
        raise ValueError("Department not found")


async def create_user(
    session: AsyncSession,
    username: str,
    email: str,
    password: str,
    user_type: UserType,
    first_name: str | None = None,
    last_name: str | None = None,
    department_id: int | None = None,
    is_verified: bool = True,
) -> User:

    await validate_assignment(session, user_type, department_id)

    if await get_user_by_email(session, email):
        raise ConflictError("User with this email already exists")
    if await get_user_by_username(session, username):
        raise ConflictError("Username is already taken")

    user = User(
        username=username.strip(),
        email=email.strip().lower(),
        first_name=first_name,
        last_name=last_name,
        password_hash=hash_password(password),
        user_type=user_type,
        department_id=department_id,
        is_verified=is_verified,
        verification_token=None if is_verified else generate_verification_token(),
    )

    session.add(user)

    try:
        await session.commit()
        await session.refresh(user)
        return user

    except IntegrityError:
        await session.rollback()
        raise ConflictError("User with this email or username already exists")


# ============================================================================
# AUTHENTICATE
# ============================================================================
async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(session, email)
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


async def create_login_response(user: User, session: AsyncSession, remember_me: bool = False) -> TokenWithUser:
    lifetime = token_lifetime(remember_me)
    token = create_access_token(
        subject=user.id,
        expires_delta=lifetime,
        data={
            "user_type": user.user_type.value,
            "department_id": user.department_id,
        },
    )

    user.last_login_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    await log_activity(session, ActivityAction.LOGIN, user, description=f"{user.username} signed in")

    return TokenWithUser(
        token=token,
        expires_in=int(lifetime.total_seconds()),
        user=await to_user_read(session, user),
        redirect=dashboard_path_for(user.user_type),
    )


# ============================================================================
# SIGNUP + EMAIL VERIFICATION
# ============================================================================
async def signup(session: AsyncSession, data: SignupRequest) -> User:
    """
    Self-registration for HEAD/STAFF. The account stays unverified until the
    emailed token is confirmed through verify_email().
    """
    user = await create_user(
        session,
        username=data.username,
        email=data.email,
        password=data.password,
        user_type=data.user_type,
        first_name=data.first_name,
        last_name=data.last_name,
        department_id=data.department,
        is_verified=False,
    )

    await log_activity(session, ActivityAction.SIGNUP, user, description=f"{user.username} signed up")

    sent = send_verification_email(
        {"email": user.email, "first_name": user.first_name, "username": user.username},
        user.verification_token,
    )
    if not sent:
        logger.warning(f"Verification email for {user.email} was not sent")

    return user


async def verify_email(session: AsyncSession, token: str) -> User:
    result = await session.execute(select(User).where(User.verification_token == token))
    user = result.scalar_one_or_none()
    if not user:
        raise ValueError("Invalid or expired verification token")

    user.is_verified = True
    user.verification_token = None
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def list_heads(session: AsyncSession) -> List[User]:
    result = await session.execute(
        select(User).where(User.user_type == UserType.HEAD).order_by(User.first_name, User.username)
    )
    return result.scalars().all()
