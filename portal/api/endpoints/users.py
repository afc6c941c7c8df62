# portal/api/endpoints/users.py

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_current_user, get_db_session
from portal.core.errors import ConflictError
from portal.core.rbac import AllowRoles, is_admin
from portal.models.user import User, UserType
from portal.schemas.user import UserCreate, UserRead, UserUpdate
from portal.services.auth_service import create_user, get_user_by_id, to_user_read, to_user_reads
from portal.services.email_service import send_welcome_email
from portal.services.user_service import delete_user, list_users, set_avatar, update_user

router = APIRouter(prefix="/users", tags=["Users"])


async def _load_user(session: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(session, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _can_view(viewer: User, target: User) -> bool:
    if viewer.id == target.id or is_admin(viewer):
        return True
    return (
        viewer.user_type == UserType.HEAD
        and viewer.department_id is not None
        and viewer.department_id == target.department_id
    )


# -------------------------------------------------------------------
# List users (ADMIN: everyone, HEAD: own department)
# -------------------------------------------------------------------
@router.get("", response_model=List[UserRead])
async def get_users(
    search: Optional[str] = None,
    user_type: Optional[UserType] = None,
    department_id: Optional[int] = Query(default=None, alias="departmentId"),
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.HEAD)),
):
    if not is_admin(current_user):
        department_id = current_user.department_id

    users = await list_users(session, department_id=department_id, user_type=user_type, search=search)
    return await to_user_reads(session, users)


# -------------------------------------------------------------------
# Create a verified account (ADMIN only)
# -------------------------------------------------------------------
@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_new_user(
    data: UserCreate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(AllowRoles(UserType.ADMIN)),
):
    try:
        user = await create_user(
            session,
            username=data.username,
            email=data.email,
            password=data.password,
            user_type=data.user_type,
            first_name=data.first_name,
            last_name=data.last_name,
            department_id=data.department_id,
        )
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    send_welcome_email({
        "email": user.email,
        "first_name": user.first_name,
        "username": user.username,
        "user_type": user.user_type.value,
    })
    return await to_user_read(session, user)


# -------------------------------------------------------------------
# Single user
# -------------------------------------------------------------------
@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    user = await _load_user(session, user_id)
    if not _can_view(current_user, user):
        raise HTTPException(status_code=403, detail="Not authorized to view this user")
    return await to_user_read(session, user)


@router.put("/{user_id}", response_model=UserRead)
async def update_user_endpoint(
    user_id: int,
    data: UserUpdate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    user = await _load_user(session, user_id)

    if current_user.id != user.id and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to edit this user")

    if not is_admin(current_user) and {"user_type", "department_id"} & data.model_fields_set:
        raise HTTPException(status_code=403, detail="Only administrators can change role or department")

    try:
        user = await update_user(session, user, data, current_user)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return await to_user_read(session, user)


@router.post("/{user_id}/avatar", response_model=UserRead)
async def upload_avatar(
    user_id: int,
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    user = await _load_user(session, user_id)
    if current_user.id != user.id and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to edit this user")

    try:
        user = await set_avatar(session, user, file)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await to_user_read(session, user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(
    user_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.ADMIN)),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    user = await _load_user(session, user_id)
    await delete_user(session, user, current_user)
    return None
