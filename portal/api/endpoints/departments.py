# portal/api/endpoints/departments.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api.deps import get_current_user, get_db_session
from portal.core.errors import ConflictError
from portal.core.rbac import AllowRoles
from portal.models.user import User, UserType
from portal.schemas.department import (
    DepartmentCompletion,
    DepartmentCreate,
    DepartmentRead,
    DepartmentStorage,
    DepartmentUpdate,
)
from portal.services.department_service import (
    completion_rates,
    create_department,
    delete_department,
    department_read,
    get_department,
    list_departments,
    storage_usage,
    update_department,
)

router = APIRouter(prefix="/departments", tags=["Departments"])


# Public: the signup form needs the list before anyone is logged in
@router.get("", response_model=List[DepartmentRead])
async def get_departments(session: AsyncSession = Depends(get_db_session)):
    return await list_departments(session)


@router.post("", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
async def create_department_endpoint(
    data: DepartmentCreate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.ADMIN)),
):
    try:
        dept = await create_department(session, data, current_user)
    except ConflictError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, str(e))
    return await department_read(session, dept)


# ------------------------------------------------------------
# Admin dashboard aggregates (declared before /{department_id})
# ------------------------------------------------------------
@router.get("/completion-rates", response_model=List[DepartmentCompletion])
async def get_completion_rates(
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(AllowRoles(UserType.ADMIN)),
):
    return await completion_rates(session)


@router.get("/storage", response_model=List[DepartmentStorage])
async def get_storage_usage(
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(AllowRoles(UserType.ADMIN)),
):
    return await storage_usage(session)


# ------------------------------------------------------------
# Single department
# ------------------------------------------------------------
@router.get("/{department_id}", response_model=DepartmentRead)
async def get_department_endpoint(
    department_id: int,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    dept = await get_department(session, department_id)
    if not dept:
        raise HTTPException(404, "Department not found")
    return await department_read(session, dept)


@router.put("/{department_id}", response_model=DepartmentRead)
async def update_department_endpoint(
    department_id: int,
    data: DepartmentUpdate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.ADMIN)),
):
    dept = await get_department(session, department_id)
    if not dept:
        raise HTTPException(404, "Department not found")

    try:
        dept = await update_department(session, dept, data, current_user)
    except ConflictError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, str(e))
    return await department_read(session, dept)


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department_endpoint(
    department_id: int,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(AllowRoles(UserType.ADMIN)),
):
    dept = await get_department(session, department_id)
    if not dept:
        raise HTTPException(404, "Department not found")

    try:
        await delete_department(session, dept, current_user)
    except ConflictError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, str(e))
    return None
