# portal/core/rbac.py

from typing import Iterable, Optional

from fastapi import Depends, HTTPException, status
from portal.api.deps import get_current_user
from portal.models.user import User, UserType


def normalize(role) -> str:
    if isinstance(role, UserType):
        return role.value.upper().strip()
    return str(role).upper().strip()


def AllowRoles(*allowed_roles):
    """
    Flexible RBAC:
    - Accepts UserType values or raw strings
    - Case-insensitive
    - ADMIN bypasses everything
    """

    normalized_allowed = {normalize(r) for r in allowed_roles}

    async def role_checker(current_user: User = Depends(get_current_user)):
        if not current_user:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthenticated")

        user_role = normalize(current_user.user_type)

        # Admin bypass
        if user_role == UserType.ADMIN.value:
            return current_user

        if user_role not in normalized_allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied for role '{user_role}'"
            )

        return current_user

    return role_checker


def is_admin(user: Optional[User]) -> bool:
    return user is not None and normalize(user.user_type) == UserType.ADMIN.value


def can_access_departments(user: User, department_ids: Iterable[int]) -> bool:
    """ADMIN sees everything; HEAD/STAFF only cards linked to their own department."""
    if is_admin(user):
        return True
    return user.department_id is not None and user.department_id in set(department_ids)


def ensure_department_access(user: User, department_ids: Iterable[int]) -> None:
    if not can_access_departments(user, department_ids):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not authorized for this department")


def ensure_sole_department(user: User, department_ids: Iterable[int]) -> None:
    """Non-admins may only change cards linked to their own department and no other."""
    if is_admin(user):
        return
    if user.department_id is None or set(department_ids) != {user.department_id}:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Card is shared with other departments")
