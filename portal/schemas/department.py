import re
from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field

DEPARTMENT_CODE_PATTERN = re.compile(r"^[A-Z0-9]+$")


def is_valid_department_code(code: Optional[str]) -> bool:
    """Only uppercase ASCII letters and digits; empty is invalid."""
    return bool(code) and DEPARTMENT_CODE_PATTERN.fullmatch(code) is not None


def _check_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not value.strip():
        raise ValueError("Department code is required")
    if not is_valid_department_code(value):
        raise ValueError("Code should contain only uppercase letters and numbers")
    return value


def _check_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Department name is required")
    return value


DepartmentName = Annotated[str, Field(max_length=128), AfterValidator(_check_name)]
DepartmentCode = Annotated[str, Field(max_length=16), AfterValidator(_check_code)]


class DepartmentCreate(BaseModel):
    name: DepartmentName
    code: DepartmentCode
    description: Optional[str] = None


class DepartmentUpdate(BaseModel):
    name: Optional[DepartmentName] = None
    code: Optional[DepartmentCode] = None
    description: Optional[str] = None


class DepartmentRead(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    user_count: int = 0
    card_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DepartmentCompletion(BaseModel):
    department_id: int
    department_name: str
    total_cards: int
    staff_count: int
    expected_submissions: int
    submitted: int
    completion_rate: int  # percent, 0-100


class DepartmentStorage(BaseModel):
    department_id: int
    department_name: str
    file_count: int
    total_bytes: int
    total_size: str  # human readable
