from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from portal.schemas.submission import FileItemRead
from portal.schemas.user import DepartmentRef


def _normalize_file_types(value: Optional[str]) -> Optional[str]:
    """'.PDF, docx ,' -> 'pdf,docx'. Empty means any type."""
    if value is None:
        return None
    parts = [p.strip().lstrip(".").lower() for p in value.split(",")]
    parts = [p for p in parts if p]
    return ",".join(dict.fromkeys(parts)) or None


# ---------------------------------------------------------
# CREATE CARD
# ---------------------------------------------------------
class CardCreate(BaseModel):
    title: str = Field(max_length=255)
    description: Optional[str] = None
    department_id: Optional[int] = Field(default=None, alias="departmentId")
    department_ids: List[int] = Field(default_factory=list, alias="departmentIds")
    head_id: Optional[int] = Field(default=None, alias="headId")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    allowed_file_types: Optional[str] = Field(default=None, alias="allowedFileTypes")

    class Config:
        populate_by_name = True

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Card title is required")
        return value

    @field_validator("allowed_file_types")
    @classmethod
    def normalize_types(cls, value):
        return _normalize_file_types(value)

    @model_validator(mode="after")
    def merge_departments(self):
        ids = list(self.department_ids)
        if self.department_id is not None and self.department_id not in ids:
            ids.insert(0, self.department_id)
        if not ids:
            raise ValueError("At least one department is required")
        self.department_ids = ids
        return self


# ---------------------------------------------------------
# UPDATE CARD
# ---------------------------------------------------------
class CardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    department_ids: Optional[List[int]] = Field(default=None, alias="departmentIds")
    head_id: Optional[int] = Field(default=None, alias="headId")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    allowed_file_types: Optional[str] = Field(default=None, alias="allowedFileTypes")

    class Config:
        populate_by_name = True

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value):
        if value is not None and not value.strip():
            raise ValueError("Card title is required")
        return value.strip() if value else value

    @field_validator("allowed_file_types")
    @classmethod
    def normalize_types(cls, value):
        return _normalize_file_types(value)

    @field_validator("department_ids")
    @classmethod
    def departments_not_empty(cls, value):
        if value is not None and not value:
            raise ValueError("At least one department is required")
        return value


# ---------------------------------------------------------
# READ CARD
# ---------------------------------------------------------
class CardRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    created_by_id: Optional[int] = None
    head_id: Optional[int] = None
    created_at: datetime = Field(alias="createdAt")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    allowed_file_types: Optional[str] = Field(default=None, alias="allowedFileTypes")
    departments: List[DepartmentRef] = []
    department_names: str = Field(default="", alias="departmentNames")
    display_department: Optional[DepartmentRef] = Field(default=None, alias="displayDepartment")
    file_count: int = 0
    is_expired: bool = False

    class Config:
        populate_by_name = True


class CardDetail(CardRead):
    files: List[FileItemRead] = []


class CardAnalytics(BaseModel):
    total_cards: int = Field(alias="totalCards")
    cards_by_department: Dict[str, int] = Field(alias="cardsByDepartment")
    total_submissions: int = Field(alias="totalSubmissions")
    total_files: int = Field(alias="totalFiles")
    total_bytes: int = Field(alias="totalBytes")
    recent_cards: List[CardRead] = Field(alias="recentCards")

    class Config:
        populate_by_name = True


# ---------------------------------------------------------
# PER-USER SUBMISSION STATUS FOR A CARD
# ---------------------------------------------------------
class UserSubmissionStatus(BaseModel):
    id: int
    name: str
    email: str
    has_submitted: bool = Field(alias="hasSubmitted")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")

    class Config:
        populate_by_name = True


class UserStatus(BaseModel):
    users: List[UserSubmissionStatus]
    submitted_count: int = Field(alias="submittedCount")
    pending_count: int = Field(alias="pendingCount")
    total_users: int = Field(alias="totalUsers")

    class Config:
        populate_by_name = True
