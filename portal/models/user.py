# portal/models/user.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional

from portal.models.base import utcnow
from portal.models.enums import UserType

# Re-exported so routers can import the role enum next to the model
__all__ = ["User", "UserType"]


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    username: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True)
    )
    email: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True)
    )
    first_name: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    last_name: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))

    password_hash: str = Field(sa_column=Column(String, nullable=False))

    user_type: UserType = Field(
        sa_column=Column(SAEnum(UserType, name="user_type"), nullable=False)
    )

    # HEAD and STAFF belong to exactly one department, ADMIN to none
    department_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("departments.id"), nullable=True)
    )

    # storage path of the profile picture
    avatar: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))

    # --- Email verification ---
    is_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False)
    )
    verification_token: Optional[str] = Field(
        default=None,
        sa_column=Column(String(128), nullable=True, index=True)
    )

    last_login_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
