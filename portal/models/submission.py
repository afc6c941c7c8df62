from sqlmodel import SQLModel, Field
from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text
from datetime import datetime
from typing import Optional

from portal.models.base import utcnow


class Submission(SQLModel, table=True):
    __tablename__ = "submissions"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    card_id: int = Field(
        sa_column=Column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    user_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    )

    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    # Original file name as uploaded
    name: str = Field(sa_column=Column(String(255), nullable=False))
    type: str = Field(default="Document", sa_column=Column(String(64), nullable=False))
    size: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    path: str = Field(sa_column=Column(String, nullable=False))
    mime_type: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
