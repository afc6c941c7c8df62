# portal/models/card.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from datetime import datetime
from typing import Optional

from portal.models.base import utcnow


class Card(SQLModel, table=True):
    """A submission request template that staff upload files against."""

    __tablename__ = "cards"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    created_by_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    )

    # Department head responsible for the card (optional)
    head_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    )

    # Comma separated extensions, e.g. "pdf,docx". Empty means any type.
    allowed_file_types: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True)
    )

    expires_at: Optional[datetime] = Field(
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


class CardDepartment(SQLModel, table=True):
    __tablename__ = "card_departments"

    card_id: int = Field(
        sa_column=Column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True)
    )
    department_id: int = Field(
        sa_column=Column(Integer, ForeignKey("departments.id", ondelete="CASCADE"), primary_key=True)
    )
