#portal/models/activity.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy import Enum as SAEnum
from typing import Optional, Dict, Any
from datetime import datetime

from portal.models.base import utcnow
from portal.models.enums import ActivityAction


class Activity(SQLModel, table=True):
    __tablename__ = "activities"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    user_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    )
    # Snapshot of the actor's department at the time of the action
    department_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    )
    card_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("cards.id", ondelete="SET NULL"), nullable=True)
    )

    action: ActivityAction = Field(
        sa_column=Column(SAEnum(ActivityAction, name="activity_action"), nullable=False, index=True)
    )
    description: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))

    # e.g. {"file_name": "...", "size": 1234}
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
