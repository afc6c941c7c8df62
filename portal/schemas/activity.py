from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime

from portal.models.enums import ActivityAction


class ActivityRead(BaseModel):
    id: int
    action: ActivityAction
    description: Optional[str] = None
    user_id: Optional[int] = None

    # Snapshot of who did it, resolved at read time
    user_name: Optional[str] = None

    department_id: Optional[int] = None
    department: Optional[str] = None
    card_id: Optional[int] = None
    card: Optional[str] = None
    details: Dict[str, Any] = {}
    created_at: datetime = Field(alias="createdAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class RealtimeStats(BaseModel):
    active_teachers: int = Field(alias="activeTeachers")
    uploads_today: int = Field(alias="uploadsToday")
    window_minutes: int = Field(alias="windowMinutes")

    class Config:
        populate_by_name = True
