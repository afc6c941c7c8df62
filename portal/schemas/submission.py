from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class FileOwner(BaseModel):
    id: int
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None

    class Config:
        from_attributes = True


class FileItemRead(BaseModel):
    id: int
    card_id: int
    title: str
    description: Optional[str] = None
    name: str
    type: str
    size: int = 0
    path: str
    url: Optional[str] = None
    mime_type: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    user: Optional[FileOwner] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class MySubmissionRead(FileItemRead):
    card_title: Optional[str] = None


class FileListResponse(BaseModel):
    files: List[FileItemRead]
    total: int
    filtered: int
    page: int
    page_size: int
    pages: int
    type_options: List[str]
    my_count: int
