from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Priority = Literal["low", "medium", "high"]


class AnnouncementCreate(BaseModel):
    event_id: int = Field(gt=0)
    title: str = Field(min_length=3, max_length=200)
    message: str = Field(min_length=5, max_length=1000)
    priority: Priority = "medium"
    is_important: bool = False


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    message: Optional[str] = Field(default=None, min_length=5, max_length=1000)
    priority: Optional[Priority] = None
    is_important: Optional[bool] = None


class AnnouncementRead(BaseModel):
    id: str
    event_id: int
    author_id: int
    title: str
    message: str
    priority: Priority
    is_important: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    event_name: Optional[str] = None
