from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field, StringConstraints, field_validator, model_validator

from hackhub.core.config import MAX_TEAM_SIZE_CAP
from hackhub.core.dates import as_utc
from hackhub.models.event import EventMode


EventName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=255)]


class EventBase(BaseModel):
    description: Optional[str] = Field(default=None, max_length=2000)
    theme: Optional[str] = Field(default=None, max_length=255)
    submission_deadline: Optional[datetime] = None
    result_date: Optional[datetime] = None
    rules: Optional[str] = Field(default=None, max_length=5000)
    timeline: Optional[str] = Field(default=None, max_length=3000)
    tracks: Optional[str] = Field(default=None, max_length=2000)
    prizes: Optional[str] = Field(default=None, max_length=2000)
    sponsors: Optional[str] = Field(default=None, max_length=2000)
    max_team_size: Optional[int] = Field(default=None, gt=0, le=MAX_TEAM_SIZE_CAP)

    @field_validator(
        "start_date", "end_date", "submission_deadline", "result_date", check_fields=False
    )
    @classmethod
    def normalize_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # naive input is taken as UTC
        return as_utc(v)


class EventCreate(EventBase):
    name: EventName
    mode: EventMode
    start_date: datetime
    end_date: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class EventUpdate(EventBase):
    name: Optional[EventName] = None
    mode: Optional[EventMode] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class EventRead(BaseModel):
    id: int
    organizer_id: int
    name: str
    description: Optional[str] = None
    theme: Optional[str] = None
    mode: EventMode
    start_date: datetime
    end_date: datetime
    submission_deadline: Optional[datetime] = None
    result_date: Optional[datetime] = None
    rules: Optional[str] = None
    timeline: Optional[str] = None
    tracks: Optional[str] = None
    prizes: Optional[str] = None
    sponsors: Optional[str] = None
    max_team_size: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EnrollmentStats(BaseModel):
    event_id: int
    enrolled: int
    cancelled: int
    waitlisted: int
    total: int
    total_teams: int
    average_team_size: float
