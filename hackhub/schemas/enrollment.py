from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from hackhub.models.enrollment import EnrollmentStatus


class EnrollmentOut(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: EnrollmentStatus
    enrolled_at: datetime
    team_id: Optional[int] = None

    class Config:
        from_attributes = True


class EnrollmentWithEvent(EnrollmentOut):
    event_name: str
    start_date: datetime
    end_date: datetime
    team_name: Optional[str] = None


class EnrollmentWithUser(EnrollmentOut):
    user_name: str
    user_email: str
    team_name: Optional[str] = None


class EnrollmentTeamUpdate(BaseModel):
    team_id: Optional[int] = None
