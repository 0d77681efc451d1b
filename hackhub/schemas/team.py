from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field, StringConstraints

from hackhub.core.config import TEAM_NAME_MAX_LENGTH, TEAM_NAME_MIN_LENGTH
from hackhub.models.team import TeamRole

# surrounding whitespace is stripped before the length bounds apply
TeamName = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True,
        min_length=TEAM_NAME_MIN_LENGTH,
        max_length=TEAM_NAME_MAX_LENGTH,
    ),
]


class TeamCreate(BaseModel):
    team_name: TeamName
    event_id: int = Field(gt=0)


class TeamUpdate(BaseModel):
    team_name: TeamName


class TeamRead(BaseModel):
    id: int
    name: str
    event_id: int
    created_by: int
    created_at: datetime

    class Config:
        from_attributes = True


class TeamMemberRead(BaseModel):
    user_id: int
    name: str
    email: str
    role: TeamRole
    joined_at: datetime


class TeamDetail(TeamRead):
    event_name: str
    max_team_size: Optional[int] = None
    members: list[TeamMemberRead]
    member_count: int


class MemberCounts(BaseModel):
    total: int
    leaders: int
    members: int


class TeamSummary(TeamRead):
    creator_name: str
    member_details: MemberCounts


class MyTeam(TeamRead):
    event_name: str
    my_role: TeamRole
    member_count: int


class TeamMembership(BaseModel):
    team_id: int
    team_name: str
    event_id: int
    user_id: int
    role: TeamRole
    member_count: int
