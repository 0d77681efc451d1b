from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, field_serializer

JudgingStatus = Literal["pending", "in-review", "judged"]


class ScoreBreakdown(BaseModel):
    innovation: Optional[float] = Field(default=None, ge=0, le=10)
    technical: Optional[float] = Field(default=None, ge=0, le=10)
    presentation: Optional[float] = Field(default=None, ge=0, le=10)
    impact: Optional[float] = Field(default=None, ge=0, le=10)
    overall: Optional[float] = Field(default=None, ge=0, le=10)


class SubmissionDoc(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    url: HttpUrl

    @field_serializer("url")
    def url_as_str(self, url: HttpUrl) -> str:
        return str(url)


class SubmissionCreate(BaseModel):
    event_id: int = Field(gt=0)
    team_id: int = Field(gt=0)
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    track: Optional[str] = Field(default=None, max_length=100)
    github_url: Optional[HttpUrl] = None
    video_url: Optional[HttpUrl] = None
    docs: list[SubmissionDoc] = Field(default_factory=list)
    round: int = Field(default=1, ge=1)

    @field_serializer("github_url", "video_url")
    def url_as_str(self, url: Optional[HttpUrl]) -> Optional[str]:
        return str(url) if url is not None else None


class SubmissionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    track: Optional[str] = Field(default=None, max_length=100)
    github_url: Optional[HttpUrl] = None
    video_url: Optional[HttpUrl] = None
    docs: Optional[list[SubmissionDoc]] = None

    @field_serializer("github_url", "video_url")
    def url_as_str(self, url: Optional[HttpUrl]) -> Optional[str]:
        return str(url) if url is not None else None


class SubmissionJudge(BaseModel):
    scores: ScoreBreakdown
    total_score: float = Field(ge=0)
    judge_comments: Optional[str] = Field(default=None, max_length=2000)
    is_winner: bool = False
    prize: Optional[str] = Field(default=None, max_length=100)
    judging_status: JudgingStatus = "judged"
    rank: Optional[int] = Field(default=None, ge=1)


class SubmissionRead(BaseModel):
    id: str
    event_id: int
    team_id: int
    title: str
    description: str
    track: Optional[str] = None
    github_url: Optional[str] = None
    video_url: Optional[str] = None
    docs: list[dict] = Field(default_factory=list)
    round: int = 1
    submitted_at: datetime
    submitted_by: Optional[int] = None

    judging_status: JudgingStatus = "pending"
    judge_id: Optional[int] = None
    scores: Optional[ScoreBreakdown] = None
    total_score: Optional[float] = None
    judge_comments: Optional[str] = None
    rank: Optional[int] = None
    is_winner: bool = False
    prize: Optional[str] = None
    judged_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # filled in by list endpoints
    team_name: Optional[str] = None
    event_name: Optional[str] = None
    leader_name: Optional[str] = None
