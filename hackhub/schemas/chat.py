from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ChatMessageBody(BaseModel):
    message: str = Field(min_length=1, max_length=1000)

    @field_validator("message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        return v


class ChatCreate(ChatMessageBody):
    event_id: int = Field(gt=0)


class ChatReplyRead(BaseModel):
    id: str
    author_id: int
    author_name: Optional[str] = None
    message: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class ChatThreadRead(BaseModel):
    id: str
    event_id: int
    author_id: int
    author_name: Optional[str] = None
    message: str
    replies: list[ChatReplyRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None
