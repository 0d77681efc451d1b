from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, EmailStr, Field, StringConstraints

from hackhub.models.user import AuthProvider, UserRole


UserName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=255)]


class UserCreate(BaseModel):
    name: UserName
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    role: UserRole = UserRole.PARTICIPANT
    auth_provider: AuthProvider = AuthProvider.EMAIL


class UserUpdate(BaseModel):
    name: UserName | None = None
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=72)


class UserRead(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: UserRole
    auth_provider: AuthProvider
    created_at: datetime | None = None

    class Config:
        from_attributes = True

