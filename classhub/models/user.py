from datetime import datetime
from typing import Literal

from pydantic import AnyUrl, BaseModel, EmailStr, Field

from classhub.utils.timing import utcnow


UserRole = Literal["student", "instructor", "admin"]


class User(BaseModel):
    id: str
    firebase_uid: str
    name: str
    email: EmailStr
    picture: AnyUrl | None = None
    role: UserRole = Field(default="student", description="student, instructor or admin")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def can_teach(self) -> bool:
        return self.role in ("instructor", "admin")


class UserCreate(BaseModel):
    firebase_uid: str
    name: str
    email: EmailStr
    picture: AnyUrl | None = None
    role: UserRole = "student"


class UserUpdate(BaseModel):
    name: str | None = None
    picture: AnyUrl | None = None
    role: UserRole | None = None


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    name: str | None = Field(None, min_length=1)
    picture: AnyUrl | None = None


class RoleUpdate(BaseModel):
    role: UserRole
