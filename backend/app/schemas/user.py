"""
Pydantic schemas for User endpoints.

Wire format is camelCase (``firstName``, ``isActive``); snake_case input is
accepted as well.
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN

Role = Literal["user", "admin", "moderator"]

USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 30
NAME_MAX_LEN = 50


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _strip(v):
    return v.strip() if isinstance(v, str) else v


def _normalize_email(v):
    if isinstance(v, str):
        return v.strip().lower()
    return v


# ── Create / update ─────────────────────────────────────

class UserCreate(CamelModel):
    username: str = Field(..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    first_name: Optional[str] = Field(default=None, max_length=NAME_MAX_LEN)
    last_name: Optional[str] = Field(default=None, max_length=NAME_MAX_LEN)
    role: Role = "user"

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return _normalize_email(v)

    @field_validator("username", "first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return _strip(v)


class UserUpdate(CamelModel):
    """Allow-listed partial update. Password and bookkeeping fields are not accepted."""

    model_config = ConfigDict(extra="ignore")

    username: Optional[str] = Field(default=None, min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(default=None, max_length=NAME_MAX_LEN)
    last_name: Optional[str] = Field(default=None, max_length=NAME_MAX_LEN)
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    profile_image: Optional[str] = Field(default=None, max_length=500)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return _normalize_email(v)

    @field_validator("username", "first_name", "last_name", "profile_image", mode="before")
    @classmethod
    def strip_names(cls, v):
        return _strip(v)

    @field_validator("username", "email", "role", "is_active")
    @classmethod
    def not_null(cls, v, info):
        # Required columns may be omitted but never cleared
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


# ── User responses ──────────────────────────────────────

class UserOut(CamelModel):
    """Public profile: never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    is_active: bool
    profile_image: Optional[str] = None
    created_at: datetime
    last_login: Optional[datetime] = None


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int


class UserListData(BaseModel):
    users: list[UserOut]
    pagination: Pagination


class UserListResponse(BaseModel):
    success: bool = True
    data: UserListData


class UserData(BaseModel):
    user: UserOut


class UserResponse(BaseModel):
    success: bool = True
    data: UserData
    message: str = ""


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    admins: int


class UserStatsData(BaseModel):
    stats: UserStats


class UserStatsResponse(BaseModel):
    success: bool = True
    data: UserStatsData


class MessageResponse(BaseModel):
    success: bool = True
    message: str
