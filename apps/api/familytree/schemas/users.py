from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: datetime


class UserListResponse(BaseModel):
    items: list[UserResponse]


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=100)
    last_name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = None


class UserUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=100)
    last_name: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = None
    role: str | None = Field(default=None, pattern="^(admin|family_member|visitor)$")
    is_active: bool | None = None


class UserActivation(BaseModel):
    is_active: bool


class UserStatsResponse(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    admin_users: int
    family_member_users: int
    visitor_users: int
    recent_users: list[UserResponse]
