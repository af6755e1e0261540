from datetime import datetime

from pydantic import BaseModel, Field


class FamilyCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    is_public: bool = False


class FamilyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    is_public: bool | None = None


class FamilyResponse(BaseModel):
    id: int
    name: str
    description: str | None
    is_public: bool
    created_by: int | None
    created_at: datetime
    member_count: int = 0
    permission_level: str | None = None


class FamilyListResponse(BaseModel):
    items: list[FamilyResponse]


class FamilyMemberCreate(BaseModel):
    user_id: int
    permission_level: str = Field(default="view", pattern="^(view|edit|admin)$")


class FamilyMemberPermissionUpdate(BaseModel):
    permission_level: str = Field(pattern="^(view|edit|admin)$")


class FamilyMemberResponse(BaseModel):
    user_id: int
    email: str
    first_name: str
    last_name: str
    role: str
    permission_level: str
    joined_at: datetime


class FamilyDetailResponse(FamilyResponse):
    members: list[FamilyMemberResponse]
