from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from familytree.models.entities import GenderEnum
from familytree.schemas.relationships import RelationshipResponse


class PersonCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    maiden_name: str | None = Field(default=None, max_length=100)
    gender: GenderEnum
    birth_date: date | None = None
    death_date: date | None = None
    birth_place: str | None = Field(default=None, max_length=255)
    death_place: str | None = Field(default=None, max_length=255)
    photo_url: str | None = Field(default=None, max_length=500)
    biography: str | None = Field(default=None, max_length=5000)
    family_id: int | None = None
    is_deceased: bool = False


class PersonUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    maiden_name: str | None = Field(default=None, max_length=100)
    gender: GenderEnum | None = None
    birth_date: date | None = None
    death_date: date | None = None
    birth_place: str | None = Field(default=None, max_length=255)
    death_place: str | None = Field(default=None, max_length=255)
    photo_url: str | None = Field(default=None, max_length=500)
    biography: str | None = Field(default=None, max_length=5000)
    family_id: int | None = None
    is_deceased: bool | None = None


class PersonResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    maiden_name: str | None
    gender: str
    birth_date: date | None
    death_date: date | None
    birth_place: str | None
    death_place: str | None
    photo_url: str | None
    biography: str | None
    is_deceased: bool
    family_id: int | None
    created_by: int | None
    created_at: datetime


class PersonListResponse(BaseModel):
    items: list[PersonResponse]


class SpouseResponse(PersonResponse):
    relationship_subtype: str
    marriage_date: date | None
    divorce_date: date | None


class PersonDetailResponse(PersonResponse):
    relationships: list[RelationshipResponse]
    parents: list[PersonResponse]
    children: list[PersonResponse]
    spouses: list[SpouseResponse]
    siblings: list[PersonResponse]


class PersonTreeResponse(BaseModel):
    root_person: PersonResponse
    family_members: list[PersonResponse]
    relationships: list[RelationshipResponse]
