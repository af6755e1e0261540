from datetime import date, datetime

from pydantic import BaseModel, Field

from familytree.models.entities import RelationshipSubtypeEnum, RelationshipTypeEnum


class RelationshipCreate(BaseModel):
    person1_id: int
    person2_id: int
    relationship_type: RelationshipTypeEnum
    relationship_subtype: RelationshipSubtypeEnum
    marriage_date: date | None = None
    divorce_date: date | None = None


class RelationshipUpdate(BaseModel):
    relationship_subtype: RelationshipSubtypeEnum | None = None
    marriage_date: date | None = None
    divorce_date: date | None = None
    is_active: bool | None = None


class RelationshipBulkCreate(BaseModel):
    relationships: list[RelationshipCreate] = Field(min_length=1)


class RelationshipResponse(BaseModel):
    id: int
    person1_id: int
    person2_id: int
    person1_name: str | None = None
    person2_name: str | None = None
    relationship_type: str
    relationship_subtype: str
    marriage_date: date | None
    divorce_date: date | None
    is_active: bool
    created_at: datetime


class RelationshipListResponse(BaseModel):
    items: list[RelationshipResponse]


class RelationshipBulkResponse(BaseModel):
    items: list[RelationshipResponse]
    created: int
    skipped: int
