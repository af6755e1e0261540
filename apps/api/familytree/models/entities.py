from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from familytree.models.base import Base


class RoleEnum(str, Enum):
    admin = "admin"
    family_member = "family_member"
    visitor = "visitor"


class PermissionLevelEnum(str, Enum):
    view = "view"
    edit = "edit"
    admin = "admin"


class GenderEnum(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class RelationshipTypeEnum(str, Enum):
    parent_child = "parent_child"
    spouse = "spouse"
    sibling = "sibling"


class RelationshipSubtypeEnum(str, Enum):
    mother = "mother"
    father = "father"
    husband = "husband"
    wife = "wife"
    ex_husband = "ex_husband"
    ex_wife = "ex_wife"
    brother = "brother"
    sister = "sister"


class PostVisibilityEnum(str, Enum):
    public = "public"
    family = "family"
    admin = "admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), nullable=False, default=RoleEnum.family_member)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class Family(Base):
    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class UserFamilyPermission(Base):
    __tablename__ = "user_family_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    permission_level: Mapped[PermissionLevelEnum] = mapped_column(
        SqlEnum(PermissionLevelEnum), nullable=False, default=PermissionLevelEnum.view
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (UniqueConstraint("user_id", "family_id", name="uq_user_family"),)


class Person(Base):
    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    maiden_name: Mapped[str | None] = mapped_column(String(100))
    gender: Mapped[GenderEnum] = mapped_column(SqlEnum(GenderEnum), nullable=False)
    birth_date: Mapped[date | None] = mapped_column(Date)
    death_date: Mapped[date | None] = mapped_column(Date)
    birth_place: Mapped[str | None] = mapped_column(String(255))
    death_place: Mapped[str | None] = mapped_column(String(255))
    photo_url: Mapped[str | None] = mapped_column(String(500))
    biography: Mapped[str | None] = mapped_column(Text)
    is_deceased: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    family_id: Mapped[int | None] = mapped_column(ForeignKey("families.id", ondelete="SET NULL"))
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Relationship(Base):
    __tablename__ = "relationships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    person1_id: Mapped[int] = mapped_column(ForeignKey("persons.id", ondelete="CASCADE"), nullable=False)
    person2_id: Mapped[int] = mapped_column(ForeignKey("persons.id", ondelete="CASCADE"), nullable=False)
    relationship_type: Mapped[RelationshipTypeEnum] = mapped_column(SqlEnum(RelationshipTypeEnum), nullable=False)
    relationship_subtype: Mapped[RelationshipSubtypeEnum] = mapped_column(
        SqlEnum(RelationshipSubtypeEnum), nullable=False
    )
    # "p1:p2" for directed types, "min:max" for undirected ones; see services.graph.edge_key.
    pair_key: Mapped[str] = mapped_column(String(64), nullable=False)
    marriage_date: Mapped[date | None] = mapped_column(Date)
    divorce_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (UniqueConstraint("relationship_type", "pair_key", name="uq_relationship_edge"),)


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(500))
    visibility: Mapped[PostVisibilityEnum] = mapped_column(
        SqlEnum(PostVisibilityEnum), nullable=False, default=PostVisibilityEnum.family
    )
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id: Mapped[int | None] = mapped_column(ForeignKey("families.id", ondelete="SET NULL"))
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_comment_id: Mapped[int | None] = mapped_column(ForeignKey("comments.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


Index("ix_persons_family", Person.family_id)
Index("ix_persons_name", Person.last_name, Person.first_name)
Index("ix_relationships_person1", Relationship.person1_id, Relationship.relationship_type)
Index("ix_relationships_person2", Relationship.person2_id, Relationship.relationship_type)
Index("ix_user_family_permissions_family", UserFamilyPermission.family_id)
Index("ix_posts_family_visibility", Post.family_id, Post.visibility)
Index("ix_comments_post", Comment.post_id)
