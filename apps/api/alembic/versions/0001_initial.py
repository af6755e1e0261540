"""initial family tree schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


role_enum = postgresql.ENUM("admin", "family_member", "visitor", name="roleenum", create_type=False)
permission_level_enum = postgresql.ENUM("view", "edit", "admin", name="permissionlevelenum", create_type=False)
gender_enum = postgresql.ENUM("male", "female", "other", name="genderenum", create_type=False)
relationship_type_enum = postgresql.ENUM(
    "parent_child", "spouse", "sibling", name="relationshiptypeenum", create_type=False
)
relationship_subtype_enum = postgresql.ENUM(
    "mother",
    "father",
    "husband",
    "wife",
    "ex_husband",
    "ex_wife",
    "brother",
    "sister",
    name="relationshipsubtypeenum",
    create_type=False,
)
post_visibility_enum = postgresql.ENUM("public", "family", "admin", name="postvisibilityenum", create_type=False)

_ENUMS = (
    role_enum,
    permission_level_enum,
    gender_enum,
    relationship_type_enum,
    relationship_subtype_enum,
    post_visibility_enum,
)


def upgrade() -> None:
    bind = op.get_bind()
    for enum in _ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("role", role_enum, nullable=False, server_default="family_member"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "families",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "user_family_permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="CASCADE"), nullable=False),
        sa.Column("permission_level", permission_level_enum, nullable=False, server_default="view"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "family_id", name="uq_user_family"),
    )
    op.create_index("ix_user_family_permissions_family", "user_family_permissions", ["family_id"], unique=False)

    op.create_table(
        "persons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("maiden_name", sa.String(length=100), nullable=True),
        sa.Column("gender", gender_enum, nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("death_date", sa.Date(), nullable=True),
        sa.Column("birth_place", sa.String(length=255), nullable=True),
        sa.Column("death_place", sa.String(length=255), nullable=True),
        sa.Column("photo_url", sa.String(length=500), nullable=True),
        sa.Column("biography", sa.Text(), nullable=True),
        sa.Column("is_deceased", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_persons_family", "persons", ["family_id"], unique=False)
    op.create_index("ix_persons_name", "persons", ["last_name", "first_name"], unique=False)

    op.create_table(
        "relationships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("person1_id", sa.Integer(), sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("person2_id", sa.Integer(), sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("relationship_type", relationship_type_enum, nullable=False),
        sa.Column("relationship_subtype", relationship_subtype_enum, nullable=False),
        sa.Column("pair_key", sa.String(length=64), nullable=False),
        sa.Column("marriage_date", sa.Date(), nullable=True),
        sa.Column("divorce_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("relationship_type", "pair_key", name="uq_relationship_edge"),
    )
    op.create_index("ix_relationships_person1", "relationships", ["person1_id", "relationship_type"], unique=False)
    op.create_index("ix_relationships_person2", "relationships", ["person2_id", "relationship_type"], unique=False)

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("visibility", post_visibility_enum, nullable=False, server_default="family"),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="SET NULL"), nullable=True),
        sa.Column("likes_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_posts_family_visibility", "posts", ["family_id", "visibility"], unique=False)

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "parent_comment_id", sa.Integer(), sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_comments_post", "comments", ["post_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_comments_post", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_posts_family_visibility", table_name="posts")
    op.drop_table("posts")
    op.drop_index("ix_relationships_person2", table_name="relationships")
    op.drop_index("ix_relationships_person1", table_name="relationships")
    op.drop_table("relationships")
    op.drop_index("ix_persons_name", table_name="persons")
    op.drop_index("ix_persons_family", table_name="persons")
    op.drop_table("persons")
    op.drop_index("ix_user_family_permissions_family", table_name="user_family_permissions")
    op.drop_table("user_family_permissions")
    op.drop_table("families")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in reversed(_ENUMS):
        enum.drop(bind, checkfirst=True)
