"""Create users, recipes and saved_recipes tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the initial schema: accounts, recipes, and the bookmark
       association between them.
How:   PostgreSQL features: UUID keys, JSONB sub-document columns,
       TIMESTAMP WITH TIME ZONE, and a GIN index over a weighted tsvector
       for full-text search.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Must match recipeshare.models.recipe.search_vector() exactly
SEARCH_VECTOR = (
    "setweight(to_tsvector('english', coalesce(name, '')), 'A') || "
    "setweight(to_tsvector('english', coalesce(description, '')), 'B') || "
    "setweight(to_tsvector('english', coalesce(cuisine, '')), 'C')"
)


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("name", sa.String(30), nullable=False),
        sa.Column(
            "username",
            sa.String(40),
            nullable=False,
            comment="Public handle: sanitized name, optionally '.' + 6-char suffix",
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'creator'")),
        sa.Column("bio", sa.String(160), nullable=False),
        sa.Column("location", sa.String(30), nullable=False),
        sa.Column("avatar_public_id", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("avatar_url", sa.String(1024), nullable=False),
        sa.Column("cover_photo_public_id", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("cover_photo_url", sa.String(1024), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role IN ('admin', 'creator')", name="ck_users_role"),
    )

    op.create_table(
        "recipes",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("cuisine", sa.String(100), nullable=False),
        sa.Column("prep_time", sa.Integer(), nullable=False, comment="Minutes"),
        sa.Column("difficulty", sa.String(10), nullable=False),
        sa.Column("serving", sa.Integer(), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("reviews", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("comments", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("nutrition_facts", postgresql.JSONB(), nullable=False),
        sa.Column("ingredients", postgresql.JSONB(), nullable=False),
        sa.Column("instructions", postgresql.JSONB(), nullable=False),
        sa.Column("image_public_id", sa.String(255), nullable=False),
        sa.Column("image_url", sa.String(1024), nullable=False),
        sa.Column("creator_id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("difficulty IN ('easy', 'medium', 'hard')", name="ck_recipes_difficulty"),
        sa.CheckConstraint("rating >= 0 AND rating <= 5", name="ck_recipes_rating"),
        sa.CheckConstraint("prep_time >= 1", name="ck_recipes_prep_time"),
        sa.CheckConstraint("serving >= 1", name="ck_recipes_serving"),
    )
    op.create_index(
        "idx_recipes_filter",
        "recipes",
        ["difficulty", "prep_time", sa.text("rating DESC")],
    )
    op.create_index(
        "idx_recipes_creator",
        "recipes",
        ["creator_id", sa.text("created_at DESC")],
    )
    op.create_index(
        "idx_recipes_search",
        "recipes",
        [sa.text(f"({SEARCH_VECTOR})")],
        postgresql_using="gin",
    )

    op.create_table(
        "saved_recipes",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("recipe_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "saved_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("user_id", "recipe_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_saved_recipes_recipe_id", "saved_recipes", ["recipe_id"])


def downgrade() -> None:
    """WARNING: destructive, all accounts, recipes and bookmarks are lost."""
    op.drop_index("idx_saved_recipes_recipe_id", table_name="saved_recipes")
    op.drop_table("saved_recipes")
    op.drop_index("idx_recipes_search", table_name="recipes")
    op.drop_index("idx_recipes_creator", table_name="recipes")
    op.drop_index("idx_recipes_filter", table_name="recipes")
    op.drop_table("recipes")
    op.drop_table("users")
