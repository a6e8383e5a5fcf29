"""
Recipe Share Backend — Recipe SQLAlchemy Model
================================================

What:  ORM model representing the `recipes` table.
Who:   Written by RecipeService (create/update/delete), read by the recipe
       and user routes, locked by SaveService while toggling a bookmark.

Table Design Rationale:
    - Scalar fields (name, prep_time, difficulty, ...) are real columns so the
      filter/sort combinations of the list endpoint can use indexes
    - nutrition_facts / ingredients / instructions are ordered lists of small
      objects that are always read and written whole: JSON (JSONB on PostgreSQL)
    - image: public id + url of the optimized photo in the image store.
      Mandatory, a recipe is never written without one
    - creator_id: set at creation from the caller's identity, never changed

Indexes:
    - idx_recipes_search: GIN over a weighted tsvector of name (A), description
      (B) and cuisine (C). PostgreSQL only
    - idx_recipes_filter: (difficulty, prep_time, rating DESC) for the common
      "easy, under 30 minutes, best first" query
    - idx_recipes_creator: (creator_id, created_at DESC) for profile pages
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
    literal_column,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, composite, mapped_column, relationship

from recipeshare.database import Base
from recipeshare.models.image import ImageRef
from recipeshare.models.saved_recipe import saved_recipes

if TYPE_CHECKING:
    from recipeshare.models.user import User

DIFFICULTIES = ("easy", "medium", "hard")

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonList = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Recipe(Base):
    """
    A published recipe.

    Lifecycle:
        none → created → updated* → deleted
        Deletion removes every bookmark edge in the same transaction; the
        stored image is discarded after commit.
    """

    __tablename__ = "recipes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ── Descriptive Fields ────────────────────────────────────────────────
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    cuisine: Mapped[str] = mapped_column(String(100), nullable=False)

    # Minutes
    prep_time: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False)
    serving: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Engagement Counters ───────────────────────────────────────────────
    rating: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )
    reviews: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    comments: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    # ── Ordered Sub-Documents ─────────────────────────────────────────────
    # [{label, value}]
    nutrition_facts: Mapped[List[Dict[str, Any]]] = mapped_column(JsonList, nullable=False)
    # [{name, amount, unit}]
    ingredients: Mapped[List[Dict[str, Any]]] = mapped_column(JsonList, nullable=False)
    # [{step}]
    instructions: Mapped[List[Dict[str, Any]]] = mapped_column(JsonList, nullable=False)

    # ── Image ─────────────────────────────────────────────────────────────
    image: Mapped[ImageRef] = composite(
        mapped_column("image_public_id", String(255), nullable=False),
        mapped_column("image_url", String(1024), nullable=False),
    )

    # ── Ownership ─────────────────────────────────────────────────────────
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # ── Relationships ─────────────────────────────────────────────────────
    creator: Mapped["User"] = relationship(back_populates="recipes", lazy="raise")
    saved_by: Mapped[List["User"]] = relationship(
        secondary=saved_recipes,
        back_populates="saved_recipes",
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint(f"difficulty IN {DIFFICULTIES}", name="ck_recipes_difficulty"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_recipes_rating"),
        CheckConstraint("prep_time >= 1", name="ck_recipes_prep_time"),
        CheckConstraint("serving >= 1", name="ck_recipes_serving"),
        Index("idx_recipes_filter", "difficulty", "prep_time", rating.desc()),
        Index("idx_recipes_creator", "creator_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, name='{self.name}', creator_id={self.creator_id})>"


# ── Full-Text Search ──────────────────────────────────────────────────────
def search_vector(columns=None):
    """
    Weighted tsvector over name (A), description (B) and cuisine (C).

    The list query and the GIN index must use the identical expression for
    PostgreSQL to pick the index, so both are built here.
    """
    c = columns if columns is not None else Recipe.__table__.c
    english = literal_column("'english'")

    def weighted(column, weight: str):
        return func.setweight(
            func.to_tsvector(english, func.coalesce(column, literal_column("''"))),
            literal_column(f"'{weight}'"),
        )

    return (
        weighted(c.name, "A")
        .op("||")(weighted(c.description, "B"))
        .op("||")(weighted(c.cuisine, "C"))
    )


Index(
    "idx_recipes_search",
    search_vector(),
    postgresql_using="gin",
).ddl_if(dialect="postgresql")
