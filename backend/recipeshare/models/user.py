"""
Recipe Share Backend — User SQLAlchemy Model
==============================================

What:  ORM model representing the `users` table.
Who:   Written by AuthService at sign-up; read by the auth dependency,
       UserService and the recipe views (creator summary).

Table Design Rationale:
    - UUID primary key: non-sequential, safe to expose in URLs
    - username: the public handle, unique, assigned once at sign-up by the
      handle allocator and never changed afterwards
    - email: unique and stored lower-cased so lookups are case-insensitive
    - password_hash: bcrypt output only, the plain password is never stored
    - avatar / cover_photo: image references (public id + url), defaulted
      from configuration at sign-up
    - Saved recipes live in the `saved_recipes` association table, not in a
      column on this row (see models/saved_recipe.py)
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, DateTime, String, Uuid, text
from sqlalchemy.orm import Mapped, composite, mapped_column, relationship

from recipeshare.database import Base
from recipeshare.models.image import ImageRef
from recipeshare.models.saved_recipe import saved_recipes

if TYPE_CHECKING:
    from recipeshare.models.recipe import Recipe

ROLES = ("admin", "creator")
DEFAULT_BIO = "Hey there! I'm using Recipe Share."
DEFAULT_LOCATION = "Earth"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Created by sign-up with a freshly allocated handle
        2. Never hard-deleted
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(30), nullable=False)

    # ── Identity ──────────────────────────────────────────────────────────
    username: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        unique=True,
        comment="Public handle: sanitized name, optionally '.' + 6-char suffix",
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="creator",
        server_default=text("'creator'"),
    )

    # ── Profile ───────────────────────────────────────────────────────────
    bio: Mapped[str] = mapped_column(
        String(160), nullable=False, default=DEFAULT_BIO
    )
    location: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DEFAULT_LOCATION
    )

    avatar: Mapped[ImageRef] = composite(
        mapped_column("avatar_public_id", String(255), nullable=False, default=""),
        mapped_column("avatar_url", String(1024), nullable=False),
    )
    cover_photo: Mapped[ImageRef] = composite(
        mapped_column("cover_photo_public_id", String(255), nullable=False, default=""),
        mapped_column("cover_photo_url", String(1024), nullable=False),
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
    # lazy="raise": every query states what it needs; an accidental lazy load
    # in async code fails loudly instead of issuing hidden IO.
    saved_recipes: Mapped[List["Recipe"]] = relationship(
        secondary=saved_recipes,
        back_populates="saved_by",
        lazy="raise",
    )
    recipes: Mapped[List["Recipe"]] = relationship(
        back_populates="creator",
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint(f"role IN {ROLES}", name="ck_users_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"
