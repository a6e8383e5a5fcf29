"""
Recipe Share Backend — User Service
=====================================

Read-only views of users: public profiles, the admin user list, and the
recipes a user has shared or saved.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recipeshare.exceptions import AuthenticationError, NotFoundError
from recipeshare.models import Recipe, User, saved_recipes
from recipeshare.schemas.recipe import RecipeOut
from recipeshare.schemas.user import UserOut, UserProfile
from recipeshare.security import Identity
from recipeshare.services.recipe_service import populated_recipes

logger = logging.getLogger(__name__)


class UserService:

    async def get_profile(self, session: AsyncSession, username: str) -> UserProfile:
        """Public profile by handle. Raises NotFoundError."""
        user = await self._by_username(session, username)
        return UserProfile.model_validate(user)

    async def list_users(self, session: AsyncSession) -> List[UserOut]:
        """Every account, newest first. Admin only (enforced by the route)."""
        users = (
            await session.scalars(select(User).order_by(User.created_at.desc()))
        ).all()
        return [UserOut.model_validate(u) for u in users]

    async def shared_recipes(self, session: AsyncSession, username: str) -> List[RecipeOut]:
        """Recipes created by `username`, newest first. Raises NotFoundError."""
        user = await self._by_username(session, username)
        recipes = (
            await session.scalars(
                populated_recipes()
                .where(Recipe.creator_id == user.id)
                .order_by(Recipe.created_at.desc())
            )
        ).all()
        return [RecipeOut.model_validate(r) for r in recipes]

    async def saved_recipes(
        self, session: AsyncSession, identity: Optional[Identity]
    ) -> List[RecipeOut]:
        """Recipes the caller has saved, most recently saved first."""
        if identity is None:
            raise AuthenticationError("Unauthorized, user information not found")

        recipes = (
            await session.scalars(
                populated_recipes()
                .join(saved_recipes, saved_recipes.c.recipe_id == Recipe.id)
                .where(saved_recipes.c.user_id == identity.id)
                .order_by(saved_recipes.c.saved_at.desc(), Recipe.created_at.desc())
            )
        ).all()
        return [RecipeOut.model_validate(r) for r in recipes]

    @staticmethod
    async def _by_username(session: AsyncSession, username: str) -> User:
        user = await session.scalar(select(User).where(User.username == username))
        if user is None:
            raise NotFoundError("user", username)
        return user


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
