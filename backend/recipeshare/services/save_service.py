"""
Recipe Share Backend — Save-Toggle Service
============================================

What:  Bookmarks a recipe for the caller, or removes the bookmark if present.
How:   One transaction: verify the user, lock the recipe row, read who has
       saved it, then insert or delete the single `saved_recipes` edge and
       count the edges that remain.

Consistency:
    "Recipes saved by U" and "users who saved R" are both read from the same
    association rows, so one insert or delete updates both views at once.
    Concurrent toggles on the same recipe queue on the row lock; the
    composite primary key rejects a duplicate edge if two inserts still race
    (surfacing as DuplicateKeyError).
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from recipeshare.database import UnitOfWork, duplicate_field
from recipeshare.exceptions import (
    AuthenticationError,
    DuplicateKeyError,
    NotFoundError,
    SelfSaveError,
    ValidationError,
)
from recipeshare.models import Recipe, User, saved_recipes
from recipeshare.schemas.recipe import SaveToggleResult
from recipeshare.security import Identity

logger = logging.getLogger(__name__)


class SaveService:
    """Coordinates the save/unsave toggle."""

    async def toggle(
        self,
        uow: UnitOfWork,
        identity: Optional[Identity],
        recipe_id: Optional[uuid.UUID],
    ) -> SaveToggleResult:
        """
        Flips whether `identity` has saved `recipe_id`.

        Returns:
            SaveToggleResult(is_saved, save_count) as of the end of the transaction

        Raises:
            AuthenticationError: no caller
            ValidationError:     recipe id missing
            NotFoundError:       caller's account or the recipe does not exist
            SelfSaveError:       the caller created the recipe
            DuplicateKeyError:   a concurrent toggle inserted the same edge
        """
        if identity is None:
            raise AuthenticationError("Unauthorized, user information not found")
        if recipe_id is None:
            raise ValidationError("Recipe ID is required", field="recipeId")

        async def body(session: AsyncSession) -> SaveToggleResult:
            user_exists = await session.scalar(
                select(User.id).where(User.id == identity.id)
            )
            if user_exists is None:
                raise NotFoundError("user", str(identity.id))

            recipe = await session.scalar(
                select(Recipe).where(Recipe.id == recipe_id).with_for_update()
            )
            if recipe is None:
                raise NotFoundError("recipe", str(recipe_id))
            if recipe.creator_id == identity.id:
                raise SelfSaveError()

            saved_by = set(
                (await session.scalars(
                    select(saved_recipes.c.user_id).where(saved_recipes.c.recipe_id == recipe_id)
                )).all()
            )

            if identity.id in saved_by:
                await session.execute(
                    delete(saved_recipes).where(
                        saved_recipes.c.user_id == identity.id,
                        saved_recipes.c.recipe_id == recipe_id,
                    )
                )
                is_saved = False
            else:
                try:
                    await session.execute(
                        insert(saved_recipes).values(user_id=identity.id, recipe_id=recipe_id)
                    )
                except IntegrityError as exc:
                    raise DuplicateKeyError(field=duplicate_field(exc)) from exc
                is_saved = True

            save_count = await session.scalar(
                select(func.count())
                .select_from(saved_recipes)
                .where(saved_recipes.c.recipe_id == recipe_id)
            )
            return SaveToggleResult(is_saved=is_saved, save_count=save_count or 0)

        result = await uow.run(body)
        logger.info(
            "User %s %s recipe %s (now saved by %d)",
            identity.id,
            "saved" if result.is_saved else "unsaved",
            recipe_id,
            result.save_count,
        )
        return result


# ── Singleton Instance ────────────────────────────────────────────────────
save_service = SaveService()
