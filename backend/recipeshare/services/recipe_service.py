"""
Recipe Share Backend — Recipe Lifecycle Service
=================================================

What:  Create, update, delete, fetch and list recipes.
Why:   This is where the database transaction and the image side effect
       meet. Every write runs inside one UnitOfWork; the image upload and the
       cleanup of images no longer referenced are sequenced around it so that
       a failure never leaves a recipe pointing at a missing image.
Who:   Called by routes/recipes.py and (read helpers) by UserService.

Workflows:
    create:  validate draft → optimize → upload → [insert → re-read]
    update:  [lock → authorize → merge + validate draft → optimize → upload
              → single UPDATE → re-read] → discard previous image
    delete:  [lock → authorize → remove bookmarks → delete row]
             → discard image
    ([...] = one transaction)

Failure Handling:
    - Validation and image errors raise before any row is written
    - A failed transaction rolls back every row change
    - An upload that succeeded before its transaction failed is orphaned and
      logged (event=image_orphaned); nothing deletes it automatically
    - Image discards after commit are best-effort (see ImageCleanup)
"""

import logging
import math
import uuid
from typing import Any, Callable, List, Mapping, Optional

from sqlalchemy import Select, delete, func, literal_column, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from recipeshare.database import UnitOfWork, flush_changes
from recipeshare.exceptions import (
    AuthenticationError,
    AuthorizationError,
    FileStorageError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from recipeshare.models import ImageRef, Recipe, saved_recipes, search_vector
from recipeshare.schemas.recipe import (
    RecipeChanges,
    RecipeDraft,
    RecipeFilters,
    RecipeOut,
    RecipePage,
)
from recipeshare.security import Identity
from recipeshare.services.image_cleanup import ImageCleanup
from recipeshare.services.image_service import ImagePayload, ImageService
from recipeshare.services.image_store import (
    RECIPE_IMAGE_FOLDER,
    RECIPE_IMAGE_TRANSFORM,
    ImageStore,
    StoredImage,
)
from recipeshare.services.validation import build

logger = logging.getLogger(__name__)

# Schedules a coroutine function to run after the response, e.g.
# BackgroundTasks.add_task. None means "await it inline".
Defer = Optional[Callable[..., Any]]

# ts_rank weights in {D, C, B, A} order: cuisine 1, description 2, name 3
RANK_WEIGHTS = literal_column("'{0.1, 0.33, 0.67, 1.0}'")


def populated_recipes() -> Select:
    """SELECT of recipes with creator and saved-by users loaded."""
    return (
        select(Recipe)
        .options(selectinload(Recipe.creator), selectinload(Recipe.saved_by))
        .execution_options(populate_existing=True)
    )


async def load_recipe_out(session: AsyncSession, recipe_id: uuid.UUID) -> RecipeOut:
    """
    Reads one recipe with creator and saved-by populated.

    Raises:
        NotFoundError: no recipe with that id
    """
    result = await session.execute(populated_recipes().where(Recipe.id == recipe_id))
    recipe = result.scalar_one_or_none()
    if recipe is None:
        raise NotFoundError("recipe", str(recipe_id))
    return RecipeOut.model_validate(recipe)


class RecipeService:
    """
    Orchestrates the recipe lifecycle.

    Args:
        images:  Optimizes uploads before storage
        store:   Receives optimized images
        cleanup: Discards images no longer referenced
    """

    def __init__(self, images: ImageService, store: ImageStore, cleanup: ImageCleanup):
        self.images = images
        self.store = store
        self.cleanup = cleanup

    # ══════════════════════════════════════════════════════════════════════
    # Writes
    # ══════════════════════════════════════════════════════════════════════

    async def create_recipe(
        self,
        uow: UnitOfWork,
        identity: Optional[Identity],
        fields: Mapping[str, Any],
        image: Optional[ImagePayload],
    ) -> RecipeOut:
        """
        Creates a recipe owned by `identity`.

        Args:
            uow:      Transaction runner
            identity: The caller; None means unauthenticated
            fields:   Recipe fields by wire or Python name, arrays already decoded
            image:    The uploaded photo

        Returns:
            The new recipe, creator populated

        Raises:
            AuthenticationError:  no caller
            ValidationError:      missing/invalid fields, empty arrays, no image
            ImageProcessingError: image could not be optimized
            UploadError:          image store rejected the upload
        """
        if identity is None:
            raise AuthenticationError("Unauthorized, user information not found")

        draft = build(RecipeDraft, fields)
        if image is None:
            raise ValidationError("Recipe image is required", field="image")

        stored = await self._store(image)

        async def body(session: AsyncSession) -> RecipeOut:
            recipe = Recipe(
                **draft.columns(),
                image=ImageRef(public_id=stored.public_id, url=stored.url),
                creator_id=identity.id,
            )
            session.add(recipe)
            await flush_changes(session)
            return await load_recipe_out(session, recipe.id)

        created = await self._run_with_upload(uow, body, stored)
        logger.info("Recipe %s created by %s", created.id, identity.id)
        return created

    async def update_recipe(
        self,
        uow: UnitOfWork,
        identity: Optional[Identity],
        recipe_id: uuid.UUID,
        fields: Mapping[str, Any],
        image: Optional[ImagePayload] = None,
        defer: Defer = None,
    ) -> RecipeOut:
        """
        Applies `fields` (and optionally a new image) to a recipe.

        Absent fields keep their values. The merged recipe is validated as a
        whole and written with a single UPDATE, so a failure at any step
        leaves the stored recipe untouched. The replaced image is discarded
        after commit.

        Raises:
            AuthenticationError: no caller
            NotFoundError:       no such recipe
            AuthorizationError:  caller is neither creator nor admin
            ValidationError:     invalid or empty fields
            ImageProcessingError / UploadError: new image rejected
        """
        if identity is None:
            raise AuthenticationError("Unauthorized, user information not found")

        uploaded: List[StoredImage] = []
        replaced: List[str] = []

        async def body(session: AsyncSession) -> RecipeOut:
            recipe = await self._lock(session, recipe_id)
            self._authorize(identity, recipe, "update")

            changes = build(RecipeChanges, fields)
            draft = build(RecipeDraft, {**_current_values(recipe), **changes.supplied()})
            values = draft.columns()

            if image is not None:
                stored = await self._store(image)
                uploaded.append(stored)
                replaced.append(recipe.image.public_id)
                values.update(image_public_id=stored.public_id, image_url=stored.url)

            table = Recipe.__table__
            await session.execute(
                update(table).where(table.c.id == recipe.id).values(**values)
            )
            return await load_recipe_out(session, recipe.id)

        try:
            updated = await uow.run(body)
        except Exception:
            for stored in uploaded:
                _log_orphan(stored, recipe_id)
            raise

        for public_id in replaced:
            await self._after_commit(defer, public_id)

        logger.info("Recipe %s updated by %s", recipe_id, identity.id)
        return updated

    async def delete_recipe(
        self,
        uow: UnitOfWork,
        identity: Optional[Identity],
        recipe_id: uuid.UUID,
        defer: Defer = None,
    ) -> None:
        """
        Deletes a recipe and every bookmark of it in one transaction, then
        discards its image.

        Raises:
            AuthenticationError: no caller
            NotFoundError:       no such recipe
            AuthorizationError:  caller is neither creator nor admin
        """
        if identity is None:
            raise AuthenticationError("Unauthorized, user information not found")

        async def body(session: AsyncSession) -> str:
            recipe = await self._lock(session, recipe_id)
            self._authorize(identity, recipe, "delete")
            public_id = recipe.image.public_id

            removed = await session.execute(
                delete(saved_recipes).where(saved_recipes.c.recipe_id == recipe.id)
            )
            await session.execute(delete(Recipe).where(Recipe.id == recipe.id))
            logger.debug("Removed %d bookmarks of recipe %s", removed.rowcount, recipe.id)
            return public_id

        public_id = await uow.run(body)
        logger.info("Recipe %s deleted by %s", recipe_id, identity.id)
        await self._after_commit(defer, public_id)

    # ══════════════════════════════════════════════════════════════════════
    # Reads
    # ══════════════════════════════════════════════════════════════════════

    async def get_recipe(self, session: AsyncSession, recipe_id: uuid.UUID) -> RecipeOut:
        """Raises NotFoundError when the recipe does not exist."""
        return await load_recipe_out(session, recipe_id)

    async def list_recipes(self, session: AsyncSession, filters: RecipeFilters) -> RecipePage:
        """
        One page of recipes matching every supplied filter.

        search:    full-text match on name, description and cuisine
                   (weighted tsvector on PostgreSQL, substring elsewhere)
        cuisine:   case-insensitive substring
        maxPrep / minRating: inclusive bounds
        sort:      newest (default), oldest, rating, prepTime, relevance
        """
        conditions = []
        rank = None

        if filters.search:
            if session.get_bind().dialect.name == "postgresql":
                query = func.plainto_tsquery(literal_column("'english'"), filters.search)
                vector = search_vector()
                conditions.append(vector.op("@@")(query))
                rank = func.ts_rank(RANK_WEIGHTS, vector, query)
            else:
                pattern = _like_pattern(filters.search)
                conditions.append(or_(
                    Recipe.name.ilike(pattern, escape="\\"),
                    Recipe.description.ilike(pattern, escape="\\"),
                    Recipe.cuisine.ilike(pattern, escape="\\"),
                ))
        if filters.difficulty:
            conditions.append(Recipe.difficulty == filters.difficulty)
        if filters.cuisine:
            conditions.append(Recipe.cuisine.ilike(_like_pattern(filters.cuisine), escape="\\"))
        if filters.max_prep is not None:
            conditions.append(Recipe.prep_time <= filters.max_prep)
        if filters.min_rating is not None:
            conditions.append(Recipe.rating >= filters.min_rating)

        total = (
            await session.execute(
                select(func.count()).select_from(Recipe).where(*conditions)
            )
        ).scalar_one()

        stmt = (
            populated_recipes()
            .where(*conditions)
            .order_by(*_ordering(filters.sort, rank))
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        recipes = (await session.execute(stmt)).scalars().all()

        return RecipePage(
            recipes=[RecipeOut.model_validate(r) for r in recipes],
            page=filters.page,
            pages=math.ceil(total / filters.limit),
            total=total,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Internals
    # ══════════════════════════════════════════════════════════════════════

    async def _store(self, image: ImagePayload) -> StoredImage:
        """Optimizes and uploads `image` with the recipe transform."""
        optimized = await self.images.optimize(image)
        try:
            return await self.store.upload(optimized, RECIPE_IMAGE_FOLDER, RECIPE_IMAGE_TRANSFORM)
        except FileStorageError:
            raise
        except Exception as e:
            logger.error("Image upload failed: %s", e, exc_info=True)
            raise UploadError(context={"error_type": type(e).__name__}) from e

    async def _run_with_upload(self, uow: UnitOfWork, body, stored: StoredImage):
        try:
            return await uow.run(body)
        except Exception:
            _log_orphan(stored, None)
            raise

    async def _lock(self, session: AsyncSession, recipe_id: uuid.UUID) -> Recipe:
        """Loads a recipe with a row lock held until the transaction ends."""
        result = await session.execute(
            select(Recipe).where(Recipe.id == recipe_id).with_for_update()
        )
        recipe = result.scalar_one_or_none()
        if recipe is None:
            raise NotFoundError("recipe", str(recipe_id))
        return recipe

    @staticmethod
    def _authorize(identity: Identity, recipe: Recipe, action: str) -> None:
        if recipe.creator_id != identity.id and not identity.is_admin:
            raise AuthorizationError(
                f"You are not authorized to {action} this recipe",
                context={"recipe_id": str(recipe.id)},
            )

    async def _after_commit(self, defer: Defer, public_id: str) -> None:
        if defer is not None:
            defer(self.cleanup.discard, public_id)
        else:
            await self.cleanup.discard(public_id)


def _current_values(recipe: Recipe) -> dict:
    return {
        "name": recipe.name,
        "description": recipe.description,
        "prep_time": recipe.prep_time,
        "difficulty": recipe.difficulty,
        "serving": recipe.serving,
        "cuisine": recipe.cuisine,
        "nutrition_facts": recipe.nutrition_facts,
        "ingredients": recipe.ingredients,
        "instructions": recipe.instructions,
    }


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _ordering(sort: str, rank):
    if sort == "oldest":
        return (Recipe.created_at.asc(), Recipe.id.asc())
    if sort == "rating":
        return (Recipe.rating.desc(), Recipe.created_at.desc())
    if sort == "prepTime":
        return (Recipe.prep_time.asc(), Recipe.created_at.desc())
    if sort == "relevance" and rank is not None:
        return (rank.desc(), Recipe.created_at.desc())
    return (Recipe.created_at.desc(), Recipe.id.desc())


def _log_orphan(stored: StoredImage, recipe_id: Optional[uuid.UUID]) -> None:
    logger.warning(
        "Transaction failed after upload; image %s is orphaned",
        stored.public_id,
        extra={
            "event": "image_orphaned",
            "public_id": stored.public_id,
            "recipe_id": str(recipe_id) if recipe_id else None,
        },
    )
