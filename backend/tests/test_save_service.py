"""
Recipe Share Backend — Save-Toggle Tests
==========================================

What we test:
    ✅ Toggle twice returns to the original state on both sides of the edge
    ✅ Save count reflects the end of the transaction
    ✅ Creators cannot save their own recipe
    ✅ Missing caller / recipe id / recipe are rejected
"""

import uuid

import pytest
from sqlalchemy import select

from recipeshare.exceptions import (
    AuthenticationError,
    NotFoundError,
    SelfSaveError,
    ValidationError,
)
from recipeshare.models import saved_recipes
from recipeshare.security import Identity
from recipeshare.services.save_service import SaveService


async def edges(session_factory):
    async with session_factory() as session:
        rows = await session.execute(select(saved_recipes.c.user_id, saved_recipes.c.recipe_id))
        return set(rows.all())


class TestToggle:

    def setup_method(self):
        self.service = SaveService()

    @pytest.mark.asyncio
    async def test_save_then_unsave(self, uow, make_user, make_recipe, identity_of, session_factory):
        ada = await make_user()
        grace = await make_user("Grace Hopper")
        recipe = await make_recipe(ada)

        saved = await self.service.toggle(uow, identity_of(grace), recipe.id)

        assert saved.is_saved is True
        assert saved.save_count == 1
        assert await edges(session_factory) == {(grace.id, recipe.id)}

        unsaved = await self.service.toggle(uow, identity_of(grace), recipe.id)

        assert unsaved.is_saved is False
        assert unsaved.save_count == 0
        assert await edges(session_factory) == set()

    @pytest.mark.asyncio
    async def test_count_includes_other_savers(self, uow, make_user, make_recipe, identity_of):
        ada = await make_user()
        recipe = await make_recipe(ada)
        savers = [await make_user(f"Saver {i}") for i in range(3)]

        results = [await self.service.toggle(uow, identity_of(u), recipe.id) for u in savers]

        assert [r.save_count for r in results] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_saved_recipe_visible_from_both_sides(
        self, uow, make_user, make_recipe, identity_of, db_session, recipe_service
    ):
        from recipeshare.services.user_service import UserService

        ada = await make_user()
        grace = await make_user("Grace Hopper")
        recipe = await make_recipe(ada)

        await self.service.toggle(uow, identity_of(grace), recipe.id)

        fetched = await recipe_service.get_recipe(db_session, recipe.id)
        assert fetched.saved_by == [grace.id]
        saved = await UserService().saved_recipes(db_session, identity_of(grace))
        assert [r.id for r in saved] == [recipe.id]

    @pytest.mark.asyncio
    async def test_self_save_rejected(self, uow, make_user, make_recipe, identity_of, session_factory):
        ada = await make_user()
        recipe = await make_recipe(ada)

        with pytest.raises(SelfSaveError) as exc_info:
            await self.service.toggle(uow, identity_of(ada), recipe.id)

        assert exc_info.value.message == "You cannot save your own recipe"
        assert exc_info.value.status_code == 400
        assert await edges(session_factory) == set()

    @pytest.mark.asyncio
    async def test_missing_caller(self, uow):
        with pytest.raises(AuthenticationError):
            await self.service.toggle(uow, None, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_missing_recipe_id(self, uow, make_user, identity_of):
        grace = await make_user()

        with pytest.raises(ValidationError, match="Recipe ID is required"):
            await self.service.toggle(uow, identity_of(grace), None)

    @pytest.mark.asyncio
    async def test_unknown_recipe(self, uow, make_user, identity_of):
        grace = await make_user()

        with pytest.raises(NotFoundError, match="Recipe not found"):
            await self.service.toggle(uow, identity_of(grace), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_unknown_user(self, uow, make_user, make_recipe):
        ada = await make_user()
        recipe = await make_recipe(ada)

        with pytest.raises(NotFoundError, match="User not found"):
            await self.service.toggle(uow, Identity(id=uuid.uuid4()), recipe.id)
