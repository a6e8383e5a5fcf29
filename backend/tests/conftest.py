"""
Recipe Share Backend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own SQLite database file (aiosqlite), created from
       the ORM metadata. The image store is an AsyncMock so no test touches
       a real storage backend unless it asks for LocalImageStore itself.

Fixture Hierarchy:
    engine → session_factory → uow / db_session
                             → make_user / make_recipe
    fake_store → cleanup → recipe_service
    client: HTTPX AsyncClient against create_app() with the DB, unit of work
            and recipe service overridden
"""

import io
import itertools
import os
import tempfile

# Override settings for testing BEFORE any app imports
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-that-is-long-enough-for-hs256-signing"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="recipeshare_test_")
os.environ["RATE_LIMIT_CAPACITY"] = "100000"
os.environ["CLEANUP_RETRY_MIN_WAIT"] = "0"
os.environ["CLEANUP_RETRY_MAX_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, Dict
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from recipeshare.database import Base, UnitOfWork, get_db_session, get_unit_of_work
from recipeshare.models import ImageRef, Recipe, User
from recipeshare.security import Identity, issue_token
from recipeshare.services.image_cleanup import ImageCleanup
from recipeshare.services.image_service import ImagePayload, ImageService
from recipeshare.services.image_store import ImageStore, StoredImage
from recipeshare.services.recipe_service import RecipeService


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'recipeshare.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def uow(session_factory):
    return UnitOfWork(session_factory)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def identity_of():
    """Identity for a stored user, as the auth dependency would build it."""

    def _identity(user: User) -> Identity:
        return Identity(id=user.id, role=user.role)

    return _identity


@pytest.fixture
def auth_header():
    """Bearer header for a stored user."""

    def _header(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user.id, user.role)}"}

    return _header


@pytest.fixture
def make_user(session_factory):
    """
    Inserts a user and returns it (attributes stay loaded after commit).

    Usage:
        ada = await make_user("Ada Lovelace", role="admin")
    """

    async def _make(name: str = "Ada Lovelace", role: str = "creator", **overrides) -> User:
        tag = uuid4().hex[:8]
        user = User(
            name=name,
            username=overrides.pop("username", f"user{tag}"),
            email=overrides.pop("email", f"{tag}@example.com"),
            password_hash=overrides.pop("password_hash", "not-a-bcrypt-hash"),
            role=role,
            avatar=ImageRef(public_id="", url="https://img.test/avatar.png"),
            cover_photo=ImageRef(public_id="", url="https://img.test/cover.png"),
            **overrides,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_recipe(session_factory):
    """Inserts a recipe created by `creator` and returns it."""

    async def _make(creator: User, **overrides) -> Recipe:
        tag = uuid4().hex
        values: Dict[str, Any] = {
            "name": "Tomato Soup",
            "description": "A weeknight classic",
            "prep_time": 20,
            "difficulty": "easy",
            "serving": 2,
            "cuisine": "Italian",
            "nutrition_facts": [{"label": "Calories", "value": "180"}],
            "ingredients": [{"name": "Tomatoes", "amount": "6", "unit": "pcs"}],
            "instructions": [{"step": "Roast the tomatoes"}, {"step": "Blend"}],
        }
        values.update(overrides)
        recipe = Recipe(
            **values,
            image=ImageRef(
                public_id=f"recipe-share/recipe-images/{tag}",
                url=f"https://cdn.test/recipe-share/recipe-images/{tag}.webp",
            ),
            creator_id=creator.id,
        )
        async with session_factory() as session:
            session.add(recipe)
            await session.commit()
        return recipe

    return _make


@pytest.fixture
def recipe_fields() -> Dict[str, Any]:
    """A complete recipe as a client sends it (wire names, arrays decoded)."""
    return {
        "name": "Shakshuka",
        "desc": "Eggs poached in a spiced tomato and pepper sauce",
        "prepTime": 25,
        "difficulty": "easy",
        "serving": 2,
        "cuisine": "Middle Eastern",
        "nutritionFacts": [{"label": "Calories", "value": "320"}],
        "ingredients": [
            {"name": "Eggs", "amount": 4, "unit": "pcs"},
            {"name": "Crushed tomatoes", "amount": "400", "unit": "g"},
        ],
        "instructions": [{"step": "Simmer the sauce"}, {"step": "Crack in the eggs"}],
    }


# ══════════════════════════════════════════════════════════════════════════
# Images
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def png_bytes() -> bytes:
    """A real 64x48 PNG, decodable by Pillow."""
    out = io.BytesIO()
    Image.new("RGB", (64, 48), color=(200, 40, 40)).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def image_payload(png_bytes) -> ImagePayload:
    return ImagePayload(filename="dish.png", content=png_bytes, content_type="image/png")


@pytest.fixture
def fake_store():
    """
    AsyncMock image store. Every upload returns a fresh public id:
    "<folder>/img1", "<folder>/img2", ...
    """
    store = AsyncMock(spec=ImageStore)
    counter = itertools.count(1)

    async def upload(data, folder, transform=None):
        n = next(counter)
        return StoredImage(
            public_id=f"{folder}/img{n}",
            url=f"https://cdn.test/{folder}/img{n}.webp",
        )

    store.upload.side_effect = upload
    store.delete.return_value = None
    store.is_available.return_value = True
    return store


@pytest.fixture
def cleanup(fake_store):
    return ImageCleanup(fake_store, attempts=3, min_wait=0, max_wait=0)


@pytest.fixture
def recipe_service(fake_store, cleanup):
    return RecipeService(ImageService(), fake_store, cleanup)


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def client(session_factory, uow, recipe_service):
    """
    HTTPX AsyncClient talking to a fresh app through ASGITransport.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
    """
    from recipeshare.deps import get_recipe_service
    from recipeshare.main import create_app

    app = create_app()

    async def test_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = test_session
    app.dependency_overrides[get_unit_of_work] = lambda: uow
    app.dependency_overrides[get_recipe_service] = lambda: recipe_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
