"""
Recipe Share Backend — Image Pipeline Tests
=============================================

What we test:
    ✅ ImageService: size limits, format allow-list, WebP output, downscaling
    ✅ LocalImageStore: upload under folder, transform applied, delete, traversal
    ✅ ImageCleanup: retries, never raises, skips empty ids
    ✅ get_image_store: built lazily on first use, then reused
"""

import io
import warnings
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from recipeshare.config import settings
from recipeshare.exceptions import FileStorageError, ImageProcessingError, ValidationError
from recipeshare.services.image_cleanup import ImageCleanup
from recipeshare.services.image_service import ImagePayload, ImageService
from recipeshare.services.image_store import (
    RECIPE_IMAGE_FOLDER,
    ImageStore,
    ImageTransform,
    LocalImageStore,
    get_image_store,
)


def encode(size=(64, 48), fmt="PNG", mode="RGB") -> bytes:
    out = io.BytesIO()
    Image.new(mode, size, color=0).save(out, format=fmt)
    return out.getvalue()


class TestImageService:

    def setup_method(self):
        self.service = ImageService(max_file_size=1024 * 1024)

    def test_empty_upload_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            self.service.validate_size(ImagePayload("a.png", b""))

    def test_oversized_upload_rejected(self):
        payload = ImagePayload("a.png", b"x" * (1024 * 1024 + 1))

        with pytest.raises(ValidationError) as exc_info:
            self.service.validate_size(payload)

        assert exc_info.value.field == "image"

    @pytest.mark.asyncio
    async def test_optimize_produces_webp(self, png_bytes):
        optimized = await self.service.optimize(ImagePayload("dish.png", png_bytes))

        with Image.open(io.BytesIO(optimized)) as image:
            assert image.format == "WEBP"
            assert image.size == (64, 48)

    @pytest.mark.asyncio
    async def test_large_image_is_downscaled(self):
        content = encode(size=(2400, 1200), fmt="JPEG")

        optimized = await self.service.optimize(ImagePayload("big.jpg", content))

        with Image.open(io.BytesIO(optimized)) as image:
            assert image.size == (1200, 600)

    @pytest.mark.asyncio
    async def test_palette_image_is_converted(self):
        content = encode(fmt="GIF", mode="P")

        optimized = await self.service.optimize(ImagePayload("anim.gif", content))

        with Image.open(io.BytesIO(optimized)) as image:
            assert image.format == "WEBP"

    @pytest.mark.asyncio
    async def test_unsupported_format_rejected(self):
        content = encode(fmt="BMP")

        with pytest.raises(ImageProcessingError, match="Unsupported image format"):
            await self.service.optimize(ImagePayload("old.bmp", content))

    @pytest.mark.asyncio
    async def test_garbage_rejected(self):
        with pytest.raises(ImageProcessingError):
            await self.service.optimize(ImagePayload("fake.jpg", b"definitely not an image"))


class TestLocalImageStore:

    @pytest.mark.asyncio
    async def test_upload_writes_transformed_webp(self, tmp_path):
        store = LocalImageStore(root=str(tmp_path), base_url="http://cdn.test/")
        content = encode(size=(1600, 1200))

        stored = await store.upload(content, RECIPE_IMAGE_FOLDER, ImageTransform())

        assert stored.public_id.startswith(f"{RECIPE_IMAGE_FOLDER}/")
        assert stored.url == f"http://cdn.test/media/{stored.public_id}.webp"
        path = tmp_path / f"{stored.public_id}.webp"
        with Image.open(path) as image:
            assert image.format == "WEBP"
            # crop="limit": fit inside 800x600
            assert image.size == (800, 600)

    @pytest.mark.asyncio
    async def test_small_image_is_not_enlarged(self, tmp_path):
        store = LocalImageStore(root=str(tmp_path))

        stored = await store.upload(encode(size=(100, 50)), "f", ImageTransform())

        with Image.open(tmp_path / f"{stored.public_id}.webp") as image:
            assert image.size == (100, 50)

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, tmp_path, png_bytes):
        store = LocalImageStore(root=str(tmp_path))
        stored = await store.upload(png_bytes, "f")

        await store.delete(stored.public_id)

        assert not (tmp_path / f"{stored.public_id}.webp").exists()

    @pytest.mark.asyncio
    async def test_delete_unknown_id_is_fine(self, tmp_path):
        store = LocalImageStore(root=str(tmp_path))
        await store.delete("f/does-not-exist")

    @pytest.mark.asyncio
    async def test_delete_outside_root_rejected(self, tmp_path):
        store = LocalImageStore(root=str(tmp_path / "images"))

        with pytest.raises(FileStorageError):
            await store.delete("../../etc/passwd")

    def test_resolve_blocks_traversal(self, tmp_path):
        store = LocalImageStore(root=str(tmp_path))

        assert store.resolve("f/a.webp") == (tmp_path / "f" / "a.webp").resolve()
        assert store.resolve("../outside.webp") is None


class TestImageCleanup:

    def make_store(self, *side_effects):
        store = AsyncMock(spec=ImageStore)
        store.delete.side_effect = list(side_effects)
        return store

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        store = self.make_store(None)
        cleanup = ImageCleanup(store, attempts=3, min_wait=0, max_wait=0)

        assert await cleanup.discard("f/img1") is True
        store.delete.assert_awaited_once_with("f/img1")

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        store = self.make_store(FileStorageError("flaky"), None)
        cleanup = ImageCleanup(store, attempts=3, min_wait=0, max_wait=0)

        assert await cleanup.discard("f/img1") is True
        assert store.delete.await_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_returns_false(self, caplog):
        store = self.make_store(*[FileStorageError("down")] * 3)
        cleanup = ImageCleanup(store, attempts=3, min_wait=0, max_wait=0)

        assert await cleanup.discard("f/img1") is False
        assert store.delete.await_count == 3
        assert any(
            getattr(r, "event", None) == "image_cleanup_failed" for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_empty_public_id_skipped(self):
        store = self.make_store()
        cleanup = ImageCleanup(store, attempts=3, min_wait=0, max_wait=0)

        assert await cleanup.discard("") is True
        store.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backoff_emits_no_deprecation_warning(self):
        store = self.make_store(FileStorageError("flaky"), FileStorageError("flaky"), None)
        cleanup = ImageCleanup(store, attempts=3, min_wait=0, max_wait=0)

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            assert await cleanup.discard("f/img1") is True

        assert store.delete.await_count == 3


class TestImageStoreProvider:

    @pytest.fixture
    def fresh_provider(self):
        get_image_store.cache_clear()
        yield
        get_image_store.cache_clear()

    def test_store_is_built_on_first_use(self, fresh_provider, tmp_path, monkeypatch):
        root = tmp_path / "media-root"
        monkeypatch.setattr(settings, "storage_root", str(root))
        assert not root.exists()

        store = get_image_store()

        assert isinstance(store, LocalImageStore)
        assert root.is_dir()
        assert get_image_store() is store
