"""
Recipe Share Backend — Image Store
====================================

What:  Where optimized recipe images live once uploaded.
Why an interface: the recipe workflow only needs "upload these bytes with
       this transform, give me a public id and URL" and "delete this public
       id". Tests swap in a mock, production could swap in an object store
       without touching RecipeService.
How:   LocalImageStore renders the requested transform with Pillow and writes
       the result under STORAGE_ROOT with aiofiles. Files are served back by
       the /media route.

Public ids:
    "<folder>/<uuid hex>", e.g. "recipe-share/recipe-images/3f2c...".
    The stored file is "<STORAGE_ROOT>/<public id>.<format>", its URL
    "<PUBLIC_BASE_URL>/media/<public id>.<format>".
"""

import asyncio
import dataclasses
import io
import logging
import uuid
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

import aiofiles
import aiofiles.os
from PIL import Image, UnidentifiedImageError

from recipeshare.config import settings
from recipeshare.exceptions import FileStorageError, UploadError

logger = logging.getLogger(__name__)

RECIPE_IMAGE_FOLDER = "recipe-share/recipe-images"
MEDIA_PREFIX = "/media"

# Quality used when a transform asks for "auto"
AUTO_QUALITY = 75


@dataclasses.dataclass(frozen=True)
class ImageTransform:
    """
    Server-side transform applied while storing an image.

    crop="limit" shrinks to fit inside width×height and never enlarges.
    """

    width: int = 800
    height: int = 600
    crop: str = "limit"
    quality: Union[str, int] = "auto"
    format: str = "webp"


RECIPE_IMAGE_TRANSFORM = ImageTransform()


@dataclasses.dataclass(frozen=True)
class StoredImage:
    public_id: str
    url: str


class ImageStore(ABC):
    """
    Abstract interface for image storage.

    Implementations:
    - LocalImageStore: files under STORAGE_ROOT, served by /media
    """

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        folder: str,
        transform: Optional[ImageTransform] = None,
    ) -> StoredImage:
        """
        Stores `data` in `folder`, applying `transform` first.

        Raises:
            UploadError: nothing was stored
        """

    @abstractmethod
    async def delete(self, public_id: str) -> None:
        """
        Removes a stored image. Deleting an unknown id is not an error.

        Raises:
            FileStorageError: the image exists but could not be removed
        """

    async def is_available(self) -> bool:
        return True


class LocalImageStore(ImageStore):
    """
    Stores images on the local filesystem.

    Args:
        root:     Override settings.storage_root (used in tests)
        base_url: Override settings.public_base_url
    """

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.storage_root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = (base_url or settings.public_base_url).rstrip("/")
        logger.info("LocalImageStore initialized with root=%s", self.root)

    # ── Paths ─────────────────────────────────────────────────────────────

    def resolve(self, relative: str) -> Optional[Path]:
        """
        Absolute path of `relative` under the root, or None if it escapes
        the root (path traversal).
        """
        candidate = (self.root / relative).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            return None
        return candidate

    def url_for(self, public_id: str, fmt: str) -> str:
        return f"{self.base_url}{MEDIA_PREFIX}/{public_id}.{fmt}"

    def _find(self, public_id: str) -> Optional[Path]:
        base = self.resolve(public_id)
        if base is None:
            raise FileStorageError(
                "Invalid image id",
                context={"public_id": public_id},
            )
        for path in base.parent.glob(f"{base.name}.*"):
            return path
        return None

    # ── Operations ────────────────────────────────────────────────────────

    async def upload(
        self,
        data: bytes,
        folder: str,
        transform: Optional[ImageTransform] = None,
    ) -> StoredImage:
        transform = transform or ImageTransform()
        rendered = await asyncio.to_thread(self._render, data, transform)

        public_id = f"{folder.strip('/')}/{uuid.uuid4().hex}"
        fmt = transform.format.lower()
        path = self.resolve(f"{public_id}.{fmt}")
        if path is None:
            raise UploadError(context={"folder": folder})

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(rendered)
        except OSError as e:
            logger.error("Failed to store image at %s: %s", path, e)
            raise UploadError(context={"public_id": public_id, "os_error": str(e)}) from e

        logger.info("Image stored: %s (%d bytes)", public_id, len(rendered))
        return StoredImage(public_id=public_id, url=self.url_for(public_id, fmt))

    async def delete(self, public_id: str) -> None:
        path = self._find(public_id)
        if path is None:
            logger.debug("Delete: image already gone: %s", public_id)
            return
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise FileStorageError(
                "Failed to delete stored image",
                context={"public_id": public_id, "os_error": str(e)},
            ) from e
        logger.info("Image deleted: %s", public_id)

    async def is_available(self) -> bool:
        return self.root.is_dir()

    @staticmethod
    def _render(data: bytes, transform: ImageTransform) -> bytes:
        quality = AUTO_QUALITY if transform.quality == "auto" else int(transform.quality)
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.load()
                if transform.crop == "limit":
                    image.thumbnail((transform.width, transform.height))
                else:
                    image = image.resize((transform.width, transform.height))
                out = io.BytesIO()
                image.save(out, format=transform.format.upper(), quality=quality)
                return out.getvalue()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise UploadError(
                "Failed to upload image",
                context={"error_type": type(e).__name__},
            ) from e


# ── Provider ──────────────────────────────────────────────────────────────
@lru_cache
def get_image_store() -> ImageStore:
    """The process-wide image store, created on first use rather than at import."""
    return LocalImageStore()
