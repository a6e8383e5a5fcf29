"""
Recipe Share Backend — Stored Media Route
===========================================

What:  Serves images written by LocalImageStore at GET /media/{path}.
Security:
    - The path is resolved against STORAGE_ROOT and rejected if it escapes it
    - Only files that exist are served; everything else is a 404
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from recipeshare.exceptions import NotFoundError, ValidationError
from recipeshare.services.image_store import MEDIA_PREFIX, LocalImageStore, get_image_store

router = APIRouter(prefix=MEDIA_PREFIX, tags=["Media"])


@router.get("/{file_path:path}", summary="Serve a stored image")
async def serve_media(
    file_path: str,
    store: LocalImageStore = Depends(get_image_store),
) -> FileResponse:
    full_path = store.resolve(file_path)
    if full_path is None:
        raise ValidationError(message="Invalid file path")
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
