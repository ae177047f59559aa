"""
Gallery browsing endpoints: list, fetch and delete media.

Each handler is a single storage call reshaped for the browser. There is
no cache or index; the bucket is the gallery.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ...core.gallery import MediaItem, infer_media_kind, sort_newest_first
from ...infrastructure.storage.client import ObjectNotFoundError, StorageError
from ..dependencies import SettingsDep, StorageClientDep
from ..errors import NotFound, StorageOperationFailed, ValidationFailed

logger = logging.getLogger(__name__)

router = APIRouter()

# characters encodeURIComponent leaves alone, on top of quote's defaults
DISPOSITION_SAFE_CHARS = "!~*()'"


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class MediaItemResponse(BaseModel):
    """One gallery entry as the browser sees it."""
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(description="Storage key, also the download path")
    size: int = Field(description="Object size in bytes")
    last_modified: Optional[str] = Field(
        None,
        alias="lastModified",
        description="Last modification time (ISO format), if the store reported one",
    )
    kind: str = Field(description="image or video, inferred from the key")

    @classmethod
    def from_item(cls, item: MediaItem) -> "MediaItemResponse":
        return cls(
            key=item.key,
            size=item.size,
            last_modified=item.last_modified_iso,
            kind=item.kind.value,
        )


class MediaListResponse(BaseModel):
    images: list[MediaItemResponse] = Field(description="Gallery items, newest first")


class DeleteResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/images",
    response_model=MediaListResponse,
    status_code=status.HTTP_200_OK,
    summary="List gallery media",
)
async def list_images(
    storage: StorageClientDep,
    settings: SettingsDep,
) -> MediaListResponse:
    """
    List everything under the gallery prefix, newest first.

    Items without a timestamp compare equal to everything, so they stay
    wherever the store listed them relative to their neighbours.
    """
    try:
        stored = await storage.list_objects(settings.upload_prefix)
    except StorageError as e:
        logger.error("List images error", extra={"error": str(e)})
        raise StorageOperationFailed.from_storage_error(
            e,
            "Failed to list images. Check server logs for details.",
            pass_through=False,
        )

    items = sort_newest_first(
        MediaItem(
            key=obj.key,
            size=obj.size,
            last_modified=obj.last_modified,
            kind=infer_media_kind(obj.key),
        )
        for obj in stored
        if obj.key
    )

    return MediaListResponse(images=[MediaItemResponse.from_item(item) for item in items])


@router.get(
    "/image/{key:path}",
    status_code=status.HTTP_200_OK,
    summary="Download one media file",
    response_class=StreamingResponse,
)
async def get_image(key: str, storage: StorageClientDep) -> StreamingResponse:
    """
    Stream an object back with its stored content type.

    The key arrives as the rest of the path, so nested keys like
    images/video-1-clip.mp4 work without escaping the slash.
    """
    if not key:
        raise ValidationFailed("key is required.")

    try:
        stream = await storage.get_object(key)
    except ObjectNotFoundError:
        raise NotFound("File not found")
    except StorageError as e:
        logger.error("Get image error", extra={"key": key, "error": str(e)})
        raise StorageOperationFailed.from_storage_error(
            e, "Failed to fetch image", pass_through=False
        )

    if stream.body is None:
        raise NotFound("File not found")

    file_name = key.rsplit("/", 1)[-1] or "file"
    headers = {
        "Content-Disposition": f'inline; filename="{quote(file_name, safe=DISPOSITION_SAFE_CHARS)}"',
    }
    if stream.content_length:
        headers["Content-Length"] = str(stream.content_length)

    return StreamingResponse(
        stream.body,
        media_type=stream.content_type or "application/octet-stream",
        headers=headers,
    )


@router.delete(
    "/image/{key:path}",
    response_model=DeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete one media file",
)
async def delete_image(key: str, storage: StorageClientDep) -> DeleteResponse:
    """
    Delete an object from the shared gallery.

    The store does not distinguish a missing key from a deleted one, so
    neither do we.
    """
    if not key:
        raise ValidationFailed("key is required.")

    try:
        await storage.delete_object(key)
    except StorageError as e:
        logger.error("Delete image error", extra={"key": key, "error": str(e)})
        raise StorageOperationFailed.from_storage_error(
            e, "Failed to delete image", pass_through=False
        )

    logger.info("Deleted gallery item", extra={"key": key})
    return DeleteResponse(success=True)
