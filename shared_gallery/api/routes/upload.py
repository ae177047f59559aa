"""
Upload endpoints.

Two paths into the gallery:

1. Direct upload (POST /upload): the server receives the whole file and
   writes it with one put. Fine for photos and short clips.
2. Multipart (POST /upload/start, /url, /complete, /abort): the server
   only brokers the session. The client PUTs each chunk straight to B2
   using a presigned URL, so large videos never pass through this process.

All four multipart endpoints are stateless proxies to the store's
multipart API; the uploadId travels with every request.
"""

import logging
from typing import Annotated, Optional, Union

from fastapi import APIRouter, File, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from ...core.gallery import (
    CompletedPart,
    build_object_key,
    is_allowed_media_type,
    kind_for_content_type,
    sanitize_filename,
)
from ...infrastructure.storage.client import StorageError
from ..dependencies import SettingsDep, StorageClientDep
from ..errors import StorageOperationFailed, ValidationFailed

logger = logging.getLogger(__name__)

router = APIRouter()

MEDIA_ONLY_MESSAGE = "Only image or video uploads are allowed."


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DirectUploadResponse(BaseModel):
    success: bool = True
    keys: list[str] = Field(description="Keys of the stored files, in upload order")


class StartUploadRequest(_CamelModel):
    file_name: Optional[str] = Field(None, alias="fileName")
    content_type: Optional[str] = Field(None, alias="contentType")


class StartUploadResponse(_CamelModel):
    upload_id: str = Field(alias="uploadId")
    key: str


class PartUrlRequest(_CamelModel):
    key: Optional[str] = None
    upload_id: Optional[str] = Field(None, alias="uploadId")
    part_number: Optional[StrictInt] = Field(
        None,
        alias="partNumber",
        ge=1,
        le=10000,
        description="1-based part index; S3-compatible stores allow up to 10000 parts",
    )


class PartUrlResponse(BaseModel):
    url: str


class UploadedPart(_CamelModel):
    """A part as the client reports it: {PartNumber, ETag}."""
    part_number: StrictInt = Field(alias="PartNumber", ge=1, le=10000)
    etag: str = Field(alias="ETag")


class CompleteUploadRequest(_CamelModel):
    key: Optional[str] = None
    upload_id: Optional[str] = Field(None, alias="uploadId")
    parts: Optional[list[UploadedPart]] = None


class AbortUploadRequest(_CamelModel):
    key: Optional[str] = None
    upload_id: Optional[str] = Field(None, alias="uploadId")


class SuccessResponse(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Direct Upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=DirectUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload media in one request",
)
async def upload_files(
    storage: StorageClientDep,
    settings: SettingsDep,
    file: Annotated[
        Optional[list[Union[UploadFile, str]]],
        File(description="Image or video file; repeat the field for several files"),
    ] = None,
) -> DirectUploadResponse:
    """
    Store each submitted file with a single put.

    Every file is type-checked before anything is written, so a bad file
    rejects the whole request. Once writing starts there is no rollback:
    if a later put fails, earlier files stay in the gallery.
    """
    # plain text parts sharing the field name are not files
    files = [upload for upload in (file or []) if not isinstance(upload, str)]
    if not files:
        raise ValidationFailed("No file found in the request.")

    for upload in files:
        if not is_allowed_media_type(upload.content_type):
            logger.warning(
                "Rejected upload with unsupported type",
                extra={"upload_filename": upload.filename, "content_type": upload.content_type}
            )
            raise ValidationFailed(MEDIA_ONLY_MESSAGE)

    keys: list[str] = []
    for upload in files:
        content_type = upload.content_type or "application/octet-stream"
        key = build_object_key(
            upload.filename,
            kind_for_content_type(content_type),
            prefix=settings.upload_prefix,
        )
        data = await upload.read()

        try:
            await storage.put_object(key, data, content_type)
        except StorageError as e:
            logger.error(
                "Upload error",
                extra={"key": key, "stored_before_failure": len(keys), "error": str(e)}
            )
            raise StorageOperationFailed.from_storage_error(
                e,
                "Upload failed. Check server logs for details.",
                pass_through=False,
            )

        keys.append(key)

    logger.info("Direct upload complete", extra={"keys": keys})
    return DirectUploadResponse(success=True, keys=keys)


# ---------------------------------------------------------------------------
# Multipart Session
# ---------------------------------------------------------------------------

@router.post(
    "/upload/start",
    response_model=StartUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Start a multipart upload",
)
async def start_multipart_upload(
    request: StartUploadRequest,
    storage: StorageClientDep,
    settings: SettingsDep,
) -> StartUploadResponse:
    """Open a multipart session and hand back its key and uploadId."""
    if not request.file_name or not request.content_type:
        raise ValidationFailed("fileName and contentType are required.")
    if not is_allowed_media_type(request.content_type):
        raise ValidationFailed(MEDIA_ONLY_MESSAGE)

    safe_name = sanitize_filename(request.file_name)
    key = build_object_key(
        request.file_name,
        kind_for_content_type(request.content_type),
        prefix=settings.upload_prefix,
    )

    try:
        upload_id = await storage.create_multipart_upload(
            key,
            request.content_type,
            metadata={"originalname": safe_name},
        )
    except StorageError as e:
        logger.error("Multipart start error", extra={"key": key, "error": str(e)})
        raise StorageOperationFailed.from_storage_error(e, "Failed to start multipart upload.")

    return StartUploadResponse(upload_id=upload_id, key=key)


@router.post(
    "/upload/url",
    response_model=PartUrlResponse,
    status_code=status.HTTP_200_OK,
    summary="Presign one part of a multipart upload",
)
async def create_part_url(
    request: PartUrlRequest,
    storage: StorageClientDep,
    settings: SettingsDep,
) -> PartUrlResponse:
    if not request.key or not request.upload_id or request.part_number is None:
        raise ValidationFailed("key, uploadId and partNumber are required.")

    try:
        url = await storage.presign_upload_part(
            request.key,
            request.upload_id,
            request.part_number,
            expiry_seconds=settings.multipart_url_expiry_seconds,
        )
    except StorageError as e:
        logger.error(
            "Multipart part URL error",
            extra={"key": request.key, "part_number": request.part_number, "error": str(e)}
        )
        raise StorageOperationFailed.from_storage_error(e, "Failed to create part URL.")

    return PartUrlResponse(url=url)


@router.post(
    "/upload/complete",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Finish a multipart upload",
)
async def complete_multipart_upload(
    request: CompleteUploadRequest,
    storage: StorageClientDep,
) -> SuccessResponse:
    """
    Assemble the uploaded parts into the final object.

    Parts are sorted by PartNumber here: the store rejects out-of-order
    part lists and clients are free to report parts in any order.
    """
    if not request.key or not request.upload_id or not request.parts:
        raise ValidationFailed("key, uploadId and parts are required.")

    parts = sorted(
        (CompletedPart(part_number=part.part_number, etag=part.etag) for part in request.parts),
        key=lambda part: part.part_number,
    )

    try:
        await storage.complete_multipart_upload(request.key, request.upload_id, parts)
    except StorageError as e:
        logger.error(
            "Multipart complete error",
            extra={"key": request.key, "upload_id": request.upload_id, "error": str(e)}
        )
        raise StorageOperationFailed.from_storage_error(e, "Failed to complete multipart upload.")

    return SuccessResponse(success=True)


@router.post(
    "/upload/abort",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Abandon a multipart upload",
)
async def abort_multipart_upload(
    request: AbortUploadRequest,
    storage: StorageClientDep,
) -> SuccessResponse:
    if not request.key or not request.upload_id:
        raise ValidationFailed("key and uploadId are required.")

    try:
        await storage.abort_multipart_upload(request.key, request.upload_id)
    except StorageError as e:
        logger.error(
            "Multipart abort error",
            extra={"key": request.key, "upload_id": request.upload_id, "error": str(e)}
        )
        raise StorageOperationFailed.from_storage_error(e, "Failed to abort multipart upload.")

    return SuccessResponse(success=True)
