"""
Object storage client for the shared gallery.

Talks to Backblaze B2 through its S3-compatible API, with a mock mode for
local development. B2 speaks the S3 protocol, so boto3 does all the work;
this module only configures it and translates failures.

Mock mode keeps objects and multipart sessions in memory, enabling API
testing without a bucket.
"""

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Optional, Protocol, Sequence
from urllib.parse import quote, urlencode

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...core.gallery.models import CompletedPart

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024
MOCK_STORAGE_HOST = "mock-storage.local"


class StorageError(Exception):
    """
    Raised when storage operations fail.

    service_message carries the provider's own message when the failure
    was a structured service error, so callers can pass it on.
    """

    def __init__(self, message: str, service_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.service_message = service_message


class ObjectNotFoundError(StorageError):
    """Raised when the requested key does not exist."""
    pass


@dataclass
class StorageConfig:
    """Configuration for B2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "us-west-004"


@dataclass(frozen=True)
class StoredObject:
    """One entry from a bucket listing."""
    key: str
    size: int
    last_modified: Optional[datetime]


@dataclass
class ObjectStream:
    """
    A fetched object, ready to be streamed.

    body is None when the store answered without a body.
    """
    body: Optional[Iterator[bytes]]
    content_type: Optional[str] = None
    content_length: Optional[int] = None


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        """List every object under prefix."""
        ...

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        """Store data under key in one call."""
        ...

    async def get_object(self, key: str) -> ObjectStream:
        """Fetch an object for streaming."""
        ...

    async def delete_object(self, key: str) -> None:
        """Delete key. Deleting a missing key is not an error."""
        ...

    async def create_multipart_upload(
        self,
        key: str,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Start a multipart upload and return its uploadId."""
        ...

    async def presign_upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate a temporary URL the client can PUT one part to."""
        ...

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Assemble the uploaded parts into the final object."""
        ...

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Release an uploadId and any parts uploaded under it."""
        ...


def _service_message(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message") or str(error)
    return None


def _is_missing_key(error: Exception) -> bool:
    if not isinstance(error, ClientError):
        return False
    code = error.response.get("Error", {}).get("Code")
    return code in ("NoSuchKey", "NotFound", "404")


class B2StorageClient:
    """
    Backblaze B2 object storage client.

    Uses boto3 because B2 is S3-compatible. Any other S3-compatible
    store (S3, R2, MinIO) works with a different endpoint.

    All methods are async to match the Protocol even though boto3 is
    synchronous. This keeps the interface consistent with truly async
    storage clients.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._config = config

        # B2 needs v4 signatures for presigned part URLs
        boto_config = Config(signature_version="s3v4")

        self._s3_client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized B2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        """
        List every object under prefix.

        Walks all pages; a single list_objects_v2 call stops at 1000 keys.
        """
        objects: list[StoredObject] = []

        try:
            paginator = self._s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(
                Bucket=self._config.bucket_name,
                Prefix=prefix,
            ):
                for entry in page.get("Contents", []):
                    if not entry.get("Key"):
                        continue
                    objects.append(StoredObject(
                        key=entry["Key"],
                        size=int(entry.get("Size") or 0),
                        last_modified=entry.get("LastModified"),
                    ))
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to list objects",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"List failed: {e}", _service_message(e))

        logger.debug(
            "Listed objects",
            extra={"prefix": prefix, "count": len(objects)}
        )
        return objects

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to upload object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}", _service_message(e))

        logger.info(
            "Uploaded object",
            extra={"key": key, "size_bytes": len(data)}
        )

    async def get_object(self, key: str) -> ObjectStream:
        try:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            if _is_missing_key(e):
                raise ObjectNotFoundError(f"Object not found: {key}", _service_message(e))
            logger.error(
                "Failed to download object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Download failed: {e}", _service_message(e))

        body = response.get("Body")
        return ObjectStream(
            body=self._iter_body(body) if body is not None else None,
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
        )

    @staticmethod
    def _iter_body(body) -> Iterator[bytes]:
        try:
            yield from body.iter_chunks(chunk_size=STREAM_CHUNK_SIZE)
        finally:
            body.close()

    async def delete_object(self, key: str) -> None:
        try:
            self._s3_client.delete_object(
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to delete object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}", _service_message(e))

        logger.info("Deleted object", extra={"key": key})

    async def create_multipart_upload(
        self,
        key: str,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        try:
            response = self._s3_client.create_multipart_upload(
                Bucket=self._config.bucket_name,
                Key=key,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to start multipart upload",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Multipart start failed: {e}", _service_message(e))

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("Failed to start multipart upload.")

        logger.info(
            "Started multipart upload",
            extra={"key": key, "upload_id": upload_id}
        )
        return upload_id

    async def presign_upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Generate a presigned upload_part URL.

        The client PUTs the chunk straight to B2, so part bytes never pass
        through this server.
        """
        try:
            return self._s3_client.generate_presigned_url(
                "upload_part",
                Params={
                    "Bucket": self._config.bucket_name,
                    "Key": key,
                    "UploadId": upload_id,
                    "PartNumber": part_number,
                },
                ExpiresIn=expiry_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to generate part URL",
                extra={"key": key, "upload_id": upload_id, "part_number": part_number, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}", _service_message(e))

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        try:
            self._s3_client.complete_multipart_upload(
                Bucket=self._config.bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [
                        {"PartNumber": part.part_number, "ETag": part.etag}
                        for part in parts
                    ]
                },
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to complete multipart upload",
                extra={"key": key, "upload_id": upload_id, "error": str(e)}
            )
            raise StorageError(f"Multipart completion failed: {e}", _service_message(e))

        logger.info(
            "Completed multipart upload",
            extra={"key": key, "upload_id": upload_id, "parts": len(parts)}
        )

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        try:
            self._s3_client.abort_multipart_upload(
                Bucket=self._config.bucket_name,
                Key=key,
                UploadId=upload_id,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to abort multipart upload",
                extra={"key": key, "upload_id": upload_id, "error": str(e)}
            )
            raise StorageError(f"Multipart abort failed: {e}", _service_message(e))

        logger.info(
            "Aborted multipart upload",
            extra={"key": key, "upload_id": upload_id}
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _MockObject:
    data: bytes
    content_type: str
    last_modified: datetime
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class _MockMultipartUpload:
    key: str
    content_type: str
    metadata: dict[str, str]
    parts: dict[int, tuple[str, bytes]] = field(default_factory=dict)


class MockStorageClient:
    """
    In-memory storage for local development.

    Enables testing the full API flow without a B2 bucket. Presigned part
    URLs point at a fake host; whoever plays the storage side of a test
    feeds the PUT bodies to upload_part().

    Completion is as strict as the real provider: parts must be listed in
    ascending order with the ETags upload_part handed out.
    """

    def __init__(self) -> None:
        self._objects: dict[str, _MockObject] = {}
        self._uploads: dict[str, _MockMultipartUpload] = {}
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def keys(self) -> list[str]:
        return list(self._objects)

    @property
    def pending_upload_ids(self) -> list[str]:
        return list(self._uploads)

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        return [
            StoredObject(key=key, size=len(obj.data), last_modified=obj.last_modified)
            for key, obj in self._objects.items()
            if key.startswith(prefix)
        ]

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> None:
        self._objects[key] = _MockObject(
            data=data,
            content_type=content_type,
            last_modified=datetime.now(timezone.utc),
            metadata=dict(metadata or {}),
        )
        logger.debug(
            "Stored object in mock storage",
            extra={"key": key, "size_bytes": len(data)}
        )

    async def get_object(self, key: str) -> ObjectStream:
        if key not in self._objects:
            raise ObjectNotFoundError(f"Object not found: {key}", "The specified key does not exist.")
        obj = self._objects[key]
        return ObjectStream(
            body=iter([obj.data]),
            content_type=obj.content_type,
            content_length=len(obj.data),
        )

    async def delete_object(self, key: str) -> None:
        self._objects.pop(key, None)

    async def create_multipart_upload(
        self,
        key: str,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        upload_id = uuid.uuid4().hex
        self._uploads[upload_id] = _MockMultipartUpload(
            key=key,
            content_type=content_type,
            metadata=dict(metadata or {}),
        )
        return upload_id

    async def presign_upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        expiry_seconds: int = 3600,
    ) -> str:
        self._require_upload(key, upload_id)
        query = urlencode({"uploadId": upload_id, "partNumber": part_number})
        return f"http://{MOCK_STORAGE_HOST}/{quote(key)}?{query}"

    async def upload_part(
        self,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        """Accept one part, as the provider's PUT endpoint would. Returns the quoted ETag."""
        upload = self._require_upload(key, upload_id)
        etag = hashlib.md5(data).hexdigest()
        upload.parts[part_number] = (etag, data)
        return f'"{etag}"'

    async def complete_multipart_upload(
        self,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        upload = self._require_upload(key, upload_id)

        numbers = [part.part_number for part in parts]
        if not numbers:
            raise StorageError("Completion failed", "You must specify at least one part.")
        if numbers != sorted(numbers) or len(set(numbers)) != len(numbers):
            raise StorageError("Completion failed", "The list of parts was not in ascending order.")

        chunks = []
        for part in parts:
            stored = upload.parts.get(part.part_number)
            if stored is None or stored[0] != part.etag.replace('"', ""):
                raise StorageError(
                    "Completion failed",
                    "One or more of the specified parts could not be found.",
                )
            chunks.append(stored[1])

        del self._uploads[upload_id]
        await self.put_object(key, b"".join(chunks), upload.content_type, upload.metadata)

    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._require_upload(key, upload_id)
        del self._uploads[upload_id]

    def _require_upload(self, key: str, upload_id: str) -> _MockMultipartUpload:
        upload = self._uploads.get(upload_id)
        if upload is None or upload.key != key:
            raise StorageError(
                f"Unknown upload: {upload_id}",
                "The specified multipart upload does not exist.",
            )
        return upload


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (B2 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return B2StorageClient(config)
