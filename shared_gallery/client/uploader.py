"""
Client-side multipart upload orchestration.

One upload runs through a fixed sequence:

    START -> (REQUEST_URL -> PUT_CHUNK -> RECORD_ETAG)* -> COMPLETE | ABORT

The API server only brokers the session; chunk bytes go straight to the
object store through presigned URLs. Chunks are sent one at a time and
nothing is retried: the first failure anywhere aborts the whole session.
"""

import logging
from typing import BinaryIO

import httpx

from ..core.gallery.models import MultipartSession
from .transport import GalleryClientError, post_json

logger = logging.getLogger(__name__)

# 8 MiB keeps every part above the S3 5 MiB minimum
PART_SIZE = 8 * 1024 * 1024


class MultipartUploader:
    """
    Drives one multipart upload at a time.

    Args:
        http: client for the gallery API (base URL already set)
        storage_http: client used for the presigned PUTs to storage
        api_prefix: path prefix the gallery routes are mounted under
        part_size: chunk size in bytes
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        storage_http: httpx.AsyncClient,
        api_prefix: str = "/api",
        part_size: int = PART_SIZE,
    ) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self._http = http
        self._storage_http = storage_http
        self._prefix = api_prefix.rstrip("/")
        self.part_size = part_size

    async def upload(
        self,
        file: BinaryIO,
        file_name: str,
        content_type: str,
        size: int,
    ) -> str:
        """
        Upload size bytes from file and return the new object's key.

        On any failure after START the session is aborted and the
        original error is raised again. Abort failures are only logged.
        """
        started = await post_json(
            self._http,
            f"{self._prefix}/upload/start",
            {"fileName": file_name, "contentType": content_type},
        )
        session = MultipartSession(key=started["key"], upload_id=started["uploadId"])

        logger.info(
            "Multipart upload started",
            extra={"key": session.key, "upload_id": session.upload_id, "size_bytes": size}
        )

        try:
            for offset in range(0, size, self.part_size):
                file.seek(offset)
                chunk = file.read(min(self.part_size, size - offset))
                await self._upload_part(session, content_type, chunk)

            await post_json(
                self._http,
                f"{self._prefix}/upload/complete",
                {
                    "key": session.key,
                    "uploadId": session.upload_id,
                    "parts": [
                        {"PartNumber": part.part_number, "ETag": part.etag}
                        for part in session.parts
                    ],
                },
            )
        except Exception:
            await self._abort(session)
            raise

        logger.info(
            "Multipart upload complete",
            extra={"key": session.key, "parts": len(session.parts)}
        )
        return session.key

    async def _upload_part(
        self,
        session: MultipartSession,
        content_type: str,
        chunk: bytes,
    ) -> None:
        part_number = session.next_part_number

        presigned = await post_json(
            self._http,
            f"{self._prefix}/upload/url",
            {"key": session.key, "uploadId": session.upload_id, "partNumber": part_number},
        )

        response = await self._storage_http.put(
            presigned["url"],
            content=chunk,
            headers={"Content-Type": content_type},
        )
        if response.is_error:
            raise GalleryClientError(
                f"Failed to upload part {part_number} ({response.status_code}).",
                status_code=response.status_code,
            )

        etag = response.headers.get("ETag")
        if not etag:
            raise GalleryClientError("Upload failed: missing ETag header.")

        session.record(part_number, etag)
        logger.debug(
            "Uploaded part",
            extra={"key": session.key, "part_number": part_number, "size_bytes": len(chunk)}
        )

    async def _abort(self, session: MultipartSession) -> None:
        try:
            await post_json(
                self._http,
                f"{self._prefix}/upload/abort",
                {"key": session.key, "uploadId": session.upload_id},
            )
        except (GalleryClientError, httpx.HTTPError) as e:
            logger.warning(
                "Failed to abort multipart upload",
                extra={"key": session.key, "upload_id": session.upload_id, "error": str(e)}
            )
        else:
            logger.info(
                "Aborted multipart upload",
                extra={"key": session.key, "upload_id": session.upload_id}
            )
