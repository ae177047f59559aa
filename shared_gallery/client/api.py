"""
Async client for the shared gallery API.

Covers everything the gallery page does: list, download, delete and
upload. Uploads are sequential; a failure stops the loop and leaves the
files already uploaded in place.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

import httpx

from ..core.gallery import MediaItem, MediaKind
from .pending import PendingUpload, PendingUploads
from .transport import GalleryClientError, raise_for_error
from .uploader import PART_SIZE, MultipartUploader

logger = logging.getLogger(__name__)


def encode_key(key: str) -> str:
    """URL-encode a key segment by segment so the slashes survive."""
    return "/".join(quote(segment, safe="") for segment in key.split("/"))


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # fromisoformat only learned the Z suffix in Python 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _parse_item(raw: dict) -> MediaItem:
    return MediaItem(
        key=raw["key"],
        size=int(raw.get("size") or 0),
        last_modified=_parse_timestamp(raw.get("lastModified")),
        kind=MediaKind.VIDEO if raw.get("kind") == "video" else MediaKind.IMAGE,
    )


class GalleryClient:
    """
    Client for one gallery deployment.

    Pass your own httpx clients to control transports (tests do);
    otherwise the client builds and owns them. Use as an async context
    manager so owned clients are closed.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http: Optional[httpx.AsyncClient] = None,
        storage_http: Optional[httpx.AsyncClient] = None,
        api_prefix: str = "/api",
        part_size: int = PART_SIZE,
    ) -> None:
        self._owned: list[httpx.AsyncClient] = []
        if http is None:
            http = httpx.AsyncClient(base_url=base_url)
            self._owned.append(http)
        if storage_http is None:
            storage_http = httpx.AsyncClient()
            self._owned.append(storage_http)

        self._http = http
        self._prefix = api_prefix.rstrip("/")
        self.uploader = MultipartUploader(
            http,
            storage_http,
            api_prefix=self._prefix,
            part_size=part_size,
        )

    async def __aenter__(self) -> "GalleryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for client in self._owned:
            await client.aclose()
        self._owned.clear()

    # -----------------------------------------------------------------------
    # Browsing
    # -----------------------------------------------------------------------

    async def list_media(self) -> list[MediaItem]:
        response = await self._http.get(f"{self._prefix}/images")
        data = raise_for_error(response)
        return [_parse_item(raw) for raw in data.get("images") or []]

    async def download(self, key: str, destination: Union[str, Path]) -> Path:
        """Stream one object to destination and return the path written."""
        destination = Path(destination)

        async with self._http.stream("GET", f"{self._prefix}/image/{encode_key(key)}") as response:
            if response.is_error:
                await response.aread()
                raise_for_error(response)

            with destination.open("wb") as out:
                async for chunk in response.aiter_bytes():
                    out.write(chunk)

        logger.debug("Downloaded media", extra={"key": key, "path": str(destination)})
        return destination

    async def download_all(self, directory: Union[str, Path]) -> list[Path]:
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        written = []
        for item in await self.list_media():
            written.append(await self.download(item.key, directory / item.file_name))
        return written

    async def delete(self, key: str) -> None:
        response = await self._http.delete(f"{self._prefix}/image/{encode_key(key)}")
        raise_for_error(response)
        logger.info("Deleted media", extra={"key": key})

    # -----------------------------------------------------------------------
    # Uploading
    # -----------------------------------------------------------------------

    async def upload_direct(self, uploads: list[PendingUpload]) -> list[str]:
        """Send files in one multipart/form-data request. Returns the new keys."""
        files = []
        for upload in uploads:
            upload.file.seek(0)
            files.append(("file", (upload.name, upload.file.read(), upload.content_type)))

        response = await self._http.post(f"{self._prefix}/upload", files=files)
        data = raise_for_error(response)
        return list(data.get("keys") or [])

    async def upload_one(self, upload: PendingUpload) -> str:
        """
        Upload a single staged file.

        Files that fit in one part go through the direct path; anything
        bigger is chunked through the multipart uploader.
        """
        if upload.size <= self.uploader.part_size:
            keys = await self.upload_direct([upload])
            if not keys:
                raise GalleryClientError("Upload failed: server returned no key.")
            return keys[0]

        return await self.uploader.upload(
            upload.file,
            upload.name,
            upload.content_type,
            upload.size,
        )

    async def upload_pending(self, pending: PendingUploads) -> list[str]:
        """
        Upload every staged file, one after another.

        The staging area is cleared only when all files made it. On
        failure the error propagates, files uploaded before it stay in
        the gallery, and everything stays staged for another attempt.
        """
        if not len(pending):
            raise GalleryClientError("Select at least one file to upload.")

        keys = []
        for upload in pending:
            keys.append(await self.upload_one(upload))
            logger.info(
                "Uploaded media",
                extra={"upload_filename": upload.name, "key": keys[-1]}
            )

        pending.clear()
        return keys
