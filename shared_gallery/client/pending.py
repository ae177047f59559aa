"""
Staging area for files picked for upload.

Every staged file holds an open handle until it is uploaded or
discarded. PendingUploads owns those handles and releases them on each
way out: discard(), clear(), a successful upload, or leaving the
``with`` block.
"""

import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Optional, Union

from ..core.gallery import MediaKind, is_allowed_media_type, kind_for_content_type

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass
class PendingUpload:
    """One staged file."""
    id: str
    path: Path
    file: BinaryIO
    content_type: str
    kind: MediaKind
    size: int

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def preview_url(self) -> str:
        """Local reference for showing the file before it is uploaded."""
        return self.path.resolve().as_uri()

    @property
    def released(self) -> bool:
        return self.file.closed

    def release(self) -> None:
        if not self.file.closed:
            self.file.close()


class PendingUploads:
    """
    Owned collection of staged files.

    Usage:
        with PendingUploads() as pending:
            rejected = pending.stage(paths)
            await client.upload_pending(pending)
    """

    def __init__(self) -> None:
        self._items: dict[str, PendingUpload] = {}

    def __enter__(self) -> "PendingUploads":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def __iter__(self) -> Iterator[PendingUpload]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def get(self, upload_id: str) -> Optional[PendingUpload]:
        return self._items.get(upload_id)

    def stage(self, paths: Iterable[PathLike]) -> list[Path]:
        """
        Stage files for upload and return the ones that were skipped.

        Only images and videos that can be opened are staged. Anything
        else is skipped and reported back so the caller can tell the user.
        """
        rejected: list[Path] = []

        for raw_path in paths:
            path = Path(raw_path)
            content_type, _ = mimetypes.guess_type(path.name)
            if not is_allowed_media_type(content_type):
                rejected.append(path)
                continue

            try:
                handle = path.open("rb")
            except OSError as e:
                logger.warning(
                    "Could not open file for upload",
                    extra={"path": str(path), "error": str(e)}
                )
                rejected.append(path)
                continue

            upload = PendingUpload(
                id=uuid.uuid4().hex[:12],
                path=path,
                file=handle,
                content_type=content_type,
                kind=kind_for_content_type(content_type),
                size=os.fstat(handle.fileno()).st_size,
            )
            self._items[upload.id] = upload

        if rejected:
            logger.warning(
                "Skipped unsupported files",
                extra={"rejected": [str(path) for path in rejected]}
            )
        return rejected

    def discard(self, upload_id: str) -> bool:
        upload = self._items.pop(upload_id, None)
        if upload is None:
            return False
        upload.release()
        return True

    def clear(self) -> None:
        items = list(self._items.values())
        self._items.clear()
        for upload in items:
            upload.release()
