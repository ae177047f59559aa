"""
Domain models for the shared gallery.

These models have no dependencies on FastAPI, boto3 or HTTP. The object
store is the only source of truth; nothing here is persisted locally.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class MediaKind(Enum):
    """What a gallery object is, as far as the UI cares."""
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class MediaItem:
    """
    One object in the shared gallery.

    Frozen because a listed item is a snapshot of the store at list time.
    """
    key: str
    size: int
    last_modified: Optional[datetime]
    kind: MediaKind

    @property
    def last_modified_iso(self) -> Optional[str]:
        """UTC with millisecond precision, e.g. 2024-01-02T03:04:05.000Z."""
        if self.last_modified is None:
            return None
        when = self.last_modified
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return when.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @property
    def file_name(self) -> str:
        return self.key.rsplit("/", 1)[-1] or "file"


@dataclass(frozen=True)
class CompletedPart:
    """A finished chunk of a multipart upload."""
    part_number: int
    etag: str

    def __post_init__(self) -> None:
        if self.part_number < 1:
            raise ValueError("Part numbers start at 1")


@dataclass
class MultipartSession:
    """
    Client-side record of one multipart upload attempt.

    Lives exactly as long as the attempt. If the process dies mid-upload
    the uploadId is orphaned in the store until someone aborts it.
    """
    key: str
    upload_id: str
    parts: list[CompletedPart] = field(default_factory=list)

    def record(self, part_number: int, etag: str) -> CompletedPart:
        """Remember a part. ETag quotes are stripped, as the store expects."""
        part = CompletedPart(part_number=part_number, etag=etag.replace('"', ""))
        self.parts.append(part)
        return part

    @property
    def next_part_number(self) -> int:
        return len(self.parts) + 1

    def ordered_parts(self) -> list[CompletedPart]:
        return sorted(self.parts, key=lambda part: part.part_number)
