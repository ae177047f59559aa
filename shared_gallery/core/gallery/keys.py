"""
Object key conventions for the gallery.

Keys look like ``images/{kind}-{epoch millis}-{sanitized name}``. The kind
tag in the key is what listing uses to tell images from videos; stored
content types are never consulted. Everything here is pure so it can be
tested without storage.
"""

import re
import time
from functools import cmp_to_key
from typing import Iterable, Optional

from .models import MediaItem, MediaKind

DEFAULT_PREFIX = "images/"
FALLBACK_FILE_NAME = "image-upload"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-_]")

VIDEO_EXTENSIONS = frozenset({
    "mp4", "mov", "m4v", "webm", "mkv", "avi", "mpeg", "mpg", "ogv", "3gp",
})


def is_allowed_media_type(content_type: Optional[str]) -> bool:
    """Only images and videos belong in the gallery."""
    if not content_type:
        return False
    return content_type.startswith("image/") or content_type.startswith("video/")


def kind_for_content_type(content_type: str) -> MediaKind:
    if content_type.startswith("video/"):
        return MediaKind.VIDEO
    return MediaKind.IMAGE


def sanitize_filename(file_name: Optional[str], fallback: str = FALLBACK_FILE_NAME) -> str:
    """Replace every character outside [A-Za-z0-9._-] with an underscore."""
    if not file_name:
        return fallback
    return _UNSAFE_CHARS.sub("_", file_name)


def build_object_key(
    file_name: Optional[str],
    kind: MediaKind,
    prefix: str = DEFAULT_PREFIX,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    Build a collision-resistant key for a new upload.

    Two uploads of the same name in the same millisecond still collide;
    the later one wins at the store.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{prefix}{kind.value}-{timestamp_ms}-{sanitize_filename(file_name)}"


def infer_media_kind(key: str) -> MediaKind:
    """
    Guess the kind of a stored object from its key alone.

    The ``video-``/``image-`` tag written by build_object_key wins. Keys
    without a tag (uploaded by other tools) fall back to the extension.
    """
    base_name = key.rsplit("/", 1)[-1]
    if base_name.startswith("video-"):
        return MediaKind.VIDEO
    if base_name.startswith("image-"):
        return MediaKind.IMAGE

    if "." in base_name:
        extension = base_name.rsplit(".", 1)[-1].lower()
        if extension in VIDEO_EXTENSIONS:
            return MediaKind.VIDEO
    return MediaKind.IMAGE


def _compare_newest_first(a: MediaItem, b: MediaItem) -> int:
    # Items without a timestamp compare equal to everything. That is not a
    # total order, so their final position depends on the input order.
    if a.last_modified is None or b.last_modified is None:
        return 0
    if a.last_modified < b.last_modified:
        return 1
    if a.last_modified > b.last_modified:
        return -1
    return 0


def sort_newest_first(items: Iterable[MediaItem]) -> list[MediaItem]:
    """Stable sort by last_modified, newest first."""
    return sorted(items, key=cmp_to_key(_compare_newest_first))
