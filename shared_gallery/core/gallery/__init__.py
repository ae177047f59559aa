"""
Gallery domain: media items, multipart bookkeeping and key conventions.
"""

from .keys import (
    build_object_key,
    infer_media_kind,
    is_allowed_media_type,
    kind_for_content_type,
    sanitize_filename,
    sort_newest_first,
)
from .models import CompletedPart, MediaItem, MediaKind, MultipartSession

__all__ = [
    "CompletedPart",
    "MediaItem",
    "MediaKind",
    "MultipartSession",
    "build_object_key",
    "infer_media_kind",
    "is_allowed_media_type",
    "kind_for_content_type",
    "sanitize_filename",
    "sort_newest_first",
]
