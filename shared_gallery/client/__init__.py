"""
Client side of the gallery: staging, uploading and browsing over HTTP.
"""

from .api import GalleryClient, encode_key
from .pending import PendingUpload, PendingUploads
from .transport import GalleryClientError
from .uploader import PART_SIZE, MultipartUploader

__all__ = [
    "GalleryClient",
    "GalleryClientError",
    "MultipartUploader",
    "PART_SIZE",
    "PendingUpload",
    "PendingUploads",
    "encode_key",
]
