"""
Object storage integration for gallery media.

Supports Backblaze B2 (and any S3-compatible store) via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    B2StorageClient,
    MockStorageClient,
    ObjectNotFoundError,
    ObjectStream,
    StorageClient,
    StorageConfig,
    StorageError,
    StoredObject,
    create_storage_client,
)

__all__ = [
    "B2StorageClient",
    "MockStorageClient",
    "ObjectNotFoundError",
    "ObjectStream",
    "StorageClient",
    "StorageConfig",
    "StorageError",
    "StoredObject",
    "create_storage_client",
]
