"""
HTTP error taxonomy for the gallery API.

Every gallery endpoint answers failures with ``{"error": message}``.
Route handlers raise these; the app factory registers the handler that
renders them.
"""

from typing import Optional

from fastapi import status

from ..infrastructure.storage.client import StorageError


class GalleryAPIError(Exception):
    """Base class for errors rendered as {"error": message}."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationMissing(GalleryAPIError):
    """Storage credentials are not configured; no storage call is attempted."""

    def __init__(self, missing_fields: Optional[list[str]] = None) -> None:
        super().__init__(
            "Backblaze B2 storage is not configured on the server. Please set "
            "B2_BUCKET_NAME, B2_REGION, B2_KEY_ID and B2_APPLICATION_KEY."
        )
        self.missing_fields = missing_fields or []


class ValidationFailed(GalleryAPIError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(GalleryAPIError):
    status_code = status.HTTP_404_NOT_FOUND


class StorageOperationFailed(GalleryAPIError):
    """Wraps a storage failure for the client."""

    @classmethod
    def from_storage_error(
        cls,
        error: StorageError,
        fallback: str,
        pass_through: bool = True,
    ) -> "StorageOperationFailed":
        """
        Prefer the provider's own message when it gave a structured one.

        Endpoints that only ever show a generic message pass
        pass_through=False.
        """
        if pass_through and error.service_message:
            return cls(error.service_message)
        return cls(fallback)
