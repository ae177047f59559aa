"""
FastAPI dependency injection.

Dependencies provide the storage client and configuration to route
handlers. Routes never build their own clients, so tests can swap them
through app.dependency_overrides.
"""

import logging
from typing import Annotated

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client
from .errors import ConfigurationMissing

logger = logging.getLogger(__name__)

# Global mock instance (shared across requests so uploads persist)
_mock_storage_client = None


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide storage client for gallery operations.

    Refuses with ConfigurationMissing before any client is built when
    credentials are absent, so every endpoint short-circuits the same way.

    In mock mode, we reuse the same client across requests so that
    uploaded media persists for the life of the process.
    """
    global _mock_storage_client

    if settings.b2_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client")
        return _mock_storage_client

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Storage is not configured",
            extra={"missing_fields": missing_fields}
        )
        raise ConfigurationMissing(missing_fields)

    config = StorageConfig(
        access_key_id=settings.b2_key_id,
        secret_access_key=settings.b2_application_key,
        bucket_name=settings.b2_bucket_name,
        endpoint_url=settings.b2_endpoint_url,
        region=settings.b2_region,
    )
    client = create_storage_client(config=config)
    logger.debug("Created B2 storage client")

    return client


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
