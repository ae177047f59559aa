"""
Shared fixtures.

API tests run against the in-memory mock storage client, injected through
FastAPI dependency overrides, so no bucket or credentials are needed.
"""

import pytest
from fastapi.testclient import TestClient

from shared_gallery.api.dependencies import get_storage_client
from shared_gallery.config.settings import Settings, get_settings
from shared_gallery.main import create_app

from .helpers import RecordingStorage


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, b2_mock_mode=True)


@pytest.fixture
def unconfigured_settings() -> Settings:
    return Settings(
        _env_file=None,
        b2_mock_mode=False,
        b2_bucket_name="",
        b2_key_id="",
        b2_application_key="",
    )


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def app(settings, storage):
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_storage_client] = lambda: storage
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
