"""
Pytest configuration and fixtures for wiki tests.
"""
import pytest
from rest_framework.test import APIClient

from wiki.gate import set_reference_password

SITE_PASSWORD = "correct horse battery staple"


@pytest.fixture(autouse=True)
def secret_dir(settings, tmp_path):
    """Keep key material and the reference password in a per-test directory."""
    path = tmp_path / "secret"
    settings.WIKI_SECRET_DIR = path
    return path


@pytest.fixture(autouse=True)
def disable_throttling(settings, monkeypatch):
    """Disable rate limiting for all tests."""
    settings.REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []
    settings.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {}

    from wiki.throttling import MonitoringThrottle, UnlockThrottle

    def mock_allow_request(self, request, view):
        return True

    monkeypatch.setattr(UnlockThrottle, 'allow_request', mock_allow_request)
    monkeypatch.setattr(MonitoringThrottle, 'allow_request', mock_allow_request)


@pytest.fixture
def site_password(secret_dir):
    """Configure the unlock password and return it."""
    set_reference_password(SITE_PASSWORD)
    return SITE_PASSWORD


@pytest.fixture
def api_client():
    """Return a Django REST Framework API client."""
    return APIClient()


@pytest.fixture
def unlocked_client(api_client, site_password):
    """Return an API client whose session has unlocked the wiki."""
    response = api_client.post("/api/wiki/gate", {"password": site_password}, format="json")
    assert response.status_code == 200
    return api_client


@pytest.fixture
def store():
    from wiki.store import DocumentStore

    return DocumentStore()
