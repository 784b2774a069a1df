"""
Tests for the document API, the access gate endpoints and the health check.
"""
import pytest
from django.utils.dateparse import parse_datetime

from wiki.encryption import KEY_FILENAME
from wiki.models import Document


def create_document(client, **fields):
    payload = {"title": "Doc", "content": "x", "category": "General", "restricted": False}
    payload.update(fields)
    response = client.post("/api/wiki/documents", payload, format="json")
    assert response.status_code == 201, response.content
    return response.json()


@pytest.mark.django_db
class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check(self, api_client):
        """Test health check endpoint returns 200 OK."""
        response = api_client.get("/api/wiki/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


@pytest.mark.django_db
class TestGateEndpoints:
    """Tests for unlocking and locking through the API."""

    def test_initially_locked(self, api_client):
        response = api_client.get("/api/wiki/gate")
        assert response.status_code == 200
        assert response.json() == {"unlocked": False}

    def test_unlock_with_correct_password(self, api_client, site_password):
        """Test that the correct password unlocks the session."""
        response = api_client.post("/api/wiki/gate", {"password": site_password}, format="json")
        assert response.status_code == 200
        assert response.json() == {"unlocked": True}
        assert api_client.get("/api/wiki/gate").json() == {"unlocked": True}

    def test_wrong_password(self, api_client, site_password):
        """Test that a wrong password is reported as invalid_password."""
        response = api_client.post("/api/wiki/gate", {"password": "nope"}, format="json")
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_password"
        assert api_client.get("/api/wiki/gate").json() == {"unlocked": False}

    def test_lock(self, unlocked_client):
        response = unlocked_client.delete("/api/wiki/gate")
        assert response.status_code == 200
        assert unlocked_client.get("/api/wiki/gate").json() == {"unlocked": False}

    def test_lock_issues_new_session_key(self, unlocked_client):
        """Test that locking rotates the session cookie like unlocking does."""
        unlocked_key = unlocked_client.cookies["sessionid"].value

        unlocked_client.delete("/api/wiki/gate")

        assert unlocked_client.cookies["sessionid"].value != unlocked_key
        assert unlocked_client.get("/api/wiki/gate").json() == {"unlocked": False}

    def test_unlock_attempts_rate_limited(self, api_client, site_password, monkeypatch):
        """Test that repeated wrong passwords are throttled, status reads are not."""
        from django.core.cache import cache
        from rest_framework.throttling import SimpleRateThrottle

        from wiki.throttling import UnlockThrottle

        monkeypatch.setattr(UnlockThrottle, "allow_request", SimpleRateThrottle.allow_request)
        cache.clear()

        statuses = [
            api_client.post("/api/wiki/gate", {"password": "nope"}, format="json").status_code
            for _ in range(5)
        ]
        assert statuses == [401] * 5

        response = api_client.post("/api/wiki/gate", {"password": site_password}, format="json")
        assert response.status_code == 429
        assert response.json()["error"] == "rate_limited"

        for _ in range(10):
            assert api_client.get("/api/wiki/gate").status_code == 200
        cache.clear()

    def test_unlock_is_per_client(self, unlocked_client):
        """Test that another client stays locked."""
        from rest_framework.test import APIClient

        assert APIClient().get("/api/wiki/gate").json() == {"unlocked": False}

    def test_password_not_configured(self, api_client):
        response = api_client.post("/api/wiki/gate", {"password": "anything"}, format="json")
        assert response.status_code == 503
        assert response.json()["error"] == "not_configured"

    def test_missing_password_field(self, api_client, site_password):
        response = api_client.post("/api/wiki/gate", {}, format="json")
        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"


@pytest.mark.django_db
class TestDocumentLifecycle:
    """Tests for document CRUD operations."""

    def test_create_document(self, unlocked_client):
        """Test creating a new document."""
        data = create_document(unlocked_client, title="Hello", content="# Hello World")
        assert data["title"] == "Hello"
        assert data["content"] == "# Hello World"
        assert data["restricted"] is False
        assert data["created_at"] == data["updated_at"]

    def test_create_requires_unlock(self, api_client):
        """Test that writes are refused while locked."""
        response = api_client.post("/api/wiki/documents", {"title": "Doc"}, format="json")
        assert response.status_code == 403
        assert response.json()["error"] == "locked"
        assert Document.objects.count() == 0

    def test_create_without_title(self, unlocked_client):
        """Test that a missing title is a validation error with no side effect."""
        response = unlocked_client.post("/api/wiki/documents", {"content": "x"}, format="json")
        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"
        assert "title" in response.json()["message"]
        assert Document.objects.count() == 0

    def test_create_rejects_unknown_fields(self, unlocked_client):
        response = unlocked_client.post(
            "/api/wiki/documents", {"title": "Doc", "owner": "me"}, format="json"
        )
        assert response.status_code == 400
        assert "owner" in response.json()["message"]

    def test_content_size_limit(self, unlocked_client, settings):
        settings.WIKI_MAX_CONTENT_SIZE = 10
        response = unlocked_client.post(
            "/api/wiki/documents", {"title": "Big", "content": "x" * 11}, format="json"
        )
        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"

    def test_read_document(self, unlocked_client):
        created = create_document(unlocked_client, content="# Test Content")
        response = unlocked_client.get(f"/api/wiki/documents/{created['id']}")
        assert response.status_code == 200
        assert response.json()["content"] == "# Test Content"

    def test_read_missing_document(self, api_client):
        response = api_client.get("/api/wiki/documents/999")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_update_title_only(self, unlocked_client):
        """Test that PATCH changes only the given fields."""
        created = create_document(unlocked_client, title="Old", content="body", category="IT")

        response = unlocked_client.patch(
            f"/api/wiki/documents/{created['id']}", {"title": "X"}, format="json"
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "X"
        assert data["content"] == "body"
        assert data["category"] == "IT"
        assert data["restricted"] is False
        assert parse_datetime(data["updated_at"]) > parse_datetime(created["updated_at"])

    def test_update_rejects_unknown_fields(self, unlocked_client):
        created = create_document(unlocked_client)
        response = unlocked_client.patch(
            f"/api/wiki/documents/{created['id']}", {"id": 5}, format="json"
        )
        assert response.status_code == 400

    def test_update_missing_document(self, unlocked_client):
        response = unlocked_client.put("/api/wiki/documents/999", {"title": "X"}, format="json")
        assert response.status_code == 404

    def test_update_requires_unlock(self, api_client):
        document = Document.objects.create(title="Doc", body="x")
        response = api_client.patch(f"/api/wiki/documents/{document.id}", {"title": "X"}, format="json")
        assert response.status_code == 403

    def test_delete_document(self, unlocked_client):
        """Test deleting a document."""
        created = create_document(unlocked_client)

        response = unlocked_client.delete(f"/api/wiki/documents/{created['id']}")
        assert response.status_code == 204

        read_response = unlocked_client.get(f"/api/wiki/documents/{created['id']}")
        assert read_response.status_code == 404
        assert read_response.json()["error"] == "not_found"

    def test_toggle_pin(self, unlocked_client):
        created = create_document(unlocked_client)
        response = unlocked_client.post(f"/api/wiki/documents/{created['id']}/pin")
        assert response.status_code == 200
        assert response.json()["is_pinned"] is True


@pytest.mark.django_db
class TestRestrictedDocuments:
    """Tests for restricted content visibility."""

    def test_restricted_content_hidden_until_unlocked(self, unlocked_client, site_password):
        """Test that locked clients get metadata only, unlocked clients get content."""
        created = create_document(unlocked_client, title="Secret", content="body", category="IT", restricted=True)
        assert created["restricted"] is True
        unlocked_client.delete("/api/wiki/gate")

        response = unlocked_client.get(f"/api/wiki/documents/{created['id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Secret"
        assert data["content"] is None
        assert data["locked"] is True

        unlocked_client.post("/api/wiki/gate", {"password": site_password}, format="json")
        data = unlocked_client.get(f"/api/wiki/documents/{created['id']}").json()
        assert data["content"] == "body"
        assert data["locked"] is False

    def test_list_visibility(self, unlocked_client):
        """Test that locked listings never include restricted documents."""
        public = create_document(unlocked_client, title="Public")
        secret = create_document(unlocked_client, title="Secret", restricted=True)

        unlocked_ids = [d["id"] for d in unlocked_client.get("/api/wiki/documents").json()]
        assert sorted(unlocked_ids) == sorted([public["id"], secret["id"]])

        public_only = unlocked_client.get("/api/wiki/documents?include_restricted=false").json()
        assert [d["id"] for d in public_only] == [public["id"]]

        unlocked_client.delete("/api/wiki/gate")
        locked = unlocked_client.get("/api/wiki/documents").json()
        assert [d["id"] for d in locked] == [public["id"]]

    def test_locked_cannot_request_restricted(self, api_client):
        response = api_client.get("/api/wiki/documents?include_restricted=true")
        assert response.status_code == 403
        assert response.json()["error"] == "locked"

    def test_bucket_move(self, unlocked_client):
        """Test that restricting a document removes it from the public listing."""
        created = create_document(unlocked_client, title="Doc", content="x")

        response = unlocked_client.patch(
            f"/api/wiki/documents/{created['id']}", {"restricted": True}, format="json"
        )
        assert response.status_code == 200
        assert response.json()["content"] == "x"

        public = unlocked_client.get("/api/wiki/documents?include_restricted=false").json()
        everything = unlocked_client.get("/api/wiki/documents?include_restricted=true").json()
        assert created["id"] not in [d["id"] for d in public]
        assert created["id"] in [d["id"] for d in everything]

    def test_crypto_failure_reported(self, unlocked_client, secret_dir):
        """Test that an undecryptable document gives crypto_error, others still work."""
        public = create_document(unlocked_client, title="Public")
        secret = create_document(unlocked_client, title="Secret", restricted=True)
        # The session is already unlocked, so only stored documents are affected
        (secret_dir / KEY_FILENAME).unlink()

        response = unlocked_client.get(f"/api/wiki/documents/{secret['id']}")
        assert response.status_code == 500
        assert response.json()["error"] == "crypto_error"

        assert unlocked_client.get(f"/api/wiki/documents/{public['id']}").status_code == 200
        listing = {d["id"]: d for d in unlocked_client.get("/api/wiki/documents").json()}
        assert listing[secret["id"]]["unreadable"] is True
        assert listing[public["id"]]["content"] == "x"
