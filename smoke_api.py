"""
Smoke test script to verify the wiki API is working.
Run this after starting the development server and setting a password:

    python manage.py set_wiki_password --password <password>
    python manage.py runserver
    WIKI_PASSWORD=<password> python smoke_api.py
"""

import os

import requests

BASE_URL = os.environ.get("WIKI_BASE_URL", "http://127.0.0.1:8000/api/wiki")
PASSWORD = os.environ.get("WIKI_PASSWORD", "")


def check_health():
    """Check the health endpoint."""
    print("Testing health check...")
    response = requests.get(f"{BASE_URL}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    print("✓ Health check passed")


def check_document_lifecycle():
    """Full lifecycle: unlock, create restricted, read locked/unlocked, move, delete."""
    session = requests.Session()

    # 1. Unlock
    print("\nTesting unlock...")
    response = session.post(f"{BASE_URL}/gate", json={"password": "definitely wrong"})
    assert response.status_code == 401, f"Status: {response.status_code}, Body: {response.text}"
    response = session.post(f"{BASE_URL}/gate", json={"password": PASSWORD})
    assert response.status_code == 200, f"Status: {response.status_code}, Body: {response.text}"
    print("✓ Unlocked")

    # 2. Create restricted document
    print("\nTesting restricted document creation...")
    response = session.post(
        f"{BASE_URL}/documents",
        json={"title": "Smoke test", "content": "# Secret\nbody", "category": "IT", "restricted": True},
    )
    assert response.status_code == 201, f"Status: {response.status_code}, Body: {response.text}"
    doc_id = response.json()["id"]
    print(f"✓ Created document {doc_id}")

    # 3. Read while locked
    print("\nTesting locked read...")
    session.delete(f"{BASE_URL}/gate")
    data = session.get(f"{BASE_URL}/documents/{doc_id}").json()
    assert data["content"] is None and data["locked"] is True, f"Got: {data}"
    print("✓ Content hidden while locked")

    # 4. Read while unlocked
    session.post(f"{BASE_URL}/gate", json={"password": PASSWORD})
    data = session.get(f"{BASE_URL}/documents/{doc_id}").json()
    assert data["content"] == "# Secret\nbody", f"Got: {repr(data['content'])}"
    print("✓ Content visible after unlock")

    # 5. Move to the public bucket
    print("\nTesting bucket move...")
    response = session.patch(f"{BASE_URL}/documents/{doc_id}", json={"restricted": False})
    assert response.status_code == 200
    public = requests.get(f"{BASE_URL}/documents").json()
    assert doc_id in [d["id"] for d in public]
    print("✓ Document visible to locked clients after move")

    # 6. Delete
    print("\nTesting document deletion...")
    response = session.delete(f"{BASE_URL}/documents/{doc_id}")
    assert response.status_code == 204
    response = session.get(f"{BASE_URL}/documents/{doc_id}")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
    print("✓ Document not found (as expected)")


if __name__ == "__main__":
    try:
        check_health()
        check_document_lifecycle()
        print("\n" + "=" * 50)
        print("✓ All checks passed!")
        print("=" * 50)
    except AssertionError as e:
        print(f"\n✗ Check failed: {e}")
    except requests.exceptions.ConnectionError:
        print("\n✗ Could not connect to server. Is it running?")
        print("Start it with: python manage.py runserver")
