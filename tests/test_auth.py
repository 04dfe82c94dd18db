# tests/test_auth.py

from __future__ import annotations


def test_first_login_creates_user(client, store) -> None:
    resp = client.post("/auth/login", json={"email": "a@x.com", "name": "Ada"})

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["error"] is False
    assert body["type"] == "new"
    assert body["data"]["acknowledged"] is True
    assert isinstance(body["data"]["insertedId"], str)

    (user,) = store.users.values()
    assert user["email"] == "a@x.com"
    assert user["name"] == "Ada"


def test_repeated_login_returns_existing_user(client, store) -> None:
    first = client.post("/auth/login", json={"email": "a@x.com"}).json()
    second = client.post("/auth/login", json={"email": "a@x.com"})
    third = client.post("/auth/login", json={"email": "a@x.com", "name": "other"})

    assert second.status_code == 200
    assert second.json()["type"] == "existing"
    assert second.json()["data"]["_id"] == first["data"]["insertedId"]
    assert third.json()["data"]["_id"] == first["data"]["insertedId"]
    # existing users are never modified
    assert "name" not in third.json()["data"]
    assert len(store.users) == 1


def test_login_without_email_is_rejected(client, store) -> None:
    resp = client.post("/auth/login", json={"name": "nobody"})

    assert resp.status_code == 422
    assert resp.json()["success"] is False
    assert store.calls == []


def test_login_store_failure_answers_500(client, store) -> None:
    store.fail = True

    resp = client.post("/auth/login", json={"email": "a@x.com"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": True, "message": "Failed to login user"}
