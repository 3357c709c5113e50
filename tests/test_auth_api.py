from __future__ import annotations

from collections.abc import Callable

from fastapi.testclient import TestClient

from conftest import PASSWORD
from salesdesk.users.models import User


def _login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_login_returns_token_pair_and_user(anon_client: TestClient, make_user: Callable[..., User]) -> None:
    user = make_user("MANAGER", email="manager@example.com")

    response = _login(anon_client, "Manager@Example.com")
    assert response.status_code == 200
    body = response.json()
    assert body["access_token"]
    assert body["refresh_token"]
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == str(user.id)
    assert "password_hash" not in body["user"]


def test_login_rejects_bad_password_and_inactive_user(anon_client: TestClient, make_user: Callable[..., User]) -> None:
    make_user(email="active@example.com")
    make_user(email="inactive@example.com", is_active=False)

    wrong = _login(anon_client, "active@example.com", "not-the-password")
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "Invalid credentials"
    assert wrong.json()["code"] == "UNAUTHORIZED"

    inactive = _login(anon_client, "inactive@example.com")
    assert inactive.status_code == 401
    assert inactive.json()["message"] == "Account is deactivated"


def test_me_requires_bearer_token(anon_client: TestClient, make_user: Callable[..., User]) -> None:
    make_user(email="me@example.com")

    anonymous = anon_client.get("/api/auth/me")
    assert anonymous.status_code == 401
    assert anonymous.headers.get("www-authenticate") == "Bearer"

    garbage = anon_client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert garbage.status_code == 401

    token = _login(anon_client, "me@example.com").json()["access_token"]
    me = anon_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "me@example.com"


def test_refresh_rotates_refresh_token(anon_client: TestClient, make_user: Callable[..., User]) -> None:
    make_user(email="rotate@example.com")
    first = _login(anon_client, "rotate@example.com").json()

    refreshed = anon_client.post("/api/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert refreshed.status_code == 200
    second = refreshed.json()
    assert second["refresh_token"] != first["refresh_token"]

    reused = anon_client.post("/api/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert reused.status_code == 401
    assert reused.json()["message"] == "Access denied"

    # An access token is signed with a different secret and cannot be used to refresh.
    wrong_kind = anon_client.post("/api/auth/refresh", json={"refresh_token": second["access_token"]})
    assert wrong_kind.status_code == 401


def test_logout_revokes_refresh_token(anon_client: TestClient, make_user: Callable[..., User]) -> None:
    make_user(email="logout@example.com")
    tokens = _login(anon_client, "logout@example.com").json()

    logout = anon_client.post("/api/auth/logout", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert logout.status_code == 200
    assert logout.json() == {"message": "Logged out successfully"}

    refreshed = anon_client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 401


def test_deactivated_user_token_is_rejected(
    anon_client: TestClient,
    make_user: Callable[..., User],
    db_session,
) -> None:
    user = make_user(email="later-off@example.com")
    token = _login(anon_client, "later-off@example.com").json()["access_token"]

    user.is_active = False
    db_session.commit()

    response = anon_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
