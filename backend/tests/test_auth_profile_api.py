"""Tests for authentication, session resolution and profile endpoints."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from httpx import AsyncClient
from jose import jwt
from sqlalchemy.exc import OperationalError

from insightnotes.api.routes import auth as auth_routes
from insightnotes.errors import SessionUnknownError
from insightnotes.services.session import (
    create_access_token,
    decode_access_token,
    resolve_current_user_id,
    resolve_identity,
)


# =============================================================================
# SESSION RESOLUTION
# =============================================================================


def test_access_token_round_trip(settings):
    identity_id = uuid4()
    token = create_access_token(identity_id, settings, name="Ada")

    assert decode_access_token(token, settings) == identity_id
    claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    assert claims["name"] == "Ada"


def test_expired_or_foreign_tokens_are_rejected(settings):
    expired = jwt.encode(
        {"sub": str(uuid4()), "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    forged = jwt.encode({"sub": str(uuid4())}, "another-secret", algorithm="HS256")
    not_a_uuid = jwt.encode({"sub": "ada"}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    assert decode_access_token(expired, settings) is None
    assert decode_access_token(forged, settings) is None
    assert decode_access_token(not_a_uuid, settings) is None


async def test_resolve_identity(db, identity, settings):
    token = create_access_token(identity.id, settings)

    assert await resolve_current_user_id(db, token, settings) == identity.id
    assert await resolve_identity(db, None, settings) is None
    assert await resolve_identity(db, create_access_token(uuid4(), settings), settings) is None


class _BrokenSession:
    async def get(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))


async def test_identity_lookup_failure_is_session_unknown(settings):
    token = create_access_token(uuid4(), settings)
    with pytest.raises(SessionUnknownError):
        await resolve_identity(_BrokenSession(), token, settings)


# =============================================================================
# AUTH ROUTES
# =============================================================================


async def test_google_login_creates_and_reuses_identity(client: AsyncClient, monkeypatch):
    def fake_verify(token, settings):
        assert token == "google-id-token"
        return {
            "iss": "accounts.google.com",
            "sub": "google-sub-new",
            "email": "new@example.com",
            "email_verified": True,
            "name": "New Person",
        }

    monkeypatch.setattr(auth_routes, "verify_google_id_token", fake_verify)

    response = await client.post("/auth/google", json={"id_token": "google-id-token"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert "access_token=" in response.headers["set-cookie"]

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    response = await client.get("/auth/me", headers=headers)
    assert response.status_code == 200
    me = response.json()
    assert me["id"] == body["identity_id"]
    assert me["provider"] == "google"
    assert me["email"] == "new@example.com"
    assert me["display_name"] == "New Person"

    response = await client.post("/auth/google", json={"id_token": "google-id-token"})
    assert response.json()["identity_id"] == body["identity_id"]


async def test_google_login_ignores_unverified_email(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(
        auth_routes,
        "verify_google_id_token",
        lambda token, settings: {"iss": "accounts.google.com", "sub": "sub-x", "email": "x@example.com"},
    )

    response = await client.post("/auth/google", json={"id_token": "t"})
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    response = await client.get("/auth/me", headers=headers)
    assert response.json()["email"] is None


async def test_google_login_with_invalid_token_is_unauthenticated(client: AsyncClient, monkeypatch):
    def reject(token, settings):
        raise ValueError("Token expired")

    monkeypatch.setattr(auth_routes, "verify_google_id_token", reject)

    response = await client.post("/auth/google", json={"id_token": "bad"})
    assert response.status_code == 401
    assert response.json() == {"error": "unauthenticated", "message": "Invalid Google id_token: Token expired"}


async def test_me_requires_session(client: AsyncClient):
    response = await client.get("/auth/me")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_logout_clears_cookie(client: AsyncClient):
    response = await client.post("/auth/logout")
    assert response.status_code == 204
    assert "access_token=" in response.headers["set-cookie"]


# =============================================================================
# PROFILE
# =============================================================================


async def test_profile_is_created_from_display_name(client: AsyncClient, auth_headers, identity):
    response = await client.get("/profile/", headers=auth_headers)
    assert response.status_code == 200
    profile = response.json()
    assert profile["id"] == str(identity.id)
    assert profile["name"] == "Ada Lovelace"
    assert profile["phone"] == ""

    response = await client.get("/profile/", headers=auth_headers)
    assert response.json()["created_at"] == profile["created_at"]


async def test_profile_update(client: AsyncClient, auth_headers):
    await client.get("/profile/", headers=auth_headers)

    response = await client.put("/profile/", json={"name": "Ada King", "phone": "555-0100"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Ada King"
    assert response.json()["phone"] == "555-0100"

    response = await client.put("/profile/", json={"name": "Ada King", "phone": ""}, headers=auth_headers)
    assert response.json()["phone"] is None

    response = await client.get("/profile/", headers=auth_headers)
    assert response.json()["name"] == "Ada King"


async def test_profile_requires_session(client: AsyncClient):
    response = await client.put("/profile/", json={"name": "Nobody"})
    assert response.status_code == 401
