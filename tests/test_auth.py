import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.auth import security
from app.models.coaching import Client, ClientInvitation, ClientTrainerRelationship, TrainerBrand
from app.models.enums import InvitationStatus, Role
from app.models.user import User
from app.config import settings

from conftest import create_user, login_headers


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, db_session: AsyncSession):
    email = "test@example.com"
    password = "password123"
    user = User(email=email, hashed_password=security.get_password_hash(password), role=Role.TRAINER)
    db_session.add(user)
    await db_session.commit()

    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": email, "password": password}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert "access_token" in data["data"]
    assert "refresh_token" in data["data"]
    assert data["data"]["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_login_invalid_credentials(client: AsyncClient):
    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": "wrong@example.com", "password": "wrongpassword"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_rejects_empty_fields(client: AsyncClient):
    response = await client.post(f"{settings.API_V1_STR}/auth/login", json={"email": "", "password": ""})
    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "Validation Error"
    assert "request_id" in body


@pytest.mark.asyncio
async def test_refresh_token_rotation_revokes_old_token(client: AsyncClient, db_session: AsyncSession):
    await create_user(db_session, "rotation@example.com", Role.TRAINER)

    login_response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": "rotation@example.com", "password": "password123"}
    )
    assert login_response.status_code == 200
    first_refresh = login_response.json()["data"]["refresh_token"]

    rotate_response = await client.post(
        f"{settings.API_V1_STR}/auth/refresh",
        headers={"Authorization": f"Bearer {first_refresh}"}
    )
    assert rotate_response.status_code == 200
    second_refresh = rotate_response.json()["data"]["refresh_token"]
    assert second_refresh != first_refresh

    reuse_old_response = await client.post(
        f"{settings.API_V1_STR}/auth/refresh",
        headers={"Authorization": f"Bearer {first_refresh}"}
    )
    assert reuse_old_response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client: AsyncClient, db_session: AsyncSession):
    await create_user(db_session, "access-only@example.com", Role.TRAINER)
    headers = await login_headers(client, "access-only@example.com")

    response = await client.post(f"{settings.API_V1_STR}/auth/refresh", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_invalid(client: AsyncClient):
    response = await client.post(
        f"{settings.API_V1_STR}/auth/refresh",
        headers={"Authorization": "Bearer invalid_token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_rate_limit_triggers(client: AsyncClient):
    for _ in range(5):
        response = await client.post(
            f"{settings.API_V1_STR}/auth/login",
            json={"email": "wrong@example.com", "password": "wrongpassword"},
        )
        assert response.status_code == 401

    blocked = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": "wrong@example.com", "password": "wrongpassword"},
    )
    assert blocked.status_code == 429
    assert "retry" in blocked.json()["detail"].lower()
    assert "retry-after" in blocked.headers


@pytest.mark.asyncio
async def test_refresh_rate_limit_triggers(client: AsyncClient):
    for _ in range(10):
        response = await client.post(
            f"{settings.API_V1_STR}/auth/refresh",
            headers={"Authorization": "Bearer invalid_token"},
        )
        assert response.status_code == 401

    blocked = await client.post(
        f"{settings.API_V1_STR}/auth/refresh",
        headers={"Authorization": "Bearer invalid_token"},
    )
    assert blocked.status_code == 429


@pytest.mark.asyncio
async def test_signup_without_invitation_creates_trainer(client: AsyncClient, db_session: AsyncSession):
    response = await client.post(
        f"{settings.API_V1_STR}/auth/signup",
        json={"email": "New.Trainer@Example.com", "password": "password123", "name": "  Nora  "},
    )
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["email"] == "new.trainer@example.com"
    assert data["role"] == Role.TRAINER.value
    assert data["name"] == "Nora"
    assert data["registration_type"] == "self"

    duplicate = await client.post(
        f"{settings.API_V1_STR}/auth/signup",
        json={"email": "new.trainer@example.com", "password": "password123", "name": "Nora"},
    )
    assert duplicate.status_code == 400


@pytest.mark.asyncio
async def test_signup_rejects_blank_name_and_short_password(client: AsyncClient):
    blank_name = await client.post(
        f"{settings.API_V1_STR}/auth/signup",
        json={"email": "blank@example.com", "password": "password123", "name": "   "},
    )
    assert blank_name.status_code == 422

    short_password = await client.post(
        f"{settings.API_V1_STR}/auth/signup",
        json={"email": "short@example.com", "password": "abc", "name": "Short"},
    )
    assert short_password.status_code == 422


@pytest.mark.asyncio
async def test_signup_with_invitation_creates_linked_client(client: AsyncClient, db_session: AsyncSession):
    trainer = await create_user(db_session, "inviter@gym.com", Role.TRAINER)
    invitation = ClientInvitation(
        email="invitee@example.com",
        trainer_id=trainer.id,
        token="signup-token-123",
        status=InvitationStatus.PENDING,
        expires_at=datetime.now(timezone.utc) + timedelta(days=7),
    )
    db_session.add(invitation)
    await db_session.commit()

    response = await client.post(
        f"{settings.API_V1_STR}/auth/signup",
        json={
            "email": "invitee@example.com",
            "password": "password123",
            "name": "Invited Person",
            "invitation_token": "signup-token-123",
        },
    )
    assert response.status_code == 201, response.text
    assert response.json()["data"]["role"] == Role.CLIENT.value

    client_row = (await db_session.execute(select(Client).where(Client.email == "invitee@example.com"))).scalar_one()
    assert client_row.trainer_id == trainer.id
    assert client_row.name == "invitee"
    relationship = (
        await db_session.execute(
            select(ClientTrainerRelationship).where(ClientTrainerRelationship.client_id == client_row.id)
        )
    ).scalar_one()
    assert relationship.trainer_id == trainer.id
    assert relationship.is_primary is True

    await db_session.refresh(invitation)
    assert invitation.status == InvitationStatus.ACCEPTED


@pytest.mark.asyncio
async def test_signup_with_token_for_other_email_is_rejected(client: AsyncClient, db_session: AsyncSession):
    trainer = await create_user(db_session, "inviter2@gym.com", Role.TRAINER)
    db_session.add(
        ClientInvitation(
            email="someone@example.com",
            trainer_id=trainer.id,
            token="other-email-token",
            status=InvitationStatus.PENDING,
            expires_at=datetime.now(timezone.utc) + timedelta(days=7),
        )
    )
    await db_session.commit()

    response = await client.post(
        f"{settings.API_V1_STR}/auth/signup",
        json={
            "email": "intruder@example.com",
            "password": "password123",
            "name": "Intruder",
            "invitation_token": "other-email-token",
        },
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_me_includes_brand_defaults_for_trainer(client: AsyncClient, db_session: AsyncSession):
    await create_user(db_session, "brandless@gym.com", Role.TRAINER)
    headers = await login_headers(client, "brandless@gym.com")

    response = await client.get(f"{settings.API_V1_STR}/auth/me", headers=headers)
    assert response.status_code == 200
    brand = response.json()["data"]["brand"]
    assert brand["primary_color"] == "#9b87f5"
    assert brand["secondary_color"] == "#E5DEFF"
    assert brand["accent_color"] == "#7E69AB"


@pytest.mark.asyncio
async def test_me_uses_saved_brand(client: AsyncClient, db_session: AsyncSession):
    trainer = await create_user(db_session, "branded@gym.com", Role.TRAINER)
    db_session.add(TrainerBrand(trainer_id=trainer.id, primary_color="#112233"))
    await db_session.commit()
    headers = await login_headers(client, "branded@gym.com")

    response = await client.get(f"{settings.API_V1_STR}/auth/me", headers=headers)
    brand = response.json()["data"]["brand"]
    assert brand["primary_color"] == "#112233"
    assert brand["secondary_color"] == "#E5DEFF"


@pytest.mark.asyncio
async def test_update_me_and_change_password(client: AsyncClient, db_session: AsyncSession):
    await create_user(db_session, "profile@gym.com", Role.TRAINER)
    headers = await login_headers(client, "profile@gym.com")

    blank = await client.put(f"{settings.API_V1_STR}/auth/me", json={"name": "   "}, headers=headers)
    assert blank.status_code == 422
    assert "x-request-id" in blank.headers

    updated = await client.put(f"{settings.API_V1_STR}/auth/me", json={"name": "Renamed"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["name"] == "Renamed"

    wrong = await client.put(
        f"{settings.API_V1_STR}/auth/me/password",
        json={"current_password": "nope", "new_password": "newpassword123"},
        headers=headers,
    )
    assert wrong.status_code == 400

    changed = await client.put(
        f"{settings.API_V1_STR}/auth/me/password",
        json={"current_password": "password123", "new_password": "newpassword123"},
        headers=headers,
    )
    assert changed.status_code == 200

    relogin = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": "profile@gym.com", "password": "newpassword123"},
    )
    assert relogin.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("role", "path"),
    [
        (Role.ADMIN, "/admin"),
        (Role.TRAINER, "/trainer-dashboard"),
        (Role.CLIENT, "/client-dashboard"),
    ],
)
async def test_home_route_depends_on_role(client: AsyncClient, db_session: AsyncSession, role: Role, path: str):
    email = f"home-{role.value.lower()}@gym.com"
    await create_user(db_session, email, role)
    headers = await login_headers(client, email)

    response = await client.get(f"{settings.API_V1_STR}/auth/home", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"role": role.value, "path": path}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.status_code == 200
    assert response.headers["x-request-id"] == "req-123"


def test_password_hash_roundtrip():
    hashed = security.get_password_hash("s3cret-pass")
    assert hashed.startswith("pbkdf2_sha256$")
    assert security.verify_password("s3cret-pass", hashed)
    assert not security.verify_password("other", hashed)
    assert not security.verify_password("s3cret-pass", "not-a-hash")


def test_auth_routes_are_rate_limited():
    from app.core.rate_limit import APPLIED_RATE_LIMITS

    assert {"POST /auth/login", "POST /auth/refresh", "POST /auth/signup"} <= APPLIED_RATE_LIMITS


@pytest.mark.asyncio
async def test_upload_avatar(client: AsyncClient, db_session: AsyncSession, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    await create_user(db_session, "avatar@gym.com", Role.TRAINER)
    headers = await login_headers(client, "avatar@gym.com")

    rejected = await client.post(
        f"{settings.API_V1_STR}/auth/me/avatar",
        files={"file": ("notes.txt", b"not an image", "text/plain")},
        headers=headers,
    )
    assert rejected.status_code == 400

    uploaded = await client.post(
        f"{settings.API_V1_STR}/auth/me/avatar",
        files={"file": ("face.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
        headers=headers,
    )
    assert uploaded.status_code == 200, uploaded.text
    avatar_url = uploaded.json()["data"]["avatar_url"]
    assert avatar_url.startswith("/static/avatars/")
    assert avatar_url.endswith(".png")
    stored = tmp_path / avatar_url.lstrip("/")
    assert stored.read_bytes() == b"\x89PNG\r\n\x1a\nfake"

    replaced = await client.post(
        f"{settings.API_V1_STR}/auth/me/avatar",
        files={"file": ("face2.jpg", b"jpeg-bytes", "image/jpeg")},
        headers=headers,
    )
    assert replaced.status_code == 200
    assert not stored.exists()


class _UnreachableDatabase:
    async def __aenter__(self):
        raise ConnectionRefusedError("database is down")

    async def __aexit__(self, *exc_info):
        return False


@pytest.mark.asyncio
async def test_healthz_reports_database_failure(client: AsyncClient, monkeypatch):
    from app import main

    monkeypatch.setattr(main, "AsyncSessionLocal", _UnreachableDatabase)
    response = await client.get("/healthz")
    assert response.status_code == 503
    assert response.json()["detail"] == "database unavailable"


@pytest.mark.asyncio
async def test_rate_limiter_evicts_idle_keys():
    from app.core.rate_limit import SlidingWindowRateLimiter

    now = [0.0]
    limiter = SlidingWindowRateLimiter(clock=lambda: now[0])
    for address in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        allowed, _ = await limiter.allow(f"login:{address}", limit=1, window_seconds=60)
        assert allowed
    assert len(limiter) == 3

    blocked, retry_after = await limiter.allow("login:10.0.0.1", limit=1, window_seconds=60)
    assert not blocked
    assert retry_after == 61

    now[0] = 61.0
    allowed, _ = await limiter.allow("login:10.0.0.4", limit=1, window_seconds=60)
    assert allowed
    assert len(limiter) == 1
