import uuid
from datetime import timedelta
import pytest
from sqlalchemy import select, update
from bazaar.auth.constants import LOGIN_ATTEMPT_RETENTION, MAX_LOGIN_ATTEMPTS
from bazaar.common.utils import now
from bazaar.db.connection import async_session
from bazaar.schema.full_schema import CsrfToken, LoginAttempt, PasswordResetToken, UserSession, Users
from conftest import bearer, login, new_user, signup, strong_pass, unique_user, url_prefix

pytestmark = pytest.mark.asyncio


async def test_signup_returns_public_user_and_dev_token(ac_client):
    payload = unique_user("signup")
    data = await signup(ac_client, payload)

    assert data["user"]["email"] == payload["email"]
    assert data["user"]["username"] == payload["username"]
    assert data["email_verification_required"] is True
    assert data["verification_token"]


async def test_signup_duplicate_email_and_username(ac_client):
    payload = unique_user("dupe")
    await signup(ac_client, payload)

    same_email = {**unique_user("other"), "email": payload["email"]}
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json=same_email)
    assert resp.status_code == 409

    same_username = {**unique_user("other"), "username": payload["username"]}
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json=same_username)
    assert resp.status_code == 409


@pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "NoDigitsHere!", "NoSpecial123"])
async def test_signup_rejects_weak_password(ac_client, password):
    payload = {**unique_user("weak"), "password": password, "confirm_password": password}
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json=payload)
    assert resp.status_code == 422
    assert resp.json()["status"] == "error"


async def test_signup_rejects_mismatched_passwords(ac_client):
    payload = {**unique_user("mismatch"), "confirm_password": "Different!Pass9"}
    resp = await ac_client.post(f"{url_prefix}/auth/signup", json=payload)
    assert resp.status_code == 422


async def test_login_by_email_and_username(ac_client):
    payload = unique_user("login")
    await signup(ac_client, payload)

    by_email = await login(ac_client, payload["email"].upper())
    assert by_email["token_type"] == "bearer"
    assert by_email["user"]["role"] == "buyer"
    assert by_email["session_token"] and by_email["refresh_token"]

    by_username = await login(ac_client, payload["username"])
    assert by_username["session_public_id"] != by_email["session_public_id"]


async def test_login_errors_are_generic(ac_client):
    payload = unique_user("generic")
    await signup(ac_client, payload)

    wrong_pass = await ac_client.post(f"{url_prefix}/auth/login",
                                      json={"email_or_username": payload["email"], "password": "Wrong!Pass123"})
    unknown = await ac_client.post(f"{url_prefix}/auth/login",
                                   json={"email_or_username": "nobody@bazaarmail.com", "password": strong_pass})

    assert wrong_pass.status_code == unknown.status_code == 401
    assert wrong_pass.json()["error"]["details"] == unknown.json()["error"]["details"]


async def test_lockout_after_repeated_failures(ac_client):
    payload = unique_user("locked")
    await signup(ac_client, payload)

    for _ in range(5):
        resp = await ac_client.post(f"{url_prefix}/auth/login",
                                    json={"email_or_username": payload["email"], "password": "Wrong!Pass123"})
        assert resp.status_code == 401

    # correct password no longer helps while the lock holds
    resp = await ac_client.post(f"{url_prefix}/auth/login",
                                json={"email_or_username": payload["email"], "password": strong_pass})
    assert resp.status_code == 423


async def test_protected_route_requires_token(ac_client):
    resp = await ac_client.get(f"{url_prefix}/auth/session")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "INVALID_AUTH"

    resp = await ac_client.get(f"{url_prefix}/auth/session", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


async def test_session_accepts_access_and_session_tokens(ac_client):
    user = await new_user(ac_client, "sess")

    resp = await ac_client.get(f"{url_prefix}/auth/session", headers=user["headers"])
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["email"] == user["email"]
    assert data["session"]["public_id"] == user["session_public_id"]

    resp = await ac_client.get(f"{url_prefix}/auth/session",
                               headers={"Authorization": f"Bearer {user['session_token']}"})
    assert resp.status_code == 200


async def test_refresh_rotates_token(ac_client):
    user = await new_user(ac_client, "refresh")

    resp = await ac_client.post(f"{url_prefix}/auth/refresh", headers={"X-Refresh-Token": user["refresh_token"]})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["access_token"]
    assert data["refresh_token"] != user["refresh_token"]

    # the old refresh token was rotated away
    ac_client.cookies.clear()
    resp = await ac_client.post(f"{url_prefix}/auth/refresh", headers={"X-Refresh-Token": user["refresh_token"]})
    assert resp.status_code == 401


async def test_refresh_without_token(ac_client):
    ac_client.cookies.clear()
    resp = await ac_client.post(f"{url_prefix}/auth/refresh")
    assert resp.status_code == 401


async def test_logout_revokes_session(ac_client):
    user = await new_user(ac_client, "logout")

    resp = await ac_client.post(f"{url_prefix}/auth/logout", headers=user["headers"])
    assert resp.status_code == 200

    resp = await ac_client.get(f"{url_prefix}/auth/session", headers=user["headers"])
    assert resp.status_code == 401


async def test_logout_all_revokes_every_session(ac_client):
    user = await new_user(ac_client, "logoutall")
    second = await login(ac_client, user["email"])

    resp = await ac_client.post(f"{url_prefix}/auth/logout-all", headers=user["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["sessions_revoked"] == 2

    resp = await ac_client.get(f"{url_prefix}/auth/session", headers=bearer(second))
    assert resp.status_code == 401


async def test_password_reset_flow(ac_client):
    user = await new_user(ac_client, "reset")

    resp = await ac_client.post(f"{url_prefix}/auth/password/forgot", json={"email": user["email"]})
    assert resp.status_code == 200
    token = resp.json()["data"]["reset_token"]

    new_pass = "N3w!Password"
    resp = await ac_client.post(f"{url_prefix}/auth/password/reset",
                                json={"token": token, "password": new_pass, "confirm_password": new_pass})
    assert resp.status_code == 200

    # sessions from before the reset are gone
    resp = await ac_client.get(f"{url_prefix}/auth/session", headers=user["headers"])
    assert resp.status_code == 401

    await login(ac_client, user["email"], new_pass)

    # single use
    resp = await ac_client.post(f"{url_prefix}/auth/password/reset",
                                json={"token": token, "password": new_pass, "confirm_password": new_pass})
    assert resp.status_code == 400


async def test_password_forgot_unknown_email_looks_the_same(ac_client):
    resp = await ac_client.post(f"{url_prefix}/auth/password/forgot", json={"email": "ghost@bazaarmail.com"})
    assert resp.status_code == 200
    assert "reset_token" not in resp.json()["data"]


async def test_verify_email(ac_client):
    payload = unique_user("verify")
    data = await signup(ac_client, payload)

    resp = await ac_client.post(f"{url_prefix}/auth/verify-email", json={"token": data["verification_token"]})
    assert resp.status_code == 200
    assert resp.json()["data"]["email"] == payload["email"]

    resp = await ac_client.post(f"{url_prefix}/auth/verify-email", json={"token": data["verification_token"]})
    assert resp.status_code == 400

    tokens = await login(ac_client, payload["email"])
    assert tokens["user"]["email_verified"] is True


async def test_csrf_token_is_single_use(ac_client):
    resp = await ac_client.post(f"{url_prefix}/auth/csrf")
    assert resp.status_code == 201
    token = resp.json()["data"]["csrf_token"]

    resp = await ac_client.post(f"{url_prefix}/auth/csrf/validate", json={"token": token})
    assert resp.json()["data"]["valid"] is True

    resp = await ac_client.post(f"{url_prefix}/auth/csrf/validate", json={"token": token})
    assert resp.json()["data"]["valid"] is False


async def test_csrf_token_bound_to_user(ac_client):
    owner = await new_user(ac_client, "csrfowner")
    other = await new_user(ac_client, "csrfother")

    resp = await ac_client.post(f"{url_prefix}/auth/csrf", headers=owner["headers"])
    token = resp.json()["data"]["csrf_token"]

    resp = await ac_client.post(f"{url_prefix}/auth/csrf/validate", json={"token": token}, headers=other["headers"])
    assert resp.json()["data"]["valid"] is False

    resp = await ac_client.post(f"{url_prefix}/auth/csrf/validate", json={"token": token}, headers=owner["headers"])
    assert resp.json()["data"]["valid"] is True


async def test_cleanup_tokens_needs_permission(ac_client, buyer, admin):
    resp = await ac_client.post(f"{url_prefix}/admin/auth/cleanup-tokens", headers=buyer["headers"])
    assert resp.status_code == 403

    resp = await ac_client.post(f"{url_prefix}/admin/auth/cleanup-tokens", headers=admin["headers"])
    assert resp.status_code == 200
    assert set(resp.json()["data"]["removed"]) == {"password_reset_tokens", "user_sessions", "csrf_tokens", "login_attempts"}


async def test_expired_lock_clears_on_next_login(ac_client):
    payload = unique_user("unlocked")
    await signup(ac_client, payload)

    async with async_session() as session:
        await session.execute(update(Users).where(Users.email == payload["email"])
                              .values(failed_login_attempts=MAX_LOGIN_ATTEMPTS, locked_until=now() - timedelta(minutes=1)))
        await session.commit()

    resp = await ac_client.post(f"{url_prefix}/auth/login",
                                json={"email_or_username": payload["email"], "password": strong_pass})
    assert resp.status_code == 200

    async with async_session() as session:
        row = (await session.execute(select(Users.failed_login_attempts, Users.locked_until)
                                     .where(Users.email == payload["email"]))).one()
    assert row.failed_login_attempts == 0
    assert row.locked_until is None


async def test_cleanup_tokens_removes_only_expired_rows(ac_client, admin):
    owner = await new_user(ac_client, "sweeper")
    t = now()
    tag = uuid.uuid4().hex

    async with async_session() as session:
        user_id = (await session.execute(select(Users.id).where(Users.email == owner["email"]))).scalar_one()
        rows = {
            "reset_old": PasswordResetToken(user_id=user_id, token_hash=f"ro-{tag}", expires_at=t - timedelta(hours=1)),
            "reset_live": PasswordResetToken(user_id=user_id, token_hash=f"rl-{tag}", expires_at=t + timedelta(hours=1)),
            "session_old": UserSession(user_id=user_id, token_hash=f"so-{tag}", expires_at=t - timedelta(days=1)),
            "session_live": UserSession(user_id=user_id, token_hash=f"sl-{tag}", expires_at=t + timedelta(days=1)),
            "csrf_old": CsrfToken(user_id=user_id, token_hash=f"co-{tag}", expires_at=t - timedelta(minutes=5)),
            "csrf_live": CsrfToken(user_id=user_id, token_hash=f"cl-{tag}", expires_at=t + timedelta(minutes=5)),
            "attempt_old": LoginAttempt(email=f"old-{tag}@bazaarmail.com", created_at=t - LOGIN_ATTEMPT_RETENTION - timedelta(days=1)),
            "attempt_live": LoginAttempt(email=f"live-{tag}@bazaarmail.com", created_at=t - timedelta(days=1)),
        }
        session.add_all(rows.values())
        await session.commit()
        ids = {name: (type(row), row.id) for name, row in rows.items()}

    resp = await ac_client.post(f"{url_prefix}/admin/auth/cleanup-tokens", headers=admin["headers"])
    assert resp.status_code == 200
    removed = resp.json()["data"]["removed"]
    assert all(removed[key] >= 1 for key in ("password_reset_tokens", "user_sessions", "csrf_tokens", "login_attempts"))

    async with async_session() as session:
        for name, (model, row_id) in ids.items():
            survived = (await session.execute(select(model.id).where(model.id == row_id))).scalar_one_or_none()
            assert (survived is not None) == name.endswith("_live"), name
