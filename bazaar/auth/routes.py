from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import  AsyncSession
from bazaar.access.dependencies import get_actor, get_optional_actor, require_permissions
from bazaar.access.policies import Actor
from bazaar.api import version_prefix
from bazaar.auth.constants import ACCESS_TOKEN_TTL_SECONDS, COOKIE_NAME, SESSION_COOKIE_NAME, logger
from bazaar.auth.dependencies import client_meta, refresh_token
from bazaar.auth.models import PasswordResetIn, PasswordResetRequestIn, SignIn, SignupIn, TokenIn
from bazaar.auth.repository import (active_session_by_pid, active_user_by_email, cleanup_expired_tokens, consume_csrf_token,
                                    create_csrf_token, create_password_reset_token, deactivate_all_sessions,
                                    deactivate_session)
from bazaar.auth.services import (create_user, issue_auth_tokens, refresh_session, reset_password, user_profile,
                                  verify_email)
from bazaar.common.utils import as_aware, now, parse_uuid, success_response
from bazaar.config.admin_config import admin_config
from bazaar.db.dependencies import get_session
from bazaar.notifications.mailer import send_email_verification, send_password_reset
from bazaar.user.repository import get_user_profile

current_env = admin_config.ENV
secure_flag = False if current_env == "dev" else True

REFRESH_COOKIE_PATH = f"{version_prefix}/auth/refresh"

auth_router = APIRouter()
auth_admin_router = APIRouter()


@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup_user(payload: SignupIn, background: BackgroundTasks, session: AsyncSession = Depends(get_session)):

    logger.info("signup.attempt", extra={"email": payload.email})

    user, verification_token = await create_user(session, payload)
    background.add_task(send_email_verification, user.email, verification_token)

    resp = {
        "message": "User created successfully.",
        "user": {"public_id": str(user.public_id), "email": user.email, "username": user.username},
        "email_verification_required": not user.email_verified,
    }
    if current_env == "dev":
        resp["verification_token"] = verification_token

    logger.info("signup.success", extra={"email": payload.email})
    return success_response(resp, 201)


@auth_router.post("/login")
async def login_user(request: Request, payload: SignIn, session: AsyncSession = Depends(get_session)):

    logger.info("login.attempt", extra={"email_or_username": payload.email_or_username})

    meta = client_meta(request)
    tokens = await issue_auth_tokens(session, payload, meta["ip_address"], meta["user_agent"])

    resp = {
        "access_token": tokens["access_token"],
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_TTL_SECONDS,
        "session_token": tokens["session_token"],
        "session_public_id": tokens["session_public_id"],
        "session_expires_at": tokens["expires_at"],
        "user": tokens["user"],
    }
    if current_env == "dev":
        resp["refresh_token"] = tokens["refresh_token"]

    response = success_response(resp, 200)

    max_age = int((as_aware(tokens["expires_at"]) - now()).total_seconds())
    response.set_cookie(COOKIE_NAME, tokens["refresh_token"], httponly=True, secure=secure_flag, path=REFRESH_COOKIE_PATH,
                        max_age=max_age, samesite="Lax")
    response.set_cookie(SESSION_COOKIE_NAME, tokens["session_token"], httponly=True, secure=secure_flag, path="/",
                        max_age=max_age, samesite="Lax")

    logger.info("login.success", extra={"user_public_id": tokens["user"]["public_id"]})
    return response


@auth_router.post("/refresh")
async def refresh_auth(refresh_token: Optional[str] = Depends(refresh_token), session: AsyncSession = Depends(get_session)):

    logger.info("refresh.attempt")

    if not refresh_token:
        logger.warning("refresh.failed", extra={"reason": "missing_refresh_token"})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing refresh token")

    tokens = await refresh_session(session, refresh_token)

    resp = {"access_token": tokens["access_token"], "token_type": "bearer", "expires_in": ACCESS_TOKEN_TTL_SECONDS}
    if current_env == "dev":
        resp["refresh_token"] = tokens["refresh_token"]

    response = success_response(resp, 200)
    response.set_cookie(COOKIE_NAME, tokens["refresh_token"], httponly=True, secure=secure_flag, path=REFRESH_COOKIE_PATH,
                        samesite="Lax")

    logger.info("refresh.success", extra={"user_public_id": tokens["user_public_id"]})
    return response


@auth_router.post("/logout")
async def logout(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    await deactivate_session(session, parse_uuid(actor.session_pid), actor.user_id)
    await session.commit()

    res = success_response({"message": "Logged out successfully."}, 200)
    res.delete_cookie(key=COOKIE_NAME, path=REFRESH_COOKIE_PATH)
    res.delete_cookie(key=SESSION_COOKIE_NAME, path="/")

    logger.info("logout.success", extra={"user_public_id": actor.public_id})
    return res


@auth_router.post("/logout-all")
async def logout_all(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    revoked = await deactivate_all_sessions(session, actor.user_id)
    await session.commit()

    res = success_response({"message": "Logged out from all sessions.", "sessions_revoked": revoked}, 200)
    res.delete_cookie(key=COOKIE_NAME, path=REFRESH_COOKIE_PATH)
    res.delete_cookie(key=SESSION_COOKIE_NAME, path="/")

    logger.info("logout_all.success", extra={"user_public_id": actor.public_id, "sessions_revoked": revoked})
    return res


@auth_router.get("/session")
async def current_session(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    user = await get_user_profile(session, actor.user_id)
    user_session = await active_session_by_pid(session, parse_uuid(actor.session_pid), actor.user_id)
    if not user_session:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or revoked")

    return success_response({
        "user": user_profile(user),
        "session": {
            "public_id": str(user_session.public_id),
            "expires_at": user_session.expires_at,
            "remember_me": user_session.remember_me,
            "ip_address": user_session.ip_address,
            "user_agent": user_session.user_agent,
            "last_activity": user_session.last_activity,
            "created_at": user_session.created_at,
        },
    })


@auth_router.post("/password/forgot")
async def request_password_reset(payload: PasswordResetRequestIn, background: BackgroundTasks,
                                 session: AsyncSession = Depends(get_session)):

    user = await active_user_by_email(session, payload.email)

    resp = {"message": "If an account exists for that email, a reset link has been sent."}

    if user:
        token = await create_password_reset_token(session, user.id)
        await session.commit()
        background.add_task(send_password_reset, user.email, token)
        if current_env == "dev":
            resp["reset_token"] = token
        logger.info("auth.password_reset.requested", extra={"email": payload.email})
    else:
        logger.info("auth.password_reset.unknown_email", extra={"email": payload.email})

    return success_response(resp, 200)


@auth_router.post("/password/reset")
async def password_reset(payload: PasswordResetIn, session: AsyncSession = Depends(get_session)):
    await reset_password(session, payload)
    return success_response({"message": "Password updated. Sign in with the new password."}, 200)


@auth_router.post("/verify-email")
async def verify_email_address(payload: TokenIn, session: AsyncSession = Depends(get_session)):
    user = await verify_email(session, payload.token)
    return success_response({"message": "Email verified.", "email": user.email}, 200)


@auth_router.post("/csrf")
async def generate_csrf(actor: Optional[Actor] = Depends(get_optional_actor), session: AsyncSession = Depends(get_session)):
    token = await create_csrf_token(session, actor.user_id if actor else None)
    await session.commit()
    return success_response({"csrf_token": token}, 201)


@auth_router.post("/csrf/validate")
async def validate_csrf(payload: TokenIn, actor: Optional[Actor] = Depends(get_optional_actor),
                        session: AsyncSession = Depends(get_session)):
    valid = await consume_csrf_token(session, payload.token, actor.user_id if actor else None)
    await session.commit()
    if not valid:
        logger.warning("auth.csrf.invalid")
    return success_response({"valid": valid}, 200)


# -------------------------------------------------------------------------------------------------------------

@auth_admin_router.post("/cleanup-tokens", dependencies=[require_permissions("maintenance:run")])
async def run_token_cleanup(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    removed = await cleanup_expired_tokens(session)
    await session.commit()
    logger.info("maintenance.cleanup_tokens", extra={"removed": removed, "user_public_id": actor.public_id})
    return success_response({"removed": removed}, 200)


