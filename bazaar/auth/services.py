from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy.exc import IntegrityError
from bazaar.auth.constants import EMAIL_VERIFICATION_TTL, GENERIC_LOGIN_ERROR, logger
from bazaar.auth.models import PasswordResetIn, SignIn, SignupIn
from bazaar.auth.repository import (create_user_session, deactivate_all_sessions, is_user_locked, password_hash_for,
                                    record_login_attempt, reset_lockout, role_by_name, rotate_refresh_token,
                                    session_by_refresh_token, set_password_hash, user_by_login,
                                    user_by_verification_token, user_id_by_email, user_id_by_username,
                                    user_with_role, usable_reset_token)
from bazaar.auth.utils import create_access_token, generate_secure_token, hash_password, hash_token, verify_password
from bazaar.common.utils import as_aware, now
from bazaar.config.settings import config_settings
from bazaar.schema.full_schema import Credential, Users


def _issue_access(user: Users, session_pid) -> str:
    role_name = user.role.name if user.role else None
    return create_access_token(user.public_id, role_name, user.role_version, session_pid)


def user_profile(user: Users) -> dict:
    return {
        "public_id": str(user.public_id),
        "email": user.email,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "avatar_url": user.avatar_url,
        "role": user.role.name if user.role else None,
        "email_verified": user.email_verified,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
    }


async def create_user(session, payload: SignupIn):
    """Create the user, its password credential and a verification token.
    Returns (user, verification_token_plain)."""

    if await user_id_by_email(session, payload.email):
        logger.warning("user.duplicate.email", extra={"email": payload.email})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with email already exists")

    if await user_id_by_username(session, payload.username):
        logger.warning("user.duplicate.username", extra={"username": payload.username})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken")

    verification_plain = generate_secure_token(64)

    try:
        role = await role_by_name(session, config_settings.DEFAULT_ROLE)
        user = Users(
            email=payload.email,
            username=payload.username,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role_id=role.id,
            email_verification_token=hash_token(verification_plain),
            email_verification_expires_at=now() + EMAIL_VERIFICATION_TTL,
        )
        session.add(user)
        await session.flush()

        cred = Credential(user_id=user.id, type="password", provider="self", password_hash=hash_password(payload.password))
        session.add(cred)

        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning("user.create.integrity_error", extra={"email": payload.email})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with that email or username already exists")

    logger.info("user.created", extra={"user_public_id": str(user.public_id), "email": payload.email})
    return user, verification_plain


async def issue_auth_tokens(session, payload: SignIn, ip_address: Optional[str], user_agent: Optional[str]) -> dict:
    identifier = payload.email_or_username.lower() if payload.is_email else payload.email_or_username

    user = await user_by_login(session, identifier, payload.is_email)
    if user is None:
        await record_login_attempt(session, identifier, ip_address, user_agent, False, "Unknown account")
        await session.commit()
        logger.warning("auth.user.not_found", extra={"email_or_username": identifier})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=GENERIC_LOGIN_ERROR)

    email = user.email

    if await is_user_locked(session, email):
        await record_login_attempt(session, email, ip_address, user_agent, False, "Account locked")
        await session.commit()
        logger.warning("auth.login.locked", extra={"email": email})
        raise HTTPException(status_code=status.HTTP_423_LOCKED,
                            detail="Account is temporarily locked due to too many failed login attempts")

    if not user.is_active or user.deleted_at is not None:
        await record_login_attempt(session, email, ip_address, user_agent, False, "Account disabled")
        await session.commit()
        logger.warning("auth.login.disabled", extra={"email": email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=GENERIC_LOGIN_ERROR)

    pwd_hash = await password_hash_for(session, user.id)
    if not pwd_hash or not verify_password(payload.password, pwd_hash):
        await record_login_attempt(session, email, ip_address, user_agent, False, "Invalid password")
        await session.commit()
        logger.warning("auth.user.invalid_credentials", extra={"email": email, "user_public_id": str(user.public_id)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=GENERIC_LOGIN_ERROR)

    await record_login_attempt(session, email, ip_address, user_agent, True)
    user.last_login_at = now()

    user_session, session_plain, refresh_plain = await create_user_session(
        session, user.id, payload.remember_me, ip_address, user_agent)

    access = _issue_access(user, user_session.public_id)
    session_pid = str(user_session.public_id)
    expires_at = user_session.expires_at
    profile = user_profile(user)

    await session.commit()

    return {
        "access_token": access,
        "session_token": session_plain,
        "refresh_token": refresh_plain,
        "session_public_id": session_pid,
        "expires_at": expires_at,
        "user": profile,
    }


async def refresh_session(session, refresh_plain: str) -> dict:
    user_session = await session_by_refresh_token(session, refresh_plain)

    if user_session is None or not user_session.is_active or as_aware(user_session.expires_at) <= now():
        logger.warning("refresh.invalid", extra={"found": user_session is not None})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired refresh token")

    user = await user_with_role(session, user_session.user_id)
    if user is None or not user.is_active or user.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")

    new_refresh = await rotate_refresh_token(session, user_session)
    access = _issue_access(user, user_session.public_id)
    user_pid = str(user.public_id)
    await session.commit()

    return {"access_token": access, "refresh_token": new_refresh, "user_public_id": user_pid}


async def reset_password(session, payload: PasswordResetIn) -> int:
    token_row = await usable_reset_token(session, payload.token)
    user_id = token_row.user_id

    await set_password_hash(session, user_id, hash_password(payload.password))
    token_row.used_at = now()
    session.add(token_row)

    revoked = await deactivate_all_sessions(session, user_id)
    await reset_lockout(session, user_id)
    await session.commit()

    logger.info("auth.password_reset.success", extra={"sessions_revoked": revoked})
    return user_id


async def verify_email(session, token_plain: str) -> Users:
    user = await user_by_verification_token(session, token_plain)
    expires_at = as_aware(user.email_verification_expires_at) if user else None

    if user is None or (expires_at is not None and expires_at <= now()):
        logger.warning("auth.verify_email.invalid_token")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification token")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires_at = None
    session.add(user)
    await session.commit()

    logger.info("auth.verify_email.success", extra={"user_public_id": str(user.public_id)})
    return user
