from datetime import datetime
from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import delete, select, update
from sqlalchemy.orm import selectinload
from bazaar.auth.constants import (CSRF_TOKEN_LENGTH, CSRF_TOKEN_TTL, LOGIN_ATTEMPT_RETENTION, PASSWORD_RESET_TTL,
                                   REMEMBER_ME_TTL, SESSION_TOKEN_LENGTH, SESSION_TTL, logger)
from bazaar.auth.lockout import LockoutState, after_failure, after_success, is_locked, lazy_unlock
from bazaar.auth.utils import generate_secure_token, hash_token
from bazaar.common.utils import as_aware, now
from bazaar.schema.full_schema import (Credential, CsrfToken, LoginAttempt, PasswordResetToken, Role, UserSession,
                                       Users)


async def user_id_by_email(session,email):
    stmt=select(Users.id).where(Users.email==email)
    result=await session.execute(stmt)
    return result.scalar_one_or_none()


async def user_id_by_username(session,username):
    stmt=select(Users.id).where(Users.username==username)
    result=await session.execute(stmt)
    return result.scalar_one_or_none()


async def user_by_login(session, email_or_username: str, is_email: bool) -> Optional[Users]:
    cond = Users.email == email_or_username.lower() if is_email else Users.username == email_or_username
    stmt = select(Users).options(selectinload(Users.role)).where(cond)
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def user_with_role(session, user_id: int) -> Optional[Users]:
    stmt = select(Users).options(selectinload(Users.role)).where(Users.id == user_id)
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def role_by_name(session, name: str) -> Role:
    q = select(Role).where(Role.name == name)
    role = (await session.execute(q)).scalar_one_or_none()
    if not role:
        role = Role(name=name)
        session.add(role)
        await session.flush()
        logger.warning("auth.role.created_missing", extra={"role": name})
    return role


async def password_hash_for(session, user_id: int) -> Optional[str]:
    stmt = select(Credential.password_hash).where(
        Credential.user_id == user_id, Credential.type == "password", Credential.revoked_at.is_(None))
    res = await session.execute(stmt)
    return res.scalars().first()


async def set_password_hash(session, user_id: int, password_hash: str):
    stmt = (update(Credential)
            .where(Credential.user_id == user_id, Credential.type == "password")
            .values(password_hash=password_hash, updated_at=now())
            .returning(Credential.id))
    res = await session.execute(stmt)
    cred_id = res.scalars().first()
    if not cred_id:
        session.add(Credential(user_id=user_id, type="password", provider="self", password_hash=password_hash))
    await session.execute(
        update(Users).where(Users.id == user_id).values(password_changed_at=now(), updated_at=now())
    )


# ----------------------------------------------------------------------------------------------
# lockout

async def _lockout_row(session, email: str) -> Optional[Users]:
    stmt = select(Users).where(Users.email == email).with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


def _apply_state(user: Users, state: LockoutState):
    user.failed_login_attempts = state.failed_attempts
    user.locked_until = state.locked_until


async def record_login_attempt(session, email: str, ip_address: Optional[str], user_agent: Optional[str],
                               success: bool, failure_reason: Optional[str] = None):
    session.add(LoginAttempt(email=email, ip_address=ip_address, user_agent=user_agent,
                             success=success, failure_reason=failure_reason))

    user = await _lockout_row(session, email)
    if user is not None:
        state = LockoutState(user.failed_login_attempts, user.locked_until)
        new_state = after_success(state) if success else after_failure(state, now())
        _apply_state(user, new_state)
        if new_state.locked_until is not None and state.locked_until is None:
            logger.warning("auth.lockout.engaged", extra={"email": email, "attempts": new_state.failed_attempts})

    await session.flush()


async def is_user_locked(session, email: str, at: Optional[datetime] = None) -> bool:
    at = at or now()
    user = await _lockout_row(session, email)
    if user is None:
        return False

    state = LockoutState(user.failed_login_attempts, as_aware(user.locked_until))
    if is_locked(state, at):
        return True

    unlocked = lazy_unlock(state, at)
    if unlocked != state:
        _apply_state(user, unlocked)
        await session.flush()
        logger.info("auth.lockout.expired", extra={"email": email})
    return False


async def reset_lockout(session, user_id: int):
    await session.execute(
        update(Users).where(Users.id == user_id).values(failed_login_attempts=0, locked_until=None)
    )


# ----------------------------------------------------------------------------------------------
# sessions

async def create_user_session(session, user_id: int, remember_me: bool,
                              ip_address: Optional[str], user_agent: Optional[str]):
    session_plain = generate_secure_token(SESSION_TOKEN_LENGTH)
    refresh_plain = generate_secure_token(SESSION_TOKEN_LENGTH)
    ttl = REMEMBER_ME_TTL if remember_me else SESSION_TTL
    ts = now()

    row = UserSession(
        user_id=user_id,
        token_hash=hash_token(session_plain),
        refresh_token_hash=hash_token(refresh_plain),
        expires_at=ts + ttl,
        remember_me=remember_me,
        ip_address=ip_address,
        user_agent=user_agent,
        last_activity=ts,
    )
    session.add(row)
    await session.flush()
    logger.info("auth.session.created", extra={"session_public_id": str(row.public_id), "remember_me": remember_me})
    return row, session_plain, refresh_plain


async def session_by_refresh_token(session, refresh_plain: str) -> Optional[UserSession]:
    stmt = select(UserSession).where(UserSession.refresh_token_hash == hash_token(refresh_plain)).with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def active_session_by_pid(session, session_pid, user_id: int) -> Optional[UserSession]:
    stmt = select(UserSession).where(
        UserSession.public_id == session_pid,
        UserSession.user_id == user_id,
        UserSession.is_active.is_(True),
        UserSession.expires_at > now(),
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def active_session_by_token(session, session_plain: str) -> Optional[UserSession]:
    stmt = select(UserSession).where(
        UserSession.token_hash == hash_token(session_plain),
        UserSession.is_active.is_(True),
        UserSession.expires_at > now(),
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def rotate_refresh_token(session, user_session: UserSession) -> str:
    refresh_plain = generate_secure_token(SESSION_TOKEN_LENGTH)
    user_session.refresh_token_hash = hash_token(refresh_plain)
    user_session.last_activity = now()
    session.add(user_session)
    await session.flush()
    return refresh_plain


async def deactivate_session(session, session_pid, user_id: int) -> Optional[int]:
    stmt = (update(UserSession)
            .where(UserSession.public_id == session_pid, UserSession.user_id == user_id)
            .values(is_active=False, updated_at=now())
            .returning(UserSession.id))
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def deactivate_all_sessions(session, user_id: int) -> int:
    stmt = (update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .values(is_active=False, updated_at=now()))
    res = await session.execute(stmt)
    return res.rowcount or 0


# ----------------------------------------------------------------------------------------------
# single-use tokens

async def create_password_reset_token(session, user_id: int) -> str:
    plain = generate_secure_token()
    session.add(PasswordResetToken(user_id=user_id, token_hash=hash_token(plain), expires_at=now() + PASSWORD_RESET_TTL))
    await session.flush()
    return plain


async def usable_reset_token(session, plain: str) -> PasswordResetToken:
    stmt = select(PasswordResetToken).where(PasswordResetToken.token_hash == hash_token(plain)).with_for_update()
    row = (await session.execute(stmt)).scalar_one_or_none()

    if row is None or row.used_at is not None or as_aware(row.expires_at) <= now():
        logger.warning("auth.password_reset.invalid_token", extra={"found": row is not None})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")
    return row


async def create_csrf_token(session, user_id: Optional[int]) -> str:
    plain = generate_secure_token(CSRF_TOKEN_LENGTH)
    session.add(CsrfToken(token_hash=hash_token(plain), user_id=user_id, expires_at=now() + CSRF_TOKEN_TTL))
    await session.flush()
    return plain


async def consume_csrf_token(session, plain: str, user_id: Optional[int] = None) -> bool:
    stmt = select(CsrfToken).where(CsrfToken.token_hash == hash_token(plain), CsrfToken.expires_at > now())
    if user_id is not None:
        stmt = stmt.where(CsrfToken.user_id == user_id)

    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is None:
        return False

    await session.delete(row)
    await session.flush()
    return True


async def user_by_verification_token(session, plain: str) -> Optional[Users]:
    stmt = select(Users).where(Users.email_verification_token == hash_token(plain), Users.deleted_at.is_(None))
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def cleanup_expired_tokens(session, at: Optional[datetime] = None) -> dict:
    at = at or now()
    removed = {}

    res = await session.execute(delete(PasswordResetToken).where(PasswordResetToken.expires_at < at))
    removed["password_reset_tokens"] = res.rowcount or 0

    res = await session.execute(delete(UserSession).where(UserSession.expires_at < at))
    removed["user_sessions"] = res.rowcount or 0

    res = await session.execute(delete(CsrfToken).where(CsrfToken.expires_at < at))
    removed["csrf_tokens"] = res.rowcount or 0

    res = await session.execute(delete(LoginAttempt).where(LoginAttempt.created_at < at - LOGIN_ATTEMPT_RETENTION))
    removed["login_attempts"] = res.rowcount or 0

    return removed


async def active_user_by_email(session, email: str):
    stmt = select(Users.id, Users.email).where(Users.email == email, Users.is_active.is_(True), Users.deleted_at.is_(None))
    return (await session.execute(stmt)).first()
