from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import func, select, update
from sqlalchemy.orm import selectinload
from bazaar.access.policies import Actor, manageable_users
from bazaar.auth.utils import hash_token
from bazaar.common.utils import now, parse_uuid
from bazaar.schema.full_schema import AuditLog, Credential, LoginAttempt, Role, UserSession, Users


def _identity_stmt():
    return (
        select(Users.id, Users.public_id, Users.role_version, Role.name.label("role"), UserSession.public_id.label("sid"))
        .select_from(Users)
        .outerjoin(Role, Role.id == Users.role_id)
        .join(UserSession, UserSession.user_id == Users.id)
        .where(
            Users.deleted_at.is_(None),
            Users.is_active.is_(True),
            UserSession.is_active.is_(True),
            UserSession.expires_at > now(),
        )
    )


async def identity_from_claims(session, claims: dict) -> Optional[dict]:
    user_pid = parse_uuid(claims.get("sub"))
    session_pid = parse_uuid(claims.get("sid"))
    if user_pid is None or session_pid is None:
        return None

    stmt = _identity_stmt().where(Users.public_id == user_pid, UserSession.public_id == session_pid)
    row = (await session.execute(stmt)).first()
    if not row:
        return None
    return {"user_id": row.id, "public_id": str(row.public_id), "role_version": row.role_version,
            "role": row.role, "session_pid": str(row.sid)}


async def identity_from_session_token(session, token_plain: str) -> Optional[dict]:
    stmt = _identity_stmt().where(UserSession.token_hash == hash_token(token_plain))
    row = (await session.execute(stmt)).first()
    if not row:
        return None
    return {"user_id": row.id, "public_id": str(row.public_id), "role_version": row.role_version,
            "role": row.role, "session_pid": str(row.sid)}


async def userid_by_public_id(session,user_pid):
    pid = parse_uuid(user_pid)
    if pid is None:
        return None
    stmt=select(Users.id).where(Users.public_id==pid, Users.deleted_at.is_(None))
    res=await session.execute(stmt)
    return res.scalar_one_or_none()


async def get_user_profile(session, user_id: int) -> Users:
    stmt = select(Users).options(selectinload(Users.role)).where(Users.id == user_id, Users.deleted_at.is_(None))
    user = (await session.execute(stmt)).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def update_user_profile(session, user_id: int, updates: dict):
    stmt = (update(Users)
            .where(Users.id == user_id, Users.deleted_at.is_(None))
            .values(**updates, updated_at=now())
            .returning(Users.id))
    res = await session.execute(stmt)
    if not res.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


async def get_password_credential(session,user_id):
    stmt=select(Credential.password_hash,Credential.revoked_at).where(
        Credential.user_id==user_id,Credential.type=="password")
    res=await session.execute(stmt)
    res=res.first()
    if not res:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No password credential found for user")
    if res[1] is not None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User password credential revoked")

    return res[0]


async def change_user_role(session, actor: Actor, target_user_id: int, role_name: str,
                           reason: Optional[str] = None, ip_address: Optional[str] = None) -> int:
    """Point the user at a new role, bump role_version and audit the change.
    Returns the new role_version."""

    stmt = select(Users).options(selectinload(Users.role)).where(
        Users.id == target_user_id, Users.deleted_at.is_(None), manageable_users(actor)).with_for_update()
    target = (await session.execute(stmt)).scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    role = (await session.execute(select(Role).where(Role.name == role_name, Role.is_active.is_(True)))).scalar_one_or_none()
    if not role:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown role {role_name}")

    old_role = target.role.name if target.role else None
    target.role_id = role.id
    target.role_version = target.role_version + 1
    target.updated_at = now()
    session.add(target)

    session.add(AuditLog(
        user_id=actor.user_id,
        action="role_change",
        table_name="users",
        record_id=str(target.public_id),
        old_values={"role": old_role},
        new_values={"role": role_name, "reason": reason},
        ip_address=ip_address,
    ))
    await session.flush()
    return target.role_version


async def list_login_attempts(session, email: Optional[str], success: Optional[bool], page: int, limit: int):
    conds = []
    if email:
        conds.append(LoginAttempt.email == email.lower())
    if success is not None:
        conds.append(LoginAttempt.success.is_(success))

    count = (await session.execute(select(func.count()).select_from(LoginAttempt).where(*conds))).scalar_one()
    stmt = (select(LoginAttempt)
            .where(*conds)
            .order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc())
            .offset((page - 1) * limit)
            .limit(limit))
    rows = (await session.execute(stmt)).scalars().all()
    return rows, count
