from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor, require_permissions
from bazaar.access.policies import Actor, can_read_login_attempts
from bazaar.auth.dependencies import client_meta
from bazaar.auth.repository import deactivate_all_sessions, set_password_hash
from bazaar.auth.services import user_profile
from bazaar.auth.utils import hash_password, verify_password
from bazaar.common.constants import ADMIN_ROLES
from bazaar.common.utils import success_response, total_pages
from bazaar.db.dependencies import get_session
from bazaar.products.constants import MAX_PAGE_SIZE
from bazaar.user.constants import logger
from bazaar.user.models import ChangePasswordIn, ProfileUpdateIn, RoleChangeIn
from bazaar.user.repository import (change_user_role, get_password_credential, get_user_profile, list_login_attempts,
                                    update_user_profile, userid_by_public_id)

user_router=APIRouter()
user_admin_router=APIRouter()


@user_router.get("/me")
async def get_me(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    user = await get_user_profile(session, actor.user_id)
    return success_response(user_profile(user))


@user_router.patch("/me")
async def update_me(payload: ProfileUpdateIn, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    await update_user_profile(session, actor.user_id, updates)
    await session.commit()

    user = await get_user_profile(session, actor.user_id)
    logger.info("user.profile.updated", extra={"user_public_id": actor.public_id, "fields": sorted(updates)})
    return success_response(user_profile(user))


@user_router.post(path="/me/password")
async def change_password(payload: ChangePasswordIn, actor: Actor = Depends(get_actor),
                          session: AsyncSession = Depends(get_session)):

    curr_pwd_hash = await get_password_credential(session, actor.user_id)
    if not verify_password(payload.current_password, curr_pwd_hash):
        logger.warning("user.password_change.wrong_current", extra={"user_public_id": actor.public_id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Current password is incorrect")

    await set_password_hash(session, actor.user_id, hash_password(payload.new_password))
    revoked = await deactivate_all_sessions(session, actor.user_id)
    await session.commit()

    logger.info("user.password_change.success", extra={"user_public_id": actor.public_id, "sessions_revoked": revoked})
    return success_response({"message": "Password changed successfully, sign in again", "sessions_revoked": revoked})


# -------------------------------------------------------------------------------------------------------------

@user_admin_router.patch("/{user_public_id}/role", dependencies=[require_permissions("user:manage")])
async def set_user_role(user_public_id: str, payload: RoleChangeIn, request: Request,
                        actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    if payload.role in ADMIN_ROLES and not actor.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only a super admin can grant admin roles")

    target_user_id = await userid_by_public_id(session, user_public_id)
    if not target_user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if target_user_id == actor.user_id and payload.role != actor.role:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You cannot change your own role")

    role_version = await change_user_role(session, actor, target_user_id, payload.role, payload.reason,
                                          client_meta(request)["ip_address"])
    await session.commit()

    logger.info("user.role.changed", extra={"target_public_id": user_public_id, "role": payload.role,
                                            "user_public_id": actor.public_id})
    return success_response({"user_public_id": user_public_id, "role": payload.role, "role_version": role_version})


@user_admin_router.get("/login-attempts")
async def get_login_attempts(email: Optional[str] = Query(None), success: Optional[bool] = Query(None),
                             page: int = Query(1, ge=1), limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
                             actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    if not can_read_login_attempts(actor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins only")

    rows, count = await list_login_attempts(session, email, success, page, limit)
    data = [{
        "id": r.id,
        "email": r.email,
        "ip_address": r.ip_address,
        "user_agent": r.user_agent,
        "success": r.success,
        "failure_reason": r.failure_reason,
        "created_at": r.created_at,
    } for r in rows]
    return success_response({"data": data, "count": count, "page": page, "limit": limit,
                             "total_pages": total_pages(count, limit)})
