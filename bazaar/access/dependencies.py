from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.policies import Actor
from bazaar.config.admin_config import admin_config
from bazaar.db.dependencies import get_session
from bazaar.schema.full_schema import Permission, Role, RolePermission


def get_optional_actor(request: Request) -> Optional[Actor]:
    user_identifier = getattr(request.state, "user_identifier", None)
    if not user_identifier:
        return None
    return Actor(
        user_id=user_identifier,
        public_id=request.state.user_public_id,
        role=getattr(request.state, "user_role", None),
        session_pid=getattr(request.state, "session_pid", None),
    )


def get_actor(request: Request) -> Actor:
    actor = get_optional_actor(request)
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return actor


def require_permissions(perm:str):
    async def _checker(actor: Actor = Depends(get_actor),
        session: AsyncSession = Depends(get_session),):

        if not actor.role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,detail="User doesn't have any permissions")

        # check if the required permission belongs to the user's role
        stmt=(
            select(RolePermission.id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .join(Role, Role.id == RolePermission.role_id)
            .where(Permission.name == perm, Role.name == actor.role, Role.is_active.is_(True)).limit(1)
        )

        res=await session.execute(stmt)
        res=res.scalar_one_or_none()

        if not res:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,detail=f"Missing permission {perm}")

        return True

    return Depends(_checker)


def require_roles(*roles: str):
    allowed = frozenset(roles)

    def _checker(actor: Actor = Depends(get_actor)):
        if actor.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Role not allowed for this action")
        return actor

    return Depends(_checker)


def admin_ip_guard(request: Request):
    allowlist = admin_config.ADMIN_ALLOWLIST_IPS
    if not allowlist:
        return
    ip = request.client.host if request.client else None
    if ip not in allowlist:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin API not reachable from this address")
