from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from bazaar.access.policies import Actor, manageable_vendors, visible_vendors
from bazaar.common.constants import ADMIN_ROLES, VENDOR_ROLES
from bazaar.common.utils import now, parse_uuid
from bazaar.schema.full_schema import Role, Users, Vendor
from bazaar.vendors.constants import VENDOR_DEFAULT_ROLE, logger
from bazaar.vendors.models import VendorIn


def vendor_out(v: Vendor, with_user: bool = True) -> dict:
    out = {
        "public_id": str(v.public_id),
        "business_name": v.business_name,
        "business_type": v.business_type,
        "business_email": v.business_email,
        "business_phone": v.business_phone,
        "website_url": v.website_url,
        "description": v.description,
        "logo_url": v.logo_url,
        "is_verified": v.is_verified,
        "is_active": v.is_active,
        "created_at": v.created_at,
    }
    if with_user and v.user is not None:
        out["user"] = {
            "public_id": str(v.user.public_id),
            "username": v.user.username,
            "first_name": v.user.first_name,
            "last_name": v.user.last_name,
            "avatar_url": v.user.avatar_url,
        }
    return out


async def fetch_vendors(session) -> list[Vendor]:
    stmt = (select(Vendor)
            .options(selectinload(Vendor.user))
            .where(visible_vendors())
            .order_by(Vendor.business_name, Vendor.id))
    return list((await session.execute(stmt)).scalars().all())


async def vendor_by_pid(session, vendor_pid: str, actor: Optional[Actor] = None, for_update: bool = False) -> Vendor:
    pid = parse_uuid(vendor_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor not found")

    cond = manageable_vendors(actor) if actor is not None else visible_vendors()
    stmt = select(Vendor).options(selectinload(Vendor.user)).where(Vendor.public_id == pid, cond)
    if for_update:
        stmt = stmt.with_for_update()
    vendor = (await session.execute(stmt)).scalar_one_or_none()
    if not vendor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor not found")
    return vendor


async def vendors_owned_by(session, user_id: int) -> list[Vendor]:
    stmt = select(Vendor).where(Vendor.user_id == user_id, Vendor.deleted_at.is_(None)).order_by(Vendor.id)
    return list((await session.execute(stmt)).scalars().all())


async def register_vendor(session, actor: Actor, payload: VendorIn) -> tuple[Vendor, bool]:
    """Create the caller's vendor profile. Buyers are promoted to the vendor role,
    which bumps role_version. Returns (vendor, role_changed)."""

    if await vendors_owned_by(session, actor.user_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already has a vendor profile")

    vendor = Vendor(user_id=actor.user_id, **payload.model_dump())
    session.add(vendor)

    role_changed = False
    if actor.role not in ADMIN_ROLES and actor.role not in VENDOR_ROLES:
        role = (await session.execute(select(Role).where(Role.name == VENDOR_DEFAULT_ROLE))).scalar_one_or_none()
        if role is None:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Vendor role is not configured")

        user = (await session.execute(select(Users).where(Users.id == actor.user_id).with_for_update())).scalar_one()
        user.role_id = role.id
        user.role_version = user.role_version + 1
        user.updated_at = now()
        session.add(user)
        role_changed = True

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("vendor.register.integrity_error", extra={"user_public_id": actor.public_id})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Vendor profile could not be created")

    return vendor, role_changed


def apply_updates(vendor: Vendor, updates: dict) -> Vendor:
    for field, value in updates.items():
        setattr(vendor, field, value)
    vendor.updated_at = now()
    return vendor
