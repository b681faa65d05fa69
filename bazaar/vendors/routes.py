from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor, require_roles
from bazaar.access.policies import Actor
from bazaar.common.constants import ADMIN_ROLES
from bazaar.common.utils import success_response
from bazaar.db.dependencies import get_session
from bazaar.vendors.constants import logger
from bazaar.vendors.models import VendorIn, VendorUpdateIn, VendorVerifyIn
from bazaar.vendors.repository import (apply_updates, fetch_vendors, register_vendor, vendor_by_pid, vendor_out,
                                       vendors_owned_by)

vendors_public_router = APIRouter()
vendors_admin_router = APIRouter()


@vendors_public_router.get("")
async def get_vendors(session: AsyncSession = Depends(get_session)):
    vendors = await fetch_vendors(session)
    return success_response([vendor_out(v) for v in vendors])


@vendors_public_router.get("/me")
async def get_my_vendors(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    vendors = await vendors_owned_by(session, actor.user_id)
    return success_response([vendor_out(v, with_user=False) for v in vendors])


@vendors_public_router.get("/{vendor_public_id}")
async def get_vendor(vendor_public_id: str, session: AsyncSession = Depends(get_session)):
    vendor = await vendor_by_pid(session, vendor_public_id)
    return success_response(vendor_out(vendor))


@vendors_public_router.post("", status_code=status.HTTP_201_CREATED)
async def create_vendor(payload: VendorIn, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    logger.info("vendor.register.attempt", extra={"user_public_id": actor.public_id})

    vendor, role_changed = await register_vendor(session, actor, payload)
    out = vendor_out(vendor, with_user=False)
    await session.commit()

    logger.info("vendor.register.success", extra={"vendor_public_id": out["public_id"], "role_changed": role_changed})
    # a role change invalidates the current access token, clients call /auth/refresh
    return success_response({"vendor": out, "refresh_required": role_changed}, status_code=status.HTTP_201_CREATED)


@vendors_public_router.patch("/{vendor_public_id}")
async def update_vendor(vendor_public_id: str, payload: VendorUpdateIn, actor: Actor = Depends(get_actor),
                        session: AsyncSession = Depends(get_session)):

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    vendor = await vendor_by_pid(session, vendor_public_id, actor=actor, for_update=True)
    apply_updates(vendor, updates)
    session.add(vendor)
    out = vendor_out(vendor)
    await session.commit()

    logger.info("vendor.updated", extra={"vendor_public_id": out["public_id"], "fields": sorted(updates)})
    return success_response(out)


@vendors_admin_router.patch("/{vendor_public_id}/verify", dependencies=[require_roles(*ADMIN_ROLES)])
async def verify_vendor(vendor_public_id: str, payload: VendorVerifyIn, actor: Actor = Depends(get_actor),
                        session: AsyncSession = Depends(get_session)):

    vendor = await vendor_by_pid(session, vendor_public_id, actor=actor, for_update=True)
    apply_updates(vendor, payload.model_dump(exclude_none=True))
    session.add(vendor)
    out = vendor_out(vendor)
    await session.commit()

    logger.info("vendor.verified", extra={"vendor_public_id": out["public_id"], "is_verified": out["is_verified"]})
    return success_response(out)
