from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor, require_permissions, require_roles
from bazaar.access.policies import Actor
from bazaar.auth.dependencies import client_meta
from bazaar.common.constants import ADMIN_ROLES, VENDOR_ROLES
from bazaar.common.utils import success_response, total_pages
from bazaar.db.dependencies import get_session
from bazaar.orders.constants import logger
from bazaar.orders.models import CancelOrderIn, OrderStatusIn, PlaceOrderIn
from bazaar.orders.repository import (cancel_own_order, change_order_status, fetch_all_orders, fetch_customer_orders,
                                      fetch_vendor_orders, order_by_id, order_by_pid, order_out, place_order_from_cart,
                                      viewer_vendor_ids)
from bazaar.products.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

orders_router = APIRouter()
orders_admin_router = APIRouter()


def _page(rows, count, page, limit, **kw):
    return {
        "data": [order_out(o, **kw) for o in rows],
        "count": count,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(count, limit),
    }


@orders_router.get("")
async def list_my_orders(page: int = Query(1, ge=1), limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                         actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    rows, count = await fetch_customer_orders(session, actor, page, limit)
    return success_response(_page(rows, count, page, limit))


@orders_router.post("", status_code=status.HTTP_201_CREATED)
async def place_order(payload: PlaceOrderIn, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    logger.info("order.place.attempt", extra={"user_public_id": actor.public_id, "payment_method": payload.payment_method})

    order = await place_order_from_cart(session, actor, payload)
    order_id = order.id
    await session.commit()

    order = await order_by_id(session, order_id)
    return success_response(order_out(order), status_code=status.HTTP_201_CREATED)


@orders_router.get("/vendor", dependencies=[require_roles(*VENDOR_ROLES, *ADMIN_ROLES)])
async def list_vendor_orders(page: int = Query(1, ge=1), limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                             actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    # only the caller's own lines are shown for each order
    rows, count, vendor_ids = await fetch_vendor_orders(session, actor, page, limit)
    return success_response(_page(rows, count, page, limit, vendor_ids=vendor_ids))


@orders_router.get("/{order_public_id}")
async def get_order(order_public_id: str, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    order = await order_by_pid(session, actor, order_public_id)
    return success_response(order_out(order, vendor_ids=await viewer_vendor_ids(session, actor, order)))


@orders_router.post("/{order_public_id}/cancel")
async def cancel_order(order_public_id: str, payload: Optional[CancelOrderIn] = None, actor: Actor = Depends(get_actor),
                       session: AsyncSession = Depends(get_session)):

    reason = payload.reason if payload else None
    order_id = await cancel_own_order(session, actor, order_public_id, reason)
    await session.commit()

    logger.info("order.cancelled", extra={"order_public_id": order_public_id, "user_public_id": actor.public_id})
    return success_response(order_out(await order_by_id(session, order_id)))


# -------------------------------------------------------------------------------------------------------------

@orders_admin_router.get("", dependencies=[require_permissions("order:manage")])
async def list_all_orders(status_name: Optional[str] = Query(None, alias="status"), page: int = Query(1, ge=1),
                          limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                          actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    rows, count = await fetch_all_orders(session, actor, status_name, page, limit)
    return success_response(_page(rows, count, page, limit))


@orders_admin_router.patch("/{order_public_id}/status", dependencies=[require_permissions("order:manage")])
async def set_order_status(order_public_id: str, payload: OrderStatusIn, request: Request,
                           actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    order_id = await change_order_status(session, actor, order_public_id, payload.status, payload.note,
                                         client_meta(request)["ip_address"])
    await session.commit()

    logger.info("order.status.changed", extra={"order_public_id": order_public_id, "status": payload.status,
                                               "user_public_id": actor.public_id})
    return success_response(order_out(await order_by_id(session, order_id)))
