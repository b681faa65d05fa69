from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor
from bazaar.access.policies import Actor
from bazaar.cart.constants import logger
from bazaar.cart.models import CartItemInput, CartQuantityIn
from bazaar.cart.repository import (add_item_to_cart, cart_item_out, cart_totals, clear_items, fetch_cart_items,
                                    remove_item, resolve_purchasable, set_item_quantity)
from bazaar.common.utils import success_response
from bazaar.db.dependencies import get_session

carts_router=APIRouter()


async def _cart_view(session, actor: Actor) -> dict:
    items = await fetch_cart_items(session, actor)
    return {"items": [cart_item_out(i) for i in items], **cart_totals(items)}


@carts_router.get("")
async def get_cart(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    return success_response(await _cart_view(session, actor))


@carts_router.post("/items")
async def add_to_cart(payload: CartItemInput, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    product_id, variant_id = await resolve_purchasable(session, payload.product_public_id, payload.variant_id)
    item_id, created = await add_item_to_cart(session, actor, product_id, variant_id, payload.quantity)
    await session.commit()

    logger.info("cart.item.upserted", extra={"item_id": item_id, "line_created": created, "quantity": payload.quantity})
    cart = await _cart_view(session, actor)
    return success_response({"item_id": item_id, "created": created, "cart": cart},
                            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@carts_router.patch("/items/{item_id}")
async def update_cart_item(item_id: int, payload: CartQuantityIn, actor: Actor = Depends(get_actor),
                           session: AsyncSession = Depends(get_session)):

    await set_item_quantity(session, actor, item_id, payload.quantity)
    await session.commit()

    logger.info("cart.item.quantity_set", extra={"item_id": item_id, "quantity": payload.quantity})
    return success_response(await _cart_view(session, actor))


@carts_router.delete("/items/{item_id}")
async def remove_from_cart(item_id: int, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    await remove_item(session, actor, item_id)
    await session.commit()

    logger.info("cart.item.removed", extra={"item_id": item_id})
    return success_response(await _cart_view(session, actor))


@carts_router.delete("")
async def clear_cart(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    removed = await clear_items(session, actor)
    await session.commit()

    logger.info("cart.cleared", extra={"removed": removed, "user_public_id": actor.public_id})
    return success_response({"removed": removed, "items": [], "total_items": 0, "total_price": 0})
