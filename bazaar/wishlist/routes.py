from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor
from bazaar.access.policies import Actor
from bazaar.cart.repository import resolve_purchasable
from bazaar.common.utils import success_response
from bazaar.db.dependencies import get_session
from bazaar.wishlist.constants import logger
from bazaar.wishlist.models import WishlistItemIn
from bazaar.wishlist.repository import add_to_wishlist, fetch_wishlist, remove_from_wishlist, wishlist_item_out

wishlist_router = APIRouter()


@wishlist_router.get("")
async def get_wishlist(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    items = await fetch_wishlist(session, actor)
    return success_response({"items": [wishlist_item_out(w) for w in items], "count": len(items)})


@wishlist_router.post("", status_code=status.HTTP_201_CREATED)
async def add_wishlist_item(payload: WishlistItemIn, actor: Actor = Depends(get_actor),
                            session: AsyncSession = Depends(get_session)):

    product_id, variant_id = await resolve_purchasable(session, payload.product_public_id, payload.variant_id)
    item_id = await add_to_wishlist(session, actor, product_id, variant_id, payload.notes)
    await session.commit()

    logger.info("wishlist.item.added", extra={"item_id": item_id, "user_public_id": actor.public_id})
    return success_response({"id": item_id}, status_code=status.HTTP_201_CREATED)


@wishlist_router.delete("/{item_id}")
async def delete_wishlist_item(item_id: int, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    await remove_from_wishlist(session, actor, item_id)
    await session.commit()

    logger.info("wishlist.item.removed", extra={"item_id": item_id})
    return success_response({"message": "removed from wishlist"})
