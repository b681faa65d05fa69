from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from bazaar.access.policies import Actor, owned_by
from bazaar.schema.full_schema import WishlistItem
from bazaar.wishlist.constants import logger


def wishlist_item_out(w: WishlistItem) -> dict:
    p, v = w.product, w.variant
    return {
        "id": w.id,
        "notes": w.notes,
        "added_at": w.added_at,
        "product": {
            "public_id": str(p.public_id),
            "name": p.name,
            "slug": p.slug,
            "base_price": p.base_price,
            "images": p.images or [],
            "is_available": p.is_active and p.deleted_at is None,
        } if p is not None else None,
        "variant": {"id": v.id, "name": v.name, "price": v.price} if v is not None else None,
    }


async def fetch_wishlist(session, actor: Actor) -> list[WishlistItem]:
    stmt = (select(WishlistItem)
            .options(selectinload(WishlistItem.product), selectinload(WishlistItem.variant))
            .where(owned_by(WishlistItem, actor))
            .order_by(WishlistItem.added_at.desc(), WishlistItem.id.desc()))
    return list((await session.execute(stmt)).scalars().all())


async def add_to_wishlist(session, actor: Actor, product_id: int, variant_id: Optional[int], notes: Optional[str]) -> int:
    variant_cond = WishlistItem.variant_id.is_(None) if variant_id is None else WishlistItem.variant_id == variant_id
    dup = select(WishlistItem.id).where(owned_by(WishlistItem, actor), WishlistItem.product_id == product_id, variant_cond)
    if (await session.execute(dup)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product already in wishlist")

    item = WishlistItem(user_id=actor.user_id, product_id=product_id, variant_id=variant_id, notes=notes)
    session.add(item)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.info("wishlist.add.duplicate", extra={"product_id": product_id, "variant_id": variant_id})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product already in wishlist")
    return item.id


async def remove_from_wishlist(session, actor: Actor, item_id: int):
    stmt = delete(WishlistItem).where(WishlistItem.id == item_id, owned_by(WishlistItem, actor)).returning(WishlistItem.id)
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wishlist item not found")
