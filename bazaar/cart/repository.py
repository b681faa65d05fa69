from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from bazaar.access.policies import Actor, owned_by, visible_products, visible_variants
from bazaar.cart.constants import logger
from bazaar.common.utils import now, parse_uuid
from bazaar.schema.full_schema import CartItem, Product, ProductVariant


def unit_price(item: CartItem) -> int:
    variant_price = item.variant.price if item.variant is not None else None
    base_price = item.product.base_price if item.product is not None else None
    return variant_price or base_price or 0


def cart_item_out(item: CartItem) -> dict:
    p, v = item.product, item.variant
    price = unit_price(item)
    return {
        "id": item.id,
        "quantity": item.quantity,
        "added_at": item.added_at,
        "product": {
            "public_id": str(p.public_id),
            "name": p.name,
            "slug": p.slug,
            "base_price": p.base_price,
            "images": p.images or [],
            "is_available": p.is_active and p.deleted_at is None,
        } if p is not None else None,
        "variant": {
            "id": v.id,
            "name": v.name,
            "price": v.price,
            "attributes": v.attributes or {},
        } if v is not None else None,
        "unit_price": price,
        "line_total": price * item.quantity,
    }


def cart_totals(items) -> dict:
    return {
        "total_items": sum(i.quantity for i in items),
        "total_price": sum(unit_price(i) * i.quantity for i in items),
    }


async def fetch_cart_items(session, actor: Actor, for_update: bool = False) -> list[CartItem]:
    stmt = (select(CartItem)
            .options(selectinload(CartItem.product), selectinload(CartItem.variant))
            .where(owned_by(CartItem, actor))
            .order_by(CartItem.added_at.desc(), CartItem.id.desc())
            .execution_options(populate_existing=True))
    if for_update:
        stmt = stmt.with_for_update(of=CartItem)
    return list((await session.execute(stmt)).scalars().all())


async def resolve_purchasable(session, product_pid: str, variant_id: Optional[int]) -> tuple[int, Optional[int]]:
    pid = parse_uuid(product_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    product_id = (await session.execute(
        select(Product.id).where(Product.public_id == pid, visible_products())
    )).scalar_one_or_none()
    if not product_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    if variant_id is not None:
        stmt = select(ProductVariant.id).where(ProductVariant.id == variant_id,
                                               ProductVariant.product_id == product_id, visible_variants())
        if not (await session.execute(stmt)).scalar_one_or_none():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Variant not found")

    return product_id, variant_id


async def add_item_to_cart(session, actor: Actor, product_id: int, variant_id: Optional[int], quantity: int):
    """Upsert the single line for (user, product, variant); quantity is set, not added.
    Returns (item_id, created)."""

    variant_cond = CartItem.variant_id.is_(None) if variant_id is None else CartItem.variant_id == variant_id
    stmt = (select(CartItem.id)
            .where(owned_by(CartItem, actor), CartItem.product_id == product_id, variant_cond)
            .with_for_update()
            .limit(1))
    existing_id = (await session.execute(stmt)).scalar_one_or_none()

    if existing_id:
        upd = (update(CartItem)
               .where(CartItem.id == existing_id)
               .values(quantity=quantity, updated_at=now()))
        await session.execute(upd)
        return existing_id, False

    item = CartItem(user_id=actor.user_id, product_id=product_id, variant_id=variant_id, quantity=quantity)
    session.add(item)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("cart.add.integrity_error", extra={"product_id": product_id, "variant_id": variant_id})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Cart changed concurrently, retry")
    return item.id, True


async def set_item_quantity(session, actor: Actor, item_id: int, quantity: int):
    stmt = (update(CartItem)
            .where(CartItem.id == item_id, owned_by(CartItem, actor))
            .values(quantity=quantity, updated_at=now())
            .returning(CartItem.id))
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart item not found")


async def remove_item(session, actor: Actor, item_id: int):
    stmt = delete(CartItem).where(CartItem.id == item_id, owned_by(CartItem, actor)).returning(CartItem.id)
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart item not found")


async def clear_items(session, actor: Actor) -> int:
    res = await session.execute(delete(CartItem).where(owned_by(CartItem, actor)))
    return res.rowcount or 0
