from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from bazaar.access.policies import Actor, owned_by, owned_vendor_ids, visible_orders
from bazaar.cart.repository import fetch_cart_items, unit_price
from bazaar.common.utils import now, parse_uuid
from bazaar.config.settings import config_settings
from bazaar.orders.constants import CANCELLABLE_STATUSES, INITIAL_STATUS, RESTOCK_STATUSES, logger
from bazaar.orders.models import PlaceOrderIn
from bazaar.orders.utils import can_transition, compute_order_totals, generate_order_number
from bazaar.schema.full_schema import AuditLog, CartItem, Inventory, OrderItem, Orders, OrderStatus, Payment


def order_item_out(i: OrderItem) -> dict:
    return {
        "id": i.id,
        "quantity": i.quantity,
        "unit_price": i.unit_price,
        "total_price": i.total_price,
        "product_snapshot": i.product_snapshot,
        "product": {"public_id": str(i.product.public_id), "name": i.product.name, "slug": i.product.slug}
                   if i.product is not None else None,
        "variant": {"id": i.variant.id, "name": i.variant.name} if i.variant is not None else None,
        "vendor": {"public_id": str(i.vendor.public_id), "business_name": i.vendor.business_name}
                  if i.vendor is not None else None,
    }


def order_out(o: Orders, vendor_ids: Optional[set] = None) -> dict:
    items = o.items
    if vendor_ids is not None:
        items = [i for i in items if i.vendor_id in vendor_ids]
    # billing details are for the customer and admins only
    billing = o.billing_address if vendor_ids is None else None
    return {
        "public_id": str(o.public_id),
        "order_number": o.order_number,
        "status": {"name": o.status.name, "description": o.status.description, "color": o.status.color}
                  if o.status is not None else None,
        "subtotal": o.subtotal,
        "tax_amount": o.tax_amount,
        "shipping_amount": o.shipping_amount,
        "discount_amount": o.discount_amount,
        "total_amount": o.total_amount,
        "currency": o.currency,
        "billing_address": billing,
        "shipping_address": o.shipping_address,
        "notes": o.notes,
        "cancelled_at": o.cancelled_at,
        "cancelled_reason": o.cancelled_reason,
        "created_at": o.created_at,
        "items": [order_item_out(i) for i in sorted(items, key=lambda i: i.id)],
    }


def _order_stmt():
    return (select(Orders)
            .options(selectinload(Orders.status),
                     selectinload(Orders.items).selectinload(OrderItem.product),
                     selectinload(Orders.items).selectinload(OrderItem.variant),
                     selectinload(Orders.items).selectinload(OrderItem.vendor))
            .execution_options(populate_existing=True))


async def _paged(session, conds, page: int, limit: int):
    count = (await session.execute(select(func.count()).select_from(Orders).where(*conds))).scalar_one()
    stmt = (_order_stmt()
            .where(*conds)
            .order_by(Orders.created_at.desc(), Orders.id.desc())
            .offset((page - 1) * limit)
            .limit(limit))
    return (await session.execute(stmt)).scalars().all(), count


async def fetch_customer_orders(session, actor: Actor, page: int, limit: int):
    return await _paged(session, [Orders.customer_id == actor.user_id, Orders.deleted_at.is_(None)], page, limit)


async def fetch_vendor_orders(session, actor: Actor, page: int, limit: int):
    vendor_ids = set((await session.execute(owned_vendor_ids(actor))).scalars().all())
    if not vendor_ids:
        return [], 0, vendor_ids
    sold = select(OrderItem.order_id).where(OrderItem.vendor_id.in_(vendor_ids))
    rows, count = await _paged(session, [Orders.id.in_(sold), Orders.deleted_at.is_(None)], page, limit)
    return rows, count, vendor_ids


async def fetch_all_orders(session, actor: Actor, status_name: Optional[str], page: int, limit: int):
    conds = [visible_orders(actor)]
    if status_name:
        conds.append(Orders.status_id.in_(select(OrderStatus.id).where(OrderStatus.name == status_name)))
    return await _paged(session, conds, page, limit)


async def order_by_id(session, order_id: int) -> Orders:
    return (await session.execute(_order_stmt().where(Orders.id == order_id))).scalar_one()


async def order_by_pid(session, actor: Actor, order_pid: str) -> Orders:
    pid = parse_uuid(order_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    order = (await session.execute(_order_stmt().where(Orders.public_id == pid, visible_orders(actor)))).scalar_one_or_none()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def viewer_vendor_ids(session, actor: Actor, order: Orders) -> Optional[set]:
    """None for the customer and admins, who see every line; the caller's vendor ids otherwise."""
    if actor.is_admin or order.customer_id == actor.user_id:
        return None
    return set((await session.execute(owned_vendor_ids(actor))).scalars().all())


async def status_by_name(session, name: str) -> OrderStatus:
    row = (await session.execute(select(OrderStatus).where(OrderStatus.name == name))).scalar_one_or_none()
    if row is None:
        logger.error("order.status.missing", extra={"status": name})
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Order status {name} is not configured")
    return row


async def _inventory_row(session, product_id: int, variant_id: Optional[int]) -> Optional[Inventory]:
    variant_cond = Inventory.variant_id.is_(None) if variant_id is None else Inventory.variant_id == variant_id
    stmt = select(Inventory).where(Inventory.product_id == product_id, variant_cond).with_for_update()
    return (await session.execute(stmt)).scalar_one_or_none()


def _snapshot(item: CartItem) -> dict:
    p, v = item.product, item.variant
    snap = {
        "public_id": str(p.public_id),
        "name": p.name,
        "slug": p.slug,
        "sku": p.sku,
        "image": (p.images or [None])[0],
    }
    if v is not None:
        snap.update({"variant_name": v.name, "variant_sku": v.sku, "attributes": v.attributes or {}})
    return snap


def _purchasable(item: CartItem) -> bool:
    p, v = item.product, item.variant
    if p is None or not p.is_active or p.deleted_at is not None:
        return False
    if v is not None and (not v.is_active or v.deleted_at is not None):
        return False
    return True


async def place_order_from_cart(session, actor: Actor, payload: PlaceOrderIn) -> Orders:
    """Turn the caller's cart into a pending order in one transaction.

    Every line is re-priced from the live product/variant, tracked inventory is
    decremented, a pending payment row is written and the cart is emptied.
    """
    items = await fetch_cart_items(session, actor, for_update=True)
    if not items:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Cart is empty")

    errors = []
    lines = []
    for item in items:
        if not _purchasable(item):
            errors.append({"cart_item_id": item.id, "detail": "Product is no longer available"})
            continue

        inv = await _inventory_row(session, item.product_id, item.variant_id)
        if inv is not None and inv.track_inventory:
            available = inv.quantity - inv.reserved_quantity
            if item.quantity > available and not inv.allow_backorder:
                errors.append({"cart_item_id": item.id,
                               "detail": f"Not enough stock: requested={item.quantity}, available={max(available, 0)}"})
                continue

        price = unit_price(item)
        lines.append({"item": item, "inventory": inv, "unit_price": price, "quantity": item.quantity})

    if errors:
        logger.info("order.place.rejected", extra={"user_public_id": actor.public_id, "errors": len(errors)})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"errors": errors})

    totals = compute_order_totals(lines, tax_rate=config_settings.ORDER_TAX_RATE,
                                  shipping=config_settings.ORDER_FLAT_SHIPPING)
    pending = await status_by_name(session, INITIAL_STATUS)
    at = now()

    order = Orders(
        customer_id=actor.user_id,
        order_number=generate_order_number(at),
        status_id=pending.id,
        currency=config_settings.DEFAULT_CURRENCY,
        billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
        shipping_address=payload.shipping_address.model_dump() if payload.shipping_address else None,
        notes=payload.clean_notes(),
        **totals,
    )
    session.add(order)

    try:
        await session.flush()

        for line in lines:
            item = line["item"]
            session.add(OrderItem(
                order_id=order.id,
                product_id=item.product_id,
                variant_id=item.variant_id,
                vendor_id=item.product.vendor_id,
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                total_price=line["unit_price"] * line["quantity"],
                product_snapshot=_snapshot(item),
            ))

            inv = line["inventory"]
            if inv is not None and inv.track_inventory:
                inv.quantity = max(inv.quantity - line["quantity"], 0)
                inv.updated_at = at
                session.add(inv)

        session.add(Payment(order_id=order.id, payment_method=payload.payment_method,
                            amount=totals["total_amount"], currency=order.currency, status="pending"))

        await session.execute(delete(CartItem).where(owned_by(CartItem, actor)))
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("order.place.integrity_error", extra={"user_public_id": actor.public_id})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order could not be placed, retry")

    logger.info("order.placed", extra={"order_number": order.order_number, "lines": len(lines),
                                       "total_amount": totals["total_amount"]})
    return order


async def _restock(session, order: Orders):
    for item in order.items:
        if item.product_id is None:
            continue
        inv = await _inventory_row(session, item.product_id, item.variant_id)
        if inv is not None and inv.track_inventory:
            inv.quantity = inv.quantity + item.quantity
            inv.updated_at = now()
            session.add(inv)


async def _set_payments(session, order_id: int, from_statuses: tuple, to_status: str):
    await session.execute(
        update(Payment)
        .where(Payment.order_id == order_id, Payment.status.in_(from_statuses))
        .values(status=to_status, updated_at=now())
    )


async def cancel_own_order(session, actor: Actor, order_pid: str, reason: Optional[str]) -> int:
    order = await order_by_pid(session, actor, order_pid)
    if order.customer_id != actor.user_id and not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    current = order.status.name if order.status is not None else None
    if current not in CANCELLABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Order in status {current} cannot be cancelled")

    cancelled = await status_by_name(session, "cancelled")
    stmt = (update(Orders)
            .where(Orders.id == order.id, Orders.status_id == order.status_id)
            .values(status_id=cancelled.id, cancelled_at=now(), cancelled_reason=reason, updated_at=now())
            .returning(Orders.id))
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order status changed concurrently, retry")

    await _restock(session, order)
    await _set_payments(session, order.id, ("pending", "processing"), "cancelled")
    return order.id


async def change_order_status(session, actor: Actor, order_pid: str, target: str, note: Optional[str], ip: Optional[str]) -> int:
    order = await order_by_pid(session, actor, order_pid)
    current = order.status.name if order.status is not None else None

    if current == target:
        return order.id
    if not can_transition(current, target):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Cannot move order from {current} to {target}")

    new_status = await status_by_name(session, target)
    values = {"status_id": new_status.id, "updated_at": now()}
    if target == "cancelled":
        values.update(cancelled_at=now(), cancelled_reason=note)
    stmt = (update(Orders)
            .where(Orders.id == order.id, Orders.status_id == order.status_id)
            .values(**values)
            .returning(Orders.id))
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order status changed concurrently, retry")

    if target in RESTOCK_STATUSES:
        await _restock(session, order)
    if target == "cancelled":
        await _set_payments(session, order.id, ("pending", "processing"), "cancelled")
    elif target == "refunded":
        await _set_payments(session, order.id, ("completed",), "refunded")

    session.add(AuditLog(user_id=actor.user_id, action="order.status_change", table_name="orders",
                         record_id=str(order.public_id), old_values={"status": current},
                         new_values={"status": target, "note": note}, ip_address=ip))
    await session.flush()
    return order.id
