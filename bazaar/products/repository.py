from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from bazaar.access.policies import Actor, manageable_inventory, manageable_products, visible_products, visible_vendors
from bazaar.common.utils import now, parse_uuid, slugify
from bazaar.db.utils import claim_slug
from bazaar.products.constants import logger
from bazaar.products.models import InventoryIn, ProductCreateIn, VariantCreateIn
from bazaar.schema.full_schema import Category, Inventory, Product, ProductVariant, Rating, Vendor


def product_summary(p: Product) -> dict:
    return {
        "public_id": str(p.public_id),
        "name": p.name,
        "slug": p.slug,
        "short_description": p.short_description,
        "base_price": p.base_price,
        "compare_price": p.compare_price,
        "images": p.images or [],
        "tags": p.tags or [],
        "is_featured": p.is_featured,
        "created_at": p.created_at,
        "vendor": {"public_id": str(p.vendor.public_id), "business_name": p.vendor.business_name} if p.vendor else None,
        "category": {"id": p.category.id, "name": p.category.name, "slug": p.category.slug} if p.category else None,
    }


def variant_out(v: ProductVariant) -> dict:
    return {
        "id": v.id,
        "name": v.name,
        "sku": v.sku,
        "price": v.price,
        "compare_price": v.compare_price,
        "attributes": v.attributes or {},
        "image_url": v.image_url,
        "sort_order": v.sort_order,
    }


def inventory_out(i: Inventory) -> dict:
    return {
        "variant_id": i.variant_id,
        "quantity": i.quantity,
        "reserved_quantity": i.reserved_quantity,
        "available": max(i.quantity - i.reserved_quantity, 0),
        "low_stock": i.track_inventory and i.quantity - i.reserved_quantity <= i.low_stock_threshold,
        "track_inventory": i.track_inventory,
        "allow_backorder": i.allow_backorder,
    }


def product_detail(p: Product) -> dict:
    out = product_summary(p)
    out.update({
        "description": p.description,
        "sku": p.sku,
        "weight_grams": p.weight_grams,
        "is_digital": p.is_digital,
        "requires_shipping": p.requires_shipping,
        "updated_at": p.updated_at,
        "variants": [variant_out(v) for v in sorted(p.variants, key=lambda v: (v.sort_order, v.id))
                     if v.is_active and v.deleted_at is None],
        "inventory": [inventory_out(i) for i in p.inventory],
    })
    return out


def _with_relations(stmt):
    return stmt.options(selectinload(Product.vendor), selectinload(Product.category))


async def fetch_products(session, category_id: Optional[int], vendor_pid: Optional[str], is_featured: Optional[bool],
                         search: Optional[str], page: int, limit: int):
    conds = [visible_products()]
    if category_id is not None:
        conds.append(Product.category_id == category_id)
    if vendor_pid is not None:
        pid = parse_uuid(vendor_pid)
        if pid is None:
            return [], 0
        conds.append(Product.vendor_id.in_(select(Vendor.id).where(Vendor.public_id == pid)))
    if is_featured is not None:
        conds.append(Product.is_featured.is_(is_featured))
    if search:
        conds.append(or_(Product.name.icontains(search, autoescape=True),
                         Product.description.icontains(search, autoescape=True)))

    count = (await session.execute(select(func.count()).select_from(Product).where(*conds))).scalar_one()

    stmt = (_with_relations(select(Product))
            .where(*conds)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit))
    rows = (await session.execute(stmt)).scalars().all()
    return rows, count


async def product_by_slug(session, slug: str) -> Product:
    stmt = (_with_relations(select(Product))
            .options(selectinload(Product.variants), selectinload(Product.inventory))
            .where(Product.slug == slug, visible_products()))
    product = (await session.execute(stmt)).scalar_one_or_none()
    if not product:
        logger.info("product.not_found", extra={"slug": slug})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def visible_product_id_by_slug(session, slug: str) -> int:
    stmt = select(Product.id).where(Product.slug == slug, visible_products())
    product_id = (await session.execute(stmt)).scalar_one_or_none()
    if not product_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product_id


async def rating_summary(session, product_id: int) -> dict:
    stmt = select(func.avg(Rating.rating), func.count(Rating.id)).where(Rating.product_id == product_id)
    avg, count = (await session.execute(stmt)).one()
    return {"average": round(float(avg), 2) if avg is not None else None, "count": int(count or 0)}


# ----------------------------------------------------------------------------------------------
# vendor / admin side

async def fetch_manageable_products(session, actor: Actor, page: int, limit: int):
    cond = manageable_products(actor)
    count = (await session.execute(select(func.count()).select_from(Product).where(cond))).scalar_one()
    stmt = (_with_relations(select(Product))
            .where(cond)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit))
    return (await session.execute(stmt)).scalars().all(), count


async def find_manageable_product(session, actor: Actor, product_pid: str, for_update: bool = False) -> Product:
    pid = parse_uuid(product_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    stmt = (_with_relations(select(Product))
            .options(selectinload(Product.variants), selectinload(Product.inventory))
            .where(Product.public_id == pid, manageable_products(actor))
            .execution_options(populate_existing=True))
    if for_update:
        stmt = stmt.with_for_update()
    product = (await session.execute(stmt)).scalar_one_or_none()
    if not product:
        logger.warning("product.not_found_or_unauthorized", extra={"product_public_id": product_pid, "user_public_id": actor.public_id})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def resolve_vendor_for_create(session, actor: Actor, vendor_pid: Optional[str]) -> Vendor:
    if vendor_pid:
        pid = parse_uuid(vendor_pid)
        if pid is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor not found")
        stmt = select(Vendor).where(Vendor.public_id == pid, visible_vendors())
        if not actor.is_admin:
            stmt = stmt.where(Vendor.user_id == actor.user_id)
        vendor = (await session.execute(stmt)).scalar_one_or_none()
        if not vendor:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor not found")
        return vendor

    owned = (await session.execute(
        select(Vendor).where(Vendor.user_id == actor.user_id, visible_vendors()).order_by(Vendor.id)
    )).scalars().all()
    if len(owned) == 1:
        return owned[0]
    if not owned:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Register a vendor profile before listing products")
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="vendor_public_id is required")


async def _ensure_category(session, category_id: Optional[int]):
    if category_id is None:
        return
    stmt = select(Category.id).where(Category.id == category_id, Category.deleted_at.is_(None))
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Category not found")


async def create_product(session, actor: Actor, payload: ProductCreateIn) -> Product:
    vendor = await resolve_vendor_for_create(session, actor, payload.vendor_public_id)
    await _ensure_category(session, payload.category_id)

    base_slug = slugify(payload.slug or payload.name)
    if not base_slug:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Product slug cannot be empty")
    slug = await claim_slug(session, Product, base_slug, explicit=bool(payload.slug), label="Product")

    values = payload.model_dump(exclude={"vendor_public_id", "slug", "stock_qty"})
    product = Product(**values, vendor_id=vendor.id, slug=slug)
    session.add(product)

    try:
        await session.flush()
        if payload.stock_qty is not None:
            session.add(Inventory(product_id=product.id, quantity=payload.stock_qty, last_restocked_at=now()))
            await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("product.create.integrity_error", extra={"slug": slug, "sku": payload.sku})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product with this sku or slug already exists")

    return product


async def patch_product(session, product: Product, updates: dict) -> Product:
    if "category_id" in updates:
        await _ensure_category(session, updates["category_id"])

    base_price = updates.get("base_price", product.base_price)
    compare_price = updates.get("compare_price", product.compare_price)
    if compare_price is not None and compare_price < base_price:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                            detail="compare_price must be greater than or equal to base_price")

    product_pid = str(product.public_id)
    for field, value in updates.items():
        setattr(product, field, value)
    product.updated_at = now()
    session.add(product)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("product.update.integrity_error", extra={"product_public_id": product_pid})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product with this sku already exists")
    return product


async def soft_delete_product(session, actor: Actor, product_pid: str):
    pid = parse_uuid(product_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    stmt = (update(Product)
            .where(Product.public_id == pid, manageable_products(actor))
            .values(deleted_at=now(), is_active=False, updated_at=now())
            .returning(Product.id))
    res = await session.execute(stmt)
    if not res.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")


async def add_variant(session, product: Product, payload: VariantCreateIn) -> ProductVariant:
    values = payload.model_dump(exclude={"stock_qty"})
    variant = ProductVariant(**values, product_id=product.id)
    session.add(variant)
    try:
        await session.flush()
        if payload.stock_qty is not None:
            session.add(Inventory(product_id=product.id, variant_id=variant.id, quantity=payload.stock_qty,
                                  last_restocked_at=now()))
            await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("variant.create.integrity_error", extra={"sku": payload.sku})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Variant with this sku already exists")
    return variant


async def upsert_inventory(session, actor: Actor, product: Product, payload: InventoryIn) -> Inventory:
    if payload.variant_id is not None:
        stmt = select(ProductVariant.id).where(ProductVariant.id == payload.variant_id,
                                               ProductVariant.product_id == product.id,
                                               ProductVariant.deleted_at.is_(None))
        if not (await session.execute(stmt)).scalar_one_or_none():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Variant not found")

    variant_cond = (Inventory.variant_id.is_(None) if payload.variant_id is None
                    else Inventory.variant_id == payload.variant_id)
    stmt = (select(Inventory)
            .where(Inventory.product_id == product.id, variant_cond, manageable_inventory(actor))
            .with_for_update())
    row = (await session.execute(stmt)).scalar_one_or_none()

    updates = payload.model_dump(exclude_none=True, exclude={"variant_id", "restocked_at"})
    if row is None:
        row = Inventory(product_id=product.id, variant_id=payload.variant_id, **updates)
    else:
        if payload.quantity > row.quantity:
            row.last_restocked_at = now()
        for field, value in updates.items():
            setattr(row, field, value)
        row.updated_at = now()

    if payload.restocked_at is not None:
        row.last_restocked_at = payload.restocked_at
    elif row.last_restocked_at is None:
        row.last_restocked_at = now()

    if row.reserved_quantity > row.quantity:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                            detail="reserved_quantity cannot exceed quantity")

    session.add(row)
    await session.flush()
    return row
