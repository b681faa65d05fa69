from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor, require_permissions
from bazaar.access.policies import Actor
from bazaar.common.utils import success_response, total_pages
from bazaar.db.dependencies import get_session
from bazaar.products.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, logger
from bazaar.products.models import InventoryIn, ProductCreateIn, ProductUpdateIn, VariantCreateIn
from bazaar.products.repository import (add_variant, create_product, fetch_manageable_products, fetch_products,
                                        find_manageable_product, inventory_out, patch_product, product_by_slug,
                                        product_detail, product_summary, rating_summary, soft_delete_product,
                                        upsert_inventory, variant_out, visible_product_id_by_slug)

prods_public_router=APIRouter()
prods_admin_router=APIRouter()


#** newest first for now, a popularity score can replace created_at later
@prods_public_router.get("")
async def get_products(
    category_id: Optional[int] = Query(None),
    vendor_id: Optional[str] = Query(None, description="Vendor public id"),
    is_featured: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    session: AsyncSession = Depends(get_session)):

    search = search.strip() if search else None
    rows, count = await fetch_products(session, category_id, vendor_id, is_featured, search, page, limit)

    return success_response({
        "data": [product_summary(p) for p in rows],
        "count": count,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(count, limit),
    })


@prods_public_router.get("/{slug}")
async def get_product_details(slug: str, session: AsyncSession = Depends(get_session)):
    product = await product_by_slug(session, slug)
    out = product_detail(product)
    out["rating"] = await rating_summary(session, product.id)
    return success_response(out)


@prods_public_router.get("/{slug}/rating")
async def get_product_rating(slug: str, session: AsyncSession = Depends(get_session)):
    product_id = await visible_product_id_by_slug(session, slug)
    return success_response(await rating_summary(session, product_id))


# -------------------------------------------------------------------------------------------------------------

@prods_admin_router.get("", dependencies=[require_permissions("product:create")])
async def list_manageable_products(page: int = Query(1, ge=1), limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                                   actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    rows, count = await fetch_manageable_products(session, actor, page, limit)
    return success_response({
        "data": [product_summary(p) for p in rows],
        "count": count,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(count, limit),
    })


@prods_admin_router.post("", status_code=status.HTTP_201_CREATED, dependencies=[require_permissions("product:create")])
async def add_product(payload: ProductCreateIn, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    logger.info("product.create.attempt", extra={"user_public_id": actor.public_id})

    product = await create_product(session, actor, payload)
    product_pid = str(product.public_id)
    await session.commit()

    product = await find_manageable_product(session, actor, product_pid)
    logger.info("product.create.success", extra={"product_public_id": product_pid, "user_public_id": actor.public_id})
    return success_response({"message": "product created", "product": product_detail(product)},
                            status_code=status.HTTP_201_CREATED)


@prods_admin_router.patch("/{product_public_id}", dependencies=[require_permissions("product:create")])
async def update_product(product_public_id: str, payload: ProductUpdateIn, actor: Actor = Depends(get_actor),
                         session: AsyncSession = Depends(get_session)):

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    product = await find_manageable_product(session, actor, product_public_id, for_update=True)
    await patch_product(session, product, updates)
    await session.commit()

    product = await find_manageable_product(session, actor, product_public_id)
    logger.info("product.update.success", extra={"product_public_id": product_public_id, "fields": sorted(updates)})
    return success_response({"message": "product updated", "product": product_detail(product)})


@prods_admin_router.delete("/{product_public_id}", dependencies=[require_permissions("product:create")])
async def delete_product(product_public_id: str, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    await soft_delete_product(session, actor, product_public_id)
    await session.commit()

    logger.info("product.delete.success", extra={"product_public_id": product_public_id, "user_public_id": actor.public_id})
    return success_response({"message": "product deleted"})


@prods_admin_router.post("/{product_public_id}/variants", status_code=status.HTTP_201_CREATED,
                         dependencies=[require_permissions("product:create")])
async def create_variant(product_public_id: str, payload: VariantCreateIn, actor: Actor = Depends(get_actor),
                         session: AsyncSession = Depends(get_session)):

    product = await find_manageable_product(session, actor, product_public_id)
    variant = await add_variant(session, product, payload)
    out = variant_out(variant)
    await session.commit()

    logger.info("variant.create.success", extra={"product_public_id": product_public_id, "variant_id": out["id"]})
    return success_response(out, status_code=status.HTTP_201_CREATED)


@prods_admin_router.put("/{product_public_id}/inventory", dependencies=[require_permissions("product:create")])
async def set_inventory(product_public_id: str, payload: InventoryIn, actor: Actor = Depends(get_actor),
                        session: AsyncSession = Depends(get_session)):

    product = await find_manageable_product(session, actor, product_public_id)
    row = await upsert_inventory(session, actor, product, payload)
    out = inventory_out(row)
    await session.commit()

    logger.info("inventory.set", extra={"product_public_id": product_public_id, "variant_id": payload.variant_id,
                                        "quantity": payload.quantity})
    return success_response(out)
