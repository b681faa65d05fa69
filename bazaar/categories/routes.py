from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor, require_permissions
from bazaar.access.policies import Actor
from bazaar.cache.cache_get_n_set import CATEGORY_TREE_KEY, cache_get_or_set, invalidate
from bazaar.categories.constants import logger
from bazaar.categories.models import CategoryCreateIn, CategoryUpdateIn
from bazaar.categories.repository import (category_by_slug, create_category, fetch_active_categories,
                                          patch_category, soft_delete_category)
from bazaar.categories.utils import build_category_tree
from bazaar.common.utils import success_response
from bazaar.config.settings import config_settings
from bazaar.db.dependencies import get_session

categories_public_router = APIRouter()
categories_admin_router = APIRouter()


def _category_out(c) -> dict:
    return {
        "id": c.id,
        "parent_id": c.parent_id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "image_url": c.image_url,
        "sort_order": c.sort_order,
        "is_active": c.is_active,
    }


@categories_public_router.get("")
async def get_categories(session: AsyncSession = Depends(get_session)):

    async def loader():
        return build_category_tree(await fetch_active_categories(session))

    tree = await cache_get_or_set(CATEGORY_TREE_KEY, config_settings.CATEGORY_TREE_TTL, loader)
    return success_response(tree)


@categories_public_router.get("/{slug}")
async def get_category(slug: str, session: AsyncSession = Depends(get_session)):
    category = await category_by_slug(session, slug)
    return success_response(_category_out(category))


@categories_admin_router.post("", status_code=status.HTTP_201_CREATED, dependencies=[require_permissions("category:manage")])
async def add_category(payload: CategoryCreateIn, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    category = await create_category(session, payload)
    out = _category_out(category)
    await session.commit()
    await invalidate(CATEGORY_TREE_KEY)

    logger.info("category.created", extra={"slug": out["slug"], "user_public_id": actor.public_id})
    return success_response(out, status_code=status.HTTP_201_CREATED)


@categories_admin_router.patch("/{category_id}", dependencies=[require_permissions("category:manage")])
async def update_category(category_id: int, payload: CategoryUpdateIn, session: AsyncSession = Depends(get_session)):

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    category = await patch_category(session, category_id, updates)
    out = _category_out(category)
    await session.commit()
    await invalidate(CATEGORY_TREE_KEY)

    logger.info("category.updated", extra={"category_id": category_id, "fields": sorted(updates)})
    return success_response(out)


@categories_admin_router.delete("/{category_id}", dependencies=[require_permissions("category:manage")])
async def delete_category(category_id: int, session: AsyncSession = Depends(get_session)):

    await soft_delete_category(session, category_id)
    await session.commit()
    await invalidate(CATEGORY_TREE_KEY)

    logger.info("category.deleted", extra={"category_id": category_id})
    return success_response({"message": "category deleted"})
