from fastapi import HTTPException,status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from bazaar.access.policies import visible_categories
from bazaar.categories.constants import logger
from bazaar.categories.models import CategoryCreateIn
from bazaar.common.utils import now, slugify
from bazaar.db.utils import claim_slug
from bazaar.schema.full_schema import Category

_TREE_COLUMNS = (Category.id, Category.parent_id, Category.name, Category.slug,
                 Category.description, Category.image_url, Category.sort_order)


async def fetch_active_categories(session) -> list[dict]:
    stmt = (select(*_TREE_COLUMNS)
            .where(visible_categories())
            .order_by(Category.sort_order, Category.id))
    res = await session.execute(stmt)
    return [dict(r._mapping) for r in res.all()]


async def category_by_slug(session, slug: str) -> Category:
    stmt = select(Category).where(Category.slug == slug, visible_categories())
    category = (await session.execute(stmt)).scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


async def _ensure_parent(session, parent_id, category_id=None):
    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A category cannot be its own parent")
    stmt = select(Category.id).where(Category.id == parent_id, Category.deleted_at.is_(None))
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Parent category not found")
    if category_id is None:
        return

    # the new parent must not sit below the category being moved
    seen = set()
    ancestor = parent_id
    while ancestor is not None and ancestor not in seen:
        if ancestor == category_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="A category cannot be moved under its own descendant")
        seen.add(ancestor)
        ancestor = (await session.execute(
            select(Category.parent_id).where(Category.id == ancestor)
        )).scalar_one_or_none()


async def create_category(session, payload: CategoryCreateIn) -> Category:
    await _ensure_parent(session, payload.parent_id)

    slug = slugify(payload.slug or payload.name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Category slug cannot be empty")

    slug = await claim_slug(session, Category, slug, explicit=bool(payload.slug), label="Category")

    category = Category(**payload.model_dump(exclude={"slug"}), slug=slug)
    session.add(category)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("category.create.integrity_error", extra={"slug": slug})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category slug already exists")
    return category


async def patch_category(session, category_id: int, updates: dict) -> Category:
    if "parent_id" in updates:
        await _ensure_parent(session, updates["parent_id"], category_id)

    stmt = (update(Category)
            .where(Category.id == category_id, Category.deleted_at.is_(None))
            .values(**updates, updated_at=now())
            .returning(Category.id))
    res = await session.execute(stmt)
    if not res.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

    stmt = select(Category).where(Category.id == category_id).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one()


async def soft_delete_category(session, category_id: int):
    stmt = (update(Category)
            .where(Category.id == category_id, Category.deleted_at.is_(None))
            .values(deleted_at=now(), is_active=False, updated_at=now())
            .returning(Category.id))
    res = await session.execute(stmt)
    if not res.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
