from fastapi import HTTPException, status
from sqlalchemy import select

def _normalize_db_url(url: str | None) -> str | None:
    # hosted postgres providers hand out "postgres://..." but SQLAlchemy async needs an explicit driver
    if not url:
        return None
    if url.startswith("postgres://",):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


async def unique_slug(session, model, base: str, exclude_id=None) -> str:
    """`base`, or `base-2`, `base-3`... whichever is free in model.slug"""
    base = base or "item"
    stmt = select(model.slug).where(model.slug.like(f"{base}%"))
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    taken = set((await session.execute(stmt)).scalars().all())

    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


async def claim_slug(session, model, slug: str, explicit: bool, label: str) -> str:
    """An explicit slug must be free (409 otherwise); a derived one gets a numeric suffix."""
    if not explicit:
        return await unique_slug(session, model, slug)
    taken = (await session.execute(select(model.id).where(model.slug == slug))).scalar_one_or_none()
    if taken:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{label} slug already exists")
    return slug
