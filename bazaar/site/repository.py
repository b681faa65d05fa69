from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from bazaar.common.utils import now
from bazaar.schema.full_schema import Preference
from bazaar.site.constants import logger


def group_preferences(rows) -> dict:
    """{category: {key: value}} from preference rows."""
    grouped: dict = {}
    for row in rows:
        grouped.setdefault(row.category, {})[row.key] = row.value
    return grouped


def _owner_cond(user_id: Optional[int]):
    # user_id None addresses the global site settings
    return Preference.user_id.is_(None) if user_id is None else Preference.user_id == user_id


async def fetch_preferences(session, user_id: Optional[int] = None) -> dict:
    stmt = select(Preference).where(_owner_cond(user_id)).order_by(Preference.category, Preference.key)
    rows = (await session.execute(stmt)).scalars().all()
    return group_preferences(rows)


async def upsert_preference(session, user_id: Optional[int], category: str, key: str, value) -> bool:
    stmt = (select(Preference)
            .where(_owner_cond(user_id), Preference.category == category, Preference.key == key)
            .with_for_update())
    row = (await session.execute(stmt)).scalar_one_or_none()

    if row is not None:
        row.value = value
        row.updated_at = now()
        session.add(row)
        await session.flush()
        return False

    session.add(Preference(user_id=user_id, category=category, key=key, value=value))
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("preference.upsert.conflict", extra={"category": category, "key": key})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Setting changed concurrently, retry")
    return True


async def delete_preference(session, user_id: Optional[int], category: str, key: str):
    stmt = (delete(Preference)
            .where(_owner_cond(user_id), Preference.category == category, Preference.key == key)
            .returning(Preference.id))
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
