from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor, require_roles
from bazaar.access.policies import Actor
from bazaar.common.constants import ADMIN_ROLES
from bazaar.common.utils import success_response
from bazaar.db.dependencies import get_session
from bazaar.site.constants import logger
from bazaar.site.models import PreferenceIn
from bazaar.site.repository import delete_preference, fetch_preferences, upsert_preference

site_router = APIRouter()
site_admin_router = APIRouter()
preferences_router = APIRouter()


@site_router.get("/settings")
async def get_site_settings(session: AsyncSession = Depends(get_session)):
    return success_response(await fetch_preferences(session))


@site_admin_router.put("/settings", dependencies=[require_roles(*ADMIN_ROLES)])
async def put_site_setting(payload: PreferenceIn, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    created = await upsert_preference(session, None, payload.category, payload.key, payload.value)
    await session.commit()

    logger.info("site.setting.saved", extra={"category": payload.category, "key": payload.key,
                                             "user_public_id": actor.public_id})
    return success_response(await fetch_preferences(session),
                            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@site_admin_router.delete("/settings/{category}/{key}", dependencies=[require_roles(*ADMIN_ROLES)])
async def delete_site_setting(category: str, key: str, session: AsyncSession = Depends(get_session)):

    await delete_preference(session, None, category, key)
    await session.commit()

    logger.info("site.setting.deleted", extra={"category": category, "key": key})
    return success_response(await fetch_preferences(session))


@preferences_router.get("")
async def get_my_preferences(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    return success_response(await fetch_preferences(session, actor.user_id))


@preferences_router.put("")
async def put_my_preference(payload: PreferenceIn, actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):

    created = await upsert_preference(session, actor.user_id, payload.category, payload.key, payload.value)
    await session.commit()

    return success_response(await fetch_preferences(session, actor.user_id),
                            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)
