from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.access.dependencies import get_actor, require_permissions
from bazaar.access.policies import Actor
from bazaar.common.utils import success_response, total_pages
from bazaar.db.dependencies import get_session
from bazaar.products.constants import MAX_PAGE_SIZE
from bazaar.products.repository import rating_summary, visible_product_id_by_slug
from bazaar.reviews.constants import DEFAULT_REVIEWS_PAGE_SIZE, logger
from bazaar.reviews.models import RatingIn, ReviewIn, ReviewModerationIn
from bazaar.reviews.repository import (create_review, fetch_product_reviews, moderate_review, pending_reviews,
                                       review_out, review_with_user, soft_delete_review, upsert_rating)

reviews_router = APIRouter()
reviews_admin_router = APIRouter()


@reviews_router.get("/products/{slug}/reviews")
async def list_product_reviews(slug: str, page: int = Query(1, ge=1),
                               limit: int = Query(DEFAULT_REVIEWS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                               session: AsyncSession = Depends(get_session)):
    product_id = await visible_product_id_by_slug(session, slug)
    rows, count = await fetch_product_reviews(session, product_id, page, limit)
    return success_response({
        "data": [review_out(r) for r in rows],
        "count": count,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(count, limit),
    })


@reviews_router.post("/products/{slug}/reviews", status_code=status.HTTP_201_CREATED)
async def add_review(slug: str, payload: ReviewIn, actor: Actor = Depends(get_actor),
                     session: AsyncSession = Depends(get_session)):

    product_id = await visible_product_id_by_slug(session, slug)
    review = await create_review(session, actor, product_id, payload)
    out = review_out(await review_with_user(session, review.id))
    await session.commit()

    logger.info("review.created", extra={"review_public_id": out["public_id"], "product_id": product_id,
                                         "user_public_id": actor.public_id})
    return success_response(out, status_code=status.HTTP_201_CREATED)


@reviews_router.put("/products/{slug}/rating")
async def rate_product(slug: str, payload: RatingIn, actor: Actor = Depends(get_actor),
                       session: AsyncSession = Depends(get_session)):

    product_id = await visible_product_id_by_slug(session, slug)
    rating, created = await upsert_rating(session, actor, product_id, payload.rating)
    value = rating.rating
    await session.commit()

    logger.info("rating.upserted", extra={"product_id": product_id, "rating_created": created})
    summary = await rating_summary(session, product_id)
    return success_response({"rating": value, "created": created, "summary": summary},
                            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@reviews_router.delete("/reviews/{review_public_id}")
async def delete_review(review_public_id: str, actor: Actor = Depends(get_actor),
                        session: AsyncSession = Depends(get_session)):

    await soft_delete_review(session, actor, review_public_id)
    await session.commit()

    logger.info("review.deleted", extra={"review_public_id": review_public_id, "user_public_id": actor.public_id})
    return success_response({"message": "review deleted"})


@reviews_admin_router.get("/pending", dependencies=[require_permissions("review:moderate")])
async def list_pending_reviews(page: int = Query(1, ge=1),
                               limit: int = Query(DEFAULT_REVIEWS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
                               session: AsyncSession = Depends(get_session)):
    rows, count = await pending_reviews(session, page, limit)
    return success_response({
        "data": [review_out(r) for r in rows],
        "count": count,
        "page": page,
        "limit": limit,
        "total_pages": total_pages(count, limit),
    })


@reviews_admin_router.patch("/{review_public_id}", dependencies=[require_permissions("review:moderate")])
async def approve_review(review_public_id: str, payload: ReviewModerationIn, actor: Actor = Depends(get_actor),
                         session: AsyncSession = Depends(get_session)):

    review = await moderate_review(session, review_public_id, payload.is_approved)
    out = review_out(review)
    await session.commit()

    logger.info("review.moderated", extra={"review_public_id": review_public_id, "is_approved": payload.is_approved,
                                           "user_public_id": actor.public_id})
    return success_response(out)
