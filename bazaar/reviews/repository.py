from typing import Optional
from fastapi import HTTPException,status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from bazaar.access.policies import Actor, manageable_reviews, owned_by, visible_reviews
from bazaar.common.utils import now, parse_uuid
from bazaar.reviews.constants import logger
from bazaar.reviews.models import ReviewIn
from bazaar.schema.full_schema import OrderItem, Orders, Rating, Review


def review_out(r: Review) -> dict:
    out = {
        "public_id": str(r.public_id),
        "rating": r.rating,
        "title": r.title,
        "content": r.content,
        "images": r.images or [],
        "is_verified_purchase": r.is_verified_purchase,
        "is_approved": r.is_approved,
        "helpful_count": r.helpful_count,
        "created_at": r.created_at,
    }
    if r.user is not None:
        out["reviewer"] = {
            "first_name": r.user.first_name,
            "last_name": r.user.last_name,
            "avatar_url": r.user.avatar_url,
        }
    return out


async def review_with_user(session, review_id: int) -> Review:
    stmt = (select(Review).options(selectinload(Review.user)).where(Review.id == review_id)
            .execution_options(populate_existing=True))
    return (await session.execute(stmt)).scalar_one()


async def fetch_product_reviews(session, product_id: int, page: int, limit: int):
    conds = [Review.product_id == product_id, visible_reviews()]
    count = (await session.execute(select(func.count()).select_from(Review).where(*conds))).scalar_one()
    stmt = (select(Review)
            .options(selectinload(Review.user))
            .where(*conds)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset((page - 1) * limit)
            .limit(limit))
    return (await session.execute(stmt)).scalars().all(), count


async def _purchase_order_id(session, actor: Actor, product_id: int, order_pid: str) -> int:
    """Order the review is attached to; it must be the caller's and contain the product."""
    pid = parse_uuid(order_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    stmt = (select(Orders.id)
            .join(OrderItem, OrderItem.order_id == Orders.id)
            .where(Orders.public_id == pid,
                   Orders.customer_id == actor.user_id,
                   Orders.deleted_at.is_(None),
                   OrderItem.product_id == product_id)
            .limit(1))
    order_id = (await session.execute(stmt)).scalar_one_or_none()
    if not order_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order_id


async def create_review(session, actor: Actor, product_id: int, payload: ReviewIn) -> Review:
    order_id: Optional[int] = None
    if payload.order_public_id:
        order_id = await _purchase_order_id(session, actor, product_id, payload.order_public_id)

    # unique(product, user, order) does not cover order_id NULL on every backend
    order_cond = Review.order_id.is_(None) if order_id is None else Review.order_id == order_id
    dup = select(Review.id).where(Review.product_id == product_id, Review.user_id == actor.user_id,
                                  order_cond, Review.deleted_at.is_(None))
    if (await session.execute(dup)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You already reviewed this product")

    review = Review(
        product_id=product_id,
        user_id=actor.user_id,
        order_id=order_id,
        rating=payload.rating,
        title=payload.title,
        content=payload.content,
        images=payload.images,
        is_verified_purchase=order_id is not None,
    )
    session.add(review)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("review.create.integrity_error", extra={"product_id": product_id, "user_public_id": actor.public_id})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You already reviewed this product")
    return review


async def soft_delete_review(session, actor: Actor, review_pid: str):
    pid = parse_uuid(review_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")

    stmt = (update(Review)
            .where(Review.public_id == pid, manageable_reviews(actor))
            .values(deleted_at=now(), updated_at=now())
            .returning(Review.id))
    if not (await session.execute(stmt)).scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")


async def pending_reviews(session, page: int, limit: int):
    conds = [Review.is_approved.is_(False), Review.deleted_at.is_(None)]
    count = (await session.execute(select(func.count()).select_from(Review).where(*conds))).scalar_one()
    stmt = (select(Review)
            .options(selectinload(Review.user))
            .where(*conds)
            .order_by(Review.created_at, Review.id)
            .offset((page - 1) * limit)
            .limit(limit))
    return (await session.execute(stmt)).scalars().all(), count


async def moderate_review(session, review_pid: str, is_approved: bool) -> Review:
    pid = parse_uuid(review_pid)
    if pid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")

    stmt = (update(Review)
            .where(Review.public_id == pid, Review.deleted_at.is_(None))
            .values(is_approved=is_approved, updated_at=now())
            .returning(Review.id))
    review_id = (await session.execute(stmt)).scalar_one_or_none()
    if not review_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")

    return await review_with_user(session, review_id)


async def upsert_rating(session, actor: Actor, product_id: int, value: int) -> tuple[Rating, bool]:
    """One rating per (user, product). Returns (rating, created)."""
    stmt = select(Rating).where(Rating.product_id == product_id, owned_by(Rating, actor)).with_for_update()
    rating = (await session.execute(stmt)).scalar_one_or_none()

    if rating is not None:
        rating.rating = value
        rating.updated_at = now()
        session.add(rating)
        await session.flush()
        return rating, False

    rating = Rating(product_id=product_id, user_id=actor.user_id, rating=value)
    session.add(rating)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        logger.warning("rating.upsert.conflict", extra={"product_id": product_id, "user_public_id": actor.public_id})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Rating was changed concurrently, retry")
    return rating, True
