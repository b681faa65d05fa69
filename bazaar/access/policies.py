"""Row visibility and ownership predicates.

Every repository query that touches a protected table adds one of these
clauses, so a caller can only read or change the rows its role allows.
"""
from dataclasses import dataclass
from typing import Optional
from sqlalchemy import and_, false, or_, select, true
from bazaar.common.constants import ADMIN_ROLES, VENDOR_ROLES
from bazaar.schema.full_schema import (Category, Inventory, OrderItem, Orders, Product, ProductVariant, Review, Role,
                                       Users, Vendor)


@dataclass(frozen=True)
class Actor:
    user_id: int
    public_id: str
    role: Optional[str] = None
    session_pid: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    @property
    def is_vendor(self) -> bool:
        return self.role in VENDOR_ROLES


def owned_vendor_ids(actor: Actor):
    return select(Vendor.id).where(Vendor.user_id == actor.user_id, Vendor.deleted_at.is_(None))


# catalog

def visible_products():
    return and_(Product.is_active.is_(True), Product.deleted_at.is_(None))


def manageable_products(actor: Actor):
    if actor.is_admin:
        return Product.deleted_at.is_(None)
    if actor.is_vendor:
        return and_(Product.deleted_at.is_(None), Product.vendor_id.in_(owned_vendor_ids(actor)))
    return false()


def visible_variants():
    return and_(ProductVariant.is_active.is_(True), ProductVariant.deleted_at.is_(None))


def manageable_inventory(actor: Actor):
    if actor.is_admin:
        return true()
    if actor.is_vendor:
        owned_products = select(Product.id).where(Product.vendor_id.in_(owned_vendor_ids(actor)))
        return Inventory.product_id.in_(owned_products)
    return false()


def visible_vendors():
    return and_(Vendor.is_active.is_(True), Vendor.deleted_at.is_(None))


def manageable_vendors(actor: Actor):
    if actor.is_admin:
        return Vendor.deleted_at.is_(None)
    return and_(Vendor.deleted_at.is_(None), Vendor.user_id == actor.user_id)


def visible_categories():
    return and_(Category.is_active.is_(True), Category.deleted_at.is_(None))


# orders

def visible_orders(actor: Actor):
    if actor.is_admin:
        return Orders.deleted_at.is_(None)

    sold_by_actor = (
        select(OrderItem.order_id)
        .join(Vendor, Vendor.id == OrderItem.vendor_id)
        .where(Vendor.user_id == actor.user_id)
    )
    return and_(
        Orders.deleted_at.is_(None),
        or_(Orders.customer_id == actor.user_id, Orders.id.in_(sold_by_actor)),
    )


# reviews

def visible_reviews():
    return and_(Review.is_approved.is_(True), Review.deleted_at.is_(None))


def manageable_reviews(actor: Actor):
    if actor.is_admin:
        return Review.deleted_at.is_(None)
    return and_(Review.deleted_at.is_(None), Review.user_id == actor.user_id)


# owner-only tables: cart, wishlist, ratings, preferences, sessions

def owned_by(model, actor: Actor):
    return model.user_id == actor.user_id


# users

def manageable_users(actor: Actor):
    if actor.is_super_admin:
        return true()
    if actor.is_admin:
        admin_role_ids = select(Role.id).where(Role.name.in_(list(ADMIN_ROLES)))
        return or_(Users.id == actor.user_id, Users.role_id.is_(None), Users.role_id.not_in(admin_role_ids))
    return Users.id == actor.user_id


def can_read_login_attempts(actor: Actor) -> bool:
    return actor.is_admin
