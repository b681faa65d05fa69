import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Column, SQLModel, Field, Relationship, String
from uuid6 import uuid7
from bazaar.common.utils import now

# JSONB on postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _ts(nullable: bool = True, **kw) -> Column:
    return Column(DateTime(timezone=True), nullable=nullable, **kw)


def _created() -> Column:
    return Column(DateTime(timezone=True), nullable=False, default=now)


def _updated() -> Column:
    return Column(DateTime(timezone=True), nullable=False, default=now, onupdate=now)


def _public_id() -> Column:
    return Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)


# ----------------------------------------------------------------------------------------------
# roles & permissions

class RolePermission(SQLModel, table=True):
    __tablename__ = "role_permissions"

    id: Optional[int] = Field(default=None, primary_key=True)
    role_id: int = Field(sa_column=Column(ForeignKey("user_roles.id", ondelete="CASCADE"), index=True, nullable=False))
    permission_id: int = Field(sa_column=Column(ForeignKey("permissions.id", ondelete="CASCADE"), index=True, nullable=False))

    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)


class Role(SQLModel, table=True):
    __tablename__ = "user_roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(32), unique=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    __table_args__ = (
        CheckConstraint("name IN ('super_admin', 'admin', 'vendor', 'seller', 'buyer', 'visitor')", name="ck_user_roles_name"),
    )


class Permission(SQLModel, table=True):
    __tablename__ = "permissions"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(64), unique=True, nullable=False))
    description: Optional[str] = None


# ----------------------------------------------------------------------------------------------
# users & credentials

class Users(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id())
    role_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("user_roles.id", ondelete="SET NULL"), index=True, nullable=True))
    role_version: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    email: str = Field(sa_column=Column(String(320), unique=True, nullable=False))
    username: Optional[str] = Field(default=None, sa_column=Column(String(30), unique=True, nullable=True))
    first_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    last_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    avatar_url: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))

    # verification
    email_verified: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    email_verification_token: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True, index=True))
    email_verification_expires_at: Optional[datetime] = Field(default=None, sa_column=_ts())

    # lockout bookkeeping
    failed_login_attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    locked_until: Optional[datetime] = Field(default=None, sa_column=_ts())
    last_login_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    password_changed_at: Optional[datetime] = Field(default_factory=now, sa_column=_ts())

    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    role: Optional["Role"] = Relationship()

    __table_args__ = (
        CheckConstraint("failed_login_attempts >= 0", name="ck_users_failed_attempts"),
        CheckConstraint("username IS NULL OR (length(username) >= 3 AND length(username) <= 30)", name="ck_users_username_length"),
    )


class Credential(SQLModel, table=True):
    """Password hashes. One password credential per user."""
    __tablename__ = "credentials"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    type: str = Field(default="password", sa_column=Column(String(16), nullable=False, default="password"))
    provider: Optional[str] = Field(default="self", sa_column=Column(String(64), nullable=True))
    password_hash: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())
    revoked_at: Optional[datetime] = Field(default=None, sa_column=_ts())

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_credential_user_provider"),)


# ----------------------------------------------------------------------------------------------
# security bookkeeping

class LoginAttempt(SQLModel, table=True):
    __tablename__ = "login_attempts"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(sa_column=Column(String(320), nullable=False, index=True))
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True, index=True))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    success: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    failure_reason: Optional[str] = Field(default=None, sa_column=Column(String(256), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))


class UserSession(SQLModel, table=True):
    __tablename__ = "user_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id())
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    token_hash: str = Field(sa_column=Column(String(128), unique=True, nullable=False, index=True))
    refresh_token_hash: Optional[str] = Field(default=None, sa_column=Column(String(128), unique=True, nullable=True, index=True))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    remember_me: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True, index=True))
    last_activity: Optional[datetime] = Field(default_factory=now, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())


class PasswordResetToken(SQLModel, table=True):
    __tablename__ = "password_reset_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    token_hash: str = Field(sa_column=Column(String(128), unique=True, nullable=False, index=True))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    used_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())


class CsrfToken(SQLModel, table=True):
    __tablename__ = "csrf_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    token_hash: str = Field(sa_column=Column(String(128), unique=True, nullable=False, index=True))
    user_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=True))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
    created_at: datetime = Field(default_factory=now, sa_column=_created())


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True))
    action: str = Field(sa_column=Column(String(64), nullable=False))
    table_name: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    record_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    old_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    new_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))


# ----------------------------------------------------------------------------------------------
# catalog

class Vendor(SQLModel, table=True):
    __tablename__ = "vendors"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id())
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    business_name: str = Field(sa_column=Column(String(255), nullable=False))
    business_type: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    tax_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    business_email: Optional[str] = Field(default=None, sa_column=Column(String(320), nullable=True))
    business_phone: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    website_url: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    logo_url: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    is_verified: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    commission_rate: float = Field(default=0.1, sa_column=Column(Float, nullable=False, default=0.1))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    user: Optional["Users"] = Relationship()

    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 1", name="ck_vendors_commission_rate"),
        CheckConstraint("business_type IS NULL OR business_type IN ('individual', 'company', 'corporation')", name="ck_vendors_business_type"),
    )


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("categories.id", ondelete="SET NULL"), index=True, nullable=True))
    name: str = Field(sa_column=Column(String(200), nullable=False))
    slug: str = Field(sa_column=Column(String(200), unique=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    image_url: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    sort_order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id())
    vendor_id: int = Field(sa_column=Column(ForeignKey("vendors.id", ondelete="CASCADE"), index=True, nullable=False))
    category_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("categories.id", ondelete="SET NULL"), index=True, nullable=True))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    slug: str = Field(sa_column=Column(String(255), unique=True, nullable=False, index=True))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    short_description: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    sku: Optional[str] = Field(default=None, sa_column=Column(String(128), unique=True, nullable=True))
    # money is stored in cents
    base_price: int = Field(sa_column=Column(Integer, nullable=False))
    compare_price: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    cost_price: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    weight_grams: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    images: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False, default=list))
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False, default=list))
    is_digital: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    requires_shipping: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True, index=True))
    is_featured: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    vendor: Optional["Vendor"] = Relationship()
    category: Optional["Category"] = Relationship()
    variants: List["ProductVariant"] = Relationship(back_populates="product")
    inventory: List["Inventory"] = Relationship()

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_products_base_price"),
        CheckConstraint("compare_price IS NULL OR compare_price >= base_price", name="ck_products_compare_price"),
        CheckConstraint("cost_price IS NULL OR cost_price >= 0", name="ck_products_cost_price"),
    )


class ProductVariant(SQLModel, table=True):
    __tablename__ = "product_variants"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(sa_column=Column(ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    sku: Optional[str] = Field(default=None, sa_column=Column(String(128), unique=True, nullable=True))
    price: int = Field(sa_column=Column(Integer, nullable=False))
    compare_price: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    attributes: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False, default=dict))
    image_url: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    sort_order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    product: Optional["Product"] = Relationship(back_populates="variants")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_product_variants_price"),
        CheckConstraint("compare_price IS NULL OR compare_price >= price", name="ck_product_variants_compare_price"),
    )


class Inventory(SQLModel, table=True):
    __tablename__ = "inventory"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(sa_column=Column(ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False))
    variant_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("product_variants.id", ondelete="CASCADE"), index=True, nullable=True))
    quantity: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    reserved_quantity: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    low_stock_threshold: int = Field(default=5, sa_column=Column(Integer, nullable=False, default=5))
    track_inventory: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    allow_backorder: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    location: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    last_restocked_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    __table_args__ = (
        UniqueConstraint("product_id", "variant_id", name="uq_inventory_product_variant"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity"),
        CheckConstraint("reserved_quantity >= 0", name="ck_inventory_reserved"),
        CheckConstraint("low_stock_threshold >= 0", name="ck_inventory_low_stock"),
    )


# ----------------------------------------------------------------------------------------------
# orders & payments

class OrderStatus(SQLModel, table=True):
    __tablename__ = "order_status"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(32), unique=True, nullable=False))
    description: Optional[str] = None
    color: str = Field(default="#6B7280", sa_column=Column(String(16), nullable=False, default="#6B7280"))
    sort_order: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class Orders(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id())
    customer_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True))
    order_number: str = Field(sa_column=Column(String(32), unique=True, nullable=False, index=True))
    status_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("order_status.id", ondelete="SET NULL"), index=True, nullable=True))
    subtotal: int = Field(sa_column=Column(Integer, nullable=False))
    tax_amount: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    shipping_amount: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    discount_amount: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    total_amount: int = Field(sa_column=Column(Integer, nullable=False))
    currency: str = Field(default="USD", sa_column=Column(String(3), nullable=False, default="USD"))
    billing_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    shipping_address: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    cancelled_reason: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    status: Optional["OrderStatus"] = Relationship()
    items: List["OrderItem"] = Relationship(back_populates="order")

    __table_args__ = (
        CheckConstraint("subtotal >= 0 AND tax_amount >= 0 AND shipping_amount >= 0 AND discount_amount >= 0 AND total_amount >= 0",
                        name="ck_orders_amounts"),
        CheckConstraint("length(currency) = 3", name="ck_orders_currency"),
    )


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("products.id", ondelete="SET NULL"), index=True, nullable=True))
    variant_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True))
    vendor_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("vendors.id", ondelete="SET NULL"), index=True, nullable=True))
    quantity: int = Field(sa_column=Column(Integer, nullable=False))
    unit_price: int = Field(sa_column=Column(Integer, nullable=False))
    total_price: int = Field(sa_column=Column(Integer, nullable=False))
    product_snapshot: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    order: Optional["Orders"] = Relationship(back_populates="items")
    product: Optional["Product"] = Relationship()
    variant: Optional["ProductVariant"] = Relationship()
    vendor: Optional["Vendor"] = Relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
        CheckConstraint("unit_price >= 0 AND total_price >= 0", name="ck_order_items_prices"),
    )


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id())
    order_id: int = Field(sa_column=Column(ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False))
    payment_method: str = Field(sa_column=Column(String(32), nullable=False))
    payment_provider: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    provider_payment_id: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    amount: int = Field(sa_column=Column(Integer, nullable=False))
    currency: str = Field(default="USD", sa_column=Column(String(3), nullable=False, default="USD"))
    status: str = Field(default="pending", sa_column=Column(String(16), nullable=False, default="pending", index=True))
    gateway_response: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    processed_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payments_amount"),
        CheckConstraint("payment_method IN ('credit_card', 'debit_card', 'paypal', 'stripe', 'bank_transfer', 'cash_on_delivery')",
                        name="ck_payments_method"),
        CheckConstraint("status IN ('pending', 'processing', 'completed', 'failed', 'cancelled', 'refunded')", name="ck_payments_status"),
    )


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("orders.id", ondelete="SET NULL"), index=True, nullable=True))
    payment_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("payments.id", ondelete="SET NULL"), nullable=True))
    vendor_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("vendors.id", ondelete="SET NULL"), index=True, nullable=True))
    type: str = Field(sa_column=Column(String(16), nullable=False))
    amount: int = Field(sa_column=Column(Integer, nullable=False))
    currency: str = Field(default="USD", sa_column=Column(String(3), nullable=False, default="USD"))
    description: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    reference_id: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    processed_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    __table_args__ = (
        CheckConstraint("type IN ('sale', 'refund', 'commission', 'payout', 'fee')", name="ck_transactions_type"),
    )


# ----------------------------------------------------------------------------------------------
# customer data

class CartItem(SQLModel, table=True):
    __tablename__ = "shopping_carts"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: int = Field(sa_column=Column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False))
    variant_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    added_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    product: Optional["Product"] = Relationship()
    variant: Optional["ProductVariant"] = Relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", "variant_id", name="uq_cart_user_product_variant"),
        CheckConstraint("quantity > 0", name="ck_shopping_carts_quantity"),
    )


class WishlistItem(SQLModel, table=True):
    __tablename__ = "wishlists"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: int = Field(sa_column=Column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False))
    variant_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    added_at: datetime = Field(default_factory=now, sa_column=_created())

    product: Optional["Product"] = Relationship()
    variant: Optional["ProductVariant"] = Relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", "variant_id", name="uq_wishlist_user_product_variant"),
    )


class Review(SQLModel, table=True):
    __tablename__ = "reviews"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=_public_id())
    product_id: int = Field(sa_column=Column(ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    order_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("orders.id", ondelete="SET NULL"), nullable=True))
    rating: int = Field(sa_column=Column(Integer, nullable=False))
    title: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    content: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    images: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False, default=list))
    is_verified_purchase: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    is_approved: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    helpful_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=_ts())
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    user: Optional["Users"] = Relationship()

    __table_args__ = (
        # deleted reviews give their slot back
        Index("uq_review_product_user_order", "product_id", "user_id", "order_id", unique=True,
              postgresql_where=text("deleted_at IS NULL"), sqlite_where=text("deleted_at IS NULL")),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating"),
        CheckConstraint("helpful_count >= 0", name="ck_reviews_helpful_count"),
    )


class Rating(SQLModel, table=True):
    __tablename__ = "ratings"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(sa_column=Column(ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False))
    user_id: int = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    rating: int = Field(sa_column=Column(Integer, nullable=False))
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    __table_args__ = (
        UniqueConstraint("product_id", "user_id", name="uq_rating_product_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_ratings_rating"),
    )


class Preference(SQLModel, table=True):
    """Per-user preferences; rows without a user are global site settings."""
    __tablename__ = "preferences"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=True))
    category: str = Field(sa_column=Column(String(64), nullable=False))
    key: str = Field(sa_column=Column(String(128), nullable=False))
    value: Optional[Any] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=_created())
    updated_at: datetime = Field(default_factory=now, sa_column=_updated())

    __table_args__ = (UniqueConstraint("user_id", "category", "key", name="uq_preference_user_category_key"),)
