from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator
from bazaar.auth.dependencies import sanitize_input


def _check_compare_price(price: Optional[int], compare_price: Optional[int], label: str):
    if price is not None and compare_price is not None and compare_price < price:
        raise ValueError(f"compare_price must be greater than or equal to {label}")


# columns that are NOT NULL on products; PATCH may omit them but not clear them
PRODUCT_REQUIRED_FIELDS = ("name", "base_price", "images", "tags", "is_digital", "requires_shipping", "is_active", "is_featured")


class ProductCreateIn(BaseModel):
    vendor_public_id: Optional[str] = Field(None, description="Required when the caller owns several vendor profiles")
    category_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=512)
    sku: Optional[str] = Field(None, max_length=128)
    base_price: int = Field(..., ge=0, description="Price in cents")
    compare_price: Optional[int] = Field(None, ge=0)
    cost_price: Optional[int] = Field(None, ge=0)
    weight_grams: Optional[int] = Field(None, ge=0)
    images: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    is_digital: bool = False
    requires_shipping: bool = True
    is_active: bool = True
    is_featured: bool = False
    stock_qty: Optional[int] = Field(None, ge=0, description="Initial inventory for the base product")

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _prices(self):
        self.name = sanitize_input(self.name)
        _check_compare_price(self.base_price, self.compare_price, "base_price")
        return self


class ProductUpdateIn(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=512)
    sku: Optional[str] = Field(None, max_length=128)
    base_price: Optional[int] = Field(None, ge=0)
    compare_price: Optional[int] = Field(None, ge=0)
    cost_price: Optional[int] = Field(None, ge=0)
    weight_grams: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    is_digital: Optional[bool] = None
    requires_shipping: Optional[bool] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None

    model_config = {"extra": "forbid"}   # unknown fields are a 422, not silently dropped

    @model_validator(mode="after")
    def _no_null_required(self):
        nulls = sorted(f for f in PRODUCT_REQUIRED_FIELDS if f in self.model_fields_set and getattr(self, f) is None)
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        if self.name is not None:
            self.name = sanitize_input(self.name)
        return self


class VariantCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: Optional[str] = Field(None, max_length=128)
    price: int = Field(..., ge=0)
    compare_price: Optional[int] = Field(None, ge=0)
    attributes: Dict[str, Any] = Field(default_factory=dict)
    image_url: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    stock_qty: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _prices(self):
        _check_compare_price(self.price, self.compare_price, "price")
        return self


class InventoryIn(BaseModel):
    variant_id: Optional[int] = None
    quantity: int = Field(..., ge=0)
    reserved_quantity: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    track_inventory: Optional[bool] = None
    allow_backorder: Optional[bool] = None
    location: Optional[str] = Field(None, max_length=255)
    restocked_at: Optional[datetime] = None
