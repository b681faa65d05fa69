from typing import Optional
from pydantic import BaseModel, Field
from bazaar.cart.constants import MAX_ITEM_QTY


class CartItemInput(BaseModel):
    product_public_id: str
    variant_id: Optional[int] = None
    quantity: int = Field(1, gt=0, le=MAX_ITEM_QTY)


class CartQuantityIn(BaseModel):
    quantity: int = Field(..., gt=0, le=MAX_ITEM_QTY)
