from typing import Optional
from pydantic import BaseModel, Field


class WishlistItemIn(BaseModel):
    product_public_id: str
    variant_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=512)
