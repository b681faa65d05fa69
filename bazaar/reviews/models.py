from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from bazaar.auth.dependencies import sanitize_input


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = Field(None, max_length=5000)
    images: List[str] = Field(default_factory=list, max_length=10)
    order_public_id: Optional[str] = None

    @field_validator("title", "content")
    @classmethod
    def _clean(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return sanitize_input(v) or None


class RatingIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)


class ReviewModerationIn(BaseModel):
    is_approved: bool = True
