from typing import Any
from pydantic import BaseModel, Field


class PreferenceIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-z0-9_.-]+$")
    key: str = Field(..., min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_.-]+$")
    value: Any = None
