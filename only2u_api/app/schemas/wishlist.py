"""
Pydantic schemas for wishlist collections.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CollectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Wedding looks"])
    description: Optional[str] = Field(None, max_length=500)
    is_private: bool = True
    is_default: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Collection name must not be empty")
        return v


class CollectionProductAdd(BaseModel):
    product_id: str


class CollectionRead(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    is_private: bool
    is_default: bool
    product_count: int = 0
    created_at: str
    updated_at: str
