"""
Pydantic schemas for the shopping cart.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class CartItemAdd(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(1, ge=1, le=99)


class CartItemUpdate(BaseModel):
    """A quantity of zero or less removes the line."""

    quantity: int = Field(..., le=99)


class CartItemRead(BaseModel):
    id: str
    product_id: str
    variant_id: Optional[str] = None
    product_name: str
    product_image: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    price: float
    quantity: int
    line_total: float


class CartRead(BaseModel):
    items: List[CartItemRead]
    item_count: int
    subtotal: float
