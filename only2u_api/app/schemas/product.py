"""
Pydantic schemas for the product catalog.

Products belong to an optional category and carry sellable variants
(size/colour combinations with their own price and stock).  Prices
are in rupees.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120, examples=["Sarees"])
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int = 0

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name must not be empty")
        return v


class CategoryRead(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int
    is_active: bool


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, examples=["Banarasi silk saree"])
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    video_urls: List[str] = Field(default_factory=list)
    base_price: float = Field(..., ge=0)
    featured_type: Optional[str] = Field(None, max_length=32, examples=["trending", "best_seller"])
    vendor_name: Optional[str] = Field(None, max_length=120)
    tags: List[str] = Field(default_factory=list)
    stock_quantity: int = Field(0, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Product name must not be empty")
        return v


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[str] = None
    image_urls: Optional[List[str]] = None
    video_urls: Optional[List[str]] = None
    base_price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None
    featured_type: Optional[str] = Field(None, max_length=32)
    stock_quantity: Optional[int] = Field(None, ge=0)

    @field_validator("name", "base_price", "is_active", "stock_quantity")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class StockUpdate(BaseModel):
    """Either a relative ``delta`` or an absolute ``stock_quantity``."""

    delta: Optional[int] = None
    stock_quantity: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def one_of(self) -> "StockUpdate":
        if self.delta is None and self.stock_quantity is None:
            raise ValueError("Either delta or stock_quantity is required")
        return self


class VariantCreate(BaseModel):
    sku: Optional[str] = Field(None, max_length=64)
    size: Optional[str] = Field(None, max_length=16, examples=["M"])
    color: Optional[str] = Field(None, max_length=32, examples=["Maroon"])
    price: float = Field(..., ge=0)
    mrp_price: Optional[float] = Field(None, ge=0)
    quantity: int = Field(0, ge=0)
    image_urls: List[str] = Field(default_factory=list)


class VariantRead(BaseModel):
    id: str
    product_id: str
    sku: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    price: float
    mrp_price: Optional[float] = None
    discount_percentage: float
    quantity: int
    image_urls: List[str] = []
    is_active: bool


class ProductRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    slug: str
    category_id: Optional[str] = None
    image_urls: List[str] = []
    video_urls: List[str] = []
    base_price: float
    featured_type: Optional[str] = None
    vendor_name: Optional[str] = None
    tags: List[str] = []
    stock_quantity: int
    like_count: int
    is_active: bool
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }


class ProductDetail(ProductRead):
    variants: List[VariantRead] = []
    category: Optional[CategoryRead] = None


class ProductPage(BaseModel):
    products: List[ProductRead]
    total: int
    page: int
    limit: int
