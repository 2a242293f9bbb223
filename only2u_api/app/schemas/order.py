"""
Pydantic schemas for orders.

Line totals, the subtotal and the order total are derived from the
items when the app does not send them.  Amounts are in rupees.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded", "partial"]


class Address(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=1, max_length=20)
    address_line1: str = Field(..., min_length=1, max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., min_length=1, max_length=80)
    state: str = Field(..., min_length=1, max_length=80)
    postal_code: str = Field(..., min_length=1, max_length=12)
    country: str = "India"


class OrderItemCreate(BaseModel):
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    product_name: str = Field(..., min_length=1, max_length=200)
    product_sku: Optional[str] = None
    product_image: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total_price: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def fill_total(self) -> "OrderItemCreate":
        if self.total_price is None:
            self.total_price = round(self.quantity * self.unit_price, 2)
        return self


class OrderCreate(BaseModel):
    payment_method: Optional[str] = Field(None, max_length=32, examples=["razorpay", "cod"])
    payment_id: Optional[str] = None
    subtotal: Optional[float] = Field(None, ge=0)
    tax_amount: float = Field(0, ge=0)
    shipping_amount: float = Field(0, ge=0)
    discount_amount: float = Field(0, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    shipping_address: Address
    billing_address: Optional[Address] = None
    notes: Optional[str] = Field(None, max_length=1000)
    items: List[OrderItemCreate] = Field(..., min_length=1)
    clear_cart: bool = Field(False, description="Empty the caller's cart once the order is stored")

    @model_validator(mode="after")
    def fill_amounts(self) -> "OrderCreate":
        if self.subtotal is None:
            self.subtotal = round(sum(item.total_price for item in self.items), 2)
        if self.total_amount is None:
            total = self.subtotal + self.tax_amount + self.shipping_amount - self.discount_amount
            self.total_amount = round(max(total, 0), 2)
        return self


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    tracking_number: Optional[str] = Field(None, max_length=64)
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class OrderItemRead(BaseModel):
    id: str
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    product_name: str
    product_sku: Optional[str] = None
    product_image: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float


class OrderRead(BaseModel):
    id: str
    user_id: str
    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    payment_id: Optional[str] = None
    subtotal: float
    tax_amount: float
    shipping_amount: float
    discount_amount: float
    total_amount: float
    shipping_address: Address
    billing_address: Optional[Address] = None
    tracking_number: Optional[str] = None
    shipped_at: Optional[str] = None
    delivered_at: Optional[str] = None
    notes: Optional[str] = None
    created_at: str
    updated_at: str
    items: List[OrderItemRead] = []


class OrderPage(BaseModel):
    orders: List[OrderRead]
    total: int
    page: int
    limit: int
