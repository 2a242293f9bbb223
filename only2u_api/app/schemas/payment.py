"""
Pydantic models for Razorpay orders and payment verification.

Amounts are expressed in the smallest currency unit (paise for INR),
as Razorpay expects.
"""

from typing import Optional

from pydantic import BaseModel, Field


class OrderCreate(BaseModel):
    amount: float = Field(..., examples=[49900], description="Amount in paise")
    currency: str = Field("INR", min_length=3, max_length=3)
    receipt: Optional[str] = Field(None, max_length=40)


class OrderRead(BaseModel):
    order_id: str
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None


class PaymentVerifyRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class PaymentVerifyResponse(BaseModel):
    verified: bool
    message: str


class PaymentRead(BaseModel):
    id: str
    user_id: Optional[str] = None
    razorpay_order_id: str
    razorpay_payment_id: Optional[str] = None
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: str
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }
