"""
Pydantic schemas for coupons and redemptions.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DiscountType = Literal["percentage", "fixed"]


class CouponCreate(BaseModel):
    code: Optional[str] = Field(None, min_length=3, max_length=32, description="Generated when omitted")
    name: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = Field(None, max_length=500)
    discount_type: DiscountType
    discount_value: float = Field(..., gt=0)
    max_discount_amount: Optional[float] = Field(None, gt=0)
    minimum_order_amount: Optional[float] = Field(None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    allow_multiple_use: bool = False
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalise_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else None

    @model_validator(mode="after")
    def check_discount(self) -> "CouponCreate":
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        return self


class CouponRead(BaseModel):
    id: str
    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: float
    max_discount_amount: Optional[float] = None
    minimum_order_amount: Optional[float] = None
    valid_from: Optional[str] = None
    valid_until: Optional[str] = None
    usage_limit: Optional[int] = None
    usage_count: int
    allow_multiple_use: bool
    is_active: bool
    created_by: Optional[str] = None
    created_at: str


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    order_amount: float = Field(..., ge=0)


class CouponValidation(BaseModel):
    valid: bool
    coupon: Optional[CouponRead] = None
    discount_amount: Optional[float] = None
    error: Optional[str] = None


class CouponRedeemRequest(BaseModel):
    coupon_id: str
    order_id: Optional[str] = None
    discount_amount: float = Field(..., ge=0)


class RedemptionRead(BaseModel):
    id: str
    coupon_id: str
    user_id: str
    order_id: Optional[str] = None
    discount_amount: float
    redeemed_at: str


class UserCouponRead(CouponRead):
    redeemed_at: str
    order_id: Optional[str] = None
    discount_amount: float
