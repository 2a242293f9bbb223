"""
Pydantic schemas for referral codes and referral coupons.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ReferralCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=32)
    owner_user_id: Optional[str] = Field(None, description="Referrer rewarded when the code is redeemed")
    max_uses: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        return v.strip().upper()


class ReferralCodeRead(BaseModel):
    id: str
    code: str
    owner_user_id: Optional[str] = None
    is_active: bool
    max_uses: Optional[int] = None
    usage_count: int
    expires_at: Optional[str] = None
    created_at: str


class ReferralCodeValidateRequest(BaseModel):
    code: str = ""


class ReferralCodeValidation(BaseModel):
    is_valid: bool
    message: str
    referral_code_id: Optional[str] = None


class ReferralRedeemRequest(BaseModel):
    code: str = Field(..., min_length=1)
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class CouponRef(BaseModel):
    id: str
    code: str


class ReferrerReward(BaseModel):
    id: str
    code: str
    referral_count: int
    max_discount: float


class ReferralRedemption(BaseModel):
    coupon: CouponRef
    referrer_reward: Optional[ReferrerReward] = None


class ReferralAnalytics(BaseModel):
    code: str
    total_uses: int
    unique_users: int
    last_used_at: Optional[str] = None
