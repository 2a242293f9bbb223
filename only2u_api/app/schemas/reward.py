"""
Pydantic schemas for special reward codes.

Redeeming a special referral code hands the user one code from a
finite pool of partner reward codes.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class AssignRewardRequest(BaseModel):
    referral_code: Optional[str] = Field(None, alias="referralCode")
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = {
        "populate_by_name": True,
    }


class AssignRewardResponse(BaseModel):
    success: bool
    code: Optional[str] = None
    message: Optional[str] = None


class SpecialCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=32)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        return v.strip().upper()


class RewardPoolAdd(BaseModel):
    codes: List[str] = Field(..., min_length=1, max_length=5000)


class RewardPoolAddResult(BaseModel):
    added: int
    skipped: int


class RewardPoolStats(BaseModel):
    total: int
    assigned: int
    available: int
