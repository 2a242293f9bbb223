"""
Referral endpoints for API v1.

A new user enters a referral code during onboarding.  Redeeming it
creates the user's welcome coupon and credits the referrer.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from only2u_api.app.core.security import ADMIN_ROLES, get_current_account, require_roles
from only2u_api.app.schemas.referral import (
    CouponRef,
    ReferralAnalytics,
    ReferralCodeCreate,
    ReferralCodeRead,
    ReferralCodeValidateRequest,
    ReferralCodeValidation,
    ReferralRedeemRequest,
    ReferralRedemption,
)
from only2u_api.app.services.referral_service import ReferralService
from only2u_api.app.services.user_service import UserService

router = APIRouter()


@router.post("/validate", response_model=ReferralCodeValidation)
async def validate_referral_code(data: ReferralCodeValidateRequest) -> ReferralCodeValidation:
    return await ReferralService.validate_referral_code(data.code)


@router.post("/redeem", response_model=ReferralRedemption)
async def redeem_referral_code(
    data: ReferralRedeemRequest,
    request: Request,
    current_user: dict = Depends(get_current_account),
) -> ReferralRedemption:
    """Redeem a referral code for the signed-in user."""
    user = await UserService.get_user(current_user["user_id"])
    try:
        return await ReferralService.redeem_referral_code(
            data.code,
            user.id,
            user_email=data.user_email or user.email,
            user_name=data.user_name or user.full_name,
            user_phone=user.phone,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/new-user-coupon", response_model=CouponRef)
async def new_user_coupon(current_user: dict = Depends(get_current_account)) -> CouponRef:
    return await ReferralService.ensure_new_user_coupon(current_user["user_id"])


@router.post("/codes", response_model=ReferralCodeRead, status_code=status.HTTP_201_CREATED)
async def create_referral_code(
    data: ReferralCodeCreate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> ReferralCodeRead:
    try:
        return await ReferralService.create_referral_code(data, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/codes/{code}/analytics", response_model=ReferralAnalytics)
async def referral_code_analytics(
    code: str,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> ReferralAnalytics:
    try:
        return await ReferralService.get_analytics(code)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
