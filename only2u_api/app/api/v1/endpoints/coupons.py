"""
Coupon endpoints for API v1.

Coupons are listed and validated at checkout; the order flow redeems
the chosen coupon once the order is placed.  Only administrators can
create coupons.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from only2u_api.app.core.security import (
    ADMIN_ROLES,
    ensure_self_or_admin,
    get_current_account,
    get_current_user,
    get_optional_user,
    require_roles,
)
from only2u_api.app.schemas.coupon import (
    CouponCreate,
    CouponRead,
    CouponRedeemRequest,
    CouponValidateRequest,
    CouponValidation,
    RedemptionRead,
    UserCouponRead,
)
from only2u_api.app.services.coupon_service import CouponService

router = APIRouter()


@router.get("", response_model=List[CouponRead], summary="Available coupons")
async def list_available_coupons(current_user: Optional[dict] = Depends(get_optional_user)) -> List[CouponRead]:
    """Coupons that can currently be applied.

    For signed-in users, coupons they already redeemed are omitted.
    """
    user_id = current_user.get("user_id") if current_user else None
    return await CouponService.get_available_coupons(user_id)


@router.get("/code/{code}", response_model=CouponRead)
async def get_coupon_by_code(code: str) -> CouponRead:
    coupon = await CouponService.get_coupon_by_code(code)
    if not coupon:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return coupon


@router.post("/validate", response_model=CouponValidation)
async def validate_coupon(
    data: CouponValidateRequest,
    current_user: Optional[dict] = Depends(get_optional_user),
) -> CouponValidation:
    user_id = current_user.get("user_id") if current_user else None
    return await CouponService.validate_coupon(data.code, data.order_amount, user_id)


@router.post("/redeem", response_model=RedemptionRead, status_code=status.HTTP_201_CREATED)
async def redeem_coupon(
    data: CouponRedeemRequest,
    current_user: dict = Depends(get_current_account),
) -> RedemptionRead:
    try:
        return await CouponService.redeem_coupon(
            current_user["user_id"], data.coupon_id, data.order_id, data.discount_amount
        )
    except ValueError as e:
        detail = str(e)
        status_code = status.HTTP_404_NOT_FOUND if "not found" in detail else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=status_code, detail=detail)


@router.post("", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    data: CouponCreate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> CouponRead:
    try:
        return await CouponService.create_coupon(data, created_by=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/user/{user_id}", response_model=List[UserCouponRead])
async def get_user_coupons(user_id: str, current_user: dict = Depends(get_current_user)) -> List[UserCouponRead]:
    ensure_self_or_admin(current_user, user_id)
    return await CouponService.get_user_coupons(user_id)
