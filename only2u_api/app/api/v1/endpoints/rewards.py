"""
Special reward code endpoints for API v1.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from only2u_api.app.core.security import ADMIN_ROLES, get_current_user, is_admin, require_roles
from only2u_api.app.schemas.reward import (
    AssignRewardRequest,
    AssignRewardResponse,
    RewardPoolAdd,
    RewardPoolAddResult,
    RewardPoolStats,
    SpecialCodeCreate,
)
from only2u_api.app.services.reward_service import (
    NoRewardCodesError,
    RewardClaimConflictError,
    RewardService,
)

router = APIRouter()


@router.post("/assign", response_model=AssignRewardResponse)
async def assign_special_reward(
    data: AssignRewardRequest,
    response: Response,
    current_user: dict = Depends(get_current_user),
) -> AssignRewardResponse:
    """Assign a pool code to a user who redeemed a special referral code.

    ``user_id`` defaults to the caller; only administrators may assign
    codes to somebody else.  A code that is not special yields
    ``success: false`` with status 200; an empty pool or a lost claim
    race keep the same body shape with status 404 or 409.
    """
    user_id = data.user_id or current_user.get("user_id")
    if user_id and user_id != current_user.get("user_id") and not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    try:
        return await RewardService.assign_special_reward(data.referral_code, user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NoRewardCodesError as e:
        response.status_code = status.HTTP_404_NOT_FOUND
        return AssignRewardResponse(success=False, message=str(e))
    except RewardClaimConflictError as e:
        response.status_code = status.HTTP_409_CONFLICT
        return AssignRewardResponse(success=False, message=str(e))


@router.post("/special-codes", status_code=status.HTTP_201_CREATED)
async def add_special_code(
    data: SpecialCodeCreate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> dict:
    try:
        return await RewardService.add_special_code(
            data.code, is_active=data.is_active, actor_id=current_user.get("user_id")
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/pool", response_model=RewardPoolAddResult, status_code=status.HTTP_201_CREATED)
async def add_pool_codes(
    data: RewardPoolAdd,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> RewardPoolAddResult:
    return await RewardService.add_pool_codes(data.codes, actor_id=current_user.get("user_id"))


@router.get("/pool/stats", response_model=RewardPoolStats)
async def pool_stats(current_user: dict = Depends(require_roles(*ADMIN_ROLES))) -> RewardPoolStats:
    return await RewardService.pool_stats()
