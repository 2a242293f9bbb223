"""
Payment endpoints for API v1.

The app creates a Razorpay order before opening the checkout and
sends the checkout result back to ``/razorpay/verify``.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from only2u_api.app.core.security import get_current_user, is_admin
from only2u_api.app.schemas.payment import OrderCreate, OrderRead, PaymentRead, PaymentVerifyRequest, PaymentVerifyResponse
from only2u_api.app.services.payment_service import PaymentProviderError, PaymentService

router = APIRouter()


@router.post("/razorpay/order", response_model=OrderRead, summary="Create a Razorpay order")
async def create_razorpay_order(
    data: OrderCreate,
    current_user: dict = Depends(get_current_user),
) -> OrderRead:
    """Create an order for ``amount`` paise.

    Provider errors are returned with Razorpay's status code and
    description.
    """
    try:
        return await PaymentService.create_order(
            data.amount,
            currency=data.currency,
            receipt=data.receipt,
            user_id=current_user.get("user_id"),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PaymentProviderError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": str(e), "details": e.details})
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post("/razorpay/verify", response_model=PaymentVerifyResponse, summary="Verify a Razorpay payment")
async def verify_razorpay_payment(
    data: PaymentVerifyRequest,
    current_user: dict = Depends(get_current_user),
) -> PaymentVerifyResponse:
    try:
        verified = await PaymentService.verify_payment(
            data.razorpay_order_id,
            data.razorpay_payment_id,
            data.razorpay_signature,
            user_id=None if is_admin(current_user) else current_user.get("user_id"),
        )
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    if not verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"verified": False, "message": "Payment verification failed"},
        )
    return PaymentVerifyResponse(verified=True, message="Payment verified successfully")


@router.get("", response_model=List[PaymentRead])
async def list_payments(
    user_id: Optional[str] = Query(None, description="Administrators only"),
    status_param: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user),
) -> List[PaymentRead]:
    """Administrators see all payments; users see only their own."""
    if not is_admin(current_user):
        user_id = current_user.get("user_id")
    return await PaymentService.list_payments(user_id=user_id, status=status_param, limit=limit, offset=offset)
