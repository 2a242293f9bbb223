"""
Order endpoints for API v1.

Customers place orders, follow them and may cancel one before it
ships.  Administrators see every order and move it through
fulfilment.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from only2u_api.app.core.db import to_iso
from only2u_api.app.core.security import (
    ADMIN_ROLES,
    ensure_self_or_admin,
    get_current_account,
    get_current_user,
    is_admin,
    require_roles,
)
from only2u_api.app.schemas.order import OrderCreate, OrderPage, OrderRead, OrderStatus, OrderStatusUpdate
from only2u_api.app.services.order_service import OrderService

router = APIRouter()


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED, summary="Place an order")
async def create_order(data: OrderCreate, current_user: dict = Depends(get_current_account)) -> OrderRead:
    try:
        return await OrderService.create_order(current_user["user_id"], data)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("", response_model=OrderPage, summary="List all orders")
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Order number fragment"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> OrderPage:
    return await OrderService.list_orders(
        page=page,
        limit=limit,
        user_id=user_id,
        status=status_filter,
        search=q,
        date_from=to_iso(date_from) if date_from else None,
        date_to=to_iso(date_to) if date_to else None,
    )


@router.get("/user/{user_id}", response_model=OrderPage)
async def get_user_orders(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
) -> OrderPage:
    ensure_self_or_admin(current_user, user_id)
    return await OrderService.list_orders(page=page, limit=limit, user_id=user_id)


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(order_id: str, current_user: dict = Depends(get_current_user)) -> OrderRead:
    """Owners can read their own orders; administrators can read any."""
    try:
        order = await OrderService.get_order(order_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if not is_admin(current_user) and order.user_id != current_user.get("user_id"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return order


@router.put("/{order_id}/status", response_model=OrderRead)
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> OrderRead:
    try:
        return await OrderService.update_status(order_id, data, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{order_id}/cancel", response_model=OrderRead)
async def cancel_order(order_id: str, current_user: dict = Depends(get_current_account)) -> OrderRead:
    try:
        return await OrderService.cancel_order(order_id, current_user["user_id"])
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ValueError as e:
        detail = str(e)
        status_code = status.HTTP_404_NOT_FOUND if "not found" in detail else status.HTTP_409_CONFLICT
        raise HTTPException(status_code=status_code, detail=detail)
