"""
Cart endpoints for API v1.  Every route acts on the caller's cart.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from only2u_api.app.core.security import get_current_account
from only2u_api.app.schemas.cart import CartItemAdd, CartItemUpdate, CartRead
from only2u_api.app.services.cart_service import CartService

router = APIRouter()


@router.get("", response_model=CartRead)
async def get_cart(current_user: dict = Depends(get_current_account)) -> CartRead:
    return await CartService.get_cart(current_user["user_id"])


@router.post("/items", response_model=CartRead, status_code=status.HTTP_201_CREATED)
async def add_item(data: CartItemAdd, current_user: dict = Depends(get_current_account)) -> CartRead:
    try:
        return await CartService.add_item(current_user["user_id"], data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/items/{item_id}", response_model=CartRead)
async def update_item(
    item_id: str,
    data: CartItemUpdate,
    current_user: dict = Depends(get_current_account),
) -> CartRead:
    try:
        return await CartService.update_quantity(current_user["user_id"], item_id, data.quantity)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/items/{item_id}", response_model=CartRead)
async def remove_item(item_id: str, current_user: dict = Depends(get_current_account)) -> CartRead:
    try:
        return await CartService.remove_item(current_user["user_id"], item_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(current_user: dict = Depends(get_current_account)) -> None:
    await CartService.clear(current_user["user_id"])
    return None
