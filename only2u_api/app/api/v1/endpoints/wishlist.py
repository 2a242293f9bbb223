"""
Wishlist endpoints for API v1.

Users keep products in named collections.  Public collections can be
browsed without signing in.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from only2u_api.app.core.security import get_current_account, get_optional_user, is_admin
from only2u_api.app.schemas.product import ProductRead
from only2u_api.app.schemas.wishlist import CollectionCreate, CollectionProductAdd, CollectionRead
from only2u_api.app.services.wishlist_service import WishlistService

router = APIRouter()


@router.get("/user/{user_id}", response_model=List[CollectionRead])
async def get_user_collections(
    user_id: str,
    current_user: Optional[dict] = Depends(get_optional_user),
) -> List[CollectionRead]:
    """All of a user's collections for the owner or an administrator, public ones otherwise."""
    include_private = is_admin(current_user) or (current_user or {}).get("user_id") == user_id
    return await WishlistService.get_user_collections(user_id, include_private=include_private)


@router.post("", response_model=CollectionRead, status_code=status.HTTP_201_CREATED)
async def create_collection(
    data: CollectionCreate,
    current_user: dict = Depends(get_current_account),
) -> CollectionRead:
    return await WishlistService.create_collection(current_user["user_id"], data)


@router.get("/{collection_id}/products", response_model=List[ProductRead])
async def get_collection_products(
    collection_id: str,
    current_user: Optional[dict] = Depends(get_optional_user),
) -> List[ProductRead]:
    viewer_id = current_user.get("user_id") if current_user else None
    try:
        return await WishlistService.get_collection_products(collection_id, viewer_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{collection_id}/products", response_model=CollectionRead)
async def add_product(
    collection_id: str,
    data: CollectionProductAdd,
    current_user: dict = Depends(get_current_account),
) -> CollectionRead:
    try:
        return await WishlistService.add_product(collection_id, data.product_id, current_user["user_id"])
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{collection_id}/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_product(
    collection_id: str,
    product_id: str,
    current_user: dict = Depends(get_current_account),
) -> None:
    try:
        await WishlistService.remove_product(collection_id, product_id, current_user["user_id"])
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(collection_id: str, current_user: dict = Depends(get_current_account)) -> None:
    try:
        await WishlistService.delete_collection(collection_id, current_user["user_id"])
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
