"""
API endpoints for product reviews.

Product reviews are public.  Signed-in users can review a product
once and edit or delete their own review; administrators can list
reviews across products for moderation and delete any review.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from only2u_api.app.core.security import (
    ADMIN_ROLES,
    ensure_self_or_admin,
    get_current_account,
    get_current_user,
    is_admin,
    require_roles,
)
from only2u_api.app.schemas.review import ProductReviews, ReviewCreate, ReviewPage, ReviewRead, ReviewUpdate
from only2u_api.app.services.review_service import DuplicateReviewError, ReviewService
from only2u_api.app.services.user_service import UserService

router = APIRouter()


@router.get("/product/{product_id}", response_model=ProductReviews, summary="Reviews of a product")
async def get_product_reviews(
    product_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> ProductReviews:
    """Return a page of reviews with the total count and average rating."""
    return await ReviewService.get_product_reviews(product_id, page=page, limit=limit)


@router.get("/user/{user_id}", response_model=List[ReviewRead])
async def get_user_reviews(user_id: str, current_user: dict = Depends(get_current_user)) -> List[ReviewRead]:
    ensure_self_or_admin(current_user, user_id)
    return await ReviewService.get_user_reviews(user_id)


@router.get("", response_model=ReviewPage, summary="List reviews")
async def list_reviews(
    product_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    is_verified: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> ReviewPage:
    return await ReviewService.list_reviews(
        product_id=product_id,
        user_id=user_id,
        min_rating=min_rating,
        is_verified=is_verified,
        page=page,
        limit=limit,
    )


@router.get("/{review_id}", response_model=ReviewRead, summary="Get a single review")
async def get_review(review_id: str) -> ReviewRead:
    try:
        return await ReviewService.get_review(review_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=ReviewRead, status_code=status.HTTP_201_CREATED, summary="Submit a review")
async def create_review(data: ReviewCreate, current_user: dict = Depends(get_current_account)) -> ReviewRead:
    """Create a review for a product.

    ``reviewer_name`` defaults to the name on the user's profile.
    Returns 409 when the user already reviewed the product.
    """
    user = await UserService.get_user(current_user["user_id"])
    try:
        return await ReviewService.create_review(data, user.id, default_name=user.full_name)
    except DuplicateReviewError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.put("/{review_id}", response_model=ReviewRead)
async def update_review(
    review_id: str,
    data: ReviewUpdate,
    current_user: dict = Depends(get_current_account),
) -> ReviewRead:
    try:
        return await ReviewService.update_review(review_id, current_user["user_id"], data)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(review_id: str, current_user: dict = Depends(get_current_user)) -> None:
    try:
        await ReviewService.delete_review(
            review_id, current_user.get("user_id"), is_admin=is_admin(current_user)
        )
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
