"""
Pydantic schemas for product reviews.

A user may review a product once; the review can later be edited or
deleted by its author.  Product listings show the reviews together
with the review count and the average rating.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _clean_comment(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if len(v) > 1000:
        raise ValueError("Comment must be 1000 characters or fewer")
    return v


class ReviewCreate(BaseModel):
    """Schema for creating a new review."""

    product_id: str = Field(..., min_length=1, description="Identifier of the product being reviewed")
    reviewer_name: Optional[str] = Field(None, max_length=120, description="Defaults to the user's name")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5")
    comment: Optional[str] = Field(None, description="Optional textual comment")
    is_verified: bool = Field(False, description="Reviewer bought the product")
    profile_image_url: Optional[str] = None

    @field_validator("comment")
    @classmethod
    def sanitize_comment(cls, v: Optional[str]) -> Optional[str]:
        """Trim whitespace from the comment and enforce a maximum length."""
        return _clean_comment(v)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None

    @field_validator("rating")
    @classmethod
    def rating_not_null(cls, v: Optional[int]) -> int:
        if v is None:
            raise ValueError("Rating cannot be null")
        return v

    @field_validator("comment")
    @classmethod
    def sanitize_comment(cls, v: Optional[str]) -> Optional[str]:
        return _clean_comment(v)


class ReviewRead(BaseModel):
    id: str
    product_id: str
    user_id: Optional[str]
    reviewer_name: str
    rating: int
    comment: Optional[str]
    is_verified: bool
    profile_image_url: Optional[str]
    helpful_count: int
    created_at: str
    updated_at: str

    model_config = {
        "from_attributes": True,
    }


class ProductReviews(BaseModel):
    reviews: List[ReviewRead]
    total: int
    average_rating: float
    page: int
    limit: int


class ReviewPage(BaseModel):
    reviews: List[ReviewRead]
    total: int
    page: int
    limit: int
