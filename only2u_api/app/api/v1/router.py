"""
Top-level router for version 1 of the API.

This router aggregates the domain routers under a unified prefix.
When a new domain is added, include its router here.
"""

from fastapi import APIRouter

from .endpoints import (
    audit,
    auth,
    cart,
    coupons,
    feedback,
    notifications,
    orders,
    payments,
    products,
    referrals,
    reviews,
    rewards,
    support,
    users,
    wishlist,
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(products.router, prefix="/products", tags=["products"])
router.include_router(orders.router, prefix="/orders", tags=["orders"])
router.include_router(cart.router, prefix="/cart", tags=["cart"])
router.include_router(wishlist.router, prefix="/wishlist", tags=["wishlist"])
router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
router.include_router(feedback.router, prefix="/feedback", tags=["feedback"])
router.include_router(coupons.router, prefix="/coupons", tags=["coupons"])
router.include_router(referrals.router, prefix="/referrals", tags=["referrals"])
router.include_router(rewards.router, prefix="/rewards", tags=["rewards"])
router.include_router(payments.router, prefix="/payments", tags=["payments"])
router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
router.include_router(support.router, prefix="/support", tags=["support"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
