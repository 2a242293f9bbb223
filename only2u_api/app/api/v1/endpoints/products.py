"""
Product catalog endpoints for API v1.

Browsing is public.  Shoppers only see active products; administrators
can also list inactive ones and manage the catalog.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from only2u_api.app.core.security import ADMIN_ROLES, get_optional_user, is_admin, require_roles
from only2u_api.app.schemas.product import (
    CategoryCreate,
    CategoryRead,
    ProductCreate,
    ProductDetail,
    ProductPage,
    ProductRead,
    ProductUpdate,
    StockUpdate,
    VariantCreate,
    VariantRead,
)
from only2u_api.app.services.product_service import ProductService

router = APIRouter()


def _http_error(e: ValueError) -> HTTPException:
    detail = str(e)
    status_code = status.HTTP_404_NOT_FOUND if "not found" in detail else status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=detail)


@router.get("", response_model=ProductPage, summary="Browse products")
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category_id: Optional[str] = Query(None),
    featured_type: Optional[str] = Query(None, examples=["trending"]),
    is_active: Optional[bool] = Query(None, description="Administrators only"),
    search: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    current_user: Optional[dict] = Depends(get_optional_user),
) -> ProductPage:
    if not is_admin(current_user):
        is_active = True
    return await ProductService.list_products(
        page=page,
        limit=limit,
        category_id=category_id,
        featured_type=featured_type,
        is_active=is_active,
        search=search,
        min_price=min_price,
        max_price=max_price,
    )


@router.get("/trending", response_model=List[ProductRead])
async def trending_products(limit: int = Query(10, ge=1, le=50)) -> List[ProductRead]:
    return await ProductService.get_trending(limit)


@router.get("/search", response_model=List[ProductRead])
async def search_products(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
) -> List[ProductRead]:
    return await ProductService.search_products(q, limit)


@router.get("/categories", response_model=List[CategoryRead])
async def list_categories() -> List[CategoryRead]:
    return await ProductService.list_categories()


@router.post("/categories", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> CategoryRead:
    try:
        return await ProductService.create_category(data, actor_id=current_user.get("user_id"))
    except ValueError as e:
        detail = str(e)
        status_code = status.HTTP_409_CONFLICT if "already exists" in detail else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=status_code, detail=detail)


@router.get("/{product_id}", response_model=ProductDetail)
async def get_product(
    product_id: str,
    current_user: Optional[dict] = Depends(get_optional_user),
) -> ProductDetail:
    """A product with its variants; inactive products are hidden from shoppers."""
    try:
        product = await ProductService.get_product(product_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if not product.is_active and not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Product {product_id} not found")
    return product


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> ProductRead:
    try:
        return await ProductService.create_product(data, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise _http_error(e)


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> ProductRead:
    try:
        return await ProductService.update_product(product_id, data, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise _http_error(e)


@router.patch("/{product_id}/stock", response_model=ProductRead)
async def update_stock(
    product_id: str,
    data: StockUpdate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> ProductRead:
    try:
        return await ProductService.update_stock(product_id, data, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise _http_error(e)


@router.post("/{product_id}/variants", response_model=VariantRead, status_code=status.HTTP_201_CREATED)
async def add_variant(
    product_id: str,
    data: VariantCreate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> VariantRead:
    try:
        return await ProductService.add_variant(product_id, data, actor_id=current_user.get("user_id"))
    except ValueError as e:
        detail = str(e)
        status_code = status.HTTP_404_NOT_FOUND if "not found" in detail else status.HTTP_409_CONFLICT
        raise HTTPException(status_code=status_code, detail=detail)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_product(
    product_id: str,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> None:
    """Deactivate a product; it disappears from the shop but keeps its history."""
    try:
        await ProductService.deactivate_product(product_id, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
