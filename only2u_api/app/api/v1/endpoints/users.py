"""
User endpoints for API v1.

Users manage their own profile through ``/users/me``; administrators
can list, inspect, disable and delete accounts.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from only2u_api.app.core.security import ADMIN_ROLES, get_current_account, require_roles
from only2u_api.app.schemas.user import UserList, UserRead, UserStatusUpdate, UserUpdate
from only2u_api.app.services.user_service import UserService

router = APIRouter()


@router.get("/me", response_model=UserRead)
async def read_me(current_user: dict = Depends(get_current_account)) -> UserRead:
    try:
        return await UserService.get_user(current_user["user_id"])
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/me", response_model=UserRead)
async def update_me(data: UserUpdate, current_user: dict = Depends(get_current_account)) -> UserRead:
    """Update the caller's profile (name, email, picture, size, skin tone)."""
    try:
        return await UserService.update_profile(current_user["user_id"], data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=UserList)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Substring of phone, name or email"),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> UserList:
    return await UserService.list_users(page=page, limit=limit, search=search)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: str = Path(...),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> UserRead:
    try:
        return await UserService.get_user(user_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str = Path(...),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> None:
    try:
        await UserService.delete_user(user_id, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None


@router.put("/{user_id}/status", response_model=UserRead)
async def set_user_status(
    data: UserStatusUpdate,
    user_id: str = Path(...),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> UserRead:
    try:
        return await UserService.set_disabled(user_id, data.disabled, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
