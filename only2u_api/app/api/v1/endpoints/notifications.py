"""
Notification endpoints for API v1.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from only2u_api.app.core.security import ADMIN_ROLES, get_current_account, require_roles
from only2u_api.app.schemas.notification import (
    BroadcastRequest,
    BroadcastResult,
    NotificationCreate,
    NotificationList,
    NotificationPreferences,
    NotificationRead,
    PushTokenRegister,
)
from only2u_api.app.services.notification_service import NotificationService

router = APIRouter()


@router.post("/register-token")
async def register_push_token(
    data: PushTokenRegister,
    current_user: dict = Depends(get_current_account),
) -> dict:
    try:
        await NotificationService.register_push_token(current_user["user_id"], data.token)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"success": True}


@router.post("/broadcast", response_model=BroadcastResult)
async def broadcast(
    data: BroadcastRequest,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> BroadcastResult:
    """Push a message to every registered device."""
    return await NotificationService.broadcast(
        data.title, data.body, data.data, actor_id=current_user.get("user_id")
    )


@router.post("/", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
async def create_notification(
    data: NotificationCreate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> NotificationRead:
    try:
        return await NotificationService.create_notification(
            data.user_id, data.type, data.title, data.body, data.data
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/me", response_model=NotificationList)
async def my_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_account),
) -> NotificationList:
    notifications = await NotificationService.get_user_notifications(current_user["user_id"], limit=limit)
    return NotificationList(notifications=notifications)


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, current_user: dict = Depends(get_current_account)) -> dict:
    try:
        await NotificationService.mark_read(notification_id, current_user["user_id"])
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"success": True}


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(current_user: dict = Depends(get_current_account)) -> NotificationPreferences:
    return await NotificationService.get_preferences(current_user["user_id"])


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    data: NotificationPreferences,
    current_user: dict = Depends(get_current_account),
) -> NotificationPreferences:
    return await NotificationService.update_preferences(current_user["user_id"], data)
