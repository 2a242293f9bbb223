"""
Feedback endpoints for API v1.

Anyone may send feedback; signed-in users get it linked to their
account and can list it later.  Support staff (administrators) triage
feedback by status.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from only2u_api.app.core.security import (
    ADMIN_ROLES,
    ensure_self_or_admin,
    get_current_user,
    get_optional_user,
    is_admin,
    require_roles,
)
from only2u_api.app.schemas.feedback import (
    FeedbackCreate,
    FeedbackPage,
    FeedbackRead,
    FeedbackStatus,
    FeedbackStatusUpdate,
)
from only2u_api.app.services.feedback_service import FeedbackService

router = APIRouter()


@router.post("", response_model=FeedbackRead, status_code=status.HTTP_201_CREATED)
async def create_feedback(
    data: FeedbackCreate,
    current_user: Optional[dict] = Depends(get_optional_user),
) -> FeedbackRead:
    user_id = current_user.get("user_id") if current_user else None
    return await FeedbackService.create_feedback(data, user_id=user_id)


@router.get("/user/{user_id}", response_model=List[FeedbackRead])
async def get_user_feedback(user_id: str, current_user: dict = Depends(get_current_user)) -> List[FeedbackRead]:
    ensure_self_or_admin(current_user, user_id)
    return await FeedbackService.get_user_feedback(user_id)


@router.get("/admin", response_model=FeedbackPage, summary="List all feedback")
async def list_feedback(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[FeedbackStatus] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> FeedbackPage:
    return await FeedbackService.list_feedback(page=page, limit=limit, status=status_filter, category=category)


@router.get("/{feedback_id}", response_model=FeedbackRead)
async def get_feedback(feedback_id: str, current_user: dict = Depends(get_current_user)) -> FeedbackRead:
    """Owners can read their own feedback; administrators can read any."""
    try:
        feedback = await FeedbackService.get_feedback(feedback_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if not is_admin(current_user) and feedback.user_id != current_user.get("user_id"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return feedback


@router.put("/{feedback_id}/status", response_model=FeedbackRead)
async def update_feedback_status(
    feedback_id: str,
    data: FeedbackStatusUpdate,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> FeedbackRead:
    try:
        return await FeedbackService.update_status(feedback_id, data.status, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{feedback_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_feedback(
    feedback_id: str,
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> None:
    try:
        await FeedbackService.delete_feedback(feedback_id, actor_id=current_user.get("user_id"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None
