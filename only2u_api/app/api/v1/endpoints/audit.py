"""
Audit log endpoint for API v1.

Services record create, update, delete, redeem and payment actions;
administrators page through them here.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from only2u_api.app.core.security import ADMIN_ROLES, require_roles
from only2u_api.app.schemas.audit import AuditLogPage
from only2u_api.app.services.audit_service import AuditService

router = APIRouter()


@router.get("", response_model=AuditLogPage)
async def list_audit_logs(
    user_id: Optional[str] = Query(None, description="Acting user"),
    object_type: Optional[str] = Query(None, examples=["coupon"]),
    action: Optional[str] = Query(None, examples=["redeem"]),
    start_date: Optional[str] = Query(None, description="ISO date or timestamp"),
    end_date: Optional[str] = Query(None, description="ISO date or timestamp"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_roles(*ADMIN_ROLES)),
) -> AuditLogPage:
    return await AuditService.list_logs(
        user_id=user_id,
        object_type=object_type,
        action=action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
