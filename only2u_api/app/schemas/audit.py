"""
Pydantic schemas for the audit trail.
"""

from typing import Any, List, Optional

from pydantic import BaseModel


class AuditLogRead(BaseModel):
    id: int
    user_id: Optional[str] = None
    action: str
    object_type: Optional[str] = None
    object_id: Optional[str] = None
    timestamp: str
    details: Optional[Any] = None


class AuditLogPage(BaseModel):
    logs: List[AuditLogRead]
    total: int
    limit: int
    offset: int
