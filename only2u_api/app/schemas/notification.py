"""
Pydantic schemas for push notifications and notification preferences.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

NotificationType = Literal["push", "in_app"]


class PushTokenRegister(BaseModel):
    token: str = Field(..., min_length=1, examples=["ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"])


class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    body: str = Field(..., min_length=1, max_length=1000)
    data: Optional[Dict[str, Any]] = None


class BroadcastResult(BaseModel):
    devices: int
    chunks: int
    failed_chunks: int


class NotificationCreate(BaseModel):
    user_id: str
    type: NotificationType = "in_app"
    title: str = Field(..., min_length=1, max_length=120)
    body: str = Field(..., min_length=1, max_length=1000)
    data: Optional[Dict[str, Any]] = None


class NotificationRead(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    read: bool
    created_at: str


class NotificationList(BaseModel):
    notifications: List[NotificationRead]


class NotificationPreferences(BaseModel):
    push_enabled: bool = True
    email_enabled: bool = True
    order_updates: bool = True
    promotions: bool = True
    new_products: bool = False
