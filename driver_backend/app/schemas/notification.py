"""
Notification Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any, List


class NotificationResponse(BaseModel):
    id: int
    app_type: str
    notification_type: str
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int


class PushTokenRequest(BaseModel):
    push_token: str = Field(..., min_length=1, max_length=500)
    platform: str = Field(..., pattern="^(ios|android|web)$")
    app_type: str = Field(default="driver")


class PushTokenResponse(BaseModel):
    user_id: int
    app_type: str
    platform: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
