"""
Pydantic Schemas for the Trial Notification Engine
Based on app/models
"""

from .base import BaseSchema
from .notification import (
    NotificationBase,
    NotificationCreate,
    NotificationResponse,
    NotificationCountResponse,
    MarkReadRequest,
    OpenNotificationResponse,
    EventNotificationResponse,
    MessageResponse,
)
from .notification_setting import (
    NotificationSettingsResponse,
    NotificationSettingsUpdateRequest,
)

__all__ = [
    "BaseSchema",
    "NotificationBase",
    "NotificationCreate",
    "NotificationResponse",
    "NotificationCountResponse",
    "MarkReadRequest",
    "OpenNotificationResponse",
    "EventNotificationResponse",
    "MessageResponse",
    "NotificationSettingsResponse",
    "NotificationSettingsUpdateRequest",
]
