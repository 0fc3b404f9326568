"""
通知エンジンのサービス層
"""

from .notification_ledger import (
    NotificationLedger,
    NotificationServiceError,
    NotificationNotFoundError,
    is_broadcast_visible,
)
from .notification_service import NotificationService, EventSourceNotFoundError
from .preference_service import PreferenceService, DeliveryChannel
from .targeting import TargetingResolver, Recipient

__all__ = [
    "NotificationLedger",
    "NotificationServiceError",
    "NotificationNotFoundError",
    "is_broadcast_visible",
    "NotificationService",
    "EventSourceNotFoundError",
    "PreferenceService",
    "DeliveryChannel",
    "TargetingResolver",
    "Recipient",
]
