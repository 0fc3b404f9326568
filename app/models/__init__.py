"""
SQLAlchemy Models for the Trial Notification Engine

Usage:
    from app.models import User, Notification, NotificationReadStatus, etc.
    # または
    from app.models import Base
"""

from .base import Base
from .user import User
from .trial import Trial
from .task import Task, SignalDetection
from .notification import Notification, NotificationReadStatus
from .notification_setting import NotificationSetting

__all__ = [
    "Base",
    "User",
    "Trial",
    "Task",
    "SignalDetection",
    "Notification",
    "NotificationReadStatus",
    "NotificationSetting",
]
