"""
Notification Model - 通知テーブル / ブロードキャスト既読台帳

user_id あり: 個人宛て通知。read / read_at がそのまま既読状態
user_id なし: ブロードキャスト通知。既読状態は NotificationReadStatus に追記する
"""
from datetime import datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from sqlalchemy.sql import func

from app.roles import normalize_roles, normalize_user_ids

from .base import Base

if TYPE_CHECKING:
    from .user import User

NOTIFICATION_TYPES = ("task", "signal", "system", "protocol", "query", "data", "monitoring", "safety")
NOTIFICATION_PRIORITIES = ("critical", "high", "medium", "low", "info")


class Notification(Base):
    """通知テーブル"""
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    trial_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("trials.id"), nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # "Task Management", "Signal Detection AI" など
    related_entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    related_entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    action_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    action_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # 正規化済み（重複なし・ソート済み）リスト
    target_roles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    target_users: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, server_default=func.now(), nullable=False, index=True
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    user: Mapped[Optional["User"]] = relationship("User", back_populates="notifications")
    read_statuses: Mapped[list["NotificationReadStatus"]] = relationship(
        "NotificationReadStatus",
        back_populates="notification",
        cascade="all, delete-orphan",
    )

    @validates("target_roles")
    def _normalize_target_roles(self, key, value):
        return normalize_roles(value)

    @validates("target_users")
    def _normalize_target_users(self, key, value):
        return normalize_user_ids(value)

    @property
    def is_broadcast(self) -> bool:
        return self.user_id is None


class NotificationReadStatus(Base):
    """ブロードキャスト通知の既読台帳（通知×ユーザーで最大1行）"""
    __tablename__ = "notification_read_status"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_read_status_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    notification_id: Mapped[int] = mapped_column(Integer, ForeignKey("notifications.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    read_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    # Relationships
    notification: Mapped["Notification"] = relationship("Notification", back_populates="read_statuses")
