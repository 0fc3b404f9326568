"""
User Model - ユーザーテーブル（ユーザーディレクトリ）
ロールと試験アクセス権を保持する。通知エンジンからは参照のみ
"""

from datetime import datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base

if TYPE_CHECKING:
    from .notification import Notification
    from .notification_setting import NotificationSetting


class User(Base):
    """ユーザーテーブル"""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(100), nullable=False, default="user", index=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    # None または ["All Studies"] は全試験アクセス可
    study_access: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    notifications: Mapped[list["Notification"]] = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )
    notification_setting: Mapped[Optional["NotificationSetting"]] = relationship(
        "NotificationSetting", back_populates="user", cascade="all, delete-orphan", uselist=False
    )
