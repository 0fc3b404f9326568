"""
Task / SignalDetection Model - 通知のイベント発生源
"""
from datetime import datetime
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base

if TYPE_CHECKING:
    from .trial import Trial


class Task(Base):
    """タスクテーブル"""
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # 表示用コード "TASK_12" など
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    assigned_to: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # 担当ロール
    trial_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("trials.id"), nullable=True, index=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    domain: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    record_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)

    # Relationships
    trial: Mapped[Optional["Trial"]] = relationship("Trial")


class SignalDetection(Base):
    """シグナル検出テーブル"""
    __tablename__ = "signal_detections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    detection_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # カンマ区切りのロール
    trial_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("trials.id"), nullable=True, index=True)
    detection_date: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Relationships
    trial: Mapped[Optional["Trial"]] = relationship("Trial")
