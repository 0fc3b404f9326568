"""Notification schemas"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.roles import normalize_roles, normalize_user_ids

from .base import BaseSchema

NotificationType = Literal["task", "signal", "system", "protocol", "query", "data", "monitoring", "safety"]
NotificationPriority = Literal["critical", "high", "medium", "low", "info"]


class NotificationBase(BaseSchema):
    """Base notification schema"""
    title: str = Field(..., max_length=255)
    description: str
    type: NotificationType
    priority: NotificationPriority = "medium"
    trial_id: Optional[int] = None
    source: Optional[str] = Field(None, max_length=100)
    related_entity_type: Optional[str] = Field(None, max_length=50)
    related_entity_id: Optional[int] = None
    action_required: bool = False
    action_url: Optional[str] = Field(None, max_length=500)

    @field_validator("priority", mode="before")
    @classmethod
    def _lower_priority(cls, value):
        return value.lower() if isinstance(value, str) else value


class NotificationCreate(NotificationBase):
    """
    Schema for creating a notification

    user_id を指定すると個人宛て、省略するとブロードキャスト
    """
    user_id: Optional[int] = None
    target_roles: List[str] = Field(default_factory=list)
    target_users: List[int] = Field(default_factory=list)

    @field_validator("target_roles", mode="before")
    @classmethod
    def _normalize_roles(cls, value):
        return normalize_roles(value)

    @field_validator("target_users", mode="before")
    @classmethod
    def _normalize_users(cls, value):
        return normalize_user_ids(value)


class NotificationResponse(NotificationBase):
    """Schema for notification response（read はリクエストユーザー視点）"""
    id: int
    user_id: Optional[int] = None
    read: bool
    read_at: Optional[datetime] = None
    target_roles: List[str] = Field(default_factory=list)
    target_users: List[int] = Field(default_factory=list)
    created_at: datetime


class NotificationCountResponse(BaseModel):
    """未読件数レスポンス"""
    count: int = Field(..., ge=0, description="未読件数")


class MarkReadRequest(BaseModel):
    """既読化リクエスト"""
    ids: List[int] = Field(..., description="既読にする通知IDのリスト")

    model_config = ConfigDict(
        json_schema_extra={"example": {"ids": [1, 2, 3]}}
    )


class OpenNotificationResponse(BaseModel):
    """通知を開いた結果（遷移先とプリフェッチ済みの関連データ）"""
    notification_id: int
    marked_read: bool = Field(..., description="既読化が完了したか")
    url: str = Field(..., description="遷移先URL")
    related: Optional[dict] = Field(None, description="プリフェッチした関連エンティティ")


class EventNotificationResponse(BaseModel):
    """イベント通知生成レスポンス"""
    message: str
    count: int


class MessageResponse(BaseModel):
    """汎用メッセージレスポンス"""
    success: bool = Field(..., description="処理成功フラグ")
    message: str = Field(..., description="メッセージ")
