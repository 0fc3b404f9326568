"""Notification setting schemas"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationSettingsResponse(BaseModel):
    """通知設定レスポンス"""
    email_notifications: bool = Field(..., description="メール通知の有効/無効")
    push_notifications: bool = Field(..., description="システム内通知の有効/無効")
    critical_only: bool = Field(..., description="critical/high のみ受け取る")

    model_config = ConfigDict(from_attributes=True)


class NotificationSettingsUpdateRequest(BaseModel):
    """通知設定更新リクエスト（指定した項目のみ更新）"""
    email_notifications: Optional[bool] = Field(None, description="メール通知の有効/無効")
    push_notifications: Optional[bool] = Field(None, description="システム内通知の有効/無効")
    critical_only: Optional[bool] = Field(None, description="critical/high のみ受け取る")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email_notifications": False,
                "critical_only": True,
            }
        }
    )
