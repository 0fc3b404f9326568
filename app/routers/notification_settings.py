"""
Notification Settings API - 通知設定管理
メール通知・システム内通知・critical_only の取得と更新
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.notification_setting import (
    NotificationSettingsResponse,
    NotificationSettingsUpdateRequest,
)
from app.services.preference_service import PreferenceService

router = APIRouter(prefix="/api", tags=["Notification Settings"])


@router.get(
    "/notification-settings",
    response_model=NotificationSettingsResponse,
    summary="通知設定取得",
    description="""
ログインユーザーの通知設定を取得します。

## 認証
`Authorization: Bearer {token}` ヘッダーが必要です。

## 設定項目
- **email_notifications**: メール通知の有効/無効
- **push_notifications**: システム内通知の有効/無効
- **critical_only**: critical / high の通知のみ受け取る

設定を保存したことがない場合は既定値（すべて受け取る）を返します。
""",
    responses={
        200: {
            "description": "取得成功",
            "content": {
                "application/json": {
                    "example": {
                        "email_notifications": True,
                        "push_notifications": True,
                        "critical_only": False
                    }
                }
            }
        },
        401: {
            "description": "認証エラー",
            "content": {
                "application/json": {
                    "example": {"detail": "認証トークンが必要です"}
                }
            }
        }
    }
)
def get_notification_settings(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """通知設定取得エンドポイント"""
    values = PreferenceService(db).get_effective_settings(current_user.id)
    return NotificationSettingsResponse(**values)


@router.patch(
    "/notification-settings",
    response_model=NotificationSettingsResponse,
    summary="通知設定更新",
    description="""
ログインユーザーの通知設定を更新します。指定した項目のみ変更されます。

## 認証
`Authorization: Bearer {token}` ヘッダーが必要です。
""",
    responses={
        200: {
            "description": "更新成功",
            "content": {
                "application/json": {
                    "example": {
                        "email_notifications": False,
                        "push_notifications": True,
                        "critical_only": True
                    }
                }
            }
        },
        401: {
            "description": "認証エラー",
            "content": {
                "application/json": {
                    "example": {"detail": "認証トークンが必要です"}
                }
            }
        }
    }
)
def update_notification_settings(
    request: NotificationSettingsUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """通知設定更新エンドポイント"""
    setting = PreferenceService(db).update_settings(
        current_user.id, request.model_dump(exclude_none=True)
    )
    return NotificationSettingsResponse.model_validate(setting)
