"""
通知関連のAPIエンドポイント
通知一覧・未読件数・既読化・削除・通知オープン
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.notification import (
    NotificationCreate,
    NotificationResponse,
    NotificationCountResponse,
    MarkReadRequest,
    OpenNotificationResponse,
    MessageResponse,
    NotificationType,
)
from app.services.email_service import EmailService, get_email_service
from app.services.navigation import NavigationService
from app.services.notification_ledger import NotificationLedger, NotificationNotFoundError, serialize_notification
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=List[NotificationResponse],
    summary="通知一覧取得",
    description="""
ログインユーザーの通知一覧を新しい順に取得します。

## 認証
`Authorization: Bearer {token}` ヘッダーが必要です。

## 対象
- 自分宛ての個人通知
- 自分が受信対象のブロードキャスト通知（ロール・試験アクセスで判定）

`read` はログインユーザーにとっての既読状態です。
""",
)
def list_notifications(
    include_read: bool = Query(True, description="既読の通知も含めるか"),
    types: Optional[List[NotificationType]] = Query(None, description="通知タイプで絞り込み"),
    limit: int = Query(settings.NOTIFICATION_LIST_DEFAULT_LIMIT, ge=1, le=200, description="取得件数"),
    offset: int = Query(0, ge=0, description="スキップ件数"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """通知一覧取得エンドポイント"""
    ledger = NotificationLedger(db)
    return ledger.list_for_user(
        current_user,
        include_read=include_read,
        types=list(types) if types else None,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/count",
    response_model=NotificationCountResponse,
    summary="未読件数取得",
    responses={
        200: {
            "description": "取得成功",
            "content": {"application/json": {"example": {"count": 3}}},
        },
        401: {
            "description": "認証エラー",
            "content": {"application/json": {"example": {"detail": "認証トークンが必要です"}}},
        },
    },
)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """未読件数取得エンドポイント"""
    return NotificationCountResponse(count=NotificationLedger(db).count_unread(current_user))


@router.post(
    "",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="通知作成",
    description="""
通知を1件作成します。

- `user_id` を指定すると個人宛て通知（配信設定で拒否された場合は 409）
- 省略するとブロードキャスト通知（`target_roles` / `target_users` で受信者を指定）
""",
)
def create_notification(
    request: NotificationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    email: EmailService = Depends(get_email_service),
):
    """通知作成エンドポイント"""
    try:
        notification = NotificationService(db, email=email).create_notification(request)
    except Exception as e:
        logger.error(f"通知作成エラー: {str(e)}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="通知の作成に失敗しました",
        )

    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="受信者の通知設定により通知は作成されませんでした",
        )

    logger.info(f"通知作成: by={current_user.id}, id={notification.id}")
    return serialize_notification(notification, notification.read, notification.read_at)


@router.post(
    "/mark-read",
    response_model=NotificationCountResponse,
    summary="通知を既読にする",
    description="""
指定した通知を既読にします。何度呼び出しても結果は同じです。

`count` は今回新たに既読になった件数です。
""",
)
def mark_read(
    request: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """既読化エンドポイント"""
    try:
        count = NotificationLedger(db).mark_as_read(request.ids, current_user)
    except Exception as e:
        logger.error(f"既読化エラー: {str(e)}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="既読化に失敗しました",
        )
    return NotificationCountResponse(count=count)


@router.post(
    "/mark-all-read",
    response_model=NotificationCountResponse,
    summary="すべて既読にする",
)
def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """一括既読化エンドポイント"""
    try:
        count = NotificationLedger(db).mark_all_as_read(current_user)
    except Exception as e:
        logger.error(f"一括既読化エラー: {str(e)}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="既読化に失敗しました",
        )
    return NotificationCountResponse(count=count)


@router.delete(
    "/{notification_id}",
    response_model=MessageResponse,
    summary="通知削除",
    description="自分宛ての個人通知を削除します。ブロードキャスト通知は削除できません（404）。",
)
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """通知削除エンドポイント"""
    try:
        NotificationLedger(db).delete(notification_id, current_user)
    except NotificationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="通知が見つかりません"
        )
    return MessageResponse(success=True, message="通知を削除しました")


@router.post(
    "/{notification_id}/open",
    response_model=OpenNotificationResponse,
    summary="通知を開く",
    description="""
通知を既読にしてから関連データを取得し、遷移先URLを返します。

既読化に失敗した場合も遷移先は返します（`marked_read` が false）。
""",
)
def open_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """通知オープンエンドポイント"""
    try:
        result = NavigationService(db).open_notification(notification_id, current_user)
    except NotificationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="通知が見つかりません"
        )
    return OpenNotificationResponse(**result)
