"""
イベント通知API
タスク作成・シグナル検出を受けて通知を生成する
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.notification import EventNotificationResponse
from app.services.email_service import EmailService, get_email_service
from app.services.notification_service import NotificationService, EventSourceNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Event Notifications"])


@router.post(
    "/tasks/{task_id}/notifications",
    response_model=EventNotificationResponse,
    summary="タスク作成通知",
    description="""
タスクの担当ロールに通知を送ります。

- 通知先ごとに個人宛て通知を作成（システム内通知が無効なユーザーは除外）
- 期限付きタスクはメール通知も送信（メール通知が有効なユーザーのみ）
""",
)
def notify_task(
    task_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    email: EmailService = Depends(get_email_service),
):
    """タスク作成通知エンドポイント"""
    try:
        created = NotificationService(db, email=email).notify_task_created(task_id)
    except EventSourceNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="タスクが見つかりません"
        )
    except Exception as e:
        logger.error(f"タスク通知エラー: task={task_id}, error={str(e)}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="通知の作成に失敗しました",
        )

    logger.info(f"タスク通知: by={current_user.id}, task={task_id}, 件数={len(created)}")
    return EventNotificationResponse(
        message=f"{len(created)}件の通知を作成しました", count=len(created)
    )


@router.post(
    "/signals/{signal_id}/notifications",
    response_model=EventNotificationResponse,
    summary="シグナル検出通知",
    description="""
シグナルの担当ロールにブロードキャスト通知を1件作成します。

配信設定を通過した通知先がいない場合、通知は作成されません（count = 0）。
""",
)
def notify_signal(
    signal_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    email: EmailService = Depends(get_email_service),
):
    """シグナル検出通知エンドポイント"""
    try:
        created = NotificationService(db, email=email).notify_signal_detected(signal_id)
    except EventSourceNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="シグナルが見つかりません"
        )
    except Exception as e:
        logger.error(f"シグナル通知エラー: signal={signal_id}, error={str(e)}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="通知の作成に失敗しました",
        )

    logger.info(f"シグナル通知: by={current_user.id}, signal={signal_id}, 件数={len(created)}")
    return EventNotificationResponse(
        message=f"{len(created)}件の通知を作成しました", count=len(created)
    )
