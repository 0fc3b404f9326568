"""
通知オープン処理
既読化 → 関連データのプリフェッチ → 遷移先の決定 を必ずこの順で行う

既読化に失敗しても遷移は止めない（ログを残して続行）
"""
import logging
from typing import Optional, Dict, Any, Callable
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode
from sqlalchemy.orm import Session

from app.models.notification import Notification
from app.models.task import Task, SignalDetection
from app.models.user import User
from app.services.notification_ledger import NotificationLedger

logger = logging.getLogger(__name__)

Prefetcher = Callable[[Session, int], Optional[Dict[str, Any]]]

# 通知タイプごとの遷移先（action_url がない場合）
DEFAULT_URLS = {
    "task": "/tasks",
    "signal": "/signals",
}
FALLBACK_URL = "/notifications"


def prefetch_task(db: Session, task_id: int) -> Optional[Dict[str, Any]]:
    task = db.get(Task, task_id)
    if task is None:
        return None
    return {
        "id": task.id,
        "task_id": task.task_id,
        "title": task.title,
        "priority": task.priority,
        "assigned_to": task.assigned_to,
        "due_date": task.due_date.isoformat() if task.due_date else None,
        "trial_id": task.trial_id,
    }


def prefetch_signal(db: Session, signal_id: int) -> Optional[Dict[str, Any]]:
    signal = db.get(SignalDetection, signal_id)
    if signal is None:
        return None
    return {
        "id": signal.id,
        "detection_id": signal.detection_id,
        "title": signal.title,
        "priority": signal.priority,
        "assigned_to": signal.assigned_to,
        "detection_date": signal.detection_date.isoformat() if signal.detection_date else None,
        "trial_id": signal.trial_id,
    }


# related_entity_type → プリフェッチ関数
PREFETCHERS: Dict[str, Prefetcher] = {
    "task": prefetch_task,
    "signal": prefetch_signal,
}


def build_navigation_url(notification: Notification, marked_read: bool) -> str:
    """遷移先URLに通知経由であることを示すクエリを付与"""
    base = notification.action_url or DEFAULT_URLS.get(notification.type, FALLBACK_URL)
    parts = urlsplit(base)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append(("from", "notification"))
    query.append(("notificationMarkedRead", "true" if marked_read else "false"))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class NavigationService:
    """通知オープン処理クラス"""

    def __init__(
        self,
        db: Session,
        ledger: Optional[NotificationLedger] = None,
        prefetchers: Optional[Dict[str, Prefetcher]] = None,
    ):
        self.db = db
        self.ledger = ledger or NotificationLedger(db)
        self.prefetchers = PREFETCHERS if prefetchers is None else prefetchers

    def open_notification(self, notification_id: int, user: User) -> Dict[str, Any]:
        """
        通知を開く

        Returns:
            notification_id, marked_read, url, related を含む辞書

        Raises:
            NotificationNotFoundError: 閲覧できない通知
        """
        notification = self.ledger.get_visible(notification_id, user)
        entity_type = notification.related_entity_type
        entity_id = notification.related_entity_id

        # 1. 既読化（コミット完了まで待つ）
        try:
            self.ledger.mark_as_read([notification.id], user)
            marked_read = True
        except Exception as e:
            logger.error(f"既読化に失敗したが遷移は続行: notification={notification_id}, user={user.id}, error={e}")
            self.db.rollback()
            marked_read = False

        # 2. 関連データのプリフェッチ
        related = None
        prefetch = self.prefetchers.get(entity_type or "")
        if prefetch is not None and entity_id is not None:
            related = prefetch(self.db, entity_id)

        # 3. 遷移先
        url = build_navigation_url(notification, marked_read)
        logger.info(f"通知を開く: notification={notification_id}, user={user.id}, url={url}")

        return {
            "notification_id": notification_id,
            "marked_read": marked_read,
            "url": url,
            "related": related,
        }
