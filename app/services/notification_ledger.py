"""
通知台帳サービス
通知の保存、ユーザー視点の一覧・未読件数、既読化を担当

個人宛て通知（user_id あり）は通知行の read / read_at を更新する。
ブロードキャスト通知（user_id なし）は通知行を更新せず、
NotificationReadStatus に (notification_id, user_id) を1行だけ追記する。
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable, Set
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationReadStatus
from app.models.user import User
from app.roles import (
    VisibilityScope,
    get_role_visibility,
    has_role,
    has_study_access,
)
from app.services.targeting import TargetingResolver

logger = logging.getLogger(__name__)


class NotificationServiceError(Exception):
    """通知サービス関連のエラー"""

    pass


class NotificationNotFoundError(NotificationServiceError):
    """通知が存在しない、または閲覧権限がない"""

    pass


def is_broadcast_visible(notification: Notification, user: User, protocol_id: Optional[str]) -> bool:
    """
    ユーザーがブロードキャスト通知の受信者か判定

    1. target_users に含まれる
    2. 閲覧範囲 ALL のロール（必要なら試験アクセスも確認）
    3. target_users が空で、ロールが target_roles に含まれ、試験アクセスがある
    """
    if user.id in (notification.target_users or []):
        return True

    policy = get_role_visibility(user.role)
    if policy.scope == VisibilityScope.ALL:
        if not policy.requires_study_access or has_study_access(user.study_access, protocol_id):
            return True

    if notification.target_users:
        return False

    return has_role(notification.target_roles, user.role) and has_study_access(
        user.study_access, protocol_id
    )


def serialize_notification(notification: Notification, read: bool, read_at: Optional[datetime]) -> Dict[str, Any]:
    """ユーザー視点の既読状態を付けて辞書化"""
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "title": notification.title,
        "description": notification.description,
        "type": notification.type,
        "priority": notification.priority,
        "trial_id": notification.trial_id,
        "source": notification.source,
        "related_entity_type": notification.related_entity_type,
        "related_entity_id": notification.related_entity_id,
        "action_required": notification.action_required,
        "action_url": notification.action_url,
        "target_roles": list(notification.target_roles or []),
        "target_users": list(notification.target_users or []),
        "read": read,
        "read_at": read_at,
        "created_at": notification.created_at,
    }


class NotificationLedger:
    """通知台帳クラス"""

    def __init__(self, db: Session, resolver: Optional[TargetingResolver] = None):
        self.db = db
        self.resolver = resolver or TargetingResolver(db)

    # ============================================
    # 書き込み
    # ============================================
    def add(self, values: Dict[str, Any]) -> Notification:
        """通知を1行追加（コミットは呼び出し側）"""
        notification = Notification(**values)
        self.db.add(notification)
        self.db.flush()
        logger.debug(f"通知を追加: id={notification.id}, user={notification.user_id}, type={notification.type}")
        return notification

    # ============================================
    # 参照
    # ============================================
    def _direct_query(self, user_id: int, types: Optional[List[str]] = None):
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if types:
            query = query.filter(Notification.type.in_(types))
        return query

    def visible_broadcasts(self, user: User, types: Optional[List[str]] = None) -> List[Notification]:
        """ユーザーが受信者となるブロードキャスト通知"""
        query = self.db.query(Notification).filter(Notification.user_id.is_(None))
        if types:
            query = query.filter(Notification.type.in_(types))

        protocols: Dict[Optional[int], Optional[str]] = {}
        visible = []
        for notification in query.all():
            if notification.trial_id not in protocols:
                protocols[notification.trial_id] = self.resolver.resolve_protocol_id(notification.trial_id)
            if is_broadcast_visible(notification, user, protocols[notification.trial_id]):
                visible.append(notification)
        return visible

    def read_receipts(self, user_id: int, notification_ids: Optional[Iterable[int]] = None) -> Dict[int, datetime]:
        """ブロードキャストの既読記録 {notification_id: read_at}"""
        query = self.db.query(NotificationReadStatus).filter(NotificationReadStatus.user_id == user_id)
        if notification_ids is not None:
            query = query.filter(NotificationReadStatus.notification_id.in_(list(notification_ids)))
        return {status.notification_id: status.read_at for status in query.all()}

    def get_visible(self, notification_id: int, user: User) -> Notification:
        """ユーザーが閲覧できる通知を取得"""
        notification = self.db.get(Notification, notification_id)
        if notification is None:
            raise NotificationNotFoundError(f"通知が見つかりません: {notification_id}")

        if notification.is_broadcast:
            protocol_id = self.resolver.resolve_protocol_id(notification.trial_id)
            if is_broadcast_visible(notification, user, protocol_id):
                return notification
        elif notification.user_id == user.id:
            return notification

        raise NotificationNotFoundError(f"通知が見つかりません: {notification_id}")

    def list_for_user(
        self,
        user: User,
        include_read: bool = True,
        types: Optional[List[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        ユーザーの通知一覧（個人宛て ∪ 受信対象のブロードキャスト）

        Returns:
            新しい順の通知辞書リスト（read はユーザー視点）
        """
        entries: Dict[int, Dict[str, Any]] = {}

        for notification in self._direct_query(user.id, types).all():
            entries[notification.id] = serialize_notification(
                notification, notification.read, notification.read_at
            )

        broadcasts = self.visible_broadcasts(user, types)
        receipts = self.read_receipts(user.id, [n.id for n in broadcasts])
        for notification in broadcasts:
            if notification.id in entries:
                continue
            read_at = receipts.get(notification.id)
            entries[notification.id] = serialize_notification(notification, read_at is not None, read_at)

        results = sorted(entries.values(), key=lambda n: (n["created_at"], n["id"]), reverse=True)
        if not include_read:
            results = [n for n in results if not n["read"]]

        logger.info(f"通知一覧: user={user.id}, 件数={len(results)}")
        return results[offset:offset + limit]

    def _unread_broadcast_ids(self, user: User) -> Set[int]:
        broadcast_ids = {n.id for n in self.visible_broadcasts(user)}
        if not broadcast_ids:
            return set()
        return broadcast_ids - set(self.read_receipts(user.id, broadcast_ids))

    def unread_ids(self, user: User) -> Set[int]:
        """ユーザー視点で未読の通知ID"""
        direct_ids = {
            row.id for row in self.db.query(Notification.id).filter(
                Notification.user_id == user.id,
                Notification.read.is_(False),
            )
        }
        return direct_ids | self._unread_broadcast_ids(user)

    def count_unread(self, user: User) -> int:
        """
        未読件数 = 個人宛て未読 + 受信対象ブロードキャストの未読

        個人宛てとブロードキャストは user_id の有無で分かれるため重複しない
        """
        direct_unread = self.db.query(Notification).filter(
            Notification.user_id == user.id,
            Notification.read.is_(False),
        ).count()
        broadcast_unread = len(self._unread_broadcast_ids(user))

        logger.debug(f"未読件数: user={user.id}, 個人宛て={direct_unread}, ブロードキャスト={broadcast_unread}")
        return direct_unread + broadcast_unread

    # ============================================
    # 既読化
    # ============================================
    def _has_read_status(self, notification_id: int, user_id: int) -> bool:
        return self.db.query(NotificationReadStatus.id).filter(
            NotificationReadStatus.notification_id == notification_id,
            NotificationReadStatus.user_id == user_id,
        ).first() is not None

    def _insert_read_status(self, notification_id: int, user_id: int, read_at: datetime) -> bool:
        """
        既読記録を追加（既にあれば何もしない）

        Returns:
            新たに追加したか
        """
        if self._has_read_status(notification_id, user_id):
            return False

        try:
            with self.db.begin_nested():
                self.db.add(NotificationReadStatus(
                    notification_id=notification_id,
                    user_id=user_id,
                    read_at=read_at,
                ))
        except IntegrityError:
            # 同時リクエストで先に追加された場合は一意制約で弾かれる
            logger.info(f"既読記録は追加済み: notification={notification_id}, user={user_id}")
            return False
        return True

    def mark_as_read(self, notification_ids: Iterable[int], user: User) -> int:
        """
        通知を既読にする（冪等）

        Returns:
            このユーザーにとって未読→既読になった件数
        """
        ids = sorted(set(notification_ids))
        if not ids:
            return 0

        now = datetime.now()
        changed = 0

        direct = self.db.query(Notification).filter(
            Notification.id.in_(ids),
            Notification.user_id == user.id,
            Notification.read.is_(False),
        ).all()
        for notification in direct:
            notification.read = True
            notification.read_at = now
        changed += len(direct)

        broadcasts = self.db.query(Notification).filter(
            Notification.id.in_(ids),
            Notification.user_id.is_(None),
        ).all()
        for notification in broadcasts:
            protocol_id = self.resolver.resolve_protocol_id(notification.trial_id)
            if not is_broadcast_visible(notification, user, protocol_id):
                logger.warning(f"受信対象外のブロードキャストは既読化しない: notification={notification.id}, user={user.id}")
                continue
            if self._insert_read_status(notification.id, user.id, now):
                changed += 1

        self.db.commit()
        logger.info(f"既読化: user={user.id}, 指定={len(ids)}件, 更新={changed}件")
        return changed

    def mark_all_as_read(self, user: User) -> int:
        """ユーザー視点で未読の通知をすべて既読にする"""
        ids = self.unread_ids(user)
        if not ids:
            return 0
        return self.mark_as_read(ids, user)

    # ============================================
    # 削除
    # ============================================
    def delete(self, notification_id: int, user: User) -> None:
        """個人宛て通知を削除（ブロードキャストは受信者からは削除できない）"""
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        ).first()
        if notification is None:
            raise NotificationNotFoundError(f"通知が見つかりません: {notification_id}")

        self.db.delete(notification)
        self.db.commit()
        logger.info(f"通知を削除: notification={notification_id}, user={user.id}")
