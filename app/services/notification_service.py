"""
通知サービス
イベント（タスク作成・シグナル検出）発生時の通知先解決、配信設定による絞り込み、
通知の記録、メール送信をまとめて行う

タスク: 通知先ごとに個人宛て通知を1件ずつ作成
シグナル: 複数ロール宛てのため、ブロードキャスト通知を1件だけ作成
"""
import logging
from typing import Optional, List
from sqlalchemy.orm import Session

from app.models.notification import Notification
from app.models.task import Task, SignalDetection
from app.roles import SYSTEM_ADMINISTRATOR, PRINCIPAL_INVESTIGATOR, normalize_roles
from app.schemas.notification import NotificationCreate
from app.services.email_service import (
    EmailService,
    TaskEmailPayload,
    SignalEmailPayload,
    email_service,
)
from app.services.notification_ledger import NotificationLedger, NotificationServiceError
from app.services.preference_service import PreferenceService, DeliveryChannel
from app.services.targeting import TargetingResolver, Recipient

logger = logging.getLogger(__name__)

# 担当ロール未設定のイベントの通知先
DEFAULT_ASSIGNED_ROLE = "Data Manager"

TASK_SOURCE = "Task Management"
SIGNAL_SOURCE = "Signal Detection AI"


class EventSourceNotFoundError(NotificationServiceError):
    """通知元のタスク・シグナルが存在しない"""

    pass


class NotificationService:
    """通知サービスクラス"""

    def __init__(
        self,
        db: Session,
        email: Optional[EmailService] = None,
        resolver: Optional[TargetingResolver] = None,
        preferences: Optional[PreferenceService] = None,
        ledger: Optional[NotificationLedger] = None,
    ):
        self.db = db
        self.email = email or email_service
        self.resolver = resolver or TargetingResolver(db)
        self.preferences = preferences or PreferenceService(db)
        self.ledger = ledger or NotificationLedger(db, self.resolver)

    # ============================================
    # タスク作成通知
    # ============================================
    def notify_task_created(self, task_id: int) -> List[Notification]:
        """
        タスク作成時に担当ロールのユーザーへ通知

        Parameters:
            task_id: タスクID

        Returns:
            作成した個人宛て通知のリスト

        メールは期限（due_date）のあるタスクのみ送信する
        """
        task = self.db.get(Task, task_id)
        if task is None:
            raise EventSourceNotFoundError(f"タスクが見つかりません: {task_id}")

        assigned_role = task.assigned_to or DEFAULT_ASSIGNED_ROLE
        priority = (task.priority or "medium").lower()
        candidates = self.resolver.resolve_recipients(task.trial_id, assigned_role)
        task_code = task.task_id or f"TASK_{task.id}"

        created = []
        for recipient in candidates:
            if not self.preferences.should_deliver(recipient.user_id, DeliveryChannel.PUSH, priority):
                logger.info(f"システム内通知をスキップ: user={recipient.user_id}, task={task.id}")
                continue

            notification = self.ledger.add({
                "user_id": recipient.user_id,
                "title": f"{task_code}: {task.title}",
                "description": task.description,
                "type": "task",
                "priority": priority,
                "trial_id": task.trial_id,
                "source": TASK_SOURCE,
                "related_entity_type": "task",
                "related_entity_id": task.id,
                "action_required": True,
                "action_url": f"/tasks/{task.id}",
                "target_roles": [recipient.role, SYSTEM_ADMINISTRATOR, PRINCIPAL_INVESTIGATOR],
                "target_users": [recipient.user_id],
            })
            created.append(notification)

        self.db.commit()
        logger.info(f"タスク通知を作成: task={task.id}, 候補={len(candidates)}件, 作成={len(created)}件")

        if task.due_date:
            payload = TaskEmailPayload(
                task_id=task_code,
                task_title=task.title,
                due_date=task.due_date,
                priority=priority,
                assigned_role=assigned_role,
                description=task.description,
                trial_id=self.resolver.resolve_protocol_id(task.trial_id) or "-",
                domain=task.domain,
                record_id=task.record_id,
                source=task.source,
            )
            for recipient in candidates:
                if self.preferences.should_deliver(recipient.user_id, DeliveryChannel.EMAIL, priority):
                    self._send(recipient, self.email.build_task_email(recipient.email, payload))

        return created

    # ============================================
    # シグナル検出通知
    # ============================================
    def notify_signal_detected(self, signal_id: int) -> List[Notification]:
        """
        シグナル検出時に担当ロールへブロードキャスト通知

        target_users には配信設定を通過した通知先のみを入れる。
        通過者が0人の場合は通知を作成しない。
        """
        signal = self.db.get(SignalDetection, signal_id)
        if signal is None:
            raise EventSourceNotFoundError(f"シグナルが見つかりません: {signal_id}")

        roles = normalize_roles(signal.assigned_to) or [DEFAULT_ASSIGNED_ROLE]
        priority = (signal.priority or "medium").lower()
        candidates = self.resolver.resolve_recipients(signal.trial_id, roles)

        survivors = [
            r for r in candidates
            if self.preferences.should_deliver(r.user_id, DeliveryChannel.PUSH, priority)
        ]

        created = []
        if survivors:
            notification = self.ledger.add({
                "user_id": None,
                "title": f"Signal detected: {signal.title}",
                "description": signal.description,
                "type": "signal",
                "priority": priority,
                "trial_id": signal.trial_id,
                "source": signal.source or SIGNAL_SOURCE,
                "related_entity_type": "signal",
                "related_entity_id": signal.id,
                "action_required": False,
                "action_url": f"/signals/{signal.id}",
                "target_roles": roles,
                "target_users": [r.user_id for r in survivors],
            })
            created.append(notification)
            self.db.commit()
        else:
            logger.info(f"配信設定を通過した通知先がないため通知を作成しない: signal={signal.id}")

        logger.info(f"シグナル通知: signal={signal.id}, 候補={len(candidates)}件, 通知先={len(survivors)}件")

        payload = SignalEmailPayload(
            signal_id=signal.detection_id or str(signal.id),
            title=signal.title,
            detection_date=signal.detection_date,
            priority=priority,
            assigned_to=", ".join(roles),
            description=signal.description,
            trial_id=self.resolver.resolve_protocol_id(signal.trial_id) or "-",
            source=signal.source,
        )
        for recipient in candidates:
            if self.preferences.should_deliver(recipient.user_id, DeliveryChannel.EMAIL, priority):
                self._send(recipient, self.email.build_signal_email(recipient.email, payload))

        return created

    # ============================================
    # 汎用作成
    # ============================================
    def create_notification(self, data: NotificationCreate) -> Optional[Notification]:
        """
        通知を1件作成

        個人宛ては配信設定で拒否された場合 None を返す。
        ブロードキャストは正規化した上でそのまま保存する。
        """
        if data.user_id is not None and not self.preferences.should_deliver(
            data.user_id, DeliveryChannel.PUSH, data.priority
        ):
            logger.info(f"配信設定により通知を作成しない: user={data.user_id}")
            return None

        notification = self.ledger.add(data.model_dump())
        self.db.commit()
        self.db.refresh(notification)
        logger.info(f"通知を作成: id={notification.id}, user={notification.user_id}, type={notification.type}")
        return notification

    def _send(self, recipient: Recipient, message) -> bool:
        """メール送信（失敗しても通知の作成結果には影響しない）"""
        try:
            delivered = self.email.send_email(message)
        except Exception as e:
            logger.error(f"メール送信に失敗: user={recipient.user_id}, error={e}")
            return False
        if not delivered:
            logger.warning(f"メールは送信されませんでした: user={recipient.user_id}")
        return delivered

