"""
通知設定サービス
ユーザー別の通知設定の取得・更新と、チャネル別の配信可否判定（Preference Gate）を担当
"""
import logging
from enum import Enum
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session

from app.models.notification_setting import NotificationSetting

logger = logging.getLogger(__name__)

# 設定行が存在しない場合の既定値
DEFAULT_SETTINGS = {
    "email_notifications": True,
    "push_notifications": True,
    "critical_only": False,
}

# critical_only 有効時に配信する優先度
HIGH_PRIORITIES = frozenset({"critical", "high"})


class DeliveryChannel(str, Enum):
    """配信チャネル"""
    PUSH = "push"  # システム内通知（通知テーブルへの書き込み）
    EMAIL = "email"


class PreferenceService:
    """通知設定サービスクラス"""

    def __init__(self, db: Session):
        self.db = db

    def get_settings(self, user_id: int) -> Optional[NotificationSetting]:
        """保存済みの通知設定を取得（未作成なら None）"""
        return self.db.query(NotificationSetting).filter(
            NotificationSetting.user_id == user_id
        ).first()

    def get_effective_settings(self, user_id: int) -> Dict[str, bool]:
        """既定値を補完した通知設定を取得"""
        setting = self.get_settings(user_id)
        if setting is None:
            return dict(DEFAULT_SETTINGS)
        return {
            "email_notifications": setting.email_notifications,
            "push_notifications": setting.push_notifications,
            "critical_only": setting.critical_only,
        }

    def update_settings(self, user_id: int, changes: Dict[str, Any]) -> NotificationSetting:
        """
        通知設定を更新（初回は行を作成）

        Parameters:
            user_id: ユーザーID
            changes: 更新する項目（None の項目は無視）
        """
        changes = {
            key: value for key, value in changes.items()
            if key in DEFAULT_SETTINGS and value is not None
        }

        setting = self.get_settings(user_id)
        if setting is None:
            values = {**DEFAULT_SETTINGS, **changes}
            setting = NotificationSetting(user_id=user_id, **values)
            self.db.add(setting)
            logger.info(f"通知設定を作成: user={user_id}, settings={values}")
        else:
            for key, value in changes.items():
                setattr(setting, key, value)
            logger.info(f"通知設定を更新: user={user_id}, changes={changes}")

        self.db.commit()
        self.db.refresh(setting)
        return setting

    def should_deliver(
        self,
        user_id: int,
        channel: DeliveryChannel,
        priority: Optional[str] = "medium",
    ) -> bool:
        """
        通知を配信してよいか判定

        設定の読み込みに失敗した場合は配信を許可する（フェイルオープン）
        """
        channel = DeliveryChannel(channel)
        try:
            setting = self.get_settings(user_id)
        except Exception as e:
            logger.error(f"通知設定の取得に失敗したため配信を許可: user={user_id}, error={e}")
            return True

        if setting is None:
            return True

        if channel == DeliveryChannel.PUSH and not setting.push_notifications:
            logger.info(f"システム内通知が無効: user={user_id}")
            return False
        if channel == DeliveryChannel.EMAIL and not setting.email_notifications:
            logger.info(f"メール通知が無効: user={user_id}")
            return False

        if setting.critical_only and (priority or "medium").lower() not in HIGH_PRIORITIES:
            logger.info(
                f"critical_only のためスキップ: user={user_id}, channel={channel.value}, priority={priority}"
            )
            return False

        return True
