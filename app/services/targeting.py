"""
通知先解決サービス
イベント（担当ロール・試験）から通知すべきユーザー集合を算出する

ルール:
    1. 試験のプロトコルIDを解決（見つからなければ trial_id の文字列で代用）
    2. 担当ロール かつ 試験アクセスありのユーザー
       → 0件なら試験アクセス条件なしで再検索
       → それでも0件なら System Administrator へエスカレーション
    3. 閲覧範囲 ALL のロール（ROLE_VISIBILITY）を無条件で追加
    4. ユーザーIDで重複排除
"""
import logging
from dataclasses import dataclass
from typing import Optional, List, Iterable, Union
from sqlalchemy.orm import Session

from app.models.user import User
from app.models.trial import Trial
from app.roles import (
    SYSTEM_ADMINISTRATOR,
    PRINCIPAL_INVESTIGATOR,
    elevated_roles,
    has_study_access,
    normalize_roles,
    passes_role_policy_study_check,
)
from app.services.cache_service import ProtocolCacheService, protocol_cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    """通知先ユーザー"""
    user_id: int
    role: str
    email: str
    full_name: str

    @classmethod
    def from_user(cls, user: User) -> "Recipient":
        return cls(user_id=user.id, role=user.role, email=user.email, full_name=user.full_name)


class TargetingResolver:
    """通知先解決クラス"""

    def __init__(self, db: Session, cache: ProtocolCacheService = protocol_cache):
        self.db = db
        self.cache = cache

    def resolve_protocol_id(self, trial_id: Optional[int]) -> Optional[str]:
        """試験IDからプロトコルIDを解決（見つからなければ試験IDの文字列）"""
        if trial_id is None:
            return None

        cached = self.cache.get(trial_id)
        if cached is not None:
            return cached

        trial = self.db.get(Trial, trial_id)
        if trial is None or not trial.protocol_id:
            logger.warning(f"プロトコルIDが見つからないため試験IDで代用: trial={trial_id}")
            return str(trial_id)

        self.cache.set(trial_id, trial.protocol_id)
        return trial.protocol_id

    def _users_with_roles(self, roles: Iterable[str]) -> List[User]:
        roles = list(roles)
        if not roles:
            return []
        return self.db.query(User).filter(User.role.in_(roles)).order_by(User.id).all()

    def resolve_recipients(
        self,
        trial_id: Optional[int],
        assigned_role: Union[str, Iterable[str], None],
    ) -> List[Recipient]:
        """
        イベントの通知先を解決

        Parameters:
            trial_id: 試験ID
            assigned_role: 担当ロール（複数ロール・カンマ区切りも可）

        Returns:
            重複のない通知先リスト
        """
        protocol_id = self.resolve_protocol_id(trial_id)
        roles = normalize_roles(assigned_role)

        role_users = self._users_with_roles(roles)
        targeted = [u for u in role_users if has_study_access(u.study_access, protocol_id)]
        logger.info(f"ロール {roles} の対象ユーザー: {len(targeted)}件 (protocol={protocol_id})")

        if not targeted and role_users:
            logger.info(f"試験アクセス条件なしで再検索: roles={roles}")
            targeted = role_users

        if not targeted:
            logger.warning(f"ロール {roles} のユーザーがいないため {SYSTEM_ADMINISTRATOR} へ通知")
            targeted = self._users_with_roles([SYSTEM_ADMINISTRATOR])

        elevated = [
            u for u in self._users_with_roles(elevated_roles())
            if passes_role_policy_study_check(u.role, u.study_access, protocol_id)
        ]
        logger.info(f"昇格ロールの追加対象: {len(elevated)}件")

        recipients: List[Recipient] = []
        seen = set()
        for user in [*targeted, *elevated]:
            if user.id in seen:
                continue
            seen.add(user.id)
            recipients.append(Recipient.from_user(user))

        return recipients

    def get_users_for_roles(
        self,
        roles: Union[str, Iterable[str]],
        trial_id: Optional[int] = None,
    ) -> List[int]:
        """
        ロール一覧と試験アクセスからユーザーIDを取得
        Principal Investigator は常に追加する
        """
        protocol_id = self.resolve_protocol_id(trial_id)
        roles = normalize_roles(roles)

        user_ids = [
            u.id for u in self._users_with_roles(roles)
            if has_study_access(u.study_access, protocol_id)
        ]

        for pi in self._users_with_roles([PRINCIPAL_INVESTIGATOR]):
            if pi.id not in user_ids and has_study_access(pi.study_access, protocol_id):
                user_ids.append(pi.id)

        return user_ids
