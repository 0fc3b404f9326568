"""
ロール・閲覧ポリシー定義
ロール集合の正規化、昇格ロールのポリシーテーブル、試験アクセス判定を担当

ロール集合は書き込み時に「重複なし・ソート済みの文字列リスト」へ正規化する。
判定は has_role() ひとつに集約し、保存形式の違いを読み取り側で推測しない。
"""

import json
from collections import abc
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional

SYSTEM_ADMINISTRATOR = "System Administrator"
ADMIN = "Admin"
PRINCIPAL_INVESTIGATOR = "Principal Investigator"

# studyAccess にこの値が含まれていれば全試験にアクセス可能
ALL_STUDIES = "All Studies"


class VisibilityScope(str, Enum):
    """ブロードキャスト通知の閲覧範囲"""
    ALL = "all"
    TARGETED = "targeted"


@dataclass(frozen=True)
class RoleVisibility:
    scope: VisibilityScope
    requires_study_access: bool = True


# ロール → 閲覧範囲
# 昇格ロールを追加する場合はここに1行追加するだけでよい
ROLE_VISIBILITY = {
    SYSTEM_ADMINISTRATOR: RoleVisibility(VisibilityScope.ALL, requires_study_access=False),
    ADMIN: RoleVisibility(VisibilityScope.ALL, requires_study_access=False),
    PRINCIPAL_INVESTIGATOR: RoleVisibility(VisibilityScope.ALL, requires_study_access=True),
}

DEFAULT_VISIBILITY = RoleVisibility(VisibilityScope.TARGETED)


def get_role_visibility(role: Optional[str]) -> RoleVisibility:
    return ROLE_VISIBILITY.get(role or "", DEFAULT_VISIBILITY)


def elevated_roles() -> List[str]:
    """閲覧範囲が ALL のロール一覧"""
    return sorted(
        role for role, policy in ROLE_VISIBILITY.items()
        if policy.scope == VisibilityScope.ALL
    )


def _split_text(value: str) -> List[str]:
    """文字列表現のロール集合を要素に分解"""
    text = value.strip()
    if not text:
        return []

    # JSON配列 '["A", "B"]'
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item) for item in parsed]

    # PostgreSQL配列リテラル '{"A","B"}' / '{A,B}'
    if text.startswith("{") and text.endswith("}"):
        inner = text[1:-1]
        return [item.strip().strip('"') for item in inner.split(",")]

    # カンマ区切り / 単一ロール
    return text.split(",")


def normalize_roles(value: Any) -> List[str]:
    """
    ロール集合を正規形（重複なし・ソート済みリスト）に変換

    受け付ける形式:
        - list / tuple / set
        - JSON配列文字列
        - PostgreSQL配列リテラル
        - カンマ区切り文字列、単一ロール文字列
        - None（空集合）
    """
    if value is None:
        return []

    if isinstance(value, str):
        items: Iterable[Any] = _split_text(value)
    elif isinstance(value, abc.Iterable) and not isinstance(value, (bytes, dict)):
        items = []
        for element in value:
            # ネストした文字列表現（'{"A"}' など）も展開する
            if isinstance(element, str) and element.strip()[:1] in ("[", "{"):
                items.extend(_split_text(element))
            else:
                items.append(element)
    else:
        raise ValueError(f"ロール集合として解釈できません: {type(value).__name__}")

    roles = {str(item).strip() for item in items if item is not None}
    roles.discard("")
    return sorted(roles)


def normalize_user_ids(value: Any) -> List[int]:
    """ユーザーID集合を正規形（重複なし・昇順の int リスト）に変換"""
    if value is None:
        return []
    if isinstance(value, (int, str)):
        value = [value]
    elif not isinstance(value, abc.Iterable) or isinstance(value, (bytes, dict)):
        raise ValueError(f"ユーザーID集合として解釈できません: {type(value).__name__}")
    return sorted({int(item) for item in value})


def has_role(target_roles: Optional[Iterable[str]], role: Optional[str]) -> bool:
    """正規化済みロール集合にロールが含まれるか"""
    if not role or not target_roles:
        return False
    return role in target_roles


def has_study_access(study_access: Optional[List[str]], protocol_id: Optional[str]) -> bool:
    """
    ユーザーが試験にアクセスできるか

    studyAccess が None または "All Studies" を含む場合は無制限。
    試験に紐づかない通知（protocol_id が None）は誰でもアクセス可能。
    """
    if study_access is None or protocol_id is None:
        return True
    if ALL_STUDIES in study_access:
        return True
    return protocol_id in study_access


def passes_role_policy_study_check(role: Optional[str], study_access, protocol_id) -> bool:
    """昇格ロールのポリシーに従った試験アクセス判定"""
    policy = get_role_visibility(role)
    if not policy.requires_study_access:
        return True
    return has_study_access(study_access, protocol_id)
