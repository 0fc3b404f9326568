"""
通知先解決のテスト
"""

from app.roles import ADMIN, PRINCIPAL_INVESTIGATOR, SYSTEM_ADMINISTRATOR
from app.services.cache_service import ProtocolCacheService
from app.services.targeting import TargetingResolver


def _ids(recipients):
    return sorted(r.user_id for r in recipients)


class TestResolveProtocolId:
    """プロトコルIDの解決"""

    def test_resolves_and_caches(self, db_session, make_trial):
        trial = make_trial(protocol_id="PRO001")
        cache = ProtocolCacheService(ttl=60)
        resolver = TargetingResolver(db_session, cache=cache)

        assert resolver.resolve_protocol_id(trial.id) == "PRO001"
        assert resolver.resolve_protocol_id(trial.id) == "PRO001"
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["sets"] == 1

    def test_missing_trial_falls_back_to_trial_id(self, db_session):
        resolver = TargetingResolver(db_session, cache=ProtocolCacheService())
        assert resolver.resolve_protocol_id(999) == "999"

    def test_no_trial(self, db_session):
        assert TargetingResolver(db_session).resolve_protocol_id(None) is None


class TestResolveRecipients:
    """通知先ルール"""

    def test_role_and_study_access(self, db_session, make_user, make_trial):
        trial = make_trial(protocol_id="PRO001")
        a = make_user("Data Manager", ["PRO001"])
        make_user("Data Manager", ["PRO002"])
        make_user("Monitor", ["PRO001"])

        recipients = TargetingResolver(db_session).resolve_recipients(trial.id, "Data Manager")

        assert _ids(recipients) == [a.id]
        assert recipients[0].role == "Data Manager"
        assert recipients[0].email == a.email

    def test_retry_without_study_access(self, db_session, make_user, make_trial):
        """試験アクセスのあるユーザーがいない → ロール一致のみで再検索"""
        trial = make_trial(protocol_id="PRO001")
        b = make_user("Data Manager", ["PRO002"])

        recipients = TargetingResolver(db_session).resolve_recipients(trial.id, "Data Manager")
        assert _ids(recipients) == [b.id]

    def test_escalates_to_system_administrator(self, db_session, make_user, make_trial):
        """ロールのユーザーがいない → System Administrator へ"""
        trial = make_trial(protocol_id="PRO001")
        sysadmin = make_user(SYSTEM_ADMINISTRATOR, ["PRO999"])
        make_user("Monitor")

        recipients = TargetingResolver(db_session).resolve_recipients(trial.id, "Safety Reviewer")
        assert _ids(recipients) == [sysadmin.id]

    def test_elevated_roles_are_unioned(self, db_session, make_user, make_trial):
        trial = make_trial(protocol_id="PRO001")
        dm = make_user("Data Manager", ["PRO001"])
        admin = make_user(ADMIN, ["PRO999"])
        sysadmin = make_user(SYSTEM_ADMINISTRATOR, [])
        pi_ok = make_user(PRINCIPAL_INVESTIGATOR, ["PRO001"])
        make_user(PRINCIPAL_INVESTIGATOR, ["PRO002"])

        recipients = TargetingResolver(db_session).resolve_recipients(trial.id, "Data Manager")

        assert _ids(recipients) == sorted([dm.id, admin.id, sysadmin.id, pi_ok.id])

    def test_deduplicates_users_matched_twice(self, db_session, make_user, make_trial):
        """担当ロール自体が昇格ロールでも1回だけ"""
        trial = make_trial(protocol_id="PRO001")
        pi = make_user(PRINCIPAL_INVESTIGATOR, ["PRO001"])

        recipients = TargetingResolver(db_session).resolve_recipients(trial.id, PRINCIPAL_INVESTIGATOR)
        assert _ids(recipients) == [pi.id]

    def test_multiple_roles(self, db_session, make_user, make_trial):
        trial = make_trial(protocol_id="PRO001")
        dm = make_user("Data Manager", ["PRO001"])
        mon = make_user("Monitor", None)

        recipients = TargetingResolver(db_session).resolve_recipients(trial.id, "Data Manager,Monitor")
        assert _ids(recipients) == sorted([dm.id, mon.id])


class TestGetUsersForRoles:
    """ロール一覧からのユーザー取得"""

    def test_adds_principal_investigators_with_access(self, db_session, make_user, make_trial):
        trial = make_trial(protocol_id="PRO001")
        dm = make_user("Data Manager", ["PRO001"])
        make_user("Data Manager", ["PRO002"])
        pi = make_user(PRINCIPAL_INVESTIGATOR, ["All Studies"])
        make_user(PRINCIPAL_INVESTIGATOR, ["PRO002"])

        user_ids = TargetingResolver(db_session).get_users_for_roles(["Data Manager"], trial.id)
        assert sorted(user_ids) == sorted([dm.id, pi.id])

    def test_string_roles_and_no_trial(self, db_session, make_user):
        mon = make_user("Monitor", ["PRO002"])
        user_ids = TargetingResolver(db_session).get_users_for_roles("Monitor")
        assert user_ids == [mon.id]
