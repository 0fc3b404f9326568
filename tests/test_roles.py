"""
ロール正規化・閲覧ポリシーのテスト
"""

import pytest

from app.roles import (
    ALL_STUDIES,
    ADMIN,
    PRINCIPAL_INVESTIGATOR,
    SYSTEM_ADMINISTRATOR,
    VisibilityScope,
    elevated_roles,
    get_role_visibility,
    has_role,
    has_study_access,
    normalize_roles,
    normalize_user_ids,
    passes_role_policy_study_check,
)


class TestNormalizeRoles:
    """ロール集合の正規化"""

    def test_list_is_sorted_and_deduplicated(self):
        assert normalize_roles(["Monitor", "Data Manager", "Monitor"]) == ["Data Manager", "Monitor"]

    def test_none_is_empty(self):
        assert normalize_roles(None) == []

    def test_single_role_string(self):
        assert normalize_roles("Data Manager") == ["Data Manager"]

    def test_comma_separated(self):
        assert normalize_roles("Monitor, Data Manager") == ["Data Manager", "Monitor"]

    def test_json_array_text(self):
        assert normalize_roles('["Monitor", "Data Manager"]') == ["Data Manager", "Monitor"]

    def test_postgres_array_literal(self):
        assert normalize_roles('{"Monitor","Data Manager"}') == ["Data Manager", "Monitor"]
        assert normalize_roles("{Monitor,Admin}") == ["Admin", "Monitor"]

    def test_nested_encoded_element(self):
        assert normalize_roles(['{"Monitor"}', "Admin"]) == ["Admin", "Monitor"]

    def test_blank_entries_dropped(self):
        assert normalize_roles(["", " ", "Monitor"]) == ["Monitor"]
        assert normalize_roles("") == []

    def test_generator_accepted(self):
        assert normalize_roles(r for r in ("B", "A")) == ["A", "B"]

    @pytest.mark.parametrize("value", [42, {"a": 1}, b"Admin"])
    def test_invalid_type(self, value):
        with pytest.raises(ValueError):
            normalize_roles(value)


class TestNormalizeUserIds:
    """ユーザーID集合の正規化"""

    def test_sorted_unique_ints(self):
        assert normalize_user_ids([3, "1", 3]) == [1, 3]

    def test_scalar(self):
        assert normalize_user_ids(5) == [5]

    def test_none(self):
        assert normalize_user_ids(None) == []

    @pytest.mark.parametrize("value", [1.5, {"a": 1}])
    def test_invalid_type(self, value):
        with pytest.raises(ValueError):
            normalize_user_ids(value)


class TestStudyAccess:
    """試験アクセス判定"""

    def test_null_access_is_unrestricted(self):
        assert has_study_access(None, "PRO001") is True

    def test_all_studies_sentinel(self):
        assert has_study_access([ALL_STUDIES], "PRO001") is True

    def test_membership(self):
        assert has_study_access(["PRO001"], "PRO001") is True
        assert has_study_access(["PRO002"], "PRO001") is False

    def test_no_trial_is_open(self):
        assert has_study_access([], None) is True


class TestRoleVisibility:
    """閲覧ポリシーテーブル"""

    def test_elevated_roles(self):
        assert elevated_roles() == sorted([ADMIN, PRINCIPAL_INVESTIGATOR, SYSTEM_ADMINISTRATOR])

    def test_unknown_role_is_targeted(self):
        assert get_role_visibility("Data Manager").scope == VisibilityScope.TARGETED
        assert get_role_visibility(None).scope == VisibilityScope.TARGETED

    def test_admin_skips_study_check(self):
        assert passes_role_policy_study_check(ADMIN, ["PRO002"], "PRO001") is True

    def test_pi_requires_study_access(self):
        assert passes_role_policy_study_check(PRINCIPAL_INVESTIGATOR, ["PRO002"], "PRO001") is False
        assert passes_role_policy_study_check(PRINCIPAL_INVESTIGATOR, ["PRO001"], "PRO001") is True

    def test_has_role(self):
        assert has_role(["Data Manager", "Monitor"], "Monitor") is True
        assert has_role(["Data Manager"], "Data") is False
        assert has_role([], "Monitor") is False
        assert has_role(["Monitor"], None) is False
