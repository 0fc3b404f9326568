"""
通知APIのテスト
"""

import pytest

from app.models.notification import Notification
from app.models.task import Task, SignalDetection


@pytest.fixture
def dm_user(make_user):
    return make_user("Data Manager", ["PRO001"])


@pytest.fixture
def broadcast(db_session, make_trial):
    trial = make_trial(protocol_id="PRO001")
    notification = Notification(
        title="Data review due",
        description="Please review",
        type="data",
        priority="high",
        trial_id=trial.id,
        target_roles=["Data Manager"],
    )
    db_session.add(notification)
    db_session.commit()
    db_session.refresh(notification)
    return notification


class TestNotificationAuth:
    """認証"""

    @pytest.mark.parametrize("method, path", [
        ("get", "/api/notifications"),
        ("get", "/api/notifications/count"),
        ("post", "/api/notifications/mark-all-read"),
        ("get", "/api/notification-settings"),
        ("post", "/api/tasks/1/notifications"),
    ])
    def test_unauthorized(self, client, method, path):
        """未認証 → 401エラー"""
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_health_does_not_require_auth(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestNotificationList:
    """通知一覧・未読件数"""

    def test_list_and_count(self, client, dm_user, broadcast, auth_headers_for):
        headers = auth_headers_for(dm_user)

        response = client.get("/api/notifications", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert [n["id"] for n in data] == [broadcast.id]
        assert data[0]["read"] is False
        assert data[0]["target_roles"] == ["Data Manager"]

        response = client.get("/api/notifications/count", headers=headers)
        assert response.json() == {"count": 1}

    def test_include_read_false(self, client, dm_user, broadcast, auth_headers_for):
        headers = auth_headers_for(dm_user)
        client.post("/api/notifications/mark-read", headers=headers, json={"ids": [broadcast.id]})

        response = client.get("/api/notifications", headers=headers, params={"include_read": False})
        assert response.json() == []

        response = client.get("/api/notifications", headers=headers)
        assert response.json()[0]["read"] is True

    def test_invalid_type_filter(self, client, dm_user, auth_headers_for):
        response = client.get("/api/notifications", headers=auth_headers_for(dm_user), params={"types": "bogus"})
        assert response.status_code == 422


class TestMarkRead:
    """既読化API"""

    def test_mark_read_is_idempotent(self, client, dm_user, broadcast, auth_headers_for):
        headers = auth_headers_for(dm_user)

        first = client.post("/api/notifications/mark-read", headers=headers, json={"ids": [broadcast.id]})
        second = client.post("/api/notifications/mark-read", headers=headers, json={"ids": [broadcast.id]})

        assert first.status_code == 200
        assert first.json() == {"count": 1}
        assert second.json() == {"count": 0}
        assert client.get("/api/notifications/count", headers=headers).json() == {"count": 0}

    def test_ids_must_be_list(self, client, dm_user, auth_headers_for):
        response = client.post(
            "/api/notifications/mark-read", headers=auth_headers_for(dm_user), json={"ids": "1"}
        )
        assert response.status_code == 422

    def test_mark_all_read(self, client, db_session, dm_user, broadcast, auth_headers_for):
        db_session.add(Notification(user_id=dm_user.id, title="t", description="d", type="task", priority="low"))
        db_session.commit()
        headers = auth_headers_for(dm_user)

        response = client.post("/api/notifications/mark-all-read", headers=headers)
        assert response.json() == {"count": 2}
        assert client.get("/api/notifications/count", headers=headers).json() == {"count": 0}

        response = client.post("/api/notifications/mark-all-read", headers=headers)
        assert response.json() == {"count": 0}


class TestCreateAndDelete:
    """作成・削除API"""

    def test_create_broadcast(self, client, dm_user, auth_headers_for):
        response = client.post(
            "/api/notifications",
            headers=auth_headers_for(dm_user),
            json={
                "title": "Maintenance",
                "description": "Tonight",
                "type": "system",
                "priority": "info",
                "target_roles": "Monitor,Data Manager",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] is None
        assert data["target_roles"] == ["Data Manager", "Monitor"]

    @pytest.mark.parametrize("field, value", [
        ("target_roles", 5),
        ("target_roles", {"a": 1}),
        ("target_users", "1,2"),
        ("target_users", {"a": 1}),
    ])
    def test_invalid_targets_are_422(self, client, dm_user, auth_headers_for, field, value):
        """解釈できないロール・ユーザー集合 → 422エラー"""
        response = client.post(
            "/api/notifications",
            headers=auth_headers_for(dm_user),
            json={"title": "t", "description": "d", "type": "system", field: value},
        )
        assert response.status_code == 422

    def test_create_direct_denied_by_settings(self, client, dm_user, auth_headers_for):
        headers = auth_headers_for(dm_user)
        client.patch("/api/notification-settings", headers=headers, json={"push_notifications": False})

        response = client.post(
            "/api/notifications",
            headers=headers,
            json={"user_id": dm_user.id, "title": "t", "description": "d", "type": "system"},
        )
        assert response.status_code == 409

    def test_delete_own_direct(self, client, db_session, dm_user, auth_headers_for):
        notification = Notification(user_id=dm_user.id, title="t", description="d", type="task", priority="low")
        db_session.add(notification)
        db_session.commit()

        response = client.delete(f"/api/notifications/{notification.id}", headers=auth_headers_for(dm_user))
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_delete_broadcast_is_404(self, client, dm_user, broadcast, auth_headers_for):
        response = client.delete(f"/api/notifications/{broadcast.id}", headers=auth_headers_for(dm_user))
        assert response.status_code == 404


class TestOpenNotificationApi:
    """通知オープンAPI"""

    def test_open_marks_read_and_returns_url(self, client, db_session, dm_user, auth_headers_for):
        task = Task(task_id="TASK_9", title="Sign CRF", description="", priority="high", assigned_to="Data Manager")
        db_session.add(task)
        db_session.commit()
        notification = Notification(
            user_id=dm_user.id, title="TASK_9: Sign CRF", description="", type="task", priority="high",
            related_entity_type="task", related_entity_id=task.id, action_url=f"/tasks/{task.id}",
        )
        db_session.add(notification)
        db_session.commit()
        headers = auth_headers_for(dm_user)

        response = client.post(f"/api/notifications/{notification.id}/open", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["marked_read"] is True
        assert data["url"] == f"/tasks/{task.id}?from=notification&notificationMarkedRead=true"
        assert data["related"]["task_id"] == "TASK_9"
        assert client.get("/api/notifications/count", headers=headers).json() == {"count": 0}

    def test_open_unknown(self, client, dm_user, auth_headers_for):
        response = client.post("/api/notifications/9999/open", headers=auth_headers_for(dm_user))
        assert response.status_code == 404


class TestEventNotificationApi:
    """イベント通知API"""

    def test_task_notifications(self, client, db_session, dm_user, make_trial, auth_headers_for):
        trial = make_trial(protocol_id="PRO001")
        task = Task(title="Resolve query", description="", priority="high", assigned_to="Data Manager", trial_id=trial.id)
        db_session.add(task)
        db_session.commit()

        response = client.post(f"/api/tasks/{task.id}/notifications", headers=auth_headers_for(dm_user))

        assert response.status_code == 200
        assert response.json()["count"] == 1

    def test_signal_notifications(self, client, db_session, dm_user, make_trial, auth_headers_for, fake_email):
        trial = make_trial(protocol_id="PRO001")
        signal = SignalDetection(title="AE spike", description="", priority="critical",
                                 assigned_to="Data Manager", trial_id=trial.id)
        db_session.add(signal)
        db_session.commit()
        headers = auth_headers_for(dm_user)

        response = client.post(f"/api/signals/{signal.id}/notifications", headers=headers)

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert [m.to for m in fake_email.sent] == [dm_user.email]
        assert client.get("/api/notifications/count", headers=headers).json() == {"count": 1}

    def test_unknown_task(self, client, dm_user, auth_headers_for):
        response = client.post("/api/tasks/999/notifications", headers=auth_headers_for(dm_user))
        assert response.status_code == 404


class TestNotificationSettingsApi:
    """通知設定API"""

    def test_defaults(self, client, dm_user, auth_headers_for):
        response = client.get("/api/notification-settings", headers=auth_headers_for(dm_user))
        assert response.status_code == 200
        assert response.json() == {
            "email_notifications": True,
            "push_notifications": True,
            "critical_only": False,
        }

    def test_patch_updates_only_given_fields(self, client, dm_user, auth_headers_for):
        headers = auth_headers_for(dm_user)

        response = client.patch("/api/notification-settings", headers=headers, json={"critical_only": True})
        assert response.status_code == 200
        assert response.json() == {
            "email_notifications": True,
            "push_notifications": True,
            "critical_only": True,
        }

        client.patch("/api/notification-settings", headers=headers, json={"email_notifications": False})
        response = client.get("/api/notification-settings", headers=headers)
        assert response.json()["email_notifications"] is False
        assert response.json()["critical_only"] is True
