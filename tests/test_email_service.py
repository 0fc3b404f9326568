"""
メール送信サービスのテスト
"""

from datetime import datetime

import resend

from app.config import settings
from app.services.email_service import (
    EmailNotification,
    EmailService,
    SignalEmailPayload,
    TaskEmailPayload,
)


def _message():
    return EmailNotification(to="dm@example.com", subject="subject", html="<p>hi</p>", text="hi")


class TestSendEmail:
    """send_email"""

    def test_missing_api_key_returns_false(self, monkeypatch):
        calls = []
        monkeypatch.setattr(resend.Emails, "send", lambda params: calls.append(params))

        assert EmailService(api_key="").send_email(_message()) is False
        assert calls == []

    def test_kill_switch_returns_false(self, monkeypatch):
        calls = []
        monkeypatch.setattr(resend.Emails, "send", lambda params: calls.append(params))
        monkeypatch.setattr(settings, "EMAIL_NOTIFICATIONS_ENABLED", False)

        assert EmailService(api_key="key").send_email(_message()) is False
        assert calls == []

    def test_success(self, monkeypatch):
        calls = []

        def fake_send(params):
            calls.append(params)
            return {"id": "email-1"}

        monkeypatch.setattr(resend.Emails, "send", fake_send)

        assert EmailService(api_key="key", from_email="from@example.com").send_email(_message()) is True
        assert calls[0]["to"] == ["dm@example.com"]
        assert calls[0]["from"] == "from@example.com"
        assert calls[0]["text"] == "hi"

    def test_transport_error_returns_false(self, monkeypatch):
        def fake_send(params):
            raise RuntimeError("rate limited")

        monkeypatch.setattr(resend.Emails, "send", fake_send)
        assert EmailService(api_key="key").send_email(_message()) is False


class TestPayloads:
    """メール本文の組み立て"""

    def test_task_id_prefix(self):
        payload = TaskEmailPayload(
            task_id="42", task_title="Query", due_date=None, priority="high",
            assigned_role="Data Manager", description="d", trial_id="PRO001",
        )
        assert payload.display_id == "TASK_42"
        payload.task_id = "TASK_42"
        assert payload.display_id == "TASK_42"

    def test_task_email(self):
        payload = TaskEmailPayload(
            task_id="TASK_5", task_title="Resolve query", due_date=datetime(2026, 11, 1),
            priority="critical", assigned_role="Data Manager", description="Visit 3",
            trial_id="PRO001", domain="AE",
        )
        message = EmailService(api_key="key").build_task_email("dm@example.com", payload)

        assert message.subject == "[CRITICAL] TASK_5: Resolve query"
        assert "Domain" in message.html
        assert "Record" not in message.html
        assert "2026-11-01" in message.text

    def test_signal_email(self):
        payload = SignalEmailPayload(
            signal_id="SIG_1", title="AE spike", detection_date=None, priority="high",
            assigned_to="Monitor", description="d", trial_id="PRO001",
        )
        message = EmailService(api_key="key").build_signal_email("mon@example.com", payload)

        assert message.to == "mon@example.com"
        assert message.subject == "[HIGH] Signal detected: AE spike"
        assert "PRO001" in message.html
