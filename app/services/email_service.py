"""
メール送信サービス
Resend APIを使用してタスク・シグナル通知メールを送信する

通知エンジンからは send_email(notification) -> bool としてのみ呼び出される。
送信はベストエフォートで、失敗しても例外は投げずに False を返す。
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Any
import resend

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailNotification:
    """送信するメール1通分"""
    to: str
    subject: str
    html: str
    text: Optional[str] = None


@dataclass
class TaskEmailPayload:
    """タスク通知メールの内容"""
    task_id: str
    task_title: str
    due_date: Optional[datetime]
    priority: str
    assigned_role: str
    description: str
    trial_id: str
    domain: Optional[str] = None
    record_id: Optional[str] = None
    source: Optional[str] = None

    @property
    def display_id(self) -> str:
        """TASK_ 接頭辞付きのタスクID"""
        return self.task_id if self.task_id.startswith("TASK_") else f"TASK_{self.task_id}"


@dataclass
class SignalEmailPayload:
    """シグナル検出通知メールの内容"""
    signal_id: str
    title: str
    detection_date: Optional[datetime]
    priority: str
    assigned_to: str
    description: str
    trial_id: str
    source: Optional[str] = None


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


class EmailService:
    """メール送信サービスクラス"""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_email = from_email or settings.FROM_EMAIL
        self.app_url = settings.APP_URL.rstrip("/")

        if not self.api_key:
            logger.warning("RESEND_API_KEY が設定されていません（メール送信は無効）")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key) and settings.EMAIL_NOTIFICATIONS_ENABLED

    def send_email(self, notification: EmailNotification) -> bool:
        """
        メールを送信する

        Returns:
            送信成功時はTrue、失敗・無効時はFalse
        """
        if not self.enabled:
            logger.info(f"メール送信は無効のためスキップ: to={notification.to}, subject={notification.subject}")
            return False

        try:
            resend.api_key = self.api_key
            params: resend.Emails.SendParams = {
                "from": self.from_email,
                "to": [notification.to],
                "subject": notification.subject,
                "html": notification.html,
            }
            if notification.text:
                params["text"] = notification.text

            response: Any = resend.Emails.send(params)
            email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
            logger.info(f"メール送信成功: to={notification.to}, subject={notification.subject}, id={email_id}")
            return True

        except Exception as e:
            logger.error(f"メール送信エラー: to={notification.to}, error={e}")
            return False

    # ============================================
    # タスク通知
    # ============================================
    def build_task_email(self, to: str, payload: TaskEmailPayload) -> EmailNotification:
        """タスク通知メールを組み立て"""
        subject = f"[{payload.priority.upper()}] {payload.display_id}: {payload.task_title}"
        context_rows = "".join(
            f'<tr><td style="padding: 4px 0; color: #666;">{label}:</td><td style="padding: 4px 0;">{value}</td></tr>'
            for label, value in (
                ("Domain", payload.domain),
                ("Record", payload.record_id),
                ("Source", payload.source),
            )
            if value
        )
        task_url = f"{self.app_url}/tasks?taskId={payload.task_id}"

        html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="UTF-8">
        </head>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #1d4ed8;">New task: {payload.display_id}</h2>
            <h3>{payload.task_title}</h3>
            <p>{payload.description}</p>

            <table style="width: 100%; border-collapse: collapse; background: #f8f9fa; padding: 12px; border-radius: 8px;">
                <tr><td style="padding: 4px 0; color: #666;">Trial:</td><td style="padding: 4px 0;">{payload.trial_id}</td></tr>
                <tr><td style="padding: 4px 0; color: #666;">Priority:</td><td style="padding: 4px 0;">{payload.priority}</td></tr>
                <tr><td style="padding: 4px 0; color: #666;">Due:</td><td style="padding: 4px 0;">{_format_date(payload.due_date)}</td></tr>
                <tr><td style="padding: 4px 0; color: #666;">Assigned role:</td><td style="padding: 4px 0;">{payload.assigned_role}</td></tr>
                {context_rows}
            </table>

            <p style="margin: 24px 0;">
                <a href="{task_url}" style="display: inline-block; background: #1d4ed8; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px;">
                    View task
                </a>
            </p>

            <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
            <p style="color: #999; font-size: 12px;">This is an automated notification.</p>
        </body>
        </html>
        """

        text = (
            f"{payload.display_id}: {payload.task_title}\n"
            f"Trial: {payload.trial_id}\n"
            f"Priority: {payload.priority}\n"
            f"Due: {_format_date(payload.due_date)}\n\n"
            f"{payload.description}\n\n{task_url}"
        )
        return EmailNotification(to=to, subject=subject, html=html, text=text)

    # ============================================
    # シグナル通知
    # ============================================
    def build_signal_email(self, to: str, payload: SignalEmailPayload) -> EmailNotification:
        """シグナル検出通知メールを組み立て"""
        subject = f"[{payload.priority.upper()}] Signal detected: {payload.title}"
        signal_url = f"{self.app_url}/signals?signalId={payload.signal_id}"

        html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="UTF-8">
        </head>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #b91c1c;">Signal detected: {payload.signal_id}</h2>
            <h3>{payload.title}</h3>
            <p>{payload.description}</p>

            <table style="width: 100%; border-collapse: collapse; background: #f8f9fa; padding: 12px; border-radius: 8px;">
                <tr><td style="padding: 4px 0; color: #666;">Trial:</td><td style="padding: 4px 0;">{payload.trial_id}</td></tr>
                <tr><td style="padding: 4px 0; color: #666;">Priority:</td><td style="padding: 4px 0;">{payload.priority}</td></tr>
                <tr><td style="padding: 4px 0; color: #666;">Detected:</td><td style="padding: 4px 0;">{_format_date(payload.detection_date)}</td></tr>
                <tr><td style="padding: 4px 0; color: #666;">Assigned to:</td><td style="padding: 4px 0;">{payload.assigned_to}</td></tr>
                <tr><td style="padding: 4px 0; color: #666;">Source:</td><td style="padding: 4px 0;">{payload.source or "-"}</td></tr>
            </table>

            <p style="margin: 24px 0;">
                <a href="{signal_url}" style="display: inline-block; background: #b91c1c; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px;">
                    Review signal
                </a>
            </p>

            <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
            <p style="color: #999; font-size: 12px;">This is an automated notification.</p>
        </body>
        </html>
        """

        text = (
            f"Signal detected: {payload.title}\n"
            f"Trial: {payload.trial_id}\n"
            f"Priority: {payload.priority}\n"
            f"Detected: {_format_date(payload.detection_date)}\n\n"
            f"{payload.description}\n\n{signal_url}"
        )
        return EmailNotification(to=to, subject=subject, html=html, text=text)


# シングルトンインスタンス
email_service = EmailService()


def get_email_service() -> EmailService:
    """FastAPIの依存性注入用"""
    return email_service
