"""Reminder delivery: email rendering and send-capable notifier implementations."""

from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Optional, Protocol
from uuid import uuid4

from jinja2 import Environment, PackageLoader, select_autoescape

from ..config import BaseConfig
from ..logging_config import get_logger
from ..models.habit import Habit
from ..models.user import User

logger = get_logger("notifier")

_templates = Environment(
    loader=PackageLoader("habitpulse", "templates"),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass(slots=True)
class NotificationResult:
    """Outcome reported by a notifier; failures are values, not exceptions."""

    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "error": self.error, "message_id": self.message_id}


class Notifier(Protocol):
    """Send-capable collaborator invoked by the reminder scheduler."""

    def send(
        self,
        habit: Habit,
        user: User,
        *,
        is_test: bool = False,
        message_override: Optional[str] = None,
    ) -> NotificationResult:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class ReminderEmail:
    subject: str
    text: str
    html: str


def render_reminder(
    habit: Habit,
    user: User,
    *,
    is_test: bool = False,
    message_override: Optional[str] = None,
    frontend_url: str = "http://localhost:5173",
) -> ReminderEmail:
    """Render subject, plain-text and HTML bodies for a habit reminder."""

    message = habit.reminder_message if message_override is None else message_override
    streak = habit.current_streak or 0
    if streak > 0:
        streak_text = f"You're on a {streak} day streak! Don't break it now!"
    else:
        streak_text = "Start a new streak today!"

    context = {
        "habit": habit,
        "user": user,
        "is_test": is_test,
        "custom_message": message or "",
        "streak_text": streak_text,
        "dashboard_url": f"{frontend_url.rstrip('/')}/dashboard",
        "settings_url": f"{frontend_url.rstrip('/')}/habits/{habit.id}",
    }
    subject = f"Time for your {habit.name} habit!"
    if is_test:
        subject = f"TEST: {subject}"
    return ReminderEmail(
        subject=subject,
        text=_templates.get_template("email/reminder.txt").render(**context),
        html=_templates.get_template("email/reminder.html").render(**context),
    )


class LoggingNotifier:
    """Development notifier that writes the rendered reminder to the log."""

    def __init__(self, *, frontend_url: str = "http://localhost:5173") -> None:
        self.frontend_url = frontend_url

    def send(
        self,
        habit: Habit,
        user: User,
        *,
        is_test: bool = False,
        message_override: Optional[str] = None,
    ) -> NotificationResult:
        email = render_reminder(
            habit,
            user,
            is_test=is_test,
            message_override=message_override,
            frontend_url=self.frontend_url,
        )
        logger.info(
            "Reminder email (not sent, logging notifier) to %s: %s\n%s",
            user.email,
            email.subject,
            email.text,
        )
        return NotificationResult(success=True, message_id=f"log-{uuid4().hex}")


class SmtpNotifier:
    """Deliver reminder emails over SMTP with a bounded socket timeout."""

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = "HabitPulse <noreply@habitpulse.local>",
        frontend_url: str = "http://localhost:5173",
        timeout: float = 30.0,
        test_timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.frontend_url = frontend_url
        self.timeout = timeout
        self.test_timeout = test_timeout

    def build_message(
        self,
        habit: Habit,
        user: User,
        *,
        is_test: bool = False,
        message_override: Optional[str] = None,
    ) -> EmailMessage:
        email = render_reminder(
            habit,
            user,
            is_test=is_test,
            message_override=message_override,
            frontend_url=self.frontend_url,
        )
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = user.email
        msg["Subject"] = email.subject
        msg["Message-ID"] = make_msgid(domain="habitpulse")
        msg.set_content(email.text)
        msg.add_alternative(email.html, subtype="html")
        return msg

    def send(
        self,
        habit: Habit,
        user: User,
        *,
        is_test: bool = False,
        message_override: Optional[str] = None,
    ) -> NotificationResult:
        if not user.email:
            return NotificationResult(success=False, error="User has no email address")

        msg = self.build_message(habit, user, is_test=is_test, message_override=message_override)
        timeout = self.test_timeout if is_test else self.timeout
        try:
            with smtplib.SMTP(self.host, self.port, timeout=timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "Failed to send reminder for habit %s to %s: %s", habit.id, user.email, exc
            )
            return NotificationResult(success=False, error=str(exc) or exc.__class__.__name__)

        logger.info("Reminder email sent for habit %s to %s", habit.id, user.email)
        return NotificationResult(success=True, message_id=msg["Message-ID"])


def build_notifier(config: BaseConfig) -> Notifier:
    """Create the notifier selected by ``config.NOTIFIER``."""

    if config.NOTIFIER == "smtp":
        return SmtpNotifier(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            use_tls=config.SMTP_USE_TLS,
            sender=config.MAIL_FROM,
            frontend_url=config.FRONTEND_URL,
            timeout=config.NOTIFIER_TIMEOUT_SECONDS,
            test_timeout=config.TEST_NOTIFIER_TIMEOUT_SECONDS,
        )
    return LoggingNotifier(frontend_url=config.FRONTEND_URL)


__all__ = [
    "LoggingNotifier",
    "NotificationResult",
    "Notifier",
    "ReminderEmail",
    "SmtpNotifier",
    "build_notifier",
    "render_reminder",
]
