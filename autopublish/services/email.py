from __future__ import annotations

import logging
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import parseaddr
from typing import Any

from autopublish.settings import get_settings

logger = logging.getLogger("autopublish.email")

EMAIL_ADDRESS_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True, slots=True)
class NotificationMessage:
    recipients: list[str]
    subject: str
    body: str
    html_body: str | None = None


class NotificationChannel:
    configured: bool = False
    enabled: bool = False

    def send(self, message: NotificationMessage) -> dict[str, Any]:
        raise NotImplementedError

    def config_status(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "configured": self.configured}


def normalize_notification_email(value: str | None) -> str | None:
    normalized = " ".join((value or "").strip().lower().split())
    if not normalized:
        return None
    if not EMAIL_ADDRESS_PATTERN.match(normalized):
        return None
    return normalized


class EmailChannel(NotificationChannel):
    def __init__(self) -> None:
        settings = get_settings()
        self.enabled = bool(settings.notification_email_enabled)
        self.smtp_host = (settings.smtp_host or "").strip()
        self.smtp_port = int(settings.smtp_port or 587)
        self.smtp_user = (settings.smtp_user or "").strip()
        self.smtp_pass = settings.smtp_pass or ""
        self.smtp_from = (settings.smtp_from or "").strip()
        self.smtp_use_tls = bool(settings.smtp_use_tls)
        self.configured = bool(self.smtp_host and self.smtp_from)

    def send(self, message: NotificationMessage) -> dict[str, Any]:
        recipients = [item.strip() for item in message.recipients if item and item.strip()]
        if not self.enabled:
            logger.info(
                "email_channel_disabled",
                extra={
                    "subject": message.subject,
                    "recipient_count": len(recipients),
                },
            )
            return {
                "mode": "disabled",
                "sent": 0,
                "recipients": recipients,
            }
        if not recipients:
            logger.info(
                "email_channel_skip_no_recipients",
                extra={
                    "subject": message.subject,
                },
            )
            return {
                "mode": "skipped_no_recipients",
                "sent": 0,
                "recipients": [],
            }

        if not self.configured:
            logger.info(
                "email_channel_placeholder_send",
                extra={
                    "subject": message.subject,
                    "recipients": recipients,
                },
            )
            return {
                "mode": "not_configured",
                "sent": 0,
                "recipients": recipients,
            }

        email_message = EmailMessage()
        email_message["From"] = self.smtp_from
        email_message["To"] = ", ".join(recipients)
        email_message["Subject"] = message.subject
        email_message.set_content(message.body)
        if message.html_body:
            email_message.add_alternative(message.html_body, subtype="html")

        envelope_from = parseaddr(self.smtp_from)[1] or self.smtp_from
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=15) as smtp_client:
            if self.smtp_use_tls:
                smtp_client.starttls()
            if self.smtp_user:
                smtp_client.login(self.smtp_user, self.smtp_pass)
            smtp_client.send_message(email_message, from_addr=envelope_from, to_addrs=recipients)
        return {
            "mode": "sent",
            "sent": len(recipients),
            "recipients": recipients,
        }

    def config_status(self) -> dict[str, Any]:
        missing_fields: list[str] = []
        if not self.smtp_host:
            missing_fields.append("SMTP_HOST")
        if not self.smtp_from:
            missing_fields.append("SMTP_FROM")
        return {
            "enabled": bool(self.enabled),
            "configured": self.configured,
            "smtp_host_set": bool(self.smtp_host),
            "smtp_from_set": bool(self.smtp_from),
            "smtp_user_set": bool(self.smtp_user),
            "smtp_use_tls": bool(self.smtp_use_tls),
            "missing_fields": missing_fields,
        }


def safe_send_email(channel: NotificationChannel, message: NotificationMessage) -> dict[str, Any]:
    try:
        return channel.send(message)
    except Exception as exc:
        logger.exception(
            "notification_email_send_failed",
            extra={
                "subject": message.subject,
                "recipients": list(message.recipients),
            },
        )
        return {
            "mode": "send_exception",
            "sent": 0,
            "recipients": list(message.recipients),
            "error": str(exc)[:500],
        }
