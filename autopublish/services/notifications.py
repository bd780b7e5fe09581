from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from autopublish.models import Certificate, Notification, NotificationSetting
from autopublish.services.email import (
    NotificationChannel,
    NotificationMessage,
    normalize_notification_email,
    safe_send_email,
)
from autopublish.services.email_templates import (
    certificate_published_subject,
    format_event_range,
    render_certificate_published_html,
    render_certificate_published_text,
    resolve_timezone,
)
from autopublish.services.sessions import VolunteerIdentity
from autopublish.settings import get_settings, get_site_url

logger = logging.getLogger("autopublish.notifications")

CERTIFICATE_NOTIFICATION_TITLE = "Your Volunteer Hours Have Been Published! \U0001F389"
CERTIFICATE_NOTIFICATION_TYPE = "project_updates"
CERTIFICATE_NOTIFICATION_SEVERITY = "success"
EMAIL_NOT_CONFIGURED_ERROR = "Email service not configured"


@dataclass(frozen=True, slots=True)
class CertificateSnapshot:
    """Plain copy of the certificate fields notifications render.

    A failed notification write rolls the session back and expires every ORM
    instance in it, so deliveries never read the mapped ``Certificate`` again.
    """

    id: str
    project_title: str
    event_start: datetime | None
    event_end: datetime | None
    duration_minutes: int

    @classmethod
    def from_certificate(cls, certificate: Certificate) -> CertificateSnapshot:
        return cls(
            id=str(certificate.id),
            project_title=certificate.project_title,
            event_start=certificate.event_start,
            event_end=certificate.event_end,
            duration_minutes=int(certificate.duration_minutes),
        )


@dataclass(frozen=True, slots=True)
class CertificateDelivery:
    certificate: CertificateSnapshot
    volunteer: VolunteerIdentity
    email_opted_in: bool = True

    @classmethod
    def build(
        cls,
        certificate: Certificate,
        volunteer: VolunteerIdentity,
        preferences: NotificationSetting | None = None,
    ) -> CertificateDelivery:
        return cls(
            certificate=CertificateSnapshot.from_certificate(certificate),
            volunteer=volunteer,
            email_opted_in=email_allowed_by_preferences(preferences),
        )


@dataclass(slots=True)
class NotificationOutcome:
    certificate_id: str
    in_app_ok: bool = False
    email_ok: bool = False
    email_skipped: bool = False
    error: str | None = None


@dataclass(slots=True)
class DispatchSummary:
    outcomes: list[NotificationOutcome] = field(default_factory=list)
    session_errors: list[str] = field(default_factory=list)

    @property
    def emails_sent(self) -> int:
        return sum(1 for item in self.outcomes if item.email_ok)

    @property
    def in_app_sent(self) -> int:
        return sum(1 for item in self.outcomes if item.in_app_ok)

    @property
    def errors(self) -> list[str]:
        return [*self.session_errors, *(item.error for item in self.outcomes if item.error)]


def format_duration_text(minutes: int) -> str:
    hours, remainder = divmod(max(0, int(minutes)), 60)
    return f"{hours} hours and {remainder} minutes"


def email_allowed_by_preferences(preferences: NotificationSetting | None) -> bool:
    if preferences is None:
        return True
    if preferences.email_notifications is False:
        return False
    return preferences.project_updates is not False


def create_in_app_notification(db: Session, *, user_id: uuid.UUID, certificate: CertificateSnapshot) -> Notification:
    notification = Notification(
        id=uuid.uuid4(),
        user_id=user_id,
        title=CERTIFICATE_NOTIFICATION_TITLE,
        body=(
            f'Your volunteer certificate for "{certificate.project_title}" is now available. '
            f"You volunteered for {format_duration_text(certificate.duration_minutes)}."
        ),
        type=CERTIFICATE_NOTIFICATION_TYPE,
        severity=CERTIFICATE_NOTIFICATION_SEVERITY,
        action_url=f"/certificates/{certificate.id}",
        displayed=False,
        read=False,
    )
    db.add(notification)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return notification


def build_certificate_email(
    certificate: CertificateSnapshot,
    *,
    recipient: str,
    volunteer_name: str,
    project_timezone: str | None,
) -> NotificationMessage:
    settings = get_settings()
    tz = resolve_timezone(project_timezone, settings.default_project_timezone)
    event_range = format_event_range(certificate.event_start, certificate.event_end, tz)
    site_url = get_site_url()
    return NotificationMessage(
        recipients=[recipient],
        subject=certificate_published_subject(certificate.project_title),
        body=render_certificate_published_text(
            volunteer_name=volunteer_name,
            project_title=certificate.project_title,
            certificate_id=certificate.id,
            site_url=site_url,
            event_range=event_range,
        ),
        html_body=render_certificate_published_html(
            volunteer_name=volunteer_name,
            project_title=certificate.project_title,
            certificate_id=certificate.id,
            site_url=site_url,
            event_range=event_range,
        ),
    )


def _send_certificate_email(
    delivery: CertificateDelivery,
    *,
    recipient: str,
    channel: NotificationChannel,
    project_timezone: str | None,
) -> str | None:
    """Returns an error string, or None once the email went out."""
    certificate_id = delivery.certificate.id
    try:
        message = build_certificate_email(
            delivery.certificate,
            recipient=recipient,
            volunteer_name=delivery.volunteer.name,
            project_timezone=project_timezone,
        )
    except Exception as exc:
        logger.exception("certificate_email_build_failed", extra={"certificate_id": certificate_id})
        return f"Failed to send email to {recipient}: {str(exc)[:200]}"

    result = safe_send_email(channel, message)
    if int(result.get("sent", 0) or 0) > 0:
        return None
    reason = result.get("error") or result.get("mode") or "EMAIL_NOT_SENT"
    return f"Failed to send email to {recipient}: {reason}"


def notify_certificate_volunteer(
    db: Session,
    *,
    delivery: CertificateDelivery,
    channel: NotificationChannel,
    project_timezone: str | None,
    send_email: bool = True,
) -> NotificationOutcome:
    volunteer = delivery.volunteer
    outcome = NotificationOutcome(certificate_id=delivery.certificate.id)
    errors: list[str] = []

    if volunteer.user_id is not None:
        try:
            create_in_app_notification(db, user_id=volunteer.user_id, certificate=delivery.certificate)
            outcome.in_app_ok = True
        except Exception as exc:
            logger.exception(
                "certificate_in_app_notification_failed",
                extra={"certificate_id": outcome.certificate_id, "user_id": str(volunteer.user_id)},
            )
            errors.append(f"Failed to send notification to user {volunteer.user_id}: {str(exc)[:200]}")

    recipient = normalize_notification_email(volunteer.email)
    if not send_email:
        outcome.email_skipped = True
    elif recipient is None:
        outcome.email_skipped = True
        errors.append(f"Skipped certificate {outcome.certificate_id}: Missing email or name")
    elif not delivery.email_opted_in:
        outcome.email_skipped = True
        logger.info(
            "certificate_email_skipped_by_preferences",
            extra={"certificate_id": outcome.certificate_id, "user_id": str(volunteer.user_id)},
        )
    else:
        error = _send_certificate_email(
            delivery,
            recipient=recipient,
            channel=channel,
            project_timezone=project_timezone,
        )
        if error is None:
            outcome.email_ok = True
        else:
            errors.append(error)

    if errors:
        outcome.error = "; ".join(errors)
    return outcome


def dispatch_certificate_notifications(
    db: Session,
    *,
    project_id: str,
    project_timezone: str | None,
    deliveries: list[CertificateDelivery],
    channel: NotificationChannel,
) -> DispatchSummary:
    """Notify every certified volunteer; one volunteer's failure never blocks the others."""
    summary = DispatchSummary()
    send_email = bool(channel.enabled)
    if send_email and not channel.configured:
        logger.error(
            "certificate_email_channel_not_configured",
            extra={"project_id": project_id, "certificate_count": len(deliveries)},
        )
        summary.session_errors.append(EMAIL_NOT_CONFIGURED_ERROR)
        send_email = False

    for delivery in deliveries:
        outcome = notify_certificate_volunteer(
            db,
            delivery=delivery,
            channel=channel,
            project_timezone=project_timezone,
            send_email=send_email,
        )
        summary.outcomes.append(outcome)

    logger.info(
        "certificate_notifications_dispatched",
        extra={
            "project_id": project_id,
            "certificate_count": len(deliveries),
            "in_app_sent": summary.in_app_sent,
            "emails_sent": summary.emails_sent,
            "error_count": len(summary.errors),
        },
    )
    return summary
