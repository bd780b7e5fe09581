from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from autopublish.audit import log_auto_publish_run, log_auto_publish_session
from autopublish.db import SessionLocal
from autopublish.models import Certificate, Project, ProjectSignup
from autopublish.services.durations import DurationCheck, validate_session_duration
from autopublish.services.email import EmailChannel, NotificationChannel
from autopublish.services.notifications import CertificateDelivery, dispatch_certificate_notifications
from autopublish.services.sessions import (
    PublishSession,
    PublishWindow,
    ScanError,
    VolunteerIdentity,
    compute_publish_window,
    group_signups_into_sessions,
    is_slot_published,
    resolve_creator_name,
    resolve_volunteer,
    scan_eligible_signups,
)
from autopublish.settings import get_settings

logger = logging.getLogger("autopublish.runner")

NO_VALID_HOURS_ERROR = "No valid volunteer hours data to publish"
FAILURE_REASON_NO_VALID_HOURS = "no_valid_hours"


class SessionPersistenceError(RuntimeError):
    pass


class SessionAlreadyPublishedError(SessionPersistenceError):
    pass


@dataclass(slots=True)
class SessionResult:
    success: bool
    project_id: str
    session_id: str
    session_name: str
    certificates_created: int = 0
    emails_sent: int = 0
    notifications_sent: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "project_id": self.project_id,
            "session_id": self.session_id,
            "session_name": self.session_name,
            "certificates_created": self.certificates_created,
            "emails_sent": self.emails_sent,
            "notifications_sent": self.notifications_sent,
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class AutoPublishReport:
    started_at_utc: datetime
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    window: PublishWindow | None = None
    sessions_scanned: int = 0
    sessions_succeeded: int = 0
    results: list[SessionResult] = field(default_factory=list)
    scan_error: str | None = None
    execution_time_ms: int = 0

    @property
    def certificates_created(self) -> int:
        return sum(item.certificates_created for item in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at_utc": self.started_at_utc.isoformat(),
            "window": self.window.to_dict() if self.window is not None else None,
            "sessions_scanned": self.sessions_scanned,
            "sessions_succeeded": self.sessions_succeeded,
            "certificates_created": self.certificates_created,
            "scan_error": self.scan_error,
            "execution_time_ms": self.execution_time_ms,
            "results": [item.to_dict() for item in self.results],
        }


@dataclass(frozen=True, slots=True)
class _ValidSignup:
    signup: ProjectSignup
    duration: DurationCheck
    volunteer: VolunteerIdentity


def _normalize_ts(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _lock_project(db: Session, project_id: uuid.UUID) -> Project | None:
    return db.scalar(
        select(Project)
        .where(Project.id == project_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def build_certificate(
    project: Project,
    item: _ValidSignup,
    *,
    creator_name: str,
    issued_at_utc: datetime,
) -> Certificate:
    organization = project.organization
    signup = item.signup
    return Certificate(
        id=uuid.uuid4(),
        project_id=project.id,
        signup_id=signup.id,
        user_id=item.volunteer.user_id,
        schedule_id=signup.schedule_id,
        volunteer_name=item.volunteer.name,
        volunteer_email=item.volunteer.email,
        project_title=project.title,
        project_location=project.location,
        organization_name=organization.name if organization is not None else None,
        creator_id=project.creator_id,
        creator_name=creator_name,
        is_certified=bool(organization.verified) if organization is not None else False,
        check_in_method=getattr(project.verification_method, "value", project.verification_method),
        event_start=signup.check_in_time,
        event_end=signup.check_out_time,
        duration_minutes=item.duration.minutes,
        type="platform",
        issued_at=issued_at_utc,
    )


def publish_session_certificates(
    db: Session,
    *,
    project_id: uuid.UUID,
    schedule_id: str,
    certificates: list[Certificate],
) -> None:
    """Insert the certificates and mark the slot published in one transaction.

    The project row is locked and re-checked first so an overlapping run cannot
    publish the same slot twice. On any failure nothing is written.
    """
    try:
        project = _lock_project(db, project_id)
        if project is None:
            raise SessionPersistenceError(f"Project {project_id} not found")
        if is_slot_published(project, schedule_id):
            raise SessionAlreadyPublishedError(f"Session {schedule_id} is already published")

        db.add_all(certificates)
        project.published = {**(project.published or {}), schedule_id: True}
        if schedule_id in (project.publish_failures or {}):
            project.publish_failures = {
                key: value for key, value in project.publish_failures.items() if key != schedule_id
            }
        db.flush()
        db.commit()
    except SessionPersistenceError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise SessionPersistenceError(f"Database error inserting certificates: {exc}") from exc


def record_publish_failure(
    db: Session,
    *,
    project_id: uuid.UUID,
    schedule_id: str,
    reason: str,
    now_utc: datetime,
) -> dict[str, Any] | None:
    try:
        project = _lock_project(db, project_id)
        if project is None:
            db.rollback()
            return None
        failures = dict(project.publish_failures or {})
        previous = failures.get(schedule_id) or {}
        marker = {
            "reason": reason,
            "attempts": int(previous.get("attempts", 0) or 0) + 1,
            "first_failed_at": previous.get("first_failed_at") or now_utc.isoformat(),
            "last_failed_at": now_utc.isoformat(),
        }
        failures[schedule_id] = marker
        project.publish_failures = failures
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return marker


def _collect_valid_signups(publish_session: PublishSession, *, max_minutes: int) -> list[_ValidSignup]:
    valid: list[_ValidSignup] = []
    for signup in publish_session.signups:
        duration = validate_session_duration(
            signup.check_in_time,
            signup.check_out_time,
            max_minutes=max_minutes,
        )
        if not duration.valid:
            logger.info(
                "auto_publish_signup_invalid_duration",
                extra={
                    "signup_id": str(signup.id),
                    "project_id": str(publish_session.project.id),
                    "schedule_id": publish_session.schedule_id,
                    "check_in_time": signup.check_in_time,
                    "check_out_time": signup.check_out_time,
                },
            )
            continue
        valid.append(_ValidSignup(signup=signup, duration=duration, volunteer=resolve_volunteer(signup)))
    return valid


def process_session(
    db: Session,
    publish_session: PublishSession,
    *,
    now_utc: datetime,
    channel: NotificationChannel,
    run_id: str,
) -> SessionResult:
    project = publish_session.project
    schedule_id = publish_session.schedule_id
    result = SessionResult(
        success=False,
        project_id=str(project.id),
        session_id=schedule_id,
        session_name=publish_session.name,
    )
    settings = get_settings()

    valid_signups = _collect_valid_signups(publish_session, max_minutes=settings.auto_publish_max_session_minutes)
    if not valid_signups:
        result.errors.append(NO_VALID_HOURS_ERROR)
        try:
            record_publish_failure(
                db,
                project_id=project.id,
                schedule_id=schedule_id,
                reason=FAILURE_REASON_NO_VALID_HOURS,
                now_utc=now_utc,
            )
        except SQLAlchemyError as exc:
            logger.exception(
                "auto_publish_failure_marker_write_failed",
                extra={"project_id": result.project_id, "schedule_id": schedule_id},
            )
            result.errors.append(f"Failed to record publish failure: {str(exc)[:200]}")
        log_auto_publish_session(
            db,
            run_id=run_id,
            project_id=result.project_id,
            schedule_id=schedule_id,
            success=False,
            details={"reason": FAILURE_REASON_NO_VALID_HOURS, "signup_count": len(publish_session.signups)},
        )
        return result

    creator_name = resolve_creator_name(project)
    project_timezone = project.project_timezone
    certificates = [
        build_certificate(project, item, creator_name=creator_name, issued_at_utc=now_utc)
        for item in valid_signups
    ]

    try:
        publish_session_certificates(
            db,
            project_id=project.id,
            schedule_id=schedule_id,
            certificates=certificates,
        )
    except SessionPersistenceError as exc:
        logger.error(
            "auto_publish_session_persist_failed",
            extra={
                "project_id": result.project_id,
                "schedule_id": schedule_id,
                "error": str(exc)[:500],
            },
        )
        result.errors.append(str(exc))
        log_auto_publish_session(
            db,
            run_id=run_id,
            project_id=result.project_id,
            schedule_id=schedule_id,
            success=False,
            details={"reason": "persistence_failed", "error": str(exc)[:500]},
        )
        return result

    result.success = True
    result.certificates_created = len(certificates)

    deliveries = [
        CertificateDelivery.build(
            certificate,
            item.volunteer,
            item.signup.profile.notification_settings if item.signup.profile is not None else None,
        )
        for certificate, item in zip(certificates, valid_signups)
    ]
    certificate_ids = [item.certificate.id for item in deliveries]
    summary = dispatch_certificate_notifications(
        db,
        project_id=result.project_id,
        project_timezone=project_timezone,
        deliveries=deliveries,
        channel=channel,
    )
    result.emails_sent = summary.emails_sent
    result.notifications_sent = summary.in_app_sent
    result.errors.extend(summary.errors)

    log_auto_publish_session(
        db,
        run_id=run_id,
        project_id=result.project_id,
        schedule_id=schedule_id,
        success=True,
        details={
            "certificates_created": result.certificates_created,
            "certificate_ids": certificate_ids,
            "emails_sent": result.emails_sent,
            "notifications_sent": result.notifications_sent,
        },
    )
    return result


def _audit_run(db: Session, report: AutoPublishReport) -> None:
    log_auto_publish_run(
        db,
        run_id=report.run_id,
        scan_failed=report.scan_error is not None,
        details={
            "window": report.window.to_dict() if report.window is not None else None,
            "sessions_scanned": report.sessions_scanned,
            "sessions_succeeded": report.sessions_succeeded,
            "certificates_created": report.certificates_created,
            "scan_error": report.scan_error,
        },
    )


def run_auto_publish(
    now_utc: datetime | None = None,
    *,
    db: Session | None = None,
    channel: NotificationChannel | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AutoPublishReport:
    if db is None:
        with SessionLocal() as managed_db:
            return run_auto_publish(now_utc, db=managed_db, channel=channel, sleep=sleep)

    started = time.perf_counter()
    reference_utc = _normalize_ts(now_utc or datetime.now(timezone.utc))
    settings = get_settings()
    window = compute_publish_window(reference_utc)
    report = AutoPublishReport(started_at_utc=reference_utc, window=window)
    logger.info("auto_publish_run_started", extra={"run_id": report.run_id, "window": window.to_dict()})

    try:
        signups = scan_eligible_signups(db, window)
    except ScanError as exc:
        db.rollback()
        logger.exception("auto_publish_scan_failed", extra={"run_id": report.run_id, "window": window.to_dict()})
        report.scan_error = str(exc)[:500]
        report.execution_time_ms = int((time.perf_counter() - started) * 1000)
        _audit_run(db, report)
        return report

    sessions = group_signups_into_sessions(signups)
    report.sessions_scanned = len(sessions)
    email_channel = channel or EmailChannel()
    delay_seconds = max(0.0, float(settings.auto_publish_email_delay_seconds))

    # Sessions of one project share its published map; process them one at a time.
    for publish_session in sessions:
        project_id = str(publish_session.project.id)
        session_name = publish_session.name
        try:
            result = process_session(
                db,
                publish_session,
                now_utc=reference_utc,
                channel=email_channel,
                run_id=report.run_id,
            )
        except Exception as exc:
            db.rollback()
            logger.exception(
                "auto_publish_session_crashed",
                extra={"project_id": project_id, "schedule_id": publish_session.schedule_id},
            )
            result = SessionResult(
                success=False,
                project_id=project_id,
                session_id=publish_session.schedule_id,
                session_name=session_name,
                errors=[str(exc) or "Unknown error"],
            )

        report.results.append(result)
        if result.success:
            report.sessions_succeeded += 1
        logger.info(
            "auto_publish_session_processed",
            extra={
                "project_id": result.project_id,
                "schedule_id": result.session_id,
                "success": result.success,
                "certificates_created": result.certificates_created,
                "emails_sent": result.emails_sent,
                "errors": result.errors,
            },
        )
        if result.emails_sent > 0 and delay_seconds > 0:
            sleep(delay_seconds)

    report.execution_time_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        "auto_publish_run_complete",
        extra={
            "run_id": report.run_id,
            "sessions_scanned": report.sessions_scanned,
            "sessions_succeeded": report.sessions_succeeded,
            "certificates_created": report.certificates_created,
            "execution_time_ms": report.execution_time_ms,
        },
    )
    _audit_run(db, report)
    return report
