from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from autopublish.models import (
    Profile,
    Project,
    ProjectSignup,
    ProjectStatus,
    SignupStatus,
    VerificationMethod,
)
from autopublish.settings import get_settings

logger = logging.getLogger("autopublish.sessions")

ELIGIBLE_SIGNUP_STATUSES: tuple[SignupStatus, ...] = (SignupStatus.ATTENDED, SignupStatus.APPROVED)
PUBLISHABLE_VERIFICATION_METHODS: frozenset[str] = frozenset(
    {VerificationMethod.MANUAL.value, VerificationMethod.QR_CODE.value}
)
ANONYMOUS_VOLUNTEER_NAME = "Anonymous Volunteer"
DEFAULT_CREATOR_NAME = "Project Organizer"

SKIP_ALREADY_PUBLISHED = "already_published"
SKIP_UNSUPPORTED_METHOD = "unsupported_verification_method"
SKIP_PROJECT_CANCELLED = "project_cancelled"
SKIP_PROJECT_MISSING = "project_missing"


class ScanError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class PublishWindow:
    start_utc: datetime
    end_utc: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_utc": self.start_utc.isoformat(),
            "end_utc": self.end_utc.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class VolunteerIdentity:
    user_id: uuid.UUID | None
    name: str
    email: str | None

    @property
    def is_registered(self) -> bool:
        return self.user_id is not None


@dataclass(slots=True)
class PublishSession:
    project: Project
    schedule_id: str
    signups: list[ProjectSignup] = field(default_factory=list)

    @property
    def key(self) -> tuple[uuid.UUID, str]:
        return (self.project.id, self.schedule_id)

    @property
    def name(self) -> str:
        return f"{self.project.title} - {self.schedule_id}"


def _normalize_ts(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_publish_window(
    now_utc: datetime,
    *,
    start_hours: int | None = None,
    end_hours: int | None = None,
) -> PublishWindow:
    """Trailing check-out window ``[now - start_hours, now - end_hours]``, both ends inclusive."""
    settings = get_settings()
    resolved_start_hours = settings.auto_publish_window_start_hours if start_hours is None else start_hours
    resolved_end_hours = settings.auto_publish_window_end_hours if end_hours is None else end_hours
    if resolved_end_hours > resolved_start_hours:
        raise ValueError("window end must not be older than window start")

    reference = _normalize_ts(now_utc)
    return PublishWindow(
        start_utc=reference - timedelta(hours=resolved_start_hours),
        end_utc=reference - timedelta(hours=resolved_end_hours),
    )


def build_eligible_signups_query(window: PublishWindow) -> Select[tuple[ProjectSignup]]:
    return (
        select(ProjectSignup)
        .where(
            ProjectSignup.check_in_time.is_not(None),
            ProjectSignup.check_out_time.is_not(None),
            ProjectSignup.check_out_time >= window.start_utc,
            ProjectSignup.check_out_time <= window.end_utc,
            ProjectSignup.status.in_(ELIGIBLE_SIGNUP_STATUSES),
        )
        .options(
            selectinload(ProjectSignup.profile).selectinload(Profile.notification_settings),
            selectinload(ProjectSignup.anonymous_signup),
            selectinload(ProjectSignup.project).selectinload(Project.creator),
            selectinload(ProjectSignup.project).selectinload(Project.organization),
        )
        .order_by(
            ProjectSignup.project_id.asc(),
            ProjectSignup.schedule_id.asc(),
            ProjectSignup.check_out_time.asc(),
            ProjectSignup.id.asc(),
        )
    )


def scan_eligible_signups(db: Session, window: PublishWindow) -> list[ProjectSignup]:
    try:
        signups = list(db.scalars(build_eligible_signups_query(window)).all())
    except SQLAlchemyError as exc:
        raise ScanError(f"Error fetching eligible signups: {exc}") from exc

    logger.info(
        "auto_publish_scan_complete",
        extra={
            "window": window.to_dict(),
            "signup_count": len(signups),
        },
    )
    return signups


def is_slot_published(project: Project, schedule_id: str) -> bool:
    return bool((project.published or {}).get(schedule_id))


def session_skip_reason(project: Project | None, schedule_id: str) -> str | None:
    if project is None:
        return SKIP_PROJECT_MISSING
    if is_slot_published(project, schedule_id):
        return SKIP_ALREADY_PUBLISHED
    method = getattr(project.verification_method, "value", project.verification_method)
    if method not in PUBLISHABLE_VERIFICATION_METHODS:
        return SKIP_UNSUPPORTED_METHOD
    status = getattr(project.status, "value", project.status)
    if status == ProjectStatus.CANCELLED.value:
        return SKIP_PROJECT_CANCELLED
    return None


def group_signups_into_sessions(signups: list[ProjectSignup]) -> list[PublishSession]:
    """Partition signups by (project, slot), dropping groups that are not publish candidates."""
    sessions: dict[tuple[uuid.UUID, str], PublishSession] = {}
    skipped: dict[tuple[uuid.UUID, str], str] = {}

    for signup in signups:
        key = (signup.project_id, signup.schedule_id)
        if key in skipped:
            continue

        publish_session = sessions.get(key)
        if publish_session is None:
            reason = session_skip_reason(signup.project, signup.schedule_id)
            if reason is not None:
                skipped[key] = reason
                continue
            publish_session = PublishSession(project=signup.project, schedule_id=signup.schedule_id)
            sessions[key] = publish_session
        publish_session.signups.append(signup)

    if skipped:
        logger.info(
            "auto_publish_sessions_skipped",
            extra={
                "skipped": [
                    {"project_id": str(project_id), "schedule_id": schedule_id, "reason": reason}
                    for (project_id, schedule_id), reason in skipped.items()
                ],
            },
        )
    return list(sessions.values())


def resolve_volunteer(signup: ProjectSignup) -> VolunteerIdentity:
    profile = signup.profile
    anonymous = signup.anonymous_signup
    name = (profile.full_name if profile is not None else None) or (
        anonymous.name if anonymous is not None else None
    )
    email = (profile.email if profile is not None else None) or (
        anonymous.email if anonymous is not None else None
    )
    cleaned_name = (name or "").strip()
    cleaned_email = (email or "").strip() or None
    return VolunteerIdentity(
        user_id=signup.user_id,
        name=cleaned_name or ANONYMOUS_VOLUNTEER_NAME,
        email=cleaned_email,
    )


def resolve_creator_name(project: Project) -> str:
    creator = project.creator
    name = (creator.full_name if creator is not None else None) or ""
    return name.strip() or DEFAULT_CREATOR_NAME
