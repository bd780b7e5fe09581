from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from autopublish.models import Certificate


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def get_certificate(db: Session, certificate_id: str) -> Certificate | None:
    try:
        parsed_id = uuid.UUID(str(certificate_id).strip())
    except ValueError:
        return None
    return db.get(Certificate, parsed_id)


def build_certificate_verification(certificate: Certificate, *, now_utc: datetime | None = None) -> dict[str, Any]:
    checked_at = now_utc or datetime.now(timezone.utc)
    return {
        "valid": True,
        "exists": True,
        "certificate": {
            "id": str(certificate.id),
            "certified": bool(certificate.is_certified),
            "issued_at": _iso(certificate.issued_at),
            "type": certificate.type or "platform",
            "duration_minutes": certificate.duration_minutes,
            "recipient": {
                "name": certificate.volunteer_name,
                "email": certificate.volunteer_email,
            },
        },
        "event": {
            "start_date": _iso(certificate.event_start),
            "end_date": _iso(certificate.event_end),
        },
        "project": {
            "id": str(certificate.project_id),
            "title": certificate.project_title,
            "location": certificate.project_location,
        },
        "organization": {"name": certificate.organization_name},
        "organizer": {
            "id": str(certificate.creator_id) if certificate.creator_id is not None else None,
            "name": certificate.creator_name,
        },
        "verification": {"timestamp": checked_at.isoformat()},
    }
