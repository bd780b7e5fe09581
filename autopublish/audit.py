from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from autopublish.models import AuditActorType, AuditLog

logger = logging.getLogger("autopublish.audit")

AUTO_PUBLISH_ACTOR_ID = "auto_publish_runner"

ACTION_SESSION_PUBLISHED = "AUTO_PUBLISH_SESSION_PUBLISHED"
ACTION_SESSION_FAILED = "AUTO_PUBLISH_SESSION_FAILED"
ACTION_RUN_COMPLETED = "AUTO_PUBLISH_RUN_COMPLETED"
ACTION_RUN_SCAN_FAILED = "AUTO_PUBLISH_RUN_SCAN_FAILED"

ENTITY_PROJECT_SESSION = "project_session"
ENTITY_RUN = "auto_publish_run"


def log_audit(
    db: Session,
    *,
    action: str,
    success: bool,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
    actor_type: AuditActorType = AuditActorType.SYSTEM,
    actor_id: str = AUTO_PUBLISH_ACTOR_ID,
) -> bool:
    """Write one audit row in its own commit.

    Returns False when the row could not be stored; the failure is logged and
    never propagates to the caller.
    """
    payload = dict(details or {})
    db.add(
        AuditLog(
            ts_utc=datetime.now(timezone.utc),
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            success=success,
            details=payload,
        )
    )
    log_fields = {
        "action": action,
        "actor_id": actor_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "success": success,
    }
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("audit_log_write_failed", extra=log_fields)
        return False

    logger.info("audit_event", extra={**log_fields, "details": payload})
    return True


def log_auto_publish_session(
    db: Session,
    *,
    run_id: str,
    project_id: str,
    schedule_id: str,
    success: bool,
    details: dict[str, Any],
) -> bool:
    return log_audit(
        db,
        action=ACTION_SESSION_PUBLISHED if success else ACTION_SESSION_FAILED,
        success=success,
        entity_type=ENTITY_PROJECT_SESSION,
        entity_id=f"{project_id}:{schedule_id}",
        details={"run_id": run_id, **details},
    )


def log_auto_publish_run(
    db: Session,
    *,
    run_id: str,
    scan_failed: bool,
    details: dict[str, Any],
) -> bool:
    return log_audit(
        db,
        action=ACTION_RUN_SCAN_FAILED if scan_failed else ACTION_RUN_COMPLETED,
        success=not scan_failed,
        entity_type=ENTITY_RUN,
        entity_id=run_id,
        details=details,
    )
