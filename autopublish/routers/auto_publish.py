from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from autopublish.db import get_db
from autopublish.schemas import (
    AutoPublishRunResponse,
    AutoPublishSessionResultRead,
    AutoPublishStatusResponse,
    AutoPublishWindowRead,
)
from autopublish.security import require_auto_publish_token
from autopublish.services.auto_publish import run_auto_publish
from autopublish.services.email import EmailChannel
from autopublish.services.sessions import compute_publish_window
from autopublish.settings import get_settings

router = APIRouter(prefix="/api/auto-publish-hours", tags=["auto-publish"])
logger = logging.getLogger("autopublish.trigger")


@router.post("", response_model=AutoPublishRunResponse)
def trigger_auto_publish(
    _: str = Depends(require_auto_publish_token),
    db: Session = Depends(get_db),
) -> AutoPublishRunResponse:
    if not get_settings().auto_publish_enabled:
        logger.info("auto_publish_disabled")
        return AutoPublishRunResponse(message="Auto-publish is disabled")

    logger.info("auto_publish_triggered")
    started = time.perf_counter()
    report = run_auto_publish(db=db)
    execution_time_ms = int((time.perf_counter() - started) * 1000)

    message = "Auto-publish process completed"
    if report.scan_error is not None:
        message = "Auto-publish scan failed"
    window = (
        AutoPublishWindowRead(start_utc=report.window.start_utc, end_utc=report.window.end_utc)
        if report.window is not None
        else None
    )
    return AutoPublishRunResponse(
        message=message,
        run_id=report.run_id,
        processed_sessions=report.sessions_scanned,
        successful_sessions=report.sessions_succeeded,
        execution_time_ms=execution_time_ms,
        window=window,
        scan_error=report.scan_error,
        results=[AutoPublishSessionResultRead(**item.to_dict()) for item in report.results],
    )


@router.get("", response_model=AutoPublishStatusResponse)
def auto_publish_status(_: str = Depends(require_auto_publish_token)) -> AutoPublishStatusResponse:
    now_utc = datetime.now(timezone.utc)
    window = compute_publish_window(now_utc)
    return AutoPublishStatusResponse(
        message="Auto-publish service is running",
        enabled=bool(get_settings().auto_publish_enabled),
        timestamp=now_utc,
        window=AutoPublishWindowRead(start_utc=window.start_utc, end_utc=window.end_utc),
        email_channel=EmailChannel().config_status(),
    )
