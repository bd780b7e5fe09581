from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone


MAX_SESSION_MINUTES = 24 * 60


@dataclass(frozen=True, slots=True)
class DurationCheck:
    valid: bool
    minutes: int


INVALID_DURATION = DurationCheck(valid=False, minutes=0)


def _coerce_utc(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_session_duration(
    check_in: datetime | str | None,
    check_out: datetime | str | None,
    *,
    max_minutes: int = MAX_SESSION_MINUTES,
) -> DurationCheck:
    """Return the rounded minute count of a check-in/check-out pair.

    Absent or unparsable timestamps, negative intervals and intervals longer
    than ``max_minutes`` are reported as invalid with zero minutes.
    """
    check_in_utc = _coerce_utc(check_in)
    check_out_utc = _coerce_utc(check_out)
    if check_in_utc is None or check_out_utc is None:
        return INVALID_DURATION

    delta = check_out_utc - check_in_utc
    if delta.total_seconds() < 0:
        return INVALID_DURATION
    if delta.total_seconds() > max_minutes * 60:
        return INVALID_DURATION

    # half-up rounding, so 90 seconds is 2 minutes
    minutes = math.floor(delta.total_seconds() / 60 + 0.5)
    return DurationCheck(valid=True, minutes=int(minutes))
