#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from autopublish.logging_utils import setup_json_logging
from autopublish.services.auto_publish import run_auto_publish
from autopublish.settings import get_settings


def _parse_now(raw_value: str | None) -> datetime | None:
    if not raw_value:
        return None
    parsed = datetime.fromisoformat(raw_value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run one auto-publish pass and print the JSON report.")
    parser.add_argument(
        "--now",
        default=None,
        help="Reference time in ISO-8601 (defaults to the current UTC time).",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even when AUTO_PUBLISH_ENABLED is false.",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_json_logging(settings.log_level)
    if not settings.auto_publish_enabled and not args.force:
        print(json.dumps({"message": "Auto-publish is disabled", "processed_sessions": 0}, indent=2))
        return 0

    report = run_auto_publish(_parse_now(args.now))
    print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    return 1 if report.scan_error else 0


if __name__ == "__main__":
    raise SystemExit(main())
