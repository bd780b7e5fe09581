#!/usr/bin/env python
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, text


EXPECTED_HEAD = "0001_initial_schema"


def load_env_if_exists() -> None:
    env_file = Path(".env")
    if not env_file.exists():
        return
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def run() -> dict:
    load_env_if_exists()
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not found (.env or env vars).")

    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    try:
        with engine.connect() as conn:
            tables = set(
                conn.execute(
                    text(
                        """
                        select table_name
                        from information_schema.tables
                        where table_schema='public'
                        """
                    )
                ).scalars()
            )

            current_versions: list[str] = []
            if "alembic_version" in tables:
                current_versions = [
                    row[0] for row in conn.execute(text("select version_num from alembic_version")).fetchall()
                ]
            add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
            add(
                "migration_up_to_date",
                "ok" if EXPECTED_HEAD in current_versions else "warn",
                {"expected_head": EXPECTED_HEAD, "current": current_versions},
            )

            required_tables = ["projects", "project_signups", "certificates", "notifications", "notification_settings"]
            missing_tables = [table for table in required_tables if table not in tables]
            add("missing_tables", "fail" if missing_tables else "ok", {"missing": missing_tables})

            if "certificates" in tables:
                duplicate_signup_certificates = conn.execute(
                    text(
                        """
                        select signup_id, count(*)
                        from certificates
                        where signup_id is not null
                        group by signup_id
                        having count(*) > 1
                        limit 20
                        """
                    )
                ).fetchall()
                add(
                    "duplicate_certificates_per_signup",
                    "fail" if duplicate_signup_certificates else "ok",
                    {"rows": [[str(row[0]), row[1]] for row in duplicate_signup_certificates]},
                )

            if "projects" in tables and "certificates" in tables:
                published_without_certificates = conn.execute(
                    text(
                        """
                        select p.id, slot.key
                        from projects p
                        cross join lateral jsonb_each(p.published) as slot
                        left join certificates c
                          on c.project_id = p.id and c.schedule_id = slot.key
                        where c.id is null
                        limit 20
                        """
                    )
                ).fetchall()
                add(
                    "published_slot_without_certificates",
                    "warn" if published_without_certificates else "ok",
                    {"rows": [[str(row[0]), row[1]] for row in published_without_certificates]},
                )

                stale_failures = conn.execute(
                    text(
                        """
                        select p.id, slot.key
                        from projects p
                        cross join lateral jsonb_each(p.publish_failures) as slot
                        where p.published ? slot.key
                        limit 20
                        """
                    )
                ).fetchall()
                add(
                    "failure_marker_on_published_slot",
                    "warn" if stale_failures else "ok",
                    {"rows": [[str(row[0]), row[1]] for row in stale_failures]},
                )
    finally:
        engine.dispose()

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
