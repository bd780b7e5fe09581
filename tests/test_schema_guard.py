from __future__ import annotations

import unittest
from unittest.mock import patch

from autopublish.services.schema_guard import verify_runtime_schema


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):  # type: ignore[no-untyped-def]
        return self._value


class _FakeConnection:
    def __init__(self, version_value):
        self._version_value = version_value

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def execute(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeResult(self._version_value)


class _FakeEngine:
    def __init__(self, version_value):
        self._version_value = version_value

    def connect(self):  # type: ignore[no-untyped-def]
        return _FakeConnection(self._version_value)


class _FakeInspector:
    def __init__(
        self,
        *,
        columns_by_table: dict[str, set[str]],
        enums: list[dict[str, object]],
        unique_constraints: dict[str, list[dict[str, object]]] | None = None,
        indexes: dict[str, list[dict[str, object]]] | None = None,
    ):
        self._columns_by_table = columns_by_table
        self._enums = enums
        self._unique_constraints = unique_constraints or {}
        self._indexes = indexes or {}

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        columns = self._columns_by_table[table_name]
        return [{"name": item} for item in columns]

    def get_enums(self):  # type: ignore[no-untyped-def]
        return self._enums

    def get_unique_constraints(self, table_name: str):  # type: ignore[no-untyped-def]
        return self._unique_constraints.get(table_name, [])

    def get_indexes(self, table_name: str):  # type: ignore[no-untyped-def]
        return self._indexes.get(table_name, [])


HEALTHY_COLUMNS = {
    "projects": {"id", "published", "publish_failures", "verification_method", "status"},
    "project_signups": {"id", "project_id", "schedule_id", "check_in_time", "check_out_time", "status"},
    "certificates": {"id", "signup_id", "schedule_id", "duration_minutes"},
    "notifications": {"id", "user_id", "action_url"},
    "alembic_version": {"version_num"},
}
HEALTHY_ENUMS = [
    {"name": "signup_status", "labels": ["pending", "approved", "rejected", "attended", "cancelled"]},
    {"name": "verification_method", "labels": ["qr-code", "auto", "manual", "signup-only"]},
    {"name": "project_status", "labels": ["upcoming", "in-progress", "completed", "cancelled"]},
]


class SchemaGuardTests(unittest.TestCase):
    def test_verify_runtime_schema_ok_when_required_columns_exist(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table=HEALTHY_COLUMNS,
            enums=HEALTHY_ENUMS,
            unique_constraints={
                "certificates": [{"name": "uq_certificates_signup_id", "column_names": ["signup_id"]}],
            },
        )
        fake_engine = _FakeEngine("0001_initial_schema")

        with patch("autopublish.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])

    def test_unique_index_satisfies_signup_uniqueness(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table=HEALTHY_COLUMNS,
            enums=HEALTHY_ENUMS,
            indexes={"certificates": [{"name": "ix_cert_signup", "column_names": ["signup_id"], "unique": True}]},
        )

        with patch("autopublish.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0001_initial_schema"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)

    def test_verify_runtime_schema_reports_missing_columns(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table={
                "projects": {"id", "verification_method", "status"},
                "project_signups": {"id", "project_id", "schedule_id", "check_in_time", "check_out_time", "status"},
                "certificates": {"id", "signup_id"},
                "notifications": {"id", "user_id", "action_url"},
                "alembic_version": {"version_num"},
            },
            enums=[
                {"name": "signup_status", "labels": ["pending", "attended"]},
                {"name": "verification_method", "labels": ["qr-code", "manual"]},
            ],
            indexes={"certificates": [{"name": "ix_cert_signup", "column_names": ["signup_id"], "unique": False}]},
        )
        fake_engine = _FakeEngine("")

        with patch("autopublish.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertIn("MISSING_COLUMNS:projects:publish_failures,published", result.issues)
        self.assertIn("MISSING_COLUMNS:certificates:duration_minutes,schedule_id", result.issues)
        self.assertIn("MISSING_ENUM_VALUES:signup_status:approved", result.issues)
        self.assertIn("MISSING_UNIQUE:certificates:signup_id", result.issues)
        self.assertIn("ENUM_NOT_FOUND:project_status", result.warnings)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)


if __name__ == "__main__":
    unittest.main()
