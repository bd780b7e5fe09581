import unittest
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient

from autopublish.db import get_db
from autopublish.main import app
from autopublish.services.auto_publish import AutoPublishReport, SessionResult
from autopublish.services.sessions import PublishWindow
from autopublish.settings import Settings

TOKEN = "shared-cron-secret"
NOW_UTC = datetime(2024, 1, 12, 15, 0, tzinfo=timezone.utc)


class FakeDB:
    pass


def override_get_db(fake_db: FakeDB):
    def _override() -> Generator[FakeDB, None, None]:
        yield fake_db

    return _override


def _report(*, scan_error: str | None = None) -> AutoPublishReport:
    window = PublishWindow(start_utc=NOW_UTC - timedelta(hours=72), end_utc=NOW_UTC - timedelta(hours=48))
    report = AutoPublishReport(started_at_utc=NOW_UTC, window=window, scan_error=scan_error)
    if scan_error is None:
        report.sessions_scanned = 2
        report.sessions_succeeded = 1
        report.results = [
            SessionResult(
                success=True,
                project_id="11111111-1111-1111-1111-111111111111",
                session_id="slot-1",
                session_name="Beach Cleanup - slot-1",
                certificates_created=3,
                emails_sent=2,
                notifications_sent=3,
                errors=["Skipped certificate abc: Missing email or name"],
            ),
            SessionResult(
                success=False,
                project_id="22222222-2222-2222-2222-222222222222",
                session_id="slot-9",
                session_name="Food Drive - slot-9",
                errors=["No valid volunteer hours data to publish"],
            ),
        ]
    return report


class AutoPublishEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.fake_db = FakeDB()
        app.dependency_overrides[get_db] = override_get_db(self.fake_db)
        token_patch = patch("autopublish.security.get_auto_publish_token", return_value=TOKEN)
        settings_patch = patch(
            "autopublish.routers.auto_publish.get_settings",
            return_value=Settings(auto_publish_enabled=True),
        )
        token_patch.start()
        settings_patch.start()
        self.addCleanup(token_patch.stop)
        self.addCleanup(settings_patch.stop)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _auth(self, token: str = TOKEN) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def test_returns_500_when_secret_not_configured(self) -> None:
        with patch("autopublish.security.get_auto_publish_token", return_value=None):
            response = self.client.post("/api/auto-publish-hours", headers=self._auth())

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"]["code"], "AUTO_PUBLISH_NOT_CONFIGURED")

    def test_rejects_missing_bearer_token(self) -> None:
        with patch("autopublish.routers.auto_publish.run_auto_publish") as run_mock:
            response = self.client.post("/api/auto-publish-hours")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "UNAUTHORIZED")
        run_mock.assert_not_called()

    def test_rejects_wrong_bearer_token(self) -> None:
        with patch("autopublish.routers.auto_publish.run_auto_publish") as run_mock:
            response = self.client.post("/api/auto-publish-hours", headers=self._auth("guess"))

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "UNAUTHORIZED")
        run_mock.assert_not_called()

    def test_disabled_flag_short_circuits(self) -> None:
        with (
            patch(
                "autopublish.routers.auto_publish.get_settings",
                return_value=Settings(auto_publish_enabled=False),
            ),
            patch("autopublish.routers.auto_publish.run_auto_publish") as run_mock,
        ):
            response = self.client.post("/api/auto-publish-hours", headers=self._auth())

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Auto-publish is disabled")
        self.assertEqual(body["processedSessions"], 0)
        run_mock.assert_not_called()

    def test_run_returns_camel_case_summary(self) -> None:
        with patch("autopublish.routers.auto_publish.run_auto_publish", return_value=_report()) as run_mock:
            response = self.client.post(
                "/api/auto-publish-hours",
                headers={**self._auth(), "X-Request-Id": "req-123"},
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["X-Request-Id"], "req-123")
        run_mock.assert_called_once_with(db=self.fake_db)
        body = response.json()
        self.assertEqual(body["message"], "Auto-publish process completed")
        self.assertEqual(len(body["runId"]), 32)
        self.assertEqual(body["processedSessions"], 2)
        self.assertEqual(body["successfulSessions"], 1)
        self.assertIn("executionTimeMs", body)
        self.assertIsNone(body["scanError"])
        self.assertIn("startUtc", body["window"])
        first = body["results"][0]
        self.assertEqual(first["projectId"], "11111111-1111-1111-1111-111111111111")
        self.assertEqual(first["sessionId"], "slot-1")
        self.assertEqual(first["sessionName"], "Beach Cleanup - slot-1")
        self.assertEqual(first["certificatesCreated"], 3)
        self.assertEqual(first["emailsSent"], 2)
        self.assertEqual(first["notificationsSent"], 3)
        self.assertEqual(first["errors"], ["Skipped certificate abc: Missing email or name"])
        self.assertFalse(body["results"][1]["success"])

    def test_scan_failure_is_reported(self) -> None:
        report = _report(scan_error="Error fetching eligible signups: connection refused")
        with patch("autopublish.routers.auto_publish.run_auto_publish", return_value=report):
            response = self.client.post("/api/auto-publish-hours", headers=self._auth())

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Auto-publish scan failed")
        self.assertEqual(body["scanError"], "Error fetching eligible signups: connection refused")
        self.assertEqual(body["processedSessions"], 0)
        self.assertEqual(body["results"], [])

    def test_status_endpoint_reports_window(self) -> None:
        response = self.client.get("/api/auto-publish-hours", headers=self._auth())

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Auto-publish service is running")
        self.assertTrue(body["enabled"])
        self.assertIn("timestamp", body)
        start = datetime.fromisoformat(body["window"]["startUtc"].replace("Z", "+00:00"))
        end = datetime.fromisoformat(body["window"]["endUtc"].replace("Z", "+00:00"))
        self.assertEqual(end - start, timedelta(hours=24))
        self.assertIn("configured", body["emailChannel"])

    def test_status_endpoint_requires_token(self) -> None:
        response = self.client.get("/api/auto-publish-hours")

        self.assertEqual(response.status_code, 401)

    def test_health_endpoint(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertIn("schema_guard", body)
        self.assertIn("email_channel", body)


if __name__ == "__main__":
    unittest.main()
