import unittest
import uuid
from collections.abc import Generator
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from autopublish.db import get_db
from autopublish.main import app
from autopublish.models import Certificate


class FakeDB:
    def __init__(self, certificates: list[Certificate]):
        self._certificates = {item.id: item for item in certificates}
        self.lookups: list[object] = []

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        self.lookups.append(pk)
        if model is not Certificate:
            return None
        return self._certificates.get(pk)


def override_get_db(fake_db: FakeDB):
    def _override() -> Generator[FakeDB, None, None]:
        yield fake_db

    return _override


def _certificate() -> Certificate:
    return Certificate(
        id=uuid.uuid4(),
        project_id=uuid.uuid4(),
        signup_id=uuid.uuid4(),
        schedule_id="slot-1",
        volunteer_name="Ada Lovelace",
        volunteer_email="ada@example.com",
        project_title="Beach Cleanup",
        project_location="Ocean Beach",
        organization_name="Coastal Friends",
        creator_id=uuid.uuid4(),
        creator_name="Grace Hopper",
        is_certified=True,
        check_in_method="manual",
        event_start=datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc),
        event_end=datetime(2024, 1, 10, 13, 0, tzinfo=timezone.utc),
        duration_minutes=240,
        type="platform",
        issued_at=datetime(2024, 1, 12, 15, 0, tzinfo=timezone.utc),
    )


class CertificateVerifyEndpointTests(unittest.TestCase):
    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_verify_existing_certificate(self) -> None:
        certificate = _certificate()
        fake_db = FakeDB([certificate])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.get(f"/api/certificates/verify/{certificate.id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["valid"])
        self.assertTrue(body["exists"])
        self.assertEqual(body["certificate"]["id"], str(certificate.id))
        self.assertTrue(body["certificate"]["certified"])
        self.assertEqual(body["certificate"]["durationMinutes"], 240)
        self.assertEqual(body["certificate"]["recipient"]["name"], "Ada Lovelace")
        self.assertIn("issuedAt", body["certificate"])
        self.assertIn("startDate", body["event"])
        self.assertEqual(body["project"]["title"], "Beach Cleanup")
        self.assertEqual(body["organization"]["name"], "Coastal Friends")
        self.assertEqual(body["organizer"]["name"], "Grace Hopper")
        self.assertIn("timestamp", body["verification"])

    def test_unknown_certificate_returns_404(self) -> None:
        fake_db = FakeDB([])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.get(f"/api/certificates/verify/{uuid.uuid4()}")

        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertEqual(body["error"]["code"], "CERTIFICATE_NOT_FOUND")
        self.assertFalse(body["valid"])
        self.assertFalse(body["exists"])

    def test_malformed_certificate_id_returns_404_without_lookup(self) -> None:
        fake_db = FakeDB([])
        app.dependency_overrides[get_db] = override_get_db(fake_db)
        client = TestClient(app)

        response = client.get("/api/certificates/verify/not-a-uuid")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(fake_db.lookups, [])


if __name__ == "__main__":
    unittest.main()
