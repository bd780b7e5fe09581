from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from autopublish.services.durations import INVALID_DURATION, validate_session_duration


class SessionDurationTests(unittest.TestCase):
    def test_four_hour_session_is_240_minutes(self) -> None:
        result = validate_session_duration("2024-01-10T09:00:00Z", "2024-01-10T13:00:00Z")

        self.assertTrue(result.valid)
        self.assertEqual(result.minutes, 240)

    def test_accepts_aware_datetimes_in_other_offsets(self) -> None:
        check_in = datetime(2024, 1, 10, 1, 0, tzinfo=timezone(timedelta(hours=-8)))
        check_out = datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc)

        result = validate_session_duration(check_in, check_out)

        self.assertTrue(result.valid)
        self.assertEqual(result.minutes, 30)

    def test_negative_interval_is_invalid(self) -> None:
        result = validate_session_duration("2024-01-10T13:00:00Z", "2024-01-10T09:00:00Z")

        self.assertEqual(result, INVALID_DURATION)
        self.assertEqual(result.minutes, 0)

    def test_zero_interval_is_valid(self) -> None:
        result = validate_session_duration("2024-01-10T09:00:00Z", "2024-01-10T09:00:00Z")

        self.assertTrue(result.valid)
        self.assertEqual(result.minutes, 0)

    def test_exactly_24_hours_is_valid(self) -> None:
        result = validate_session_duration("2024-01-10T09:00:00Z", "2024-01-11T09:00:00Z")

        self.assertTrue(result.valid)
        self.assertEqual(result.minutes, 1440)

    def test_longer_than_24_hours_is_invalid(self) -> None:
        result = validate_session_duration("2024-01-10T09:00:00Z", "2024-01-11T09:01:00Z")

        self.assertFalse(result.valid)
        self.assertEqual(result.minutes, 0)

    def test_missing_timestamps_are_invalid(self) -> None:
        self.assertFalse(validate_session_duration(None, "2024-01-10T13:00:00Z").valid)
        self.assertFalse(validate_session_duration("2024-01-10T09:00:00Z", None).valid)
        self.assertFalse(validate_session_duration("", "").valid)

    def test_unparsable_timestamp_is_invalid(self) -> None:
        result = validate_session_duration("yesterday", "2024-01-10T13:00:00Z")

        self.assertEqual(result, INVALID_DURATION)

    def test_minutes_round_half_up(self) -> None:
        start = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)

        self.assertEqual(validate_session_duration(start, start + timedelta(seconds=89)).minutes, 1)
        self.assertEqual(validate_session_duration(start, start + timedelta(seconds=90)).minutes, 2)
        self.assertEqual(validate_session_duration(start, start + timedelta(seconds=150)).minutes, 3)

    def test_naive_datetimes_are_treated_as_utc(self) -> None:
        result = validate_session_duration(datetime(2024, 1, 10, 9, 0), datetime(2024, 1, 10, 10, 15))

        self.assertTrue(result.valid)
        self.assertEqual(result.minutes, 75)

    def test_custom_max_minutes(self) -> None:
        result = validate_session_duration(
            "2024-01-10T09:00:00Z",
            "2024-01-10T11:00:00Z",
            max_minutes=60,
        )

        self.assertFalse(result.valid)


if __name__ == "__main__":
    unittest.main()
