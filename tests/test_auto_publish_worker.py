from __future__ import annotations

import asyncio
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from autopublish import main as main_module
from autopublish.services.auto_publish import AutoPublishReport
from autopublish.settings import Settings


class AutoPublishWorkerTests(unittest.IsolatedAsyncioTestCase):
    async def _run_one_tick(self, settings: Settings, run_mock) -> None:  # type: ignore[no-untyped-def]
        stop_event = asyncio.Event()
        with patch.object(main_module, "settings", settings):
            task = asyncio.create_task(main_module._auto_publish_worker_loop(stop_event))
            for _ in range(100):
                if run_mock.called or not settings.auto_publish_enabled:
                    break
                await asyncio.sleep(0.02)
            await asyncio.sleep(0.02)
            stop_event.set()
            await asyncio.wait_for(task, timeout=2)

    async def test_worker_runs_auto_publish_when_enabled(self) -> None:
        report = AutoPublishReport(started_at_utc=datetime.now(timezone.utc))
        with patch.object(main_module, "run_auto_publish", return_value=report) as run_mock:
            await self._run_one_tick(Settings(auto_publish_enabled=True), run_mock)

        run_mock.assert_called_once_with()

    async def test_worker_idles_when_disabled(self) -> None:
        with patch.object(main_module, "run_auto_publish") as run_mock:
            await self._run_one_tick(Settings(auto_publish_enabled=False), run_mock)

        run_mock.assert_not_called()

    async def test_worker_survives_a_failed_tick(self) -> None:
        with patch.object(main_module, "run_auto_publish", side_effect=RuntimeError("db down")) as run_mock:
            await self._run_one_tick(Settings(auto_publish_enabled=True), run_mock)

        run_mock.assert_called_once_with()

    def test_worker_interval_has_floor(self) -> None:
        with patch.object(main_module, "settings", Settings(auto_publish_worker_interval_seconds=5)):
            self.assertEqual(main_module._worker_interval_seconds(), 60)
        with patch.object(main_module, "settings", Settings(auto_publish_worker_interval_seconds=900)):
            self.assertEqual(main_module._worker_interval_seconds(), 900)


if __name__ == "__main__":
    unittest.main()
