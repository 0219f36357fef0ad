"""Unit tests for runner module - locks, scheduled loops, per-user isolation."""

import json
import os
import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))

from sheetcal.config import AppConfig, Config, GoogleConfig, RateLimitConfig, SyncConfig
from sheetcal.processing_log import ProcessingLog
from sheetcal.runner import (
    DRIFT_LOCK,
    INCREMENTAL_LOCK,
    Services,
    acquire_lock,
    release_all_locks,
    release_lock,
    run_for_user,
    run_health_check,
    run_scheduled_drift,
    run_scheduled_incremental,
)
from sheetcal.tracking import CursorStore, TrackingStore
from fakes import FILLER, FakeCalendar, FakeSheets, make_row


class BrokenSheets(FakeSheets):
    def get_values(self, spreadsheet_id, sheet_name, a1_range):
        if spreadsheet_id == "broken":
            raise RuntimeError("spreadsheet deleted")
        return super().get_values(spreadsheet_id, sheet_name, a1_range)


class RunnerTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        users = {}
        for user_id, spreadsheet_id, enabled in [
            ("office", "sheet1", True),
            ("broken", "broken", True),
            ("paused", "sheet3", False),
        ]:
            users[user_id] = SyncConfig(
                user_id=user_id, spreadsheet_id=spreadsheet_id, sheet_name="This Year",
                calendar_id=f"{user_id}-cal", enabled=enabled,
            )
        self.cfg = Config(
            google=GoogleConfig(),
            app=AppConfig(state_dir=os.path.join(self.tmp.name, "state"),
                          log_dir=os.path.join(self.tmp.name, "logs")),
            rate_limits=RateLimitConfig(),
            users=users,
        )
        self.sheets = BrokenSheets([FILLER, FILLER, make_row()])
        self.calendar = FakeCalendar()
        state = self.cfg.app.state_dir
        self.services = Services(
            sheets=self.sheets,
            calendar=self.calendar,
            tracking=TrackingStore(state),
            cursors=CursorStore(state),
            log=ProcessingLog(state),
        )

    def tearDown(self):
        self.tmp.cleanup()


class TestLock(RunnerTestCase):
    def test_acquire_release(self):
        """Lock can be acquired and released."""
        self.assertTrue(acquire_lock(self.cfg, DRIFT_LOCK))
        self.assertFalse(acquire_lock(self.cfg, DRIFT_LOCK))
        release_lock(self.cfg, DRIFT_LOCK)
        self.assertTrue(acquire_lock(self.cfg, DRIFT_LOCK))
        release_lock(self.cfg, DRIFT_LOCK)

    def test_release_all_clears_held_locks(self):
        """Lock reset frees every scheduler lock."""
        acquire_lock(self.cfg, DRIFT_LOCK)
        acquire_lock(self.cfg, INCREMENTAL_LOCK)
        release_all_locks(self.cfg)
        self.assertTrue(acquire_lock(self.cfg, DRIFT_LOCK))
        self.assertTrue(acquire_lock(self.cfg, INCREMENTAL_LOCK))
        release_all_locks(self.cfg)

    def test_stale_lock(self):
        path = os.path.join(self.cfg.app.state_dir, f".{DRIFT_LOCK}.lock")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        old = datetime.now(timezone.utc) - timedelta(hours=1)
        with open(path, "w") as f:
            json.dump({"pid": 1, "timestamp": old.isoformat()}, f)
        self.assertTrue(acquire_lock(self.cfg, DRIFT_LOCK))
        release_lock(self.cfg, DRIFT_LOCK)

    def test_locks_are_independent(self):
        self.assertTrue(acquire_lock(self.cfg, DRIFT_LOCK))
        self.assertTrue(acquire_lock(self.cfg, INCREMENTAL_LOCK))
        release_lock(self.cfg, DRIFT_LOCK)
        release_lock(self.cfg, INCREMENTAL_LOCK)


class TestScheduled(RunnerTestCase):
    def test_incremental_isolates_users_and_skips_disabled(self):
        results = run_scheduled_incremental(self.cfg, self.services)

        self.assertEqual(sorted(results), ["broken", "office"])
        self.assertTrue(results["office"]["success"])
        self.assertEqual(results["office"]["stats"]["created"], 1)
        self.assertFalse(results["broken"]["success"])
        self.assertIn("spreadsheet deleted", results["broken"]["message"])
        self.assertFalse(os.path.exists(
            os.path.join(self.cfg.app.state_dir, f".{INCREMENTAL_LOCK}.lock")))

    def test_drift_runs_for_enabled_users(self):
        run_scheduled_incremental(self.cfg, self.services)
        results = run_scheduled_drift(self.cfg, self.services)
        self.assertEqual(sorted(results), ["broken", "office"])
        self.assertTrue(results["office"]["success"])

    def test_held_lock_skips_run(self):
        acquire_lock(self.cfg, INCREMENTAL_LOCK)
        try:
            self.assertEqual(run_scheduled_incremental(self.cfg, self.services), {})
            self.assertEqual(self.calendar.calls, [])
        finally:
            release_lock(self.cfg, INCREMENTAL_LOCK)


class TestManual(RunnerTestCase):
    def test_run_for_user(self):
        result = run_for_user(self.cfg, "office", lambda r: r.manual_scan_next_row(), self.services)
        self.assertTrue(result.success)
        self.assertEqual(len(self.calendar.events), 1)

    def test_unknown_user(self):
        result = run_for_user(self.cfg, "nobody", lambda r: r.get_logs(), self.services)
        self.assertFalse(result.success)

    def test_ambiguous_user(self):
        result = run_for_user(self.cfg, None, lambda r: r.get_logs(), self.services)
        self.assertFalse(result.success)
        self.assertIn("--user", result.message)

    def test_health_check(self):
        self.assertTrue(run_health_check(self.cfg, "office", self.services))
        self.cfg.users["office"].calendar_id = ""
        self.assertFalse(run_health_check(self.cfg, "office", self.services))


if __name__ == "__main__":
    unittest.main()
