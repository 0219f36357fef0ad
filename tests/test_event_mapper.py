"""Unit tests for the event mapper - payloads, descriptions and drift diffs."""

import os
import sys
import unittest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))

from sheetcal.config import SyncConfig
from sheetcal.event_mapper import (
    NO_TECHNICIANS,
    TECHNICIANS_HEADING,
    build_summary,
    diff_event,
    extract_technicians,
    format_description,
    technicians_equal,
    to_event_payload,
)
from sheetcal.rows import SheetRow
from fakes import make_row


def row_of(**kwargs):
    return SheetRow.from_cells(make_row(**kwargs), 2)


class TestPayload(unittest.TestCase):
    def setUp(self):
        self.cfg = SyncConfig(user_id="u1")

    def test_conference_row(self):
        payload = to_event_payload(row_of(), None, self.cfg)
        self.assertEqual(payload["summary"], "Conf erence")
        self.assertEqual(payload["start"]["dateTime"], "2024-03-15T09:00:00")
        self.assertEqual(payload["end"]["dateTime"], "2024-03-15T11:00:00")
        self.assertEqual(payload["start"]["timeZone"], "Asia/Jerusalem")
        self.assertEqual(payload["status"], "confirmed")
        self.assertEqual(payload["location"], "Hall A")

    def test_cancelled_row(self):
        payload = to_event_payload(row_of(cancel="TRUE"), None, self.cfg)
        self.assertEqual(payload["summary"], "Canceled: Conf erence")
        self.assertEqual(payload["status"], "cancelled")

    def test_cancel_prefix_not_doubled(self):
        row = row_of(event_type="Canceled:", title="Conf")
        self.assertEqual(build_summary(row, True), "Canceled: Conf")

    def test_blank_times_use_defaults(self):
        payload = to_event_payload(row_of(start="", end=""), None, self.cfg)
        self.assertEqual(payload["start"]["dateTime"], "2024-03-15T17:00:00")
        self.assertEqual(payload["end"]["dateTime"], "2024-03-15T20:00:00")

    def test_blank_end_uses_duration(self):
        payload = to_event_payload(row_of(start="10:00", end=""), None, self.cfg)
        self.assertEqual(payload["end"]["dateTime"], "2024-03-15T13:00:00")

    def test_end_before_start_rolls_over(self):
        payload = to_event_payload(row_of(start="22:00", end="01:00"), None, self.cfg)
        self.assertEqual(payload["end"]["dateTime"], "2024-03-16T01:00:00")

    def test_blank_location(self):
        payload = to_event_payload(row_of(location=""), None, self.cfg)
        self.assertEqual(payload["location"], "")

    def test_no_date_raises(self):
        with self.assertRaises(ValueError):
            to_event_payload(row_of(date="nope"), None, self.cfg)


class TestDescription(unittest.TestCase):
    def test_link_manager_and_technicians(self):
        row = row_of(coordination="sheet", technicians=["Alice", "Bob"])
        text = format_description(row, "https://docs.example/x")
        self.assertEqual(
            text,
            '<a href="https://docs.example/x">דף תיאום</a>\n\n'
            "מנהל אירוע: Mgr\n\n"
            f"{TECHNICIANS_HEADING}\nAlice\nBob\n",
        )

    def test_coordination_text_without_link(self):
        text = format_description(row_of(coordination="see folder"))
        self.assertTrue(text.startswith("דף תיאום: see folder\n\n"))

    def test_no_coordination_no_manager(self):
        text = format_description(row_of(manager=""))
        self.assertEqual(text, f"{TECHNICIANS_HEADING}\n{NO_TECHNICIANS}\n")


class TestTechnicians(unittest.TestCase):
    def test_round_trip_ignores_order(self):
        text = format_description(row_of(technicians=["Alice", "Bob"]))
        extracted = extract_technicians(text)
        self.assertEqual(set(extracted), {"Alice", "Bob"})
        self.assertTrue(technicians_equal(extracted, ["Bob", "Alice"]))

    def test_none_assigned_is_empty(self):
        self.assertEqual(extract_technicians(format_description(row_of())), [])

    def test_missing_heading(self):
        self.assertEqual(extract_technicians("hand-written notes"), [])
        self.assertEqual(extract_technicians(None), [])

    def test_equal_trims_whitespace(self):
        self.assertTrue(technicians_equal([" Alice ", "Bob"], ["Bob", "Alice"]))
        self.assertFalse(technicians_equal(["Alice"], ["Alice", "Bob"]))

    def test_equal_ignores_repeats(self):
        self.assertTrue(technicians_equal(["A", "A", "B"], ["A", "B", "B"]))
        self.assertTrue(technicians_equal(["Alice", "Alice"], ["Alice"]))


class TestDiffEvent(unittest.TestCase):
    def setUp(self):
        self.cfg = SyncConfig(user_id="u1")
        self.desired = to_event_payload(row_of(technicians=["Alice"]), None, self.cfg)

    def _echo(self, payload, offset="+02:00"):
        existing = {k: v for k, v in payload.items()}
        existing["start"] = {"dateTime": payload["start"]["dateTime"] + offset,
                             "timeZone": "Asia/Jerusalem"}
        existing["end"] = {"dateTime": payload["end"]["dateTime"] + offset,
                           "timeZone": "Asia/Jerusalem"}
        return existing

    def test_offset_echo_is_not_drift(self):
        self.assertEqual(diff_event(self._echo(self.desired), self.desired, "Asia/Jerusalem"), [])

    def test_utc_echo_is_not_drift(self):
        existing = dict(self.desired)
        existing["start"] = {"dateTime": "2024-03-15T07:00:00Z"}
        existing["end"] = {"dateTime": "2024-03-15T09:00:00Z"}
        self.assertEqual(diff_event(existing, self.desired, "Asia/Jerusalem"), [])

    def test_changed_fields_reported(self):
        existing = self._echo(self.desired)
        existing["location"] = "Hall B"
        existing["start"] = {"dateTime": "2024-03-15T10:00:00+02:00"}
        changes = diff_event(existing, self.desired, "Asia/Jerusalem")
        self.assertEqual(changes, ["location", "start"])

    def test_technician_change(self):
        other = to_event_payload(row_of(technicians=["Bob"]), None, self.cfg)
        changes = diff_event(self._echo(other), self.desired, "Asia/Jerusalem")
        self.assertIn("technicians", changes)
        self.assertIn("description", changes)

    def test_missing_status_reads_confirmed(self):
        existing = self._echo(self.desired)
        del existing["status"]
        self.assertEqual(diff_event(existing, self.desired, "Asia/Jerusalem"), [])


if __name__ == "__main__":
    unittest.main()
