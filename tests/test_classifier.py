"""Unit tests for the row classifier."""

import os
import sys
import unittest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.dirname(__file__))

from sheetcal.classifier import (
    EXCLUDED_EVENT_TYPES,
    REASON_INSUFFICIENT,
    REASON_NO_DATE,
    Disposition,
    classify,
)
from sheetcal.rows import SheetRow
from sheetcal.tracking import TrackingRecord
from fakes import make_row


def row_of(**kwargs):
    return SheetRow.from_cells(make_row(**kwargs), 2)


class TestClassify(unittest.TestCase):
    def test_missing_row(self):
        result = classify(None)
        self.assertEqual(result.disposition, Disposition.SKIP)
        self.assertEqual(result.reason, REASON_INSUFFICIENT)

    def test_too_few_cells(self):
        row = SheetRow.from_cells(["", "15/03/24", "Fri", "", "Conf"], 2)
        self.assertEqual(classify(row).reason, REASON_INSUFFICIENT)

    def test_invalid_dates_always_skip(self):
        tracked = TrackingRecord(event_id="evt1")
        for text in ("", "2024-03-15", "15/03/2024", "15.03.24", "32/01/24", "tomorrow"):
            for tracking in (None, tracked):
                result = classify(row_of(date=text), tracking)
                self.assertTrue(result.is_skip, text)
                self.assertEqual(result.reason, REASON_NO_DATE)

    def test_excluded_types_always_skip(self):
        tracked = TrackingRecord(event_id="evt1")
        for detail in EXCLUDED_EVENT_TYPES:
            for tracking in (None, tracked):
                for cancel in ("", "TRUE"):
                    result = classify(row_of(detail=detail, cancel=cancel), tracking)
                    self.assertEqual(result.disposition, Disposition.SKIP)
                    self.assertIn("excluded type", result.reason)

    def test_cancel_beats_tracking(self):
        result = classify(row_of(cancel="TRUE"), TrackingRecord(event_id="evt1"))
        self.assertEqual(result.disposition, Disposition.CANCEL)

    def test_cancel_without_tracking(self):
        self.assertEqual(classify(row_of(cancel=True)).disposition, Disposition.CANCEL)

    def test_tracked_is_update(self):
        result = classify(row_of(), TrackingRecord(event_id="evt1"))
        self.assertEqual(result.disposition, Disposition.UPDATE)

    def test_tracking_without_event_id_is_create(self):
        result = classify(row_of(), TrackingRecord(event_id=""))
        self.assertEqual(result.disposition, Disposition.CREATE)

    def test_conference_row_is_create(self):
        self.assertEqual(classify(row_of()).disposition, Disposition.CREATE)


if __name__ == "__main__":
    unittest.main()
