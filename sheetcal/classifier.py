"""Row classifier - the single decision point for a row's disposition."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .rows import MIN_COLUMNS, SheetRow
from .tracking import TrackingRecord


# Quote, rental, option and production bookings never reach the calendar.
EXCLUDED_EVENT_TYPES = frozenset(["הצעת מחיר", "השכרות", "אופציה", "הפקה"])

REASON_INSUFFICIENT = "insufficient data"
REASON_NO_DATE = "no valid date"
REASON_EXCLUDED = "excluded type"


class Disposition(str, Enum):
    SKIP = "SKIP"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    CANCEL = "CANCEL"


@dataclass(frozen=True)
class Classification:
    disposition: Disposition
    reason: str = ""

    @property
    def is_skip(self) -> bool:
        return self.disposition is Disposition.SKIP


def is_excluded_type(row: SheetRow) -> bool:
    return row.event_type_detail in EXCLUDED_EVENT_TYPES


def classify(row: Optional[SheetRow], tracking: Optional[TrackingRecord] = None) -> Classification:
    """Decide what to do with a row.

    Rules are evaluated in order; the first match wins:
      1. missing row or fewer than MIN_COLUMNS cells  -> SKIP
      2. date cell not strict D/M/YY                  -> SKIP
      3. excluded event type (even if synced before)  -> SKIP
      4. cancellation flag set                        -> CANCEL
      5. tracking record with an event id             -> UPDATE
      6. anything else                                -> CREATE

    A row that turns excluded after it was synced keeps its event; only the
    cancellation flag removes a row from the calendar.
    """
    if row is None or row.cell_count < MIN_COLUMNS:
        return Classification(Disposition.SKIP, REASON_INSUFFICIENT)

    if row.event_date is None:
        return Classification(Disposition.SKIP, REASON_NO_DATE)

    if is_excluded_type(row):
        return Classification(Disposition.SKIP, f'{REASON_EXCLUDED}: "{row.event_type_detail}"')

    if row.cancel_requested:
        return Classification(Disposition.CANCEL, "cancellation flag set")

    if tracking is not None and tracking.event_id:
        return Classification(Disposition.UPDATE, f"tracked as {tracking.event_id}")

    return Classification(Disposition.CREATE, "no tracked event")
