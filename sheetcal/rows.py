"""Spreadsheet row model.

Rows are read from a fixed range whose first row sits directly under the
header, so a 0-based RowIndex into the fetched data maps to the physical
sheet row RowIndex + 2. That conversion lives in to_sheet_row() and
nowhere else.
"""

import re
from dataclasses import dataclass, field
from datetime import date, time
from typing import List, NewType, Optional

RowIndex = NewType("RowIndex", int)
SheetRowNumber = NewType("SheetRowNumber", int)

# Physical offset between RowIndex 0 and its sheet row: one header row + 1-based rows.
_HEADER_OFFSET = 2

# Fixed column contract with the spreadsheet layout (0-based).
COL_DATE = 1                # B  D/M/YY
COL_DAY = 2                 # C
COL_EVENT_TYPE_DETAIL = 3   # D
COL_EVENT_TYPE = 4          # E  title fragment 1
COL_TITLE = 5               # F  title fragment 2
COL_LOCATION = 6            # G
COL_FEE = 7                 # H
COL_NOTES = 8               # I
COL_START_TIME = 9          # J
COL_END_TIME = 10           # K
COL_MANAGER = 11            # L
COL_CANCEL = 18             # S
COL_COORDINATION = 19       # T
COL_TECH_FIRST = 20         # U
COL_TECH_LAST = 26          # AA

MIN_COLUMNS = 10

DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$")
TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")

_CANCEL_VALUES = (True, "true", "TRUE")


def to_sheet_row(row_index: RowIndex) -> SheetRowNumber:
    """Physical 1-based sheet row for a 0-based data row index."""
    if row_index < 0:
        raise ValueError(f"Row index must be non-negative, got {row_index}")
    return SheetRowNumber(row_index + _HEADER_OFFSET)


def column_letter(index: int) -> str:
    """0-based column index to A1 letters (0 -> A, 26 -> AA, 37 -> AL)."""
    if index < 0:
        raise ValueError(f"Column index must be non-negative, got {index}")
    letters = ""
    i = index
    while i >= 0:
        letters = chr(ord("A") + i % 26) + letters
        i = i // 26 - 1
    return letters


def cell_a1(column_index: int, row_index: RowIndex) -> str:
    """A1 reference for a column of a data row, e.g. (37, 7) -> 'AL9'."""
    return f"{column_letter(column_index)}{to_sheet_row(row_index)}"


def quote_sheet_name(sheet_name: str) -> str:
    """Quote a tab name for A1 ranges ("This Year" -> "'This Year'")."""
    return "'" + sheet_name.replace("'", "''") + "'"


def parse_row_date(value) -> Optional[date]:
    """Parse a strict D/M/YY cell into a date (YY -> 20YY). None if invalid."""
    if value is None:
        return None
    m = DATE_PATTERN.match(str(value).strip())
    if not m:
        return None
    day, month, year = int(m.group(1)), int(m.group(2)), 2000 + int(m.group(3))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_time(value) -> Optional[time]:
    """Parse an H:MM / HH:MM[:SS] cell. None when blank or malformed."""
    if value is None:
        return None
    m = TIME_PATTERN.match(str(value).strip())
    if not m:
        return None
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def _cell(cells: list, idx: int) -> str:
    if idx < 0 or idx >= len(cells):
        return ""
    val = cells[idx]
    if val is None:
        return ""
    return str(val).strip()


@dataclass
class SheetRow:
    """One data row with named fields. Built only by from_cells()."""
    row_index: RowIndex
    cell_count: int
    date_text: str
    day: str
    event_type_detail: str
    event_type: str
    title: str
    location: str
    fee: str
    notes: str
    start_time: str
    end_time: str
    manager: str
    cancel_requested: bool
    coordination_text: str
    technicians: List[str] = field(default_factory=list)
    processed_marker: str = ""
    event_id: str = ""

    @staticmethod
    def from_cells(
        cells: Optional[list],
        row_index: RowIndex,
        processed_column_index: int = 36,
        event_id_column_index: int = 37,
    ) -> Optional["SheetRow"]:
        """Parse raw cells into a SheetRow. None for a missing row."""
        if cells is None:
            return None

        raw_cancel = cells[COL_CANCEL] if len(cells) > COL_CANCEL else ""
        technicians = []
        for idx in range(COL_TECH_FIRST, COL_TECH_LAST + 1):
            name = _cell(cells, idx)
            if name:
                technicians.append(name)

        return SheetRow(
            row_index=row_index,
            cell_count=len(cells),
            date_text=_cell(cells, COL_DATE),
            day=_cell(cells, COL_DAY),
            event_type_detail=_cell(cells, COL_EVENT_TYPE_DETAIL),
            event_type=_cell(cells, COL_EVENT_TYPE),
            title=_cell(cells, COL_TITLE),
            location=_cell(cells, COL_LOCATION),
            fee=_cell(cells, COL_FEE),
            notes=_cell(cells, COL_NOTES),
            start_time=_cell(cells, COL_START_TIME),
            end_time=_cell(cells, COL_END_TIME),
            manager=_cell(cells, COL_MANAGER),
            cancel_requested=raw_cancel in _CANCEL_VALUES,
            coordination_text=_cell(cells, COL_COORDINATION),
            technicians=technicians,
            processed_marker=_cell(cells, processed_column_index),
            event_id=_cell(cells, event_id_column_index),
        )

    @property
    def sheet_row(self) -> SheetRowNumber:
        return to_sheet_row(self.row_index)

    @property
    def event_date(self) -> Optional[date]:
        return parse_row_date(self.date_text)

    @property
    def event_name(self) -> str:
        return f"{self.event_type} {self.title}".strip()


def parse_rows(values: List[list], processed_column_index: int = 36,
               event_id_column_index: int = 37) -> List[Optional[SheetRow]]:
    """Parse a fetched 2D range into SheetRows, index-aligned with the input."""
    return [
        SheetRow.from_cells(cells, RowIndex(i), processed_column_index, event_id_column_index)
        for i, cells in enumerate(values)
    ]
