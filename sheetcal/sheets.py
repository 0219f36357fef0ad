"""Google Sheets client for reading event rows and writing sync markers back.

All API calls pass through the shared Sheets RateLimiter, which throttles
and retries 429 / 5xx responses with exponential backoff.
"""

import logging
from typing import Dict, List, Optional

import gspread
from google.oauth2.service_account import Credentials

from .dispatcher import RateLimiter
from .rows import quote_sheet_name

logger = logging.getLogger("sheetcal.sheets")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",   # Read + Write
]

HYPERLINK_FIELDS = "sheets(data(rowData(values(hyperlink))))"
HYPERLINK_CHUNK = 50


class SheetsClient:
    """Reads the event tab and writes processed / event-id cells.

    Spreadsheets are opened lazily by key and cached for the process.
    """

    def __init__(self, credentials_path: str, limiter: RateLimiter):
        self.credentials_path = credentials_path
        self.limiter = limiter
        self._client: Optional[gspread.Client] = None
        self._spreadsheets: Dict[str, gspread.Spreadsheet] = {}

    # ── Connection ──

    def connect(self):
        """Authenticate with the service account."""
        creds = Credentials.from_service_account_file(
            self.credentials_path, scopes=SCOPES
        )
        self._client = gspread.authorize(creds)
        logger.info("Sheets client authorized with %s", self.credentials_path)

    def _spreadsheet(self, spreadsheet_id: str) -> gspread.Spreadsheet:
        if self._client is None:
            self.connect()
        if spreadsheet_id not in self._spreadsheets:
            self._spreadsheets[spreadsheet_id] = self.limiter.call(
                self._client.open_by_key, spreadsheet_id
            )
            logger.info("Opened spreadsheet: %s", spreadsheet_id)
        return self._spreadsheets[spreadsheet_id]

    # ── Read operations ──

    def get_values(self, spreadsheet_id: str, sheet_name: str, a1_range: str) -> List[list]:
        """Formatted cell values of a range. Trailing blank cells are trimmed by the API."""
        ss = self._spreadsheet(spreadsheet_id)
        rng = f"{quote_sheet_name(sheet_name)}!{a1_range}"
        response = self.limiter.call(ss.values_get, rng)
        values = response.get("values", [])
        logger.debug("Read %d rows from %s", len(values), rng)
        return values

    def get_hyperlinks(self, spreadsheet_id: str, sheet_name: str,
                       a1_cells: List[str]) -> Dict[str, str]:
        """Hyperlinks of many single cells, HYPERLINK_CHUNK ranges per request.

        Cells without a link are absent from the result.
        """
        if not a1_cells:
            return {}
        ss = self._spreadsheet(spreadsheet_id)
        quoted = quote_sheet_name(sheet_name)
        links: Dict[str, str] = {}

        for start in range(0, len(a1_cells), HYPERLINK_CHUNK):
            chunk = a1_cells[start:start + HYPERLINK_CHUNK]
            metadata = self.limiter.call(
                ss.fetch_sheet_metadata,
                params={
                    "ranges": [f"{quoted}!{cell}" for cell in chunk],
                    "fields": HYPERLINK_FIELDS,
                },
            )
            sheets = metadata.get("sheets") or [{}]
            data = sheets[0].get("data") or []
            for cell, grid in zip(chunk, data):
                link = _first_hyperlink(grid)
                if link:
                    links[cell] = link

        logger.debug("Resolved %d/%d hyperlinks", len(links), len(a1_cells))
        return links

    def get_hyperlink(self, spreadsheet_id: str, sheet_name: str, a1: str) -> Optional[str]:
        return self.get_hyperlinks(spreadsheet_id, sheet_name, [a1]).get(a1)

    # ── Write operations ──

    def update_cell(self, spreadsheet_id: str, sheet_name: str, a1: str, value):
        ss = self._spreadsheet(spreadsheet_id)
        rng = f"{quote_sheet_name(sheet_name)}!{a1}"
        self.limiter.call(
            ss.values_update, rng,
            params={"valueInputOption": "RAW"},
            body={"values": [[value]]},
        )

    def batch_update(self, spreadsheet_id: str, updates: List[dict]):
        """Write many ranges in one call. updates: [{"range": "'Tab'!A1", "values": [[...]]}]."""
        if not updates:
            return None
        ss = self._spreadsheet(spreadsheet_id)
        logger.info("Batch updating %d ranges in %s", len(updates), spreadsheet_id)
        return self.limiter.call(
            ss.values_batch_update,
            {"valueInputOption": "RAW", "data": updates},
        )

    # ── Verify ──

    def verify_connection(self, spreadsheet_id: str, sheet_name: str) -> bool:
        """Verify we can open the spreadsheet and its tab. Returns True if OK."""
        try:
            ss = self._spreadsheet(spreadsheet_id)
            self.limiter.call(ss.worksheet, sheet_name)
            logger.info("Sheet access verified: %s / %s", ss.title, sheet_name)
            return True
        except Exception as e:
            logger.error("Sheet access failed: %s", e)
            return False


def _first_hyperlink(grid: dict) -> Optional[str]:
    for row in grid.get("rowData") or []:
        for value in row.get("values") or []:
            link = value.get("hyperlink")
            if link:
                return link
    return None
