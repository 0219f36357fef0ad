"""Tracking store - durable RowIndex -> calendar event links.

One JSON document per tracked row lives under
<state_dir>/tracking/<user>/row_<idx>.json. Writes are merge-upserts taken
under a per-document lock file and finished with an atomic replace, so
concurrent runs never leave a half-written document behind and fields
written by one writer survive a later partial write.

CursorStore keeps the manual-scan position per user in the same way.
"""

import json
import logging
import os
import platform
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from .errors import TrackingError
from .rows import RowIndex, to_sheet_row

logger = logging.getLogger("sheetcal.tracking")

BATCH_LIMIT = 500
# Lowest RowIndex the incremental cursor may point at.
CURSOR_FLOOR = 2
LOCK_TIMEOUT_SECONDS = 30
LOCK_WAIT_SECONDS = 10.0
_LOCK_POLL = 0.05

_DOC_PATTERN = re.compile(r"^row_(\d+)\.json$")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.@-]")


class TrackingStatus(str, Enum):
    PROCESSED = "PROCESSED"
    CANCELLED = "CANCELLED"
    UPDATED = "UPDATED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TrackingRecord:
    event_id: str
    status: str = TrackingStatus.PROCESSED.value
    row_index: int = 0
    sheet_row: int = 0
    title: str = ""
    date: str = ""
    location: str = ""
    created_at: str = ""
    updated_at: str = ""
    last_sync: str = ""

    def to_dict(self) -> dict:
        return {
            "eventId": self.event_id,
            "status": self.status,
            "rowIndex": self.row_index,
            "sheetRow": self.sheet_row,
            "title": self.title,
            "date": self.date,
            "location": self.location,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "lastSync": self.last_sync,
        }

    @staticmethod
    def from_dict(raw: dict) -> "TrackingRecord":
        status = raw.get("status") or TrackingStatus.PROCESSED.value
        return TrackingRecord(
            event_id=raw.get("eventId") or "",
            status=status.value if isinstance(status, TrackingStatus) else str(status),
            row_index=int(raw.get("rowIndex", 0) or 0),
            sheet_row=int(raw.get("sheetRow", 0) or 0),
            title=raw.get("title") or "",
            date=raw.get("date") or "",
            location=raw.get("location") or "",
            created_at=raw.get("createdAt") or "",
            updated_at=raw.get("updatedAt") or "",
            last_sync=raw.get("lastSync") or "",
        )


@dataclass
class BatchResult:
    """Outcome of a chunked batch write. Failures are per record, never all-or-nothing."""
    written: List[int] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def safe_name(user_id: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", user_id.strip())
    if not cleaned:
        raise TrackingError("Empty user id for tracking store.")
    return cleaned


def _read_json(path: str) -> Optional[dict]:
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TrackingError(f"Corrupt tracking document {path}: {e}") from e
    except OSError as e:
        raise TrackingError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise TrackingError(f"Corrupt tracking document {path}: not an object")
    return data


def _write_json_atomic(path: str, data: dict):
    tmp = f"{path}.{os.getpid()}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    os.replace(tmp, path)


@contextmanager
def document_lock(path: str, timeout: float = LOCK_TIMEOUT_SECONDS,
                  wait: float = LOCK_WAIT_SECONDS):
    """Exclusive lock on one document via an O_EXCL lock file.

    A lock older than timeout seconds is treated as stale and taken over.
    """
    lock_path = path + ".lock"
    deadline = time.monotonic() + wait
    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            try:
                age = time.time() - os.path.getmtime(lock_path)
            except FileNotFoundError:
                continue
            if age >= timeout:
                logger.warning("Stale lock %s (%.0fs old). Overriding.", lock_path, age)
                try:
                    os.remove(lock_path)
                except FileNotFoundError:
                    pass
                continue
            if time.monotonic() >= deadline:
                raise TrackingError(f"Timed out waiting for lock {lock_path}")
            time.sleep(_LOCK_POLL)
            continue
        break

    try:
        with os.fdopen(fd, "w") as f:
            json.dump({
                "pid": os.getpid(),
                "hostname": platform.node(),
                "timestamp": _utcnow().isoformat(),
            }, f)
        yield
    finally:
        try:
            os.remove(lock_path)
        except FileNotFoundError:
            pass


def merge_document(path: str, fields: dict, defaults: Optional[dict] = None) -> dict:
    """Merge fields into the JSON document at path, creating it if needed.

    defaults only fill keys that are missing or empty in the stored document.
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with document_lock(path):
        current = _read_json(path) or {}
        for key, value in (defaults or {}).items():
            if not current.get(key):
                current[key] = value
        current.update(fields)
        try:
            _write_json_atomic(path, current)
        except OSError as e:
            raise TrackingError(f"Cannot write {path}: {e}") from e
    return current


class TrackingStore:
    """Per-user RowIndex -> TrackingRecord store on local disk."""

    def __init__(self, state_dir: str, now: Callable[[], datetime] = _utcnow):
        self.root = os.path.join(state_dir, "tracking")
        self._now = now

    def _user_dir(self, user_id: str) -> str:
        return os.path.join(self.root, safe_name(user_id))

    def _doc_path(self, user_id: str, row_index: int) -> str:
        if row_index < 0:
            raise TrackingError(f"Row index must be non-negative, got {row_index}")
        return os.path.join(self._user_dir(user_id), f"row_{row_index}.json")

    def get(self, user_id: str, row_index: int) -> Optional[TrackingRecord]:
        raw = _read_json(self._doc_path(user_id, row_index))
        if raw is None:
            return None
        return TrackingRecord.from_dict(raw)

    def put(self, user_id: str, row_index: int, record: TrackingRecord) -> TrackingRecord:
        """Merge-upsert a record. createdAt is kept from the first write."""
        path = self._doc_path(user_id, row_index)
        now = self._now().isoformat()

        fields = record.to_dict()
        fields["rowIndex"] = row_index
        fields["sheetRow"] = to_sheet_row(RowIndex(row_index))
        fields["updatedAt"] = now
        fields["lastSync"] = now
        created_at = fields.pop("createdAt")
        current = merge_document(path, fields, defaults={"createdAt": created_at or now})

        logger.debug("Tracked row %d -> %s (%s)", row_index, record.event_id, record.status)
        return TrackingRecord.from_dict(current)

    def delete(self, user_id: str, row_index: int) -> bool:
        """Remove a record. Returns False when nothing was tracked."""
        path = self._doc_path(user_id, row_index)
        if not os.path.exists(path):
            return False
        with document_lock(path):
            try:
                os.remove(path)
            except FileNotFoundError:
                return False
            except OSError as e:
                raise TrackingError(f"Cannot delete {path}: {e}") from e
        logger.debug("Removed tracking for row %d", row_index)
        return True

    def get_all(self, user_id: str) -> Dict[int, TrackingRecord]:
        """Every record for a user, keyed by RowIndex. Corrupt documents are skipped."""
        directory = self._user_dir(user_id)
        if not os.path.isdir(directory):
            return {}
        records: Dict[int, TrackingRecord] = {}
        for name in sorted(os.listdir(directory)):
            m = _DOC_PATTERN.match(name)
            if not m:
                continue
            row_index = int(m.group(1))
            try:
                raw = _read_json(os.path.join(directory, name))
            except TrackingError as e:
                logger.warning("Skipping tracking document: %s", e)
                continue
            if raw is not None:
                records[row_index] = TrackingRecord.from_dict(raw)
        return records

    def put_batch(self, user_id: str, records: Iterable[TrackingRecord]) -> BatchResult:
        """Upsert many records in chunks of BATCH_LIMIT."""
        records = list(records)
        result = BatchResult()
        for start in range(0, len(records), BATCH_LIMIT):
            chunk = records[start:start + BATCH_LIMIT]
            for record in chunk:
                try:
                    self.put(user_id, record.row_index, record)
                    result.written.append(record.row_index)
                except Exception as e:
                    result.errors.append({"rowIndex": record.row_index, "error": str(e)})
            logger.info("Tracking batch %d-%d written (%d errors so far)",
                        start, start + len(chunk) - 1, len(result.errors))
        return result

    def delete_batch(self, user_id: str, row_indices: Iterable[int]) -> BatchResult:
        """Delete many records in chunks of BATCH_LIMIT."""
        indices = list(row_indices)
        result = BatchResult()
        for start in range(0, len(indices), BATCH_LIMIT):
            for row_index in indices[start:start + BATCH_LIMIT]:
                try:
                    self.delete(user_id, row_index)
                    result.written.append(row_index)
                except Exception as e:
                    result.errors.append({"rowIndex": row_index, "error": str(e)})
        return result


class CursorStore:
    """Manual-scan cursor and last scan time per user."""

    def __init__(self, state_dir: str, now: Callable[[], datetime] = _utcnow):
        self.root = os.path.join(state_dir, "cursors")
        self._now = now

    def _path(self, user_id: str) -> str:
        return os.path.join(self.root, f"{safe_name(user_id)}.json")

    def get_state(self, user_id: str) -> dict:
        return _read_json(self._path(user_id)) or {}

    def get_cursor(self, user_id: str) -> int:
        """Next RowIndex to process, never below CURSOR_FLOOR."""
        stored = int(self.get_state(user_id).get("lastProcessedRow", 0) or 0)
        return max(stored, CURSOR_FLOOR)

    def set_cursor(self, user_id: str, value: int) -> int:
        merge_document(self._path(user_id), {
            "lastProcessedRow": int(value),
            "lastScanTime": self._now().isoformat(),
        })
        return int(value)

    def reset(self, user_id: str):
        self.set_cursor(user_id, CURSOR_FLOOR)

    def touch_scan_time(self, user_id: str):
        merge_document(self._path(user_id), {"lastScanTime": self._now().isoformat()})
