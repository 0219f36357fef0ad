"""Reconciler - mirrors spreadsheet rows into Google Calendar events.

Each public method is one independently triggerable mode:
  * manual_scan_next_row / scheduled_incremental_scan walk the persisted
    cursor one row (or one batch) at a time.
  * full_drift_scan re-derives every tracked event and updates it only when
    a field differs.
  * reprocess_rows / scan_month create fresh events for chosen rows.
  * delete_month / delete_selected_rows remove events and their tracking.
  * get_logs / sheet_preview are read-only.

The tracking store is the source of truth for which event belongs to which
row. Every calendar mutation is followed by a tracking write before the
method returns; when that write fails the result carries a consistency
error instead of a retry. Sheet write-backs (processed marker, event id)
are a best-effort mirror.

Public methods never raise: the operation boundary turns any exception
into a failed OperationResult and writes a processing-log entry.
"""

import functools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytz

from .calendar_client import CalendarClient
from .classifier import Classification, Disposition, classify, is_excluded_type
from .config import SyncConfig
from .errors import ConfigError, ConsistencyError, TrackingError
from .event_mapper import diff_event, to_event_payload
from .logging_setup import log_context, log_event
from .processing_log import DEFAULT_LOG_LIMIT, ProcessingLog
from .rows import (
    COL_COORDINATION, RowIndex, SheetRow, cell_a1, parse_rows, quote_sheet_name, to_sheet_row,
)
from .sheets import SheetsClient
from .tracking import CURSOR_FLOOR, CursorStore, TrackingRecord, TrackingStatus, TrackingStore

logger = logging.getLogger("sheetcal.reconciler")

NO_MORE_ROWS = "No more rows to process"
CANCELLED_MARKER = "CANCELLED"


@dataclass
class OperationResult:
    success: bool
    message: str
    stats: Dict[str, int] = field(default_factory=dict)
    errors: List[dict] = field(default_factory=list)
    consistency_errors: List[dict] = field(default_factory=list)
    rows_affected: int = 0
    data: Any = None

    def to_dict(self) -> dict:
        out = {"success": self.success, "message": self.message}
        if self.stats:
            out["stats"] = dict(self.stats)
        if self.errors:
            out["errors"] = list(self.errors)
        if self.consistency_errors:
            out["consistencyErrors"] = list(self.consistency_errors)
        if self.data is not None:
            out["data"] = self.data
        return out


def operation(name: str, validate: bool = True, record: bool = True):
    """Operation boundary: validate config, catch everything, log the outcome."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            with log_context(user_id=self.user_id, operation=name):
                try:
                    if validate:
                        self.config.validate()
                    result = method(self, *args, **kwargs)
                except ConfigError as e:
                    logger.error("Rejected: %s", e)
                    result = OperationResult(False, str(e))
                except Exception as e:
                    logger.exception("Failed")
                    result = OperationResult(False, f"{name} failed: {e}")

                if result.consistency_errors:
                    result.success = False

                if record:
                    _record(self, name, result)
            return result
        return wrapper
    return decorator


def _record(reconciler: "Reconciler", name: str, result: OperationResult):
    """Write the processing-log entry for a finished operation. Never raises."""
    try:
        reconciler.log.append(
            reconciler.user_id, name,
            rows_affected=result.rows_affected,
            errors=result.errors + result.consistency_errors,
            stats=result.stats,
        )
        log_event(
            logger, "info" if result.success else "warning",
            f"{name}: {result.message}",
            success=result.success, stats=result.stats, errors=len(result.errors),
            consistency_errors=len(result.consistency_errors),
        )
    except Exception:
        logger.exception("Recording the outcome of %s failed", name)


class _Pass:
    """Mutable bookkeeping for one invocation."""

    def __init__(self, *counters: str):
        self.stats: Dict[str, int] = {name: 0 for name in counters}
        self.errors: List[dict] = []
        self.consistency_errors: List[dict] = []
        self.write_backs: List[dict] = []

    def bump(self, counter: str, by: int = 1):
        self.stats[counter] = self.stats.get(counter, 0) + by

    def row_error(self, row_index: int, exc: Exception, event_id: str = ""):
        entry = {"rowIndex": row_index, "error": str(exc)}
        if event_id:
            entry["eventId"] = event_id
        self.errors.append(entry)
        self.stats["errors"] = len(self.errors)

    def result(self, success: bool, message: str, rows_affected: int) -> OperationResult:
        self.stats["errors"] = len(self.errors)
        return OperationResult(
            success=success,
            message=message,
            stats=self.stats,
            errors=self.errors,
            consistency_errors=self.consistency_errors,
            rows_affected=rows_affected,
        )


class Reconciler:
    """Sync engine for one user's sheet/calendar pair.

    Every collaborator is injected; the Reconciler holds no global state.
    """

    def __init__(self, config: SyncConfig, sheets: SheetsClient, calendar: CalendarClient,
                 tracking: TrackingStore, cursors: CursorStore, log: ProcessingLog,
                 today: Optional[Callable[[], date]] = None):
        self.config = config
        self.user_id = config.user_id
        self.sheets = sheets
        self.calendar = calendar
        self.tracking = tracking
        self.cursors = cursors
        self.log = log
        self._today = today or self._local_today

    def _local_today(self) -> date:
        return datetime.now(pytz.timezone(self.config.timezone)).date()

    # ── Sheet access ──

    def _load_rows(self) -> List[Optional[SheetRow]]:
        cfg = self.config
        values = self.sheets.get_values(cfg.spreadsheet_id, cfg.sheet_name, cfg.data_range)
        return parse_rows(values, cfg.processed_column_index, cfg.event_id_column_index)

    def _coordination_links(self, rows: Iterable[Optional[SheetRow]]) -> Dict[int, str]:
        """Hyperlinks behind the coordination cells, keyed by RowIndex.

        A failed lookup degrades to the cell text in the description.
        """
        cells = {}
        for row in rows:
            if row is not None and row.coordination_text:
                cells[cell_a1(COL_COORDINATION, row.row_index)] = row.row_index
        if not cells:
            return {}
        try:
            links = self.sheets.get_hyperlinks(
                self.config.spreadsheet_id, self.config.sheet_name, list(cells)
            )
        except Exception as e:
            logger.warning("Coordination links unavailable, using cell text: %s", e)
            return {}
        return {cells[a1]: url for a1, url in links.items()}

    def _queue_write_back(self, pass_: _Pass, row_index: int, marker: str, event_id: str):
        cfg = self.config
        tab = quote_sheet_name(cfg.sheet_name)
        if cfg.update_processed_status:
            pass_.write_backs.append({
                "range": f"{tab}!{cell_a1(cfg.processed_column_index, RowIndex(row_index))}",
                "values": [[marker]],
            })
        if cfg.write_event_ids:
            pass_.write_backs.append({
                "range": f"{tab}!{cell_a1(cfg.event_id_column_index, RowIndex(row_index))}",
                "values": [[event_id]],
            })

    def _flush_write_backs(self, pass_: _Pass):
        if not pass_.write_backs:
            return
        updates, pass_.write_backs = pass_.write_backs, []
        try:
            self.sheets.batch_update(self.config.spreadsheet_id, updates)
        except Exception as e:
            logger.warning("Sheet write-back of %d cells failed: %s", len(updates), e)

    # ── Tracking ──

    def _track(self, pass_: _Pass, row: SheetRow, event_id: str, status: TrackingStatus,
               operation_name: str) -> bool:
        record = TrackingRecord(
            event_id=event_id,
            status=status.value,
            row_index=row.row_index,
            title=row.event_name,
            date=row.event_date.isoformat() if row.event_date else "",
            location=row.location,
        )
        try:
            self.tracking.put(self.user_id, row.row_index, record)
            return True
        except (TrackingError, OSError) as e:
            self._consistency_error(pass_, row.row_index, event_id, operation_name, e)
            return False

    def _untrack(self, pass_: _Pass, row_index: int, event_id: str, operation_name: str) -> bool:
        try:
            self.tracking.delete(self.user_id, row_index)
            return True
        except (TrackingError, OSError) as e:
            self._consistency_error(pass_, row_index, event_id, operation_name, e)
            return False

    def _consistency_error(self, pass_: _Pass, row_index: int, event_id: str,
                           operation_name: str, cause: Exception):
        err = ConsistencyError(row_index, event_id, operation_name, cause)
        logger.error("CONSISTENCY: %s", err)
        pass_.consistency_errors.append(err.to_dict())

    # ── Row actions ──

    def _create(self, pass_: _Pass, row: SheetRow, link: Optional[str], cancelled: bool) -> str:
        payload = to_event_payload(row, link, self.config, cancelled=cancelled)
        event = self.calendar.insert_event(self.config.calendar_id, payload)
        event_id = event["id"]
        status = TrackingStatus.CANCELLED if cancelled else TrackingStatus.PROCESSED
        log_event(
            logger, "info", f"Created event for row {row.sheet_row}",
            event_id=event_id, summary=payload["summary"],
            status=payload["status"],
        )
        self._track(pass_, row, event_id, status, "create")
        self._queue_write_back(
            pass_, row.row_index,
            CANCELLED_MARKER if cancelled else self.config.processed_marker, event_id,
        )
        return event_id

    def _sync_tracked(self, pass_: _Pass, row: SheetRow, record: TrackingRecord,
                      link: Optional[str], cancelled: bool) -> str:
        """Bring a tracked event in line with its row. Returns 'updated', 'unchanged' or 'recreated'."""
        cfg = self.config
        desired = to_event_payload(row, link, cfg, cancelled=cancelled)
        existing = self.calendar.get_event(cfg.calendar_id, record.event_id)

        if existing is None:
            logger.info("Event %s for row %d no longer exists; creating a new one",
                        record.event_id, row.sheet_row)
            self._create(pass_, row, link, cancelled)
            return "recreated"

        changes = diff_event(existing, desired, cfg.timezone)
        log_event(
            logger, "info" if changes else "debug",
            f"Drift check row {row.sheet_row}: {', '.join(changes) or 'no changes'}",
            event_id=record.event_id, changes=changes,
        )

        if cancelled:
            status = TrackingStatus.CANCELLED
        elif changes:
            status = TrackingStatus.UPDATED
        elif record.status == TrackingStatus.UPDATED.value:
            status = TrackingStatus.UPDATED
        else:
            status = TrackingStatus.PROCESSED

        if changes:
            self.calendar.update_event(cfg.calendar_id, record.event_id, desired)
            self._track(pass_, row, record.event_id, status, "update")
            self._queue_write_back(
                pass_, row.row_index,
                CANCELLED_MARKER if cancelled else cfg.processed_marker, record.event_id,
            )
            return "updated"

        self._track(pass_, row, record.event_id, status, "verify")
        return "unchanged"

    def _apply(self, pass_: _Pass, row: Optional[SheetRow], row_index: int,
               verdict: Classification, record: Optional[TrackingRecord],
               link: Optional[str]) -> bool:
        """Carry out a classified row. Returns True when the calendar changed."""
        if verdict.is_skip:
            logger.info("Row %d skipped: %s", to_sheet_row(RowIndex(row_index)),
                        verdict.reason)
            pass_.bump("skipped")
            return False

        if verdict.disposition is Disposition.CREATE:
            self._create(pass_, row, link, cancelled=False)
            pass_.bump("created")
            return True

        cancelled = verdict.disposition is Disposition.CANCEL
        if record is None or not record.event_id:
            self._create(pass_, row, link, cancelled=cancelled)
            pass_.bump("cancelled" if cancelled else "created")
            return True

        outcome = self._sync_tracked(pass_, row, record, link, cancelled)
        if outcome == "unchanged":
            pass_.bump("unchanged")
            return False
        pass_.bump("cancelled" if cancelled else outcome)
        return True

    def _process_row(self, pass_: _Pass, rows: List[Optional[SheetRow]], row_index: int,
                     links: Dict[int, str], use_tracking: bool = True) -> bool:
        row = rows[row_index] if 0 <= row_index < len(rows) else None
        record = None
        with log_context(row=to_sheet_row(RowIndex(row_index))):
            try:
                if use_tracking:
                    record = self.tracking.get(self.user_id, row_index)
                verdict = classify(row, record)
                return self._apply(pass_, row, row_index, verdict, record, links.get(row_index))
            except Exception as e:
                logger.error("Row index %d failed: %s", row_index, e)
                pass_.row_error(row_index, e, record.event_id if record else "")
                return False

    # ── Incremental scan ──

    def _advance(self, pass_: _Pass, rows: List[Optional[SheetRow]], count: int) -> int:
        cursor = self.cursors.get_cursor(self.user_id)
        end = min(cursor + count, len(rows))
        links = self._coordination_links(rows[cursor:end])
        changed = 0
        for row_index in range(cursor, end):
            pass_.bump("processed")
            if self._process_row(pass_, rows, row_index, links):
                changed += 1
            self.cursors.set_cursor(self.user_id, row_index + 1)
        self._flush_write_backs(pass_)
        pass_.stats["cursor"] = end
        return changed

    @operation("manual_scan_next_row")
    def manual_scan_next_row(self, reset: bool = False) -> OperationResult:
        """Process the single row at the cursor, then move the cursor past it."""
        if reset:
            self.cursors.reset(self.user_id)
            logger.info("Cursor reset to %d for %s", CURSOR_FLOOR, self.user_id)

        rows = self._load_rows()
        cursor = self.cursors.get_cursor(self.user_id)
        if cursor >= len(rows):
            return OperationResult(False, NO_MORE_ROWS, stats={"cursor": cursor, "totalRows": len(rows)})

        pass_ = _Pass("processed", "created", "updated", "cancelled", "recreated",
                      "unchanged", "skipped", "errors")
        changed = self._advance(pass_, rows, 1)
        return pass_.result(
            not pass_.errors, f"Processed row {to_sheet_row(RowIndex(cursor))} ({changed} calendar change(s))", changed,
        )

    @operation("scheduled_incremental_scan")
    def scheduled_incremental_scan(self) -> OperationResult:
        """Process up to batch_size rows from the cursor."""
        rows = self._load_rows()
        cursor = self.cursors.get_cursor(self.user_id)
        if cursor >= len(rows):
            self.cursors.touch_scan_time(self.user_id)
            return OperationResult(False, NO_MORE_ROWS, stats={"cursor": cursor, "totalRows": len(rows)})

        pass_ = _Pass("processed", "created", "updated", "cancelled", "recreated",
                      "unchanged", "skipped", "errors")
        changed = self._advance(pass_, rows, self.config.batch_size)
        return pass_.result(
            not pass_.errors,
            f"Processed {pass_.stats['processed']} row(s), {changed} calendar change(s)",
            changed,
        )

    # ── Drift scan ──

    @operation("full_drift_scan")
    def full_drift_scan(self, scheduled: bool = False) -> OperationResult:
        """Compare every tracked event with its row and update the ones that drifted.

        The scheduled variant only looks at rows dated within the last
        scan_window_days or later.
        """
        rows = self._load_rows()
        tracked = {idx: rec for idx, rec in self.tracking.get_all(self.user_id).items()
                   if rec.event_id}
        candidates = sorted(tracked)

        if scheduled:
            cutoff = self._today() - timedelta(days=self.config.scan_window_days)
            candidates = [
                idx for idx in candidates
                if idx < len(rows) and rows[idx] is not None
                and rows[idx].event_date is not None and rows[idx].event_date >= cutoff
            ]

        pass_ = _Pass("total", "checked", "updated", "cancelled", "recreated",
                      "unchanged", "skipped", "errors")
        pass_.stats["total"] = len(candidates)
        changed = 0

        size = self.config.batch_size
        for start in range(0, len(candidates), size):
            batch = candidates[start:start + size]
            links = self._coordination_links(rows[idx] for idx in batch if idx < len(rows))
            for row_index in batch:
                row = rows[row_index] if row_index < len(rows) else None
                record = tracked[row_index]
                with log_context(row=to_sheet_row(RowIndex(row_index))):
                    try:
                        verdict = classify(row, record)
                        pass_.bump("checked")
                        if self._apply(pass_, row, row_index, verdict, record, links.get(row_index)):
                            changed += 1
                    except Exception as e:
                        logger.error("Drift check of row index %d failed: %s", row_index, e)
                        pass_.row_error(row_index, e, record.event_id)
            self._flush_write_backs(pass_)
            logger.info("Drift batch %d-%d done", start, start + len(batch) - 1)

        self.cursors.touch_scan_time(self.user_id)
        scope = "scheduled window" if scheduled else "all tracked rows"
        return pass_.result(
            not pass_.errors,
            f"Drift scan of {scope}: {pass_.stats['checked']} checked, {changed} changed",
            changed,
        )

    # ── Targeted create ──

    def _create_rows(self, pass_: _Pass, rows: List[Optional[SheetRow]],
                     indices: List[int]) -> int:
        changed = 0
        size = self.config.batch_size
        for start in range(0, len(indices), size):
            batch = indices[start:start + size]
            links = self._coordination_links(rows[idx] for idx in batch if 0 <= idx < len(rows))
            for row_index in batch:
                if self._process_row(pass_, rows, row_index, links, use_tracking=False):
                    changed += 1
            self._flush_write_backs(pass_)
        pass_.stats["processed"] = changed
        return changed

    @operation("reprocess_rows")
    def reprocess_rows(self, row_indices: List[int]) -> OperationResult:
        """Create a fresh event for each row, whatever the tracking says."""
        indices = [int(i) for i in row_indices]
        rows = self._load_rows()
        pass_ = _Pass("requested", "processed", "created", "cancelled", "skipped", "errors")
        pass_.stats["requested"] = len(indices)
        changed = self._create_rows(pass_, rows, indices)
        return pass_.result(
            not pass_.errors, f"Reprocessed {changed} of {len(indices)} row(s)", changed,
        )

    @operation("scan_month")
    def scan_month(self, month: int, year: int) -> OperationResult:
        """Create events for every non-excluded row dated in the given month."""
        _check_month(month, year)
        rows = self._load_rows()
        indices = []
        excluded = 0
        for row in rows:
            if row is None or row.event_date is None:
                continue
            if row.event_date.year != year or row.event_date.month != month:
                continue
            if is_excluded_type(row):
                excluded += 1
                continue
            indices.append(row.row_index)

        pass_ = _Pass("total", "processed", "created", "cancelled", "skipped", "excluded", "errors")
        pass_.stats["total"] = len(indices)
        pass_.stats["excluded"] = excluded
        changed = self._create_rows(pass_, rows, indices)
        return pass_.result(
            not pass_.errors, f"Scanned {month:02d}/{year}: {changed} event(s) created", changed,
        )

    # ── Deletion ──

    def _month_window(self, month: int, year: int):
        tz = pytz.timezone(self.config.timezone)
        start = tz.localize(datetime(year, month, 1))
        if month == 12:
            end = tz.localize(datetime(year + 1, 1, 1))
        else:
            end = tz.localize(datetime(year, month + 1, 1))
        return start, end

    def _clear_write_back(self, pass_: _Pass, row_index: int):
        self._queue_write_back(pass_, row_index, "", "")

    @operation("delete_month")
    def delete_month(self, month: int, year: int) -> OperationResult:
        """Delete every event of a month: tracked ones first, then untracked leftovers.

        Events already gone count as success, so a repeated call deletes nothing.
        Tracking for the deleted rows is removed in one batch afterwards.
        """
        _check_month(month, year)
        cfg = self.config
        pass_ = _Pass("trackedInMonth", "eventsDeleted", "untrackedDeleted",
                      "alreadyDeleted", "trackingRemoved", "errors")

        all_tracked = self.tracking.get_all(self.user_id)
        known_ids = {rec.event_id for rec in all_tracked.values() if rec.event_id}
        in_month = sorted(
            idx for idx, rec in all_tracked.items() if _in_month(rec.date, month, year)
        )
        pass_.stats["trackedInMonth"] = len(in_month)

        gone: List[int] = []
        for row_index in in_month:
            record = all_tracked[row_index]
            with log_context(row=to_sheet_row(RowIndex(row_index))):
                try:
                    if record.event_id:
                        if self.calendar.delete_event(cfg.calendar_id, record.event_id):
                            pass_.bump("eventsDeleted")
                        else:
                            pass_.bump("alreadyDeleted")
                    gone.append(row_index)
                    self._clear_write_back(pass_, row_index)
                except Exception as e:
                    logger.error("Deleting row index %d failed: %s", row_index, e)
                    pass_.row_error(row_index, e, record.event_id)

        if gone:
            removed = self.tracking.delete_batch(self.user_id, gone)
            pass_.stats["trackingRemoved"] = len(removed.written)
            for failure in removed.errors:
                row_index = failure["rowIndex"]
                self._consistency_error(
                    pass_, row_index, all_tracked[row_index].event_id, "delete",
                    TrackingError(failure["error"]),
                )
        self._flush_write_backs(pass_)

        start, end = self._month_window(month, year)
        try:
            events = self.calendar.list_all_events(cfg.calendar_id, start.isoformat(), end.isoformat())
        except Exception as e:
            logger.error("Listing calendar events for %02d/%d failed: %s", month, year, e)
            pass_.errors.append({"error": f"Could not list untracked events: {e}"})
            events = []

        for event in events:
            event_id = event.get("id")
            if not event_id or event_id in known_ids:
                continue
            try:
                if self.calendar.delete_event(cfg.calendar_id, event_id):
                    pass_.bump("eventsDeleted")
                    pass_.bump("untrackedDeleted")
                    logger.info("Deleted untracked event %s (%s)", event_id, event.get("summary", ""))
                else:
                    pass_.bump("alreadyDeleted")
            except Exception as e:
                logger.error("Deleting untracked event %s failed: %s", event_id, e)
                pass_.errors.append({"eventId": event_id, "error": str(e)})

        deleted = pass_.stats["eventsDeleted"]
        return pass_.result(
            not pass_.errors,
            f"Deleted {deleted} event(s) for {month:02d}/{year}",
            deleted,
        )

    @operation("delete_selected_rows")
    def delete_selected_rows(self, row_indices: List[int]) -> OperationResult:
        """Delete the tracked event of each given row. Untracked rows are left alone."""
        cfg = self.config
        indices = [int(i) for i in row_indices]
        pass_ = _Pass("requested", "deleted", "alreadyDeleted", "notTracked", "errors")
        pass_.stats["requested"] = len(indices)

        for row_index in indices:
            record = None
            try:
                record = self.tracking.get(self.user_id, row_index)
                if record is None or not record.event_id:
                    pass_.bump("notTracked")
                    continue
                if self.calendar.delete_event(cfg.calendar_id, record.event_id):
                    pass_.bump("deleted")
                else:
                    pass_.bump("alreadyDeleted")
                self._untrack(pass_, row_index, record.event_id, "delete")
                self._clear_write_back(pass_, row_index)
            except Exception as e:
                logger.error("Deleting row index %d failed: %s", row_index, e)
                pass_.row_error(row_index, e, record.event_id if record else "")
        self._flush_write_backs(pass_)

        return pass_.result(
            not pass_.errors,
            f"Deleted {pass_.stats['deleted']} of {len(indices)} requested row(s)",
            pass_.stats["deleted"],
        )

    # ── Read-only ──

    @operation("get_logs", validate=False, record=False)
    def get_logs(self, limit: int = DEFAULT_LOG_LIMIT) -> OperationResult:
        entries = self.log.recent(self.user_id, limit)
        return OperationResult(True, f"{len(entries)} log entries", data=entries)

    @operation("sheet_preview", record=False)
    def sheet_preview(self, limit: int = DEFAULT_LOG_LIMIT) -> OperationResult:
        """Parsed rows from the cursor floor on, with what a scan would do to each."""
        rows = self._load_rows()
        tracked = self.tracking.get_all(self.user_id)
        preview = []
        for row_index in range(CURSOR_FLOOR, min(len(rows), CURSOR_FLOOR + max(limit, 0))):
            row = rows[row_index]
            record = tracked.get(row_index)
            verdict = classify(row, record)
            preview.append({
                "rowIndex": row_index,
                "sheetRow": to_sheet_row(RowIndex(row_index)),
                "date": row.date_text if row is not None else "",
                "name": row.event_name if row is not None else "",
                "disposition": verdict.disposition.value,
                "reason": verdict.reason,
                "eventId": record.event_id if record else "",
            })
        return OperationResult(True, f"{len(preview)} row(s)", data=preview)


def _check_month(month: int, year: int):
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Month must be 1-12, got {month}")
    if int(year) < 2000:
        raise ValueError(f"Year must be 2000 or later, got {year}")


def _in_month(iso_date: str, month: int, year: int) -> bool:
    if not iso_date:
        return False
    try:
        parsed = date.fromisoformat(iso_date[:10])
    except ValueError:
        return False
    return parsed.year == year and parsed.month == month
