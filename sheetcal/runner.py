"""Runner - wires config, clients and stores into Reconcilers and runs them.

Manual commands act on one user. Scheduled commands loop over every enabled
user; one user's failure is logged and recorded without stopping the rest.
Scheduled runs also hold a process lock so two cron invocations of the
same command never overlap.
"""

import json
import logging
import os
import platform
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .calendar_client import CalendarClient
from .config import Config, SyncConfig
from .dispatcher import calendar_limiter, sheets_limiter
from .logging_setup import log_context, log_event
from .processing_log import ProcessingLog
from .reconciler import OperationResult, Reconciler
from .sheets import SheetsClient
from .tracking import CursorStore, TrackingStore

logger = logging.getLogger("sheetcal.runner")


# ── Process Lock ──

LOCK_TIMEOUT_SECONDS = 600  # 10 minutes
INCREMENTAL_LOCK = "incremental"
DRIFT_LOCK = "drift"


def _lock_path(cfg: Config, name: str) -> str:
    return os.path.join(cfg.app.state_dir, f".{name}.lock")


def acquire_lock(cfg: Config, name: str) -> bool:
    """Acquire a named process lock. Returns True if acquired.

    A held lock younger than LOCK_TIMEOUT_SECONDS blocks; --force-lock-reset
    clears it through release_all_locks().
    """
    path = _lock_path(cfg, name)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    if os.path.exists(path):
        try:
            with open(path, "r") as f:
                lock_data = json.load(f)
            lock_time = datetime.fromisoformat(lock_data["timestamp"])
            age = (datetime.now(timezone.utc) - lock_time).total_seconds()

            if age < LOCK_TIMEOUT_SECONDS:
                logger.error(
                    "Lock '%s' held by PID %s since %s (%.0fs ago). "
                    "Use --force-lock-reset to override.",
                    name, lock_data.get("pid"), lock_data.get("timestamp"), age,
                )
                return False
            logger.warning("Stale lock '%s' detected (%.0fs old). Overriding.", name, age)
        except (json.JSONDecodeError, KeyError, ValueError):
            logger.warning("Corrupt lock file '%s'. Overriding.", name)

    lock_data = {
        "pid": os.getpid(),
        "hostname": platform.node(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    with open(path, "w") as f:
        json.dump(lock_data, f)
    return True


def release_lock(cfg: Config, name: str):
    path = _lock_path(cfg, name)
    if os.path.exists(path):
        os.remove(path)


def release_all_locks(cfg: Config):
    for name in (INCREMENTAL_LOCK, DRIFT_LOCK):
        release_lock(cfg, name)


# ── Wiring ──

@dataclass
class Services:
    """Process-wide clients and stores. The limiters are shared by all users."""
    sheets: SheetsClient
    calendar: CalendarClient
    tracking: TrackingStore
    cursors: CursorStore
    log: ProcessingLog


def build_services(cfg: Config) -> Services:
    creds = cfg.google.credentials_json_path
    return Services(
        sheets=SheetsClient(creds, sheets_limiter(cfg.rate_limits)),
        calendar=CalendarClient(creds, calendar_limiter(cfg.rate_limits)),
        tracking=TrackingStore(cfg.app.state_dir),
        cursors=CursorStore(cfg.app.state_dir),
        log=ProcessingLog(cfg.app.state_dir),
    )


def build_reconciler(sync: SyncConfig, services: Services) -> Reconciler:
    return Reconciler(
        sync,
        sheets=services.sheets,
        calendar=services.calendar,
        tracking=services.tracking,
        cursors=services.cursors,
        log=services.log,
    )


def run_for_user(cfg: Config, user_id: Optional[str],
                 action: Callable[[Reconciler], OperationResult],
                 services: Optional[Services] = None) -> OperationResult:
    """Run one operation for one user. Config lookup errors become a failed result."""
    try:
        sync = cfg.get_user(user_id)
    except Exception as e:
        logger.error("Cannot select user: %s", e)
        return OperationResult(False, str(e))
    reconciler = build_reconciler(sync, services or build_services(cfg))
    return action(reconciler)


# ── Scheduled entry points ──

def _run_scheduled(cfg: Config, lock_name: str, label: str,
                   action: Callable[[Reconciler], OperationResult],
                   services: Optional[Services] = None) -> Dict[str, dict]:
    if not acquire_lock(cfg, lock_name):
        return {}

    results: Dict[str, dict] = {}
    try:
        services = services or build_services(cfg)
        users = cfg.enabled_users()
        skipped = [u for u in cfg.users if not cfg.users[u].enabled]
        if skipped:
            logger.info("%s: skipping disabled users %s", label, ", ".join(skipped))
        logger.info("%s: %d enabled user(s)", label, len(users))

        for sync in users:
            with log_context(user_id=sync.user_id):
                try:
                    result = action(build_reconciler(sync, services))
                except Exception as e:
                    logger.exception("%s failed", label)
                    result = OperationResult(False, f"{label} failed: {e}")
            results[sync.user_id] = result.to_dict()
    finally:
        release_lock(cfg, lock_name)

    ok = sum(1 for r in results.values() if r["success"])
    log_event(logger, "info", f"{label} complete: {ok}/{len(results)} succeeded",
              users=list(results))
    return results


def run_scheduled_incremental(cfg: Config, services: Optional[Services] = None) -> Dict[str, dict]:
    """One incremental batch for every enabled user."""
    return _run_scheduled(
        cfg, INCREMENTAL_LOCK, "Scheduled incremental scan",
        lambda r: r.scheduled_incremental_scan(), services,
    )


def run_scheduled_drift(cfg: Config, services: Optional[Services] = None) -> Dict[str, dict]:
    """Windowed drift scan for every enabled user."""
    return _run_scheduled(
        cfg, DRIFT_LOCK, "Scheduled drift scan",
        lambda r: r.full_drift_scan(scheduled=True), services,
    )


# ── Health check ──

def run_health_check(cfg: Config, user_id: Optional[str] = None,
                     services: Optional[Services] = None) -> bool:
    """Verify sheet and calendar access for one user or all of them."""
    print("=== Sheet Calendar Sync Health Check ===\n")
    services = services or build_services(cfg)
    users: List[SyncConfig] = [cfg.get_user(user_id)] if user_id else list(cfg.users.values())
    all_ok = True

    for sync in users:
        print(f"[{sync.user_id}]{'' if sync.enabled else ' (disabled)'}")
        try:
            sync.validate()
        except Exception as e:
            print(f"    FAIL: {e}")
            all_ok = False
            continue

        if services.sheets.verify_connection(sync.spreadsheet_id, sync.sheet_name):
            print(f"    OK: Sheet tab '{sync.sheet_name}' accessible.")
        else:
            print("    FAIL: Cannot access sheet.")
            all_ok = False

        if services.calendar.verify_connection(sync.calendar_id):
            print("    OK: Calendar accessible.")
        else:
            print("    FAIL: Cannot access calendar.")
            all_ok = False

    print(f"\n{'All checks passed.' if all_ok else 'Some checks FAILED.'}")
    return all_ok
