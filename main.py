"""Sheet Calendar Sync - Main CLI entry point.

Cron examples:
    python main.py --scheduled-incremental        # every few minutes
    python main.py --scheduled-drift              # every 15 minutes

Manual commands act on one configured user (--user, or the only one):
    python main.py --scan-next-row [--reset]
    python main.py --delete-month --month 3 --year 2024
"""

import argparse
import json
import sys

from sheetcal.config import Config
from sheetcal.logging_setup import setup_logging
from sheetcal.runner import (
    release_all_locks,
    run_for_user,
    run_health_check,
    run_scheduled_drift,
    run_scheduled_incremental,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="Sheet Calendar Sync",
        description="Mirrors spreadsheet event rows into Google Calendar.",
    )
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--user", default=None, help="User id from config (manual commands)")

    cmds = parser.add_mutually_exclusive_group(required=True)
    cmds.add_argument("--scan-next-row", action="store_true", help="Process the row at the cursor")
    cmds.add_argument("--drift-scan", action="store_true", help="Drift-check every tracked row")
    cmds.add_argument("--scheduled-incremental", action="store_true",
                      help="One incremental batch for all enabled users")
    cmds.add_argument("--scheduled-drift", action="store_true",
                      help="Windowed drift scan for all enabled users")
    cmds.add_argument("--reprocess-rows", type=int, nargs="+", metavar="ROW_INDEX",
                      help="Create fresh events for these row indices")
    cmds.add_argument("--scan-month", action="store_true", help="Create events for a month")
    cmds.add_argument("--delete-month", action="store_true", help="Delete every event of a month")
    cmds.add_argument("--delete-rows", type=int, nargs="+", metavar="ROW_INDEX",
                      help="Delete the events of these row indices")
    cmds.add_argument("--logs", action="store_true", help="Show recent processing log entries")
    cmds.add_argument("--sheet-preview", action="store_true", help="Show parsed rows and dispositions")
    cmds.add_argument("--health-check", action="store_true", help="Verify all connections")
    cmds.add_argument("--force-lock-reset", action="store_true", help="Clear stuck scheduler locks")

    parser.add_argument("--reset", action="store_true", help="Rewind the cursor (--scan-next-row)")
    parser.add_argument("--month", type=int, default=None, help="Month 1-12")
    parser.add_argument("--year", type=int, default=None, help="Four-digit year")
    parser.add_argument("--limit", type=int, default=20, help="Entries for --logs / --sheet-preview")

    return parser


def _print(payload):
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def main():
    parser = build_parser()
    args = parser.parse_args()

    if (args.scan_month or args.delete_month) and (args.month is None or args.year is None):
        parser.error("--scan-month and --delete-month require --month and --year")

    # Load config
    try:
        cfg = Config.load(args.config)
    except Exception as e:
        print(f"ERROR loading config: {e}")
        sys.exit(1)

    # Setup logging and dirs
    cfg.ensure_state_dirs()
    cfg.materialize_secrets_from_env()  # Write secrets from env vars (CI/cloud)
    setup_logging(cfg.app.log_dir, cfg.app.log_level)

    if args.health_check:
        ok = run_health_check(cfg, args.user)
        sys.exit(0 if ok else 1)

    elif args.force_lock_reset:
        release_all_locks(cfg)
        print("Scheduler locks cleared.")
        return

    elif args.scheduled_incremental:
        results = run_scheduled_incremental(cfg)
        _print(results)
        return

    elif args.scheduled_drift:
        results = run_scheduled_drift(cfg)
        _print(results)
        return

    if args.scan_next_row:
        action = lambda r: r.manual_scan_next_row(reset=args.reset)
    elif args.drift_scan:
        action = lambda r: r.full_drift_scan(scheduled=False)
    elif args.reprocess_rows:
        action = lambda r: r.reprocess_rows(args.reprocess_rows)
    elif args.scan_month:
        action = lambda r: r.scan_month(args.month, args.year)
    elif args.delete_month:
        action = lambda r: r.delete_month(args.month, args.year)
    elif args.delete_rows:
        action = lambda r: r.delete_selected_rows(args.delete_rows)
    elif args.logs:
        action = lambda r: r.get_logs(args.limit)
    else:
        action = lambda r: r.sheet_preview(args.limit)

    result = run_for_user(cfg, args.user, action)
    _print(result.to_dict())
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
