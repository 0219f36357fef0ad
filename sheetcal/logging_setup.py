"""Logging configuration for the sheet -> calendar sync.

Console, file and JSONL handlers share one context: the user, operation and
sheet row being worked on. Code sets it with log_context() and every record
logged inside that block carries it, so call sites only pass what is
specific to the message (event id, changed fields, ...).
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

LOGGER_NAME = "sheetcal"

# Standard fields lifted from the context onto every record.
CONTEXT_FIELDS = ("user_id", "operation", "row")

CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(context)s%(message)s"

_context: ContextVar = ContextVar("sheetcal_log_context", default={})


@contextmanager
def log_context(**fields):
    """Add fields to the log context for the duration of the block."""
    merged = dict(_context.get())
    merged.update({k: v for k, v in fields.items() if v is not None})
    token = _context.set(merged)
    try:
        yield merged
    finally:
        _context.reset(token)


def current_context() -> dict:
    return dict(_context.get())


def _context_prefix(ctx: dict) -> str:
    parts = []
    if ctx.get("user_id"):
        parts.append(str(ctx["user_id"]))
    if ctx.get("operation"):
        parts.append(str(ctx["operation"]))
    if ctx.get("row") is not None:
        parts.append(f"row {ctx['row']}")
    return f"[{' '.join(parts)}] " if parts else ""


class ContextFilter(logging.Filter):
    """Stamps the current log context onto each record."""

    def filter(self, record):
        ctx = _context.get()
        for key in CONTEXT_FIELDS:
            if getattr(record, key, None) is None:
                setattr(record, key, ctx.get(key))
        record.context = _context_prefix({key: getattr(record, key) for key in CONTEXT_FIELDS})
        return True


class JsonlHandler(logging.Handler):
    """Writes structured JSON lines with the context as top-level fields."""

    def __init__(self, path: str):
        super().__init__()
        if os.path.dirname(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)
        self.path = path
        self.addFilter(ContextFilter())

    def emit(self, record):
        try:
            entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            for key in CONTEXT_FIELDS:
                value = getattr(record, key, None)
                if value is not None:
                    entry[key] = value
            if getattr(record, "event_data", None):
                entry["data"] = record.event_data
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str, ensure_ascii=False) + "\n")
        except Exception:
            self.handleError(record)


def setup_logging(log_dir: str = "./logs", level: str = "INFO") -> logging.Logger:
    """Configure the sheetcal logger with console, file, and JSONL handlers."""
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Prevent duplicate handlers on re-init
    if logger.handlers:
        return logger

    fmt = logging.Formatter(CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.addFilter(ContextFilter())
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = logging.FileHandler(os.path.join(log_dir, "sheetcal.log"), encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.addFilter(ContextFilter())
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    logger.addHandler(JsonlHandler(os.path.join(log_dir, "sheetcal.jsonl")))

    return logger


def log_event(logger: logging.Logger, level: str, message: str, **data):
    """Log a message with structured data. Context fields come from log_context()."""
    lvl = getattr(logging, level.upper(), logging.INFO)
    if not logger.isEnabledFor(lvl):
        return
    logger.log(lvl, message, extra={"event_data": data})
