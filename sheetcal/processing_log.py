"""Processing log - one JSON line per reconciliation action, per user."""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .tracking import safe_name

logger = logging.getLogger("sheetcal.processing_log")

DEFAULT_LOG_LIMIT = 20


class ProcessingLog:
    """Append-only action log stored at <state_dir>/logs/<user>.jsonl."""

    def __init__(self, state_dir: str, now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.root = os.path.join(state_dir, "logs")
        self._now = now

    def _path(self, user_id: str) -> str:
        return os.path.join(self.root, f"{safe_name(user_id)}.jsonl")

    def append(self, user_id: str, operation: str, rows_affected: int = 0,
               errors: Optional[list] = None, stats: Optional[dict] = None) -> dict:
        entry = {
            "timestamp": self._now().isoformat(),
            "user_id": user_id,
            "operation": operation,
            "rows_affected": rows_affected,
            "errors": list(errors or []),
            "stats": dict(stats or {}),
        }
        path = self._path(user_id)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str, ensure_ascii=False) + "\n")
        except OSError as e:
            # Never fails the action being recorded.
            logger.error("Could not write processing log for %s: %s", user_id, e)
        return entry

    def recent(self, user_id: str, limit: int = DEFAULT_LOG_LIMIT) -> List[dict]:
        """Newest-first entries, at most limit of them."""
        path = self._path(user_id)
        if limit <= 0 or not os.path.exists(path):
            return []
        entries = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed processing log line in %s", path)
        entries.reverse()
        return entries[:limit]
