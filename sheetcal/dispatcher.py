"""Rate-limited dispatcher for Google API calls.

Every Sheets and Calendar request goes through a RateLimiter: a sliding
window caps calls per period, a minimum interval spaces consecutive calls,
and transient failures (429, 5xx, rate-limit 403s, timeouts) are retried
with exponential backoff. Anything else propagates on the first attempt.
"""

import logging
import time
from collections import deque
from typing import Callable, Optional

import gspread
from googleapiclient.errors import HttpError

from .config import RateLimitConfig

logger = logging.getLogger("sheetcal.dispatcher")

_RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")


def error_status(exc: BaseException) -> Optional[int]:
    """HTTP status of a Google client error, or None if it has none."""
    if isinstance(exc, HttpError):
        try:
            return int(exc.resp.status)
        except (AttributeError, TypeError, ValueError):
            return None
    if isinstance(exc, gspread.exceptions.APIError):
        response = getattr(exc, "response", None)
        code = getattr(response, "status_code", None)
        if code is None:
            code = getattr(exc, "code", None)
        try:
            return int(code) if code is not None else None
        except (TypeError, ValueError):
            return None
    return None


def is_not_found(exc: BaseException) -> bool:
    return error_status(exc) in (404, 410)


def is_transient(exc: BaseException) -> bool:
    """True for errors worth retrying: throttling, server faults, timeouts."""
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    status = error_status(exc)
    if status is None:
        return False
    if status == 429 or status >= 500:
        return True
    if status == 403:
        text = str(exc)
        content = getattr(exc, "content", b"")
        if isinstance(content, bytes):
            text += content.decode("utf-8", "replace")
        return any(reason in text for reason in _RATE_LIMIT_REASONS)
    return False


class RateLimiter:
    """Sliding-window limiter with retry.

    call() is synchronous: it waits for a free slot, runs the function and
    returns its result, which is the blocking form of enqueue-and-await.
    """

    def __init__(self, name: str, max_calls: int, period: float = 60.0,
                 min_interval: float = 0.0, max_retries: int = 5,
                 base_backoff: float = 2.0,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.name = name
        self.max_calls = max_calls
        self.period = period
        self.min_interval = min_interval
        self.max_retries = max_retries
        self.base_backoff = base_backoff
        self._clock = clock
        self._sleep = sleep
        self._calls = deque()
        self._last_call: Optional[float] = None

    def _acquire(self):
        """Block until one more call fits in the window, then record it."""
        while True:
            now = self._clock()
            while self._calls and now - self._calls[0] >= self.period:
                self._calls.popleft()

            wait = 0.0
            if len(self._calls) >= self.max_calls:
                wait = self.period - (now - self._calls[0])
            if self._last_call is not None and self.min_interval > 0:
                wait = max(wait, self.min_interval - (now - self._last_call))

            if wait <= 0:
                self._calls.append(now)
                self._last_call = now
                return
            logger.debug("%s limiter waiting %.2fs", self.name, wait)
            self._sleep(wait)

    def call(self, func, *args, **kwargs):
        """Run func under the limit, retrying transient failures."""
        for attempt in range(self.max_retries):
            self._acquire()
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not is_transient(e) or attempt == self.max_retries - 1:
                    raise
                wait = self.base_backoff * (2 ** attempt)
                logger.warning(
                    "%s call failed (%s). Waiting %.1fs before retry %d/%d...",
                    self.name, error_status(e) or type(e).__name__,
                    wait, attempt + 1, self.max_retries,
                )
                self._sleep(wait)
        raise RuntimeError("Max retries exceeded for API call.")


def sheets_limiter(limits: RateLimitConfig, **kwargs) -> RateLimiter:
    return RateLimiter(
        "sheets", limits.sheets_per_minute, 60.0, limits.min_call_interval,
        limits.max_retries, limits.base_backoff, **kwargs,
    )


def calendar_limiter(limits: RateLimitConfig, **kwargs) -> RateLimiter:
    return RateLimiter(
        "calendar", limits.calendar_per_minute, 60.0, limits.min_call_interval,
        limits.max_retries, limits.base_backoff, **kwargs,
    )
