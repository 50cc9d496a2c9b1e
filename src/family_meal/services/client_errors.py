"""Diagnostic error reports sent by browsers."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from family_meal.domain.errors import RateLimited

MAX_MESSAGE_LENGTH = 2000
MAX_STACK_LENGTH = 8000

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    """Admission control keyed by client."""

    def allow(self, key: str) -> bool:
        """Record a hit and return True while the key is under its limit."""


@dataclass
class _Window:
    count: int
    expires_at: datetime


@dataclass
class FixedWindowRateLimiter(RateLimiter):
    """In-memory fixed-window counter per key."""

    max_requests: int
    window_seconds: int
    _windows: dict[str, _Window] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def allow(self, key: str) -> bool:
        now = datetime.now(tz=UTC)
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.expires_at:
                self._prune(now)
                self._windows[key] = _Window(
                    count=1,
                    expires_at=now + timedelta(seconds=self.window_seconds),
                )
                return True
            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def _prune(self, now: datetime) -> None:
        expired = [
            key for key, window in self._windows.items() if now >= window.expires_at
        ]
        for key in expired:
            self._windows.pop(key, None)


@dataclass(frozen=True)
class ClientErrorReport:
    """An error captured by the web client."""

    type: str
    message: str
    stack: str | None = None
    source: str | None = None
    lineno: int | None = None
    colno: int | None = None
    url: str | None = None
    user_agent: str | None = None
    timestamp: str | None = None


@dataclass
class ClientErrorService:
    limiter: RateLimiter

    def report(self, client_key: str, report: ClientErrorReport) -> None:
        """Log a client report unless the caller exceeded the rate limit."""
        if not self.limiter.allow(client_key):
            logger.warning(
                "Client error report rate limited", extra={"client": client_key}
            )
            raise RateLimited()
        logger.error(
            "Client error (%s): %s",
            report.type,
            report.message[:MAX_MESSAGE_LENGTH],
            extra={
                "client": client_key,
                "source": report.source,
                "error_line": report.lineno,
                "error_column": report.colno,
                "url": report.url,
                "user_agent": report.user_agent,
                "reported_at": report.timestamp,
                "stack": (report.stack or "")[:MAX_STACK_LENGTH] or None,
            },
        )
