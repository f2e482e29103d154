"""In-memory minimum-interval rate limiters.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: each limiter guards its own state with a single lock. The
  check and the update happen inside one critical section, so two callers
  can never both be admitted for the same window.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from dnsnotify.adapters.rate_limit.base import (
    DOMAIN_BASE_INTERVAL_SECONDS,
    GLOBAL_BASE_INTERVAL_SECONDS,
    AbstractIntervalLimiter,
    compute_interval,
)


class DomainRateLimiter(AbstractIntervalLimiter):
    """Per-domain gate: at most one admission per domain per interval.

    A domain has no entry until its first admission. Entries are only
    removed by ``cleanup()``, which bounds memory when many distinct domains
    trigger once and never again.
    """

    def __init__(
        self,
        per_five_minutes: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the per-domain limiter.

        Args:
            per_five_minutes: Notifications allowed per domain per 5 minutes.
            clock: Time source returning seconds; must be monotonic-ish.
        """
        self._interval = compute_interval(per_five_minutes, DOMAIN_BASE_INTERVAL_SECONDS)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_admit: dict[str, float] = {}

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def tracked_domains(self) -> int:
        with self._lock:
            return len(self._last_admit)

    def should_notify(self, domain: str) -> bool:
        """Admit the domain if its interval has elapsed, recording the admission.

        A denial leaves the stored timestamp untouched.
        """
        with self._lock:
            now = self._clock()
            last = self._last_admit.get(domain)
            if last is not None and now - last < self._interval:
                return False

            self._last_admit[domain] = now
            return True

    def cleanup(self) -> int:
        """Drop entries last admitted more than two intervals ago.

        Returns:
            Number of removed entries.
        """
        with self._lock:
            cutoff = self._clock() - 2 * self._interval
            stale = [d for d, last in self._last_admit.items() if last < cutoff]
            for domain in stale:
                del self._last_admit[domain]
            return len(stale)


class GlobalRateLimiter(AbstractIntervalLimiter):
    """Process-wide gate shared by every domain."""

    def __init__(
        self,
        per_minute: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = compute_interval(per_minute, GLOBAL_BASE_INTERVAL_SECONDS)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_admit: float | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def should_notify(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._last_admit is not None and now - self._last_admit < self._interval:
                return False

            self._last_admit = now
            return True
