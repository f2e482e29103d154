"""Rate limiter interfaces and shared types.

The dispatcher depends on these types rather than on the concrete limiters,
so the in-memory gates can later be replaced by a shared store without
touching the notification path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import NamedTuple

DOMAIN_BASE_INTERVAL_SECONDS = 5 * 60.0
GLOBAL_BASE_INTERVAL_SECONDS = 60.0


class BlockedBy(str, Enum):
    """Which gate denied an admission (NONE when admitted)."""

    NONE = "none"
    DOMAIN = "domain"
    GLOBAL = "global"


class Admission(NamedTuple):
    """Outcome of a two-tier admission check.

    Unpacks like a plain tuple: ``admitted, blocked_by = dispatcher.should_notify(d)``.
    """

    admitted: bool
    blocked_by: BlockedBy


def compute_interval(rate: int, base_seconds: float) -> float:
    """Return the minimum spacing between admissions for a rate.

    Args:
        rate: Allowed admissions per base period.
        base_seconds: Length of the base period in seconds.

    Returns:
        ``base_seconds / rate`` when rate > 1, otherwise ``base_seconds``.
        Rates of 0 and 1 (and negative rates) are therefore equivalent.
    """

    if rate > 1:
        return base_seconds / rate
    return base_seconds


class AbstractIntervalLimiter(ABC):
    """Minimum-interval admission gate."""

    @property
    @abstractmethod
    def interval_seconds(self) -> float:
        """Minimum number of seconds between two admissions of the same scope."""
        raise NotImplementedError
