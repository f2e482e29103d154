"""Rate limiting adapters.

Two independent minimum-interval gates decide whether a rule match may turn
into a push notification: one per domain, one shared across all domains.
"""

from dnsnotify.adapters.rate_limit.base import Admission, BlockedBy, compute_interval
from dnsnotify.adapters.rate_limit.in_memory import DomainRateLimiter, GlobalRateLimiter

__all__ = [
    "Admission",
    "BlockedBy",
    "DomainRateLimiter",
    "GlobalRateLimiter",
    "compute_interval",
]
