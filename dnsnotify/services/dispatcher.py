"""Rate-limited, fire-and-forget push notification dispatcher.

The dispatcher sits on the DNS resolution path, so two rules shape it:
- Admission (``should_notify``) never does I/O. It takes two short locks,
  one after the other: the global limiter's lock is always released before
  the domain limiter's lock is taken, and no code path holds both.
- Delivery (``send_async``) only schedules a background task. Failures are
  logged and dropped there; nothing is retried and nothing reaches the caller.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from dnsnotify.adapters.push.base import AbstractPushClient
from dnsnotify.adapters.push.factory import create_push_client
from dnsnotify.adapters.rate_limit.base import Admission, BlockedBy
from dnsnotify.adapters.rate_limit.in_memory import DomainRateLimiter, GlobalRateLimiter
from dnsnotify.core.config import PushoverSettings
from dnsnotify.core.errors import NotificationDeliveryError
from dnsnotify.schemas.events import FilterReason, NotificationEvent

logger = logging.getLogger(__name__)

_TITLE_SUFFIXES: dict[FilterReason, str] = {
    FilterReason.FILTERED_BLOCK_LIST: "Domain Blocked",
    FilterReason.NOT_FILTERED_ALLOW_LIST: "Domain Allowed",
    FilterReason.REWRITTEN: "Domain Rewritten",
    FilterReason.REWRITTEN_RULE: "Domain Rewritten",
}
_DEFAULT_TITLE_SUFFIX = "Custom Rule Match"

_Pending = asyncio.Future | concurrent.futures.Future


@dataclass(frozen=True)
class DispatcherConfig:
    """Immutable notifier configuration.

    Values are passed through as given; a priority outside -2..2 or an empty
    token is the push service's problem, not ours.
    """

    app_token: str
    user_key: str
    sound: str = ""
    priority: int = 0
    rate_limit_per_5min: int = 1
    global_rate_limit_per_min: int = 1
    title_prefix: str = "AdGuard"

    @classmethod
    def from_settings(cls, pushover: PushoverSettings) -> "DispatcherConfig":
        return cls(
            app_token=pushover.app_token,
            user_key=pushover.user_key,
            sound=pushover.sound,
            priority=pushover.priority,
            rate_limit_per_5min=pushover.rate_limit_per_5min,
            global_rate_limit_per_min=pushover.global_rate_limit_per_min,
            title_prefix=pushover.title_prefix,
        )


def format_rfc3339(timestamp: datetime) -> str:
    """Format a timestamp as RFC 3339 with second precision.

    Naive timestamps are taken to be UTC; UTC is written with a ``Z`` suffix.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    text = timestamp.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


class NotificationDispatcher:
    """Decides whether a rule match may be pushed, and pushes it in the background.

    One instance is built at server start (see ``create_dispatcher``) and
    shared by every request handler until shutdown.
    """

    def __init__(
        self,
        config: DispatcherConfig,
        client: AbstractPushClient,
        *,
        clock: Callable[[], float] = time.monotonic,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Frozen notifier configuration.
            client: Push transport, shared by all delivery tasks.
            clock: Time source for both limiters.
            loop: Event loop that receives deliveries scheduled from threads
                without a running loop. Defaults to the running loop, if any.
        """
        self._config = config
        self._client = client
        self._global_limiter = GlobalRateLimiter(config.global_rate_limit_per_min, clock=clock)
        self._domain_limiter = DomainRateLimiter(config.rate_limit_per_5min, clock=clock)

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop

        self._pending: set[_Pending] = set()
        self._pending_lock = threading.Lock()

    @property
    def config(self) -> DispatcherConfig:
        return self._config

    @property
    def domain_interval_seconds(self) -> float:
        return self._domain_limiter.interval_seconds

    @property
    def global_interval_seconds(self) -> float:
        return self._global_limiter.interval_seconds

    @property
    def tracked_domains(self) -> int:
        return self._domain_limiter.tracked_domains

    @property
    def in_flight(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def should_notify(self, domain: str) -> Admission:
        """Run both admission gates for a domain.

        The global gate goes first. When it denies, the domain gate is not
        consulted at all, so a domain that keeps matching while the global
        gate is closed does not move its own window forward.

        Returns:
            Admission(admitted, blocked_by).
        """
        if not self._global_limiter.should_notify():
            return Admission(False, BlockedBy.GLOBAL)

        if not self._domain_limiter.should_notify(domain):
            return Admission(False, BlockedBy.DOMAIN)

        return Admission(True, BlockedBy.NONE)

    def send_async(self, event: NotificationEvent) -> None:
        """Schedule delivery of an event and return immediately.

        From a coroutine the delivery becomes a task on the running loop and
        inherits the caller's context. From a plain thread it is handed to the
        dispatcher's loop while that loop is running. Otherwise the event is
        dropped with a warning, since a stopped loop would never resolve the
        submitted future.
        """
        coro = self._deliver(event)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        pending: _Pending
        if running is not None:
            pending = running.create_task(coro)
        elif self._loop is not None and self._loop.is_running():
            pending = asyncio.run_coroutine_threadsafe(coro, self._loop)
        else:
            coro.close()
            logger.warning(
                "notification.dropped",
                extra={"domain": event.domain, "reason": "no_event_loop"},
            )
            return

        with self._pending_lock:
            self._pending.add(pending)
        pending.add_done_callback(self._forget)

    def _forget(self, pending: _Pending) -> None:
        with self._pending_lock:
            self._pending.discard(pending)

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self.send(event)
        except NotificationDeliveryError as exc:
            logger.error(
                "notification.failed",
                extra={
                    "domain": event.domain,
                    "error_code": exc.code,
                    "error": exc.message,
                    "http_status": (exc.details or {}).get("http_status"),
                },
            )
        except Exception:
            # Nobody awaits this task; log instead of losing the traceback.
            logger.exception(
                "notification.failed",
                extra={"domain": event.domain, "error_code": "unexpected_error"},
            )

    async def send(self, event: NotificationEvent) -> None:
        """Deliver one event synchronously with respect to the caller.

        Raises:
            NotificationDeliveryError: If the push service call fails.
        """
        await self._client.push(self.build_form(event))

        logger.debug(
            "notification.sent",
            extra={"domain": event.domain, "reason": event.reason.value},
        )

    def build_form(self, event: NotificationEvent) -> dict[str, str]:
        form = {
            "token": self._config.app_token,
            "user": self._config.user_key,
            "title": self.format_title(event.reason),
            "message": self.format_message(event),
        }
        if self._config.priority != 0:
            form["priority"] = str(self._config.priority)
        if self._config.sound:
            form["sound"] = self._config.sound
        return form

    def format_title(self, reason: FilterReason) -> str:
        suffix = _TITLE_SUFFIXES.get(reason, _DEFAULT_TITLE_SUFFIX)
        return f"{self._config.title_prefix}: {suffix}"

    def format_message(self, event: NotificationEvent) -> str:
        client_info = event.client_ip
        if event.client_id:
            client_info = f"{event.client_id} ({event.client_ip})"

        return (
            f"Domain: {event.domain}\n"
            f"Client: {client_info}\n"
            f"Time: {format_rfc3339(event.timestamp)}"
        )

    def cleanup(self) -> int:
        """Prune stale per-domain entries. Safe to call at any time.

        Returns:
            Number of removed entries.
        """
        removed = self._domain_limiter.cleanup()
        logger.debug(
            "notification.cleanup",
            extra={"removed": removed, "tracked_domains": self._domain_limiter.tracked_domains},
        )
        return removed

    async def aclose(self) -> None:
        """Cancel unfinished deliveries and close the push transport."""
        with self._pending_lock:
            pending = list(self._pending)

        for item in pending:
            item.cancel()

        tasks = [item for item in pending if isinstance(item, asyncio.Future)]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await self._client.aclose()


def create_dispatcher(
    pushover: PushoverSettings,
    client: AbstractPushClient | None = None,
) -> NotificationDispatcher:
    """Build the dispatcher from settings.

    Args:
        pushover: Pushover settings group.
        client: Optional push client; built from settings when omitted.
    """
    return NotificationDispatcher(
        DispatcherConfig.from_settings(pushover),
        client or create_push_client(pushover),
    )
