"""Periodic pruning of per-domain rate limit state."""

from __future__ import annotations

import asyncio
import logging

from dnsnotify.services.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


async def run_periodic_cleanup(
    dispatcher: NotificationDispatcher,
    interval_seconds: float,
) -> None:
    """Call ``dispatcher.cleanup()`` every ``interval_seconds`` until cancelled."""

    logger.info("notification.cleanup_started", extra={"interval_s": interval_seconds})
    try:
        while True:
            await asyncio.sleep(interval_seconds)
            dispatcher.cleanup()
    finally:
        logger.info("notification.cleanup_stopped")
