"""Application factory for the notifier service.

Centralizes app construction (lifespan, middleware, handlers, routers). The
notification dispatcher lives exactly as long as the app: it is built when
the server starts, stored on ``app.state``, and closed on shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI

from dnsnotify.adapters.push.base import AbstractPushClient
from dnsnotify.api.routes import health_router, notifications_router
from dnsnotify.core.config import PushoverSettings, settings
from dnsnotify.core.exception_handlers import setup_exception_handlers
from dnsnotify.core.logging import configure_logging
from dnsnotify.core.middleware import request_id_middleware
from dnsnotify.services.cleanup import run_periodic_cleanup
from dnsnotify.services.dispatcher import create_dispatcher

logger = logging.getLogger(__name__)


def create_app(
    *,
    pushover: PushoverSettings | None = None,
    push_client: AbstractPushClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        pushover: Pushover settings; defaults to the global settings.
        push_client: Push transport override; built from settings when omitted.

    Returns:
        Configured FastAPI app.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    pushover_cfg = pushover or settings.pushover

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.dispatcher = None
        cleanup_task: asyncio.Task | None = None

        if pushover_cfg.enabled:
            dispatcher = create_dispatcher(pushover_cfg, push_client)
            app.state.dispatcher = dispatcher
            cleanup_task = asyncio.create_task(
                run_periodic_cleanup(dispatcher, pushover_cfg.cleanup_interval_seconds)
            )
            logger.info(
                "notifier.started",
                extra={
                    "domain_interval_s": dispatcher.domain_interval_seconds,
                    "global_interval_s": dispatcher.global_interval_seconds,
                },
            )
        else:
            logger.info("notifier.disabled")

        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await cleanup_task
            if app.state.dispatcher is not None:
                await app.state.dispatcher.aclose()
                app.state.dispatcher = None
            logger.info("notifier.stopped")

    app = FastAPI(
        title="DNS Rule Notifier",
        description=(
            "Receives filtering results from a DNS server and sends rate-limited "
            "Pushover notifications for rule matches."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(notifications_router, prefix="/v1")
    app.include_router(health_router)

    return app
