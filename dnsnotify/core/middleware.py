"""HTTP middleware for request correlation and rule-match outcome reporting.

Every response carries the request id (taken from the caller or generated)
and the handling time. The id lives in a context variable while the request
runs; delivery tasks scheduled during the request copy that context, so the
Pushover outcome logged seconds later still carries the id of the rule
match that caused it.

The rule-match route records the queried host and what happened to it on
``request.state``. For those requests the middleware echoes the outcome in
``X-Notification-Outcome`` and writes one summary log line, which lets the
resolver relay tell a throttled match from a sent one without scraping logs.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from dnsnotify.core.config import settings
from dnsnotify.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

NOTIFICATION_OUTCOME_HEADER = "X-Notification-Outcome"

# Outcome recorded when the route saw a host but never reached a decision
OUTCOME_FAILED = "failed"


async def request_id_middleware(request: Request, call_next) -> Response:
    """Correlate the request and report the rule-match outcome.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` (name
            configurable through ``LOG_REQUEST_ID_HEADER``) and
            ``X-Request-Duration-ms`` set, plus ``X-Notification-Outcome``
            for rule-match requests.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")

    host = getattr(request.state, "matched_host", None)
    if host is not None:
        outcome = getattr(request.state, "notification_outcome", OUTCOME_FAILED)
        response.headers[NOTIFICATION_OUTCOME_HEADER] = outcome
        logger.info(
            "rule_match.handled",
            extra={
                "request_id": request_id,
                "domain": host,
                "outcome": outcome,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

    return response
