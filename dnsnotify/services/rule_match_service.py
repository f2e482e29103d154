"""Turns filtering results into push notifications.

This is the producer side of the notifier: the resolver reports a
filtering result, and this module decides whether it is worth an alert.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from dnsnotify.adapters.rate_limit.base import Admission
from dnsnotify.schemas.events import NotificationEvent
from dnsnotify.schemas.rule_match import RuleMatchRequest
from dnsnotify.services.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


def process_rule_match(
    dispatcher: NotificationDispatcher,
    match: RuleMatchRequest | None,
    *,
    now: datetime | None = None,
) -> Admission | None:
    """Check rate limits for a rule match and schedule its notification.

    Only the first matched rule ends up in the notification, even when
    several rules matched the same query.

    Args:
        dispatcher: Shared notification dispatcher.
        match: Filtering result for one query; ``None`` means no result.
        now: Event timestamp override, defaults to the current UTC time.

    Returns:
        The admission decision, or ``None`` when there was nothing to
        evaluate (no result or no matched rules).
    """
    if match is None or not match.rules:
        return None

    rule = match.rules[0]

    admission = dispatcher.should_notify(match.host)
    if not admission.admitted:
        logger.debug(
            "notification.rate_limited",
            extra={"domain": match.host, "limit_type": admission.blocked_by.value},
        )
        return admission

    event = NotificationEvent(
        domain=match.host,
        rule_text=rule.text,
        reason=match.reason,
        client_ip=match.client_ip,
        client_id=match.client_id,
        timestamp=now or datetime.now(timezone.utc),
    )

    logger.debug(
        "notification.scheduled",
        extra={"domain": match.host, "rule": rule.text, "reason": match.reason.value},
    )

    dispatcher.send_async(event)
    return admission
