from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dnsnotify.core.auth import verify_api_key
from dnsnotify.schemas.rule_match import (
    NotifierStatusResponse,
    RuleMatchRequest,
    RuleMatchResponse,
)
from dnsnotify.services.dispatcher import NotificationDispatcher
from dnsnotify.services.rule_match_service import process_rule_match

router = APIRouter(tags=["Notifications"])


def get_dispatcher(request: Request) -> NotificationDispatcher | None:
    """Return the dispatcher built at startup, or None when notifications are off."""
    return getattr(request.app.state, "dispatcher", None)


@router.post(
    "/rule-matches",
    response_model=RuleMatchResponse,
    dependencies=[Depends(verify_api_key)],
)
async def report_rule_match(
    match: RuleMatchRequest,
    request: Request,
    dispatcher: NotificationDispatcher | None = Depends(get_dispatcher),
) -> RuleMatchResponse:
    """Report a filtering result from the resolver.

    Answers right after the admission decision; the push itself happens in
    the background and its outcome is only visible in the logs.
    """
    request.state.matched_host = match.host

    if dispatcher is None:
        request.state.notification_outcome = "disabled"
        return RuleMatchResponse(notified=False, skipped=True)

    admission = process_rule_match(dispatcher, match)
    if admission is None:
        request.state.notification_outcome = "skipped"
        return RuleMatchResponse(notified=False, skipped=True)

    if admission.admitted:
        request.state.notification_outcome = "notified"
    else:
        request.state.notification_outcome = f"blocked_{admission.blocked_by.value}"

    return RuleMatchResponse(
        notified=admission.admitted,
        blocked_by=None if admission.admitted else admission.blocked_by,
    )


@router.get(
    "/notifications/status",
    response_model=NotifierStatusResponse,
    dependencies=[Depends(verify_api_key)],
)
async def notifier_status(
    dispatcher: NotificationDispatcher | None = Depends(get_dispatcher),
) -> NotifierStatusResponse:
    if dispatcher is None:
        return NotifierStatusResponse(enabled=False)

    return NotifierStatusResponse(
        enabled=True,
        domain_interval_seconds=dispatcher.domain_interval_seconds,
        global_interval_seconds=dispatcher.global_interval_seconds,
        tracked_domains=dispatcher.tracked_domains,
        in_flight=dispatcher.in_flight,
    )
