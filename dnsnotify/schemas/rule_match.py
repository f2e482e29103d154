"""Pydantic schemas for the rule-match ingress and notifier status routes."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from dnsnotify.adapters.rate_limit.base import BlockedBy
from dnsnotify.schemas.events import FilterReason


class MatchedRule(BaseModel):
    """One filtering rule that matched the query."""

    text: str = Field(..., description="Rule text as written in the filter list.")
    filter_list_id: int | None = Field(
        default=None,
        description="Identifier of the filter list the rule comes from.",
    )


class RuleMatchRequest(BaseModel):
    """Filtering result for one resolved query, as reported by the resolver."""

    host: str = Field(..., min_length=1, description="Queried host name.")
    reason: FilterReason = Field(..., description="Filtering reason.")
    rules: List[MatchedRule] = Field(
        default_factory=list,
        description="Matched rules; only the first one is used for the notification.",
    )
    client_ip: str = Field(..., description="Address of the querying client.")
    client_id: str | None = Field(
        default=None,
        description="Persistent client identifier, when known.",
    )


class RuleMatchResponse(BaseModel):
    """Admission outcome for a reported rule match."""

    notified: bool = Field(..., description="A notification was scheduled.")
    blocked_by: BlockedBy | None = Field(
        default=None,
        description="Gate that denied the notification, if any.",
    )
    skipped: bool = Field(
        default=False,
        description="Nothing was evaluated (notifications disabled or no rules).",
    )


class NotifierStatusResponse(BaseModel):
    """Runtime view of the notifier."""

    enabled: bool
    domain_interval_seconds: float | None = None
    global_interval_seconds: float | None = None
    tracked_domains: int = 0
    in_flight: int = 0
