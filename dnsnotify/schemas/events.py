"""Internal notification event types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class FilterReason(str, Enum):
    """Why the filtering engine matched (or did not match) a request.

    Values are the names the DNS filtering engine reports in its query log.
    """

    NOT_FILTERED_NOT_FOUND = "NotFilteredNotFound"
    NOT_FILTERED_ALLOW_LIST = "NotFilteredWhiteList"
    NOT_FILTERED_ERROR = "NotFilteredError"
    FILTERED_BLOCK_LIST = "FilteredBlackList"
    FILTERED_SAFE_BROWSING = "FilteredSafeBrowsing"
    FILTERED_PARENTAL = "FilteredParental"
    FILTERED_INVALID = "FilteredInvalid"
    FILTERED_SAFE_SEARCH = "FilteredSafeSearch"
    FILTERED_BLOCKED_SERVICE = "FilteredBlockedService"
    REWRITTEN = "Rewrite"
    REWRITTEN_AUTO_HOSTS = "RewriteEtcHosts"
    REWRITTEN_RULE = "RewriteRule"


@dataclass(frozen=True)
class NotificationEvent:
    """A rule match that passed admission and is about to be pushed.

    Attributes:
        domain: Matched domain name.
        rule_text: Text of the first matched rule.
        reason: Filtering reason reported for the match.
        client_ip: Address of the client that sent the query.
        timestamp: When the event occurred (timezone-aware).
        client_id: Persistent client identifier, if the client has one.
    """

    domain: str
    rule_text: str
    reason: FilterReason
    client_ip: str
    timestamp: datetime
    client_id: str | None = None
