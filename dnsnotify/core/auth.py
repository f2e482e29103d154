"""API key authentication for the rule-match ingress.

Whatever relays the resolver's filtering results (a query-log hook, a
sidecar tailing the query log) authenticates with an ``X-API-Key`` header.
Accepted keys come from ``APP_API_KEYS``. Rejections are logged with the
caller's address and a short hash of the offered key, never the key itself.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from dnsnotify.core.config import settings
from dnsnotify.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


def _key_fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _caller_address(request: Request) -> str | None:
    return request.client.host if request.client else None


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse the comma-separated ``APP_API_KEYS`` value.

    Args:
        keys_string: Raw setting, one key per relay, or None.

    Returns:
        Set of trimmed, non-empty keys.

    Examples:
        >>> parse_api_keys("relay-a, relay-b ")
        {'relay-a', 'relay-b'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_api_key(provided_key: str, *, caller: str | None = None) -> None:
    """Check a relay's key against the configured ones.

    Args:
        provided_key: Value of the ``X-API-Key`` header.
        caller: Address of the relay, only used in log fields.

    Raises:
        AuthenticationAppError: ``api_keys_not_configured`` when auth is on
            but no keys are set, ``invalid_api_key`` when the key is unknown.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "auth.no_keys_configured",
            extra={"caller": caller},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="Rule-match ingress requires an API key but none is configured",
            details={
                "hint": (
                    "Set APP_API_KEYS to the key your resolver relay sends in "
                    "X-API-Key, or set APP_API_KEY_REQUIRED=false on a trusted network"
                ),
            },
        )

    if provided_key not in valid_keys:
        logger.warning(
            "auth.invalid_key",
            extra={"caller": caller, "key_fingerprint": _key_fingerprint(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias=API_KEY_HEADER)] = None,
) -> None:
    """FastAPI dependency guarding the notifier routes.

    Usage:
        @router.post("/rule-matches", dependencies=[Depends(verify_api_key)])

    Args:
        request: Incoming request; its client address tags the auth logs.
        x_api_key: Key sent by the resolver relay.

    Raises:
        HTTPException: 403 Forbidden when the key is missing or rejected.
    """
    if not settings.app.api_key_required:
        return

    caller = _caller_address(request)

    if not x_api_key:
        logger.warning("auth.missing_key", extra={"caller": caller})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing API key. Provide {API_KEY_HEADER} header.",
        )

    try:
        validate_api_key(x_api_key, caller=caller)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc

    logger.debug(
        "auth.accepted",
        extra={"caller": caller, "key_fingerprint": _key_fingerprint(x_api_key)},
    )
