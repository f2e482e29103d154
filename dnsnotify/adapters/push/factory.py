"""Factory for creating push client instances."""

from dnsnotify.adapters.push.base import AbstractPushClient
from dnsnotify.adapters.push.pushover_client import PushoverClient
from dnsnotify.core.config import PushoverSettings, settings


def create_push_client(pushover: PushoverSettings | None = None) -> AbstractPushClient:
    """Instantiate the push client from Pushover settings.

    Credentials are not checked here; a wrong token or user key only shows
    up later as a failed delivery.

    Args:
        pushover: Settings to use; defaults to the global settings.

    Returns:
        AbstractPushClient: Configured client instance.
    """
    cfg = pushover or settings.pushover
    return PushoverClient(
        api_url=cfg.api_url,
        timeout_seconds=cfg.timeout_seconds,
    )
