"""Push transport adapters - abstract over the notification sink."""

from dnsnotify.adapters.push.base import AbstractPushClient
from dnsnotify.adapters.push.factory import create_push_client
from dnsnotify.adapters.push.pushover_client import PushoverClient

__all__ = [
    "AbstractPushClient",
    "PushoverClient",
    "create_push_client",
]
