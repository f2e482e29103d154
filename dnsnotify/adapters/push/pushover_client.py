"""Pushover push client adapter."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

import httpx

from dnsnotify.adapters.push.base import AbstractPushClient
from dnsnotify.core.errors import NotificationDeliveryError

PUSHOVER_API_URL = "https://api.pushover.net/1/messages.json"


class PushoverClient(AbstractPushClient):
    """Client for the Pushover messages API.

    A single ``httpx.AsyncClient`` is created up front and shared by every
    delivery task; it is safe for concurrent use and is only closed on
    shutdown.
    """

    def __init__(
        self,
        api_url: str = PUSHOVER_API_URL,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Pushover HTTP client.

        Args:
            api_url: Messages endpoint.
            timeout_seconds: Deadline for one whole request, from connect to
                the last byte of the response body.
            transport: Optional custom transport (used by tests).
        """
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        # httpx applies this per phase; push() enforces the overall deadline.
        self.client = httpx.AsyncClient(
            timeout=timeout_seconds,
            transport=transport,
        )

    async def push(self, form: Mapping[str, str]) -> None:
        """POST the form-encoded message to Pushover.

        Raises:
            NotificationDeliveryError: On transport errors, when the request
                exceeds ``timeout_seconds``, or on any status other than 200.
        """
        try:
            async with asyncio.timeout(self.timeout_seconds):
                response = await self.client.post(self.api_url, data=dict(form))
        except TimeoutError as exc:
            raise NotificationDeliveryError(
                code="push_transport_error",
                message=f"sending request: timed out after {self.timeout_seconds}s",
                details={"timeout_seconds": self.timeout_seconds},
            ) from exc
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(
                code="push_transport_error",
                message=f"sending request: {exc}",
            ) from exc

        if response.status_code != httpx.codes.OK:
            raise NotificationDeliveryError(
                code="push_http_status",
                message=f"pushover returned status {response.status_code}",
                details={"http_status": response.status_code},
            )

    async def aclose(self) -> None:
        await self.client.aclose()
