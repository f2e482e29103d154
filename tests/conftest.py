"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that might build settings.
"""

import os
from collections.abc import Mapping

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("PUSHOVER_ENABLED", "false")

import pytest

from dnsnotify.adapters.push.base import AbstractPushClient
from dnsnotify.core.errors import NotificationDeliveryError


class FakeClock:
    """Deterministic clock for rate limiter tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class RecordingPushClient(AbstractPushClient):
    """Push client that records forms instead of calling Pushover."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.forms: list[dict[str, str]] = []
        self.fail_with = fail_with
        self.closed = False

    async def push(self, form: Mapping[str, str]) -> None:
        self.forms.append(dict(form))
        if self.fail_with is not None:
            raise self.fail_with

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def push_client() -> RecordingPushClient:
    return RecordingPushClient()


@pytest.fixture
def failing_push_client() -> RecordingPushClient:
    return RecordingPushClient(
        fail_with=NotificationDeliveryError(
            code="push_http_status",
            message="pushover returned status 500",
            details={"http_status": 500},
        )
    )
