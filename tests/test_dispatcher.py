"""Unit tests for the notification dispatcher."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from conftest import RecordingPushClient

from dnsnotify.adapters.rate_limit.base import Admission, BlockedBy
from dnsnotify.core.config import PushoverSettings
from dnsnotify.core.errors import NotificationDeliveryError
from dnsnotify.schemas.events import FilterReason, NotificationEvent
from dnsnotify.services.dispatcher import (
    DispatcherConfig,
    NotificationDispatcher,
    create_dispatcher,
    format_rfc3339,
)


def _event(**overrides) -> NotificationEvent:
    base = {
        "domain": "ads.example.com",
        "rule_text": "||ads.example.com^",
        "reason": FilterReason.FILTERED_BLOCK_LIST,
        "client_ip": "192.168.1.10",
        "timestamp": datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc),
    }
    base.update(overrides)
    return NotificationEvent(**base)


def _dispatcher(client, clock, **config) -> NotificationDispatcher:
    cfg = {"app_token": "app-token", "user_key": "user-key"}
    cfg.update(config)
    return NotificationDispatcher(DispatcherConfig(**cfg), client, clock=clock)


async def _drain(dispatcher: NotificationDispatcher) -> None:
    for _ in range(100):
        if dispatcher.in_flight == 0:
            return
        await asyncio.sleep(0)
    raise AssertionError("deliveries did not finish")


class TestAdmission:
    """Two-tier admission decisions."""

    def test_scenario_global_gate_blocks_other_domains(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)

        assert dispatcher.should_notify("a.com") == (True, BlockedBy.NONE)

        clock.advance(1)
        assert dispatcher.should_notify("a.com") == (False, BlockedBy.GLOBAL)

        clock.advance(29)
        assert dispatcher.should_notify("b.com") == (False, BlockedBy.GLOBAL)

        clock.advance(31)
        assert dispatcher.should_notify("b.com") == (True, BlockedBy.NONE)

    def test_domain_gate_denies_when_global_is_open(self, push_client, clock) -> None:
        # 60 global admissions per minute: global interval is 1 s
        dispatcher = _dispatcher(push_client, clock, global_rate_limit_per_min=60)

        assert dispatcher.should_notify("a.com").admitted is True
        clock.advance(5)
        admitted, blocked_by = dispatcher.should_notify("a.com")

        assert admitted is False
        assert blocked_by is BlockedBy.DOMAIN

    def test_domain_admits_again_after_domain_interval(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock, rate_limit_per_5min=5)

        assert dispatcher.should_notify("a.com").admitted is True
        clock.advance(60)
        assert dispatcher.should_notify("a.com") == Admission(True, BlockedBy.NONE)

    def test_global_denial_does_not_consult_domain_limiter(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)
        dispatcher.should_notify("a.com")

        with patch.object(dispatcher._domain_limiter, "should_notify") as domain_check:
            result = dispatcher.should_notify("b.com")

        assert result == (False, BlockedBy.GLOBAL)
        domain_check.assert_not_called()
        assert dispatcher.tracked_domains == 1

    def test_intervals_exposed(self, push_client, clock) -> None:
        dispatcher = _dispatcher(
            push_client, clock, rate_limit_per_5min=5, global_rate_limit_per_min=0
        )

        assert dispatcher.domain_interval_seconds == 60.0
        assert dispatcher.global_interval_seconds == 60.0

    def test_cleanup_delegates_to_domain_limiter(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock, global_rate_limit_per_min=60)
        dispatcher.should_notify("a.com")
        clock.advance(2)
        dispatcher.should_notify("b.com")

        clock.advance(599)
        assert dispatcher.cleanup() == 1
        assert dispatcher.tracked_domains == 1


class TestFormatting:
    """Title, body, and form construction."""

    @pytest.mark.parametrize(
        ("reason", "title"),
        [
            (FilterReason.FILTERED_BLOCK_LIST, "AdGuard: Domain Blocked"),
            (FilterReason.NOT_FILTERED_ALLOW_LIST, "AdGuard: Domain Allowed"),
            (FilterReason.REWRITTEN, "AdGuard: Domain Rewritten"),
            (FilterReason.REWRITTEN_RULE, "AdGuard: Domain Rewritten"),
            (FilterReason.REWRITTEN_AUTO_HOSTS, "AdGuard: Custom Rule Match"),
            (FilterReason.FILTERED_PARENTAL, "AdGuard: Custom Rule Match"),
            (FilterReason.NOT_FILTERED_NOT_FOUND, "AdGuard: Custom Rule Match"),
        ],
    )
    def test_title_by_reason(self, push_client, clock, reason, title) -> None:
        dispatcher = _dispatcher(push_client, clock)
        assert dispatcher.format_title(reason) == title

    def test_title_prefix_is_configurable(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock, title_prefix="Home DNS")
        assert dispatcher.format_title(FilterReason.FILTERED_BLOCK_LIST) == "Home DNS: Domain Blocked"

    def test_message_with_client_id(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)
        message = dispatcher.format_message(_event(client_id="laptop"))

        assert message == (
            "Domain: ads.example.com\n"
            "Client: laptop (192.168.1.10)\n"
            "Time: 2026-03-04T05:06:07Z"
        )

    def test_message_without_client_id(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)
        message = dispatcher.format_message(_event())

        assert "Client: 192.168.1.10\n" in message
        assert "(" not in message

    def test_form_omits_default_priority_and_sound(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)
        form = dispatcher.build_form(_event())

        assert form == {
            "token": "app-token",
            "user": "user-key",
            "title": "AdGuard: Domain Blocked",
            "message": dispatcher.format_message(_event()),
        }

    def test_form_includes_priority_and_sound_when_set(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock, priority=-1, sound="pushover")
        form = dispatcher.build_form(_event())

        assert form["priority"] == "-1"
        assert form["sound"] == "pushover"

    def test_rfc3339_formats(self) -> None:
        utc = datetime(2026, 1, 2, 3, 4, 5, 999_999, tzinfo=timezone.utc)
        offset = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        naive = datetime(2026, 1, 2, 3, 4, 5)

        assert format_rfc3339(utc) == "2026-01-02T03:04:05Z"
        assert format_rfc3339(offset) == "2026-01-02T03:04:05+02:00"
        assert format_rfc3339(naive) == "2026-01-02T03:04:05Z"


class TestDelivery:
    """Background delivery and failure handling."""

    @pytest.mark.asyncio
    async def test_send_pushes_form(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)

        await dispatcher.send(_event())

        assert len(push_client.forms) == 1
        assert push_client.forms[0]["title"] == "AdGuard: Domain Blocked"

    @pytest.mark.asyncio
    async def test_send_propagates_delivery_error(self, failing_push_client, clock) -> None:
        dispatcher = _dispatcher(failing_push_client, clock)

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await dispatcher.send(_event())

        assert exc_info.value.code == "push_http_status"

    @pytest.mark.asyncio
    async def test_send_async_swallows_and_logs_failure(
        self, failing_push_client, clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        dispatcher = _dispatcher(failing_push_client, clock)

        with caplog.at_level(logging.ERROR, logger="dnsnotify.services.dispatcher"):
            assert dispatcher.send_async(_event()) is None
            await _drain(dispatcher)

        assert len(failing_push_client.forms) == 1
        failures = [r for r in caplog.records if r.getMessage() == "notification.failed"]
        assert len(failures) == 1
        assert failures[0].domain == "ads.example.com"
        assert failures[0].http_status == 500

    @pytest.mark.asyncio
    async def test_send_async_logs_unexpected_errors(
        self, clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = RecordingPushClient(fail_with=RuntimeError("boom"))
        dispatcher = _dispatcher(client, clock)

        with caplog.at_level(logging.ERROR, logger="dnsnotify.services.dispatcher"):
            dispatcher.send_async(_event())
            await _drain(dispatcher)

        failures = [r for r in caplog.records if r.getMessage() == "notification.failed"]
        assert failures[0].error_code == "unexpected_error"

    @pytest.mark.asyncio
    async def test_send_async_from_worker_thread(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)

        await asyncio.to_thread(dispatcher.send_async, _event(domain="thread.example"))
        for _ in range(100):
            if push_client.forms:
                break
            await asyncio.sleep(0.01)
        await _drain(dispatcher)

        assert push_client.forms[0]["message"].startswith("Domain: thread.example")

    def test_send_async_without_loop_drops_event(self, push_client, clock) -> None:
        dispatcher = _dispatcher(push_client, clock)

        dispatcher.send_async(_event())

        assert dispatcher.in_flight == 0
        assert push_client.forms == []

    def test_send_async_with_stopped_loop_drops_event(self, push_client, clock, caplog) -> None:
        loop = asyncio.new_event_loop()
        try:
            dispatcher = NotificationDispatcher(
                DispatcherConfig(app_token="app-token", user_key="user-key"),
                push_client,
                clock=clock,
                loop=loop,
            )

            with caplog.at_level(logging.WARNING, logger="dnsnotify.services.dispatcher"):
                dispatcher.send_async(_event(domain="late.example"))

            assert dispatcher.in_flight == 0
            assert push_client.forms == []
            record = next(r for r in caplog.records if r.getMessage() == "notification.dropped")
            assert record.domain == "late.example"
            assert record.reason == "no_event_loop"
        finally:
            loop.close()

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_and_closes_client(self, clock) -> None:
        started = asyncio.Event()

        class SlowClient(RecordingPushClient):
            async def push(self, form):
                started.set()
                await asyncio.sleep(3600)

        client = SlowClient()
        dispatcher = _dispatcher(client, clock)
        dispatcher.send_async(_event())
        await started.wait()

        assert dispatcher.in_flight == 1
        await dispatcher.aclose()

        await _drain(dispatcher)
        assert client.closed is True


def test_create_dispatcher_from_settings(push_client) -> None:
    pushover = PushoverSettings(
        enabled=True,
        app_token="tok",
        user_key="usr",
        rate_limit_per_5min=10,
        global_rate_limit_per_min=6,
        priority=1,
    )

    dispatcher = create_dispatcher(pushover, push_client)

    assert dispatcher.config.app_token == "tok"
    assert dispatcher.config.priority == 1
    assert dispatcher.domain_interval_seconds == 30.0
    assert dispatcher.global_interval_seconds == 10.0
