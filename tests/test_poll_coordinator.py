"""Tests for gotify_core.poll_coordinator."""

import json

import pytest

from gotify_core.poll_coordinator import (
    CONFIG_ERROR_TITLE,
    CONNECTION_ERROR_TITLE,
    ErrorEpisode,
    PollCoordinator,
    build_messages_url,
)
from gotify_core.settings import CLIENT_TOKEN, GOTIFY_URL, POLL_INTERVAL, REQUEST_TIMEOUT
from gotify_core.transport import ConnectionRefused, FetchResult


class FakeTransport:
    """Records requests; answers immediately from a queue or holds them pending."""

    def __init__(self):
        self.requests = []
        self.responses = []
        self.pending = []
        self.closed = False

    def fetch(self, url, headers, timeout_seconds, callback):
        self.requests.append((url, dict(headers), timeout_seconds))
        if self.responses:
            callback(self.responses.pop(0))
        else:
            self.pending.append(callback)

    def complete(self, result):
        self.pending.pop(0)(result)

    def close(self):
        self.closed = True


class RecordingAlerts:
    def __init__(self):
        self.shown = []

    def show_alert(self, title, body):
        self.shown.append((title, body))
        return len(self.shown)


def _batch(*ids):
    messages = [{"id": i, "title": f"title {i}", "message": f"body {i}"} for i in ids]
    return FetchResult(body=json.dumps({"messages": messages}).encode("utf-8"))


def _failure():
    return FetchResult(error=ConnectionRefused())


@pytest.fixture
def configured(settings):
    settings.set_value(GOTIFY_URL, "https://push.example.com/")
    settings.set_value(CLIENT_TOKEN, "Csecret")
    return settings


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def alerts():
    return RecordingAlerts()


@pytest.fixture
def coordinator(configured, transport, alerts):
    poller = PollCoordinator(configured, transport, alerts)
    yield poller
    poller.stop()
    poller.release_settings()


def test_build_messages_url():
    assert build_messages_url("https://push.example.com/") == "https://push.example.com/message?limit=5"
    assert build_messages_url("http://h:8080") == "http://h:8080/message?limit=5"


def test_request_carries_token_in_header_not_url(coordinator, transport, configured):
    configured.set_value(REQUEST_TIMEOUT, 12)
    transport.responses.append(_batch())
    coordinator.poll_once()
    url, headers, timeout = transport.requests[0]
    assert url == "https://push.example.com/message?limit=5"
    assert "Csecret" not in url
    assert headers == {"X-Gotify-Key": "Csecret", "Accept": "application/json"}
    assert timeout == 12


def test_new_messages_shown_oldest_first(coordinator, transport, alerts):
    """{5, 6} with last_seen_id=4 shows 5 then 6 and advances to 6."""
    coordinator.state.last_seen_id = 4
    transport.responses.append(_batch(5, 6))
    coordinator.poll_once()
    assert alerts.shown == [("title 5", "body 5"), ("title 6", "body 6")]
    assert coordinator.state.last_seen_id == 6

    transport.responses.append(_batch(5, 6))
    coordinator.poll_once()
    assert len(alerts.shown) == 2


def test_server_newest_first_order_is_processed_in_reverse(coordinator, transport, alerts):
    transport.responses.append(_batch(9, 8, 7))
    coordinator.poll_once()
    assert [title for title, _ in alerts.shown] == ["title 7", "title 8", "title 9"]


def test_only_ids_above_high_water_mark_are_shown(coordinator, transport, alerts):
    """Alerts appear iff id > last_seen_id; the mark never decreases."""
    batches = [(3, 1), (2, 4), (4, 3), (10,), (7, 8)]
    marks = []
    shown_ids = []
    for batch in batches:
        before = coordinator.state.last_seen_id
        transport.responses.append(_batch(*batch))
        coordinator.poll_once()
        shown_ids.extend(sorted(i for i in batch if i > before))
        marks.append(coordinator.state.last_seen_id)
    assert [f"title {i}" for i in shown_ids] == [title for title, _ in alerts.shown]
    assert marks == sorted(marks)
    assert marks[-1] == 10


def test_empty_batch_is_noop_success(coordinator, transport, alerts):
    coordinator.start()
    transport.responses.append(FetchResult(body=b'{"messages": []}'))
    coordinator.poll_once()
    assert alerts.shown == []
    assert coordinator.connected


def test_malformed_body_is_treated_as_empty_batch(coordinator, transport, alerts):
    coordinator.start()
    transport.responses.append(FetchResult(body=b"<html>oops</html>"))
    coordinator.poll_once()
    assert alerts.shown == []
    assert coordinator.connected
    assert coordinator.state.consecutive_errors == 0


def test_configuration_error_alerts_once_per_episode(settings, transport, alerts):
    """Five ticks with no token produce exactly one alert and no requests."""
    settings.set_value(GOTIFY_URL, "https://push.example.com")
    poller = PollCoordinator(settings, transport, alerts)
    for _ in range(5):
        poller.poll_once()
    assert [title for title, _ in alerts.shown] == [CONFIG_ERROR_TITLE]
    assert transport.requests == []
    assert poller.state.consecutive_errors == 5
    assert poller.state.error_episode is ErrorEpisode.CONFIGURATION
    assert not poller.connected

    # Fixing the configuration ends the episode; breaking it again alerts again.
    settings.set_value(CLIENT_TOKEN, "Csecret")
    transport.responses.append(_batch())
    poller.poll_once()
    assert poller.state.consecutive_errors == 0
    settings.set_value(CLIENT_TOKEN, "  ")
    poller.poll_once()
    assert [title for title, _ in alerts.shown] == [CONFIG_ERROR_TITLE, CONFIG_ERROR_TITLE]
    poller.release_settings()


def test_connection_error_alert_on_fourth_and_eighth_failure(coordinator, transport, alerts):
    fired_on = []
    for attempt in range(1, 9):
        transport.responses.append(_failure())
        coordinator.poll_once()
        if len(alerts.shown) > len(fired_on):
            fired_on.append(attempt)
    assert fired_on == [4, 8]
    title, body = alerts.shown[0]
    assert title == CONNECTION_ERROR_TITLE
    assert ConnectionRefused().describe() in body
    assert not coordinator.connected


def test_success_resets_failure_count(coordinator, transport, alerts):
    for _ in range(3):
        transport.responses.append(_failure())
        coordinator.poll_once()
    transport.responses.append(_batch())
    coordinator.poll_once()
    assert coordinator.state.consecutive_errors == 0
    for _ in range(3):
        transport.responses.append(_failure())
        coordinator.poll_once()
    assert alerts.shown == []


def test_start_installs_timer_and_connects(coordinator, configured):
    changes = []
    coordinator.connectionChanged.connect(changes.append)
    configured.set_value(POLL_INTERVAL, 45)
    coordinator.start()
    assert coordinator.polling
    assert coordinator.interval_seconds == 45
    assert coordinator.connected
    assert changes == [True]


def test_stop_is_idempotent(coordinator):
    coordinator.start()
    coordinator.stop()
    coordinator.stop()
    assert not coordinator.polling
    assert not coordinator.connected


def test_interval_change_restarts_while_connected(coordinator, configured):
    coordinator.start()
    configured.set_value(POLL_INTERVAL, 90)
    assert coordinator.interval_seconds == 90
    assert coordinator.connected


def test_interval_change_ignored_while_disconnected(coordinator, configured):
    """A manual disconnect is not undone by a settings edit."""
    coordinator.start()
    coordinator.toggle()
    configured.set_value(POLL_INTERVAL, 90)
    assert not coordinator.polling
    assert not coordinator.connected


def test_toggle_reconnects(coordinator):
    coordinator.toggle()
    assert coordinator.polling and coordinator.connected
    coordinator.toggle()
    assert not coordinator.polling


def test_tick_skipped_while_request_pending(coordinator, transport):
    coordinator.poll_once()
    coordinator.poll_once()
    assert len(transport.requests) == 1
    assert coordinator.busy
    transport.complete(_batch())
    assert not coordinator.busy
    transport.responses.append(_batch())
    coordinator.poll_once()
    assert len(transport.requests) == 2


def test_completion_after_stop_is_ignored(coordinator, transport, alerts):
    """A request that finishes after stop() runs but changes nothing."""
    coordinator.start()
    coordinator.poll_once()
    coordinator.stop()
    transport.complete(_batch(1, 2))
    assert alerts.shown == []
    assert coordinator.state.last_seen_id == 0
    assert not coordinator.connected
    assert not coordinator.busy


def test_alert_sink_failure_does_not_escape(configured, transport):
    class ExplodingAlerts:
        def show_alert(self, title, body):
            raise RuntimeError("surface gone")

    poller = PollCoordinator(configured, transport, ExplodingAlerts())
    transport.responses.append(_batch(1))
    poller.poll_once()
    assert not poller.busy
    poller.release_settings()


def test_release_settings_drops_subscriptions(configured, transport, alerts):
    before = configured.subscription_count
    poller = PollCoordinator(configured, transport, alerts)
    assert configured.subscription_count == before + 2
    poller.release_settings()
    poller.release_settings()
    assert configured.subscription_count == before


def test_manual_poll_while_stopped_keeps_disconnected(coordinator, configured, transport, alerts):
    """A successful one-off poll after a disconnect shows messages but does not reconnect."""
    coordinator.start()
    coordinator.stop()
    transport.responses.append(_batch(4))
    coordinator.poll_once()
    assert alerts.shown == [("title 4", "body 4")]
    assert not coordinator.connected
    assert not coordinator.polling

    configured.set_value(POLL_INTERVAL, 60)
    assert not coordinator.polling


def test_configuration_alert_failure_does_not_escape(settings, transport):
    class ExplodingAlerts:
        def show_alert(self, title, body):
            raise RuntimeError("surface gone")

    poller = PollCoordinator(settings, transport, ExplodingAlerts())
    poller.poll_once()
    poller.poll_once()
    assert poller.state.error_episode is ErrorEpisode.CONFIGURATION
    assert poller.state.consecutive_errors == 2
    assert not poller.connected
    poller.release_settings()


def test_request_timeout_raise_restarts_with_new_floor(coordinator, configured):
    """Raising the request timeout lifts a running 15 s timer to the new minimum."""
    configured.set_value(POLL_INTERVAL, 15)
    coordinator.start()
    assert coordinator.interval_seconds == 15
    configured.set_value(REQUEST_TIMEOUT, 20)
    assert coordinator.interval_seconds == 25
    assert coordinator.connected


def test_request_timeout_change_ignored_while_disconnected(coordinator, configured):
    configured.set_value(POLL_INTERVAL, 15)
    coordinator.start()
    coordinator.stop()
    configured.set_value(REQUEST_TIMEOUT, 20)
    assert not coordinator.polling


def test_request_timeout_change_without_floor_move_keeps_timer(coordinator, configured):
    configured.set_value(POLL_INTERVAL, 120)
    coordinator.start()
    timer = coordinator._timer
    configured.set_value(REQUEST_TIMEOUT, 20)
    assert coordinator._timer is timer
