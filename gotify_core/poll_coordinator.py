"""
Polling loop that turns new Gotify messages into on-screen alerts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol

from PySide6.QtCore import QObject, QTimer, Signal

from gotify_core.settings import POLL_INTERVAL, REQUEST_TIMEOUT, SettingsStore
from gotify_core.transport import FetchCallback, FetchResult
from gotify_notifier.gotify_notifier import logger as app_logger
from gotify_shared.message import MessageParseError, parse_message_list

MESSAGE_LIMIT = 5
ERROR_ALERT_THRESHOLD = 3
CONFIG_ERROR_TITLE = "Gotify Configuration Required"
CONFIG_ERROR_BODY = "Please set your Gotify server URL and client token in the notifier settings."
CONNECTION_ERROR_TITLE = "Gotify Connection Error"


class AlertSink(Protocol):
    def show_alert(self, title: str, body: str) -> int: ...


class Transport(Protocol):
    def fetch(self, url: str, headers: dict, timeout_seconds: int, callback: FetchCallback) -> None: ...

    def close(self) -> None: ...


class ErrorEpisode(Enum):
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"


@dataclass
class PollState:
    last_seen_id: int = 0
    connected: bool = False
    consecutive_errors: int = 0
    error_episode: Optional[ErrorEpisode] = None


def build_messages_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/message?limit={MESSAGE_LIMIT}"


class PollCoordinator(QObject):
    """
    Drives the repeating poll timer and tracks connection health.

    Completions are matched against the generation that issued them, so a
    request that finishes after :meth:`stop` changes nothing. While a request
    is pending further ticks are skipped.
    """

    connectionChanged = Signal(bool)

    def __init__(
        self,
        settings: SettingsStore,
        transport: Transport,
        alerts: AlertSink,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = app_logger.get_logger()
        self._settings = settings
        self._transport = transport
        self._alerts = alerts
        self.state = PollState()
        self._timer: Optional[QTimer] = None
        self._generation = 0
        self._busy = False
        self._subscriptions: List[int] = [
            self._settings.subscribe(POLL_INTERVAL, self._on_poll_interval_changed),
            self._settings.subscribe(REQUEST_TIMEOUT, self._on_request_timeout_changed),
        ]

    @property
    def connected(self) -> bool:
        return self.state.connected

    @property
    def polling(self) -> bool:
        return self._timer is not None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def interval_seconds(self) -> Optional[int]:
        if self._timer is None:
            return None
        return self._timer.interval() // 1000

    def start(self) -> None:
        """(Re)install the repeating poll timer."""
        self._cancel_timer()
        interval = self._settings.poll_interval
        self._timer = QTimer(self)
        self._timer.setInterval(interval * 1000)
        self._timer.timeout.connect(self.poll_once)
        self._timer.start()
        self._set_connected(True)
        self._logger.info("Started polling every {} seconds.", interval)

    def stop(self) -> None:
        self._cancel_timer()
        self._generation += 1
        self._set_connected(False)
        self._logger.info("Stopped polling.")

    def restart(self) -> None:
        self.stop()
        self.start()

    def toggle(self) -> None:
        if self.state.connected:
            self.stop()
        else:
            self.start()

    def release_settings(self) -> None:
        """Drop the poll-interval and request-timeout subscriptions."""
        for token in self._subscriptions:
            self._settings.unsubscribe(token)
        self._subscriptions = []

    def poll_once(self) -> None:
        """Run one poll cycle. Never raises."""
        if self._busy:
            self._logger.debug("Previous poll still pending; skipping this tick.")
            return

        base_url = self._settings.gotify_url
        token = self._settings.client_token
        if not base_url or not token:
            self._handle_configuration_error()
            return

        if self.state.error_episode is ErrorEpisode.CONFIGURATION:
            self._reset_errors()

        url = build_messages_url(base_url)
        headers = {"X-Gotify-Key": token, "Accept": "application/json"}
        generation = self._generation
        self._busy = True
        self._logger.debug("Polling {}", url)
        try:
            self._transport.fetch(
                url,
                headers,
                self._settings.request_timeout,
                lambda result, generation=generation: self._on_fetch_done(generation, result),
            )
        except Exception:
            self._busy = False
            self._logger.exception("Transport raised while starting a poll.")

    def _on_fetch_done(self, generation: int, result: FetchResult) -> None:
        self._busy = False
        if generation != self._generation:
            self._logger.debug("Ignoring completion from a stopped polling session.")
            return
        try:
            if result.ok:
                self._handle_success(result.body or b"")
            else:
                self._handle_transport_error(result)
        except Exception:
            self._logger.exception("Unexpected error while handling poll result.")

    def _handle_configuration_error(self) -> None:
        self._logger.debug("Missing server URL or client token in settings.")
        if self.state.error_episode is not ErrorEpisode.CONFIGURATION:
            self.state.consecutive_errors = 0
            self.state.error_episode = ErrorEpisode.CONFIGURATION
        if self.state.consecutive_errors == 0:
            try:
                self._alerts.show_alert(CONFIG_ERROR_TITLE, CONFIG_ERROR_BODY)
            except Exception:
                self._logger.exception("Failed to show the configuration alert.")
        self.state.consecutive_errors += 1
        self._set_connected(False)

    def _handle_transport_error(self, result: FetchResult) -> None:
        error = result.error
        description = error.describe() if error is not None else "Unknown error"
        self._logger.debug("Failed to poll: {}", description)
        self._set_connected(False)
        if self.state.error_episode is not ErrorEpisode.TRANSPORT:
            self.state.consecutive_errors = 0
            self.state.error_episode = ErrorEpisode.TRANSPORT
        self.state.consecutive_errors += 1
        if self.state.consecutive_errors > ERROR_ALERT_THRESHOLD:
            self._logger.warning("Repeated connection failures: {}", description)
            self._alerts.show_alert(CONNECTION_ERROR_TITLE, f"Cannot connect to server: {description}")
            self.state.consecutive_errors = 0

    def _handle_success(self, body: bytes) -> None:
        try:
            messages = parse_message_list(body)
        except MessageParseError as exc:
            self._logger.debug("Discarding malformed response: {}", exc)
            messages = []

        self._logger.debug("Received {} message(s).", len(messages))
        for message in sorted(messages, key=lambda m: m.id):
            if message.id > self.state.last_seen_id:
                self._logger.debug("New message {}: {}", message.id, message.title)
                self._alerts.show_alert(message.title, message.body)
                self.state.last_seen_id = max(self.state.last_seen_id, message.id)

        self._reset_errors()
        if self._timer is None:
            # Manual poll while stopped; the connection state stays as the user left it.
            return
        self._set_connected(True)

    def _on_poll_interval_changed(self, _key: str) -> None:
        if not self.state.connected or self._timer is None:
            self._logger.debug("Poll interval changed while disconnected; not restarting.")
            return
        self._logger.info("Poll interval changed; restarting polling.")
        self.restart()

    def _on_request_timeout_changed(self, _key: str) -> None:
        if not self.state.connected or self._timer is None:
            return
        if self.interval_seconds == self._settings.poll_interval:
            return
        self._logger.info("Request timeout moved the poll interval floor; restarting polling.")
        self.restart()

    def _reset_errors(self) -> None:
        self.state.consecutive_errors = 0
        self.state.error_episode = None

    def _cancel_timer(self) -> None:
        if self._timer is None:
            return
        self._timer.stop()
        self._timer.deleteLater()
        self._timer = None

    def _set_connected(self, connected: bool) -> None:
        changed = self.state.connected != connected
        self.state.connected = connected
        if changed:
            self.connectionChanged.emit(connected)
