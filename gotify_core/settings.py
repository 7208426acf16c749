"""
QSettings-backed configuration for the Gotify notifier.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable, Dict, Optional, Tuple

from PySide6.QtCore import QSettings

from gotify_notifier.gotify_notifier import logger as app_logger

_LOGGER = app_logger.get_logger()

ORGANIZATION = "gotify-notifier"
APPLICATION = "gotify-notifier"

GOTIFY_URL = "gotify-url"
CLIENT_TOKEN = "client-token"
POLL_INTERVAL = "poll-interval"
REQUEST_TIMEOUT = "request-timeout"
NOTIFICATION_TIMEOUT = "notification-timeout"
DEBUG_MODE = "debug-mode"

DEFAULTS: Dict[str, Any] = {
    GOTIFY_URL: "",
    CLIENT_TOKEN: "",
    POLL_INTERVAL: 30,
    REQUEST_TIMEOUT: 10,
    NOTIFICATION_TIMEOUT: 30,
    DEBUG_MODE: False,
}

_MIN_REQUEST_TIMEOUT = 5
_MAX_REQUEST_TIMEOUT = 30
_MIN_POLL_INTERVAL = 15
_MAX_POLL_INTERVAL = 300
_MAX_NOTIFICATION_TIMEOUT = 3600

SettingsCallback = Callable[[str], None]


def minimum_poll_interval(request_timeout: int) -> int:
    """Smallest poll interval allowed for ``request_timeout``."""
    return max(_MIN_POLL_INTERVAL, request_timeout + 5)


def is_valid_server_url(url: str) -> bool:
    return url.startswith(("http://", "https://"))


class SettingsStore:
    """
    Typed access to the notifier settings plus change subscriptions.

    Reads always go to the backend; the cached snapshot only exists to detect
    external edits in :meth:`reload`.
    """

    def __init__(self, backend: Optional[QSettings] = None) -> None:
        self._backend = backend or QSettings(ORGANIZATION, APPLICATION)
        self._subscribers: Dict[int, Tuple[str, SettingsCallback]] = {}
        self._token_counter = itertools.count(1)
        self._snapshot = self._read_all()

    # ------------------------------------------------------------------#
    # Typed accessors
    # ------------------------------------------------------------------#

    @property
    def gotify_url(self) -> str:
        return self.get_string(GOTIFY_URL).strip()

    @property
    def client_token(self) -> str:
        return self.get_string(CLIENT_TOKEN).strip()

    @property
    def request_timeout(self) -> int:
        raw = self.get_int(REQUEST_TIMEOUT)
        return self._clamp(REQUEST_TIMEOUT, raw, _MIN_REQUEST_TIMEOUT, _MAX_REQUEST_TIMEOUT)

    @property
    def poll_interval(self) -> int:
        raw = self.get_int(POLL_INTERVAL)
        lower = minimum_poll_interval(self.request_timeout)
        return self._clamp(POLL_INTERVAL, raw, lower, max(lower, _MAX_POLL_INTERVAL))

    @property
    def notification_timeout(self) -> int:
        raw = self.get_int(NOTIFICATION_TIMEOUT)
        return self._clamp(NOTIFICATION_TIMEOUT, raw, 0, _MAX_NOTIFICATION_TIMEOUT)

    @property
    def debug_mode(self) -> bool:
        return self.get_bool(DEBUG_MODE)

    # ------------------------------------------------------------------#
    # Raw get/set
    # ------------------------------------------------------------------#

    def get_string(self, key: str) -> str:
        value = self._backend.value(key, DEFAULTS[key])
        return "" if value is None else str(value)

    def get_int(self, key: str) -> int:
        value = self._backend.value(key, DEFAULTS[key])
        try:
            return int(value)
        except (TypeError, ValueError):
            _LOGGER.warning("Setting {} has non-integer value {!r}; using default.", key, value)
            return int(DEFAULTS[key])

    def get_bool(self, key: str) -> bool:
        value = self._backend.value(key, DEFAULTS[key])
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def set_value(self, key: str, value: Any) -> None:
        """Persist ``value`` and notify subscribers if it changed."""
        if key not in DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")
        self._backend.setValue(key, value)
        self._backend.sync()
        current = self._read(key)
        if current != self._snapshot.get(key):
            self._snapshot[key] = current
            self._notify(key)

    def reload(self) -> None:
        """Re-read the backend and notify keys edited from outside this store."""
        self._backend.sync()
        fresh = self._read_all()
        changed = [key for key, value in fresh.items() if self._snapshot.get(key) != value]
        self._snapshot = fresh
        for key in changed:
            _LOGGER.debug("Detected external change of setting {}.", key)
            self._notify(key)

    # ------------------------------------------------------------------#
    # Subscriptions
    # ------------------------------------------------------------------#

    def subscribe(self, key: str, callback: SettingsCallback) -> int:
        """Call ``callback(key)`` whenever ``key`` changes. Returns a token."""
        if key not in DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")
        token = next(self._token_counter)
        self._subscribers[token] = (key, callback)
        return token

    def unsubscribe(self, token: int) -> None:
        self._subscribers.pop(token, None)

    @property
    def subscription_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, key: str) -> None:
        for token, (subscribed_key, callback) in list(self._subscribers.items()):
            if subscribed_key != key or token not in self._subscribers:
                continue
            callback(key)

    # ------------------------------------------------------------------#
    # Helpers
    # ------------------------------------------------------------------#

    def _read(self, key: str) -> Any:
        default = DEFAULTS[key]
        if isinstance(default, bool):
            return self.get_bool(key)
        if isinstance(default, int):
            return self.get_int(key)
        return self.get_string(key)

    def _read_all(self) -> Dict[str, Any]:
        return {key: self._read(key) for key in DEFAULTS}

    def _clamp(self, key: str, raw: int, lower: int, upper: int) -> int:
        if raw < lower or raw > upper:
            _LOGGER.warning(
                "Invalid {} value {} found in settings. Clamping to {}..{}.",
                key,
                raw,
                lower,
                upper,
            )
        return max(lower, min(upper, raw))
