"""
Core runtime of the Gotify notifier: polling, alerts, transport and settings.
"""

from .alert_manager import AlertManager  # noqa: F401
from .poll_coordinator import PollCoordinator, PollState  # noqa: F401
from .settings import SettingsStore  # noqa: F401
from .transport import TransportClient, TransportError  # noqa: F401
