"""
Application coordinator wiring polling, alerts and the tray icon together.
"""

from __future__ import annotations

from typing import List, Optional

from PySide6.QtCore import QObject, QTimer
from PySide6.QtGui import QAction
from PySide6.QtWidgets import QApplication, QMenu, QStyle, QSystemTrayIcon

from gotify_core.alert_manager import AlertManager
from gotify_core.poll_coordinator import PollCoordinator, Transport
from gotify_core.settings import DEBUG_MODE, REQUEST_TIMEOUT, SettingsStore
from gotify_core.settings_dialog import SettingsDialog
from gotify_core.transport import TransportClient
from gotify_notifier.gotify_notifier import logger as app_logger

APP_NAME = "Gotify Notifier"
APP_VERSION = "1.0.0"
SETTINGS_REFRESH_INTERVAL_MS = 15000
TEST_ALERT_TITLE = "Manual Test"
TEST_ALERT_BODY = "This is a test notification. Close it with the X button."


class AppCoordinator(QObject):
    """
    Owns the notifier components for one enable/disable cycle.

    Collaborators can be injected; by default a QSettings store and a
    QNetworkAccessManager transport are created.
    """

    def __init__(
        self,
        *,
        settings: Optional[SettingsStore] = None,
        transport: Optional[Transport] = None,
        fade_in_ms: Optional[int] = None,
        fade_out_ms: Optional[int] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = app_logger.get_logger()
        self.settings = settings or SettingsStore()
        self._transport_override = transport
        self._fade_kwargs = {
            key: value
            for key, value in (("fade_in_ms", fade_in_ms), ("fade_out_ms", fade_out_ms))
            if value is not None
        }

        self.alerts: Optional[AlertManager] = None
        self.poller: Optional[PollCoordinator] = None
        self.transport: Optional[Transport] = None
        self._tray: Optional[QSystemTrayIcon] = None
        self._menu: Optional[QMenu] = None
        self._toggle_action: Optional[QAction] = None
        self._settings_dialog: Optional[SettingsDialog] = None
        self._subscriptions: List[int] = []
        self._settings_timer: Optional[QTimer] = None
        self._enabled = False
        self._manual_shutdown_requested = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def manual_shutdown_requested(self) -> bool:
        return self._manual_shutdown_requested

    @property
    def tray(self) -> Optional[QSystemTrayIcon]:
        return self._tray

    def enable(self) -> None:
        if self._enabled:
            return
        app_logger.set_debug(self.settings.debug_mode)
        self._logger.info("Enabling {} v{}.", APP_NAME, APP_VERSION)

        self.alerts = AlertManager(self.settings, parent=self, **self._fade_kwargs)
        self.transport = self._transport_override or TransportClient(self)
        self.poller = PollCoordinator(self.settings, self.transport, self.alerts, parent=self)
        self.poller.connectionChanged.connect(self._update_status_icon)

        self._subscriptions = [
            self.settings.subscribe(REQUEST_TIMEOUT, self._on_request_timeout_changed),
            self.settings.subscribe(DEBUG_MODE, self._on_debug_mode_changed),
        ]

        self._create_tray()

        self._settings_timer = QTimer(self)
        self._settings_timer.setInterval(SETTINGS_REFRESH_INTERVAL_MS)
        self._settings_timer.timeout.connect(self.settings.reload)
        self._settings_timer.start()

        self._enabled = True
        self.poller.start()

    def disable(self) -> None:
        """Tear everything down so no timer or callback outlives this call."""
        if not self._enabled:
            return
        self._logger.info("Disabling {}.", APP_NAME)

        if self.poller is not None:
            self.poller.stop()
        if self.alerts is not None:
            self.alerts.clear_all_sync()
        if self.transport is not None:
            self.transport.close()
        if self.poller is not None:
            self.poller.release_settings()
        for token in self._subscriptions:
            self.settings.unsubscribe(token)
        self._subscriptions = []

        if self._settings_timer is not None:
            self._settings_timer.stop()
            self._settings_timer.deleteLater()
            self._settings_timer = None
        if self._settings_dialog is not None:
            self._settings_dialog.close()
            self._settings_dialog.deleteLater()
            self._settings_dialog = None
        self._destroy_tray()

        if self.poller is not None:
            self.poller.deleteLater()
        if self.alerts is not None:
            self.alerts.deleteLater()
        if isinstance(self.transport, TransportClient) and self.transport is not self._transport_override:
            self.transport.deleteLater()
        self.poller = None
        self.alerts = None
        self.transport = None
        self._enabled = False

    def shutdown(self) -> None:
        self._logger.info("Shutting down application on user request.")
        self._manual_shutdown_requested = True
        self.disable()
        app = QApplication.instance()
        if app is not None:
            app.quit()

    # ------------------------------------------------------------------#
    # Menu actions
    # ------------------------------------------------------------------#

    def show_test_alert(self) -> None:
        if self.alerts is None:
            return
        self._logger.debug("Manual test alert triggered.")
        self.alerts.show_alert(TEST_ALERT_TITLE, TEST_ALERT_BODY)

    def check_now(self) -> None:
        if self.poller is None:
            return
        self._logger.info("Manual check triggered from tray menu.")
        self.poller.poll_once()

    def toggle_connection(self) -> None:
        if self.poller is not None:
            self.poller.toggle()

    def clear_alerts(self) -> None:
        if self.alerts is not None:
            self.alerts.clear_all()

    def open_settings(self) -> None:
        if self._settings_dialog is None:
            self._settings_dialog = SettingsDialog(self.settings)
        self._settings_dialog.show()
        self._settings_dialog.raise_()
        self._settings_dialog.activateWindow()

    # ------------------------------------------------------------------#
    # Settings listeners
    # ------------------------------------------------------------------#

    def _on_request_timeout_changed(self, _key: str) -> None:
        # The transport reads the timeout per request; the poller re-checks its interval floor.
        self._logger.info("Request timeout changed to {} seconds.", self.settings.request_timeout)

    def _on_debug_mode_changed(self, _key: str) -> None:
        app_logger.set_debug(self.settings.debug_mode)

    # ------------------------------------------------------------------#
    # Tray icon
    # ------------------------------------------------------------------#

    def _create_tray(self) -> None:
        self._tray = QSystemTrayIcon(self)
        self._tray.setToolTip(f"{APP_NAME} v{APP_VERSION}")

        menu = QMenu()
        test_action = QAction("Test Notification", menu)
        check_action = QAction("Check Now", menu)
        self._toggle_action = QAction("Disconnect", menu)
        settings_action = QAction("Settings…", menu)
        clear_action = QAction("Clear All Notifications", menu)
        exit_action = QAction("Exit", menu)
        menu.addAction(test_action)
        menu.addAction(check_action)
        menu.addAction(self._toggle_action)
        menu.addAction(settings_action)
        menu.addAction(clear_action)
        menu.addSeparator()
        menu.addAction(exit_action)
        self._tray.setContextMenu(menu)
        self._menu = menu

        test_action.triggered.connect(self.show_test_alert)
        check_action.triggered.connect(self.check_now)
        self._toggle_action.triggered.connect(self.toggle_connection)
        settings_action.triggered.connect(self.open_settings)
        clear_action.triggered.connect(self.clear_alerts)
        exit_action.triggered.connect(self.shutdown)

        self._update_status_icon(False)
        self._tray.show()

    def _destroy_tray(self) -> None:
        if self._tray is not None:
            self._tray.hide()
            self._tray.deleteLater()
            self._tray = None
        if self._menu is not None:
            self._menu.deleteLater()
            self._menu = None
        self._toggle_action = None

    def _update_status_icon(self, connected: bool) -> None:
        if self._tray is None:
            return
        pixmap = QStyle.StandardPixmap.SP_DialogYesButton if connected else QStyle.StandardPixmap.SP_DialogNoButton
        self._tray.setIcon(QApplication.style().standardIcon(pixmap))
        state = "connected" if connected else "disconnected"
        self._tray.setToolTip(f"{APP_NAME} v{APP_VERSION} ({state})")
        if self._toggle_action is not None:
            self._toggle_action.setText("Disconnect" if connected else "Connect")
