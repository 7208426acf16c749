"""
Stacked on-screen alerts with fade animations and auto-close timers.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from PySide6.QtCore import QEasingCurve, QObject, QPoint, QPropertyAnimation, Qt, QTimer, Signal
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QApplication,
    QGraphicsDropShadowEffect,
    QHBoxLayout,
    QLabel,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from gotify_core.settings import SettingsStore
from gotify_notifier.gotify_notifier import logger as app_logger
from gotify_shared.text_layout import alert_height, stack_offset, wrap_text

ALERT_WIDTH = 420
DEFAULT_TITLE = "Gotify"
FADE_IN_MS = 300
FADE_OUT_MS = 200
ALERT_OPACITY = 0.95


class AlertPopup(QWidget):
    """Frameless card showing a title, a pre-wrapped body and a close button."""

    closeRequested = Signal()

    def __init__(self, title: str, wrapped_body: str, height: int, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowFlags(
            Qt.WindowType.Tool | Qt.WindowType.FramelessWindowHint | Qt.WindowType.WindowStaysOnTopHint
        )
        self.setObjectName("GotifyAlert")
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)

        self._container = QWidget(self)
        self._container.setObjectName("AlertCard")
        shadow = QGraphicsDropShadowEffect(self._container)
        shadow.setBlurRadius(24)
        shadow.setColor(QColor(0, 0, 0, 140))
        shadow.setOffset(0, 10)
        self._container.setGraphicsEffect(shadow)

        self._title_label = QLabel(title)
        self._title_label.setObjectName("AlertTitle")

        self._close_button = QToolButton()
        self._close_button.setObjectName("AlertClose")
        self._close_button.setText("✖")
        self._close_button.setCursor(Qt.CursorShape.PointingHandCursor)
        self._close_button.setToolTip("Close")
        self._close_button.clicked.connect(self.closeRequested)  # type: ignore[arg-type]

        self._message_label = QLabel(wrapped_body)
        self._message_label.setObjectName("AlertMessage")
        self._message_label.setTextFormat(Qt.TextFormat.PlainText)
        self._message_label.setAlignment(Qt.AlignmentFlag.AlignTop | Qt.AlignmentFlag.AlignLeft)

        header = QHBoxLayout()
        header.setSpacing(8)
        header.addWidget(self._title_label, 1)
        header.addWidget(self._close_button)

        layout = QVBoxLayout(self._container)
        layout.setContentsMargins(14, 10, 14, 12)
        layout.setSpacing(6)
        layout.addLayout(header)
        layout.addWidget(self._message_label, 1)

        base_layout = QHBoxLayout(self)
        base_layout.setContentsMargins(0, 0, 0, 0)
        base_layout.addWidget(self._container)

        self.setFixedSize(ALERT_WIDTH, height)
        self.setStyleSheet(
            """
            QWidget#AlertCard {
                background-color: rgba(24, 24, 28, 0.85);
                border-radius: 12px;
                border: 1px solid rgba(255, 255, 255, 0.10);
            }
            QWidget#AlertCard QLabel#AlertTitle {
                color: white;
                font-weight: bold;
                font-size: 14px;
            }
            QWidget#AlertCard QLabel#AlertMessage {
                color: rgba(255, 255, 255, 0.85);
            }
            QToolButton#AlertClose {
                color: rgba(255, 255, 255, 0.7);
                background: transparent;
                border: none;
            }
            QToolButton#AlertClose:hover {
                color: white;
            }
            """
        )

    @property
    def title_text(self) -> str:
        return self._title_label.text()

    @property
    def message_text(self) -> str:
        return self._message_label.text()

    def click_close(self) -> None:
        self._close_button.click()


@dataclass(eq=False)
class Alert:
    handle: int
    title: str
    body: str
    height: int
    popup: AlertPopup
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expiry_timer: Optional[QTimer] = None
    animation: Optional[QPropertyAnimation] = None
    close_connected: bool = False
    closing: bool = False
    position: int = 0
    y: int = 0


class AlertManager(QObject):
    """
    Owns every live alert from creation to destruction.

    Alerts stack from the top of the primary screen in creation order.
    Closing one shifts the alerts below it up by one slot.
    """

    def __init__(
        self,
        settings: SettingsStore,
        *,
        fade_in_ms: int = FADE_IN_MS,
        fade_out_ms: int = FADE_OUT_MS,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._logger = app_logger.get_logger()
        self._settings = settings
        self._fade_in_ms = fade_in_ms
        self._fade_out_ms = fade_out_ms
        self._alerts: List[Alert] = []
        self._by_handle: Dict[int, Alert] = {}
        self._handles = itertools.count(1)
        # Hidden parent of every popup. Each fade animation is a child of its popup.
        self._host = QWidget()

    def __len__(self) -> int:
        return len(self._alerts)

    def handles(self) -> List[int]:
        """Handles of live alerts in stacking order."""
        return [alert.handle for alert in self._alerts]

    def get(self, handle: int) -> Optional[Alert]:
        return self._by_handle.get(handle)

    def show_alert(self, title: str, body: str) -> int:
        self._logger.debug("Creating alert: {}", title)
        lines = wrap_text(body or "")
        height = alert_height(len(lines))
        handle = next(self._handles)
        popup = AlertPopup(title or DEFAULT_TITLE, "\n".join(lines), height, self._host)
        alert = Alert(handle=handle, title=title, body=body, height=height, popup=popup)

        popup.closeRequested.connect(lambda handle=handle: self._on_close_clicked(handle))
        alert.close_connected = True

        self._alerts.append(alert)
        self._by_handle[handle] = alert
        self._place(alert, len(self._alerts) - 1)

        timeout_seconds = self._settings.notification_timeout
        if timeout_seconds > 0:
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.setInterval(timeout_seconds * 1000)
            timer.timeout.connect(lambda handle=handle: self._on_expired(handle))
            timer.start()
            alert.expiry_timer = timer

        self._fade_in(alert)
        return handle

    def close_alert(self, handle: int) -> None:
        """Fade out and destroy an alert. Unknown or closing handles are ignored."""
        alert = self._by_handle.get(handle)
        if alert is None or alert.closing:
            return
        self._logger.debug("Closing alert {}", handle)
        alert.closing = True
        self._release_hooks(alert)

        if self._fade_out_ms <= 0:
            self._finish_close(handle)
            return

        animation = self._animate(alert, alert.popup.windowOpacity(), 0.0, self._fade_out_ms)
        animation.finished.connect(lambda handle=handle: self._finish_close(handle))
        animation.start()

    def clear_all(self) -> None:
        """Close every alert with the regular fade-out."""
        self._logger.debug("Clearing all alerts with animation.")
        for handle in self.handles():
            self.close_alert(handle)

    def clear_all_sync(self) -> None:
        """Tear down every alert immediately, including ones mid fade-out."""
        self._logger.debug("Synchronously clearing {} alert(s).", len(self._alerts))
        alerts = list(self._alerts)
        self._alerts.clear()
        self._by_handle.clear()
        for alert in alerts:
            alert.closing = True
            self._release_hooks(alert)
            self._destroy(alert)

    def _on_close_clicked(self, handle: int) -> None:
        self._logger.debug("Alert {} closed by user.", handle)
        self.close_alert(handle)

    def _on_expired(self, handle: int) -> None:
        if handle in self._by_handle:
            self._logger.debug("Alert {} expired.", handle)
            self.close_alert(handle)

    def _release_hooks(self, alert: Alert) -> None:
        if alert.expiry_timer is not None:
            alert.expiry_timer.stop()
            alert.expiry_timer.deleteLater()
            alert.expiry_timer = None
        if alert.close_connected:
            alert.popup.closeRequested.disconnect()
            alert.close_connected = False

    def _finish_close(self, handle: int) -> None:
        alert = self._by_handle.pop(handle, None)
        if alert is None:
            return
        self._alerts.remove(alert)
        self._destroy(alert)
        self._reposition()

    def _destroy(self, alert: Alert) -> None:
        if alert.animation is not None:
            alert.animation.stop()
            alert.animation = None
        alert.popup.hide()
        alert.popup.deleteLater()

    def _reposition(self) -> None:
        for index, alert in enumerate(self._alerts):
            self._place(alert, index)

    def _place(self, alert: Alert, index: int) -> None:
        alert.position = index
        alert.y = stack_offset(index, alert.height)
        x = 0
        top = 0
        screen = QApplication.primaryScreen()
        if screen is not None:
            geometry = screen.availableGeometry()
            x = geometry.x() + (geometry.width() - ALERT_WIDTH) // 2
            top = geometry.y()
        alert.popup.move(QPoint(x, top + alert.y))

    def _fade_in(self, alert: Alert) -> None:
        if self._fade_in_ms <= 0:
            alert.popup.setWindowOpacity(ALERT_OPACITY)
            alert.popup.show()
            return
        alert.popup.setWindowOpacity(0.0)
        alert.popup.show()
        self._animate(alert, 0.0, ALERT_OPACITY, self._fade_in_ms).start()

    def _animate(self, alert: Alert, start: float, end: float, duration_ms: int) -> QPropertyAnimation:
        if alert.animation is not None:
            alert.animation.stop()
            alert.animation.deleteLater()
        animation = QPropertyAnimation(alert.popup, b"windowOpacity", alert.popup)
        animation.setStartValue(start)
        animation.setEndValue(end)
        animation.setDuration(duration_ms)
        animation.setEasingCurve(QEasingCurve.Type.OutQuad)
        alert.animation = animation
        return animation
