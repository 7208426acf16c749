"""
Dialog for editing the Gotify connection and alert settings.
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtWidgets import (
    QCheckBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QLabel,
    QLineEdit,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from gotify_core.settings import (
    CLIENT_TOKEN,
    DEBUG_MODE,
    GOTIFY_URL,
    NOTIFICATION_TIMEOUT,
    POLL_INTERVAL,
    REQUEST_TIMEOUT,
    SettingsStore,
    is_valid_server_url,
    minimum_poll_interval,
)

_URL_HINT = "Server URL should start with http:// or https://"


class SettingsDialog(QDialog):
    """Edits the settings store; nothing is written until Save."""

    def __init__(self, settings: SettingsStore, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Gotify Notifier Settings")
        self.setMinimumWidth(460)
        self._settings = settings
        self._build_ui()
        self._load()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setSpacing(10)

        form = QFormLayout()
        self._url_edit = QLineEdit()
        self._url_edit.setPlaceholderText("https://gotify.example.com")
        self._url_edit.textChanged.connect(self._validate_url)
        form.addRow("Server URL:", self._url_edit)

        self._url_hint = QLabel(_URL_HINT)
        self._url_hint.setStyleSheet("color: #dc2626;")
        self._url_hint.setVisible(False)
        form.addRow("", self._url_hint)

        self._token_edit = QLineEdit()
        self._token_edit.setEchoMode(QLineEdit.EchoMode.Password)
        form.addRow("Client token:", self._token_edit)

        self._request_timeout_spin = QSpinBox()
        self._request_timeout_spin.setRange(5, 30)
        self._request_timeout_spin.setSingleStep(5)
        self._request_timeout_spin.setSuffix(" s")
        self._request_timeout_spin.valueChanged.connect(self._update_poll_minimum)
        form.addRow("Request timeout:", self._request_timeout_spin)

        self._poll_spin = QSpinBox()
        self._poll_spin.setRange(minimum_poll_interval(5), 300)
        self._poll_spin.setSingleStep(5)
        self._poll_spin.setSuffix(" s")
        form.addRow("Poll interval:", self._poll_spin)

        self._poll_hint = QLabel()
        self._poll_hint.setWordWrap(True)
        form.addRow("", self._poll_hint)

        self._notification_timeout_spin = QSpinBox()
        self._notification_timeout_spin.setRange(0, 3600)
        self._notification_timeout_spin.setSingleStep(5)
        self._notification_timeout_spin.setSpecialValueText("Never auto-close")
        self._notification_timeout_spin.setSuffix(" s")
        form.addRow("Notification timeout:", self._notification_timeout_spin)

        self._debug_check = QCheckBox("Write detailed logs for troubleshooting")
        form.addRow("Debug mode:", self._debug_check)
        layout.addLayout(form)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel)
        buttons.accepted.connect(self._handle_save)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _load(self) -> None:
        self._url_edit.setText(self._settings.gotify_url)
        self._token_edit.setText(self._settings.client_token)
        self._request_timeout_spin.setValue(self._settings.request_timeout)
        self._update_poll_minimum(self._settings.request_timeout)
        self._poll_spin.setValue(self._settings.poll_interval)
        self._notification_timeout_spin.setValue(self._settings.notification_timeout)
        self._debug_check.setChecked(self._settings.debug_mode)

    def _validate_url(self, text: str) -> None:
        self._url_hint.setVisible(bool(text) and not is_valid_server_url(text.strip()))

    def _update_poll_minimum(self, request_timeout: int) -> None:
        minimum = minimum_poll_interval(request_timeout)
        # setMinimum raises the current value when it falls below the new floor.
        self._poll_spin.setMinimum(minimum)
        self._poll_hint.setText(f"How often to check for new notifications (minimum {minimum} seconds)")

    @property
    def url_hint_visible(self) -> bool:
        return not self._url_hint.isHidden()

    @property
    def poll_minimum(self) -> int:
        return self._poll_spin.minimum()

    def _handle_save(self) -> None:
        # Order matters: the poll interval is clamped against the request timeout.
        self._settings.set_value(GOTIFY_URL, self._url_edit.text().strip())
        self._settings.set_value(CLIENT_TOKEN, self._token_edit.text().strip())
        self._settings.set_value(REQUEST_TIMEOUT, self._request_timeout_spin.value())
        self._settings.set_value(NOTIFICATION_TIMEOUT, self._notification_timeout_spin.value())
        self._settings.set_value(DEBUG_MODE, self._debug_check.isChecked())
        self._settings.set_value(POLL_INTERVAL, self._poll_spin.value())
        self.accept()
