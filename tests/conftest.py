"""Shared fixtures: offscreen Qt application and a throwaway settings store."""

import os
import tempfile
import time

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("GOTIFY_NOTIFIER_LOG_DIR", tempfile.mkdtemp(prefix="gotify-notifier-logs-"))

import pytest  # noqa: E402
from PySide6.QtCore import QCoreApplication, QEvent, QSettings  # noqa: E402
from PySide6.QtWidgets import QApplication  # noqa: E402

from gotify_core.settings import SettingsStore  # noqa: E402


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def settings(qapp, tmp_path):
    backend = QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat)
    return SettingsStore(backend)


@pytest.fixture
def wait_until(qapp):
    """Pump the Qt event loop until ``predicate()`` is true or the timeout expires."""

    def _wait(predicate, timeout=5.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            qapp.processEvents()
            if predicate():
                return True
            time.sleep(0.01)
        qapp.processEvents()
        return predicate()

    return _wait


@pytest.fixture
def dispose(qapp):
    """Delete a QObject now and run the pending deferred deletes."""

    def _dispose(obj):
        obj.deleteLater()
        QCoreApplication.sendPostedEvents(None, QEvent.Type.DeferredDelete)
        qapp.processEvents()

    return _dispose
