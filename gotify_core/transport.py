"""
HTTP transport for polling the Gotify server on the Qt event loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from PySide6.QtCore import QObject, QUrl
from PySide6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

USER_AGENT = "gotify-notifier/1.0"
MIN_TIMEOUT_SECONDS = 5
MAX_TIMEOUT_SECONDS = 30
HTTP_OK = 200
HTTP_UNAUTHORIZED = 401

NetworkError = QNetworkReply.NetworkError


class TransportError(Exception):
    """Base class for classified request failures."""

    description = "Request failed"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.detail:
            return f"{self.description} ({self.detail})"
        return self.description


class TlsError(TransportError):
    description = "SSL certificate error - check if your Gotify URL uses HTTPS"


class DnsResolutionError(TransportError):
    description = "Cannot resolve server address - check your Gotify URL"


class ConnectionRefused(TransportError):
    description = "Cannot connect to server - check your Gotify URL and network connection"


class AuthenticationFailed(TransportError):
    description = "Authentication failed - check your client token"


class RequestTimedOut(TransportError):
    description = "Server did not respond in time"


class RequestConstructionFailed(TransportError):
    description = "Could not create request"


class GenericHttpError(TransportError):
    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        super().__init__(detail)

    def describe(self) -> str:
        return f"HTTP error {self.status_code}"


@dataclass(frozen=True)
class FetchResult:
    body: Optional[bytes] = None
    error: Optional[TransportError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


FetchCallback = Callable[[FetchResult], None]


def classify_failure(network_error: NetworkError, status_code: Optional[int]) -> TransportError:
    """Map a Qt network error and HTTP status onto a :class:`TransportError`."""
    if status_code == HTTP_UNAUTHORIZED or network_error == NetworkError.AuthenticationRequiredError:
        return AuthenticationFailed()
    if network_error == NetworkError.SslHandshakeFailedError:
        return TlsError()
    if network_error == NetworkError.HostNotFoundError:
        return DnsResolutionError()
    if network_error == NetworkError.ConnectionRefusedError:
        return ConnectionRefused()
    if network_error in (NetworkError.TimeoutError, NetworkError.OperationCanceledError):
        return RequestTimedOut()
    return GenericHttpError(status_code or 0)


def clamp_timeout(seconds: int) -> int:
    return max(MIN_TIMEOUT_SECONDS, min(MAX_TIMEOUT_SECONDS, int(seconds)))


class TransportClient(QObject):
    """
    Single long-lived HTTP session.

    Each :meth:`fetch` delivers exactly one :class:`FetchResult` to its
    callback unless the client is closed first; :meth:`close` aborts every
    in-flight request without delivering results.
    """

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._manager: Optional[QNetworkAccessManager] = QNetworkAccessManager(self)
        self._pending: Dict[QNetworkReply, FetchCallback] = {}

    @property
    def closed(self) -> bool:
        return self._manager is None

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def fetch(
        self,
        url: str,
        headers: Mapping[str, str],
        timeout_seconds: int,
        callback: FetchCallback,
    ) -> None:
        if self._manager is None:
            callback(FetchResult(error=RequestConstructionFailed("session closed")))
            return

        qurl = QUrl(url)
        if not qurl.isValid() or qurl.scheme() not in ("http", "https") or not qurl.host():
            callback(FetchResult(error=RequestConstructionFailed(f"invalid URL {url!r}")))
            return

        request = QNetworkRequest(qurl)
        for name, value in headers.items():
            request.setRawHeader(name.encode("utf-8"), value.encode("utf-8"))
        request.setRawHeader(b"User-Agent", USER_AGENT.encode("utf-8"))
        request.setTransferTimeout(clamp_timeout(timeout_seconds) * 1000)

        reply = self._manager.get(request)
        self._pending[reply] = callback
        reply.finished.connect(lambda reply=reply: self._on_finished(reply))

    def close(self) -> None:
        """Abort in-flight requests and release the session."""
        if self._manager is None:
            return
        pending = list(self._pending)
        self._pending.clear()
        for reply in pending:
            reply.abort()
            reply.deleteLater()
        self._manager.deleteLater()
        self._manager = None

    def _on_finished(self, reply: QNetworkReply) -> None:
        callback = self._pending.pop(reply, None)
        if callback is None:
            # Aborted by close(); nothing is listening any more.
            return
        try:
            result = self._read_reply(reply)
        finally:
            reply.deleteLater()
        callback(result)

    def _read_reply(self, reply: QNetworkReply) -> FetchResult:
        status = reply.attribute(QNetworkRequest.Attribute.HttpStatusCodeAttribute)
        status_code = int(status) if status is not None else None
        network_error = reply.error()

        if network_error == NetworkError.NoError and status_code == HTTP_OK:
            return FetchResult(body=bytes(reply.readAll().data()))
        if network_error == NetworkError.NoError:
            return FetchResult(error=GenericHttpError(status_code or 0))
        return FetchResult(error=classify_failure(network_error, status_code))
