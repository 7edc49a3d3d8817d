"""SMTP session and transport connection built on :mod:`smtplib`.

A :class:`Session` holds the connection properties and the credential
provider; each call to :meth:`Session.get_transport` hands out a fresh
:class:`SMTPConnection` that can be observed by listeners, connected, used
to send one or more messages, and closed.

When TRACE logging is enabled, the smtplib debug stream is captured and
re-emitted through the module logger with ``[SMTP]`` prefixes, together
with TLS session details.

Examples:
    Send an already-built message::

        session = Session({"host": "smtp.example.com", "port": 587})
        with session.get_transport() as connection:
            connection.connect()
            connection.send_message(message, ["user@example.com"])
"""

from __future__ import annotations

import contextlib
import io
import logging
import smtplib
import ssl
import sys
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from mailsender.listeners import (
    ConnectionEvent,
    ConnectionEventType,
    ConnectionListener,
    DeliveryStatus,
    TransportEvent,
    TransportListener,
    transport_handler_name,
)
from mailsender.logging import TRACE_LEVEL
from mailsender.models import SMTPCredentials, SMTPSecurity

if TYPE_CHECKING:
    from email.message import EmailMessage

__all__ = [
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT",
    "Authenticator",
    "SMTPConnection",
    "Session",
    "StaticAuthenticator",
]

log = logging.getLogger(__name__)

DEFAULT_PORT = 25
DEFAULT_TIMEOUT = 30.0
_PROTOCOLS = frozenset({"smtp", "smtps"})


@runtime_checkable
class Authenticator(Protocol):
    """Credential provider consulted when a connection is opened."""

    def get_credentials(self) -> SMTPCredentials | None:
        """Return the credentials to log in with, or None to skip login."""
        ...


class StaticAuthenticator:
    """Authenticator returning the same credentials every time."""

    def __init__(self, credentials: SMTPCredentials) -> None:
        self._credentials = credentials

    def get_credentials(self) -> SMTPCredentials:
        return self._credentials

    def __repr__(self) -> str:
        return f"StaticAuthenticator(username={self._credentials.username!r})"


class Session:
    """Connection properties plus credential provider.

    Args:
        properties: Mapping with ``host`` (required), ``port``, ``protocol``
            (``smtp`` or ``smtps``), ``from`` (envelope sender), ``timeout``,
            ``use_ssl``, ``use_starttls`` and ``verify_certs``.
        authenticator: Optional credential provider.

    Raises:
        ValueError: If ``host`` is missing or the protocol is unsupported.
    """

    def __init__(self, properties: Mapping[str, Any], authenticator: Authenticator | None = None) -> None:
        if not properties.get("host"):
            raise ValueError("SMTP host is required")
        protocol = str(properties.get("protocol", "smtp")).lower()
        if protocol not in _PROTOCOLS:
            raise ValueError(f"Unsupported transport protocol: {protocol!r}")
        self._properties = dict(properties)
        self._properties["protocol"] = protocol
        self._authenticator = authenticator

    @property
    def properties(self) -> Mapping[str, Any]:
        """Return a read-only view of the session properties."""
        return MappingProxyType(self._properties)

    def get_transport(self) -> SMTPConnection:
        """Return a new, unconnected transport connection."""
        return SMTPConnection(self._properties, self._authenticator)


class SMTPConnection:
    """One SMTP connection with listener notification.

    The connection is opened by :meth:`connect` and released by
    :meth:`close`. Using it as a context manager closes it on exit.
    """

    def __init__(self, properties: Mapping[str, Any], authenticator: Authenticator | None = None) -> None:
        self._host = str(properties["host"])
        self._port = int(properties.get("port") or DEFAULT_PORT)
        self._timeout = float(properties.get("timeout") or DEFAULT_TIMEOUT)
        self._security = SMTPSecurity(
            use_ssl=bool(properties.get("use_ssl", False)) or properties.get("protocol") == "smtps",
            use_starttls=bool(properties.get("use_starttls", True)),
            verify_certs=bool(properties.get("verify_certs", True)),
        )
        self._envelope_sender: str | None = properties.get("from") or None
        self._authenticator = authenticator
        self._client: smtplib.SMTP | None = None
        self._transport_listeners: list[TransportListener] = []
        self._connection_listeners: list[ConnectionListener] = []

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def security(self) -> SMTPSecurity:
        return self._security

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def add_transport_listener(self, listener: TransportListener) -> None:
        self._transport_listeners.append(listener)

    def add_connection_listener(self, listener: ConnectionListener) -> None:
        self._connection_listeners.append(listener)

    def connect(self) -> None:
        """Open the connection, negotiate TLS and authenticate.

        Raises:
            smtplib.SMTPException: On protocol or authentication errors.
            OSError: If the server cannot be reached.
            RuntimeError: If the connection is already open.
        """
        if self._client is not None:
            raise RuntimeError(f"Already connected to {self._host}:{self._port}")

        trace_enabled = log.isEnabledFor(TRACE_LEVEL)
        if trace_enabled:
            mode = "SSL" if self._security.use_ssl else "plain"
            log.log(TRACE_LEVEL, "[SMTP] Connecting to %s:%d (%s, timeout=%.1fs)", self._host, self._port, mode, self._timeout)

        context = self._ssl_context()
        with _smtp_trace() as debug:
            # No host in the constructor: the debug level must be set before
            # connect() so the server greeting is traced too.
            if self._security.use_ssl:
                client: smtplib.SMTP = smtplib.SMTP_SSL(timeout=self._timeout, context=context)
            else:
                client = smtplib.SMTP(timeout=self._timeout)
            try:
                if debug:
                    client.set_debuglevel(1)
                code, reply = client.connect(self._host, self._port)
                if code != 220:
                    raise smtplib.SMTPConnectError(code, reply)
                if trace_enabled and self._security.use_ssl:
                    _log_tls_info("SSL", getattr(client, "sock", None))
                self._handshake(client, context, trace_enabled)
            except BaseException:
                with contextlib.suppress(smtplib.SMTPException, OSError):
                    client.close()
                raise

        self._client = client
        log.debug("Connected to %s:%d", self._host, self._port)
        self._notify_connection(ConnectionEventType.OPENED)

    def send_message(self, message: EmailMessage, recipients: Iterable[str]) -> None:
        """Send ``message`` to ``recipients`` and notify transport listeners.

        Listeners receive ``DELIVERED`` when every recipient is accepted,
        ``PARTIALLY_DELIVERED`` when some are refused, and ``NOT_DELIVERED``
        before the failure is re-raised.

        Raises:
            ValueError: If there are no recipients.
            RuntimeError: If the connection is not open.
            smtplib.SMTPException: On delivery failure.
            OSError: On network failure.
        """
        client = self._require_client()
        addresses = tuple(dict.fromkeys(recipients))
        if not addresses:
            raise ValueError("No recipient addresses")

        trace_enabled = log.isEnabledFor(TRACE_LEVEL)
        if trace_enabled:
            log.log(TRACE_LEVEL, "[SMTP] MAIL FROM: <%s>", self._envelope_sender or message.get("From"))
            log.log(TRACE_LEVEL, "[SMTP] RCPT TO: %s", ", ".join(addresses))
            log.log(TRACE_LEVEL, "[SMTP] Subject: %s", message.get("Subject"))

        try:
            with _smtp_trace():
                refused = client.send_message(message, from_addr=self._envelope_sender, to_addrs=list(addresses))
        except smtplib.SMTPRecipientsRefused as e:
            invalid, unsent = _split_refused(e.recipients)
            self._notify_transport(DeliveryStatus.NOT_DELIVERED, message, valid_unsent=unsent, invalid=invalid)
            raise
        except smtplib.SMTPServerDisconnected:
            self._client = None
            self._notify_transport(DeliveryStatus.NOT_DELIVERED, message, valid_unsent=addresses)
            self._notify_connection(ConnectionEventType.DISCONNECTED)
            raise
        except (smtplib.SMTPException, OSError):
            self._notify_transport(DeliveryStatus.NOT_DELIVERED, message, valid_unsent=addresses)
            raise

        refused = refused or {}
        sent = tuple(address for address in addresses if address not in refused)
        if refused:
            invalid, unsent = _split_refused(refused)
            log.warning("Message partially delivered, refused: %s", ", ".join(refused))
            self._notify_transport(
                DeliveryStatus.PARTIALLY_DELIVERED, message, valid_sent=sent, valid_unsent=unsent, invalid=invalid
            )
        else:
            self._notify_transport(DeliveryStatus.DELIVERED, message, valid_sent=sent)

        log.debug("Message sent to %d recipient(s) via %s:%d", len(sent), self._host, self._port)
        if trace_enabled:
            log.log(TRACE_LEVEL, "[SMTP] Message sent successfully")

    def close(self) -> None:
        """Terminate the session with QUIT and release the socket.

        Closing an unconnected instance does nothing. Connection listeners
        receive ``CLOSED`` even if QUIT fails.

        Raises:
            smtplib.SMTPException: If QUIT fails.
            OSError: If the socket fails during QUIT.
        """
        client = self._client
        if client is None:
            return
        self._client = None
        try:
            with _smtp_trace():
                client.quit()
        except (smtplib.SMTPException, OSError):
            client.close()
            raise
        finally:
            log.debug("Closed connection to %s:%d", self._host, self._port)
            self._notify_connection(ConnectionEventType.CLOSED)

    def __enter__(self) -> SMTPConnection:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "closed"
        return f"SMTPConnection({self._host}:{self._port}, {state})"

    def _handshake(self, client: smtplib.SMTP, context: ssl.SSLContext, trace_enabled: bool) -> None:
        client.ehlo()
        if not self._security.use_ssl and self._security.use_starttls and client.has_extn("STARTTLS"):
            if trace_enabled:
                log.log(TRACE_LEVEL, "[SMTP] Upgrading connection with STARTTLS")
            client.starttls(context=context)
            client.ehlo()
            if trace_enabled:
                _log_tls_info("TLS", getattr(client, "sock", None))

        credentials = self._authenticator.get_credentials() if self._authenticator is not None else None
        if credentials is None:
            return
        if trace_enabled:
            log.log(TRACE_LEVEL, "[SMTP] Authenticating as: %s", credentials.username)
        client.login(credentials.username, credentials.password)
        if trace_enabled:
            log.log(TRACE_LEVEL, "[SMTP] Authentication successful")

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._security.verify_certs:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _require_client(self) -> smtplib.SMTP:
        if self._client is None:
            raise RuntimeError(f"Not connected to {self._host}:{self._port}")
        return self._client

    def _notify_transport(
        self,
        status: DeliveryStatus,
        message: EmailMessage,
        *,
        valid_sent: tuple[str, ...] = (),
        valid_unsent: tuple[str, ...] = (),
        invalid: tuple[str, ...] = (),
    ) -> None:
        event = TransportEvent(status, message, valid_sent, valid_unsent, invalid)
        handler_name = transport_handler_name(status)
        for listener in tuple(self._transport_listeners):
            try:
                getattr(listener, handler_name)(event)
            except Exception:  # pylint: disable=broad-except
                log.warning("Transport listener %r failed on %s", listener, status.value, exc_info=True)

    def _notify_connection(self, event_type: ConnectionEventType) -> None:
        event = ConnectionEvent(event_type, self._host, self._port)
        for listener in tuple(self._connection_listeners):
            try:
                getattr(listener, event_type.value)(event)
            except Exception:  # pylint: disable=broad-except
                log.warning("Connection listener %r failed on %s", listener, event_type.value, exc_info=True)


def _split_refused(refused: Mapping[str, tuple[int, bytes]]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Split refused recipients into (invalid, valid_unsent) by reply code."""
    invalid = tuple(address for address, (code, _) in refused.items() if code >= 500)
    unsent = tuple(address for address, (code, _) in refused.items() if code < 500)
    return invalid, unsent


@contextlib.contextmanager
def _capture_smtp_debug() -> Iterator[io.StringIO]:
    """Redirect stderr, where smtplib prints its debug output."""
    buffer = io.StringIO()
    original = sys.stderr
    sys.stderr = buffer
    try:
        yield buffer
    finally:
        sys.stderr = original


@contextlib.contextmanager
def _smtp_trace() -> Iterator[bool]:
    """Capture smtplib debug output when TRACE is enabled.

    Yields True when capture is active.
    """
    if not log.isEnabledFor(TRACE_LEVEL):
        yield False
        return
    buffer = io.StringIO()
    try:
        with _capture_smtp_debug() as buffer:
            yield True
    finally:
        _log_smtp_debug_output(buffer)


def _log_smtp_debug_output(buffer: io.StringIO) -> None:
    """Re-emit captured smtplib debug lines at TRACE level."""
    if not log.isEnabledFor(TRACE_LEVEL):
        return
    for raw_line in buffer.getvalue().splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("send:"):
            log.log(TRACE_LEVEL, "[SMTP] >>> %s", line[len("send:") :].strip())
        elif line.startswith("reply:"):
            log.log(TRACE_LEVEL, "[SMTP] <<< %s", line[len("reply:") :].strip())
        else:
            log.log(TRACE_LEVEL, "[SMTP] %s", line)


def _first_common_name(entries: Any) -> str | None:
    try:
        for rdn in entries:
            for key, value in rdn:
                if key == "commonName":
                    return str(value)
    except (TypeError, ValueError):
        return None
    return None


def _extract_ssl_info(sock: ssl.SSLSocket | None) -> dict[str, Any]:
    """Collect TLS version, cipher and certificate names from ``sock``."""
    if sock is None:
        return {}

    info: dict[str, Any] = {}
    try:
        info["version"] = sock.version() or "unknown"
    except Exception:  # pylint: disable=broad-except
        info["version"] = "unknown"

    try:
        cipher = sock.cipher()
    except Exception:  # pylint: disable=broad-except
        cipher = None
    if cipher:
        info["cipher_name"], info["cipher_protocol"], info["cipher_bits"] = cipher

    try:
        cert = sock.getpeercert()
    except Exception:  # pylint: disable=broad-except
        cert = None
    if cert:
        peer_cn = _first_common_name(cert.get("subject", ()))
        if peer_cn:
            info["peer_cn"] = peer_cn
        issuer_cn = _first_common_name(cert.get("issuer", ()))
        if issuer_cn:
            info["issuer_cn"] = issuer_cn
        if "notBefore" in cert:
            info["valid_from"] = cert["notBefore"]
        if "notAfter" in cert:
            info["valid_until"] = cert["notAfter"]
    return info


def _log_tls_info(label: str, sock: Any) -> None:
    info = _extract_ssl_info(sock)
    if not info:
        return
    log.log(
        TRACE_LEVEL,
        "[SMTP] %s: %s, cipher=%s (%s bits), peer=%s, issuer=%s",
        label,
        info.get("version"),
        info.get("cipher_name", "?"),
        info.get("cipher_bits", "?"),
        info.get("peer_cn", "?"),
        info.get("issuer_cn", "?"),
    )
