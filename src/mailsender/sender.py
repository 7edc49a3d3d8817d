"""Fluent mail builder and send orchestration.

:class:`MailSender` accumulates everything a message needs (subject,
sender, recipients, body text, attachments, inline images, listeners) and
turns it into a ``multipart/mixed`` :class:`~email.message.EmailMessage`
when :meth:`MailSender.send` is called. SMTP itself is handled by
:mod:`mailsender.transport`, on top of :mod:`smtplib`.

A sender is meant for one flow at a time: configure, send, optionally
``reset()``, reuse. It is not safe to mutate from several threads without
external locking.

Examples:
    Plain text message::

        MailSender("smtp.example.com").set_from("me@example.com") \\
            .add_recipient("you@example.com") \\
            .set_subject("Hello") \\
            .add_text("Hi there!") \\
            .send()

    HTML with an inline logo and an attachment::

        sender = MailSender("smtp.example.com", "login", "secret")
        (
            sender.set_from("me@example.com")
            .add_recipients("a@example.com", "b@example.com")
            .add_text('<p>Report attached</p><img src="cid:logo">')
            .add_image("logo", Path("logo.png"))
            .add_file("report.csv", Path("/tmp/report-2024.csv"))
            .send()
        )
"""

from __future__ import annotations

import logging
import os
import smtplib
from collections.abc import Callable, Iterable, Mapping
from email.headerregistry import Address
from email.message import EmailMessage, MIMEPart
from email.utils import format_datetime, getaddresses, localtime, make_msgid
from pathlib import Path
from typing import TYPE_CHECKING, Any, overload

from mailsender.exceptions import DEFAULT_SEND_ERROR_MESSAGE, CannotSendMailError, MailConfigError
from mailsender.listeners import ConnectionListener, TransportListener
from mailsender.logging import TRACE_LEVEL
from mailsender.models import DEFAULT_MIME_TYPE, BodyMode, MimeTypedContent, SMTPCredentials, SMTPSecurity
from mailsender.multimap import MultiMap
from mailsender.parts import BodyPartFactory
from mailsender.transport import DEFAULT_PORT, DEFAULT_TIMEOUT, Authenticator, Session, StaticAuthenticator

if TYPE_CHECKING:
    from mailsender.transport import SMTPConnection

__all__ = ["NO_SUBJECT", "BeforeCreateSessionHook", "BeforeSendMessageHook", "MailSender"]

log = logging.getLogger(__name__)

NO_SUBJECT = "no subject"

BeforeCreateSessionHook = Callable[[dict[str, Any]], None]
BeforeSendMessageHook = Callable[["SMTPConnection", EmailMessage], None]

FileSource = Path | str | os.PathLike[str]
ByteSource = bytes | bytearray | memoryview


class MailSender:
    """Mutable, chainable message builder bound to one SMTP server.

    Every mutator returns the sender itself. :meth:`send` reads the current
    state without clearing it; :meth:`reset` clears it explicitly.

    Args:
        host: SMTP server host name.
        login: Optional login, used together with ``password``.
        password: Optional password.
        authenticator: Credential provider; takes precedence over
            ``login``/``password``.
        port: SMTP server port (default: 25).
        security: TLS settings (default: STARTTLS when advertised).
        timeout: Socket timeout in seconds.
        before_create_session: Called with the mutable session properties
            before the session is created.
        before_send_message: Called with the connected transport and the
            finalized message right before it is sent.

    Raises:
        ValueError: If ``host`` is empty.
    """

    def __init__(
        self,
        host: str,
        login: str | None = None,
        password: str | None = None,
        *,
        authenticator: Authenticator | None = None,
        port: int = DEFAULT_PORT,
        security: SMTPSecurity | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        before_create_session: BeforeCreateSessionHook | None = None,
        before_send_message: BeforeSendMessageHook | None = None,
    ) -> None:
        if not host:
            raise ValueError("SMTP host is required")
        if authenticator is None and login is not None:
            authenticator = StaticAuthenticator(SMTPCredentials(login, password or ""))

        self._host = host
        self._port = port
        self._security = security or SMTPSecurity()
        self._timeout = timeout
        self._authenticator = authenticator
        self._before_create_session = before_create_session
        self._before_send_message = before_send_message
        self._part_factory = BodyPartFactory()

        self._mode = BodyMode.TEXT
        self._text: list[str] = []
        self._subject = NO_SUBJECT
        self._sender: str | None = None
        self._files: MultiMap[str, Path] = MultiMap()
        self._file_contents: MultiMap[str, MimeTypedContent] = MultiMap()
        self._images: dict[str, Path] = {}
        self._image_contents: dict[str, MimeTypedContent] = {}
        self._recipients: dict[str, None] = {}
        self._recipients_cc: dict[str, None] = {}
        self._recipients_bcc: dict[str, None] = {}
        self._transport_listeners: list[TransportListener] = []
        self._connection_listeners: list[ConnectionListener] = []

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None = None, **overrides: Any) -> MailSender:
        """Create a sender from the ``mail`` configuration section.

        Reads ``mail.smtp`` for the server and ``mail.defaults`` for the
        initial sender and subject.

        Args:
            config: Full configuration mapping. Defaults to the loaded
                ``mailsender.conf.yml``.
            **overrides: Keyword arguments forwarded to the constructor,
                taking precedence over the configuration.

        Raises:
            MailConfigError: If ``mail.smtp.host`` is missing or a value
                has the wrong type.
        """
        if config is None:
            from mailsender.config import get_config

            config = get_config()

        mail_cfg = config.get("mail") or {}
        smtp_cfg = mail_cfg.get("smtp") or {}
        defaults_cfg = mail_cfg.get("defaults") or {}
        security_cfg = smtp_cfg.get("security") or {}

        host = overrides.pop("host", None) or smtp_cfg.get("host")
        if not host:
            raise MailConfigError("mail.smtp.host is required")

        try:
            kwargs: dict[str, Any] = {
                "port": int(smtp_cfg.get("port", DEFAULT_PORT)),
                "timeout": float(smtp_cfg.get("timeout", DEFAULT_TIMEOUT)),
                "security": SMTPSecurity(
                    use_ssl=bool(security_cfg.get("use_ssl", False)),
                    use_starttls=bool(security_cfg.get("use_starttls", True)),
                    verify_certs=bool(security_cfg.get("verify_certs", True)),
                ),
            }
        except (TypeError, ValueError) as e:
            raise MailConfigError(f"Invalid mail.smtp settings: {e}") from e

        username = smtp_cfg.get("username")
        if username and "authenticator" not in overrides:
            kwargs["authenticator"] = StaticAuthenticator(
                SMTPCredentials(str(username), str(smtp_cfg.get("password", "")))
            )
        kwargs.update(overrides)

        sender = cls(str(host), **kwargs)
        if defaults_cfg.get("sender"):
            sender.set_from(str(defaults_cfg["sender"]))
        if defaults_cfg.get("subject"):
            sender.set_subject(str(defaults_cfg["subject"]))
        log.debug("Created sender for %s:%d from configuration", host, kwargs["port"])
        return sender

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def sender(self) -> str | None:
        return self._sender

    @property
    def text(self) -> str:
        return "".join(self._text)

    @property
    def mode(self) -> BodyMode:
        return self._mode

    @property
    def recipients(self) -> tuple[str, ...]:
        return tuple(self._recipients)

    @property
    def recipients_cc(self) -> tuple[str, ...]:
        return tuple(self._recipients_cc)

    @property
    def recipients_bcc(self) -> tuple[str, ...]:
        return tuple(self._recipients_bcc)

    @property
    def files(self) -> tuple[tuple[str, Path], ...]:
        """Return ``(name, path)`` file attachments in insertion order."""
        return tuple(self._files.entries())

    @property
    def file_contents(self) -> tuple[tuple[str, MimeTypedContent], ...]:
        """Return ``(name, content)`` byte attachments in insertion order."""
        return tuple(self._file_contents.entries())

    @property
    def images(self) -> Mapping[str, Path]:
        return dict(self._images)

    @property
    def image_contents(self) -> Mapping[str, MimeTypedContent]:
        return dict(self._image_contents)

    @property
    def transport_listeners(self) -> tuple[TransportListener, ...]:
        return tuple(self._transport_listeners)

    @property
    def connection_listeners(self) -> tuple[ConnectionListener, ...]:
        return tuple(self._connection_listeners)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def add_text(self, text: str | None) -> MailSender:
        """Append ``text`` to the body. The body mode is left unchanged."""
        if text:
            self._text.append(text)
        return self

    def set_text_mode(self) -> MailSender:
        self._mode = BodyMode.TEXT
        return self

    def set_html_mode(self) -> MailSender:
        self._mode = BodyMode.HTML
        return self

    @overload
    def add_file(self, name_or_file: FileSource | None) -> MailSender: ...

    @overload
    def add_file(self, name_or_file: str, source: FileSource) -> MailSender: ...

    @overload
    def add_file(self, name_or_file: str, source: ByteSource, mime_type: str | None = None) -> MailSender: ...

    def add_file(
        self,
        name_or_file: FileSource | None,
        source: FileSource | ByteSource | None = None,
        mime_type: str | None = None,
    ) -> MailSender:
        """Attach a file or an in-memory payload.

        Three call forms are accepted:

        - ``add_file(path)``: attach ``path`` under its own file name;
          ``None`` is ignored.
        - ``add_file(name, path)``: attach ``path`` under ``name``.
        - ``add_file(name, content, mime_type)``: attach a copy of
          ``content`` under ``name``.

        Several attachments may share a name; each becomes its own part.
        Files are read when the message is sent.
        """
        if source is None:
            if name_or_file is None:
                return self
            path = Path(name_or_file)
            self._files.put(path.name, path)
        elif isinstance(source, (bytes, bytearray, memoryview)):
            self._file_contents.put(str(name_or_file), MimeTypedContent(bytes(source), mime_type or DEFAULT_MIME_TYPE))
        else:
            self._files.put(str(name_or_file), Path(source))
        return self

    @overload
    def add_image(self, cid: str, source: FileSource) -> MailSender: ...

    @overload
    def add_image(self, cid: str, source: ByteSource, mime_type: str | None = None) -> MailSender: ...

    def add_image(
        self, cid: str | None, source: FileSource | ByteSource | None, mime_type: str | None = None
    ) -> MailSender:
        """Embed an image referenced from the HTML body as ``cid:<cid>``.

        A later image with the same ``cid`` replaces the earlier one.
        Switches the body to HTML mode. A missing ``cid`` or ``source`` is
        ignored and leaves the mode unchanged.
        """
        if not cid or source is None:
            return self
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._images.pop(cid, None)
            self._image_contents[cid] = MimeTypedContent(bytes(source), mime_type or DEFAULT_MIME_TYPE)
        else:
            self._image_contents.pop(cid, None)
            self._images[cid] = Path(source)
        return self.set_html_mode()

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def set_from(self, address: str | None) -> MailSender:
        self._sender = address
        return self

    def set_subject(self, subject: str | None) -> MailSender:
        """Set the subject; ``None`` restores the default ``"no subject"``."""
        self._subject = NO_SUBJECT if subject is None else subject
        return self

    def add_recipient(self, address: str | None) -> MailSender:
        return self._add(self._recipients, (address,))

    def add_recipients(self, *addresses: str) -> MailSender:
        return self._add(self._recipients, addresses)

    def add_recipient_cc(self, address: str | None) -> MailSender:
        return self._add(self._recipients_cc, (address,))

    def add_recipients_cc(self, *addresses: str) -> MailSender:
        return self._add(self._recipients_cc, addresses)

    def add_recipient_bcc(self, address: str | None) -> MailSender:
        return self._add(self._recipients_bcc, (address,))

    def add_recipients_bcc(self, *addresses: str) -> MailSender:
        return self._add(self._recipients_bcc, addresses)

    def set_recipients(self, *addresses: str) -> MailSender:
        """Replace the To recipients with ``addresses``."""
        self._recipients.clear()
        return self._add(self._recipients, addresses)

    def set_recipients_cc(self, *addresses: str) -> MailSender:
        self._recipients_cc.clear()
        return self._add(self._recipients_cc, addresses)

    def set_recipients_bcc(self, *addresses: str) -> MailSender:
        self._recipients_bcc.clear()
        return self._add(self._recipients_bcc, addresses)

    def remove_recipient(self, address: str) -> MailSender:
        self._recipients.pop(address, None)
        return self

    def remove_recipient_cc(self, address: str) -> MailSender:
        self._recipients_cc.pop(address, None)
        return self

    def remove_recipient_bcc(self, address: str) -> MailSender:
        self._recipients_bcc.pop(address, None)
        return self

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_transport_listener(self, listener: TransportListener) -> MailSender:
        self._transport_listeners.append(listener)
        return self

    def add_connection_listener(self, listener: ConnectionListener) -> MailSender:
        self._connection_listeners.append(listener)
        return self

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear the message state.

        Text, attachments, inline images, recipients and listeners are
        emptied, the subject returns to ``"no subject"`` and the sender to
        None. The server settings, credentials and body mode are kept.
        """
        self._text = []
        self._files.clear()
        self._file_contents.clear()
        self._images.clear()
        self._image_contents.clear()
        self._recipients.clear()
        self._recipients_cc.clear()
        self._recipients_bcc.clear()
        self._transport_listeners.clear()
        self._connection_listeners.clear()
        self._subject = NO_SUBJECT
        self._sender = None

    def build_message(self) -> EmailMessage:
        """Assemble the message from the current state without sending it.

        Returns:
            A ``multipart/mixed`` message: the body part, then file
            attachments, byte attachments and inline images.

        Raises:
            CannotSendMailError: If an address is invalid or an attachment
                cannot be read.
        """
        try:
            return self._build_message(self._assemble_parts())
        except CannotSendMailError:
            raise
        except Exception as e:  # pylint: disable=broad-except
            raise CannotSendMailError(DEFAULT_SEND_ERROR_MESSAGE, e) from e

    def send(self) -> None:
        """Assemble the message and deliver it over SMTP.

        The transport connection is always closed before returning, and a
        failure while closing it is logged, not raised. The builder state
        is left untouched.

        Raises:
            CannotSendMailError: On any assembly, connection,
                authentication or delivery failure.
        """
        connection: SMTPConnection | None = None
        try:
            properties: dict[str, Any] = {
                "host": self._host,
                "port": self._port,
                "protocol": "smtp",
                "from": _parse_address(self._sender).addr_spec if self._sender else None,
                "timeout": self._timeout,
                "use_ssl": self._security.use_ssl,
                "use_starttls": self._security.use_starttls,
                "verify_certs": self._security.verify_certs,
            }
            if self._before_create_session is not None:
                self._before_create_session(properties)
            message = self._build_message(self._assemble_parts())
            session = Session(properties, self._authenticator)

            connection = session.get_transport()
            for transport_listener in self._transport_listeners:
                connection.add_transport_listener(transport_listener)
            for connection_listener in self._connection_listeners:
                connection.add_connection_listener(connection_listener)

            connection.connect()
            if self._before_send_message is not None:
                self._before_send_message(connection, message)
            log.log(TRACE_LEVEL, "%s", self)
            connection.send_message(message, self._all_recipients())
        except CannotSendMailError:
            raise
        except Exception as e:  # pylint: disable=broad-except
            log.debug("Sending failed: %s", e)
            raise CannotSendMailError(DEFAULT_SEND_ERROR_MESSAGE, e) from e
        finally:
            if connection is not None:
                _close_quietly(connection)

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def _assemble_parts(self) -> list[MIMEPart]:
        body = MIMEPart()
        body.set_content(self.text, subtype=self._mode.subtype, charset="utf-8")
        parts = [body]

        factory = self._part_factory
        parts.extend(factory.new_file_part(name, path) for name, path in self._files.entries())
        parts.extend(factory.new_file_part(name, content) for name, content in self._file_contents.entries())
        parts.extend(factory.new_image_part(cid, path) for cid, path in self._images.items())
        parts.extend(factory.new_image_part(cid, content) for cid, content in self._image_contents.items())
        return parts

    def _build_message(self, parts: Iterable[MIMEPart]) -> EmailMessage:
        if not self._sender:
            raise CannotSendMailError("No sender address set")

        message = EmailMessage()
        for header, addresses in (
            ("To", self._recipients),
            ("Cc", self._recipients_cc),
            ("Bcc", self._recipients_bcc),
        ):
            if addresses:
                message[header] = _as_addresses(addresses)
        message["Date"] = format_datetime(localtime())
        message["From"] = _parse_address(self._sender)
        message["Subject"] = self._subject
        message["Message-ID"] = make_msgid()
        message["MIME-Version"] = "1.0"

        message.make_mixed()
        for part in parts:
            message.attach(part)
        return message

    def _all_recipients(self) -> list[str]:
        """Return the envelope addresses, bare and deduplicated, To first."""
        everyone = [*self._recipients, *self._recipients_cc, *self._recipients_bcc]
        return list(dict.fromkeys(_parse_address(address).addr_spec for address in everyone))

    def _add(self, target: dict[str, None], addresses: Iterable[str | None]) -> MailSender:
        for address in addresses:
            if address:
                target.setdefault(address, None)
        return self

    def __str__(self) -> str:
        lines = [
            "MailSender {",
            f"\tsubject: {self._subject}",
            f"\tfrom: {self._sender}",
            f"\ttext: {self.text}",
            f"\trecipients: {list(self._recipients)}",
            f"\trecipients CC: {list(self._recipients_cc)}",
            f"\trecipients BCC: {list(self._recipients_bcc)}",
            "\tfiles attachments:",
            *(f"\t\t{name}: {path}" for name, path in self._files.entries()),
            "\tdata attachments:",
            *(f"\t\t{name}: {content.mime_type}" for name, content in self._file_contents.entries()),
            "\timages:",
            *(f"\t\t{cid}: {path}" for cid, path in self._images.items()),
            *(f"\t\t{cid}: {content.mime_type}" for cid, content in self._image_contents.items()),
            f"\tmode: {self._mode.value}",
            "}",
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"MailSender(host={self._host!r}, port={self._port}, mode={self._mode.value})"


def _parse_address(value: str) -> Address:
    """Parse one ``addr-spec`` or ``Name <addr-spec>`` string.

    Raises:
        ValueError: If ``value`` holds no address, several addresses, or
            an address that is not a valid ``local@domain`` spec.
    """
    pairs = getaddresses([value])
    if len(pairs) != 1 or not pairs[0][1]:
        raise ValueError(f"Invalid address: {value!r}")
    display_name, addr_spec = pairs[0]
    return Address(display_name=display_name, addr_spec=addr_spec)


def _as_addresses(addresses: Iterable[str]) -> tuple[Address, ...]:
    return tuple(_parse_address(address) for address in addresses)


def _close_quietly(connection: SMTPConnection) -> None:
    try:
        connection.close()
    except (smtplib.SMTPException, OSError) as e:
        log.debug("Ignoring error while closing %r: %s", connection, e)
