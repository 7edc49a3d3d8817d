"""Fluent SMTP mail sender.

Compose plain text or HTML messages with attachments and inline images,
then deliver them over SMTP with listener notification::

    from mailsender import MailSender

    MailSender("smtp.example.com", "login", "secret") \\
        .set_from("me@example.com") \\
        .add_recipient("you@example.com") \\
        .set_subject("Hello") \\
        .add_text("Hi!") \\
        .send()
"""

from mailsender.config import clear_config, get_config, load_config
from mailsender.exceptions import (
    CannotSendMailError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    MailConfigError,
    MailSenderError,
)
from mailsender.listeners import (
    ConnectionCallbacks,
    ConnectionEvent,
    ConnectionEventType,
    ConnectionListener,
    DeliveryStatus,
    TransportCallbacks,
    TransportEvent,
    TransportListener,
)
from mailsender.logging import TRACE_LEVEL, get_logger, init_logging
from mailsender.meta import __version__
from mailsender.models import BodyMode, MimeTypedContent, SMTPCredentials, SMTPSecurity
from mailsender.multimap import MultiMap
from mailsender.parts import BodyPartFactory
from mailsender.sender import NO_SUBJECT, MailSender
from mailsender.transport import Authenticator, Session, SMTPConnection, StaticAuthenticator

__all__ = [
    "NO_SUBJECT",
    "TRACE_LEVEL",
    "Authenticator",
    "BodyMode",
    "BodyPartFactory",
    "CannotSendMailError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConnectionCallbacks",
    "ConnectionEvent",
    "ConnectionEventType",
    "ConnectionListener",
    "DeliveryStatus",
    "MailConfigError",
    "MailSender",
    "MailSenderError",
    "MimeTypedContent",
    "MultiMap",
    "SMTPConnection",
    "SMTPCredentials",
    "SMTPSecurity",
    "Session",
    "StaticAuthenticator",
    "TransportCallbacks",
    "TransportEvent",
    "TransportListener",
    "__version__",
    "clear_config",
    "get_config",
    "get_logger",
    "init_logging",
    "load_config",
]
