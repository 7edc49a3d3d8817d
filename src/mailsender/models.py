"""Data models shared by the builder, the part factory and the transport.

- BodyMode: Enum for the body encoding (plain text or HTML)
- MimeTypedContent: Frozen byte payload paired with its MIME type
- SMTPCredentials: Frozen login/password pair
- SMTPSecurity: Frozen TLS settings for the SMTP connection
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

DEFAULT_MIME_TYPE = "application/octet-stream"


class BodyMode(str, Enum):
    """Encoding of the accumulated body text.

    Attributes:
        TEXT: Send the body as ``text/plain``.
        HTML: Send the body as ``text/html``.
    """

    TEXT = "text"
    HTML = "html"

    @property
    def subtype(self) -> str:
        """Return the MIME subtype used for the body part."""
        return "plain" if self is BodyMode.TEXT else "html"


@dataclass(frozen=True, slots=True)
class MimeTypedContent:
    """In-memory attachment payload.

    Attributes:
        content: Raw bytes of the attachment.
        mime_type: MIME type such as ``image/png``.

    Examples:
        >>> item = MimeTypedContent(b"hello", "text/plain")
        >>> item.maintype, item.subtype
        ('text', 'plain')
    """

    content: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    def __post_init__(self) -> None:
        # Freeze mutable buffers so later changes by the caller are not seen.
        object.__setattr__(self, "content", bytes(self.content))
        if not self.mime_type or "/" not in self.mime_type:
            object.__setattr__(self, "mime_type", DEFAULT_MIME_TYPE)

    @property
    def maintype(self) -> str:
        return self.mime_type.split("/", 1)[0].strip().lower()

    @property
    def subtype(self) -> str:
        return self.mime_type.split("/", 1)[1].split(";", 1)[0].strip().lower()

    def __repr__(self) -> str:
        return f"MimeTypedContent(<{len(self.content)} bytes>, {self.mime_type!r})"


@dataclass(frozen=True, slots=True)
class SMTPCredentials:
    """Credentials used to authenticate against the SMTP server.

    Attributes:
        username: Login name.
        password: Password, never rendered by ``repr``.
    """

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class SMTPSecurity:
    """TLS settings for the SMTP connection.

    Attributes:
        use_ssl: Open an implicit TLS connection (``SMTP_SSL``).
        use_starttls: Upgrade a plain connection with STARTTLS when the
            server advertises it. Ignored when ``use_ssl`` is set.
        verify_certs: Verify the server certificate and host name.
    """

    use_ssl: bool = False
    use_starttls: bool = True
    verify_certs: bool = True


__all__ = [
    "DEFAULT_MIME_TYPE",
    "BodyMode",
    "MimeTypedContent",
    "SMTPCredentials",
    "SMTPSecurity",
]
