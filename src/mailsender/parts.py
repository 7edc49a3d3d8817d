"""Body parts for attachments and inline images."""

from __future__ import annotations

import logging
import mimetypes
from email.message import MIMEPart
from pathlib import Path
from typing import overload

from mailsender.exceptions import CannotSendMailError
from mailsender.models import DEFAULT_MIME_TYPE, MimeTypedContent

__all__ = ["BodyPartFactory", "guess_mime_type"]

log = logging.getLogger(__name__)


def guess_mime_type(path: Path | str) -> str:
    """Return the MIME type for ``path`` based on its name.

    Examples:
        >>> guess_mime_type("logo.png")
        'image/png'
        >>> guess_mime_type("blob")
        'application/octet-stream'
    """
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or DEFAULT_MIME_TYPE


class BodyPartFactory:
    """Build the parts appended after the body text of a multipart message.

    Attachments carry a ``filename`` and an ``attachment`` disposition.
    Inline images carry a ``Content-ID`` and an ``inline`` disposition so
    HTML bodies can reference them with ``cid:<id>``.

    File contents are read when the part is built, not when the file is
    registered on the sender.
    """

    @overload
    def new_file_part(self, name: str, source: Path | str) -> MIMEPart: ...

    @overload
    def new_file_part(self, name: str, source: bytes | MimeTypedContent, mime_type: str | None = None) -> MIMEPart: ...

    def new_file_part(
        self,
        name: str,
        source: Path | str | bytes | MimeTypedContent,
        mime_type: str | None = None,
    ) -> MIMEPart:
        """Build an attachment part named ``name``.

        Args:
            name: File name advertised to the recipient.
            source: Path to read, raw bytes, or a :class:`MimeTypedContent`.
            mime_type: MIME type for raw bytes.

        Raises:
            CannotSendMailError: If the file cannot be read.
        """
        payload = self._load(source, mime_type)
        part = MIMEPart()
        part.set_content(
            payload.content,
            maintype=payload.maintype,
            subtype=payload.subtype,
            disposition="attachment",
            filename=name,
        )
        return part

    @overload
    def new_image_part(self, cid: str, source: Path | str) -> MIMEPart: ...

    @overload
    def new_image_part(self, cid: str, source: bytes | MimeTypedContent, mime_type: str | None = None) -> MIMEPart: ...

    def new_image_part(
        self,
        cid: str,
        source: Path | str | bytes | MimeTypedContent,
        mime_type: str | None = None,
    ) -> MIMEPart:
        """Build an inline image part referenced as ``cid:<cid>``.

        Raises:
            CannotSendMailError: If the file cannot be read.
        """
        payload = self._load(source, mime_type)
        part = MIMEPart()
        part.set_content(
            payload.content,
            maintype=payload.maintype,
            subtype=payload.subtype,
            disposition="inline",
            cid=_angle_brackets(cid),
        )
        return part

    @staticmethod
    def _load(source: Path | str | bytes | MimeTypedContent, mime_type: str | None) -> MimeTypedContent:
        if isinstance(source, MimeTypedContent):
            return source
        if isinstance(source, (bytes, bytearray, memoryview)):
            return MimeTypedContent(bytes(source), mime_type or DEFAULT_MIME_TYPE)

        path = Path(source)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise CannotSendMailError(f"Cannot read attachment {path}", e) from e
        log.debug("Loaded %d bytes from %s", len(content), path)
        return MimeTypedContent(content, mime_type or guess_mime_type(path))


def _angle_brackets(cid: str) -> str:
    cid = cid.strip()
    if cid.startswith("<") and cid.endswith(">"):
        return cid
    return f"<{cid}>"
