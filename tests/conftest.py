"""Shared pytest fixtures for the mailsender test suite."""

from __future__ import annotations

# Disable Rich colors BEFORE any imports
# Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"

import logging
import smtplib
import sys
from collections.abc import Generator
from email.message import EmailMessage
from pathlib import Path
from typing import Any, ClassVar

import pytest

import mailsender.logging as ms_logging
from mailsender.config import CONFIG_ENV_VAR, clear_config

# pylint: disable=redefined-outer-name


class FakeSMTP:
    """In-memory stand-in for ``smtplib.SMTP`` recording every call.

    Class-level switches configure behaviour before a test sends:

    - ``supports_starttls``: advertise the STARTTLS extension.
    - ``refuse``: recipient -> (code, reply) refused by RCPT TO.
    - ``fail_on``: method name -> exception raised by that method
      (``"connect"`` raises from :meth:`connect`).
    """

    instances: ClassVar[list[FakeSMTP]] = []
    supports_starttls: ClassVar[bool] = True
    refuse: ClassVar[dict[str, tuple[int, bytes]]] = {}
    fail_on: ClassVar[dict[str, BaseException]] = {}

    def __init__(self, **kwargs: Any) -> None:
        """Capture constructor kwargs and initialise tracking state."""
        self.kwargs = kwargs
        self.ehlo_called = 0
        self.starttls_called = False
        self.starttls_context: Any | None = None
        self.login_calls: list[tuple[str, str]] = []
        self.sent: list[tuple[EmailMessage, str | None, list[str]]] = []
        self.debug_level = 0
        self.quit_called = False
        self.closed = False
        FakeSMTP.instances.append(self)

    def connect(self, host: str, port: int) -> tuple[int, bytes]:
        """Record the endpoint and greet like smtplib does in debug mode."""
        self.kwargs.update(host=host, port=port)
        if self.debug_level:
            print(f"connect: {(host, port)!r}", file=sys.stderr)
        self._maybe_fail("connect")
        if self.debug_level:
            print(f"reply: b'220 {host} ESMTP ready'", file=sys.stderr)
        return 220, f"{host} ESMTP ready".encode()

    def _maybe_fail(self, name: str) -> None:
        error = FakeSMTP.fail_on.get(name)
        if error is not None:
            raise error

    def ehlo(self) -> None:
        """Record EHLO invocations."""
        self._maybe_fail("ehlo")
        self.ehlo_called += 1

    def has_extn(self, name: str) -> bool:
        """Report supported SMTP extensions."""
        return name == "STARTTLS" and FakeSMTP.supports_starttls

    def starttls(self, *, context: Any) -> None:
        """Flag that STARTTLS was invoked and capture its context."""
        self.starttls_called = True
        self.starttls_context = context

    def login(self, username: str, password: str) -> None:
        """Track login attempts."""
        self._maybe_fail("login")
        self.login_calls.append((username, password))

    def set_debuglevel(self, level: int) -> None:
        """Accept debug level setting (used by TRACE logging)."""
        self.debug_level = level

    def send_message(
        self,
        message: EmailMessage,
        from_addr: str | None = None,
        to_addrs: list[str] | None = None,
    ) -> dict[str, tuple[int, bytes]]:
        """Collect outgoing messages and apply configured refusals."""
        self._maybe_fail("send_message")
        recipients = list(to_addrs or [])
        refused = {address: FakeSMTP.refuse[address] for address in recipients if address in FakeSMTP.refuse}
        if recipients and len(refused) == len(recipients):
            raise smtplib.SMTPRecipientsRefused(refused)
        self.sent.append((message, from_addr, recipients))
        return refused

    def quit(self) -> None:
        """Record QUIT and close."""
        self.quit_called = True
        self._maybe_fail("quit")
        self.closed = True

    def close(self) -> None:
        """Mark the client as closed."""
        self.closed = True

    @classmethod
    def reset(cls) -> None:
        """Reset class state between tests."""
        cls.instances = []
        cls.supports_starttls = True
        cls.refuse = {}
        cls.fail_on = {}

    @classmethod
    def last(cls) -> FakeSMTP:
        """Return the most recently created client."""
        assert cls.instances, "no SMTP client was created"
        return cls.instances[-1]


class FakeSMTPSSL(FakeSMTP):
    """Stand-in for ``smtplib.SMTP_SSL``."""


@pytest.fixture
def fake_smtp(monkeypatch: pytest.MonkeyPatch) -> Generator[type[FakeSMTP], None, None]:
    """Replace smtplib clients with recording doubles."""
    FakeSMTP.reset()
    monkeypatch.setattr("mailsender.transport.smtplib.SMTP", FakeSMTP)
    monkeypatch.setattr("mailsender.transport.smtplib.SMTP_SSL", FakeSMTPSSL)
    yield FakeSMTP
    FakeSMTP.reset()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep the cached configuration and MAILSENDER_CONFIG out of tests."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    clear_config()
    yield
    clear_config()


@pytest.fixture
def restore_logging() -> Generator[logging.Logger, None, None]:
    """Undo handlers and levels installed by ``init_logging``."""
    logger = logging.getLogger(ms_logging.LOGGER_NAME)
    yield logger
    for handler in ms_logging._installed_handlers:  # pylint: disable=protected-access
        logger.removeHandler(handler)
        handler.close()
    ms_logging._installed_handlers.clear()  # pylint: disable=protected-access
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def text_file(tmp_path: Path) -> Path:
    """Create a small text file to attach."""
    path = tmp_path / "hello.txt"
    path.write_text("hello world!", encoding="utf-8")
    return path


@pytest.fixture
def png_file(tmp_path: Path) -> Path:
    """Create a fake PNG image to embed."""
    path = tmp_path / "logo.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\nfake-image")
    return path
