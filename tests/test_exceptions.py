"""Tests for the mailsender exception hierarchy."""

from __future__ import annotations

import smtplib

import pytest

from mailsender.exceptions import (
    DEFAULT_SEND_ERROR_MESSAGE,
    CannotSendMailError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    MailConfigError,
    MailSenderError,
)


class TestCannotSendMailError:
    """Message and cause handling."""

    def test_message_and_cause(self) -> None:
        """Both the message and the cause are kept."""
        cause = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        error = CannotSendMailError("Cannot send the message.", cause)

        assert error.message == "Cannot send the message."
        assert error.cause is cause
        assert error.__cause__ is cause
        assert str(error).startswith("Cannot send the message. (")

    def test_message_only(self) -> None:
        """Without a cause, str() is the message."""
        error = CannotSendMailError("No sender address set")
        assert str(error) == "No sender address set"
        assert error.cause is None
        assert error.__cause__ is None

    def test_cause_only(self) -> None:
        """Without a message, the cause text is used."""
        error = CannotSendMailError(cause=OSError("connection refused"))
        assert error.message == "connection refused"
        assert str(error) == "connection refused"

    def test_defaults(self) -> None:
        """Without arguments, the generic message is used."""
        error = CannotSendMailError()
        assert error.message == DEFAULT_SEND_ERROR_MESSAGE
        assert isinstance(error, MailSenderError)

    def test_catchable_as_base(self) -> None:
        """Callers can catch the package base class."""
        with pytest.raises(MailSenderError):
            raise CannotSendMailError("boom")


class TestConfigErrors:
    """Configuration error attributes."""

    def test_file_not_found(self) -> None:
        """The missing path is exposed."""
        error = ConfigFileNotFoundError("/nope.yml")
        assert error.path == "/nope.yml"
        assert "/nope.yml" in str(error)
        assert isinstance(error, ValueError)

    def test_format_error(self) -> None:
        """Path and reason are exposed."""
        error = ConfigFormatError("conf.yml", "bad indent")
        assert error.path == "conf.yml"
        assert error.reason == "bad indent"
        assert isinstance(error, MailConfigError)
