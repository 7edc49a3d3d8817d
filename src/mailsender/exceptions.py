"""Exceptions raised by the mailsender package.

Exception hierarchy::

    MailSenderError
        CannotSendMailError (any failure while assembling or sending)
        MailConfigError (invalid configuration, also ValueError)
            ConfigFileNotFoundError (explicit config file missing)
            ConfigFormatError (config file cannot be parsed)
"""

from __future__ import annotations

DEFAULT_SEND_ERROR_MESSAGE = "Cannot send the message."


class MailSenderError(Exception):
    """Base exception for all mailsender errors."""


class CannotSendMailError(MailSenderError):
    """A message could not be assembled or delivered.

    Raised by :meth:`mailsender.MailSender.send` whatever went wrong:
    address validation, reading an attachment, connecting, authenticating
    or transmitting. The underlying failure is kept on :attr:`cause` and
    chained as ``__cause__``.

    Attributes:
        message: Human-readable error message.
        cause: The underlying exception, if any.

    Examples:
        >>> raise CannotSendMailError("Cannot send the message.", OSError("refused"))
        Traceback (most recent call last):
        ...
        mailsender.exceptions.CannotSendMailError: Cannot send the message. (refused)
    """

    def __init__(self, message: str | None = None, cause: BaseException | None = None) -> None:
        """Initialize CannotSendMailError.

        Args:
            message: Human-readable error message. When omitted, the cause's
                text is used, or a generic message if there is no cause.
            cause: The underlying exception.
        """
        if message is None:
            message = str(cause) if cause is not None else DEFAULT_SEND_ERROR_MESSAGE
        self.message = message
        self.cause = cause
        if cause is not None and str(cause) and str(cause) != message:
            super().__init__(f"{message} ({cause})")
        else:
            super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class MailConfigError(MailSenderError, ValueError):
    """Configuration is missing, unreadable or invalid."""


class ConfigFileNotFoundError(MailConfigError):
    """An explicitly requested configuration file does not exist.

    Attributes:
        path: The path that was looked up.
    """

    def __init__(self, path: str) -> None:
        """Initialize ConfigFileNotFoundError.

        Args:
            path: The path that was looked up.
        """
        super().__init__(f"Configuration file not found: {path}")
        self.path = path


class ConfigFormatError(MailConfigError):
    """A configuration file cannot be parsed into a mapping.

    Attributes:
        path: The offending file.
        reason: Description of the parse failure.
    """

    def __init__(self, path: str, reason: str) -> None:
        """Initialize ConfigFormatError.

        Args:
            path: The offending file.
            reason: Description of the parse failure.
        """
        super().__init__(f"Invalid configuration file {path}: {reason}")
        self.path = path
        self.reason = reason


__all__ = [
    "DEFAULT_SEND_ERROR_MESSAGE",
    "CannotSendMailError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "MailConfigError",
    "MailSenderError",
]
