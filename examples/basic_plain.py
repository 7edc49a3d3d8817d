"""Plain-text mail composition using :class:`mailsender.MailSender`."""

from __future__ import annotations

from mailsender import MailSender


def build_plain_message() -> None:
    """Construct a plain-text message and print the RFC822 payload."""
    message = (
        MailSender("smtp.example.com")
        .set_from("sender@example.com")
        .add_recipient("user@example.com")
        .set_subject("Plain Greetings")
        .add_text("Hello from mailsender!\n")
        .add_text("This message uses the plain content type.")
        .build_message()
    )
    print(message.as_string())


if __name__ == "__main__":  # pragma: no cover - manual example
    build_plain_message()
