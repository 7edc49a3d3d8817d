"""Demonstrate attachments and inline images with :class:`MailSender`."""

from __future__ import annotations

from base64 import b64decode
from pathlib import Path
from tempfile import TemporaryDirectory

from mailsender import MailSender

_LOGO_BASE64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAusB9Y9dOAoAAAAASUVORK5CYII="


def build_message_with_attachments() -> None:
    """Create a message that includes attachments and an inline PNG image."""
    with TemporaryDirectory() as tmp_dir:
        workdir = Path(tmp_dir)

        report_path = workdir / "daily-report.txt"
        report_path.write_text("Daily metrics: 42 conversions", encoding="utf-8")

        message = (
            MailSender("smtp.example.com")
            .set_from("sender@example.com")
            .add_recipient("ops@example.com")
            .add_recipient_cc("manager@example.com")
            .set_subject("Daily metrics report")
            .add_text('<p>Please find the report attached.</p><img src="cid:company-logo" alt="logo" />')
            .add_file(report_path)
            .add_file("raw.csv", b"day,conversions\nmonday,42\n", "text/csv")
            .add_image("company-logo", b64decode(_LOGO_BASE64), "image/png")
            .build_message()
        )

        print(message.as_string())


if __name__ == "__main__":  # pragma: no cover - manual example
    build_message_with_attachments()
