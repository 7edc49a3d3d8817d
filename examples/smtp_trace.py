#!/usr/bin/env python3
"""Demonstrate SMTP TRACE-level logging for debugging.

This example shows the detailed SMTP session information available
when TRACE logging is enabled. Useful for debugging connection issues,
TLS negotiation, and authentication problems.

Setup:
    1. Go to https://ethereal.email and create a free account
    2. Copy your credentials (user/pass)
    3. Set environment variables:
       export ETHEREAL_USER="your-user@ethereal.email"
       export ETHEREAL_PASS="your-password"

Usage:
    python examples/smtp_trace.py
"""

from __future__ import annotations

import os
import sys

from mailsender import CannotSendMailError, MailSender, TransportCallbacks, init_logging

# Ethereal SMTP configuration
ETHEREAL_HOST = "smtp.ethereal.email"
ETHEREAL_PORT = 587


def get_ethereal_credentials() -> tuple[str, str]:
    """Load Ethereal credentials from environment variables."""
    user = os.getenv("ETHEREAL_USER")
    password = os.getenv("ETHEREAL_PASS")

    if not user or not password:
        print("=" * 70)
        print("ERROR: Ethereal credentials not configured!")
        print("=" * 70)
        print()
        print("To use this example:")
        print("  1. Create a free account at https://ethereal.email")
        print("  2. Set environment variables:")
        print('     export ETHEREAL_USER="your-user@ethereal.email"')
        print('     export ETHEREAL_PASS="your-password"')
        print()
        sys.exit(1)

    return user, password


def main() -> None:
    """Send email with TRACE logging enabled."""
    print("=" * 70)
    print("SMTP TRACE LOGGING DEMO")
    print("=" * 70)
    print(f"SMTP Server: {ETHEREAL_HOST}:{ETHEREAL_PORT}")
    print("-" * 70)

    # TRACE shows the EHLO exchange, STARTTLS details and the envelope
    log = init_logging(config={"console": {"level": "TRACE"}})
    log.info("TRACE logging enabled - SMTP session details will be shown")

    user, password = get_ethereal_credentials()
    sender = MailSender(ETHEREAL_HOST, user, password, port=ETHEREAL_PORT)
    sender.add_transport_listener(
        TransportCallbacks(on_delivered=lambda event: log.info("Delivered to %s", ", ".join(event.valid_sent)))
    )

    try:
        (
            sender.set_from(user)
            .add_recipient(user)
            .set_subject("TRACE logging test from mailsender")
            .add_text(
                "This email was sent with TRACE-level logging enabled.\n\n"
                "Check the console output for detailed SMTP session info:\n"
                "- EHLO exchange and server capabilities\n"
                "- STARTTLS negotiation (TLS version, cipher)\n"
                "- Authentication flow\n"
                "- Message envelope (MAIL FROM, RCPT TO)\n"
            )
            .send()
        )
    except CannotSendMailError as e:
        log.error("Sending failed: %s", e)
        sys.exit(1)

    print("-" * 70)
    print("Email sent successfully!")
    print("View your email at: https://ethereal.email/messages")
    print("=" * 70)


if __name__ == "__main__":  # pragma: no cover - manual example
    main()
