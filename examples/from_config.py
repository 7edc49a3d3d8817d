"""Create a sender from ``mailsender.conf.yml`` and send a report.

Example configuration::

    mail:
      smtp:
        host: smtp.example.com
        port: 587
        username: robot@example.com
        password: ${SMTP_PASSWORD}
      defaults:
        sender: robot@example.com
        subject: Nightly report
    logging:
      console:
        level: DEBUG

Usage:
    SMTP_PASSWORD=secret python examples/from_config.py ops@example.com
"""

from __future__ import annotations

import sys

from mailsender import ConnectionCallbacks, MailSender, init_logging


def main(recipients: list[str]) -> None:
    """Send a short HTML report to ``recipients``."""
    log = init_logging()
    sender = MailSender.from_config()
    sender.add_connection_listener(
        ConnectionCallbacks(
            on_opened=lambda event: log.info("Connected to %s:%d", event.host, event.port),
            on_closed=lambda event: log.info("Connection to %s closed", event.host),
        )
    )
    sender.add_recipients(*recipients).set_html_mode().add_text("<h1>Nightly report</h1><p>All jobs succeeded.</p>")
    sender.send()


if __name__ == "__main__":  # pragma: no cover - manual example
    main(sys.argv[1:] or ["ops@example.com"])
