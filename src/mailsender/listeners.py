"""Delivery and connection notifications.

A transport connection reports what happened to a message through
:class:`TransportEvent` objects and what happened to the connection through
:class:`ConnectionEvent` objects. Observers implement the
:class:`TransportListener` or :class:`ConnectionListener` protocol, or wrap
plain functions in :class:`TransportCallbacks` / :class:`ConnectionCallbacks`.

Delivery is synchronous: listeners run on the thread calling
:meth:`mailsender.MailSender.send`, before it returns or raises.

Examples:
    Print delivery outcomes::

        sender.add_transport_listener(
            TransportCallbacks(
                on_delivered=lambda e: print("sent to", e.valid_sent),
                on_not_delivered=lambda e: print("rejected", e.invalid),
            )
        )
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from email.message import EmailMessage


class DeliveryStatus(str, Enum):
    """Outcome of a send attempt.

    Attributes:
        DELIVERED: Every recipient was accepted.
        PARTIALLY_DELIVERED: Some recipients were refused.
        NOT_DELIVERED: The message was not accepted for any recipient.
    """

    DELIVERED = "delivered"
    PARTIALLY_DELIVERED = "partially_delivered"
    NOT_DELIVERED = "not_delivered"


class ConnectionEventType(str, Enum):
    """Connection lifecycle event kinds."""

    OPENED = "opened"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class TransportEvent:
    """What happened to a message on the wire.

    Attributes:
        status: Overall outcome.
        message: The message that was sent.
        valid_sent: Addresses the server accepted.
        valid_unsent: Addresses that were not sent to, but were not
            rejected as invalid (temporary refusal, aborted transaction).
        invalid: Addresses the server permanently rejected.
    """

    status: DeliveryStatus
    message: EmailMessage
    valid_sent: tuple[str, ...] = ()
    valid_unsent: tuple[str, ...] = ()
    invalid: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ConnectionEvent:
    """A change in the state of a transport connection."""

    type: ConnectionEventType
    host: str
    port: int


@runtime_checkable
class TransportListener(Protocol):
    """Observer of delivery outcomes."""

    def message_delivered(self, event: TransportEvent) -> None: ...

    def message_not_delivered(self, event: TransportEvent) -> None: ...

    def message_partially_delivered(self, event: TransportEvent) -> None: ...


@runtime_checkable
class ConnectionListener(Protocol):
    """Observer of connection lifecycle events."""

    def opened(self, event: ConnectionEvent) -> None: ...

    def disconnected(self, event: ConnectionEvent) -> None: ...

    def closed(self, event: ConnectionEvent) -> None: ...


TransportCallback = Callable[[TransportEvent], None]
ConnectionCallback = Callable[[ConnectionEvent], None]


@dataclass(frozen=True, slots=True)
class TransportCallbacks:
    """:class:`TransportListener` built from optional functions."""

    on_delivered: TransportCallback | None = None
    on_not_delivered: TransportCallback | None = None
    on_partially_delivered: TransportCallback | None = None

    def message_delivered(self, event: TransportEvent) -> None:
        if self.on_delivered is not None:
            self.on_delivered(event)

    def message_not_delivered(self, event: TransportEvent) -> None:
        if self.on_not_delivered is not None:
            self.on_not_delivered(event)

    def message_partially_delivered(self, event: TransportEvent) -> None:
        if self.on_partially_delivered is not None:
            self.on_partially_delivered(event)


@dataclass(frozen=True, slots=True)
class ConnectionCallbacks:
    """:class:`ConnectionListener` built from optional functions."""

    on_opened: ConnectionCallback | None = None
    on_disconnected: ConnectionCallback | None = None
    on_closed: ConnectionCallback | None = None

    def opened(self, event: ConnectionEvent) -> None:
        if self.on_opened is not None:
            self.on_opened(event)

    def disconnected(self, event: ConnectionEvent) -> None:
        if self.on_disconnected is not None:
            self.on_disconnected(event)

    def closed(self, event: ConnectionEvent) -> None:
        if self.on_closed is not None:
            self.on_closed(event)


_TRANSPORT_HANDLERS = {
    DeliveryStatus.DELIVERED: "message_delivered",
    DeliveryStatus.PARTIALLY_DELIVERED: "message_partially_delivered",
    DeliveryStatus.NOT_DELIVERED: "message_not_delivered",
}


def transport_handler_name(status: DeliveryStatus) -> str:
    """Return the listener method invoked for ``status``."""
    return _TRANSPORT_HANDLERS[status]


__all__ = [
    "ConnectionCallback",
    "ConnectionCallbacks",
    "ConnectionEvent",
    "ConnectionEventType",
    "ConnectionListener",
    "DeliveryStatus",
    "TransportCallback",
    "TransportCallbacks",
    "TransportEvent",
    "TransportListener",
    "transport_handler_name",
]
