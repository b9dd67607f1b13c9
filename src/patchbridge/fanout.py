"""Subscriber registry and message fanout."""

from __future__ import annotations

import logging
from typing import Protocol

from patchbridge.models.messages import InitialDataMessage, UpdateMessage, WireRecord
from patchbridge.state.table import ChannelStateTable

_logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """Structural interface for a live subscriber connection.

    ``send`` must not block: transports queue the message and deliver
    queued messages in order, so a snapshot is never overtaken by an update
    sent after it.
    """

    @property
    def is_writable(self) -> bool:
        ...

    def send(self, message: str) -> None:
        ...


class SubscriberFanout:
    """Deliver the state snapshot to new subscribers and deltas to all of them.

    Delivery is best-effort: a subscriber whose transport is not writable
    when an update goes out misses that update; nothing is retried.
    Disconnects are reported by the transport through :meth:`on_disconnect`.
    """

    def __init__(self, table: ChannelStateTable) -> None:
        self._table = table
        self._subscribers: list[Subscriber] = []

    @property
    def subscribers(self) -> tuple[Subscriber, ...]:
        return tuple(self._subscribers)

    def __len__(self) -> int:
        return len(self._subscribers)

    def on_connect(self, subscriber: Subscriber) -> None:
        """Register *subscriber* and send it the current table."""
        if any(existing is subscriber for existing in self._subscribers):
            return
        self._subscribers.append(subscriber)
        message = InitialDataMessage.from_snapshot(self._table.snapshot())
        _logger.info(
            "Subscriber connected (%d total); sending %d channels",
            len(self._subscribers),
            len(message.data),
        )
        self._deliver(subscriber, message.to_json())

    def on_disconnect(self, subscriber: Subscriber) -> None:
        """Deregister *subscriber*; unknown subscribers are ignored."""
        remaining = [existing for existing in self._subscribers if existing is not subscriber]
        if len(remaining) != len(self._subscribers):
            self._subscribers = remaining
            _logger.info("Subscriber disconnected (%d remaining)", len(self._subscribers))

    def broadcast_update(self, record: WireRecord) -> int:
        """Send *record* to every writable subscriber; return how many got it."""
        payload = UpdateMessage(data=record).to_json()
        delivered = 0
        for subscriber in tuple(self._subscribers):
            if not subscriber.is_writable:
                continue
            if self._deliver(subscriber, payload):
                delivered += 1
        _logger.debug(
            "Broadcast update for channel %s to %d subscriber(s)",
            record.channel_number,
            delivered,
        )
        return delivered

    @staticmethod
    def _deliver(subscriber: Subscriber, payload: str) -> bool:
        try:
            subscriber.send(payload)
        except Exception:
            _logger.debug("Subscriber send failed", exc_info=True)
            return False
        return True
