"""Authoritative in-memory channel state table.

This is the only component allowed to hold the per-channel records that
subscribers see.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from patchbridge.models.messages import WireRecord

_logger = logging.getLogger(__name__)


class ChannelStateTable:
    """Map of channel number → last applied record.

    Entries are replaced wholesale and never deleted; a channel, once seen,
    persists for the life of the process.

    Updates for a channel are ordered by decode time: :meth:`reserve` hands
    out a strictly increasing sequence number per channel when a frame is
    decoded, and :meth:`apply` refuses any record whose sequence is not
    newer than the last one applied for that channel. Validation may then
    finish in any order without an older frame overwriting a newer one.
    """

    def __init__(self) -> None:
        self._records: dict[int, WireRecord] = {}
        self._reserved: dict[int, int] = {}
        self._applied: dict[int, int] = {}

    def reserve(self, channel: int) -> int:
        """Allocate the next sequence number for *channel*."""
        sequence = self._reserved.get(channel, 0) + 1
        self._reserved[channel] = sequence
        return sequence

    def apply(self, record: WireRecord, sequence: int) -> bool:
        """Store *record* if *sequence* is the newest seen for its channel.

        Returns ``True`` when the table changed.
        """
        channel = record.channel_number
        last = self._applied.get(channel, 0)
        if sequence <= last:
            _logger.debug(
                "Discarding stale result for channel %s (sequence %d <= %d)",
                channel,
                sequence,
                last,
            )
            return False
        self._applied[channel] = sequence
        self._reserved[channel] = max(self._reserved.get(channel, 0), sequence)
        self._records[channel] = record
        return True

    def upsert(self, record: WireRecord) -> None:
        """Replace the entry for the record's channel unconditionally."""
        self.apply(record, self.reserve(record.channel_number))

    def get(self, channel: int) -> WireRecord | None:
        return self._records.get(channel)

    def snapshot(self) -> dict[int, WireRecord]:
        """Copy of the full table (records are immutable, so a shallow copy)."""
        return dict(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, channel: object) -> bool:
        return channel in self._records

    def __iter__(self) -> Iterator[int]:
        return iter(dict(self._records))
