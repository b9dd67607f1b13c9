"""The bridge engine: frames in, validated records out to subscribers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from patchbridge.decoding import RecordDecoder, SchemaVariant
from patchbridge.fanout import SubscriberFanout
from patchbridge.framing import FrameReassembler
from patchbridge.models.messages import WireRecord
from patchbridge.reference.store import ReferenceStore
from patchbridge.reference.validator import ReferenceValidator
from patchbridge.state.table import ChannelStateTable

_logger = logging.getLogger(__name__)


class BridgeEngine:
    """Single owner of the pipeline state.

    One instance holds the reassembler, decoder, validator, state table
    and subscriber fanout, and is passed explicitly to whatever feeds it
    (the link supervisor) or reads from it (the web adapter).

    Reference lookups run as independent tasks, so frames keep flowing
    while lookups are in flight. Each decoded record reserves a
    per-channel sequence number before its lookup starts; when lookups for
    the same channel finish out of order, the stale result is dropped.

    Usage::

        engine = BridgeEngine(store)
        engine.feed(chunk)        # from the device reader
        await engine.drain()      # wait for in-flight validations
    """

    def __init__(
        self,
        store: ReferenceStore,
        *,
        schema: SchemaVariant = SchemaVariant.FIELD_DELIMITED,
        reassembler: FrameReassembler | None = None,
    ) -> None:
        self.reassembler = reassembler or FrameReassembler()
        self.decoder = RecordDecoder(schema)
        self.validator = ReferenceValidator(store)
        self.table = ChannelStateTable()
        self.fanout = SubscriberFanout(self.table)
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        """Number of validations still in flight."""
        return len(self._pending)

    def feed(self, chunk: bytes) -> int:
        """Push raw device bytes; return how many frames decoded successfully.

        Must be called from the event loop thread.
        """
        decoded = 0
        for frame in self.reassembler.feed(chunk):
            if self.handle_frame(frame):
                decoded += 1
        return decoded

    def handle_frame(self, frame: bytes) -> bool:
        """Decode one frame and start its validation.

        Malformed frames are logged and dropped; they never reach the table.
        """
        _logger.debug("Complete message received: %r", frame)
        result = self.decoder.decode(frame)
        if result.record is None:
            error = result.error
            _logger.warning(
                "Failed to parse data %r: %s (%s)",
                frame,
                error,
                error.kind if error is not None else "unknown",
            )
            return False

        record = result.record
        sequence = self.table.reserve(record.channel_number)
        task = asyncio.create_task(
            self._validate_and_apply(record, sequence),
            name=f"patchbridge-validate-{record.channel_number}-{sequence}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _validate_and_apply(self, record: WireRecord, sequence: int) -> None:
        validated = await self.validator.validate(record)
        self.apply(validated, sequence)

    def apply(self, record: WireRecord, sequence: int) -> bool:
        """Store a validated record and broadcast it if it is the newest for its channel."""
        if not self.table.apply(record, sequence):
            return False
        self.fanout.broadcast_update(record)
        return True

    async def drain(self) -> None:
        """Wait until every in-flight validation has been applied or discarded."""
        while self._pending:
            await asyncio.gather(*tuple(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight validations."""
        tasks = tuple(self._pending)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending.clear()
