"""Delimiter-based frame reassembly for the device byte stream."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from patchbridge._constants import DEFAULT_MAX_BUFFER, FRAME_DELIMITER

_logger = logging.getLogger(__name__)


class FrameReassembler:
    """Turn an arbitrarily chunked byte stream into complete frames.

    A frame is every byte before a delimiter occurrence; the delimiter
    itself is consumed. Bytes after the last delimiter are retained until a
    later :meth:`feed` completes them, so frames are recognized the same way
    however the transport splits the stream.

    Usage::

        reassembler = FrameReassembler()
        for frame in reassembler.feed(chunk):
            ...
    """

    def __init__(
        self,
        delimiter: bytes = FRAME_DELIMITER,
        *,
        max_buffer: int | None = DEFAULT_MAX_BUFFER,
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must be non-empty")
        if max_buffer is not None and max_buffer < len(delimiter):
            raise ValueError("max_buffer must be at least the delimiter length")
        self._delimiter = bytes(delimiter)
        self._max_buffer = max_buffer
        self._buffer = bytearray()

    @property
    def delimiter(self) -> bytes:
        return self._delimiter

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet terminated by a delimiter."""
        return bytes(self._buffer)

    def reset(self) -> None:
        """Drop any partially received frame."""
        self._buffer.clear()

    def feed(self, chunk: bytes) -> Iterator[bytes]:
        """Append *chunk* and yield every frame it completes.

        The generator is lazy: frames are cut from the buffer as they are
        consumed. ``chunk`` is appended immediately, so a caller that
        abandons the generator loses no bytes.
        """
        self._buffer.extend(chunk)
        return self._drain()

    def _drain(self) -> Iterator[bytes]:
        delimiter = self._delimiter
        while True:
            index = self._buffer.find(delimiter)
            if index == -1:
                break
            frame = bytes(self._buffer[:index])
            del self._buffer[: index + len(delimiter)]
            yield frame
        self._enforce_limit()

    def _enforce_limit(self) -> None:
        limit = self._max_buffer
        if limit is None or len(self._buffer) <= limit:
            return
        # Keep enough tail bytes that a delimiter straddling the cut still matches.
        keep = len(self._delimiter) - 1
        dropped = len(self._buffer) - keep
        _logger.warning(
            "No frame delimiter within %d buffered bytes; discarding %d bytes",
            limit,
            dropped,
        )
        del self._buffer[:dropped]
