from __future__ import annotations

import logging

import pytest

from patchbridge.framing import FrameReassembler

STREAM = b"$$1$Shure SM58$Main Vocals$Short Boom Stand##$$2$Sennheiser e 604$Snare$Tall Boom Stand##$$3$DPA"


def _feed_all(reassembler: FrameReassembler, chunks: list[bytes]) -> list[bytes]:
    frames: list[bytes] = []
    for chunk in chunks:
        frames.extend(reassembler.feed(chunk))
    return frames


def test_single_chunk_yields_complete_frames_and_keeps_tail() -> None:
    reassembler = FrameReassembler()

    frames = list(reassembler.feed(STREAM))

    assert frames == [
        b"$$1$Shure SM58$Main Vocals$Short Boom Stand",
        b"$$2$Sennheiser e 604$Snare$Tall Boom Stand",
    ]
    assert reassembler.pending == b"$$3$DPA"


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 13, 64])
def test_chunk_boundaries_do_not_change_frames(size: int) -> None:
    whole = list(FrameReassembler().feed(STREAM))
    chunks = [STREAM[i : i + size] for i in range(0, len(STREAM), size)]

    reassembler = FrameReassembler()
    assert _feed_all(reassembler, chunks) == whole
    assert reassembler.pending == b"$$3$DPA"


def test_delimiter_split_across_feeds() -> None:
    reassembler = FrameReassembler()

    assert list(reassembler.feed(b"$$1$a$b$c#")) == []
    assert list(reassembler.feed(b"#$$2")) == [b"$$1$a$b$c"]
    assert reassembler.pending == b"$$2"


def test_adjacent_delimiters_yield_empty_frame() -> None:
    reassembler = FrameReassembler()

    assert list(reassembler.feed(b"A####B##")) == [b"A", b"", b"B"]


def test_frames_are_cut_lazily_but_bytes_are_never_lost() -> None:
    reassembler = FrameReassembler()

    # Abandon the generator without consuming it.
    reassembler.feed(b"$$1$a$b$c##")
    frames = list(reassembler.feed(b"$$2$d$e$f##"))

    assert frames == [b"$$1$a$b$c", b"$$2$d$e$f"]


def test_buffer_limit_discards_oldest_bytes(caplog: pytest.LogCaptureFixture) -> None:
    reassembler = FrameReassembler(max_buffer=8)

    with caplog.at_level(logging.WARNING):
        assert list(reassembler.feed(b"0123456789#")) == []

    # Only len(delimiter) - 1 bytes survive, so a straddling delimiter still matches.
    assert reassembler.pending == b"#"
    assert list(reassembler.feed(b"#$$1##")) == [b"", b"$$1"]
    assert "discarding" in caplog.text


def test_reset_drops_partial_frame() -> None:
    reassembler = FrameReassembler()
    list(reassembler.feed(b"$$1$partial"))

    reassembler.reset()

    assert reassembler.pending == b""
    assert list(reassembler.feed(b"$$2$x$y$z##")) == [b"$$2$x$y$z"]


def test_invalid_construction() -> None:
    with pytest.raises(ValueError):
        FrameReassembler(b"")
    with pytest.raises(ValueError):
        FrameReassembler(b"##", max_buffer=1)
