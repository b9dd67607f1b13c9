from __future__ import annotations

from patchbridge.models.channel import ChannelRecord
from patchbridge.state.table import ChannelStateTable


def _record(channel: int, patch: str) -> ChannelRecord:
    return ChannelRecord(channel_number=channel, patch_name=patch)


def test_upsert_replaces_entry_wholesale() -> None:
    table = ChannelStateTable()
    table.upsert(ChannelRecord(channel_number=1, mic_or_di="SM58", patch_name="Vox"))
    table.upsert(_record(1, "Guitar"))

    entry = table.get(1)
    assert entry is not None
    assert entry.patch_name == "Guitar"
    assert entry.mic_or_di == ""
    assert len(table) == 1


def test_snapshot_is_a_copy() -> None:
    table = ChannelStateTable()
    table.upsert(_record(1, "Vox"))

    snapshot = table.snapshot()
    table.upsert(_record(2, "Snare"))

    assert list(snapshot) == [1]
    assert sorted(table) == [1, 2]
    assert 2 in table


def test_sequences_are_per_channel_and_increasing() -> None:
    table = ChannelStateTable()

    assert [table.reserve(5), table.reserve(5), table.reserve(6), table.reserve(5)] == [1, 2, 1, 3]


def test_stale_result_is_discarded() -> None:
    table = ChannelStateTable()
    first = table.reserve(5)
    second = table.reserve(5)

    assert table.apply(_record(5, "newer"), second) is True
    assert table.apply(_record(5, "older"), first) is False

    entry = table.get(5)
    assert entry is not None
    assert entry.patch_name == "newer"


def test_in_order_results_both_apply() -> None:
    table = ChannelStateTable()
    first = table.reserve(5)
    second = table.reserve(5)

    assert table.apply(_record(5, "first"), first) is True
    assert table.apply(_record(5, "second"), second) is True
    assert table.get(5).patch_name == "second"  # type: ignore[union-attr]


def test_upsert_after_reserved_sequences_still_wins() -> None:
    table = ChannelStateTable()
    pending = table.reserve(5)

    table.upsert(_record(5, "manual"))

    assert table.apply(_record(5, "late"), pending) is False
    assert table.get(5).patch_name == "manual"  # type: ignore[union-attr]
