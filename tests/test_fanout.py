from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from patchbridge.fanout import SubscriberFanout
from patchbridge.models.channel import ChannelRecord
from patchbridge.state.table import ChannelStateTable


@dataclass(eq=False)
class FakeSubscriber:
    is_writable: bool = True
    fail: bool = False
    sent: list[dict[str, Any]] = field(default_factory=list)

    def send(self, message: str) -> None:
        if self.fail:
            raise ConnectionResetError("gone")
        self.sent.append(json.loads(message))


def _record(channel: int, patch: str) -> ChannelRecord:
    return ChannelRecord(channel_number=channel, mic_or_di="SM58", patch_name=patch, comments_or_stand="Stand")


def test_connect_sends_snapshot_keyed_by_string_channel() -> None:
    table = ChannelStateTable()
    table.upsert(_record(1, "Vox"))
    table.upsert(_record(12, "Keys"))
    fanout = SubscriberFanout(table)
    subscriber = FakeSubscriber()

    fanout.on_connect(subscriber)

    assert len(subscriber.sent) == 1
    message = subscriber.sent[0]
    assert message["type"] == "initialData"
    assert set(message["data"]) == {"1", "12"}
    assert message["data"]["1"] == {
        "channelNumber": 1,
        "micOrDi": "SM58",
        "patchName": "Vox",
        "commentsOrStand": "Stand",
        "matchesReference": False,
        "mismatchedFields": [],
        "diagnostic": None,
    }


def test_connect_with_empty_table() -> None:
    fanout = SubscriberFanout(ChannelStateTable())
    subscriber = FakeSubscriber()

    fanout.on_connect(subscriber)

    assert subscriber.sent == [{"type": "initialData", "data": {}}]


def test_broadcast_reaches_every_writable_subscriber() -> None:
    fanout = SubscriberFanout(ChannelStateTable())
    live = FakeSubscriber()
    stalled = FakeSubscriber()
    fanout.on_connect(live)
    fanout.on_connect(stalled)
    stalled.is_writable = False

    delivered = fanout.broadcast_update(_record(3, "Kick"))

    assert delivered == 1
    assert live.sent[-1]["type"] == "update"
    assert live.sent[-1]["data"]["patchName"] == "Kick"
    assert len(stalled.sent) == 1  # only the snapshot


def test_failed_send_is_skipped_not_raised() -> None:
    fanout = SubscriberFanout(ChannelStateTable())
    broken = FakeSubscriber()
    fanout.on_connect(broken)
    broken.fail = True

    assert fanout.broadcast_update(_record(3, "Kick")) == 0
    assert len(fanout) == 1


def test_disconnect_deregisters_and_is_idempotent() -> None:
    fanout = SubscriberFanout(ChannelStateTable())
    first = FakeSubscriber()
    second = FakeSubscriber()
    fanout.on_connect(first)
    fanout.on_connect(second)

    fanout.on_disconnect(first)
    fanout.on_disconnect(first)
    fanout.broadcast_update(_record(4, "Bass"))

    assert fanout.subscribers == (second,)
    assert len(first.sent) == 1
    assert second.sent[-1]["data"]["channelNumber"] == 4


def test_connecting_twice_does_not_duplicate() -> None:
    fanout = SubscriberFanout(ChannelStateTable())
    subscriber = FakeSubscriber()

    fanout.on_connect(subscriber)
    fanout.on_connect(subscriber)
    fanout.broadcast_update(_record(1, "Vox"))

    assert [message["type"] for message in subscriber.sent] == ["initialData", "update"]


def test_snapshot_then_only_later_updates() -> None:
    table = ChannelStateTable()
    fanout = SubscriberFanout(table)
    early = FakeSubscriber()
    fanout.on_connect(early)

    record = _record(1, "Vox")
    table.upsert(record)
    fanout.broadcast_update(record)

    late = FakeSubscriber()
    fanout.on_connect(late)
    newer = _record(1, "Lead Vox")
    table.upsert(newer)
    fanout.broadcast_update(newer)

    assert late.sent[0]["data"]["1"]["patchName"] == "Vox"
    assert [m["data"]["patchName"] for m in late.sent[1:]] == ["Lead Vox"]
    assert [m["type"] for m in early.sent] == ["initialData", "update", "update"]
