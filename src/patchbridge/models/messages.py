"""Messages pushed to subscribers."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

from patchbridge.models.channel import ChannelRecord, ChannelStatusRecord

WireRecord = ChannelRecord | ChannelStatusRecord


class InitialDataMessage(BaseModel):
    """Full state table, sent once to a newly connected subscriber.

    ``data`` is keyed by the channel number in string form.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["initialData"] = "initialData"
    data: dict[str, WireRecord]

    @classmethod
    def from_snapshot(cls, snapshot: dict[int, WireRecord]) -> InitialDataMessage:
        return cls(data={str(channel): record for channel, record in snapshot.items()})

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class UpdateMessage(BaseModel):
    """A single validated record, broadcast to every subscriber."""

    model_config = ConfigDict(frozen=True)

    type: Literal["update"] = "update"
    data: WireRecord

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
