"""Data models for decoded records, reference entries and subscriber messages."""

from patchbridge.models._base import BridgeBaseModel, DecodedRecord
from patchbridge.models.channel import ChannelRecord, ChannelStatusRecord
from patchbridge.models.messages import InitialDataMessage, UpdateMessage, WireRecord
from patchbridge.models.reference import ReferenceRecord

__all__ = [
    "BridgeBaseModel",
    "ChannelRecord",
    "ChannelStatusRecord",
    "DecodedRecord",
    "InitialDataMessage",
    "ReferenceRecord",
    "UpdateMessage",
    "WireRecord",
]
