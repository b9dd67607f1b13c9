"""patchbridge - Stream microcontroller patch assignments to live subscribers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("patchbridge")
except PackageNotFoundError:
    __version__ = "0+local"

from patchbridge.config import BridgeConfig, DeviceMatch, RetryPolicy
from patchbridge.decoding import DecodeResult, RecordDecoder, SchemaVariant, encode_channel_record
from patchbridge.engine import BridgeEngine
from patchbridge.exceptions import (
    BridgeConfigError,
    BridgeError,
    FrameParseError,
    LinkError,
    ParseErrorKind,
    ReferenceLookupError,
    ReferenceNotFoundError,
    ReferenceUnreachableError,
    StartupFatalError,
)
from patchbridge.fanout import Subscriber, SubscriberFanout
from patchbridge.framing import FrameReassembler
from patchbridge.link import LinkState, LinkSupervisor
from patchbridge.models import (
    ChannelRecord,
    ChannelStatusRecord,
    InitialDataMessage,
    ReferenceRecord,
    UpdateMessage,
)
from patchbridge.reference import (
    FirestoreReferenceStore,
    InMemoryReferenceStore,
    JsonReferenceStore,
    ReferenceStore,
    ReferenceValidator,
    ServiceAccountTokenProvider,
)
from patchbridge.state import ChannelStateTable

__all__ = [
    "__version__",
    "BridgeConfig",
    "BridgeConfigError",
    "BridgeEngine",
    "BridgeError",
    "ChannelRecord",
    "ChannelStateTable",
    "ChannelStatusRecord",
    "DecodeResult",
    "DeviceMatch",
    "FirestoreReferenceStore",
    "FrameParseError",
    "FrameReassembler",
    "InMemoryReferenceStore",
    "InitialDataMessage",
    "JsonReferenceStore",
    "LinkError",
    "LinkState",
    "LinkSupervisor",
    "ParseErrorKind",
    "RecordDecoder",
    "ReferenceLookupError",
    "ReferenceNotFoundError",
    "ReferenceRecord",
    "ReferenceStore",
    "ReferenceUnreachableError",
    "ReferenceValidator",
    "RetryPolicy",
    "SchemaVariant",
    "ServiceAccountTokenProvider",
    "StartupFatalError",
    "Subscriber",
    "SubscriberFanout",
    "UpdateMessage",
    "encode_channel_record",
]
