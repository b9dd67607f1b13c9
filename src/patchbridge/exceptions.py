"""Custom exception hierarchy for patchbridge."""

from __future__ import annotations

from enum import StrEnum


class BridgeError(Exception):
    """Base exception for all patchbridge errors."""


class BridgeConfigError(BridgeError):
    """Invalid or missing configuration."""


class ParseErrorKind(StrEnum):
    MALFORMED_FRAME = "MalformedFrame"
    INVALID_CHANNEL = "InvalidChannel"


class FrameParseError(BridgeError):
    """A frame could not be decoded into a record.

    Raised inside the decoder only; :meth:`RecordDecoder.decode` catches it
    and hands it back in a :class:`DecodeResult`.
    """

    def __init__(self, message: str, *, kind: ParseErrorKind, frame: bytes = b"") -> None:
        self.kind = kind
        self.frame = frame
        super().__init__(message)


class ReferenceLookupError(BridgeError):
    """Reference store lookup failure."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class ReferenceUnreachableError(ReferenceLookupError):
    """The reference store could not be reached (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, key=key)


class ReferenceNotFoundError(ReferenceLookupError):
    """No reference entry exists for the requested key.

    Stores normally return ``None`` instead; the validator treats both the
    same way.
    """


class LinkError(BridgeError):
    """Device link I/O failure (open, read, or unexpected close)."""

    def __init__(self, message: str, *, device: str = "") -> None:
        self.device = device
        super().__init__(message)


class StartupFatalError(BridgeError):
    """The bridge cannot start (reference store credentials or initialization).

    This is the only error that terminates the process.
    """
