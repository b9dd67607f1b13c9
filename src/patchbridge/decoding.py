"""Frame → record decoding for the supported wire schemas.

Two schemas are observed on the device stream:

* field-delimited: ``$$<channel>$<micOrDi>$<patchName>$<commentsOrStand>##``
* fixed pattern: ``$$<channel>$Ch<n>$(On|Off)$(FOH|MOH)##``

The schema is chosen once, when the :class:`RecordDecoder` is built.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from patchbridge._constants import FIELD_SEPARATOR, FRAME_DELIMITER, FRAME_PREFIX
from patchbridge.exceptions import FrameParseError, ParseErrorKind
from patchbridge.models.channel import ChannelRecord, ChannelStatusRecord
from patchbridge.models.messages import WireRecord

_logger = logging.getLogger(__name__)

_CHANNEL_RE = re.compile(r"[0-9]+")
_TERMINATOR = FRAME_DELIMITER.decode("ascii")

_FIXED_PATTERN_RE = re.compile(
    r"\$\$(?P<channel>[^$]*)"
    r"\$(?P<name>Ch\d+)"
    r"\$(?P<status>On|Off)"
    r"\$(?P<attention>FOH|MOH)"
    rf"(?:{re.escape(_TERMINATOR)})?"
)


class SchemaVariant(StrEnum):
    FIELD_DELIMITED = "field-delimited"
    FIXED_PATTERN = "fixed-pattern"


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of decoding one frame: exactly one of ``record``/``error`` is set."""

    record: WireRecord | None = None
    error: FrameParseError | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def _frame_text(frame: bytes) -> str:
    return frame.decode("utf-8", errors="replace").strip()


def _parse_channel(text: str, frame: bytes) -> int:
    value = text.strip()
    if _CHANNEL_RE.fullmatch(value):
        try:
            return int(value)
        except ValueError:
            # int() refuses digit strings beyond sys.get_int_max_str_digits()
            pass
    raise FrameParseError(
        f"Invalid channel number: {value[:32]!r}",
        kind=ParseErrorKind.INVALID_CHANNEL,
        frame=frame,
    )


def decode_field_delimited(frame: bytes) -> ChannelRecord:
    """Decode a field-delimited frame.

    Raises :class:`FrameParseError` on any structural or channel error.
    """
    text = _frame_text(frame)
    parts = text.split(FIELD_SEPARATOR)

    # ["", "", channel, micOrDi, patchName, commentsOrStand]
    if len(parts) != 6 or parts[0] != "" or parts[1] != "":
        raise FrameParseError(
            f"Invalid data format: {text!r}",
            kind=ParseErrorKind.MALFORMED_FRAME,
            frame=frame,
        )

    comments_or_stand = parts[5].strip()
    if comments_or_stand.endswith(_TERMINATOR):
        comments_or_stand = comments_or_stand[: -len(_TERMINATOR)].strip()

    return ChannelRecord(
        channel_number=_parse_channel(parts[2], frame),
        mic_or_di=parts[3].strip(),
        patch_name=parts[4].strip(),
        comments_or_stand=comments_or_stand,
    )


def decode_fixed_pattern(frame: bytes) -> ChannelStatusRecord:
    """Decode a fixed-pattern status frame.

    Raises :class:`FrameParseError` on any deviation from the pattern.
    """
    text = _frame_text(frame)
    match = _FIXED_PATTERN_RE.fullmatch(text)
    if match is None:
        raise FrameParseError(
            f"Frame does not match status pattern: {text!r}",
            kind=ParseErrorKind.MALFORMED_FRAME,
            frame=frame,
        )
    return ChannelStatusRecord(
        channel_number=_parse_channel(match["channel"], frame),
        name=match["name"],
        status=match["status"],
        attention=match["attention"],
    )


_DECODERS: dict[SchemaVariant, Callable[[bytes], WireRecord]] = {
    SchemaVariant.FIELD_DELIMITED: decode_field_delimited,
    SchemaVariant.FIXED_PATTERN: decode_fixed_pattern,
}


class RecordDecoder:
    """Decode frames under a schema fixed at construction."""

    def __init__(self, schema: SchemaVariant = SchemaVariant.FIELD_DELIMITED) -> None:
        self._schema = SchemaVariant(schema)
        self._decode = _DECODERS[self._schema]

    @property
    def schema(self) -> SchemaVariant:
        return self._schema

    def decode(self, frame: bytes) -> DecodeResult:
        """Decode *frame*; never raises."""
        try:
            record = self._decode(frame)
        except FrameParseError as exc:
            return DecodeResult(error=exc)
        _logger.debug("Decoded frame %r as %s", frame, record)
        return DecodeResult(record=record)


def encode_channel_record(record: ChannelRecord) -> bytes:
    """Render *record* in field-delimited wire form, delimiter included."""
    fields = (
        str(record.channel_number),
        record.mic_or_di,
        record.patch_name,
        record.comments_or_stand,
    )
    return (FRAME_PREFIX + FIELD_SEPARATOR.join(fields) + _TERMINATOR).encode("utf-8")
