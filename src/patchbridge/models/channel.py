"""Channel records decoded from the device stream."""

from __future__ import annotations

from typing import ClassVar, Literal

from patchbridge.models._base import DecodedRecord


class ChannelRecord(DecodedRecord):
    """Patch assignment for one channel (field-delimited schema).

    Wire form: ``$$<channel>$<micOrDi>$<patchName>$<commentsOrStand>##``.
    """

    _REFERENCE_FIELDS: ClassVar[tuple[str, ...]] = (
        "channel_number",
        "mic_or_di",
        "patch_name",
        "comments_or_stand",
    )

    mic_or_di: str = ""
    """Microphone model or DI box feeding the channel."""

    patch_name: str = ""
    """Source name patched into the channel (e.g. ``"Main Vocals"``)."""

    comments_or_stand: str = ""
    """Stand type or free-form comment."""


class ChannelStatusRecord(DecodedRecord):
    """On/off status for one channel (fixed-pattern schema).

    Wire form: ``$$<channel>$Ch<n>$(On|Off)$(FOH|MOH)##``. The reference
    dataset only knows the channel number, so nothing else is compared.
    """

    name: str
    """Secondary channel label, e.g. ``"Ch3"``."""

    status: Literal["On", "Off"]

    attention: Literal["FOH", "MOH"]
    """Which mix position the channel is flagged for."""
