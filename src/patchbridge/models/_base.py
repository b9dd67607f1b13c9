"""Base models for decoded device records.

Every record model inherits from :class:`BridgeBaseModel` which provides
``alias_generator=to_camel`` so the camelCase keys used on the wire
(``channelNumber``, ``micOrDi``, ...) map to snake_case fields.

Decoded records share :class:`DecodedRecord`, which carries the channel
identity and the reference-validation annotations. Subclasses list the
fields that take part in reference comparison in ``_REFERENCE_FIELDS``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class BridgeBaseModel(BaseModel):
    """Base for all patchbridge models.

    Handles:
    * camelCase ↔ snake_case via ``alias_generator=to_camel``
    * immutability (annotate with ``model_copy(update=...)``)
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the camelCase wire keys."""
        return self.model_dump(mode="json", by_alias=True)


class DecodedRecord(BridgeBaseModel):
    """Fields common to every decoded device record."""

    _REFERENCE_FIELDS: ClassVar[tuple[str, ...]] = ("channel_number",)
    """Python field names compared against the reference entry."""

    _NUMERIC_FIELDS: ClassVar[frozenset[str]] = frozenset({"channel_number"})
    """Reference fields compared as numbers rather than trimmed strings."""

    channel_number: int
    """Channel id; the sole state-table key."""

    matches_reference: bool = False
    """Whether every compared field agrees with the reference entry."""

    mismatched_fields: frozenset[str] = Field(default_factory=frozenset)
    """Wire names of the fields that disagree with the reference entry."""

    diagnostic: str | None = None
    """Why the record does not match, when it doesn't."""

    @field_serializer("mismatched_fields")
    def _serialize_mismatched(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    @classmethod
    def reference_fields(cls) -> tuple[str, ...]:
        return cls._REFERENCE_FIELDS

    @classmethod
    def is_numeric_field(cls, field_name: str) -> bool:
        return field_name in cls._NUMERIC_FIELDS

    @staticmethod
    def wire_name(field_name: str) -> str:
        return to_camel(field_name)
