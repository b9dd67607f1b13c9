"""Reference dataset entry model."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from patchbridge.models._base import BridgeBaseModel


class ReferenceRecord(BridgeBaseModel):
    """Authoritative entry for one channel, as stored in the reference dataset.

    All fields are optional: the store owns the data and may omit any of
    them. A missing field simply fails comparison.
    """

    channel_number: int | float | str | None = None
    mic_or_di: str | None = None
    patch_name: str | None = None
    comments_or_stand: str | None = None

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original store document."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        """Keep the original document unless ``raw`` was given explicitly."""
        if not isinstance(values, dict):
            return values
        if "raw" in values:
            return values
        return {**values, "raw": dict(values)}

    def value_for(self, field_name: str) -> Any:
        return getattr(self, field_name, None)
