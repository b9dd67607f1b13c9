"""Cross-check decoded records against the reference store."""

from __future__ import annotations

import logging
import math
from typing import Any, TypeVar

from patchbridge.exceptions import ReferenceNotFoundError, ReferenceUnreachableError
from patchbridge.models._base import DecodedRecord
from patchbridge.models.reference import ReferenceRecord
from patchbridge.reference.store import ReferenceStore

_logger = logging.getLogger(__name__)

TRecord = TypeVar("TRecord", bound=DecodedRecord)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip()


def _values_match(device_value: Any, reference_value: Any, *, numeric: bool) -> bool:
    if numeric:
        left = _as_number(device_value)
        right = _as_number(reference_value)
        return left is not None and left == right
    if not isinstance(reference_value, str):
        return False
    return _as_text(device_value) == reference_value.strip()


def compare_to_reference(record: DecodedRecord, reference: ReferenceRecord) -> frozenset[str]:
    """Return the wire names of every field where *record* disagrees with *reference*."""
    mismatched: set[str] = set()
    for field_name in record.reference_fields():
        if not _values_match(
            getattr(record, field_name),
            reference.value_for(field_name),
            numeric=record.is_numeric_field(field_name),
        ):
            mismatched.add(record.wire_name(field_name))
    return frozenset(mismatched)


class ReferenceValidator:
    """Annotate decoded records with their agreement with the reference store.

    :meth:`validate` never raises: a missing entry or an unreachable store
    produce a non-matching record with a diagnostic instead.
    """

    def __init__(self, store: ReferenceStore) -> None:
        self._store = store

    @property
    def store(self) -> ReferenceStore:
        return self._store

    async def validate(self, record: TRecord) -> TRecord:
        key = str(record.channel_number)
        try:
            reference = await self._store.get(key)
        except ReferenceNotFoundError:
            reference = None
        except ReferenceUnreachableError as exc:
            _logger.warning("Reference store unreachable for channel %s: %s", key, exc)
            return self._annotate(record, diagnostic=f"reference store unreachable: {exc}")
        except Exception as exc:
            _logger.warning("Reference lookup for channel %s failed", key, exc_info=True)
            return self._annotate(record, diagnostic=f"reference lookup failed: {exc!r}")

        if reference is None:
            _logger.warning("No reference entry for channel %s", key)
            return self._annotate(record, diagnostic=f"no reference entry for channel {key}")

        mismatched = compare_to_reference(record, reference)
        if not mismatched:
            return record.model_copy(
                update={"matches_reference": True, "mismatched_fields": frozenset(), "diagnostic": None}
            )

        _logger.warning("Mismatch detected for channel %s:", key)
        for field_name in record.reference_fields():
            wire = record.wire_name(field_name)
            if wire in mismatched:
                _logger.warning(
                    ' - Field "%s" does not match. Device: "%s", Reference: "%s"',
                    wire,
                    getattr(record, field_name),
                    reference.value_for(field_name),
                )
        return self._annotate(
            record,
            mismatched=mismatched,
            diagnostic="mismatched fields: " + ", ".join(sorted(mismatched)),
        )

    @staticmethod
    def _annotate(
        record: TRecord,
        *,
        diagnostic: str,
        mismatched: frozenset[str] = frozenset(),
    ) -> TRecord:
        return record.model_copy(
            update={"matches_reference": False, "mismatched_fields": mismatched, "diagnostic": diagnostic}
        )
