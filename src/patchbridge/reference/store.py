"""Reference store interface and local backends."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from patchbridge.exceptions import StartupFatalError
from patchbridge.models.reference import ReferenceRecord

_logger = logging.getLogger(__name__)


class ReferenceStore(Protocol):
    """Structural interface for the authoritative reference dataset.

    Keys are channel numbers in string form. ``get`` returns ``None`` when
    the store has no entry; transport failures raise
    :class:`~patchbridge.exceptions.ReferenceUnreachableError`.
    """

    async def get(self, key: str) -> ReferenceRecord | None:
        ...


class InMemoryReferenceStore:
    """Reference store backed by a plain mapping of key → document."""

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._records: dict[str, ReferenceRecord] = {}
        for key, document in (documents or {}).items():
            self.put(str(key), document)

    def put(self, key: str, document: Mapping[str, Any] | ReferenceRecord) -> None:
        if isinstance(document, ReferenceRecord):
            self._records[key] = document
        else:
            self._records[key] = ReferenceRecord.model_validate(dict(document))

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, key: str) -> ReferenceRecord | None:
        return self._records.get(key)


class JsonReferenceStore(InMemoryReferenceStore):
    """Reference dataset loaded once from a JSON object keyed by channel id.

    The file uses the same layout as the seed data::

        {"1": {"channelNumber": 1, "micOrDi": "Shure SM58", ...}, ...}
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        super().__init__(self._load(self._path))
        _logger.info("Loaded %d reference entries from %s", len(self), self._path)

    @property
    def path(self) -> Path:
        return self._path

    @staticmethod
    def _load(path: Path) -> dict[str, dict[str, Any]]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StartupFatalError(f"Cannot read reference file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StartupFatalError(f"Reference file {path} is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise StartupFatalError(f"Reference file {path} must contain a JSON object")

        documents: dict[str, dict[str, Any]] = {}
        for key, value in payload.items():
            if not isinstance(value, dict):
                raise StartupFatalError(f"Reference entry {key!r} in {path} is not an object")
            documents[str(key)] = value
        return documents

    def put(self, key: str, document: Mapping[str, Any] | ReferenceRecord) -> None:
        try:
            super().put(key, document)
        except ValidationError as exc:
            raise StartupFatalError(f"Reference entry {key!r} is invalid: {exc}") from exc
