"""Firestore REST reference store."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from patchbridge._constants import DEFAULT_COLLECTION, FIRESTORE_BASE_URL
from patchbridge._redact import redact_headers, summarize_document
from patchbridge.exceptions import ReferenceUnreachableError, StartupFatalError
from patchbridge.models.reference import ReferenceRecord
from patchbridge.reference.credentials import TokenProvider

_logger = logging.getLogger(__name__)


def decode_firestore_value(value: dict[str, Any]) -> Any:
    """Unwrap one Firestore typed value (``{"integerValue": "1"}`` → ``1``)."""
    if "nullValue" in value:
        return None
    if "stringValue" in value:
        return value["stringValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "timestampValue" in value:
        return value["timestampValue"]
    if "mapValue" in value:
        return decode_firestore_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_firestore_value(item) for item in value["arrayValue"].get("values", [])]
    # referenceValue, geoPointValue, bytesValue: keep the payload as-is
    return next(iter(value.values()), None)


def decode_firestore_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Unwrap a Firestore document ``fields`` object into plain Python values."""
    return {name: decode_firestore_value(typed) for name, typed in fields.items()}


class FirestoreReferenceStore:
    """Reference store reading documents through the Firestore REST API.

    Requests carry a bearer token from *credentials*. Entering the store
    fetches a first token, so bad credentials fail at startup rather than
    on the first lookup. A 401 during a lookup invalidates the token and
    the request is retried once with a fresh one.

    Usage::

        credentials = ServiceAccountTokenProvider.from_file(key_path)
        async with FirestoreReferenceStore("my-project", credentials=credentials) as store:
            record = await store.get("1")
    """

    def __init__(
        self,
        project: str,
        *,
        credentials: TokenProvider,
        collection: str = DEFAULT_COLLECTION,
        session: aiohttp.ClientSession | None = None,
        base_url: str = FIRESTORE_BASE_URL,
    ) -> None:
        if not project:
            raise StartupFatalError("Firestore project id is required")
        self._project = project
        self._credentials = credentials
        self._collection = collection
        self._base_url = base_url.rstrip("/")
        self._external_session = session is not None
        self._http = session

    async def __aenter__(self) -> FirestoreReferenceStore:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        try:
            await self.verify_credentials()
        except StartupFatalError:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
        self._http = None

    async def verify_credentials(self) -> None:
        """Obtain a token now; raise :class:`StartupFatalError` if that fails."""
        try:
            await self._credentials.token()
        except ReferenceUnreachableError as exc:
            raise StartupFatalError(f"Firestore credentials could not be initialized: {exc}") from exc
        _logger.info("Firestore credentials initialized for project %s", self._project)

    def document_url(self, key: str) -> str:
        return (
            f"{self._base_url}/projects/{quote(self._project, safe='')}"
            f"/databases/(default)/documents/{quote(self._collection, safe='')}/{quote(key, safe='')}"
        )

    async def get(self, key: str) -> ReferenceRecord | None:
        """Fetch the document for *key*; ``None`` when it does not exist."""
        if self._http is None:
            raise ReferenceUnreachableError(
                "Store not initialized. Use 'async with FirestoreReferenceStore(...) as store:'",
                key=key,
            )

        url = self.document_url(key)
        status, text = await self._fetch(self._http, url, key)
        if status == 401:
            _logger.info("Access token rejected for reference %s; refreshing", key)
            self._credentials.invalidate()
            status, text = await self._fetch(self._http, url, key)

        if status == 404:
            return None
        if status != 200:
            raise ReferenceUnreachableError(
                f"HTTP {status} for reference {key}: {text[:200]}",
                key=key,
                status_code=status,
            )

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ReferenceUnreachableError(f"Invalid JSON for reference {key}: {text[:200]}", key=key) from exc

        if not isinstance(body, dict):
            raise ReferenceUnreachableError(f"Unexpected document shape for reference {key}", key=key)

        document = decode_firestore_fields(body.get("fields") or {})
        _logger.debug("Reference %s: %s", key, summarize_document(document))
        return ReferenceRecord.model_validate(document)

    async def _fetch(self, session: aiohttp.ClientSession, url: str, key: str) -> tuple[int, str]:
        headers = {"authorization": f"Bearer {await self._credentials.token()}"}
        _logger.debug("GET %s headers=%s", url, redact_headers(headers))
        try:
            async with session.get(url, headers=headers) as resp:
                return resp.status, await resp.text()
        except aiohttp.ClientError as exc:
            raise ReferenceUnreachableError(f"Reference lookup for {key} failed: {exc}", key=key) from exc
