"""Service-account access tokens for the Firestore REST store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from patchbridge._constants import FIRESTORE_SCOPES
from patchbridge.exceptions import ReferenceUnreachableError, StartupFatalError

_logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    """Structural interface for something that hands out bearer tokens."""

    async def token(self) -> str:
        ...

    def invalidate(self) -> None:
        ...


class ServiceAccountTokenProvider:
    """OAuth2 access tokens minted from a Google service-account key.

    A token is refreshed whenever it is missing, expired, or was rejected
    by the server (see :meth:`invalidate`), so the bridge can run for as
    long as the key stays valid. Refreshing is a blocking HTTP call and
    runs in the loop's default executor.

    Usage::

        provider = ServiceAccountTokenProvider.from_file("serviceAccountKey.json")
        headers = {"authorization": f"Bearer {await provider.token()}"}
    """

    def __init__(self, credentials: Any, *, request: Any | None = None) -> None:
        self._credentials = credentials
        self._request = request if request is not None else Request()
        self._lock = asyncio.Lock()
        self._rejected = False

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        scopes: Sequence[str] = FIRESTORE_SCOPES,
    ) -> ServiceAccountTokenProvider:
        """Load a service-account key file.

        Raises :class:`StartupFatalError` when the file is missing or is not
        a usable service-account key.
        """
        try:
            credentials = service_account.Credentials.from_service_account_file(
                str(path),
                scopes=list(scopes),
            )
        except (OSError, ValueError, google_auth_exceptions.GoogleAuthError) as exc:
            raise StartupFatalError(f"Cannot load service account key {path}: {exc}") from exc
        _logger.info("Loaded service account %s", credentials.service_account_email)
        return cls(credentials)

    @property
    def project_id(self) -> str | None:
        return getattr(self._credentials, "project_id", None)

    def invalidate(self) -> None:
        """Force a refresh before the next token is handed out."""
        self._rejected = True

    async def token(self) -> str:
        """Return a valid access token, refreshing it first when needed.

        Raises :class:`ReferenceUnreachableError` when the refresh fails.
        """
        async with self._lock:
            if self._rejected or not self._credentials.valid:
                await self._refresh()
            return str(self._credentials.token)

    async def _refresh(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._credentials.refresh, self._request)
        except google_auth_exceptions.GoogleAuthError as exc:
            raise ReferenceUnreachableError(f"Access token refresh failed: {exc}") from exc
        self._rejected = False
        _logger.debug("Access token refreshed; expires %s", self._credentials.expiry)
