"""Redaction for Firestore debug logging.

The store logs its request headers and the decoded reference documents at
DEBUG level. Headers carry the service-account access token; documents
are operator data and only need long values shortened.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_CREDENTIAL_HEADERS: frozenset[str] = frozenset({"authorization"})


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy *headers* with credentials masked; the auth scheme stays visible."""
    redacted: dict[str, str] = {}
    for name, value in headers.items():
        if name.lower() not in _CREDENTIAL_HEADERS:
            redacted[name] = value
            continue
        scheme, sep, _ = value.partition(" ")
        redacted[name] = f"{scheme} <redacted>" if sep else "<redacted>"
    return redacted


def summarize_document(value: Any, *, max_string: int = 120) -> Any:
    """Return *value* with strings longer than *max_string* truncated."""
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, Mapping):
        return {str(k): summarize_document(v, max_string=max_string) for k, v in value.items()}
    if isinstance(value, list):
        return [summarize_document(v, max_string=max_string) for v in value]
    return value
