from __future__ import annotations

from patchbridge._redact import redact_headers, summarize_document


def test_redact_headers_masks_token_but_keeps_scheme() -> None:
    headers = {"Authorization": "Bearer ya29.secret", "accept": "application/json"}

    redacted = redact_headers(headers)

    assert redacted == {"Authorization": "Bearer <redacted>", "accept": "application/json"}
    assert headers["Authorization"] == "Bearer ya29.secret"


def test_redact_headers_masks_bare_credentials() -> None:
    assert redact_headers({"authorization": "ya29.secret"}) == {"authorization": "<redacted>"}


def test_summarize_document_truncates_long_strings() -> None:
    document = {
        "channelNumber": 1,
        "patchName": "x" * 600,
        "tags": ["y" * 600, "short"],
        "stand": {"notes": "z" * 600},
    }

    summary = summarize_document(document, max_string=10)

    assert summary["channelNumber"] == 1
    assert summary["patchName"].startswith("x" * 10)
    assert summary["patchName"].endswith("<truncated>")
    assert summary["tags"][1] == "short"
    assert "<truncated>" in summary["tags"][0]
    assert "<truncated>" in summary["stand"]["notes"]
