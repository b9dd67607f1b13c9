from __future__ import annotations

import json
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from patchbridge.cli import _parse_args, build_reference_store, main
from patchbridge.config import BridgeConfig
from patchbridge.exceptions import StartupFatalError
from patchbridge.reference.firestore import FirestoreReferenceStore
from patchbridge.reference.store import JsonReferenceStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PATCHBRIDGE_REFERENCE_FILE",
        "PATCHBRIDGE_FIRESTORE_PROJECT",
        "PATCHBRIDGE_FIRESTORE_CREDENTIALS",
        "PATCHBRIDGE_LOG_LEVEL",
        "GOOGLE_APPLICATION_CREDENTIALS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="module")
def service_account_key(tmp_path_factory: pytest.TempPathFactory) -> Path:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    path = tmp_path_factory.mktemp("keys") / "serviceAccountKey.json"
    path.write_text(
        json.dumps(
            {
                "type": "service_account",
                "project_id": "stage-patch",
                "private_key_id": "0123456789abcdef",
                "private_key": pem,
                "client_email": "bridge@stage-patch.iam.gserviceaccount.com",
                "client_id": "1234567890",
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        ),
        encoding="utf-8",
    )
    return path


def test_reference_file_takes_precedence(tmp_path: Path, service_account_key: Path) -> None:
    path = tmp_path / "reference.json"
    path.write_text(json.dumps({"1": {"channelNumber": 1}}), encoding="utf-8")

    store = build_reference_store(
        BridgeConfig(reference_file=str(path), firestore_credentials=str(service_account_key))
    )

    assert isinstance(store, JsonReferenceStore)


def test_firestore_project_defaults_to_the_key_project(service_account_key: Path) -> None:
    store = build_reference_store(BridgeConfig(firestore_credentials=str(service_account_key)))

    assert isinstance(store, FirestoreReferenceStore)
    assert "/projects/stage-patch/" in store.document_url("1")


def test_explicit_firestore_project_wins(service_account_key: Path) -> None:
    store = build_reference_store(
        BridgeConfig(firestore_credentials=str(service_account_key), firestore_project="other")
    )

    assert isinstance(store, FirestoreReferenceStore)
    assert "/projects/other/" in store.document_url("1")


def test_google_application_credentials_is_honoured(
    monkeypatch: pytest.MonkeyPatch,
    service_account_key: Path,
) -> None:
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(service_account_key))

    config = BridgeConfig.from_env()

    assert config.firestore_credentials == str(service_account_key)
    assert isinstance(build_reference_store(config), FirestoreReferenceStore)


def test_missing_store_configuration_is_fatal() -> None:
    with pytest.raises(StartupFatalError):
        build_reference_store(BridgeConfig())
    with pytest.raises(StartupFatalError):
        build_reference_store(BridgeConfig(firestore_project="stage"))


def test_main_exits_non_zero_when_reference_store_fails(tmp_path: Path) -> None:
    assert main(["--reference-file", str(tmp_path / "missing.json")]) == 1
    assert main(["--firestore-credentials", str(tmp_path / "missing-key.json")]) == 1
    assert main(["--firestore-project", "stage"]) == 1


def test_main_rejects_invalid_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PATCHBRIDGE_PORT", "not-a-port")

    assert main([]) == 2


def test_main_rejects_unknown_log_level() -> None:
    assert main(["--log-level", "loud"]) == 2


def test_parse_args() -> None:
    args = _parse_args(
        ["--schema", "b", "--retry-delay", "2", "--collection", "patches", "--firestore-credentials", "key.json"]
    )

    assert args.schema == "b"
    assert args.retry_delay == 2.0
    assert args.firestore_collection == "patches"
    assert args.firestore_credentials == "key.json"
    assert args.device is None
