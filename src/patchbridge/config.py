"""Bridge configuration for patchbridge."""

from __future__ import annotations

import dataclasses
import logging
import os
from typing import Any

from patchbridge._constants import (
    BAUD_RATE,
    DEFAULT_COLLECTION,
    DEFAULT_HTTP_HOST,
    DEFAULT_HTTP_PORT,
    DEFAULT_RETRY_DELAY,
    DEVICE_MANUFACTURERS,
    DEVICE_VENDOR_IDS,
)
from patchbridge.decoding import SchemaVariant
from patchbridge.exceptions import BridgeConfigError


def _env_int(value: str, name: str) -> int:
    try:
        return int(value.strip(), 0)
    except ValueError as exc:
        raise BridgeConfigError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(value: str, name: str) -> float:
    try:
        return float(value.strip())
    except ValueError as exc:
        raise BridgeConfigError(f"{name} must be a number, got {value!r}") from exc


def parse_schema(value: str | SchemaVariant) -> SchemaVariant:
    """Accept ``"a"``/``"b"`` shorthands as well as the enum values."""
    if isinstance(value, SchemaVariant):
        return value
    normalized = value.strip().lower()
    aliases = {
        "a": SchemaVariant.FIELD_DELIMITED,
        "b": SchemaVariant.FIXED_PATTERN,
    }
    if normalized in aliases:
        return aliases[normalized]
    try:
        return SchemaVariant(normalized)
    except ValueError as exc:
        raise BridgeConfigError(f"Unknown schema variant {value!r}") from exc


def parse_log_level(value: str) -> str:
    """Normalize a logging level name, rejecting unknown ones."""
    normalized = value.strip().upper()
    if normalized not in logging.getLevelNamesMapping():
        raise BridgeConfigError(f"Unknown log level {value!r}")
    return normalized


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Device reconnect policy.

    The bridge retries forever at a fixed interval; there is no backoff
    and no retry cap.
    """

    delay: float = DEFAULT_RETRY_DELAY

    def __post_init__(self) -> None:
        if self.delay < 0:
            raise BridgeConfigError(f"retry delay must be >= 0, got {self.delay}")


@dataclasses.dataclass(frozen=True)
class DeviceMatch:
    """Identifying metadata used to pick the device among attached serial ports.

    A port matches when its manufacturer string contains any of
    ``manufacturers`` or its USB vendor id is one of ``vendor_ids``.
    """

    manufacturers: tuple[str, ...] = DEVICE_MANUFACTURERS
    vendor_ids: tuple[int, ...] = DEVICE_VENDOR_IDS


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Parameters
    ----------
    host : str
        Interface the HTTP/WebSocket server binds to.
    port : int
        HTTP/WebSocket server port.
    device : str or None
        Explicit serial device path. When ``None`` the device is discovered
        once at startup using ``device_match``.
    baud_rate : int
        Serial baud rate.
    schema : SchemaVariant
        Wire schema the device speaks.
    retry : RetryPolicy
        Reconnect policy for the device link.
    device_match : DeviceMatch
        Discovery criteria.
    reference_file : str or None
        Path to a JSON reference dataset. Takes precedence over Firestore.
    firestore_project : str or None
        Google Cloud project holding the reference collection.
    firestore_collection : str
        Firestore collection name.
    firestore_credentials : str or None
        Path to a Google service-account key file used to mint Firestore
        access tokens. Falls back to ``GOOGLE_APPLICATION_CREDENTIALS``.
    log_level : str
        Root logging level used by the CLI.
    """

    host: str = DEFAULT_HTTP_HOST
    port: int = DEFAULT_HTTP_PORT
    device: str | None = None
    baud_rate: int = BAUD_RATE
    schema: SchemaVariant = SchemaVariant.FIELD_DELIMITED
    retry: RetryPolicy = dataclasses.field(default_factory=RetryPolicy)
    device_match: DeviceMatch = dataclasses.field(default_factory=DeviceMatch)
    reference_file: str | None = None
    firestore_project: str | None = None
    firestore_collection: str = DEFAULT_COLLECTION
    firestore_credentials: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from ``PATCHBRIDGE_*`` environment variables.

        Explicit keyword arguments override environment values; a ``None``
        override is ignored so CLI flags that were not given fall through.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        BridgeConfig
            Populated configuration.
        """
        env = os.environ
        overrides = {key: value for key, value in overrides.items() if value is not None}

        _ENV_CONFIG_MAP = {
            "PATCHBRIDGE_HOST": "host",
            "PATCHBRIDGE_DEVICE": "device",
            "PATCHBRIDGE_REFERENCE_FILE": "reference_file",
            "PATCHBRIDGE_FIRESTORE_PROJECT": "firestore_project",
            "PATCHBRIDGE_FIRESTORE_COLLECTION": "firestore_collection",
            "PATCHBRIDGE_FIRESTORE_CREDENTIALS": "firestore_credentials",
            "PATCHBRIDGE_LOG_LEVEL": "log_level",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None and val.strip():
                config_kwargs[field_name] = val.strip()

        adc_env = env.get("GOOGLE_APPLICATION_CREDENTIALS")
        if adc_env and adc_env.strip() and "firestore_credentials" not in config_kwargs:
            config_kwargs["firestore_credentials"] = adc_env.strip()

        port_env = env.get("PATCHBRIDGE_PORT")
        if port_env is not None and "port" not in overrides:
            config_kwargs["port"] = _env_int(port_env, "PATCHBRIDGE_PORT")

        baud_env = env.get("PATCHBRIDGE_BAUD_RATE")
        if baud_env is not None and "baud_rate" not in overrides:
            config_kwargs["baud_rate"] = _env_int(baud_env, "PATCHBRIDGE_BAUD_RATE")

        schema_env = env.get("PATCHBRIDGE_SCHEMA")
        if schema_env is not None and "schema" not in overrides:
            config_kwargs["schema"] = parse_schema(schema_env)

        # retry delay is nested, handle separately
        delay_env = env.get("PATCHBRIDGE_RETRY_DELAY")
        if delay_env is not None and "retry" not in overrides:
            config_kwargs["retry"] = RetryPolicy(delay=_env_float(delay_env, "PATCHBRIDGE_RETRY_DELAY"))

        if "schema" in overrides:
            overrides["schema"] = parse_schema(overrides["schema"])
        retry_override = overrides.get("retry")
        if isinstance(retry_override, (int, float)):
            overrides["retry"] = RetryPolicy(delay=float(retry_override))

        config_kwargs.update(overrides)
        if "log_level" in config_kwargs:
            config_kwargs["log_level"] = parse_log_level(config_kwargs["log_level"])

        return cls(**config_kwargs)
