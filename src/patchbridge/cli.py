"""Command-line entry point: serve the bridge until terminated."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Sequence

from aiohttp import web

from patchbridge.config import BridgeConfig
from patchbridge.decoding import SchemaVariant
from patchbridge.engine import BridgeEngine
from patchbridge.exceptions import BridgeConfigError, StartupFatalError
from patchbridge.link import LinkSupervisor
from patchbridge.reference.credentials import ServiceAccountTokenProvider
from patchbridge.reference.firestore import FirestoreReferenceStore
from patchbridge.reference.store import JsonReferenceStore, ReferenceStore
from patchbridge.server import build_app

_logger = logging.getLogger("patchbridge")


def build_reference_store(config: BridgeConfig) -> ReferenceStore:
    """Create the configured reference store.

    Raises :class:`StartupFatalError` when no store is configured or the
    configured one cannot be initialized.
    """
    if config.reference_file:
        return JsonReferenceStore(config.reference_file)
    if config.firestore_credentials:
        credentials = ServiceAccountTokenProvider.from_file(config.firestore_credentials)
        project = config.firestore_project or credentials.project_id
        if not project:
            raise StartupFatalError(
                f"No Firestore project configured and none in {config.firestore_credentials}",
            )
        return FirestoreReferenceStore(
            project,
            credentials=credentials,
            collection=config.firestore_collection,
        )
    if config.firestore_project:
        raise StartupFatalError(
            "Firestore needs a service account key (--firestore-credentials or GOOGLE_APPLICATION_CREDENTIALS)",
        )
    raise StartupFatalError(
        "No reference store configured (use --reference-file or --firestore-credentials)",
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="patchbridge",
        description="Bridge a microcontroller patch stream to WebSocket subscribers",
    )
    parser.add_argument("--host", help="Interface to bind the HTTP/WebSocket server to")
    parser.add_argument("--port", type=int, help="HTTP/WebSocket server port (default 8080)")
    parser.add_argument("--device", help="Serial device path; discovered automatically when omitted")
    parser.add_argument("--baud-rate", type=int, help="Serial baud rate (default 115200)")
    parser.add_argument(
        "--schema",
        choices=["a", "b", *(variant.value for variant in SchemaVariant)],
        help="Wire schema: a = field-delimited (default), b = fixed pattern",
    )
    parser.add_argument("--reference-file", help="JSON reference dataset keyed by channel number")
    parser.add_argument(
        "--firestore-credentials",
        help="Service account key file for Firestore (default $GOOGLE_APPLICATION_CREDENTIALS)",
    )
    parser.add_argument(
        "--firestore-project",
        help="Google Cloud project holding the reference collection (default: the key's project)",
    )
    parser.add_argument("--collection", dest="firestore_collection", help="Firestore collection name")
    parser.add_argument("--retry-delay", type=float, help="Seconds between device open attempts (default 5)")
    parser.add_argument("--log-level", help="Logging level (default INFO)")
    return parser.parse_args(argv)


async def _serve(config: BridgeConfig, store: ReferenceStore) -> None:
    async with contextlib.AsyncExitStack() as stack:
        if isinstance(store, FirestoreReferenceStore):
            await stack.enter_async_context(store)

        engine = BridgeEngine(store, schema=config.schema)
        supervisor = LinkSupervisor(
            engine.feed,
            device=config.device,
            baud_rate=config.baud_rate,
            retry=config.retry,
            device_match=config.device_match,
        )
        runner = web.AppRunner(build_app(engine, supervisor))
        await runner.setup()
        stack.push_async_callback(runner.cleanup)

        site = web.TCPSite(runner, config.host, config.port)
        await site.start()
        _logger.info("Server is running on %s:%d", config.host, config.port)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)
        await stop.wait()
        _logger.info("Shutting down")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = BridgeConfig.from_env(
            host=args.host,
            port=args.port,
            device=args.device,
            baud_rate=args.baud_rate,
            schema=args.schema,
            reference_file=args.reference_file,
            firestore_project=args.firestore_project,
            firestore_credentials=args.firestore_credentials,
            firestore_collection=args.firestore_collection,
            retry=args.retry_delay,
            log_level=args.log_level,
        )
    except BridgeConfigError as exc:
        print(f"patchbridge: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        store = build_reference_store(config)
    except StartupFatalError as exc:
        _logger.error("Error initializing reference store: %s", exc)
        return 1
    _logger.info("Reference store initialized: %s", type(store).__name__)

    try:
        asyncio.run(_serve(config, store))
    except StartupFatalError as exc:
        _logger.error("Error initializing reference store: %s", exc)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
