"""aiohttp web adapter: the subscriber WebSocket and the app lifecycle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from aiohttp import WSMsgType, web
from aiohttp.web import AppKey

from patchbridge._constants import WEBSOCKET_PATH
from patchbridge.engine import BridgeEngine
from patchbridge.link import LinkSupervisor

_logger = logging.getLogger(__name__)

ENGINE_KEY: AppKey[BridgeEngine] = web.AppKey("engine", BridgeEngine)
SUPERVISOR_KEY: AppKey[LinkSupervisor] = web.AppKey("link_supervisor", LinkSupervisor)


class WebSocketSubscriber:
    """Adapt an aiohttp WebSocket to the fanout's non-blocking ``send``.

    Messages go through a FIFO queue drained by one writer task, so they
    reach the client in the order they were sent.
    """

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._failed = False
        self._writer = asyncio.create_task(self._pump(), name="patchbridge-ws-writer")

    @property
    def is_writable(self) -> bool:
        return not self._failed and not self._ws.closed

    def send(self, message: str) -> None:
        self._queue.put_nowait(message)

    async def _pump(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._ws.send_str(message)
            except (ConnectionError, RuntimeError) as exc:
                # RuntimeError: the socket was closed between is_writable and send
                self._failed = True
                _logger.debug("WebSocket send failed: %s", exc)
                return

    async def close(self) -> None:
        self._writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._writer


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    engine = request.app[ENGINE_KEY]
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    _logger.info("New WebSocket client connected from %s", request.remote)
    subscriber = WebSocketSubscriber(ws)
    engine.fanout.on_connect(subscriber)
    try:
        # Subscribers never send requests; drain until the client goes away.
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                _logger.error("WebSocket error: %s", ws.exception())
    finally:
        engine.fanout.on_disconnect(subscriber)
        await subscriber.close()
        _logger.info("WebSocket client disconnected")
    return ws


@web.middleware
async def _cors_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response(status=204)
    else:
        response = await handler(request)

    if request.headers.get("Origin") and not response.prepared:
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
        response.headers.setdefault("Access-Control-Allow-Methods", "GET,OPTIONS")
        response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
        response.headers.setdefault("Access-Control-Max-Age", "86400")

    return response


def build_app(engine: BridgeEngine, supervisor: LinkSupervisor | None = None) -> web.Application:
    """Build the web application around *engine*.

    When *supervisor* is given it is started with the app and stopped on
    cleanup; the engine's in-flight validations are cancelled on cleanup
    as well.
    """
    app = web.Application(middlewares=[_cors_middleware])
    app[ENGINE_KEY] = engine
    app.router.add_get(WEBSOCKET_PATH, websocket_handler)

    if supervisor is not None:
        app[SUPERVISOR_KEY] = supervisor

        async def _start_supervisor(_: web.Application) -> None:
            supervisor.start()

        async def _stop_supervisor(_: web.Application) -> None:
            await supervisor.stop()

        app.on_startup.append(_start_supervisor)
        app.on_cleanup.append(_stop_supervisor)

    async def _close_engine(_: web.Application) -> None:
        await engine.close()

    app.on_cleanup.append(_close_engine)
    return app
