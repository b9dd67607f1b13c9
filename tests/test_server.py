from __future__ import annotations

import asyncio

import pytest
from aiohttp.test_utils import TestClient, TestServer

from patchbridge.engine import BridgeEngine
from patchbridge.link import LinkState, LinkSupervisor
from patchbridge.reference.store import InMemoryReferenceStore
from patchbridge.server import build_app

REFERENCE = {
    "1": {"channelNumber": 1, "micOrDi": "Shure SM58", "patchName": "Main Vocals", "commentsOrStand": "Short Boom Stand"},
}


@pytest.mark.asyncio
async def test_websocket_receives_snapshot_then_updates() -> None:
    engine = BridgeEngine(InMemoryReferenceStore(REFERENCE))
    engine.feed(b"$$1$Shure SM58$Main Vocals$Short Boom Stand##")
    await engine.drain()

    async with TestClient(TestServer(build_app(engine))) as client:
        ws = await client.ws_connect("/ws")

        initial = await asyncio.wait_for(ws.receive_json(), timeout=2)
        assert initial["type"] == "initialData"
        assert initial["data"]["1"]["matchesReference"] is True

        engine.feed(b"$$2$Sennheiser e 604$Snare$Tall Boom Stand##")
        await engine.drain()

        update = await asyncio.wait_for(ws.receive_json(), timeout=2)
        assert update["type"] == "update"
        assert update["data"]["channelNumber"] == 2
        assert update["data"]["matchesReference"] is False

        await ws.close()
        for _ in range(50):
            if not len(engine.fanout):
                break
            await asyncio.sleep(0.01)
        assert len(engine.fanout) == 0


@pytest.mark.asyncio
async def test_cors_headers_on_preflight() -> None:
    engine = BridgeEngine(InMemoryReferenceStore())

    async with TestClient(TestServer(build_app(engine))) as client:
        resp = await client.options("/ws", headers={"Origin": "http://localhost:3000"})

        assert resp.status == 204
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
async def test_supervisor_follows_app_lifecycle() -> None:
    engine = BridgeEngine(InMemoryReferenceStore())
    supervisor = LinkSupervisor(engine.feed, list_ports_fn=lambda: ())

    async with TestClient(TestServer(build_app(engine, supervisor))):
        for _ in range(100):
            if supervisor.state == LinkState.UNAVAILABLE:
                break
            await asyncio.sleep(0.01)
        assert supervisor.state == LinkState.UNAVAILABLE

    assert supervisor.state == LinkState.UNAVAILABLE
