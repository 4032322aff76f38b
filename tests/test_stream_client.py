"""
Tests for the visualization websocket client using stubbed aiohttp sessions.

Target module: stream/client.py
"""
import asyncio
import json

import aiohttp
import pytest

import stream.client as client_mod
from stream.client import VisualizationClient


class _Msg:
    def __init__(self, data, type_=aiohttp.WSMsgType.TEXT):
        self.data = data
        self.type = type_


class _FakeWS:
    def __init__(self, frames):
        self.frames = list(frames)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.frames:
            raise StopAsyncIteration
        return self.frames.pop(0)

    async def close(self):
        self.closed = True

    def exception(self):
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        ...


class _FakeSession:
    def __init__(self, ws, calls):
        self.ws = ws
        self.calls = calls

    def ws_connect(self, url, protocols=()):     # sync like real aiohttp
        self.calls.append((url, protocols))
        return self.ws

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        ...


@pytest.mark.asyncio
async def test_frames_applied_in_order(monkeypatch, processor, store):
    frames = [
        _Msg(json.dumps({"ProposerBlock": {"id": "p1", "parent": "genesis", "miner": "n1",
                                           "transaction_refs": []}})),
        _Msg(json.dumps({"UpdatedLedger": {"added": ["p1"]}}).encode(), aiohttp.WSMsgType.BINARY),
        _Msg(None, aiohttp.WSMsgType.PING),
        _Msg("not json"),
    ]
    calls = []
    monkeypatch.setattr(client_mod.aiohttp, "ClientSession", lambda: _FakeSession(_FakeWS(frames), calls))

    client = VisualizationClient("ws://sim:8080", processor, stop_event=asyncio.Event())
    await client.consume()

    assert calls == [("ws://sim:8080", ("visualization",))]
    assert client.frames == 3
    assert client.connections == 1
    assert store.is_confirmed("p1")
    assert processor.decode_failures == 1


@pytest.mark.asyncio
async def test_run_reconnects_until_stopped(monkeypatch, processor):
    stop = asyncio.Event()
    attempts = []

    class _Refusing:
        async def __aenter__(self):
            attempts.append(1)
            if len(attempts) >= 3:
                stop.set()
            raise aiohttp.ClientConnectionError("refused")

        async def __aexit__(self, *exc):
            ...

    monkeypatch.setattr(client_mod.aiohttp, "ClientSession", lambda: _Refusing())

    client = VisualizationClient("ws://sim:8080", processor, reconnect_delay=0.01, stop_event=stop)
    await asyncio.wait_for(client.run(), timeout=2)

    assert len(attempts) == 3
    assert client.connected is False
