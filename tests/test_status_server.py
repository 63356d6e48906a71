"""Tests for the liveness endpoint."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from aiohttp import test_utils

from lunabot.status_server import StatusServer


def make_bot(*, ready: bool):
    bot = MagicMock()
    bot.is_ready.return_value = ready
    bot.latency = 0.0421 if ready else float("inf")
    bot.guilds = [object(), object()]
    return bot


@pytest.mark.asyncio
async def test_root_is_plain_text():
    server = StatusServer(make_bot(ready=True), bot_name="Luna")
    async with test_utils.TestClient(test_utils.TestServer(server.build_app())) as client:
        resp = await client.get("/")
        assert resp.status == 200
        assert await resp.text() == "Luna is alive"


@pytest.mark.asyncio
async def test_health_when_ready():
    server = StatusServer(make_bot(ready=True), model_getter=lambda: "gemini-2.5-flash")
    async with test_utils.TestClient(test_utils.TestServer(server.build_app())) as client:
        resp = await client.get("/health")
        data = await resp.json()
    assert data["status"] == "ok"
    assert data["guilds"] == 2
    assert data["latency_ms"] == 42.1
    assert data["model"] == "gemini-2.5-flash"
    assert data["uptime_seconds"] >= 0


@pytest.mark.asyncio
async def test_health_while_starting():
    server = StatusServer(make_bot(ready=False))
    async with test_utils.TestClient(test_utils.TestServer(server.build_app())) as client:
        data = await (await client.get("/health")).json()
    assert data["status"] == "starting"
    assert data["latency_ms"] is None
    assert data["model"] is None
