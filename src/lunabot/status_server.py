"""Liveness endpoint served next to the Discord client on the same event loop."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from aiohttp import web
from discord.ext import commands

_LOG = logging.getLogger(__name__)


class StatusServer:
    """``GET /`` answers in plain text, ``GET /health`` in JSON."""

    def __init__(
        self,
        bot: commands.Bot,
        *,
        bot_name: str = "Luna",
        host: str = "0.0.0.0",
        port: int = 8080,
        model_getter: Callable[[], str | None] | None = None,
    ) -> None:
        self.bot = bot
        self.bot_name = bot_name
        self.host = host
        self.port = port
        self._model_getter = model_getter
        self._started_at = time.monotonic()
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.handle_root)
        app.router.add_get("/health", self.handle_health)
        return app

    async def handle_root(self, request: web.Request) -> web.Response:
        return web.Response(text=f"{self.bot_name} is alive")

    def _latency_ms(self) -> float | None:
        latency = getattr(self.bot, "latency", None)
        if latency is None or not math.isfinite(latency):
            return None
        return round(latency * 1000, 1)

    async def handle_health(self, request: web.Request) -> web.Response:
        ready = self.bot.is_ready()
        data = {
            "status": "ok" if ready else "starting",
            "bot": self.bot_name,
            "uptime_seconds": round(time.monotonic() - self._started_at, 1),
            "latency_ms": self._latency_ms(),
            "guilds": len(self.bot.guilds) if ready else 0,
            "model": self._model_getter() if self._model_getter else None,
        }
        return web.json_response(data)

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        _LOG.info("Status server listening on %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
