"""HTTP health check endpoint."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from aiohttp import web

from livetap.runtime.recorder import RecordingLoop

logger = logging.getLogger(__name__)


class HealthServer:
    """HTTP server for health checks.

    Provides /health endpoint returning per-device recording status.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        *,
        stale_after_s: float = 300.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.host = host
        self.port = port
        self._stale_after_s = stale_after_s
        self._monotonic = monotonic
        self._loops: list[RecordingLoop] = []

        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def set_loops(self, loops: list[RecordingLoop]) -> None:
        self._loops = list(loops)

    async def start(self) -> None:
        """Start HTTP server."""
        self._app = web.Application()
        self._app.router.add_get("/health", self._health_handler)

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        logger.info("HealthServer started: http://%s:%d/health", self.host, self.port)

    async def stop(self) -> None:
        """Stop HTTP server."""
        if self._runner:
            await self._runner.cleanup()

        self._app = None
        self._runner = None
        self._site = None

        logger.info("HealthServer stopped")

    async def _health_handler(self, request: web.Request) -> web.Response:
        _ = request
        health_data = self.compute_health()
        status = 503 if health_data["status"] == "unhealthy" else 200
        return web.json_response(health_data, status=status)

    def compute_health(self) -> dict[str, Any]:
        """Compute health status.

        "unhealthy" when any device loop has stopped, "degraded" when any
        device is currently failing to connect, otherwise "healthy". Loops
        not yet started count as neither. A stale heartbeat only adds a
        warning.
        """
        now = self._monotonic()
        devices: list[dict[str, object]] = []
        warnings: list[str] = []
        for loop in self._loops:
            status = loop.status
            heartbeat_age = round(now - status.last_heartbeat, 3)
            devices.append(
                {
                    "name": loop.device.name,
                    "running": status.running,
                    "cycles": status.cycles,
                    "segments": status.segments,
                    "failures": status.failures,
                    "consecutive_failures": status.consecutive_failures,
                    "merge_failures": status.merge_failures,
                    "persist_failures": status.persist_failures,
                    "last_segment": status.last_segment,
                    "last_heartbeat_age_s": heartbeat_age,
                }
            )
            if status.running and heartbeat_age > self._stale_after_s:
                warnings.append(f"device_{loop.device.name}_heartbeat_stale")

        if any(loop.status.started and not loop.status.running for loop in self._loops):
            overall = "unhealthy"
        elif any(loop.status.consecutive_failures > 0 for loop in self._loops):
            overall = "degraded"
        else:
            overall = "healthy"

        return {"status": overall, "warnings": warnings, "devices": devices}
