"""
API server for oracle status and metrics endpoints.

Provides HTTP endpoints for:
- /oracle/v0/health - Health check endpoint
- /oracle/v0/status - Attack phase, window, and latest stake snapshot
- /metrics - Prometheus metrics endpoint
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from aiohttp import web

from collusion_oracle.coordinator import AttackWindow
from collusion_oracle.metrics import generate_metrics
from collusion_oracle.types import CamelModel

logger = logging.getLogger(__name__)

SERVICE_NAME = "collusion-oracle"
"""Fixed service identifier returned by the health endpoint."""


class OracleStatus(CamelModel):
    """Snapshot of the oracle's progress, served as camelCase JSON."""

    phase: str
    """Name of the current attack phase."""

    window: AttackWindow | None = None
    """The attack window, once begun."""

    controlled_balance: int | None = None
    """Controlled stake in gwei, from the latest snapshot."""

    network_balance: int | None = None
    """Network stake in gwei, from the latest snapshot."""

    controlled_percent: float | None = None
    """Controlled percentage, from the latest snapshot."""

    declarations: dict[str, int] = {}
    """Declarations processed, by outcome."""


def _no_status() -> OracleStatus | None:
    """Default status getter that returns None."""
    return None


async def _handle_health(_request: web.Request) -> web.Response:
    """Handle health check endpoint."""
    return web.json_response({"status": "healthy", "service": SERVICE_NAME})


async def _handle_metrics(_request: web.Request) -> web.Response:
    """Handle Prometheus metrics endpoint."""
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain; version=0.0.4",
        charset="utf-8",
    )


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Configuration for the API server."""

    host: str = "0.0.0.0"
    """Host address to bind to."""

    port: int = 5052
    """Port to listen on."""


@dataclass(slots=True)
class ApiServer:
    """HTTP API server exposing oracle status."""

    config: ApiServerConfig
    """Server configuration."""

    status_getter: Callable[[], OracleStatus | None] = _no_status
    """Callable that returns the oracle's current status."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    async def start(self) -> None:
        """Start the API server in the background."""
        app = web.Application()
        app.add_routes(
            [
                web.get("/oracle/v0/health", _handle_health),
                web.get("/oracle/v0/status", self._handle_status),
                web.get("/metrics", _handle_metrics),
            ]
        )

        self._runner = web.AppRunner(app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info("API server listening on %s:%d", self.config.host, self.config.port)

    async def run(self) -> None:
        """
        Run the API server until shutdown.

        This method blocks until stop() is called.
        """
        await self.start()

        # Keep running until stopped
        while self._runner is not None:
            await asyncio.sleep(1)

    def stop(self) -> None:
        """Request graceful shutdown."""
        if self._runner is not None:
            asyncio.create_task(self._async_stop())

    async def _async_stop(self) -> None:
        """Gracefully stop the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("API server stopped")

    async def _handle_status(self, _request: web.Request) -> web.Response:
        """
        Handle oracle status endpoint.

        Response format:
        {
            "phase": "BEGUN",
            "window": {"targetAddress": "0x..", "startEpoch": 13, "durationInEpochs": 2},
            "controlledBalance": <gwei>,
            "networkBalance": <gwei>,
            "controlledPercent": <float>,
            "declarations": {"accepted": 2, ...}
        }
        """
        status = self.status_getter()
        if status is None:
            raise web.HTTPServiceUnavailable(reason="Oracle not initialized")

        return web.json_response(status.model_dump(mode="json", by_alias=True))
