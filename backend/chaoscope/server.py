"""
Proxy server lifecycle.

Shutdown is two-phase: SIGINT/SIGTERM or the run duration elapsing asks the
server to exit, then in-flight requests get a bounded grace period before the
server returns. Metric export must happen only after serve() has returned.
"""

import asyncio
import signal
import structlog
import uvicorn
from types import FrameType
from typing import Optional

from fastapi import FastAPI

logger = structlog.get_logger()


class GracefulServer(uvicorn.Server):
    """
    uvicorn server that treats SIGINT/SIGTERM purely as a stop request.

    The stock server re-raises captured signals after serve() returns, which
    would abort the process before recorded data is exported. Here the signal
    is consumed: the first one starts a graceful shutdown, a second SIGINT
    forces exit.
    """

    received_signal: Optional[int] = None

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        self.received_signal = sig
        if self.should_exit and sig == signal.SIGINT:
            self.force_exit = True
        else:
            self.should_exit = True


class ProxyServer:
    """Runs an ASGI app under uvicorn with an optional run duration."""

    def __init__(
        self,
        app: FastAPI,
        host: str = "0.0.0.0",
        port: int = 8080,
        shutdown_timeout: int = 5,
        log_level: str = "warning"
    ):
        self.config = uvicorn.Config(
            app,
            host=host,
            port=port,
            timeout_graceful_shutdown=shutdown_timeout,
            log_level=log_level.lower(),
            access_log=False,
        )
        self.server = GracefulServer(self.config)

    async def serve(self, duration: Optional[float] = None) -> None:
        """Serve until a signal arrives or the duration (seconds) elapses."""
        serve_task = asyncio.create_task(self.server.serve())

        if duration:
            done, _ = await asyncio.wait({serve_task}, timeout=duration)
            if not done:
                logger.info("Duration elapsed, shutting down", duration_seconds=duration)
                self.server.should_exit = True

        await serve_task

        if self.server.received_signal is not None:
            logger.info(
                "Shutdown signal received",
                signal=signal.Signals(self.server.received_signal).name
            )
        logger.info("Server stopped", host=self.config.host, port=self.config.port)

    def run(self, duration: Optional[float] = None) -> None:
        asyncio.run(self.serve(duration))
