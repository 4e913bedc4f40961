"""
Chaos Interception Engine - decides per-request perturbation.

For each inbound request:
1. Finds the first matching injection rule
2. Applies the rule's delay, abandoning the request if the client goes away
3. Rolls for an injected failure and short-circuits if it fires
4. Otherwise forwards the request to the backend
5. Records exactly one RequestMetric for the outcome, except for requests
   abandoned during the delay
"""

import asyncio
import random
import time
import structlog
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fastapi import Request
from fastapi.responses import Response
from starlette.requests import ClientDisconnect

from chaoscope.services.chaos.forwarder import ReverseForwarder
from chaoscope.services.chaos.recorder import StatusRecorder
from chaoscope.services.chaos.rules import ChaosRule, RuleSet
from chaoscope.services.metrics.models import ChaosType, RequestMetric
from chaoscope.services.metrics.store import MetricsStore

logger = structlog.get_logger()

# Non-standard status for requests abandoned by the client
CLIENT_CLOSED_REQUEST = 499


async def wait_for_disconnect(request: Request) -> None:
    """Block until the client disconnects. Call only after the body is read."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


class ChaosInterceptor:
    """
    Applies injection rules to inbound requests and records their outcome.

    All collaborators are injected so the engine can be driven without a
    network: the rule set, the metrics store, the backend forwarder and the
    uniform random source used for failure sampling.
    """

    def __init__(
        self,
        rules: RuleSet,
        store: MetricsStore,
        forwarder: ReverseForwarder,
        random_source: Callable[[], float] = random.random,
        disconnect_waiter: Callable[[Request], Awaitable[None]] = wait_for_disconnect,
    ):
        self.rules = rules
        self.store = store
        self.forwarder = forwarder
        self._random = random_source
        self._wait_for_disconnect = disconnect_waiter

    async def handle(self, request: Request) -> Response:
        """Handle one inbound request."""
        start = time.perf_counter()
        method = request.method
        path = request.url.path

        try:
            body = await request.body()
        except ClientDisconnect:
            logger.info("Client disconnected before request body was read", method=method, path=path)
            self._record(method, path, CLIENT_CLOSED_REQUEST, start, ChaosType.NONE)
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        chaos_type = ChaosType.NONE
        rule = self.rules.find_matching_rule(path, method)

        if rule is not None:
            if rule.delay > 0:
                if not await self._apply_delay(request, rule.delay):
                    logger.info(
                        "Request cancelled while delaying",
                        method=method,
                        path=path,
                        delay=rule.delay
                    )
                    return Response(status_code=CLIENT_CLOSED_REQUEST)
                chaos_type = ChaosType.DELAY

            if rule.failure_rate > 0 and self._random() < rule.failure_rate:
                return self._inject_failure(rule, method, path, start)

        recorder = StatusRecorder(
            on_complete=lambda status: self._record(method, path, status, start, chaos_type)
        )
        return await self.forwarder.forward(request, body, recorder)

    async def _apply_delay(self, request: Request, delay: float) -> bool:
        """
        Sleep for the delay unless the client disconnects first.

        Returns:
            True if the full delay elapsed, False if the request was abandoned
        """
        sleeper = asyncio.ensure_future(asyncio.sleep(delay))
        watcher = asyncio.ensure_future(self._wait_for_disconnect(request))
        try:
            done, _ = await asyncio.wait(
                {sleeper, watcher},
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            sleeper.cancel()
            watcher.cancel()

        return watcher not in done

    def _inject_failure(self, rule: ChaosRule, method: str, path: str, start: float) -> Response:
        status_code = rule.effective_status_code
        logger.info(
            "Injected failure response",
            method=method,
            path=path,
            status_code=status_code
        )
        response = Response(
            content=rule.effective_error_body,
            status_code=status_code,
            media_type="application/json"
        )
        self.store.record(RequestMetric(
            timestamp=datetime.now(timezone.utc),
            method=method,
            path=path,
            status_code=status_code,
            latency_ms=_elapsed_ms(start),
            chaos_applied=True,
            chaos_type=ChaosType.FAILURE,
            backend_error=False,
        ))
        return response

    def _record(
        self,
        method: str,
        path: str,
        status_code: int,
        start: float,
        chaos_type: ChaosType
    ) -> None:
        self.store.record(RequestMetric(
            timestamp=datetime.now(timezone.utc),
            method=method,
            path=path,
            status_code=status_code,
            latency_ms=_elapsed_ms(start),
            chaos_applied=chaos_type == ChaosType.DELAY,
            chaos_type=chaos_type,
            backend_error=status_code >= 500,
        ))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
