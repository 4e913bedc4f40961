"""ASGI applications for the chaos proxy and the discovery proxy."""
import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from chaoscope.config import get_settings
from chaoscope.services.chaos.forwarder import ReverseForwarder
from chaoscope.services.chaos.interceptor import ChaosInterceptor
from chaoscope.services.chaos.recorder import StatusRecorder
from chaoscope.services.discovery.collector import EndpointCollector

logger = structlog.get_logger()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _create_app(title: str, forwarder: ReverseForwarder) -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info("Starting proxy", app=title, target=str(forwarder.target), version=settings.APP_VERSION)
        yield
        await forwarder.aclose()
        logger.info("Proxy shutdown complete", app=title)

    # Every path belongs to the backend, so the docs routes stay disabled
    return FastAPI(
        title=title,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )


def create_proxy_app(interceptor: ChaosInterceptor) -> FastAPI:
    """Create the chaos proxy app; every request goes through the interceptor."""
    app = _create_app("chaoscope proxy", interceptor.forwarder)

    @app.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
    async def proxy(request: Request):
        return await interceptor.handle(request)

    return app


def create_discovery_app(collector: EndpointCollector, forwarder: ReverseForwarder) -> FastAPI:
    """Create a pass-through proxy that records every endpoint it sees."""
    app = _create_app("chaoscope discovery", forwarder)

    @app.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
    async def discover(request: Request):
        collector.record_endpoint(request.method, request.url.path)
        body = await request.body()
        return await forwarder.forward(request, body, StatusRecorder())

    return app
