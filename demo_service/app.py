"""
Demo Service - a backend with hidden dependencies for chaos experiments.

The endpoints share a simulated auth service. Only /login keeps it healthy,
so injecting chaos on /login degrades other endpoints without any of them
calling /login directly:

- POST /login    - issues tokens and marks auth healthy (critical dependency)
- POST /signup   - fails with 503 while auth is unhealthy
- GET  /orders   - requires a valid token
- POST /checkout - requires a valid token and healthy auth (504 otherwise)
- GET  /products - independent, never affected
- GET  /health   - reports auth health
"""
import asyncio
import json
import logging
import sys
import threading
import time
import uuid
from datetime import datetime
from typing import Dict, Optional

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# Configure structured JSON logging
class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }
        if hasattr(record, 'extra_data'):
            log_data.update(record.extra_data)
        return json.dumps(log_data)


logger = logging.getLogger("demo_service")
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


# ============== Prometheus Metrics ==============

REQUEST_COUNT = Counter(
    'demo_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

REQUEST_LATENCY = Histogram(
    'demo_http_request_duration_seconds',
    'HTTP request latency',
    ['method', 'endpoint'],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)


# ============== Auth Service ==============

class AuthService:
    """Simulated in-memory auth service shared by all endpoints."""

    def __init__(self, health_window_seconds: float = 5.0, token_ttl_seconds: float = 600.0):
        self._lock = threading.Lock()
        self.health_window_seconds = health_window_seconds
        self.token_ttl_seconds = token_ttl_seconds
        self.last_login: Optional[float] = None
        self.tokens: Dict[str, float] = {}

    def record_login(self) -> None:
        with self._lock:
            self.last_login = time.monotonic()

    def is_healthy(self) -> bool:
        """Auth is healthy only if /login was called recently."""
        with self._lock:
            if self.last_login is None:
                return False
            return time.monotonic() - self.last_login <= self.health_window_seconds

    def create_token(self) -> str:
        token = f"token-{uuid.uuid4().hex[:12]}"
        with self._lock:
            self.tokens[token] = time.monotonic() + self.token_ttl_seconds
        return token

    def validate_token(self, token: str) -> bool:
        # Validation goes through the auth service, so it fails while unhealthy
        if not self.is_healthy():
            return False
        with self._lock:
            expiry = self.tokens.get(token)
        return expiry is not None and time.monotonic() < expiry


# ============== FastAPI App ==============

def create_app(auth: Optional[AuthService] = None) -> FastAPI:
    """Create the demo backend around an auth service instance."""
    auth = auth or AuthService()

    app = FastAPI(
        title="Demo Service",
        description="Backend with hidden dependencies for chaos experiments",
        version="1.0.0",
    )
    app.state.auth = auth

    @app.middleware("http")
    async def track_requests(request: Request, call_next):
        """Track request metrics."""
        start_time = time.time()
        response = await call_next(request)
        latency = time.time() - start_time

        endpoint = request.url.path
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(latency)
        return response

    @app.post("/login")
    async def login():
        """Create an auth token. Keeps the auth service healthy."""
        await asyncio.sleep(0.05)
        auth.record_login()
        token = auth.create_token()
        logger.info("Auth token created", extra={'extra_data': {'endpoint': '/login'}})
        return {"status": "ok", "token": token}

    @app.post("/signup")
    async def signup():
        """Sign up a user. Hidden dependency on auth health."""
        if not auth.is_healthy():
            logger.warning("Signup failed: auth service unhealthy")
            return JSONResponse(
                status_code=503,
                content={"error": "auth service unavailable, cannot signup"}
            )
        await asyncio.sleep(0.03)
        return {"status": "signed up successfully"}

    @app.get("/orders")
    async def orders(authorization: Optional[str] = Header(None)):
        """List orders. Hidden dependency on token validation."""
        if not authorization:
            return JSONResponse(status_code=401, content={"error": "missing auth token"})
        if not auth.validate_token(authorization):
            logger.warning("Orders failed: token validation failed")
            return JSONResponse(
                status_code=401,
                content={"error": "invalid or expired token, auth service may be down"}
            )
        await asyncio.sleep(0.02)
        return [
            {"id": 1, "item": "Widget", "price": 29.99},
            {"id": 2, "item": "Gadget", "price": 49.99},
        ]

    @app.post("/checkout")
    async def checkout(authorization: Optional[str] = Header(None)):
        """Process a payment. Depends on both the token and auth health."""
        if not authorization or not auth.validate_token(authorization):
            return JSONResponse(
                status_code=401,
                content={"error": "authentication required for checkout"}
            )
        if not auth.is_healthy():
            return JSONResponse(
                status_code=504,
                content={"error": "checkout timeout waiting for auth service"}
            )
        await asyncio.sleep(0.1)
        return {
            "status": "payment processed",
            "transaction_id": f"txn-{int(time.time())}"
        }

    @app.get("/products")
    async def products():
        """List products. Independent of auth."""
        await asyncio.sleep(0.01)
        return [
            {"id": 1, "name": "Widget", "price": 29.99},
            {"id": 2, "name": "Gadget", "price": 49.99},
            {"id": 3, "name": "Doohickey", "price": 19.99},
        ]

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        if not auth.is_healthy():
            return JSONResponse(
                status_code=503,
                content={"status": "degraded - auth service unhealthy"}
            )
        return {"status": "healthy"}

    @app.get("/metrics", response_class=PlainTextResponse)
    async def prometheus_metrics():
        """Prometheus metrics endpoint."""
        return PlainTextResponse(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)
