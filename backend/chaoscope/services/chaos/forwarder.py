"""Reverse forwarding of inbound requests to the backend service."""
import structlog
import httpx
from typing import List, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from chaoscope.exceptions import ConfigurationError
from chaoscope.services.chaos.recorder import StatusRecorder

logger = structlog.get_logger()

# Headers that apply to a single connection and must not be forwarded
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
})


def parse_target_url(target: str) -> httpx.URL:
    """
    Parse and validate a backend base URL.

    Raises:
        ConfigurationError: if the URL is not an absolute http(s) URL
    """
    try:
        url = httpx.URL(target)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"Invalid target URL {target!r}: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            f"Invalid target URL {target!r}: expected an absolute http(s) URL"
        )
    return url


class ReverseForwarder:
    """
    Forwards requests to a single backend host.

    Only the standard forwarding headers are rewritten: hop-by-hop headers
    are dropped, Host is set to the backend, X-Forwarded-For is appended to
    and X-Forwarded-Host / X-Forwarded-Proto record the original request.
    """

    def __init__(
        self,
        target_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0
    ):
        self.target = parse_target_url(target_url)
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_url(self, request: Request) -> str:
        base = str(self.target.copy_with(query=None, fragment=None)).rstrip("/")
        path = request.url.path
        if not path.startswith("/"):
            path = "/" + path
        url = base + path
        if request.url.query:
            url += "?" + request.url.query
        return url

    def rewrite_headers(self, request: Request) -> List[Tuple[str, str]]:
        rewritten = {"host", "x-forwarded-for", "x-forwarded-host", "x-forwarded-proto"}
        headers = [
            (name, value)
            for name, value in request.headers.items()
            if name not in HOP_BY_HOP_HEADERS and name not in rewritten
        ]

        prior = request.headers.get("x-forwarded-for")
        client_host = request.client.host if request.client else None
        if client_host:
            headers.append(("x-forwarded-for", f"{prior}, {client_host}" if prior else client_host))
        elif prior:
            headers.append(("x-forwarded-for", prior))

        original_host = request.headers.get("host")
        if original_host:
            headers.append(("x-forwarded-host", original_host))
        headers.append(("x-forwarded-proto", request.url.scheme))
        return headers

    async def forward(
        self,
        request: Request,
        body: bytes,
        recorder: StatusRecorder
    ) -> Response:
        """
        Send the request upstream and stream the response back.

        Transport failures are answered with 502 (unreachable) or 504
        (timeout); the recorder sees that status like any other response.
        """
        upstream_request = self._client.build_request(
            request.method,
            self.build_url(request),
            headers=self.rewrite_headers(request),
            content=body,
        )

        try:
            upstream = await self._client.send(upstream_request, stream=True)
        except httpx.TimeoutException as e:
            logger.warning(
                "Backend timed out",
                method=request.method,
                path=request.url.path,
                error=str(e)
            )
            return self._error_response(recorder, 504, "upstream timeout")
        except httpx.RequestError as e:
            logger.warning(
                "Backend unreachable",
                method=request.method,
                path=request.url.path,
                error=str(e)
            )
            return self._error_response(recorder, 502, "upstream unavailable")

        recorder.write_header(upstream.status_code)
        response = StreamingResponse(
            recorder.stream(upstream.aiter_raw(), close=upstream.aclose),
            status_code=upstream.status_code,
        )
        # Raw headers keep repeated fields such as Set-Cookie intact
        response.raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in upstream.headers.multi_items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        ]
        return response

    def _error_response(self, recorder: StatusRecorder, status_code: int, message: str) -> Response:
        recorder.write_header(status_code)
        recorder.complete()
        return JSONResponse(status_code=status_code, content={"error": message})
