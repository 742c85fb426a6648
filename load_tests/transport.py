"""
HTTP transport

The only place that touches the network. Everything above it (client,
checks, metrics, rate limiting) talks to ``Transport.perform`` and gets a
``Response`` back, so it can run against locust, httpx or a fake.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class Request:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None


@dataclass
class Response:
    status: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Optional[bytes] = b""
    duration_ms: float = 0.0
    ttfb_ms: float = 0.0
    url: str = ""
    error: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers or {})
        self._json = _UNSET

    @property
    def text(self) -> str:
        if not self.body:
            return ""
        return self.body.decode("utf-8", errors="replace")

    @property
    def status_text(self) -> str:
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return ""

    def json(self) -> Any:
        """Decode the body as JSON; raises ValueError when it is not JSON."""
        if self._json is _UNSET:
            self._json = json.loads(self.text)
        return self._json


class Transport(Protocol):
    def perform(self, request: Request) -> Response:
        ...


class LocustTransport:
    """Sends requests through a locust ``HttpSession`` (``self.client`` of an HttpUser).

    Requests are grouped in locust's statistics under their ``endpoint`` tag.
    """

    def __init__(self, session):
        self.session = session

    def perform(self, request: Request) -> Response:
        started = time.perf_counter()
        response = self.session.request(
            request.method,
            request.url,
            headers=request.headers,
            data=request.body,
            name=request.tags.get("endpoint", request.url),
            timeout=request.timeout,
        )
        duration_ms = (time.perf_counter() - started) * 1000

        elapsed = getattr(response, "elapsed", None)
        ttfb_ms = elapsed.total_seconds() * 1000 if elapsed else duration_ms
        error = getattr(response, "error", None)

        return Response(
            status=response.status_code or 0,
            headers=dict(response.headers or {}),
            body=response.content,
            duration_ms=duration_ms,
            ttfb_ms=ttfb_ms,
            url=request.url,
            error=str(error) if error else None,
        )


class HttpxTransport:
    """Plain httpx transport, used outside of locust users (setup health checks)."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.client = client or httpx.Client(timeout=timeout)

    def perform(self, request: Request) -> Response:
        started = time.perf_counter()
        try:
            response = self.client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=request.timeout if request.timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.HTTPError as e:
            logger.warning(f"{request.method} {request.url} failed: {e}")
            return Response(
                status=0,
                body=None,
                duration_ms=(time.perf_counter() - started) * 1000,
                url=request.url,
                error=str(e),
            )

        duration_ms = (time.perf_counter() - started) * 1000
        # elapsed is only set once the stream is closed
        response.close()
        return Response(
            status=response.status_code,
            headers=response.headers,
            body=response.content,
            duration_ms=duration_ms,
            ttfb_ms=response.elapsed.total_seconds() * 1000,
            url=request.url,
        )

    def close(self):
        self.client.close()
