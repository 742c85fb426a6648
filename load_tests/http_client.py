"""
HTTP helpers

Thin wrappers that build the URL, default headers and tags for a call and
hand it to the transport. No retries here: error responses come back
as-is for the caller's checks.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from load_tests.environments import EnvironmentConfig
from load_tests.options import TestOptions, parse_duration
from load_tests.transport import Request, Response, Transport

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        environment: EnvironmentConfig,
        transport: Transport,
        options: Optional[TestOptions] = None,
    ):
        self.environment = environment
        self.transport = transport
        self.options = options or TestOptions()
        self.bearer_token: Optional[str] = None

    def build_url(self, endpoint: str) -> str:
        base_url = self.environment.base_url
        if base_url.endswith("/"):
            base_url = base_url[:-1]
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{base_url}{path}"

    def default_headers(self, include_auth: bool = True) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.options.user_agent:
            headers["User-Agent"] = self.options.user_agent
        if self.options.no_connection_reuse:
            headers["Connection"] = "close"
        if include_auth and self.environment.api_key:
            headers["X-API-Key"] = self.environment.api_key
        if include_auth and self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        return headers

    def request(
        self,
        method: str,
        endpoint: str,
        payload: Any = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        tags: Optional[Dict[str, str]] = None,
        endpoint_tag: Optional[str] = None,
        include_auth: bool = True,
        timeout: Optional[str] = None,
    ) -> Response:
        merged_headers = {**self.default_headers(include_auth), **(headers or {})}
        merged_tags = {
            **self.options.tags,
            "endpoint": endpoint_tag or method.lower(),
            **(tags or {}),
        }
        body = json.dumps(payload) if payload is not None else None

        return self.transport.perform(
            Request(
                method=method.upper(),
                url=self.build_url(endpoint),
                headers=merged_headers,
                body=body,
                tags=merged_tags,
                timeout=parse_duration(timeout) if timeout else None,
            )
        )

    def get(self, endpoint: str, **kwargs) -> Response:
        return self.request("GET", endpoint, **kwargs)

    def post(self, endpoint: str, payload: Any = None, **kwargs) -> Response:
        return self.request("POST", endpoint, payload, **kwargs)

    def put(self, endpoint: str, payload: Any = None, **kwargs) -> Response:
        return self.request("PUT", endpoint, payload, **kwargs)

    def patch(self, endpoint: str, payload: Any = None, **kwargs) -> Response:
        return self.request("PATCH", endpoint, payload, **kwargs)

    def delete(self, endpoint: str, **kwargs) -> Response:
        return self.request("DELETE", endpoint, **kwargs)

    def batch_get(self, endpoints: Iterable[str], **kwargs) -> List[Response]:
        """GET several endpoints in order, tagged ``batch-get`` unless told otherwise."""
        kwargs.setdefault("endpoint_tag", "batch-get")
        return [self.get(endpoint, **kwargs) for endpoint in endpoints]


def is_successful(response: Response) -> bool:
    return 200 <= response.status < 300


def parse_json_response(response: Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"Failed to parse JSON response: {e}")
        return None


def log_response(response: Response, context: Optional[str] = None) -> None:
    prefix = f"[{context}] " if context else ""
    size = len(response.body) if response.body else 0
    logger.info(f"{prefix}Status: {response.status}, Duration: {response.duration_ms:.0f}ms, Size: {size} bytes")
