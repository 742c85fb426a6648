"""
Authentication helpers

API key auth comes straight from the environment config. Token auth goes
through /auth/login and /auth/refresh. Failures are logged and returned
as None; the caller decides whether the run can go on.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from load_tests.errors import AuthenticationError
from load_tests.http_client import ApiClient
from load_tests.metrics import ApiMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthToken:
    token: str
    expires_at: Optional[float] = None  # unix timestamp, seconds
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class Credentials:
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None

    def as_payload(self) -> Dict[str, str]:
        return {key: value for key, value in vars(self).items() if value is not None}


def bearer_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def is_token_expired(auth_token: AuthToken, now: Optional[float] = None) -> bool:
    if not auth_token.expires_at:
        return False  # no expiry, assume valid
    now = time.time() if now is None else now
    return now >= auth_token.expires_at


def _token_from_body(body, fallback_refresh: Optional[str] = None) -> Optional[AuthToken]:
    if not isinstance(body, dict):
        return None
    token = body.get("token") or body.get("access_token")
    if not token:
        return None
    return AuthToken(
        token=token,
        expires_at=body.get("expires_at"),
        refresh_token=body.get("refresh_token") or fallback_refresh,
    )


class Authenticator:
    def __init__(
        self,
        client: ApiClient,
        metrics: Optional[ApiMetrics] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.metrics = metrics
        self.clock = clock

    def get_api_key(self) -> str:
        return self.client.environment.api_key or ""

    def api_key_header(self, api_key: Optional[str] = None) -> Dict[str, str]:
        return {"X-API-Key": api_key or self.get_api_key()}

    def authenticate(self, credentials: Credentials) -> Optional[AuthToken]:
        response = self.client.post(
            "/auth/login",
            credentials.as_payload(),
            endpoint_tag="login",
            include_auth=False,
        )

        auth_token = None
        if response.status == 200:
            try:
                auth_token = _token_from_body(response.json())
            except ValueError as e:
                logger.error(f"Authentication error: {e}")
            if auth_token is None:
                logger.error("Authentication response did not contain a token")
        else:
            logger.error(f"Authentication failed: {response.status} {response.status_text}")

        if self.metrics:
            self.metrics.record_login(auth_token is not None, response.duration_ms)
        return auth_token

    def refresh_auth_token(self, refresh_token: str) -> Optional[AuthToken]:
        response = self.client.post(
            "/auth/refresh",
            {"refresh_token": refresh_token},
            endpoint_tag="refresh-token",
            include_auth=False,
        )
        if response.status != 200:
            logger.error(f"Token refresh failed: {response.status}")
            return None

        try:
            return _token_from_body(response.json(), fallback_refresh=refresh_token)
        except ValueError as e:
            logger.error(f"Token refresh error: {e}")
            return None

    def ensure_fresh(self, auth_token: AuthToken) -> Optional[AuthToken]:
        """Refresh an expired token when a refresh token is available."""
        if not is_token_expired(auth_token, self.clock()):
            return auth_token
        if not auth_token.refresh_token:
            return None
        return self.refresh_auth_token(auth_token.refresh_token)

    def setup_authentication(self, credentials: Optional[Credentials] = None) -> Union[AuthToken, str]:
        """API key if configured, else a token from credentials."""
        api_key = self.get_api_key()
        if api_key:
            logger.info("Using API Key authentication")
            return api_key

        if credentials:
            logger.info("Authenticating with credentials")
            auth_token = self.authenticate(credentials)
            if not auth_token:
                raise AuthenticationError("Failed to authenticate")
            return auth_token

        raise AuthenticationError("No authentication method configured")

    def logout(self, auth_token: AuthToken) -> None:
        response = self.client.post(
            "/auth/logout",
            {},
            endpoint_tag="logout",
            headers=bearer_header(auth_token.token),
        )
        if response.status >= 400 or response.error:
            logger.warning(f"Logout error: {response.status} {response.error or ''}".rstrip())
