import json

import pytest

from load_tests.auth import (
    Authenticator,
    AuthToken,
    Credentials,
    bearer_header,
    is_token_expired,
)
from load_tests.environments import EnvironmentConfig
from load_tests.errors import AuthenticationError
from load_tests.http_client import ApiClient
from load_tests.metrics import ApiMetrics


def make_authenticator(transport, api_key="", clock=None):
    env = EnvironmentConfig(name="qa", base_url="https://api.test", api_key=api_key, max_vus=10)
    kwargs = {"clock": clock} if clock else {}
    return Authenticator(ApiClient(env, transport), ApiMetrics(), **kwargs)


class TestAuthenticate:
    def test_successful_login(self, transport, make_response):
        transport.respond_with(
            make_response(body={"access_token": "t0k", "expires_at": 123, "refresh_token": "r1"}, duration_ms=80)
        )
        auth = make_authenticator(transport, api_key="ignored-for-login")

        token = auth.authenticate(Credentials(username="ada", password="pw"))

        assert token == AuthToken(token="t0k", expires_at=123, refresh_token="r1")
        sent = transport.last
        assert sent.url == "https://api.test/auth/login"
        assert sent.tags["endpoint"] == "login"
        assert "X-API-Key" not in sent.headers
        assert json.loads(sent.body) == {"username": "ada", "password": "pw"}
        assert auth.metrics.login_success.value == 1
        assert auth.metrics.login_duration.values == [80]

    def test_rejected_login_returns_none(self, transport, make_response, caplog):
        transport.respond_with(make_response(status=401, body={"error": "bad"}))
        auth = make_authenticator(transport)

        assert auth.authenticate(Credentials(username="ada", password="wrong")) is None
        assert "Authentication failed: 401 Unauthorized" in caplog.text
        assert auth.metrics.login_failures.value == 1

    def test_login_without_token_returns_none(self, transport, make_response):
        transport.respond_with(make_response(body={"user": "ada"}))

        assert make_authenticator(transport).authenticate(Credentials(username="ada")) is None

    def test_login_with_non_json_body_returns_none(self, transport, make_response):
        transport.respond_with(make_response(body="<html>"))

        assert make_authenticator(transport).authenticate(Credentials(username="ada")) is None


class TestRefresh:
    def test_keeps_old_refresh_token_when_none_returned(self, transport, make_response):
        transport.respond_with(make_response(body={"token": "new"}))

        token = make_authenticator(transport).refresh_auth_token("r1")

        assert token == AuthToken(token="new", refresh_token="r1")
        assert transport.last.tags["endpoint"] == "refresh-token"
        assert json.loads(transport.last.body) == {"refresh_token": "r1"}

    def test_failed_refresh(self, transport, make_response):
        transport.respond_with(make_response(status=403))

        assert make_authenticator(transport).refresh_auth_token("r1") is None

    def test_ensure_fresh(self, transport, make_response, clock):
        auth = make_authenticator(transport, clock=clock)
        valid = AuthToken("a", expires_at=clock.now + 60)
        expired = AuthToken("a", expires_at=clock.now - 1, refresh_token="r1")
        transport.respond_with(make_response(body={"token": "b"}))

        assert auth.ensure_fresh(valid) is valid
        assert auth.ensure_fresh(expired).token == "b"
        assert auth.ensure_fresh(AuthToken("a", expires_at=clock.now - 1)) is None


class TestTokens:
    def test_expiry(self):
        assert not is_token_expired(AuthToken("a"))
        assert not is_token_expired(AuthToken("a", expires_at=200), now=199)
        assert is_token_expired(AuthToken("a", expires_at=200), now=200)

    def test_headers(self, transport):
        assert bearer_header("abc") == {"Authorization": "Bearer abc"}
        assert make_authenticator(transport, api_key="k").api_key_header() == {"X-API-Key": "k"}
        assert make_authenticator(transport).api_key_header("other") == {"X-API-Key": "other"}


class TestSetupAuthentication:
    def test_api_key_wins(self, transport):
        assert make_authenticator(transport, api_key="k").setup_authentication(Credentials("u", "p")) == "k"
        assert transport.requests == []

    def test_credentials(self, transport, make_response):
        transport.respond_with(make_response(body={"token": "t"}))

        assert make_authenticator(transport).setup_authentication(Credentials("u", "p")).token == "t"

    def test_failed_credentials_raise(self, transport, make_response):
        transport.respond_with(make_response(status=401))

        with pytest.raises(AuthenticationError, match="Failed to authenticate"):
            make_authenticator(transport).setup_authentication(Credentials("u", "p"))

    def test_nothing_configured_raises(self, transport):
        with pytest.raises(AuthenticationError, match="No authentication method"):
            make_authenticator(transport).setup_authentication()


def test_logout_sends_bearer_and_warns_on_failure(transport, make_response, caplog):
    transport.respond_with(make_response(status=500))

    make_authenticator(transport).logout(AuthToken("t"))

    assert transport.last.headers["Authorization"] == "Bearer t"
    assert transport.last.tags["endpoint"] == "logout"
    assert "Logout error: 500" in caplog.text
