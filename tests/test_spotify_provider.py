"""
Unit tests for the Spotify provider with a mocked HTTP session.
"""

from __future__ import annotations

from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from webapp.auth.errors import TokenEndpointError
from webapp.providers.spotify_provider import TOKEN_URL, SpotifyProvider


def _response(status_code: int = 200, body=None) -> MagicMock:
    r = MagicMock()
    r.status_code = status_code
    r.json.return_value = body
    return r


@pytest.fixture
def http() -> MagicMock:
    return MagicMock()


@pytest.fixture
def provider(cfg, http) -> SpotifyProvider:
    return SpotifyProvider(cfg, session=http)


def test_authorize_url_carries_client_redirect_scopes_and_state(provider) -> None:
    url = provider.build_authorize_url("st4te")
    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://accounts.spotify.com/authorize"
    q = parse_qs(parsed.query)
    assert q["client_id"] == ["test-client-id"]
    assert q["response_type"] == ["code"]
    assert q["redirect_uri"] == ["http://testserver/api/auth/callback"]
    assert q["state"] == ["st4te"]
    assert q["scope"] == ["user-read-private playlist-read-private user-library-read"]


def test_exchange_code_posts_authorization_code_grant(provider, http) -> None:
    http.post.return_value = _response(
        body={"access_token": "AT1", "refresh_token": "RT1", "expires_in": 3600, "token_type": "Bearer"}
    )

    grant = provider.exchange_code("the-code")

    assert grant.access_token == "AT1"
    assert grant.refresh_token == "RT1"
    assert grant.expires_in == 3600
    args, kwargs = http.post.call_args
    assert args[0] == TOKEN_URL
    assert kwargs["data"] == {
        "grant_type": "authorization_code",
        "code": "the-code",
        "redirect_uri": "http://testserver/api/auth/callback",
    }
    assert kwargs["auth"] == ("test-client-id", "test-client-secret")
    assert kwargs["timeout"] == 5.0


def test_exchange_code_requires_refresh_token(provider, http) -> None:
    http.post.return_value = _response(body={"access_token": "AT1", "expires_in": 3600})
    with pytest.raises(TokenEndpointError, match="refresh_token"):
        provider.exchange_code("the-code")


def test_refresh_posts_refresh_token_grant(provider, http) -> None:
    http.post.return_value = _response(body={"access_token": "AT2", "expires_in": 3600})

    grant = provider.refresh("RT1")

    assert grant.access_token == "AT2"
    assert grant.refresh_token is None
    assert http.post.call_args.kwargs["data"] == {"grant_type": "refresh_token", "refresh_token": "RT1"}


def test_refresh_reports_rotated_refresh_token(provider, http) -> None:
    http.post.return_value = _response(body={"access_token": "AT2", "expires_in": 3600, "refresh_token": "RT2"})
    assert provider.refresh("RT1").refresh_token == "RT2"


def test_rejected_refresh_raises_with_status_only(provider, http) -> None:
    http.post.return_value = _response(400, body={"error": "invalid_grant", "error_description": "Refresh token revoked"})

    with pytest.raises(TokenEndpointError) as exc:
        provider.refresh("RT1")

    assert exc.value.status_code == 400
    assert "revoked" not in str(exc.value)
    assert "RT1" not in str(exc.value)


@pytest.mark.parametrize(
    "body",
    [
        {"expires_in": 3600},
        {"access_token": "", "expires_in": 3600},
        {"access_token": "AT2", "expires_in": 0},
        {"access_token": "AT2", "expires_in": "soon"},
        ["not", "a", "dict"],
    ],
)
def test_malformed_token_response_raises(provider, http, body) -> None:
    http.post.return_value = _response(body=body)
    with pytest.raises(TokenEndpointError):
        provider.refresh("RT1")


def test_non_json_token_response_raises(provider, http) -> None:
    r = _response()
    r.json.side_effect = ValueError("no json")
    http.post.return_value = r
    with pytest.raises(TokenEndpointError):
        provider.refresh("RT1")


@pytest.mark.parametrize("exc", [requests.Timeout("slow"), requests.ConnectionError("down")])
def test_transport_errors_raise(provider, http, exc) -> None:
    http.post.side_effect = exc
    with pytest.raises(TokenEndpointError):
        provider.refresh("RT1")


def test_timeout_is_configurable(monkeypatch, http) -> None:
    from webapp.auth.config import load_auth_config

    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "2.5")
    load_auth_config.cache_clear()
    provider = SpotifyProvider(load_auth_config(), session=http)
    http.post.return_value = _response(body={"access_token": "AT2", "expires_in": 3600})

    provider.refresh("RT1")

    assert http.post.call_args.kwargs["timeout"] == 2.5


def test_get_saved_tracks_uses_bearer_token(provider, http) -> None:
    r = _response(body={"items": [], "total": 0})
    http.get.return_value = r

    data = provider.get_saved_tracks("AT1", limit=5)

    assert data == {"items": [], "total": 0}
    args, kwargs = http.get.call_args
    assert args[0] == "https://api.spotify.com/v1/me/tracks"
    assert kwargs["headers"] == {"Authorization": "Bearer AT1"}
    assert kwargs["params"] == {"limit": 5}
    r.raise_for_status.assert_called_once()
