"""
Spotify accounts/web API client.

Covers the three calls the session layer needs (authorization-code exchange,
refresh, authorize URL) plus the saved-tracks read used by the API.

Environment variables (via AuthConfig):
- SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET: OAuth client credentials
- SPOTIFY_REDIRECT_URI: callback URL registered with Spotify
- PROVIDER_TIMEOUT_SECONDS: per-request timeout (default: 5)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlencode

import requests
from pydantic import BaseModel, ValidationError, field_validator

from webapp.auth.config import AuthConfig
from webapp.auth.errors import TokenEndpointError
from webapp.auth.models import TokenGrant

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"
API_BASE_URL = "https://api.spotify.com/v1"


class TokenProvider(Protocol):
    """Protocol for the OAuth provider's token endpoint."""

    def exchange_code(self, code: str) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Returns:
            TokenGrant with access_token, refresh_token and expires_in (seconds)

        Raises:
            TokenEndpointError on any non-2xx response, transport error or malformed body
        """
        ...

    def refresh(self, refresh_token: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.

        Returns:
            TokenGrant; refresh_token is set only if the provider rotated it

        Raises:
            TokenEndpointError on any non-2xx response, transport error or malformed body
        """
        ...


class _TokenResponse(BaseModel):
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None

    @field_validator("access_token")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("access_token is empty")
        return v

    @field_validator("expires_in")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("expires_in must be positive")
        return v


class SpotifyProvider:
    """
    Default token provider backed by the Spotify accounts service.

    Client credentials are sent with HTTP Basic auth. Every call is bounded by
    the configured timeout; a timeout surfaces as TokenEndpointError.
    """

    def __init__(self, cfg: AuthConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.timeout = cfg.provider_timeout_seconds
        self._http = session or requests.Session()

    def build_authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.cfg.client_id,
            "response_type": "code",
            "redirect_uri": self.cfg.redirect_uri,
            "scope": " ".join(self.cfg.scopes),
            "state": state,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenGrant:
        grant = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.cfg.redirect_uri,
            }
        )
        if not grant.refresh_token:
            raise TokenEndpointError("Token response missing refresh_token")
        return grant

    def refresh(self, refresh_token: str) -> TokenGrant:
        return self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})

    def get_saved_tracks(self, access_token: str, limit: int = 20) -> Dict[str, Any]:
        r = self._http.get(
            f"{API_BASE_URL}/me/tracks",
            params={"limit": limit},
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict):
            raise ValueError("Invalid saved tracks response")
        return data

    def _token_request(self, payload: Dict[str, str]) -> TokenGrant:
        grant_type = payload.get("grant_type")
        try:
            r = self._http.post(
                TOKEN_URL,
                data=payload,
                auth=(self.cfg.client_id, self.cfg.client_secret),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TokenEndpointError(f"Token request timed out (grant_type={grant_type})") from e
        except requests.RequestException as e:
            raise TokenEndpointError(f"Token request failed (grant_type={grant_type})") from e

        if r.status_code >= 400:
            # Avoid leaking sensitive info; include minimal context.
            raise TokenEndpointError(
                f"Token request rejected (grant_type={grant_type}, status={r.status_code})",
                status_code=r.status_code,
            )
        try:
            body = _TokenResponse.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise TokenEndpointError(f"Invalid token response (grant_type={grant_type})") from e

        logger.debug("Token request ok (grant_type=%s, expires_in=%d)", grant_type, body.expires_in)
        return TokenGrant(
            access_token=body.access_token,
            expires_in=body.expires_in,
            refresh_token=body.refresh_token or None,
        )
