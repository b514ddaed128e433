"""
Access-token freshness and refresh.

A session whose access token expires within the skew margin is refreshed
synchronously by the request that notices it. There is no cross-request
deduplication: concurrent requests carrying the same stale cookies each call
the provider, and each gets its own (valid) access token.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from webapp.auth.config import AuthConfig
from webapp.auth.errors import RefreshFailure, TokenEndpointError
from webapp.auth.models import FreshToken, Session, TokenGrant
from webapp.auth.session import encode_session
from webapp.auth.util import now_ms as _wall_clock_ms
from webapp.providers.spotify_provider import SpotifyProvider, TokenProvider

logger = logging.getLogger(__name__)


def session_from_grant(grant: TokenGrant, now_ms: int, *, refresh_token: Optional[str] = None) -> Session:
    """
    Build a session from a token grant.

    `refresh_token` is the one already held; a refresh token returned by the
    provider (rotation) always wins over it.
    """
    rt = grant.refresh_token or refresh_token
    if not rt:
        raise ValueError("No refresh token available for session")
    return Session(
        access_token=grant.access_token,
        refresh_token=rt,
        expires_at=now_ms + int(grant.expires_in) * 1000,
    )


def is_fresh(cfg: AuthConfig, session: Session, now_ms: int) -> bool:
    return session.expires_at > now_ms + cfg.refresh_skew_ms


def ensure_fresh(
    cfg: AuthConfig,
    session: Session,
    *,
    provider: Optional[TokenProvider] = None,
    now_ms: Optional[Callable[[], int]] = None,
) -> FreshToken:
    """
    Return a usable access token for `session`.

    Fast path: the token is outside the skew margin, returned unchanged with no
    cookies. Otherwise the refresh token is exchanged once and a full signed
    cookie set is returned for the caller to attach to its response.

    Raises:
        RefreshFailure: the provider rejected the refresh, timed out, or answered
            with a malformed body. No cookies are produced; the caller must treat
            the request as unauthenticated.
    """
    clock = now_ms or _wall_clock_ms
    now = clock()
    if is_fresh(cfg, session, now):
        return FreshToken(access_token=session.access_token, expires_at=session.expires_at)

    provider = provider or SpotifyProvider(cfg)
    try:
        grant = provider.refresh(session.refresh_token)
    except TokenEndpointError as e:
        logger.warning("Access token refresh failed: %s", str(e))
        raise RefreshFailure("Access token refresh failed") from e

    if grant.refresh_token and grant.refresh_token != session.refresh_token:
        logger.info("Provider rotated the refresh token")

    # Expiry is measured from the clock read that decided to refresh.
    renewed = session_from_grant(grant, now, refresh_token=session.refresh_token)
    logger.debug("Access token refreshed (expires_at=%d)", renewed.expires_at)
    return FreshToken(
        access_token=renewed.access_token,
        expires_at=renewed.expires_at,
        reissued_cookies=encode_session(cfg, renewed),
    )
