from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from webapp.auth.errors import ConfigurationError

DEFAULT_SCOPES = "user-read-private,playlist-read-private,user-library-read"

_LOCAL_ENVS = ("dev", "development", "local", "test")


@dataclass(frozen=True)
class AuthConfig:
    # Session signing
    session_secret: str
    cookie_secure: bool
    refresh_skew_ms: int

    # Spotify OAuth client
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: List[str]
    provider_timeout_seconds: float

    # Where the callback redirects the browser (default: request origin)
    public_base_url: Optional[str]


def _env(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _parse_csv(value: str) -> List[str]:
    items = [x.strip() for x in (value or "").split(",")]
    return [x for x in items if x]


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    v = (value or "").strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return None


def _parse_seconds(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number of seconds (got {raw!r})") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return value


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    SESSION_SECRET and the Spotify client settings are required. There is no
    fallback secret: a missing value raises ConfigurationError so the server
    refuses to start instead of signing sessions with a guessable key.
    """
    missing = [
        name
        for name in ("SESSION_SECRET", "SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_REDIRECT_URI")
        if _env(name) is None
    ]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    app_env = (_env("APP_ENV") or "production").lower()
    cookie_secure = _parse_bool(_env("AUTH_COOKIE_SECURE"))
    if cookie_secure is None:
        # Default: Secure everywhere except local development over plain HTTP.
        cookie_secure = app_env not in _LOCAL_ENVS

    skew_seconds = _parse_seconds("AUTH_REFRESH_SKEW_SECONDS", 60.0)
    timeout = _parse_seconds("PROVIDER_TIMEOUT_SECONDS", 5.0)
    if timeout <= 0:
        raise ConfigurationError("PROVIDER_TIMEOUT_SECONDS must be positive")

    scopes = _parse_csv(_env("SPOTIFY_SCOPES") or DEFAULT_SCOPES)

    return AuthConfig(
        session_secret=_env("SESSION_SECRET") or "",
        cookie_secure=cookie_secure,
        refresh_skew_ms=int(skew_seconds * 1000),
        client_id=_env("SPOTIFY_CLIENT_ID") or "",
        client_secret=_env("SPOTIFY_CLIENT_SECRET") or "",
        redirect_uri=_env("SPOTIFY_REDIRECT_URI") or "",
        scopes=scopes,
        provider_timeout_seconds=timeout,
        public_base_url=(_env("PUBLIC_BASE_URL") or "").rstrip("/") or None,
    )
