"""
Web backend HTTP surface.

Spotify login/callback/logout, a session status probe, and the saved-tracks
endpoint. Credentials live only in signed cookies; stale access tokens are
refreshed on the request that notices them and the new cookie set is attached
to that request's response.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import requests
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from webapp.auth.config import AuthConfig, load_auth_config
from webapp.auth.deps import session_from_request
from webapp.auth.errors import RefreshFailure, TokenEndpointError
from webapp.auth.models import FreshToken
from webapp.auth.refresh import ensure_fresh, session_from_grant
from webapp.auth.session import apply_cookies, clear_session_cookies, encode_session
from webapp.auth.state import STATE_COOKIE, clear_state_cookie_kwargs, new_state, state_cookie_kwargs, verify_state
from webapp.auth.util import now_ms
from webapp.providers.spotify_provider import SpotifyProvider

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self' data:; script-src 'self'; style-src 'self' 'unsafe-inline';"
    ),
}

_provider: Optional[SpotifyProvider] = None


def get_provider(cfg: AuthConfig) -> SpotifyProvider:
    """Shared provider client (one HTTP connection pool per process/config)."""
    global _provider
    if _provider is None or _provider.cfg is not cfg:
        _provider = SpotifyProvider(cfg)
    return _provider


def _redirect_base(cfg: AuthConfig, request: Request) -> str:
    return cfg.public_base_url or str(request.base_url).rstrip("/")


def _no_store(resp):
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _unauthorized(cfg: AuthConfig, *, clear: bool) -> JSONResponse:
    resp = _no_store(JSONResponse(status_code=401, content={"error": "unauthorized"}))
    if clear:
        # A refresh token the provider rejected is dead; drop it so later
        # requests don't hit the token endpoint with it again.
        apply_cookies(resp, clear_session_cookies(cfg))
    return resp


def _fresh_token(request: Request, cfg: AuthConfig) -> Tuple[Optional[FreshToken], bool]:
    """
    Resolve a usable access token for the request.

    Returns (token, refresh_failed). token is None when the request is
    unauthenticated for any reason.
    """
    session = session_from_request(request, cfg)
    if session is None:
        return None, False
    try:
        return ensure_fresh(cfg, session, provider=get_provider(cfg)), False
    except RefreshFailure:
        return None, True


def _validate_config() -> None:
    """
    Fail fast: refuse to serve traffic without a signing secret and provider credentials.
    """
    cfg = load_auth_config()
    # Avoid logging secrets; the rest is fine.
    logger.info(
        "Auth config: cookie_secure=%s refresh_skew_ms=%d provider_timeout=%.1fs redirect_uri=%s",
        cfg.cookie_secure,
        cfg.refresh_skew_ms,
        cfg.provider_timeout_seconds,
        cfg.redirect_uri,
    )


@asynccontextmanager
async def lifespan(_app: FastAPI):
    _validate_config()
    yield


app = FastAPI(title="Spotify session web backend", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests and attach security headers."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    process_time = time.time() - start_time
    logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
    return response


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.get("/api/auth/login")
def auth_login():
    """Start the authorization-code flow."""
    cfg = load_auth_config()
    state, signed_state = new_state(cfg)
    url = get_provider(cfg).build_authorize_url(state)

    resp = _no_store(RedirectResponse(url=url, status_code=302))
    resp.set_cookie(**state_cookie_kwargs(cfg, signed_state))
    return resp


@app.get("/api/auth/callback")
def auth_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
):
    """Handle the provider redirect: check state, exchange the code, issue the session cookies."""
    cfg = load_auth_config()
    base = _redirect_base(cfg, request)

    if error:
        return _no_store(RedirectResponse(url=f"{base}/?error={quote(error, safe='')}", status_code=302))
    if not code:
        return _no_store(RedirectResponse(url=f"{base}/?error=missing_code", status_code=302))
    # CSRF check happens before any token exchange.
    if not verify_state(cfg, request.cookies.get(STATE_COOKIE), state):
        logger.info("OAuth callback rejected: state mismatch")
        return _no_store(RedirectResponse(url=f"{base}/?error=state_mismatch", status_code=302))

    try:
        grant = get_provider(cfg).exchange_code(code)
    except TokenEndpointError as e:
        logger.warning("OAuth callback failed: %s", str(e))
        return _no_store(RedirectResponse(url=f"{base}/?error=callback_failed", status_code=302))

    session = session_from_grant(grant, now_ms())
    resp = _no_store(RedirectResponse(url=f"{base}/dashboard", status_code=302))
    apply_cookies(resp, encode_session(cfg, session))
    resp.set_cookie(**clear_state_cookie_kwargs(cfg))
    return resp


@app.post("/api/auth/logout")
def auth_logout() -> JSONResponse:
    cfg = load_auth_config()
    resp = _no_store(JSONResponse(content={"ok": True}))
    apply_cookies(resp, clear_session_cookies(cfg))
    return resp


@app.get("/api/auth/session")
def auth_session(request: Request) -> JSONResponse:
    """
    Report whether the request carries a usable session.

    Refreshes a stale access token as a side effect so the UI can keep the
    cookies current without touching any data endpoint.
    """
    cfg = load_auth_config()
    token, refresh_failed = _fresh_token(request, cfg)
    if token is None:
        resp = _no_store(JSONResponse(content={"ok": True, "authenticated": False, "expiresAt": None}))
        if refresh_failed:
            apply_cookies(resp, clear_session_cookies(cfg))
        return resp

    resp = _no_store(JSONResponse(content={"ok": True, "authenticated": True, "expiresAt": token.expires_at}))
    if token.refreshed:
        apply_cookies(resp, token.reissued_cookies or [])
    return resp


@app.get("/api/tracks")
def tracks(request: Request, limit: int = Query(20, ge=1, le=50)) -> JSONResponse:
    """The user's saved tracks, using (and if needed refreshing) the session's access token."""
    cfg = load_auth_config()
    token, refresh_failed = _fresh_token(request, cfg)
    if token is None:
        return _unauthorized(cfg, clear=refresh_failed)

    try:
        data = get_provider(cfg).get_saved_tracks(token.access_token, limit=limit)
    except (requests.RequestException, ValueError) as e:
        logger.warning("Saved tracks fetch failed: %s", str(e))
        resp = JSONResponse(status_code=502, content={"error": "failed_fetch"})
    else:
        resp = JSONResponse(content=data)
    # Cookies from a successful refresh stay valid even if the data call failed.
    if token.refreshed:
        apply_cookies(resp, token.reissued_cookies or [])
    return _no_store(resp)


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    # Validate before binding the port.
    load_auth_config()
    logger.info("Starting web backend on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
