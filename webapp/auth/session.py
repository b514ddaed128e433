from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Tuple

from starlette.requests import cookie_parser

from webapp.auth.config import AuthConfig
from webapp.auth.models import Session
from webapp.auth.signer import sign, verify

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "sp_at"
REFRESH_TOKEN_COOKIE = "sp_rt"
EXPIRES_AT_COOKIE = "sp_at_exp"
SIGNATURE_COOKIE = "sp_sig"

SESSION_COOKIES = (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, EXPIRES_AT_COOKIE, SIGNATURE_COOKIE)

ACCESS_TOKEN_MAX_AGE = 60 * 60
# Refresh token, expiry and signature are always rewritten together.
SESSION_MAX_AGE = 60 * 60 * 24 * 30

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def session_fields(access_token: str, expires_at: str, refresh_token: str) -> Tuple[str, str, str]:
    """Signed field order: access token, expiry (decimal ms), refresh token."""
    return (access_token, expires_at, refresh_token)


def _cookie_kwargs(cfg: AuthConfig, *, key: str, value: str, max_age: int) -> dict:
    return {
        "key": key,
        "value": value,
        "max_age": max_age,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def encode_session(cfg: AuthConfig, session: Session) -> List[dict]:
    """
    Serialize a session into the four signed cookie directives.

    Each directive is a kwargs dict for `Response.set_cookie`. The four are only
    ever emitted together; use `apply_cookies` to attach them.
    """
    expires_at = str(int(session.expires_at))
    sig = sign(cfg.session_secret, session_fields(session.access_token, expires_at, session.refresh_token))
    return [
        _cookie_kwargs(cfg, key=ACCESS_TOKEN_COOKIE, value=session.access_token, max_age=ACCESS_TOKEN_MAX_AGE),
        _cookie_kwargs(cfg, key=REFRESH_TOKEN_COOKIE, value=session.refresh_token, max_age=SESSION_MAX_AGE),
        _cookie_kwargs(cfg, key=EXPIRES_AT_COOKIE, value=expires_at, max_age=SESSION_MAX_AGE),
        _cookie_kwargs(cfg, key=SIGNATURE_COOKIE, value=sig, max_age=SESSION_MAX_AGE),
    ]


def decode_session(cfg: AuthConfig, cookies: Mapping[str, str]) -> Optional[Session]:
    """
    Rebuild a session from request cookies, or None.

    None covers every failure (missing cookie, bad signature, unparsable
    expiry). The reason is logged at debug level only.
    """
    access_token = cookies.get(ACCESS_TOKEN_COOKIE) or ""
    refresh_token = cookies.get(REFRESH_TOKEN_COOKIE) or ""
    raw_expires = cookies.get(EXPIRES_AT_COOKIE) or ""
    sig = cookies.get(SIGNATURE_COOKIE) or ""
    if not (access_token and refresh_token and raw_expires and sig):
        if any((access_token, refresh_token, raw_expires, sig)):
            logger.debug("Session rejected: incomplete cookie set")
        return None

    # Verify over the presented strings so any byte change is caught.
    if not verify(cfg.session_secret, session_fields(access_token, raw_expires, refresh_token), sig):
        logger.debug("Session rejected: signature mismatch")
        return None

    try:
        expires_at = int(raw_expires, 10)
    except ValueError:
        logger.debug("Session rejected: malformed expiry")
        return None
    return Session(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)


def decode_cookie_header(cfg: AuthConfig, header: Optional[str]) -> Optional[Session]:
    """Parse a raw `Cookie` request header and decode the session it carries."""
    if not header:
        return None
    return decode_session(cfg, cookie_parser(header))


def clear_session_cookies(cfg: AuthConfig) -> List[dict]:
    """Directives that expire all four session cookies immediately (logout, dead refresh token)."""
    directives = []
    for name in SESSION_COOKIES:
        kwargs = _cookie_kwargs(cfg, key=name, value="", max_age=0)
        kwargs["expires"] = _EPOCH
        directives.append(kwargs)
    return directives


def apply_cookies(response, directives: Iterable[dict]) -> None:
    for kwargs in directives:
        response.set_cookie(**kwargs)
