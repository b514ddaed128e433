"""
OAuth `state` parameter bound to one login attempt.

The raw value goes to the provider; the browser keeps a timestamp-signed copy
in its own cookie. The callback is rejected unless both match and the cookie
is younger than the TTL.
"""

from __future__ import annotations

import hmac
from typing import Optional, Tuple

from itsdangerous import BadSignature, SignatureExpired, TimestampSigner

from webapp.auth.config import AuthConfig
from webapp.auth.util import random_token

STATE_COOKIE = "sp_state"
STATE_SALT = "webapp-oauth-state-v1"
STATE_TTL_SECONDS = 10 * 60


def _signer(cfg: AuthConfig) -> TimestampSigner:
    return TimestampSigner(secret_key=cfg.session_secret, salt=STATE_SALT)


def new_state(cfg: AuthConfig) -> Tuple[str, str]:
    """Return (state for the authorize URL, signed cookie value)."""
    state = random_token(32)
    return state, _signer(cfg).sign(state).decode("ascii")


def verify_state(cfg: AuthConfig, cookie_value: Optional[str], state_param: Optional[str]) -> bool:
    cookie_value = (cookie_value or "").strip()
    state_param = (state_param or "").strip()
    if not cookie_value or not state_param:
        return False
    try:
        stored = _signer(cfg).unsign(cookie_value, max_age=STATE_TTL_SECONDS).decode("ascii")
    except (SignatureExpired, BadSignature, UnicodeDecodeError):
        return False
    return hmac.compare_digest(stored.encode("ascii"), state_param.encode("utf-8"))


def state_cookie_kwargs(cfg: AuthConfig, value: str, *, max_age: int = STATE_TTL_SECONDS) -> dict:
    return {
        "key": STATE_COOKIE,
        "value": value,
        "max_age": max_age,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def clear_state_cookie_kwargs(cfg: AuthConfig) -> dict:
    return state_cookie_kwargs(cfg, "", max_age=0)
