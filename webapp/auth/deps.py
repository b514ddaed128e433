from __future__ import annotations

from typing import Optional

from fastapi import Request

from webapp.auth.config import AuthConfig, load_auth_config
from webapp.auth.models import Session
from webapp.auth.session import decode_session


def session_from_request(request: Request, cfg: Optional[AuthConfig] = None) -> Optional[Session]:
    """
    Return the verified session carried by the request cookies, if any.

    Missing and tampered cookie sets both yield None; callers treat them the same.
    """
    cfg = cfg or load_auth_config()
    return decode_session(cfg, request.cookies)
