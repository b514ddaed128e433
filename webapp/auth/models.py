from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Session:
    """Credential bundle carried in the signed cookie set."""

    access_token: str
    refresh_token: str
    expires_at: int  # epoch milliseconds


@dataclass(frozen=True)
class TokenGrant:
    """Normalized token endpoint response (authorization-code exchange or refresh)."""

    access_token: str
    expires_in: int  # seconds
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class FreshToken:
    """Usable access token plus the cookie directives to attach when it was refreshed."""

    access_token: str
    expires_at: int  # epoch milliseconds
    reissued_cookies: Optional[List[dict]] = None

    @property
    def refreshed(self) -> bool:
        return self.reissued_cookies is not None
