from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Required configuration (signing secret, provider credentials) is missing or invalid."""


class TokenEndpointError(ValueError):
    """The OAuth provider's token endpoint failed, timed out, or returned a malformed body."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RefreshFailure(Exception):
    """
    A stale session could not be refreshed.

    Callers must treat the request as unauthenticated. The underlying cause is
    chained (`__cause__`) for logging only and is never sent to the client.
    """
