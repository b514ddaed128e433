"""
Pytest config.

Local imports like `import webapp` rely on the repo root being on sys.path. When
pytest is invoked through a global entrypoint that doesn't always happen during
collection, so pin it here.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

TEST_SECRET = "test-secret-key-for-testing-purposes-only"


@pytest.fixture(autouse=True)
def _auth_env(monkeypatch: pytest.MonkeyPatch):
    """
    Every test starts from a complete, non-secure (plain HTTP) configuration.

    The config loader is cached; clear it before and after so per-test env
    overrides take effect and don't leak.
    """
    from webapp.auth.config import load_auth_config

    monkeypatch.setenv("SESSION_SECRET", TEST_SECRET)
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("SPOTIFY_REDIRECT_URI", "http://testserver/api/auth/callback")
    monkeypatch.setenv("APP_ENV", "test")
    for name in (
        "AUTH_COOKIE_SECURE",
        "AUTH_REFRESH_SKEW_SECONDS",
        "PROVIDER_TIMEOUT_SECONDS",
        "SPOTIFY_SCOPES",
        "PUBLIC_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()


@pytest.fixture
def cfg():
    from webapp.auth.config import load_auth_config

    return load_auth_config()
