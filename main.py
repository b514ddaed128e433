#!/usr/bin/env python3
"""
Spotify session web backend.

Signed-cookie sessions over the Spotify authorization-code flow, with
transparent access-token refresh.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep webapp imports lazy (inside main) so `--help` works without
# configuration or the server extras installed.
#


def check_config() -> int:
    """Validate configuration and print a redacted summary. Returns an exit code."""
    from webapp.auth.config import load_auth_config
    from webapp.auth.errors import ConfigurationError

    try:
        cfg = load_auth_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    print(f"client_id:        {cfg.client_id}")
    print(f"redirect_uri:     {cfg.redirect_uri}")
    print(f"scopes:           {' '.join(cfg.scopes)}")
    print(f"cookie_secure:    {cfg.cookie_secure}")
    print(f"refresh_skew_ms:  {cfg.refresh_skew_ms}")
    print(f"provider_timeout: {cfg.provider_timeout_seconds}s")
    print(f"public_base_url:  {cfg.public_base_url or '(request origin)'}")
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Spotify session web backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration (SESSION_SECRET, SPOTIFY_* env vars)
  python main.py --check-config

  # Run the HTTP server
  python main.py --serve --port 8080
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP server")
    parser.add_argument("--check-config", action="store_true", help="Validate configuration and exit")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server listen port (default: 8080)")

    args = parser.parse_args()

    if args.check_config:
        sys.exit(check_config())

    if args.serve:
        from webapp.api.app import run

        run(host=args.host, port=args.port)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
