"""CLI for drive-bridge - setup and inspection of the Drive connection.

Usage:
    drive-bridge status                        # Show credential and token status
    drive-bridge credentials <id> <secret>     # Save OAuth client credentials
    drive-bridge auth-url                      # Print (and open) the consent URL
    drive-bridge refresh                       # Refresh the token if expired
    drive-bridge revoke                        # Revoke the token
    drive-bridge serve                         # Run the HTTP endpoints
"""

from __future__ import annotations

import argparse
import logging
import sys
import webbrowser

from drive_bridge.config import Settings, ensure_data_dir, load_settings
from drive_bridge.exceptions import DriveBridgeError
from drive_bridge.store import CredentialStore


def _store(settings: Settings) -> CredentialStore:
    return CredentialStore(settings.options_file)


def cmd_status(settings: Settings) -> int:
    """Show credential and token status."""
    from drive_bridge.google import TokenManager

    store = _store(settings)
    credentials = store.get_credentials()
    info = TokenManager(store).get_token_info()

    print("=" * 60)
    print("DRIVE-BRIDGE STATUS")
    print("=" * 60)
    print()
    print(f"Options file : {settings.options_file}")
    print(f"Redirect URI : {settings.redirect_uri}")
    print()
    print(f"Client credentials : {'[x]' if credentials.is_configured else '[ ]'}")

    if info["status"] == "no_token":
        print("Token              : [ ] run 'drive-bridge auth-url'")
        return 1

    print(f"Token              : {info['status']}")
    print(f"Expires in         : {info['expires_in']}")
    print(f"Refresh token      : {'[x]' if info['has_refresh_token'] else '[ ]'}")
    return 0


def cmd_credentials(settings: Settings, client_id: str, client_secret: str) -> int:
    """Save OAuth client credentials."""
    ensure_data_dir(settings.options_file.parent)

    try:
        _store(settings).save_credentials(client_id, client_secret)
    except DriveBridgeError as e:
        print(f"Error: {e}")
        return 1

    print("Saved OAuth client credentials")
    print(f"  Client ID: {client_id.strip()[:40]}...")
    print()
    print(f"Register this redirect URI in Google Cloud Console: {settings.redirect_uri}")
    print("Next: Run 'drive-bridge auth-url' to authorize")
    return 0


def cmd_auth_url(settings: Settings, no_browser: bool = False) -> int:
    """Print the Google consent URL."""
    from drive_bridge.google import OAuthFlow

    try:
        url = OAuthFlow(_store(settings), settings).build_authorization_url()
    except DriveBridgeError as e:
        print(f"Error: {e}")
        print("Run 'drive-bridge credentials <id> <secret>' first")
        return 1

    print(f"Authorization URL:\n{url}\n")
    print(f"Google will redirect to {settings.redirect_uri}; keep 'drive-bridge serve' running.")

    if not no_browser:
        webbrowser.open(url)
    return 0


def cmd_refresh(settings: Settings) -> int:
    """Refresh the stored token when it has expired."""
    from drive_bridge.google import TokenManager

    store = _store(settings)
    tokens = TokenManager(store, http_timeout=settings.http_timeout)

    if not tokens.ensure_usable_token():
        print("No usable token - run 'drive-bridge auth-url'")
        return 1

    print("Token is usable")
    return cmd_status(settings)


def cmd_revoke(settings: Settings) -> int:
    """Revoke the stored token."""
    from drive_bridge.google import OAuthFlow

    if OAuthFlow(_store(settings), settings).revoke():
        print("Token revoked and local copy cleared")
    else:
        print("Local token cleared; Google did not confirm the revocation")
    return 0


def cmd_serve(settings: Settings, host: str, port: int) -> int:
    """Run the HTTP endpoints with uvicorn."""
    import uvicorn

    from drive_bridge.api import create_app

    ensure_data_dir(settings.options_file.parent)
    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="drive-bridge",
        description="Connect one Google Drive account and proxy file operations",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser("status", help="Show credential and token status")

    credentials_parser = subparsers.add_parser("credentials", help="Save OAuth client credentials")
    credentials_parser.add_argument("client_id", help="OAuth client ID")
    credentials_parser.add_argument("client_secret", help="OAuth client secret")

    auth_parser = subparsers.add_parser("auth-url", help="Print the consent URL")
    auth_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )

    subparsers.add_parser("refresh", help="Refresh the token if expired")
    subparsers.add_parser("revoke", help="Revoke the token")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP endpoints")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    if args.command is None:
        parser.print_help()
        return 0

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "status":
        return cmd_status(settings)
    if args.command == "credentials":
        return cmd_credentials(settings, args.client_id, args.client_secret)
    if args.command == "auth-url":
        return cmd_auth_url(settings, args.no_browser)
    if args.command == "refresh":
        return cmd_refresh(settings)
    if args.command == "revoke":
        return cmd_revoke(settings)
    if args.command == "serve":
        return cmd_serve(settings, args.host, args.port)

    return 0


if __name__ == "__main__":
    sys.exit(main())
