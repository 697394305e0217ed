"""CLI for gcal - calendar events for scripts and status bars.

Usage:
    gcal auth [--port N] [--no-browser]    # Interactive OAuth login
    gcal today [--calendar ID ...]          # Today's events as JSON
    gcal upcoming [--hours N]               # Events in the next N hours as JSON
    gcal calendars                          # Accessible calendars as JSON
    gcal status                             # Show credential and token status
    gcal logout                             # Revoke token and clear local cache
    gcal import <path>                      # Import OAuth client credentials
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gcal_cli.calendar import CalendarClient
    from gcal_cli.models import Event


def _print_json(data: dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fetch_events(fetch: Callable[[CalendarClient], list[Event]]) -> int:
    """Run an event query and print the JSON response."""
    from gcal_cli.calendar import CalendarClient
    from gcal_cli.exceptions import GcalError
    from gcal_cli.models import error_response, success_response

    try:
        events = fetch(CalendarClient())
        response = success_response(events)
    except GcalError as e:
        response = error_response(e.code, str(e))

    _print_json(response.to_dict())
    return 0 if response.success else 1


def cmd_today(calendar_ids: list[str]) -> int:
    """Print today's events."""
    return _fetch_events(lambda client: client.fetch_today(calendar_ids))


def cmd_upcoming(calendar_ids: list[str], hours: int) -> int:
    """Print events in the next N hours."""
    return _fetch_events(lambda client: client.fetch_upcoming(calendar_ids, hours=hours))


def cmd_calendars() -> int:
    """Print the calendars the user has access to."""
    from gcal_cli.calendar import CalendarClient
    from gcal_cli.exceptions import GcalError
    from gcal_cli.models import CalendarsResponse

    try:
        calendars = CalendarClient().list_calendars()
        response = CalendarsResponse(success=True, calendars=calendars)
    except GcalError as e:
        response = CalendarsResponse(success=False, error=e.code, message=str(e))

    _print_json(response.to_dict())
    return 0 if response.success else 1


def cmd_auth(port: int | None, no_browser: bool, timeout: float | None) -> int:
    """Interactive Google OAuth login."""
    from gcal_cli.google import AuthFlowError, GoogleOAuth, NotConfiguredError

    print("=" * 60)
    print("GCAL GOOGLE LOGIN")
    print("=" * 60)

    auth = GoogleOAuth(port=port)
    try:
        creds = auth.credentials
    except NotConfiguredError as e:
        print(f"\nError: {e}")
        print("Run 'gcal import <path>' to install OAuth client credentials")
        return 1

    print(f"\nClient ID: {creds.client_id[:40]}...")
    print(f"Waiting for the OAuth callback on port {auth.port}...")

    try:
        auth.authorize(timeout=timeout, open_browser=not no_browser)
    except AuthFlowError as e:
        print(f"\nError: {e}")
        return 1

    print("\nAuthorization successful! Token saved.")
    return cmd_status()


def cmd_status() -> int:
    """Show credential and token status."""
    from gcal_cli.config import get_credential_status
    from gcal_cli.google import GoogleOAuth, NotConfiguredError

    status = get_credential_status()

    creds_mark = "[x]" if status["credentials"]["exists"] else "[ ]"
    token_mark = "[x]" if status["token"]["exists"] else "[ ]"
    print(f"Credentials : {creds_mark} {status['credentials']['path']}")
    print(f"Token       : {token_mark} {status['token']['path']}")

    auth = GoogleOAuth()
    try:
        creds = auth.credentials
    except NotConfiguredError as e:
        print(f"\nError: {e}")
        print("Run 'gcal import <path>' to install OAuth client credentials")
        return 1

    print(f"Client ID   : {creds.client_id[:40]}...")
    info = auth.get_token_info()
    if info["status"] == "no_token":
        print("\nNo token found - run 'gcal auth'")
        return 1
    if info["status"] == "invalid":
        print(f"\nError: {info['error']}")
        print("Run 'gcal auth' to create a new token")
        return 1

    print(f"Status      : {info['status']}")
    print(f"Expires in  : {info.get('expires_in', 'unknown')}")
    print(f"Refreshable : {'yes' if info['has_refresh_token'] else 'no'}")
    return 0


def cmd_logout() -> int:
    """Revoke Google OAuth token."""
    from gcal_cli.google import GoogleOAuth

    auth = GoogleOAuth()
    try:
        revoked = auth.revoke_token()
    except OSError as e:
        print(f"Error: could not remove token: {e}")
        return 1

    if revoked:
        print("Token revoked and local cache cleared")
    else:
        print("No token to revoke")
    return 0


def cmd_import(source_path: str) -> int:
    """Import OAuth credentials from a file."""
    from gcal_cli.config import get_credentials_path
    from gcal_cli.google import NotConfiguredError, import_credentials

    dest = get_credentials_path()
    try:
        creds = import_credentials(source_path, dest)
    except NotConfiguredError as e:
        print(f"Error: {e}")
        print('Expected a JSON object with "clientId" and "clientSecret"')
        return 1

    print("Imported OAuth credentials")
    print(f"  From: {source_path}")
    print(f"  To:   {dest}")
    print(f"  Client ID: {creds.client_id[:40]}...")
    print()
    print("Next: Run 'gcal auth' to authorize")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="gcal",
        description="Google Calendar events for scripts and status bars",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    # auth
    auth_parser = subparsers.add_parser("auth", help="Interactive OAuth login")
    auth_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Callback port (default: $GCAL_CALLBACK_PORT or 8085)",
    )
    auth_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open browser automatically",
    )
    auth_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the callback (default: 300)",
    )

    # today
    today_parser = subparsers.add_parser("today", help="Today's events as JSON")
    today_parser.add_argument(
        "--calendar",
        dest="calendars",
        action="append",
        default=[],
        help="Calendar ID to query (repeatable, default: primary)",
    )

    # upcoming
    upcoming_parser = subparsers.add_parser("upcoming", help="Upcoming events as JSON")
    upcoming_parser.add_argument(
        "--calendar",
        dest="calendars",
        action="append",
        default=[],
        help="Calendar ID to query (repeatable, default: primary)",
    )
    upcoming_parser.add_argument(
        "--hours",
        type=int,
        default=4,
        help="Hours ahead to look (default: 4)",
    )

    subparsers.add_parser("calendars", help="List calendars as JSON")
    subparsers.add_parser("status", help="Show credential and token status")
    subparsers.add_parser("logout", help="Revoke token and clear local cache")

    import_parser = subparsers.add_parser("import", help="Import OAuth credentials")
    import_parser.add_argument("path", help="Path to credentials JSON file")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "auth":
        return cmd_auth(args.port, args.no_browser, args.timeout)
    elif args.command == "today":
        return cmd_today(args.calendars)
    elif args.command == "upcoming":
        return cmd_upcoming(args.calendars, args.hours)
    elif args.command == "calendars":
        return cmd_calendars()
    elif args.command == "status":
        return cmd_status()
    elif args.command == "logout":
        return cmd_logout()
    elif args.command == "import":
        return cmd_import(args.path)

    return 0


if __name__ == "__main__":
    sys.exit(main())
