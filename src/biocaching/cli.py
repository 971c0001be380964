"""
Command-line interface for the application.

This module provides the main entry point for the CLI.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys

import requests

from biocaching import __version__
from biocaching.client import BiocachingClient
from biocaching.config import get_settings
from biocaching.errors import BiocachingError


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="biocaching",
        description="Command-line client for the Biocaching observation API",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("info", help="Show application info")

    login_parser = subparsers.add_parser("login", help="Sign in and persist the session")
    login_parser.add_argument("email", type=str)
    login_parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Password (prompted for if omitted)",
    )

    subparsers.add_parser("whoami", help="Show the persisted session")
    subparsers.add_parser("logout", help="Forget the persisted session")

    obs_parser = subparsers.add_parser("observations", help="List observations")
    obs_parser.add_argument("--user", type=str, default=None, help="Only this user's observations")
    obs_parser.add_argument("--from", dest="from_", type=int, default=0, help="Records to skip")
    obs_parser.add_argument("--size", type=int, default=10, help="Records to return (default: 10)")

    one_parser = subparsers.add_parser("observation", help="Show one observation as JSON")
    one_parser.add_argument("id", type=str)

    subparsers.add_parser("terms", help="Show terms of use and acceptance status")

    snap_parser = subparsers.add_parser("snapshot", help="Snapshot observations near a point")
    snap_parser.add_argument("lat", type=float)
    snap_parser.add_argument("lon", type=float)
    snap_parser.add_argument(
        "--distance",
        type=float,
        default=5000,
        help="Radius in metres (default: 5000)",
    )

    return parser


def make_client() -> BiocachingClient:
    return BiocachingClient.from_settings()


def cmd_info(_args: argparse.Namespace) -> int:
    """Handle the 'info' command."""
    settings = get_settings()
    print(f"Application: {settings.app_name}")
    print(f"Version: {__version__}")
    print(f"Environment: {settings.app_env}")
    print(f"Endpoint: {settings.endpoint}")
    print(f"Session file: {settings.session_file}")
    print(f"Debug: {settings.debug}")
    return 0


def cmd_login(args: argparse.Namespace) -> int:
    """Handle the 'login' command."""
    password = args.password if args.password is not None else getpass.getpass()
    session = make_client().login(args.email, password)
    print(f"Signed in as {session.display_name or session.email} ({session.email})")
    return 0


def cmd_whoami(_args: argparse.Namespace) -> int:
    """Handle the 'whoami' command."""
    client = make_client()
    session = client.session
    if not session.authorized:
        print("Not signed in.", file=sys.stderr)
        return 1
    print(f"{session.display_name or session.email} <{session.email}> (user {session.user_id})")
    print(f"Language: {session.language}")
    return 0


def cmd_logout(_args: argparse.Namespace) -> int:
    """Handle the 'logout' command."""
    make_client().logout()
    print("Signed out.")
    return 0


def cmd_observations(args: argparse.Namespace) -> int:
    """Handle the 'observations' command."""
    client = make_client()
    if args.user is not None:
        observations = client.get_observations_by_user(args.user, args.from_, args.size)
    else:
        observations = client.get_observations(args.from_, args.size)

    for obs in observations:
        when = obs.time.date().isoformat() if obs.time else "?"
        liked = " *" if obs.liked_by_current_user else ""
        print(
            f"{obs.id}\t{when}\t{obs.location.lat:.5f},{obs.location.lng:.5f}"
            f"\t{obs.display_name}\t{obs.likes_count} likes{liked}"
        )
    return 0


def cmd_observation(args: argparse.Namespace) -> int:
    """Handle the 'observation' command."""
    obs = make_client().get_observation(args.id)
    print(obs.model_dump_json(indent=2))
    return 0


def cmd_terms(_args: argparse.Namespace) -> int:
    """Handle the 'terms' command."""
    client = make_client()
    print(client.retrieve_terms().replace("<br>", "\n"))
    if client.session.authorized:
        print(f"\nAccepted: {'yes' if client.status_terms() else 'no'}")
    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Handle the 'snapshot' command: run the fetch flow."""
    from biocaching.flows.fetch import fetch_nearby

    result = fetch_nearby(lat=args.lat, lon=args.lon, distance=args.distance)
    print(f"{result['observations']} observations in {result['path']}")
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug or get_settings().debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "info": cmd_info,
        "login": cmd_login,
        "whoami": cmd_whoami,
        "logout": cmd_logout,
        "observations": cmd_observations,
        "observation": cmd_observation,
        "terms": cmd_terms,
        "snapshot": cmd_snapshot,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except BiocachingError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except requests.RequestException as e:
        print(f"Request failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
