#!/usr/bin/env python3
"""
Command-line interface for the release tracker.
"""

import argparse
import json
import sys
from typing import Optional

from .app import ReleaseTracker, build_client, split_full_name
from .config import configure_logging, load_configuration
from .db_factory import get_database_manager
from .exceptions import ReleaseTrackerError


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="release-tracker",
        description="Track GitHub repositories and their releases"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("list", help="List tracked repositories")

    show_parser = subparsers.add_parser("show", help="Show one repository with its releases")
    show_parser.add_argument("repository_id")

    track_parser = subparsers.add_parser("track", help="Start tracking a repository")
    track_parser.add_argument("full_name", metavar="OWNER/NAME")

    remove_parser = subparsers.add_parser("remove", help="Stop tracking a repository")
    remove_parser.add_argument("repository_id")

    sync_parser = subparsers.add_parser("sync", help="Synchronize releases from GitHub")
    sync_parser.add_argument(
        "repository_id",
        nargs="?",
        help="Repository to sync (default: all tracked repositories)"
    )

    seen_parser = subparsers.add_parser("seen", help="Mark releases as seen")
    target = seen_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--repository", dest="repository_id", help="Mark all releases of a repository")
    target.add_argument("--release", dest="release_id", help="Mark a single release")

    server_parser = subparsers.add_parser("server", help="Start the JSON API server")
    server_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to run the server on (default: PORT or 8000)"
    )
    server_parser.add_argument(
        "--no-background-sync",
        action="store_true",
        help="Disable the periodic sync of all repositories"
    )

    return parser


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def run_command(args: argparse.Namespace, tracker: ReleaseTracker) -> int:
    """Run one tracker command and print its result."""
    if args.command == "list":
        _print_json([repo.to_dict(include_releases=False) for repo in tracker.list_repositories()])
    elif args.command == "show":
        _print_json(tracker.get_repository(args.repository_id).to_dict())
    elif args.command == "track":
        owner, name = split_full_name(args.full_name)
        _print_json(tracker.track_repository(owner, name).to_dict())
    elif args.command == "remove":
        if not tracker.remove_repository(args.repository_id):
            print(f"Repository with ID {args.repository_id} not found", file=sys.stderr)
            return 1
        print(f"Removed repository {args.repository_id}")
    elif args.command == "sync":
        if args.repository_id:
            _print_json(tracker.sync_repository(args.repository_id).to_dict())
        else:
            summary = tracker.sync_all_repositories()
            _print_json(summary.to_dict())
    elif args.command == "seen":
        if args.repository_id:
            _print_json(tracker.mark_all_releases_seen(args.repository_id).to_dict())
        else:
            _print_json(tracker.mark_release_seen(args.release_id).to_dict())
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_configuration()
    except ReleaseTrackerError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    configure_logging(config.log_level)

    if args.command == "server":
        from .server import run_server
        try:
            run_server(port=args.port, enable_background_sync=not args.no_background_sync,
                       config=config)
            return 0
        except KeyboardInterrupt:
            print("\nServer stopped by user")
            return 0
        except Exception as e:
            print(f"Server error: {e}", file=sys.stderr)
            return 1

    try:
        with get_database_manager(config) as store:
            store.setup_database()
            tracker = ReleaseTracker(build_client(config), store, config.refresh_metadata_on_sync)
            return run_command(args, tracker)
    except (ReleaseTrackerError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
