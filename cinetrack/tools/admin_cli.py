"""
Administration CLI for CineTrack.

Commands:
    hash-password  Generate an ADMIN_PASSWORD_HASH value
    seed           Insert the starter titles into an empty catalog
    requests       Print the request panel for the configured store

Usage:
    cinetrack-admin hash-password [--rounds N]
    cinetrack-admin seed
    cinetrack-admin requests [--format text|json]

Invariants:
    - Tools work offline (no running server required)
    - seed is idempotent
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys

from ..auth import DEFAULT_ROUNDS, hash_password
from ..catalog import CatalogService
from ..config import AppConfig
from ..context import AppContext
from ..requests import AggregationResult, aggregate_requests


class AdminCLI:
    """CLI tool for CineTrack administration.

    Example:
        >>> cli = AdminCLI()
        >>> cli.hash_password("s3cret")
        '$2b$12$...'
        >>> print("\\n".join(cli.format_panel(await cli.requests(context))))
    """

    def hash_password(self, password: str, rounds: int = DEFAULT_ROUNDS) -> str:
        return hash_password(password, rounds=rounds)

    async def seed(self, context: AppContext) -> int:
        """Seed the catalog. Returns the number of inserted titles."""
        await context.open()
        try:
            return await CatalogService(context).seed_if_empty()
        finally:
            await context.close()

    async def requests(self, context: AppContext) -> AggregationResult:
        """Aggregate the current requests snapshot."""
        await context.open()
        try:
            documents = await context.store.query_once(context.requests_path)
        finally:
            await context.close()
        return aggregate_requests(documents)

    def format_panel(self, result: AggregationResult) -> list[str]:
        """Render groups one per line, in panel order."""
        if not result.groups:
            return ["No pending requests."]

        lines = []
        for group in result.groups:
            status = "done" if group.all_actioned else "open"
            lines.append(
                f"[{status}] {group.movie_title} "
                f"({group.request_count} request{'s' if group.request_count != 1 else ''}, "
                f"latest {group.latest_requested_at.isoformat()})"
            )
        if result.issues:
            lines.append(f"{len(result.issues)} record(s) skipped:")
            for issue in result.issues:
                lines.append(f"  - {issue.doc_id}: {issue.message}")
        return lines


def _read_password() -> str:
    password = getpass.getpass("Password: ")
    if not password:
        raise ValueError("Password must not be empty")
    if getpass.getpass("Confirm password: ") != password:
        raise ValueError("Passwords do not match")
    return password


def main() -> None:
    """CLI entry point for the admin tool."""
    parser = argparse.ArgumentParser(description="CineTrack administration tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # hash-password command
    hash_parser = subparsers.add_parser("hash-password", help="Generate an admin password hash")
    hash_parser.add_argument(
        "--rounds", type=int, default=DEFAULT_ROUNDS, help="bcrypt cost factor (4-31)"
    )

    # seed command
    subparsers.add_parser("seed", help="Seed the catalog with starter titles if empty")

    # requests command
    requests_parser = subparsers.add_parser("requests", help="Show aggregated visitor requests")
    requests_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    args = parser.parse_args()
    cli = AdminCLI()

    if args.command == "hash-password":
        if not 4 <= args.rounds <= 31:
            print("Error: --rounds must be between 4 and 31", file=sys.stderr)
            sys.exit(1)
        try:
            password = _read_password()
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(cli.hash_password(password, rounds=args.rounds))
        return

    try:
        config = AppConfig.from_env(require_auth=False)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    context = AppContext.from_config(config)

    if args.command == "seed":
        inserted = asyncio.run(cli.seed(context))
        if inserted:
            print(f"Seeded {inserted} title(s)")
        else:
            print("Catalog already has entries, nothing seeded")

    elif args.command == "requests":
        result = asyncio.run(cli.requests(context))
        if args.format == "json":
            payload = {
                "groups": [group.to_dict() for group in result.groups],
                "issue_count": len(result.issues),
            }
            print(json.dumps(payload, indent=2))
        else:
            for line in cli.format_panel(result):
                print(line)


if __name__ == "__main__":
    main()
