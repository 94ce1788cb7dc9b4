"""CLI entry point for teamsync."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .config import load_config
from .people import PeopleService, Role, UpdateState


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def _build_service(args: argparse.Namespace) -> PeopleService | None:
    config = load_config(args.config)
    if not config.site.id:
        print("No site configured (set site.id or TEAMSYNC_SITE_ID)", file=sys.stderr)
        return None
    return PeopleService.from_config(config)


async def cmd_refresh(args: argparse.Namespace) -> int:
    """Refresh the team of the configured site."""
    service = _build_service(args)
    if service is None:
        return 1

    try:
        ok = await service.refresh_team()
    finally:
        await service.close()

    if not ok:
        print(f"Failed to refresh team of site {service.site_id}", file=sys.stderr)
        return 1

    merge = service.last_merge
    print(f"Team of site {service.site_id} refreshed")
    print(f"  Inserted: {len(merge.inserted)}")
    print(f"  Updated: {len(merge.updated)}")
    print(f"  Removed: {len(merge.removed)}")
    print(f"  Unchanged: {merge.unchanged}")
    return 0


async def cmd_list(args: argparse.Namespace) -> int:
    """List the stored team."""
    service = _build_service(args)
    if service is None:
        return 1

    try:
        people = service.team()
    finally:
        await service.close()

    if args.json:
        print(json.dumps([p.to_dict() for p in people], indent=2))
        return 0

    if not people:
        print("No people stored for this site (run 'teamsync refresh')")
        return 0

    for person in people:
        print(f"{person.user_id:>10}  {person.display_name or person.username:<30}  {person.role}")
    return 0


async def cmd_set_role(args: argparse.Namespace) -> int:
    """Assign a role to a stored person and wait for the backend."""
    service = _build_service(args)
    if service is None:
        return 1

    role = Role.from_remote(args.role)
    if role is Role.UNSUPPORTED:
        print(f"Unknown role: {args.role}", file=sys.stderr)
        await service.close()
        return 1

    try:
        person = service.get_person(args.user_id)
        if person is None:
            print(f"Person {args.user_id} is not stored for this site", file=sys.stderr)
            return 1

        updated = service.update_person(person, role)
        pending = service.pending_update(args.user_id)
        print(f"{updated.display_name or updated.username}: {person.role} -> {updated.role}")

        await service.wait_for_pending()
        final = service.get_person(args.user_id)
    finally:
        await service.close()

    if pending is not None and pending.state is not UpdateState.CONFIRMED:
        stored_role = final.role if final else "unknown"
        print(f"Update {pending.state.value}; stored role is now {stored_role}", file=sys.stderr)
        return 1

    print("Update confirmed")
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Show configuration and store statistics."""
    config = load_config(args.config)

    from .people import PeopleStore

    # Don't create an empty database just to report on it
    if Path(config.store.db_path).expanduser().exists():
        store = PeopleStore(config.store.db_path)
        try:
            stats = store.get_stats()
        finally:
            store.close()
    else:
        stats = {"people_count": 0, "people_by_site": {}}

    status_data = {
        "timestamp": datetime.now().isoformat(),
        "site": {"id": config.site.id, "name": config.site.name},
        "api": {
            "base_url": config.api.base_url,
            "authenticated": bool(config.api.token),
            "timeout_seconds": config.api.timeout_seconds,
        },
        "store": {"db_path": config.store.db_path, **stats},
        "sync": {
            "guard_superseded_rollbacks": config.sync.guard_superseded_rollbacks,
        },
    }

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print("teamsync Status")
    print("===============")
    print(f"Site: {config.site.id or 'not configured'} {config.site.name}".rstrip())
    print()
    print(f"API ({config.api.base_url}):")
    print(f"  Authenticated: {'Yes' if config.api.token else 'No'}")
    print()
    print(f"Store ({config.store.db_path}):")
    print(f"  People stored: {stats['people_count']}")
    for site_id, count in stats["people_by_site"].items():
        print(f"    - site {site_id}: {count}")
    if "db_size_mb" in stats:
        print(f"  Size: {stats['db_size_mb']} MB")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="teamsync",
        description="Keep a local copy of a site's team and manage roles",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: none, environment only)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Refresh command
    refresh_parser = subparsers.add_parser("refresh", help="Refresh the team from the backend")
    refresh_parser.set_defaults(func=cmd_refresh)

    # List command
    list_parser = subparsers.add_parser("list", help="List the stored team")
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Output people as JSON",
    )
    list_parser.set_defaults(func=cmd_list)

    # Set-role command
    set_role_parser = subparsers.add_parser("set-role", help="Change the role of a person")
    set_role_parser.add_argument("user_id", type=int, help="User ID of the person")
    set_role_parser.add_argument(
        "role",
        choices=[r.value for r in Role if r is not Role.UNSUPPORTED] + ["admin"],
        help="New role",
    )
    set_role_parser.set_defaults(func=cmd_set_role)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show configuration and store statistics")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
