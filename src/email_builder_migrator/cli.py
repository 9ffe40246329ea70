"""
Command-line interface for the email builder migration tool.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from . import credentials
from .config import MigratorSettings
from .exceptions import MigrationError
from .models import ResourceKind
from .orchestrator import MigrationResult, start_migration
from .url_info import parse_source_url
from .utils import PassError, setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Migrate a production email template or campaign into a new staging template"
    )

    # Positional arguments
    _ = parser.add_argument("destination_location", help="Staging location id to create the template in")

    # Source selection
    _ = parser.add_argument(
        "--source-url",
        "-u",
        help="Production builder URL (app.gohighlevel.com or email-builder-prod.web.app)",
    )
    _ = parser.add_argument("--source-location", help="Production location id")
    _ = parser.add_argument("--source-entity", help="Production template or campaign id")
    _ = parser.add_argument(
        "--kind",
        choices=[k.value for k in ResourceKind],
        default=ResourceKind.TEMPLATE.value,
        help="Kind of the production resource (default: template)",
    )

    # Credential sources
    _ = parser.add_argument("--token", help="Production token-id; overrides every other credential source")
    _ = parser.add_argument("--token-pass-path", help="Path of the production token in the pass utility")
    _ = parser.add_argument(
        "--storage-file",
        help="JSON dump of the production site's localStorage to scan for a token",
    )

    # Tuning
    _ = parser.add_argument("--title", help="Title of the created staging template")
    _ = parser.add_argument("--timeout", type=float, help="Per-request timeout in seconds")

    _ = parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Increase console verbosity (-v for info, -vv for debug)",
    )

    args = parser.parse_args(argv)

    if args.source_url and (args.source_location or args.source_entity):
        parser.error("--source-url cannot be combined with --source-location/--source-entity")
    if not args.source_url and not (args.source_location and args.source_entity):
        parser.error("either --source-url or both --source-location and --source-entity are required")

    return args


def _print_status(status: str) -> None:
    print(f"  ... {status}")


def _print_result(result: MigrationResult) -> None:
    """Print the final migration result."""
    if result.success:
        print(f"Migration PASSED: new staging template id {result.new_entity_id}")
    else:
        error_type = type(result.error).__name__ if result.error is not None else "Error"
        print(f"Migration FAILED ({error_type}): {result.reason}")


def _build_settings(args: argparse.Namespace) -> MigratorSettings:
    settings = MigratorSettings.from_env()
    if args.title:
        settings = replace(settings, template_title=args.title)
    if args.timeout is not None:
        settings = replace(settings, request_timeout=args.timeout)
    return settings


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    setup_logging(verbosity=args.verbose)

    try:
        if args.source_url:
            info = parse_source_url(args.source_url)
            source_location, source_entity, kind = info.location_id, info.entity_id, info.kind
        else:
            source_location, source_entity, kind = args.source_location, args.source_entity, args.kind

        token: str | None = args.token or credentials.get_token(args.token_pass_path)
        storage = credentials.load_storage_snapshot(args.storage_file) if args.storage_file else None
        settings = _build_settings(args)
    except (MigrationError, PassError, ValueError) as e:
        logger.error(f"Invalid migration setup: {e}")
        print(f"Migration FAILED: {e}")
        sys.exit(1)

    result = start_migration(
        source_location,
        source_entity,
        args.destination_location,
        kind,
        token,
        storage=storage,
        status_sink=_print_status,
        settings=settings,
    )

    _print_result(result)
    sys.exit(0 if result.success else 1)
