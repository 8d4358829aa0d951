"""Airtable Gateway CLI.

Run one gateway operation and print its JSON result to stdout. Logs go to
stderr so the output can be piped straight into jq.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from airtable_gateway.context import build_context
from airtable_gateway.operations import run_operation
from config.config import load_config
from core.errors.exceptions import DomainError
from core.logging.setup import setup_logging
from core.logging.utilities import StructuredLogger
from core.utils.json_serializers import json_serializer

# __main__.py is at src/airtable_gateway/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


def _parse_sort(value: str) -> dict[str, str]:
    """Parse ``Field`` or ``Field:desc`` into a sort spec."""
    field_name, _, direction = value.partition(":")
    return {"field": field_name, "direction": direction or "asc"}


def build_describe_args(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "scope": "table" if args.table else "base",
        "baseId": args.base_id,
        "table": args.table,
        "detailLevel": args.detail_level,
        "includeFields": not args.no_fields,
        "includeViews": args.include_views,
    }


def build_query_args(args: argparse.Namespace) -> dict[str, Any]:
    query: dict[str, Any] = {"baseId": args.base_id, "table": args.table}
    if args.fields:
        query["fields"] = [name.strip() for name in args.fields.split(",") if name.strip()]
    if args.filter:
        query["filterByFormula"] = args.filter
    if args.view:
        query["view"] = args.view
    if args.sort:
        query["sorts"] = [_parse_sort(value) for value in args.sort]
    if args.page_size:
        query["pageSize"] = args.page_size
    if args.max_records:
        query["maxRecords"] = args.max_records
    if args.offset:
        query["offset"] = args.offset
    return query


def build_exceptions_args(args: argparse.Namespace) -> dict[str, Any]:
    exceptions: dict[str, Any] = {"limit": args.limit}
    if args.since:
        exceptions["since"] = args.since
    if args.severity:
        exceptions["severity"] = args.severity
    if args.cursor:
        exceptions["cursor"] = args.cursor
    return exceptions


def build_webhooks_args(args: argparse.Namespace) -> dict[str, Any]:
    return {"baseId": args.base_id} if args.base_id else {}


async def run_command(args: argparse.Namespace) -> int:
    """Build a context, run the selected operation and print the result."""
    config = load_config(config_path=args.config)
    setup_logging(level=args.log_level or config.log_level, json_format=not args.console)

    async with build_context(config, StructuredLogger(logging.getLogger("airtable_gateway"))) as ctx:
        result = await run_operation(ctx, args.operation, args.build(args))

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=json_serializer))
    return 1 if result.is_error else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m airtable_gateway",
        description="Airtable Gateway CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List accessible bases
    python -m airtable_gateway list-bases

    # Describe one table with field types
    python -m airtable_gateway describe appXXXXXXXXXXXXXX --table Tasks

    # Query with a formula and sort
    python -m airtable_gateway query appXXXXXXXXXXXXXX Tasks --filter "{Status}='Open'" --sort Due:desc
        """,
    )
    parser.add_argument("--config", type=Path, help="Path to config.yaml (default: src/config/config.yaml)")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (error, warn, info, debug)")
    parser.add_argument("--console", action="store_true", help="Human-readable logs instead of JSON")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_bases = subparsers.add_parser("list-bases", help="List accessible bases")
    parser_bases.set_defaults(operation="list_bases", build=lambda _args: {})

    parser_describe = subparsers.add_parser("describe", help="Describe a base or one table")
    parser_describe.add_argument("base_id", help="Base id (app...)")
    parser_describe.add_argument("--table", help="Table id or name; describes the whole base if omitted")
    parser_describe.add_argument(
        "--detail-level",
        choices=["tableIdentifiersOnly", "identifiersOnly", "full"],
        default="full",
    )
    parser_describe.add_argument("--include-views", action="store_true", help="Include views")
    parser_describe.add_argument("--no-fields", action="store_true", help="Omit fields")
    parser_describe.set_defaults(operation="describe", build=build_describe_args)

    parser_query = subparsers.add_parser("query", help="Query records from a table")
    parser_query.add_argument("base_id", help="Base id (app...)")
    parser_query.add_argument("table", help="Table id or name")
    parser_query.add_argument("--fields", help="Comma-separated field names to return")
    parser_query.add_argument("--filter", help="filterByFormula expression")
    parser_query.add_argument("--view", help="View id or name")
    parser_query.add_argument(
        "--sort", action="append", help="Sort as Field or Field:desc (repeatable)"
    )
    parser_query.add_argument("--page-size", type=int, help="Records per page (1-100)")
    parser_query.add_argument("--max-records", type=int, help="Maximum records overall")
    parser_query.add_argument("--offset", help="Offset from a previous page")
    parser_query.set_defaults(operation="query", build=build_query_args)

    parser_governance = subparsers.add_parser("governance", help="Show the governance snapshot")
    parser_governance.set_defaults(operation="list_governance", build=lambda _args: {})

    parser_exceptions = subparsers.add_parser("exceptions", help="List recorded exceptions")
    parser_exceptions.add_argument("--since", help="Only entries after this ISO timestamp")
    parser_exceptions.add_argument("--severity", choices=["info", "warning", "error"])
    parser_exceptions.add_argument("--limit", type=int, default=100, help="Page size (default: 100)")
    parser_exceptions.add_argument("--cursor", help="Cursor from a previous page")
    parser_exceptions.set_defaults(operation="list_exceptions", build=build_exceptions_args)

    parser_webhooks = subparsers.add_parser("webhooks", help="List webhooks for a base")
    parser_webhooks.add_argument("--base-id", help="Base id; defaults to the configured default base")
    parser_webhooks.set_defaults(operation="list_webhooks", build=build_webhooks_args)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    # Load environment variables from .env file before any config access
    load_dotenv(PROJECT_ROOT / ".env")

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
    except (DomainError, FileNotFoundError, ValueError) as e:
        # Startup failures (credentials, governance file, config values)
        print(json.dumps({"error": str(e)}), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
