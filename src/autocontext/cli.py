"""
Command-line interface for inspecting durable offload stores.
"""

import argparse
import asyncio
import json
import sys

import structlog

from .compaction.transcript import render_messages
from .config import get_settings
from .memory.offload import FileOffloadStore, OffloadError, OffloadStore
from .memory.sql_offload import SQLOffloadStore

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autocontext",
        description="autocontext - inspect offloaded agent context",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    offload_parser = subparsers.add_parser("offload", help="Inspect an offload store")
    source = offload_parser.add_mutually_exclusive_group()
    source.add_argument("--dir", dest="offload_dir", help="File offload store directory")
    source.add_argument("--database-url", help="SQL offload store URL")
    offload_subparsers = offload_parser.add_subparsers(dest="offload_command", required=True)

    offload_subparsers.add_parser("list", help="List stored offload UUIDs")

    show_parser = offload_subparsers.add_parser("show", help="Show an offloaded record")
    show_parser.add_argument("uuid", help="Offload UUID")
    show_parser.add_argument("--json", action="store_true", help="Print raw JSON messages")

    clear_parser = offload_subparsers.add_parser("clear", help="Delete an offloaded record")
    clear_parser.add_argument("uuid", help="Offload UUID")

    subparsers.add_parser("config", help="Show effective configuration")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "config":
        show_config()
        return 0

    if args.command == "offload":
        try:
            return asyncio.run(run_offload_command(args))
        except OffloadError as e:
            logger.error("Offload store error", error=str(e))
            return 1

    parser.print_help()
    return 0


async def open_store(offload_dir: str | None, database_url: str | None) -> OffloadStore:
    """Open the store named on the command line, falling back to settings."""
    if database_url:
        return await SQLOffloadStore.from_url(database_url)
    if offload_dir:
        return FileOffloadStore(offload_dir)

    settings = get_settings()
    if settings.offload_backend == "sql":
        return await SQLOffloadStore.from_url(settings.database_url)
    return FileOffloadStore(settings.offload_dir)


async def run_offload_command(args: argparse.Namespace) -> int:
    store = await open_store(args.offload_dir, args.database_url)
    try:
        return await _dispatch(store, args)
    finally:
        await store.close()


async def _dispatch(store: OffloadStore, args: argparse.Namespace) -> int:
    if args.offload_command == "list":
        ids = await store.list_ids()
        if not ids:
            print("No offloaded records.")
        for uuid in ids:
            print(uuid)
        return 0

    if args.offload_command == "show":
        messages = await store.reload(args.uuid)
        if not messages:
            print(f"No offloaded record for {args.uuid}.")
            return 1
        if args.json:
            print(json.dumps([m.to_dict() for m in messages], indent=2, ensure_ascii=False))
        else:
            print(render_messages(messages))
        return 0

    if args.offload_command == "clear":
        await store.clear(args.uuid)
        logger.info("Offloaded record cleared", uuid=args.uuid)
        return 0

    return 1


def show_config() -> None:
    """Show current configuration."""
    settings = get_settings()
    budget = settings.to_budget_config()

    print("\n=== autocontext Configuration ===\n")

    print("Budget:")
    for name, value in budget.model_dump().items():
        print(f"  {name}: {value}")

    print("\nOffload Store:")
    print(f"  Backend: {settings.offload_backend}")
    if settings.offload_backend == "file":
        print(f"  Directory: {settings.offload_dir}")
    elif settings.offload_backend == "sql":
        print(f"  Database URL: {settings.database_url}")


if __name__ == "__main__":
    sys.exit(main())
