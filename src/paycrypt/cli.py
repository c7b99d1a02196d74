"""PayCrypt operator command line.

Usage:
    paycrypt serve [--host HOST] [--port PORT] [--no-smtp]
    paycrypt archive list [--sender ADDR] [--recipient ADDR] [--limit N] [--offset N]
    paycrypt archive show EMAIL_ID
    paycrypt archive export EMAIL_ID [--output PATH]
    paycrypt archive delete EMAIL_ID
    paycrypt archive stats
    paycrypt archive reclaim
    paycrypt replay EMAIL_ID

Settings come from the environment and .env, as for the server.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from .config import Settings, get_settings
from .domain.exceptions import ArchiveEntryNotFound, PayCryptError
from .domain.ports.archive_port import ArchiveFilter
from .infrastructure.storage.filesystem_archive import FilesystemArchiveStore
from .observability.logging_config import configure_logging


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.1f} {unit}" if unit != "B" else f"{size} B"
        size /= 1024
    return f"{size} B"


async def cmd_archive_list(store: FilesystemArchiveStore, args) -> int:
    entries = await store.list(
        filter=ArchiveFilter(sender=args.sender, recipient=args.recipient),
        offset=args.offset,
        limit=args.limit,
    )
    if not entries:
        print("No archived messages.")
        return 0

    for entry in entries:
        subject = entry.metadata.get("subject") or "(no subject)"
        print(
            f"{entry.email_id}  {entry.saved_at.isoformat()}  "
            f"{_format_size(entry.size):>10}  {entry.sender or '-'}  {subject}"
        )
    print(f"\n{len(entries)} message(s)")
    return 0


async def cmd_archive_show(store: FilesystemArchiveStore, args) -> int:
    entry = await store.metadata(args.email_id)
    _print_json(entry.to_sidecar())
    return 0


async def cmd_archive_export(store: FilesystemArchiveStore, args) -> int:
    exported = await store.export(args.email_id)
    output = Path(args.output) if args.output else Path.cwd() / exported.filename
    output.write_bytes(exported.content)
    print(f"Exported {exported.filename} ({_format_size(len(exported.content))}) to {output}")
    return 0


async def cmd_archive_delete(store: FilesystemArchiveStore, args) -> int:
    if await store.delete(args.email_id):
        print(f"Deleted {args.email_id}")
        return 0
    print(f"Nothing to delete for {args.email_id}", file=sys.stderr)
    return 1


async def cmd_archive_stats(store: FilesystemArchiveStore, args) -> int:
    stats = await store.stats()
    print(f"Messages:  {stats.count}")
    print(f"Size:      {_format_size(stats.total_size)} of {_format_size(stats.capacity)} ({stats.usage_ratio:.1%})")
    if stats.oldest_entry:
        print(f"Oldest:    {stats.oldest_entry.saved_at.isoformat()} ({stats.oldest_entry.email_id})")
    if stats.newest_entry:
        print(f"Newest:    {stats.newest_entry.saved_at.isoformat()} ({stats.newest_entry.email_id})")
    return 0


async def cmd_archive_reclaim(store: FilesystemArchiveStore, args) -> int:
    report = await store.reclaim()
    print(
        f"Usage {report.usage_before:.1%} -> {report.usage_after:.1%}, "
        f"deleted {report.deleted} message(s)"
    )
    return 0


ARCHIVE_COMMANDS = {
    "list": cmd_archive_list,
    "show": cmd_archive_show,
    "export": cmd_archive_export,
    "delete": cmd_archive_delete,
    "stats": cmd_archive_stats,
    "reclaim": cmd_archive_reclaim,
}


async def cmd_replay(settings: Settings, email_id: str) -> int:
    from .dependencies import build_services

    services = build_services(settings)
    try:
        report = await services.pipeline.replay(email_id)
    finally:
        await services.close()

    _print_json({
        "email_id": report.email_id,
        "intent": report.intent_kind,
        "outcome": report.outcome,
        "archive_deleted": report.archive_deleted,
    })
    return 0


def cmd_serve(settings: Settings, args) -> int:
    import uvicorn

    from .main import create_app

    if args.no_smtp:
        settings = settings.model_copy(update={"SMTP_ENABLED": False})

    uvicorn.run(
        create_app(settings=settings),
        host=args.host or settings.API_HOST,
        port=args.port or settings.API_PORT,
        log_config=None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="paycrypt",
        description="PayCrypt e-mail payments server and archive tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API and SMTP listener")
    serve.add_argument("--host", help="API bind address (default: API_HOST)")
    serve.add_argument("--port", type=int, help="API port (default: API_PORT)")
    serve.add_argument("--no-smtp", action="store_true", help="Do not start the SMTP listener")

    archive = commands.add_parser("archive", help="Inspect and manage archived messages")
    archive_commands = archive.add_subparsers(dest="archive_command", required=True)

    list_cmd = archive_commands.add_parser("list", help="List archived messages, newest first")
    list_cmd.add_argument("--sender", help="Only messages from this address")
    list_cmd.add_argument("--recipient", help="Only messages addressed to this address")
    list_cmd.add_argument("--limit", type=int, default=50)
    list_cmd.add_argument("--offset", type=int, default=0)

    for name, help_text in (
        ("show", "Print the metadata sidecar of a message"),
        ("delete", "Delete a message and its sidecar"),
    ):
        cmd = archive_commands.add_parser(name, help=help_text)
        cmd.add_argument("email_id")

    export = archive_commands.add_parser("export", help="Write the raw .eml of a message to a file")
    export.add_argument("email_id")
    export.add_argument("--output", "-o", help="Output path (default: ./<filename>)")

    archive_commands.add_parser("stats", help="Show archive usage")
    archive_commands.add_parser("reclaim", help="Delete oldest messages if over capacity")

    replay = commands.add_parser("replay", help="Re-drive an archived message through the pipeline")
    replay.add_argument("email_id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    try:
        if args.command == "serve":
            return cmd_serve(settings, args)
        if args.command == "replay":
            return asyncio.run(cmd_replay(settings, args.email_id))

        store = FilesystemArchiveStore.from_settings(settings)
        return asyncio.run(ARCHIVE_COMMANDS[args.archive_command](store, args))

    except ArchiveEntryNotFound as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except PayCryptError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
