"""
Command-line interface for inspecting a graphkeep database.

Usage:
    graphkeep list <thread_id> [--ns NS] [--limit N] [--before CHECKPOINT_ID]
    graphkeep show <thread_id> [--ns NS] [--checkpoint-id CHECKPOINT_ID]
    graphkeep delete <thread_id>
    graphkeep summaries <session_id> [--limit N]

All commands accept --db to point at a SQLite file (defaults to
GRAPHKEEP_DATABASE or ~/.graphkeep/graphkeep.db) and print JSON.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from graphkeep.config import get_database_path
from graphkeep.observability import configure_logging
from graphkeep.schemas.checkpoint import DEFAULT_NAMESPACE, CheckpointTuple
from graphkeep.storage.checkpoint_store import CheckpointStore
from graphkeep.storage.database import SQLiteDatabase
from graphkeep.storage.summary_store import SummaryStore


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _tuple_to_dict(item: CheckpointTuple, full: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "thread_id": item.thread_id,
        "checkpoint_ns": item.checkpoint_ns,
        "checkpoint_id": item.checkpoint_id,
        "created_at": item.created_at,
        "metadata": item.metadata,
    }
    if full:
        data["checkpoint"] = item.checkpoint.model_dump(mode="json")
        data["parents"] = item.parents
        data["pending_writes"] = [list(w) for w in item.pending_writes or []]
    return data


async def _with_db(args: argparse.Namespace, action) -> int:
    db = SQLiteDatabase(args.db or get_database_path())
    await db.initialize()
    try:
        return await action(db)
    finally:
        await db.close()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_list(args: argparse.Namespace) -> int:
    async def action(db) -> int:
        store = CheckpointStore(db)
        items = [
            _tuple_to_dict(item)
            async for item in store.list(
                args.thread_id, args.ns, limit=args.limit, before=args.before
            )
        ]
        _print_json(items)
        return 0

    return asyncio.run(_with_db(args, action))


def cmd_show(args: argparse.Namespace) -> int:
    async def action(db) -> int:
        item = await CheckpointStore(db).get_tuple(args.thread_id, args.ns, args.checkpoint_id)
        if item is None:
            print(f"No checkpoint found for thread {args.thread_id!r}", file=sys.stderr)
            return 1
        _print_json(_tuple_to_dict(item, full=True))
        return 0

    return asyncio.run(_with_db(args, action))


def cmd_delete(args: argparse.Namespace) -> int:
    async def action(db) -> int:
        retired = await CheckpointStore(db).delete_thread(args.thread_id)
        _print_json({"thread_id": args.thread_id, "deleted": retired})
        return 0

    return asyncio.run(_with_db(args, action))


def cmd_summaries(args: argparse.Namespace) -> int:
    async def action(db) -> int:
        summaries = await SummaryStore(db).list(args.session_id, limit=args.limit)
        _print_json([s.model_dump(mode="json") for s in summaries])
        return 0

    return asyncio.run(_with_db(args, action))


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    list_parser = subparsers.add_parser("list", help="List live checkpoints, newest first")
    list_parser.add_argument("thread_id")
    list_parser.add_argument("--ns", default=DEFAULT_NAMESPACE, help="Checkpoint namespace")
    list_parser.add_argument("--limit", type=int, default=50)
    list_parser.add_argument("--before", default=None, help="Skip this checkpoint ID")
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser("show", help="Show one checkpoint with its pending writes")
    show_parser.add_argument("thread_id")
    show_parser.add_argument("--ns", default=DEFAULT_NAMESPACE, help="Checkpoint namespace")
    show_parser.add_argument(
        "--checkpoint-id", default=None, help="Checkpoint ID (default: latest)"
    )
    show_parser.set_defaults(func=cmd_show)

    delete_parser = subparsers.add_parser("delete", help="Soft-delete every row of a thread")
    delete_parser.add_argument("thread_id")
    delete_parser.set_defaults(func=cmd_delete)

    summaries_parser = subparsers.add_parser("summaries", help="List round summaries")
    summaries_parser.add_argument("session_id")
    summaries_parser.add_argument("--limit", type=int, default=50)
    summaries_parser.set_defaults(func=cmd_summaries)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="graphkeep",
        description="graphkeep - Inspect checkpoints, pending writes and round summaries",
    )
    parser.add_argument("--db", default=None, help="SQLite database path")
    parser.add_argument("--log-level", default="WARNING", help="Log level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level)

    if hasattr(args, "func"):
        return args.func(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
