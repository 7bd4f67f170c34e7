"""Application entry point: wires services and runs the command line."""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

from loguru import logger

from romkeeper.config import Config, get_config
from romkeeper.context import AppContext
from romkeeper.core.hash_index import HashIndex
from romkeeper.core.matcher import Matcher
from romkeeper.core.organize_engine import OrganizeEngine
from romkeeper.core.tasks import BackgroundTask, MainThreadDispatcher
from romkeeper.core.template_engine import PRESET_TEMPLATES, TemplateEngine
from romkeeper.data.file_library import FileLibrary
from romkeeper.data.undo_log import UndoLog
from romkeeper.logger import setup_logger
from romkeeper.models.file_record import CollisionStrategy, FileOperation, FileRecord, OrganizeResult
from romkeeper.models.game_metadata import GameMetadata
from romkeeper.models.match import ObservedSignals
from romkeeper.providers.local_database import LocalDatabaseProvider
from romkeeper.utils import format_size


def create_context(config: Config | None = None, verbose: bool = False) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Logger
    setup_logger(config.log_dir, verbose=verbose)

    # Reference data
    hash_index = HashIndex(dat_extension=config.dat_extension)
    matcher = Matcher(hash_index)
    provider = LocalDatabaseProvider(hash_index, matcher)

    # Library; only this thread may mutate it, workers post through the dispatcher
    dispatcher = MainThreadDispatcher()
    file_library = FileLibrary(config.data_dir, owner_thread=threading.get_ident())
    file_library.load()
    undo_log = UndoLog(config.data_dir)
    undo_log.load()

    # Organizing
    template_engine = TemplateEngine()
    organize_engine = OrganizeEngine(file_library, undo_log, template_engine, dispatch=dispatcher)
    if not organize_engine.set_template(config.organize_template):
        logger.warning("Configured template is invalid, keeping the default")
    organize_engine.collision_strategy = config.collision_strategy
    organize_engine.dry_run = config.dry_run

    return AppContext(
        config=config,
        hash_index=hash_index,
        matcher=matcher,
        provider=provider,
        file_library=file_library,
        undo_log=undo_log,
        template_engine=template_engine,
        organize_engine=organize_engine,
        dispatcher=dispatcher,
    )


# ── Commands ──


def cmd_stats(ctx: AppContext, args: argparse.Namespace) -> int:
    total = ctx.hash_index.load_sources(ctx.config.databases_dir)
    for meta in ctx.hash_index.loaded_sources():
        print(f"{meta.name:<60} {meta.version:<20} {meta.kind:<10} {meta.entry_count:>8}")
    print(f"{len(ctx.hash_index.get_stats())} source(s), {total} entries")
    return 0


def cmd_match(ctx: AppContext, args: argparse.Namespace) -> int:
    path = Path(args.file)
    size = args.size if args.size is not None else (path.stat().st_size if path.is_file() else 0)
    signals = ObservedSignals(
        filename=path.name,
        size=size,
        crc32=args.crc32,
        md5=args.md5,
        sha1=args.sha1,
        serial=args.serial,
    )
    ctx.hash_index.load_sources(ctx.config.databases_dir)

    candidates = ctx.matcher.match(signals)
    if not candidates:
        print(f"No match for {path.name} ({format_size(size)})")
        return 1
    for c in candidates:
        flags = ", ".join(
            name
            for name, hit in (
                (str(c.matched_algorithm or "hash"), c.hash_match),
                ("filename", c.filename_match),
                ("size", c.size_match),
                ("serial", c.serial_match),
            )
            if hit
        )
        print(f"{c.confidence_percent:>3}% ({c.category}) {c.entry.game_name} [{flags}] <{c.entry.source}>")
    return 0


def cmd_register(ctx: AppContext, args: argparse.Namespace) -> int:
    path = Path(args.file).resolve()
    record = FileRecord(
        id=0,
        current_path=str(path),
        parent_id=args.parent,
        system=args.system,
        size=path.stat().st_size if path.is_file() else 0,
        crc32=args.crc32,
        md5=args.md5,
        sha1=args.sha1,
        serial=args.serial,
    )
    file_id = ctx.file_library.add(record)
    print(f"Registered #{file_id}: {path}")
    return 0


def cmd_organize(ctx: AppContext, args: argparse.Namespace) -> int:
    engine = ctx.organize_engine
    if args.template:
        template = PRESET_TEMPLATES.get(args.template, args.template)
        if not engine.set_template(template):
            print(f"Invalid template: {args.template}", file=sys.stderr)
            return 2
    if args.strategy:
        engine.collision_strategy = CollisionStrategy(args.strategy)
    if args.dry_run:
        engine.dry_run = True
    operation = FileOperation.COPY if args.copy else ctx.config.operation

    ctx.hash_index.load_sources(ctx.config.databases_dir)
    file_ids, metadata_map = _identify_library(ctx)
    if not file_ids:
        print("Library is empty; register files first")
        return 1

    destination = Path(args.destination)
    task = BackgroundTask(
        lambda token: engine.organize_files(file_ids, metadata_map, destination, operation, token),
        name="romkeeper-organize",
    ).start()
    try:
        while not task.join(0.1):
            ctx.dispatcher.drain()
    except KeyboardInterrupt:
        logger.warning("Cancelling after the current file…")
        task.cancel()
        task.join()
    results: list[OrganizeResult] = task.result()
    ctx.dispatcher.drain()

    for r in results:
        target = f" → {r.new_path}" if r.new_path else ""
        print(f"[{r.status}] {r.old_path or r.file_id}{target} {r.error}".rstrip())
        for message in r.linked_errors:
            print(f"    {message}")
    return 0 if all(r.success for r in results) else 1


def _identify_library(ctx: AppContext) -> tuple[list[int], dict[int, GameMetadata]]:
    """Match every primary record by its stored checksums."""
    file_ids: list[int] = []
    metadata_map: dict[int, GameMetadata] = {}
    for record in ctx.file_library.primary_records():
        file_ids.append(record.id)
        signals = ObservedSignals(
            filename=record.filename,
            size=record.size,
            crc32=record.crc32,
            md5=record.md5,
            sha1=record.sha1,
            serial=record.serial,
        )
        best = ctx.matcher.best_match(signals)
        if best is None or best.confidence_percent < ctx.config.min_confidence:
            logger.info(f"No confident match for {record.filename}")
            continue
        metadata_map[record.id] = ctx.provider.metadata_for(best)
    return file_ids, metadata_map


def cmd_undo(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.id is not None:
        result = ctx.organize_engine.undo_operation(args.id)
        ctx.dispatcher.drain()
        if not result.success:
            print(f"Undo #{args.id} failed ({result.reason}): {result.error}", file=sys.stderr)
            return 1
        print(f"Undid #{args.id}")
        return 0

    count = ctx.organize_engine.undo_all(args.limit)
    ctx.dispatcher.drain()
    print(f"Undid {count} operation(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="romkeeper", description="Identify and organize ROM files")
    parser.add_argument("--data-dir", type=Path, help="Data directory (config, library, undo log)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on the console")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("stats", help="Load DAT files and show per-source counts")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("match", help="Identify one file from its checksums")
    p.add_argument("file")
    p.add_argument("--crc32", default="")
    p.add_argument("--md5", default="")
    p.add_argument("--sha1", default="")
    p.add_argument("--serial", default="")
    p.add_argument("--size", type=int)
    p.set_defaults(func=cmd_match)

    p = sub.add_parser("register", help="Add a file with known checksums to the library")
    p.add_argument("file")
    p.add_argument("--crc32", default="")
    p.add_argument("--md5", default="")
    p.add_argument("--sha1", default="")
    p.add_argument("--serial", default="")
    p.add_argument("--system", default="")
    p.add_argument("--parent", type=int, help="Id of the file this one belongs to (e.g. a cue sheet)")
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("organize", help="Rename and relocate identified library files")
    p.add_argument("destination")
    p.add_argument("--template", help=f"Template string or preset ({', '.join(PRESET_TEMPLATES)})")
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--copy", action="store_true", help="Copy instead of move")
    p.add_argument("--strategy", choices=[s.value for s in CollisionStrategy if s is not CollisionStrategy.ASK])
    p.set_defaults(func=cmd_organize)

    p = sub.add_parser("undo", help="Reverse organize operations")
    p.add_argument("--id", type=int, help="Undo a single operation")
    p.add_argument("--limit", type=int, default=0, help="Undo at most N operations (0 = all)")
    p.set_defaults(func=cmd_undo)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    config = Config(args.data_dir) if args.data_dir else get_config()
    ctx = create_context(config, verbose=args.verbose)
    return args.func(ctx, args)


if __name__ == "__main__":
    sys.exit(main())
