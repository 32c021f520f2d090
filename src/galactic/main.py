"""Command-line entry points for the Galactic Alpha pipeline.

Subcommands:
    index     Index Swap events over a block range (or a date range) into the
              price/volume checkpoint, chunk by chunk, resuming earlier runs.
    blocks    Approximate block <-> date conversion helper.
    astro     Astronomical conditions for today or a date range.
    enrich    Join the price/volume artifact with astronomical conditions.
    pipeline  index, then astro over the indexed dates, then enrich.

Block numbers may be written with thousands separators ("22,154,159").
Malformed arguments are rejected before any work begins (exit status 2).
Everything else is configured through environment variables, see galactic.config.
"""

import argparse
import asyncio
import datetime as dt
import sys

from galactic.artifacts import write_astro, write_swaps
from galactic.astro.engine import AstroEngine, summarize
from galactic.chain.blocktime import BlockClock
from galactic.chain.decoder import SwapDecoder
from galactic.chain.source import build_source
from galactic.config import AppSettings
from galactic.exceptions import InvalidArguments
from galactic.indexer.checkpoint import SqliteCheckpointStore, build_checkpoint_store
from galactic.indexer.runner import ChunkedIndexer
from galactic.joiner import join_files
from galactic.logging import get_logger, setup_logging
from galactic.models import IndexReport

logger = get_logger(__name__)

_GROUPING_CHARS = (",", "_", " ", "\u00a0")


# ──────────────────────────────────────────────
# Argument validation
# ──────────────────────────────────────────────


def parse_block_number(text: str, name: str = "block") -> int:
    """Parse a non-negative integer, ignoring thousands separators.

    Raises:
        InvalidArguments: If the text is not a non-negative integer.
    """
    clean = str(text).strip()
    for char in _GROUPING_CHARS:
        clean = clean.replace(char, "")
    if not (clean.isascii() and clean.isdigit()):
        raise InvalidArguments(f"invalid {name}: {text!r}")
    return int(clean)


def parse_date(text: str, name: str = "date") -> dt.date:
    """Parse an ISO calendar date (YYYY-MM-DD).

    Raises:
        InvalidArguments: If the text is not a valid date.
    """
    try:
        return dt.date.fromisoformat(str(text).strip())
    except ValueError as e:
        raise InvalidArguments(f"invalid {name}: {text!r} (expected YYYY-MM-DD)") from e


def resolve_block_range(args: argparse.Namespace, clock: BlockClock) -> tuple[int, int]:
    """Block range from either a block pair or a date pair.

    Raises:
        InvalidArguments: If neither or both forms are given, or values are invalid.
    """
    has_blocks = args.start_block is not None or args.end_block is not None
    has_dates = args.from_date is not None or args.to_date is not None

    if has_blocks and has_dates:
        raise InvalidArguments("give either a block range or a date range, not both")

    if has_dates:
        if args.from_date is None or args.to_date is None:
            raise InvalidArguments("--from-date and --to-date must be given together")
        start_date = parse_date(args.from_date, "--from-date")
        end_date = parse_date(args.to_date, "--to-date")
        if start_date > end_date:
            raise InvalidArguments(f"--from-date {start_date} is after --to-date {end_date}")
        start_block, end_block = clock.date_range_to_blocks(start_date, end_date)
        if start_block < 0:
            raise InvalidArguments(f"{start_date} is before the chain's genesis")
        return start_block, end_block

    if args.start_block is None or args.end_block is None:
        raise InvalidArguments("a start block and an end block are required")
    start_block = parse_block_number(args.start_block, "start block")
    end_block = parse_block_number(args.end_block, "end block")
    if start_block > end_block:
        raise InvalidArguments(f"start block {start_block} is after end block {end_block}")
    return start_block, end_block


def resolve_chunk_size(args: argparse.Namespace, default: int) -> int:
    raw = args.chunk_size_opt if args.chunk_size_opt is not None else args.chunk_size
    if raw is None:
        return default
    size = parse_block_number(raw, "chunk size")
    if size <= 0:
        raise InvalidArguments("chunk size must be positive")
    return size


# ──────────────────────────────────────────────
# Commands
# ──────────────────────────────────────────────


async def run_index(
    settings: AppSettings,
    start_block: int,
    end_block: int,
    chunk_size: int,
    resume: bool = True,
) -> IndexReport:
    """Wire source, decoder, and checkpoint store, then run the chunked indexer."""
    source = build_source(settings.chain)
    store = build_checkpoint_store(settings.indexer)
    decoder = SwapDecoder(
        token0_decimals=settings.chain.token0_decimals,
        token1_decimals=settings.chain.token1_decimals,
        topic0=settings.chain.swap_topic,
    )

    try:
        indexer = ChunkedIndexer(
            source=source,
            decoder=decoder,
            store=store,
            settings=settings.indexer,
            address=settings.chain.pair_address,
            topic0=settings.chain.swap_topic,
        )
        report = await indexer.run(start_block, end_block, chunk_size, resume=resume)

        if isinstance(store, SqliteCheckpointStore):
            # Downstream consumers read the JSON artifact regardless of backend
            write_swaps(settings.indexer.checkpoint_path, await store.export_records())
    finally:
        await source.close()
        await store.close()

    return report


def run_astro_range(
    settings: AppSettings,
    start: dt.date,
    end: dt.date,
    output_path: str | None = None,
    engine: AstroEngine | None = None,
) -> None:
    engine = engine or AstroEngine(conjunction_orb=settings.astro.conjunction_orb_degrees)

    records = engine.conditions_between(start, end)
    path = write_astro(output_path or settings.astro.output_path, records)
    summary = summarize(records)

    logger.info(
        "astro_range_written",
        path=str(path),
        dates=summary.dates,
        full_moons=summary.full_moons,
        new_moons=summary.new_moons,
        mercury_retrograde_days=summary.mercury_retrograde_days,
        jupiter_mars_conjunctions=summary.jupiter_mars_conjunctions,
    )


def run_astro_today(settings: AppSettings, output_path: str | None = None) -> None:
    engine = AstroEngine(conjunction_orb=settings.astro.conjunction_orb_degrees)

    record = engine.today()
    path = write_astro(output_path or settings.astro.today_output_path, record)
    logger.info("astro_today_written", path=str(path), **record.to_dict())


def run_enrich(
    settings: AppSettings,
    swaps_path: str | None = None,
    output_path: str | None = None,
    write_astro_index: bool = False,
) -> int:
    """Join the price/volume artifact with astro conditions. Returns the enriched count."""
    engine = AstroEngine(conjunction_orb=settings.astro.conjunction_orb_degrees)

    _, enriched = join_files(
        engine,
        swaps_path or settings.indexer.checkpoint_path,
        output_path or settings.output.enriched_path,
    )

    if write_astro_index and enriched:
        dates = [record.astro.date for record in enriched]
        run_astro_range(settings, min(dates), max(dates), engine=engine)

    return len(enriched)


def run_blocks(args: argparse.Namespace, clock: BlockClock) -> None:
    """Print block/date conversions and the matching index command."""
    if args.range:
        start = parse_date(args.range[0], "range start")
        end = parse_date(args.range[1], "range end")
        if start > end:
            raise InvalidArguments(f"range start {start} is after range end {end}")
        start_block, end_block = clock.date_range_to_blocks(start, end)
        print(f"Date range:   {start} to {end}")
        print(f"Block range:  {start_block:,} to {end_block:,}")
        print(f"Total blocks: {end_block - start_block:,}")
        print(f"\nTo index it:  galactic index {start_block:,} {end_block:,}")
    elif args.date:
        day = parse_date(args.date)
        block = clock.date_to_block(day)
        print(f"Date:               {day}")
        print(f"Approximate block:  {block:,}")
        print(f"Timestamp:          {clock.block_to_timestamp(block)}")
        print(f"\nTo index that day:  galactic index {block:,} {block + 7200:,}")
    elif args.block is not None:
        block = parse_block_number(args.block)
        print(f"Block:             {block:,}")
        print(f"Approximate date:  {clock.block_to_date(block)}")
        print(f"Timestamp:         {clock.block_to_timestamp(block)}")
    else:
        raise InvalidArguments("give a block number, --date, or --range")


# ──────────────────────────────────────────────
# Parser and entry point
# ──────────────────────────────────────────────


def _add_range_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("start_block", nargs="?", help="first block, e.g. 22,154,159")
    parser.add_argument("end_block", nargs="?", help="last block (inclusive)")
    parser.add_argument("chunk_size", nargs="?", help="blocks per chunk")
    parser.add_argument("--from-date", help="first date (YYYY-MM-DD), instead of blocks")
    parser.add_argument("--to-date", help="last date (YYYY-MM-DD), included in full")
    parser.add_argument("--chunk-size", dest="chunk_size_opt", help="blocks per chunk")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="re-fetch chunks an earlier run already completed",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="galactic",
        description="Swap price/volume indexer joined with astronomical conditions.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    index = commands.add_parser("index", help="index Swap events into the checkpoint")
    _add_range_arguments(index)

    pipeline = commands.add_parser("pipeline", help="index, then write astro and enriched artifacts")
    _add_range_arguments(pipeline)
    pipeline.add_argument("--output", help="enriched artifact path")

    blocks = commands.add_parser("blocks", help="convert between blocks and dates")
    blocks.add_argument("block", nargs="?", help="block number to convert to a date")
    blocks.add_argument("--date", help="date to convert to a block")
    blocks.add_argument("--range", nargs=2, metavar=("START", "END"), help="date range to convert")

    astro = commands.add_parser("astro", help="astronomical conditions")
    astro.add_argument("start", nargs="?", help="first date (YYYY-MM-DD)")
    astro.add_argument("end", nargs="?", help="last date (YYYY-MM-DD)")
    astro.add_argument("--start", dest="start_opt", help="first date (YYYY-MM-DD)")
    astro.add_argument("--end", dest="end_opt", help="last date (YYYY-MM-DD)")
    astro.add_argument("--today", action="store_true", help="only today's conditions")
    astro.add_argument("--output", help="astro artifact path")

    enrich = commands.add_parser("enrich", help="join swaps with astronomical conditions")
    enrich.add_argument("--swaps", help="price/volume artifact path")
    enrich.add_argument("--output", help="enriched artifact path")

    return parser


def _resolve_astro_dates(args: argparse.Namespace) -> tuple[dt.date, dt.date]:
    start_text = args.start_opt or args.start
    end_text = args.end_opt or args.end
    if start_text is None or end_text is None:
        raise InvalidArguments("a start and an end date are required (or --today)")
    start = parse_date(start_text, "start date")
    end = parse_date(end_text, "end date")
    if start > end:
        raise InvalidArguments(f"start date {start} is after end date {end}")
    return start, end


def main(argv: list[str] | None = None) -> int:
    """Synchronous entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = AppSettings()
    setup_logging(settings.log_level)
    clock = BlockClock(settings.chain.genesis_timestamp, settings.chain.block_time_seconds)

    # Validate everything up front: nothing is fetched or written on bad input
    try:
        if args.command in ("index", "pipeline"):
            start_block, end_block = resolve_block_range(args, clock)
            chunk_size = resolve_chunk_size(args, settings.indexer.chunk_size)
        elif args.command == "astro" and not args.today:
            astro_start, astro_end = _resolve_astro_dates(args)
        elif args.command == "blocks":
            run_blocks(args, clock)
            return 0
    except InvalidArguments as e:
        parser.error(str(e))

    if args.command in ("index", "pipeline"):
        asyncio.run(run_index(settings, start_block, end_block, chunk_size, resume=not args.fresh))
    elif args.command == "astro":
        if args.today:
            run_astro_today(settings, args.output)
        else:
            run_astro_range(settings, astro_start, astro_end, args.output)

    if args.command in ("enrich", "pipeline"):
        try:
            if args.command == "enrich":
                run_enrich(settings, args.swaps, args.output)
            else:
                run_enrich(settings, output_path=args.output, write_astro_index=True)
        except (FileNotFoundError, ValueError) as e:
            logger.error("swap_artifact_unreadable", error=str(e))
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
