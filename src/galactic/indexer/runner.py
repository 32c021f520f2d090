"""Chunked, resumable swap indexer.

Splits a block range into chunks and drives log source + decoder over each
chunk in strictly ascending order, one at a time. Results are merged into a
block-keyed checkpoint that is persisted after every chunk, so a run can be
stopped between chunks and resumed later without losing work.

Fault containment:
- a malformed log skips that record,
- a failed chunk attempt is retried with exponential backoff, then the chunk
  is skipped and the run continues,
- an unreadable checkpoint is treated as empty,
- a chunk with no events is a normal outcome.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from structlog.contextvars import bound_contextvars

from galactic.chain.decoder import SwapDecoder
from galactic.chain.source import LogSource
from galactic.config import IndexerSettings
from galactic.exceptions import CheckpointCorruption, FetchFailure, MalformedLog
from galactic.indexer.checkpoint import CheckpointStore
from galactic.indexer.chunks import plan_chunks
from galactic.logging import get_logger
from galactic.models import (
    Checkpoint,
    Chunk,
    ChunkOutcome,
    ChunkReport,
    IndexReport,
    SwapRecord,
)

logger = get_logger(__name__)

SAMPLE_SIZE = 3


class ChunkedIndexer:
    """Indexes Swap events of one pair over a block range, chunk by chunk.

    Usage:
        indexer = ChunkedIndexer(source, decoder, store, settings, pair, topic0)
        report = await indexer.run(22_154_159, 24_789_359, chunk_size=50_000)
    """

    def __init__(
        self,
        source: LogSource,
        decoder: SwapDecoder,
        store: CheckpointStore,
        settings: IndexerSettings,
        address: str,
        topic0: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._decoder = decoder
        self._store = store
        self._settings = settings
        self._address = address
        self._topic0 = topic0
        self._sleep = sleep
        self._clock = clock

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def run(
        self,
        start_block: int,
        end_block: int,
        chunk_size: int | None = None,
        resume: bool = True,
    ) -> IndexReport:
        """Index [start_block, end_block] and return a run summary.

        Args:
            start_block: First block (inclusive).
            end_block: Last block (inclusive).
            chunk_size: Blocks per chunk. Defaults to settings.chunk_size.
            resume: Skip chunks a previous run already completed.

        Raises:
            InvalidArguments: If the range or chunk size is invalid. Raised
                before the checkpoint is touched.
        """
        size = chunk_size if chunk_size is not None else self._settings.chunk_size
        chunks = plan_chunks(start_block, end_block, size)

        logger.info(
            "indexer_starting",
            start_block=start_block,
            end_block=end_block,
            total_blocks=end_block - start_block + 1,
            chunk_size=size,
            chunks=len(chunks),
            resume=resume,
        )

        checkpoint = await self._load_checkpoint()
        report = IndexReport()

        for chunk in chunks:
            if resume and checkpoint.is_completed(chunk):
                logger.info(
                    "chunk_already_completed",
                    chunk=f"{chunk.index + 1}/{chunk.total}",
                    from_block=chunk.start,
                    to_block=chunk.end,
                )
                report.chunks.append(ChunkReport(chunk=chunk, outcome=ChunkOutcome.SKIPPED))
                continue

            # Every log line emitted while this chunk runs carries its position
            with bound_contextvars(chunk=f"{chunk.index + 1}/{chunk.total}"):
                chunk_report = await self._process_chunk(chunk, checkpoint)
                report.chunks.append(chunk_report)

                await self._store.save(checkpoint)
                logger.info(
                    "indexer_progress",
                    outcome=chunk_report.outcome.value,
                    total_records=len(checkpoint),
                    progress_pct=round((chunk.index + 1) / chunk.total * 100, 1),
                )

        report.total_records = len(checkpoint)
        report.sample = checkpoint.records()[:SAMPLE_SIZE]

        logger.info(
            "indexer_complete",
            total_records=report.total_records,
            indexed_chunks=report.count(ChunkOutcome.INDEXED),
            empty_chunks=report.count(ChunkOutcome.EMPTY),
            failed_chunks=report.count(ChunkOutcome.FAILED),
            skipped_chunks=report.count(ChunkOutcome.SKIPPED),
            sample=[record.to_dict() for record in report.sample],
        )
        return report

    # ──────────────────────────────────────────────
    # Internal orchestration
    # ──────────────────────────────────────────────

    async def _load_checkpoint(self) -> Checkpoint:
        """Load persisted progress. A corrupt checkpoint is replaced by an empty one."""
        try:
            checkpoint = await self._store.load()
        except CheckpointCorruption as e:
            logger.warning("checkpoint_corrupt_starting_fresh", error=str(e))
            return Checkpoint()

        if len(checkpoint) or checkpoint.completed:
            logger.info(
                "checkpoint_loaded",
                records=len(checkpoint),
                completed_chunks=len(checkpoint.completed),
            )
        return checkpoint

    async def _process_chunk(self, chunk: Chunk, checkpoint: Checkpoint) -> ChunkReport:
        """Run one chunk with bounded retries and merge its records into the checkpoint."""
        max_attempts = max(1, self._settings.max_retries)
        started = self._clock()

        logger.info(
            "chunk_starting",
            from_block=chunk.start,
            to_block=chunk.end,
            budget_seconds=self._settings.chunk_timeout_seconds,
        )

        last_error: str | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                records, fetched, malformed = await self._fetch_chunk(chunk)
            except (FetchFailure, TimeoutError) as e:
                last_error = str(e) or type(e).__name__
                logger.warning(
                    "chunk_attempt_failed",
                    from_block=chunk.start,
                    to_block=chunk.end,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    elapsed_seconds=round(self._clock() - started, 1),
                    error=last_error,
                )
                if attempt < max_attempts:
                    await self._sleep(self._settings.retry_base_delay * (2 ** (attempt - 1)))
                continue

            elapsed = self._clock() - started
            report = ChunkReport(
                chunk=chunk,
                outcome=ChunkOutcome.INDEXED if records else ChunkOutcome.EMPTY,
                fetched=fetched,
                added=checkpoint.merge(records),
                malformed=malformed,
                attempts=attempt,
                elapsed_seconds=round(elapsed, 1),
                over_budget=self._check_budget(chunk, elapsed),
            )
            checkpoint.mark_completed(chunk)

            if report.outcome == ChunkOutcome.EMPTY:
                logger.info("no_events_in_range", from_block=chunk.start, to_block=chunk.end)
            else:
                logger.info(
                    "chunk_completed",
                    from_block=chunk.start,
                    to_block=chunk.end,
                    swaps=len(records),
                    new_swaps=report.added,
                    malformed=malformed,
                    elapsed_seconds=report.elapsed_seconds,
                )
            return report

        elapsed = self._clock() - started
        logger.error(
            "chunk_skipped_after_failures",
            from_block=chunk.start,
            to_block=chunk.end,
            attempts=max_attempts,
            elapsed_seconds=round(elapsed, 1),
            error=last_error,
        )
        return ChunkReport(
            chunk=chunk,
            outcome=ChunkOutcome.FAILED,
            attempts=max_attempts,
            elapsed_seconds=round(elapsed, 1),
            over_budget=self._check_budget(chunk, elapsed),
            error=last_error,
        )

    async def _fetch_chunk(self, chunk: Chunk) -> tuple[list[SwapRecord], int, int]:
        """Stream and decode one chunk. Returns (records, raw log count, malformed count).

        Raises:
            FetchFailure: If the source fails; partial records are discarded.
        """
        records: list[SwapRecord] = []
        fetched = 0
        malformed = 0
        every = max(1, self._settings.progress_log_every)

        async for raw in self._source.stream(self._address, self._topic0, chunk.start, chunk.end):
            fetched += 1
            try:
                record = self._decoder.decode(raw)
            except MalformedLog as e:
                malformed += 1
                logger.warning(
                    "malformed_log_skipped",
                    block=raw.block_number,
                    tx_hash=raw.tx_hash,
                    error=str(e),
                )
                continue

            if record is None:
                continue
            records.append(record)

            if len(records) % every == 0:
                logger.info("swaps_processed", count=len(records), block=record.block)

        return records, fetched, malformed

    def _check_budget(self, chunk: Chunk, elapsed: float) -> bool:
        """Report (never enforce) the soft per-chunk wall-clock budget."""
        budget = self._settings.chunk_timeout_seconds
        if elapsed <= budget:
            return False
        logger.warning(
            "chunk_over_budget",
            from_block=chunk.start,
            to_block=chunk.end,
            elapsed_seconds=round(elapsed, 1),
            budget_seconds=budget,
            hint="consider using a smaller chunk size",
        )
        return True
