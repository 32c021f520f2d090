"""Joins the swap price/volume series with per-date astronomical conditions."""

import datetime as dt
from collections.abc import Iterable
from pathlib import Path

from galactic.artifacts import read_swaps, write_enriched
from galactic.astro.engine import AstroEngine
from galactic.chain.blocktime import timestamp_to_date
from galactic.logging import get_logger
from galactic.models import EnrichedRecord, SwapRecord

logger = get_logger(__name__)


def swap_date(swap: SwapRecord) -> dt.date | None:
    """UTC calendar date of a swap.

    Derived from the block timestamp; the stored ISO date is used only when
    the timestamp is unknown. None when neither is usable.
    """
    if swap.timestamp > 0:
        return timestamp_to_date(swap.timestamp)
    if swap.date:
        try:
            return dt.date.fromisoformat(swap.date)
        except ValueError:
            return None
    return None


class SeriesJoiner:
    """Enriches swaps with the AstroRecord of their date, preserving input order.

    AstroRecords are computed on first use of a date and memoised by the engine.
    No event-type filtering happens here.
    """

    def __init__(self, engine: AstroEngine) -> None:
        self._engine = engine

    def join(self, swaps: Iterable[SwapRecord]) -> list[EnrichedRecord]:
        enriched: list[EnrichedRecord] = []
        dropped = 0

        for swap in swaps:
            day = swap_date(swap)
            if day is None:
                dropped += 1
                logger.debug("swap_without_date", block=swap.block, tx_hash=swap.tx_hash)
                continue

            enriched.append(
                EnrichedRecord(
                    block=swap.block,
                    tx_hash=swap.tx_hash,
                    price=swap.price,
                    volume=swap.volume,
                    astro=self._engine.conditions(day),
                )
            )

        logger.info(
            "series_joined",
            enriched=len(enriched),
            dropped=dropped,
            distinct_dates=self._engine.cached_dates,
        )
        return enriched


def join_files(
    engine: AstroEngine,
    swaps_path: str | Path,
    output_path: str | Path,
) -> tuple[list[SwapRecord], list[EnrichedRecord]]:
    """Read the price/volume artifact, join it, and write the enriched artifact.

    Returns:
        The swaps read and the enriched records written.

    Raises:
        FileNotFoundError: If the price/volume artifact does not exist.
        ValueError: If it is not a JSON array of swap objects.
    """
    swaps = read_swaps(swaps_path)
    enriched = SeriesJoiner(engine).join(swaps)
    path = write_enriched(output_path, enriched)
    logger.info("enriched_written", path=str(path), swaps=len(swaps), enriched=len(enriched))
    return swaps, enriched
