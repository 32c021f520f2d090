"""Shared data models for the Galactic Alpha pipeline.

CRITICAL: All monetary values use Decimal. Never use float for prices, amounts, or volumes.
Prices and volumes keep full precision in memory and are rounded to two fraction
digits only when rendered to an artifact dict.
"""

import datetime as dt
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum

#: Rounding applied at the serialization boundary only.
_CENTS = Decimal("0.01")


def format_cents(value: Decimal) -> str:
    """Render a Decimal with exactly two fraction digits (half-up).

    Precision is widened to the value, so prices of any magnitude render
    instead of raising InvalidOperation.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return str(value.quantize(_CENTS, rounding=ROUND_HALF_UP))


class MoonPhase(str, Enum):
    """The eight categorical lunar phases."""

    NEW = "New Moon"
    WAXING_CRESCENT = "Waxing Crescent"
    FIRST_QUARTER = "First Quarter"
    WAXING_GIBBOUS = "Waxing Gibbous"
    FULL = "Full Moon"
    WANING_GIBBOUS = "Waning Gibbous"
    LAST_QUARTER = "Last Quarter"
    WANING_CRESCENT = "Waning Crescent"

    @property
    def is_waxing(self) -> bool:
        return self in (MoonPhase.WAXING_CRESCENT, MoonPhase.WAXING_GIBBOUS)

    @property
    def is_waning(self) -> bool:
        return self in (MoonPhase.WANING_CRESCENT, MoonPhase.WANING_GIBBOUS)


class ChunkOutcome(str, Enum):
    """How a single chunk of the block range ended."""

    INDEXED = "indexed"
    EMPTY = "empty"  # no events in range: valid, not an error
    FAILED = "failed"
    SKIPPED = "skipped"  # completed by an earlier run


@dataclass(frozen=True)
class RawLogRecord:
    """A raw Swap log as delivered by a log source. Never persisted."""

    block_number: int
    block_timestamp: int  # Unix seconds
    tx_hash: str
    topic0: str
    data: str  # hex payload, optional 0x prefix
    log_index: int = 0


@dataclass(frozen=True)
class SwapAmounts:
    """The four uint256 amounts of a Uniswap V2 Swap event."""

    amount0_in: int
    amount1_in: int
    amount0_out: int
    amount1_out: int


@dataclass(frozen=True)
class SwapRecord:
    """A decoded swap keyed by block height.

    Stored in the checkpoint. price/volume are rounded only in to_dict().
    """

    block: int
    timestamp: int  # Unix seconds, 0 when unknown
    date: str  # ISO YYYY-MM-DD (UTC), empty when unknown
    tx_hash: str
    price: Decimal
    volume: Decimal

    def to_dict(self) -> dict:
        """Render the price/volume artifact entry."""
        return {
            "block": self.block,
            "timestamp": self.timestamp,
            "date": self.date,
            "txHash": self.tx_hash,
            "price": format_cents(self.price),
            "volume": format_cents(self.volume),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SwapRecord":
        """Parse a price/volume artifact entry.

        Raises KeyError, ValueError, TypeError or ArithmeticError on malformed input.
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected object, got {type(data).__name__}")
        block = int(str(data["block"]).replace(",", ""))
        if block < 0:
            raise ValueError(f"negative block height: {block}")
        return cls(
            block=block,
            timestamp=int(data.get("timestamp") or 0),
            date=str(data.get("date") or ""),
            tx_hash=str(data.get("txHash", "")),
            price=Decimal(str(data["price"])),
            volume=Decimal(str(data["volume"])),
        )


@dataclass(frozen=True)
class AstroRecord:
    """Astronomical conditions for a single UTC calendar date."""

    date: dt.date
    moon_phase: MoonPhase
    mercury_retrograde: bool
    jupiter_mars_conjunction: bool
    astro_rating: str  # opaque label, may end with a decorative glyph

    def to_dict(self) -> dict:
        """Render the astro artifact entry."""
        return {
            "date": self.date.isoformat(),
            "moon_phase": self.moon_phase.value,
            "mercury_retrograde": self.mercury_retrograde,
            "jupiter_mars_conjunction": self.jupiter_mars_conjunction,
            "astro_rating": self.astro_rating,
        }


@dataclass(frozen=True)
class EnrichedRecord:
    """A swap joined with the astronomical conditions of its date."""

    block: int
    tx_hash: str
    price: Decimal
    volume: Decimal
    astro: AstroRecord

    def to_dict(self) -> dict:
        """Render the enriched artifact entry consumed by the chart."""
        return {
            "block": self.block,
            "txHash": self.tx_hash,
            "price": format_cents(self.price),
            "volume": format_cents(self.volume),
            "astro": self.astro.to_dict(),
        }


@dataclass(frozen=True)
class Chunk:
    """A contiguous sub-range of blocks processed as one unit of work (both ends inclusive)."""

    start: int
    end: int
    index: int = 0
    total: int = 1

    @property
    def key(self) -> tuple[int, int]:
        return (self.start, self.end)

    @property
    def size(self) -> int:
        return self.end - self.start + 1


@dataclass
class Checkpoint:
    """Block-keyed, append-only accumulator of swaps plus completed chunk ranges.

    An already-present block height is never overwritten: the first record
    seen for a block wins.
    """

    swaps: dict[int, SwapRecord] = field(default_factory=dict)
    completed: set[tuple[int, int]] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.swaps)

    def merge(self, records: list[SwapRecord]) -> int:
        """Add records whose block height is not yet present. Returns the number added."""
        added = 0
        for record in records:
            if record.block not in self.swaps:
                self.swaps[record.block] = record
                added += 1
        return added

    def records(self) -> list[SwapRecord]:
        """All swaps in ascending block order."""
        return [self.swaps[block] for block in sorted(self.swaps)]

    def mark_completed(self, chunk: Chunk) -> None:
        self.completed.add(chunk.key)

    def is_completed(self, chunk: Chunk) -> bool:
        return chunk.key in self.completed


@dataclass
class ChunkReport:
    """Result of processing one chunk."""

    chunk: Chunk
    outcome: ChunkOutcome
    fetched: int = 0  # raw logs received on the successful attempt
    added: int = 0  # new block heights merged into the checkpoint
    malformed: int = 0
    attempts: int = 0
    elapsed_seconds: float = 0.0
    over_budget: bool = False
    error: str | None = None


@dataclass
class IndexReport:
    """Summary of a complete indexer run."""

    chunks: list[ChunkReport] = field(default_factory=list)
    total_records: int = 0
    sample: list[SwapRecord] = field(default_factory=list)

    def count(self, outcome: ChunkOutcome) -> int:
        return sum(1 for report in self.chunks if report.outcome == outcome)
