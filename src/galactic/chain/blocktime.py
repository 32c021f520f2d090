"""Approximate conversion between block heights and UTC calendar dates.

Assumes a constant average block interval from a fixed anchor (block 0 at
the genesis timestamp). Good enough to turn a date range into a block range
for indexing; the indexer itself always uses the block timestamps returned
by the log source.
"""

import datetime as dt

GENESIS_TIMESTAMP = 1438217288  # Ethereum block 0: 2015-07-30 15:26:28 UTC
BLOCK_TIME_SECONDS = 12
SECONDS_PER_DAY = 86_400


def timestamp_to_date(timestamp: int) -> dt.date:
    """UTC calendar date of a Unix timestamp."""
    return dt.datetime.fromtimestamp(timestamp, tz=dt.timezone.utc).date()


def date_to_timestamp(day: dt.date) -> int:
    """Unix timestamp of UTC midnight at the start of ``day``."""
    midnight = dt.datetime(day.year, day.month, day.day, tzinfo=dt.timezone.utc)
    return int(midnight.timestamp())


def utc_date_string(timestamp: int) -> str:
    """ISO date for a block timestamp, or an empty string when the timestamp is unknown."""
    if timestamp <= 0:
        return ""
    return timestamp_to_date(timestamp).isoformat()


class BlockClock:
    """Linear block-height <-> timestamp model anchored at a genesis block.

    Usage:
        clock = BlockClock()
        start, end = clock.date_range_to_blocks(date(2024, 1, 1), date(2024, 1, 31))
    """

    def __init__(
        self,
        anchor_timestamp: int = GENESIS_TIMESTAMP,
        block_interval: int = BLOCK_TIME_SECONDS,
    ) -> None:
        if block_interval <= 0:
            raise ValueError("block_interval must be positive")
        self.anchor_timestamp = anchor_timestamp
        self.block_interval = block_interval

    def block_to_timestamp(self, block: int) -> int:
        return self.anchor_timestamp + block * self.block_interval

    def timestamp_to_block(self, timestamp: int) -> int:
        return (timestamp - self.anchor_timestamp) // self.block_interval

    def block_to_date(self, block: int) -> dt.date:
        return timestamp_to_date(self.block_to_timestamp(block))

    def date_to_block(self, day: dt.date) -> int:
        """Approximate first block of ``day`` (UTC)."""
        return self.timestamp_to_block(date_to_timestamp(day))

    def date_range_to_blocks(self, start: dt.date, end: dt.date) -> tuple[int, int]:
        """Block range covering ``start`` through the whole of ``end``.

        A full day is added to the end date so the last day is included.
        """
        start_block = self.timestamp_to_block(date_to_timestamp(start))
        end_block = self.timestamp_to_block(date_to_timestamp(end) + SECONDS_PER_DAY)
        return start_block, end_block
