"""Partitioning of a block range into contiguous, non-overlapping chunks."""

from galactic.exceptions import InvalidArguments
from galactic.models import Chunk


def plan_chunks(start_block: int, end_block: int, chunk_size: int) -> list[Chunk]:
    """Split [start_block, end_block] (inclusive) into chunks of ``chunk_size`` blocks.

    The last chunk may be shorter. Chunks are returned in ascending order.

    Raises:
        InvalidArguments: If the range is inverted, negative, or chunk_size is not positive.
    """
    if chunk_size <= 0:
        raise InvalidArguments(f"chunk size must be positive, got {chunk_size}")
    if start_block < 0:
        raise InvalidArguments(f"start block must be non-negative, got {start_block}")
    if start_block > end_block:
        raise InvalidArguments(
            f"start block {start_block} is after end block {end_block}"
        )

    # end_block is inclusive: ceil((end - start) / size) would drop the last
    # block whenever the span is an exact multiple of the chunk size
    total_blocks = end_block - start_block + 1
    count = -(-total_blocks // chunk_size)  # ceil

    return [
        Chunk(
            start=start_block + i * chunk_size,
            end=min(start_block + (i + 1) * chunk_size - 1, end_block),
            index=i,
            total=count,
        )
        for i in range(count)
    ]
