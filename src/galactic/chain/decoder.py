"""Uniswap V2 Swap log decoding into price and volume.

The non-indexed part of ``Swap(sender, amount0In, amount1In, amount0Out,
amount1Out, to)`` is four big-endian uint256 words (256 hex characters).
Trade direction is inferred from which input amount is non-zero, then
price = token1 per token0 and volume = token0 amount * price, both in human
units.

CRITICAL: All arithmetic uses int and Decimal. Never use float.
"""

from decimal import Decimal, localcontext

from galactic.chain.blocktime import utc_date_string
from galactic.exceptions import MalformedLog
from galactic.logging import get_logger
from galactic.models import RawLogRecord, SwapAmounts, SwapRecord

logger = get_logger(__name__)

WORD_HEX_CHARS = 64
SWAP_WORDS = 4
SWAP_PAYLOAD_HEX_CHARS = WORD_HEX_CHARS * SWAP_WORDS

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def decode_amounts(payload: str) -> SwapAmounts:
    """Split a Swap log data payload into its four uint256 amounts.

    Args:
        payload: Hex string, optionally prefixed with ``0x``.

    Returns:
        SwapAmounts with arbitrary-precision integer fields.

    Raises:
        MalformedLog: If the payload is not exactly four 32-byte words of hex.
    """
    if not isinstance(payload, str):
        raise MalformedLog(f"payload must be a hex string, got {type(payload).__name__}")
    clean = payload[2:] if payload[:2] in ("0x", "0X") else payload

    if len(clean) != SWAP_PAYLOAD_HEX_CHARS:
        raise MalformedLog(
            f"expected {SWAP_PAYLOAD_HEX_CHARS} hex chars, got {len(clean)}"
        )
    if not _HEX_DIGITS.issuperset(clean):
        raise MalformedLog("payload contains non-hex characters")

    words = [
        int(clean[i : i + WORD_HEX_CHARS], 16)
        for i in range(0, SWAP_PAYLOAD_HEX_CHARS, WORD_HEX_CHARS)
    ]
    return SwapAmounts(*words)


def select_amounts(amounts: SwapAmounts) -> tuple[int, int]:
    """Pick the (token0, token1) amounts that describe the trade.

    If token0 went in, the trade is token0 -> token1 and the counter amount
    is amount1Out. Otherwise token1 went in and token0 came out.
    """
    if amounts.amount0_in > 0:
        return amounts.amount0_in, amounts.amount1_out
    return amounts.amount0_out, amounts.amount1_in


def to_human(raw: int, decimals: int) -> Decimal:
    """Scale a raw token amount down by 10**decimals.

    Exact for any uint256: precision is widened to the number of digits.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(str(abs(raw))))
        return Decimal(raw).scaleb(-decimals)


def compute_price(amount0_human: Decimal, amount1_human: Decimal) -> Decimal:
    """token1 per token0. Zero when no token0 moved (degenerate swap, not an error)."""
    if amount0_human == 0:
        return Decimal("0")
    return amount1_human / amount0_human


def compute_volume(amount0_human: Decimal, price: Decimal) -> Decimal:
    """Trade size in token1 terms."""
    return amount0_human * price


def decode_swap(
    raw: RawLogRecord,
    token0_decimals: int,
    token1_decimals: int,
) -> SwapRecord:
    """Decode a raw Swap log into a SwapRecord.

    Raises:
        MalformedLog: If the payload is structurally invalid.
    """
    amounts = decode_amounts(raw.data)
    amount0, amount1 = select_amounts(amounts)

    amount0_human = to_human(amount0, token0_decimals)
    amount1_human = to_human(amount1, token1_decimals)
    price = compute_price(amount0_human, amount1_human)

    return SwapRecord(
        block=raw.block_number,
        timestamp=raw.block_timestamp,
        date=utc_date_string(raw.block_timestamp),
        tx_hash=raw.tx_hash,
        price=price,
        volume=compute_volume(amount0_human, price),
    )


class SwapDecoder:
    """Decodes Swap logs for one pair, given its token decimals and event topic.

    Usage:
        decoder = SwapDecoder(token0_decimals=18, token1_decimals=6, topic0=SWAP_TOPIC)
        record = decoder.decode(raw)  # None for logs of another event
    """

    def __init__(
        self,
        token0_decimals: int = 18,
        token1_decimals: int = 6,
        topic0: str | None = None,
    ) -> None:
        self.token0_decimals = token0_decimals
        self.token1_decimals = token1_decimals
        self._topic0 = topic0.lower() if topic0 else None

    def decode(self, raw: RawLogRecord) -> SwapRecord | None:
        """Decode one log, or return None when its topic0 is not the Swap event.

        Raises:
            MalformedLog: If the payload is structurally invalid.
        """
        if self._topic0 is not None and raw.topic0.lower() != self._topic0:
            logger.debug(
                "log_topic_mismatch",
                block=raw.block_number,
                topic0=raw.topic0,
            )
            return None
        return decode_swap(raw, self.token0_decimals, self.token1_decimals)
