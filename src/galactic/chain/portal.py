"""Streaming log source backed by an SQD portal dataset.

The portal answers a POST to ``/stream`` with newline-delimited JSON, one
block per line, each carrying its header and the matching logs. A response
may stop before the requested ``toBlock``; the source then re-issues the
query from the block after the last one received, until the range is
exhausted or the portal has nothing more to send.
"""

import json
from collections.abc import AsyncIterator

import httpx

from galactic.chain.source import LogSource, parse_quantity
from galactic.exceptions import FetchFailure
from galactic.logging import get_logger
from galactic.models import RawLogRecord

logger = get_logger(__name__)


def _parse_block_item(item: object) -> tuple[int, int, list[dict]]:
    """Return (number, timestamp, logs) of one stream line.

    Raises:
        ValueError: If the line is not a block object of the expected shape.
    """
    if not isinstance(item, dict):
        raise ValueError(f"expected a block object, got {type(item).__name__}")
    header = item.get("header") or {}
    logs = item.get("logs") or []
    if not isinstance(header, dict):
        raise ValueError(f"block header is a {type(header).__name__}")
    if not isinstance(logs, list) or not all(isinstance(log, dict) for log in logs):
        raise ValueError("block logs must be a list of objects")
    return parse_quantity(header.get("number")), parse_quantity(header.get("timestamp")), logs


def _to_raw_log(log: dict, number: int, timestamp: int) -> RawLogRecord:
    topics = log.get("topics") or []
    if not isinstance(topics, list):
        raise ValueError(f"log topics is a {type(topics).__name__}")
    return RawLogRecord(
        block_number=number,
        block_timestamp=timestamp,
        tx_hash=str(log.get("transactionHash") or "").lower(),
        topic0=str(topics[0] if topics else "").lower(),
        data=log.get("data") or "",
        log_index=parse_quantity(log.get("logIndex")),
    )


class PortalLogSource(LogSource):
    """Lazily streams Swap logs from an SQD portal.

    Usage:
        async with PortalLogSource("https://portal.sqd.dev/datasets/ethereum-mainnet") as source:
            async for raw in source.stream(pair, topic0, 18_000_000, 18_050_000):
                ...
    """

    def __init__(
        self,
        portal_url: str,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._stream_url = portal_url.rstrip("/") + "/stream"
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    @staticmethod
    def build_query(address: str, topic0: str, from_block: int, to_block: int) -> dict:
        """Portal query selecting block number/timestamp and Swap log fields."""
        return {
            "type": "evm",
            "fromBlock": from_block,
            "toBlock": to_block,
            "fields": {
                "block": {"number": True, "timestamp": True},
                "log": {
                    "logIndex": True,
                    "transactionHash": True,
                    "topics": True,
                    "data": True,
                },
            },
            "logs": [
                {
                    "address": [address.lower()],
                    "topic0": [topic0.lower()],
                },
            ],
        }

    async def stream(
        self,
        address: str,
        topic0: str,
        from_block: int,
        to_block: int,
    ) -> AsyncIterator[RawLogRecord]:
        next_block = from_block

        while next_block <= to_block:
            query = self.build_query(address, topic0, next_block, to_block)
            last_block: int | None = None

            try:
                async with self._client.stream("POST", self._stream_url, json=query) as response:
                    if response.status_code == 204:
                        # Nothing (more) available for this range
                        return
                    response.raise_for_status()

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        number, timestamp, logs = _parse_block_item(json.loads(line))
                        last_block = number

                        for log in logs:
                            yield _to_raw_log(log, number, timestamp)
            except httpx.HTTPError as e:
                raise FetchFailure(
                    f"portal request failed: {e!r}", next_block, to_block
                ) from e
            except ValueError as e:
                # Covers json.JSONDecodeError, unparseable quantities and unexpected shapes
                raise FetchFailure(
                    f"portal returned malformed data: {e}", next_block, to_block
                ) from e

            if last_block is None or last_block >= to_block:
                return

            logger.debug(
                "portal_stream_resume",
                last_block=last_block,
                to_block=to_block,
            )
            next_block = last_block + 1

    async def close(self) -> None:
        await self._client.aclose()
