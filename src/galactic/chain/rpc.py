"""Batch log source backed by a JSON-RPC archive node.

Fetches ``eth_getLogs`` in pages of at most ``max_block_span`` blocks (most
providers cap the range per call). Block timestamps are taken from the
``blockTimestamp`` log field when the node supplies it, otherwise looked up
with ``eth_getBlockByNumber`` and cached for the duration of one stream.
"""

import itertools
from collections.abc import AsyncIterator
from typing import Any

import httpx

from galactic.chain.source import LogSource, parse_quantity
from galactic.exceptions import FetchFailure
from galactic.logging import get_logger
from galactic.models import RawLogRecord

logger = get_logger(__name__)


class RpcLogSource(LogSource):
    """Pages through ``eth_getLogs`` and yields each page sorted by (block, logIndex)."""

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = 60.0,
        max_block_span: int = 2000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_block_span <= 0:
            raise ValueError("max_block_span must be positive")
        self._rpc_url = rpc_url
        self._max_block_span = max_block_span
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._ids = itertools.count(1)
        self._timestamps: dict[int, int] = {}

    async def _call(self, method: str, params: list) -> Any:
        """Execute one JSON-RPC call. Transport, HTTP and RPC errors become FetchFailure."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._client.post(self._rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise FetchFailure(f"{method} request failed: {e!r}") from e
        except ValueError as e:
            raise FetchFailure(f"{method} returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise FetchFailure(f"{method} returned a {type(data).__name__}, expected an object")
        if "error" in data:
            error = data["error"] or {}
            if not isinstance(error, dict):
                error = {"message": error}
            raise FetchFailure(
                f"{method} RPC error {error.get('code')}: {error.get('message')}"
            )
        return data.get("result")

    async def _block_timestamp(self, block: int) -> int:
        if block not in self._timestamps:
            result = await self._call("eth_getBlockByNumber", [hex(block), False])
            if not result:
                raise FetchFailure(f"block {block} not found", block, block)
            try:
                self._timestamps[block] = parse_quantity(result["timestamp"])
            except (KeyError, TypeError, ValueError) as e:
                raise FetchFailure(
                    f"eth_getBlockByNumber returned a malformed block: {e!r}", block, block
                ) from e
        return self._timestamps[block]

    async def _fetch_page(
        self,
        address: str,
        topic0: str,
        from_block: int,
        to_block: int,
    ) -> list[RawLogRecord]:
        logs = await self._call(
            "eth_getLogs",
            [
                {
                    "address": address.lower(),
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                    "topics": [topic0.lower()],
                }
            ],
        )

        if logs is not None and not isinstance(logs, list):
            raise FetchFailure(
                f"eth_getLogs returned a {type(logs).__name__}, expected an array",
                from_block,
                to_block,
            )

        records: list[RawLogRecord] = []
        try:
            for log in logs or []:
                if not isinstance(log, dict):
                    raise TypeError(f"log entry is a {type(log).__name__}")
                if log.get("removed"):
                    continue
                number = parse_quantity(log["blockNumber"])
                raw_ts = log.get("blockTimestamp")
                timestamp = (
                    parse_quantity(raw_ts)
                    if raw_ts is not None
                    else await self._block_timestamp(number)
                )
                topics = log.get("topics") or []
                if not isinstance(topics, list):
                    raise TypeError(f"log topics is a {type(topics).__name__}")
                records.append(
                    RawLogRecord(
                        block_number=number,
                        block_timestamp=timestamp,
                        tx_hash=str(log.get("transactionHash") or "").lower(),
                        topic0=str(topics[0] if topics else "").lower(),
                        data=log.get("data") or "",
                        log_index=parse_quantity(log.get("logIndex")),
                    )
                )
        except (KeyError, TypeError, ValueError) as e:
            raise FetchFailure(
                f"eth_getLogs returned a malformed log: {e!r}", from_block, to_block
            ) from e

        records.sort(key=lambda r: (r.block_number, r.log_index))
        return records

    async def stream(
        self,
        address: str,
        topic0: str,
        from_block: int,
        to_block: int,
    ) -> AsyncIterator[RawLogRecord]:
        self._timestamps.clear()
        page_start = from_block

        while page_start <= to_block:
            page_end = min(page_start + self._max_block_span - 1, to_block)
            page = await self._fetch_page(address, topic0, page_start, page_end)
            logger.debug(
                "rpc_page_fetched",
                from_block=page_start,
                to_block=page_end,
                logs=len(page),
            )
            for record in page:
                yield record
            page_start = page_end + 1

    async def close(self) -> None:
        await self._client.aclose()
