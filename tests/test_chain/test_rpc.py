"""Tests for RpcLogSource paging, timestamp lookup, and error mapping."""

import json

import httpx
import pytest

from galactic.chain.rpc import RpcLogSource
from galactic.chain.source import build_source, parse_quantity
from galactic.chain.portal import PortalLogSource
from galactic.config import ChainSettings
from galactic.exceptions import FetchFailure

RPC_URL = "https://rpc.test"
PAIR = "0xb4e16d0168e52d35cacd2c6185b44281ec28c9dc"
TOPIC = "0xd78ad95fa46c994b6551d0da85fc275fe613ce37657fb8d5e3d130840159d822"


def _rpc_log(block: int, log_index: int, tx: str, **extra) -> dict:
    log = {
        "blockNumber": hex(block),
        "logIndex": hex(log_index),
        "transactionHash": tx,
        "topics": [TOPIC],
        "data": "0x" + "00" * 128,
        "removed": False,
    }
    log.update(extra)
    return log


class _FakeNode:
    """Minimal JSON-RPC node answering eth_getLogs and eth_getBlockByNumber."""

    def __init__(self, logs: list[dict], timestamps: dict[int, int] | None = None) -> None:
        self.logs = logs
        self.timestamps = timestamps or {}
        self.calls: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body)
        method = body["method"]

        if method == "eth_getLogs":
            params = body["params"][0]
            start, end = int(params["fromBlock"], 16), int(params["toBlock"], 16)
            # Nodes do not guarantee order within a response
            page = [log for log in reversed(self.logs) if start <= int(log["blockNumber"], 16) <= end]
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": page})

        if method == "eth_getBlockByNumber":
            number = int(body["params"][0], 16)
            result = {"number": hex(number), "timestamp": hex(self.timestamps[number])}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "no"}})

    def methods(self, name: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == name]


def _make_source(node, max_block_span: int = 2000) -> RpcLogSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(node))
    return RpcLogSource(RPC_URL, max_block_span=max_block_span, client=client)


async def _collect(source: RpcLogSource, start: int, end: int) -> list:
    return [raw async for raw in source.stream(PAIR, TOPIC, start, end)]


class TestParseQuantity:
    @pytest.mark.parametrize(
        "value,expected",
        [(None, 0), (17, 17), ("42", 42), ("0x2a", 42), ("0X2A", 42), (" 7 ", 7)],
    )
    def test_parses(self, value, expected: int) -> None:
        assert parse_quantity(value) == expected

    def test_garbage_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_quantity("block")


class TestBuildSource:
    def test_portal_is_default(self) -> None:
        assert isinstance(build_source(ChainSettings()), PortalLogSource)

    def test_rpc_selected(self) -> None:
        assert isinstance(build_source(ChainSettings(source="rpc")), RpcLogSource)


class TestRpcStream:
    """Tests for eth_getLogs paging."""

    @pytest.mark.asyncio
    async def test_pages_respect_max_span(self) -> None:
        node = _FakeNode(
            [
                _rpc_log(100, 0, "0x1", blockTimestamp=hex(1_000)),
                _rpc_log(105, 0, "0x2", blockTimestamp=hex(1_060)),
                _rpc_log(109, 0, "0x3", blockTimestamp=hex(1_108)),
            ]
        )
        source = _make_source(node, max_block_span=4)

        records = await _collect(source, 100, 109)
        await source.close()

        pages = [
            (int(c["params"][0]["fromBlock"], 16), int(c["params"][0]["toBlock"], 16))
            for c in node.methods("eth_getLogs")
        ]
        assert pages == [(100, 103), (104, 107), (108, 109)]
        assert [r.block_number for r in records] == [100, 105, 109]
        assert [r.block_timestamp for r in records] == [1_000, 1_060, 1_108]

    @pytest.mark.asyncio
    async def test_page_sorted_by_block_and_log_index(self) -> None:
        node = _FakeNode(
            [
                _rpc_log(10, 0, "0xa", blockTimestamp="0x1"),
                _rpc_log(10, 3, "0xb", blockTimestamp="0x1"),
                _rpc_log(11, 1, "0xc", blockTimestamp="0x2"),
            ]
        )
        source = _make_source(node)
        records = await _collect(source, 10, 11)
        await source.close()

        assert [(r.block_number, r.log_index) for r in records] == [(10, 0), (10, 3), (11, 1)]

    @pytest.mark.asyncio
    async def test_filter_is_lowercased(self) -> None:
        node = _FakeNode([])
        source = _make_source(node)
        records = [raw async for raw in source.stream(PAIR.upper().replace("0X", "0x"), TOPIC.upper().replace("0X", "0x"), 1, 1)]
        await source.close()

        params = node.methods("eth_getLogs")[0]["params"][0]
        assert records == []
        assert params["address"] == PAIR
        assert params["topics"] == [TOPIC]

    @pytest.mark.asyncio
    async def test_missing_timestamp_looked_up_once_per_block(self) -> None:
        node = _FakeNode(
            [_rpc_log(50, 0, "0x1"), _rpc_log(50, 1, "0x2"), _rpc_log(51, 0, "0x3")],
            timestamps={50: 5_000, 51: 5_012},
        )
        source = _make_source(node)
        records = await _collect(source, 50, 51)
        await source.close()

        assert [r.block_timestamp for r in records] == [5_000, 5_000, 5_012]
        assert len(node.methods("eth_getBlockByNumber")) == 2

    @pytest.mark.asyncio
    async def test_removed_logs_skipped(self) -> None:
        node = _FakeNode(
            [
                _rpc_log(7, 0, "0x1", blockTimestamp="0x1"),
                _rpc_log(7, 1, "0x2", blockTimestamp="0x1", removed=True),
            ]
        )
        source = _make_source(node)
        records = await _collect(source, 7, 7)
        await source.close()

        assert [r.tx_hash for r in records] == ["0x1"]

    @pytest.mark.asyncio
    async def test_rpc_error_becomes_fetch_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32005, "message": "limit exceeded"}},
            )

        source = _make_source(handler)
        with pytest.raises(FetchFailure, match="limit exceeded"):
            await _collect(source, 1, 10)
        await source.close()

    @pytest.mark.asyncio
    async def test_http_error_becomes_fetch_failure(self) -> None:
        source = _make_source(lambda request: httpx.Response(502))
        with pytest.raises(FetchFailure):
            await _collect(source, 1, 10)
        await source.close()

    @pytest.mark.asyncio
    async def test_log_without_block_number_is_fetch_failure(self) -> None:
        broken = _rpc_log(3, 0, "0x1", blockTimestamp="0x1")
        node = _FakeNode([broken])
        # Strip the field after the node has filtered on it
        original = node.__call__

        def handler(request: httpx.Request) -> httpx.Response:
            response = original(request)
            payload = response.json()
            for log in payload.get("result") or []:
                log.pop("blockNumber", None)
            return httpx.Response(200, json=payload)

        source = _make_source(handler)
        with pytest.raises(FetchFailure) as exc_info:
            await _collect(source, 3, 3)
        await source.close()

        assert exc_info.value.from_block == 3

    def test_non_positive_span_rejected(self) -> None:
        with pytest.raises(ValueError):
            RpcLogSource(RPC_URL, max_block_span=0)


def _respond(body):
    """Node that answers every call with the same JSON body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    return handler


class TestRpcUnexpectedShapes:
    """Valid JSON of the wrong shape is a fetch failure, never a crash."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            [{"jsonrpc": "2.0", "id": 1, "result": []}],
            "ok",
            42,
            {"jsonrpc": "2.0", "id": 1, "result": "0x0"},
            {"jsonrpc": "2.0", "id": 1, "result": {"logs": []}},
            {"jsonrpc": "2.0", "id": 1, "result": ["0xdeadbeef"]},
            {"jsonrpc": "2.0", "id": 1, "result": [_rpc_log(5, 0, "0x1", topics="0xabc", blockTimestamp="0x10")]},
            {"jsonrpc": "2.0", "id": 1, "error": "rate limited"},
        ],
    )
    async def test_wrong_shape_becomes_fetch_failure(self, body) -> None:
        source = _make_source(_respond(body))

        with pytest.raises(FetchFailure):
            await _collect(source, 1, 10)
        await source.close()

    @pytest.mark.asyncio
    async def test_string_error_message_kept(self) -> None:
        source = _make_source(_respond({"jsonrpc": "2.0", "id": 1, "error": "rate limited"}))

        with pytest.raises(FetchFailure, match="rate limited"):
            await _collect(source, 1, 10)
        await source.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("block_result", ["0x5", ["0x5"], {"number": "0x5"}, {"timestamp": "soon"}])
    async def test_malformed_block_lookup_becomes_fetch_failure(self, block_result) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body["method"] == "eth_getLogs":
                result = [_rpc_log(5, 0, "0x1")]
            else:
                result = block_result
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

        source = _make_source(handler)

        with pytest.raises(FetchFailure) as exc_info:
            await _collect(source, 1, 10)
        await source.close()

        assert exc_info.value.from_block == 5
        assert exc_info.value.to_block == 5
