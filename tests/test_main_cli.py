"""Tests for CLI argument validation and command wiring."""

import argparse
import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

import galactic.main as cli
from galactic.chain.blocktime import BlockClock
from galactic.chain.source import LogSource
from galactic.config import AppSettings
from galactic.exceptions import InvalidArguments
from galactic.models import RawLogRecord

TOPIC = "0xd78ad95fa46c994b6551d0da85fc275fe613ce37657fb8d5e3d130840159d822"


class StaticLogSource(LogSource):
    """Serves a fixed list of logs, filtered by block range."""

    def __init__(self, logs: list[RawLogRecord]) -> None:
        self.logs = logs
        self.closed = False

    async def stream(self, address: str, topic0: str, from_block: int, to_block: int) -> AsyncIterator[RawLogRecord]:
        for record in self.logs:
            if from_block <= record.block_number <= to_block:
                yield record

    async def close(self) -> None:
        self.closed = True


def _make_log(block: int) -> RawLogRecord:
    data = "0x" + "".join(f"{v:064x}" for v in (10**18, 0, 0, 2_000 * 10**6))
    return RawLogRecord(
        block_number=block,
        block_timestamp=1_704_067_200 + (block - 1_000) * 12,
        tx_hash=f"0x{block:x}",
        topic0=TOPIC,
        data=data,
    )


def _range_args(**overrides) -> argparse.Namespace:
    values = {"start_block": None, "end_block": None, "from_date": None, "to_date": None}
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    """Run with the working directory (and default artifact paths) under tmp_path."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestParseBlockNumber:
    @pytest.mark.parametrize(
        "text,expected",
        [("22154159", 22_154_159), ("22,154,159", 22_154_159), ("22_154_159", 22_154_159), (" 0 ", 0)],
    )
    def test_accepts(self, text: str, expected: int) -> None:
        assert cli.parse_block_number(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "-5", "1.5", "0x10", "١٢٣"])
    def test_rejects(self, text: str) -> None:
        with pytest.raises(InvalidArguments):
            cli.parse_block_number(text)


class TestResolveBlockRange:
    """Tests for block-range and date-range argument resolution."""

    def test_block_pair(self) -> None:
        args = _range_args(start_block="22,154,159", end_block="24,789,359")
        assert cli.resolve_block_range(args, BlockClock()) == (22_154_159, 24_789_359)

    def test_date_pair_uses_block_clock(self) -> None:
        clock = BlockClock(anchor_timestamp=1_704_067_200, block_interval=12)
        args = _range_args(from_date="2024-01-01", to_date="2024-01-02")
        assert cli.resolve_block_range(args, clock) == (0, 14_400)

    def test_inverted_blocks_rejected(self) -> None:
        with pytest.raises(InvalidArguments):
            cli.resolve_block_range(_range_args(start_block="10", end_block="9"), BlockClock())

    def test_missing_end_rejected(self) -> None:
        with pytest.raises(InvalidArguments):
            cli.resolve_block_range(_range_args(start_block="10"), BlockClock())

    def test_blocks_and_dates_together_rejected(self) -> None:
        args = _range_args(start_block="1", end_block="2", from_date="2024-01-01", to_date="2024-01-02")
        with pytest.raises(InvalidArguments):
            cli.resolve_block_range(args, BlockClock())

    def test_half_date_range_rejected(self) -> None:
        with pytest.raises(InvalidArguments):
            cli.resolve_block_range(_range_args(from_date="2024-01-01"), BlockClock())

    def test_bad_date_rejected(self) -> None:
        with pytest.raises(InvalidArguments):
            cli.resolve_block_range(_range_args(from_date="2024-13-01", to_date="2024-12-01"), BlockClock())

    def test_date_before_genesis_rejected(self) -> None:
        with pytest.raises(InvalidArguments):
            cli.resolve_block_range(_range_args(from_date="2010-01-01", to_date="2010-01-02"), BlockClock())


class TestResolveChunkSize:
    def test_default(self) -> None:
        args = argparse.Namespace(chunk_size=None, chunk_size_opt=None)
        assert cli.resolve_chunk_size(args, 50_000) == 50_000

    def test_positional(self) -> None:
        args = argparse.Namespace(chunk_size="10,000", chunk_size_opt=None)
        assert cli.resolve_chunk_size(args, 50_000) == 10_000

    def test_option_wins(self) -> None:
        args = argparse.Namespace(chunk_size="10", chunk_size_opt="20")
        assert cli.resolve_chunk_size(args, 50_000) == 20

    def test_zero_rejected(self) -> None:
        with pytest.raises(InvalidArguments):
            cli.resolve_chunk_size(argparse.Namespace(chunk_size="0", chunk_size_opt=None), 1)


class TestMainValidation:
    """Malformed arguments exit with status 2 before any work starts."""

    @pytest.mark.parametrize(
        "argv",
        [
            ["index", "abc", "10"],
            ["index", "10", "5"],
            ["index", "1", "2", "--from-date", "2024-01-01", "--to-date", "2024-01-02"],
            ["index", "1", "100", "0"],
            ["astro", "2024-01-03", "2024-01-01"],
            ["astro"],
            ["blocks", "--date", "yesterday"],
        ],
    )
    def test_exits_with_usage_error(self, argv: list[str], in_tmp, monkeypatch) -> None:
        calls: list = []

        async def fake_run_index(*args, **kwargs):
            calls.append(args)

        monkeypatch.setattr(cli, "run_index", fake_run_index)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(argv)

        assert exc_info.value.code == 2
        assert calls == []
        assert list(in_tmp.iterdir()) == []

    def test_index_arguments_passed_through(self, in_tmp, monkeypatch) -> None:
        calls: list = []

        async def fake_run_index(settings, start, end, chunk_size, resume=True):
            calls.append((start, end, chunk_size, resume))

        monkeypatch.setattr(cli, "run_index", fake_run_index)

        assert cli.main(["index", "22,154,159", "22,254,159", "--chunk-size", "10,000", "--fresh"]) == 0
        assert calls == [(22_154_159, 22_254_159, 10_000, False)]


class TestMainCommands:
    def test_blocks_single_block(self, in_tmp, capsys) -> None:
        assert cli.main(["blocks", "0"]) == 0
        out = capsys.readouterr().out
        assert "2015-07-30" in out

    def test_blocks_range(self, in_tmp, capsys) -> None:
        assert cli.main(["blocks", "--range", "2024-01-01", "2024-01-31"]) == 0
        out = capsys.readouterr().out
        assert "Block range:" in out
        assert "galactic index" in out

    def test_astro_range_writes_one_entry_per_date(self, in_tmp) -> None:
        assert cli.main(["astro", "2024-01-01", "2024-01-03"]) == 0

        data = json.loads((in_tmp / "astro_date_range_index.json").read_text(encoding="utf-8"))
        assert [item["date"] for item in data] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert set(data[0]) == {"date", "moon_phase", "mercury_retrograde", "jupiter_mars_conjunction", "astro_rating"}

    def test_astro_today_writes_object(self, in_tmp) -> None:
        assert cli.main(["astro", "--today", "--output", "today.json"]) == 0

        data = json.loads((in_tmp / "today.json").read_text(encoding="utf-8"))
        assert isinstance(data, dict)
        assert data["moon_phase"]

    def test_enrich_missing_swaps_returns_error(self, in_tmp) -> None:
        assert cli.main(["enrich", "--swaps", "missing.json"]) == 1
        assert not (in_tmp / "enriched_data.json").exists()

    def test_enrich_writes_joined_series(self, in_tmp) -> None:
        swaps = [
            {"block": 2, "timestamp": 1_704_153_600, "date": "2024-01-02", "txHash": "0x2", "price": "2100.00", "volume": "2100.00"},
            {"block": 1, "timestamp": 1_704_067_200, "date": "2024-01-01", "txHash": "0x1", "price": "2000.00", "volume": "4000.00"},
        ]
        (in_tmp / "swap_data.json").write_text(json.dumps(swaps), encoding="utf-8")

        assert cli.main(["enrich"]) == 0

        data = json.loads((in_tmp / "enriched_data.json").read_text(encoding="utf-8"))
        assert [item["block"] for item in data] == [1, 2]
        assert data[0]["astro"]["date"] == "2024-01-01"
        assert data[1]["price"] == "2100.00"


class TestRunIndex:
    """End-to-end wiring with an in-memory log source."""

    @pytest.mark.asyncio
    async def test_json_backend(self, mock_settings: AppSettings, monkeypatch) -> None:
        source = StaticLogSource([_make_log(1_005), _make_log(1_150)])
        monkeypatch.setattr(cli, "build_source", lambda settings: source)

        report = await cli.run_index(mock_settings, 1_000, 1_199, 100)

        data = json.loads(Path(mock_settings.indexer.checkpoint_path).read_text(encoding="utf-8"))
        assert report.total_records == 2
        assert [item["block"] for item in data] == [1_005, 1_150]
        assert data[0]["price"] == "2000.00"
        assert source.closed is True

    @pytest.mark.asyncio
    async def test_sqlite_backend_exports_json(self, mock_settings: AppSettings, monkeypatch) -> None:
        settings = mock_settings.model_copy(
            update={"indexer": mock_settings.indexer.model_copy(update={"checkpoint_backend": "sqlite"})}
        )
        source = StaticLogSource([_make_log(1_010)])
        monkeypatch.setattr(cli, "build_source", lambda settings: source)

        report = await cli.run_index(settings, 1_000, 1_099, 50)

        data = json.loads(Path(settings.indexer.checkpoint_path).read_text(encoding="utf-8"))
        assert report.total_records == 1
        assert data[0]["block"] == 1_010
        assert source.closed is True

    @pytest.mark.asyncio
    async def test_pipeline_sequence(self, mock_settings: AppSettings, monkeypatch, tmp_path) -> None:
        settings = mock_settings.model_copy(
            update={
                "astro": mock_settings.astro.model_copy(update={"output_path": str(tmp_path / "astro.json")}),
                "output": mock_settings.output.model_copy(update={"enriched_path": str(tmp_path / "enriched.json")}),
            }
        )
        monkeypatch.setattr(cli, "build_source", lambda s: StaticLogSource([_make_log(1_001)]))

        await cli.run_index(settings, 1_000, 1_099, 100)
        count = cli.run_enrich(settings, write_astro_index=True)

        assert count == 1
        enriched = json.loads((tmp_path / "enriched.json").read_text(encoding="utf-8"))
        astro = json.loads((tmp_path / "astro.json").read_text(encoding="utf-8"))
        assert enriched[0]["astro"]["date"] == "2024-01-01"
        assert [item["date"] for item in astro] == ["2024-01-01"]
