"""Shared test fixtures for the Galactic Alpha pipeline."""

import pytest

from galactic.config import AppSettings, ChainSettings, IndexerSettings


@pytest.fixture
def chain_settings() -> ChainSettings:
    """Default WETH/USDC chain settings."""
    return ChainSettings()


@pytest.fixture
def indexer_settings(tmp_path) -> IndexerSettings:
    """Indexer settings with no retry delay and checkpoints under tmp_path."""
    return IndexerSettings(
        chunk_size=100,
        chunk_timeout_seconds=300.0,
        max_retries=2,
        retry_base_delay=0.0,
        checkpoint_path=str(tmp_path / "swap_data.json"),
        sqlite_path=str(tmp_path / "swaps.db"),
        progress_log_every=100,
    )


@pytest.fixture
def mock_settings(chain_settings: ChainSettings, indexer_settings: IndexerSettings) -> AppSettings:
    """AppSettings with test defaults (DEBUG logging, files under tmp_path)."""
    return AppSettings(
        log_level="DEBUG",
        chain=chain_settings,
        indexer=indexer_settings,
    )
