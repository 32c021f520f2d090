"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ChainSettings(BaseSettings):
    """Chain data source and pair contract settings.

    Defaults target the Uniswap V2 WETH/USDC pair on Ethereum mainnet.
    WETH sorts below USDC by address, so WETH is token0 and USDC is token1.
    """

    model_config = SettingsConfigDict(env_prefix="CHAIN_")

    source: Literal["portal", "rpc"] = "portal"
    portal_url: str = "https://portal.sqd.dev/datasets/ethereum-mainnet"
    rpc_url: str = "https://eth.llamarpc.com"
    request_timeout_seconds: float = 60.0
    rpc_max_block_span: int = 2000  # eth_getLogs page size in blocks

    pair_address: str = "0xb4e16d0168e52d35cacd2c6185b44281ec28c9dc"
    # keccak256("Swap(address,uint256,uint256,uint256,uint256,address)")
    swap_topic: str = "0xd78ad95fa46c994b6551d0da85fc275fe613ce37657fb8d5e3d130840159d822"
    token0_decimals: int = 18  # WETH
    token1_decimals: int = 6  # USDC

    # Block-date approximation anchor: block 0 at 2015-07-30 15:26:28 UTC
    genesis_timestamp: int = 1438217288
    block_time_seconds: int = 12


class IndexerSettings(BaseSettings):
    """Chunked indexer configuration.

    Controls chunk sizing, the soft per-chunk time budget, retry behaviour,
    and where indexing progress is checkpointed.
    All fields configurable via INDEXER_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="INDEXER_")

    chunk_size: int = 50_000
    chunk_timeout_seconds: float = 300.0  # soft budget, reported but never enforced
    max_retries: int = 3
    retry_base_delay: float = 1.0
    checkpoint_backend: Literal["json", "sqlite"] = "json"
    checkpoint_path: str = "swap_data.json"
    sqlite_path: str = "data/swaps.db"
    progress_log_every: int = 100  # swaps between progress log lines


class AstroSettings(BaseSettings):
    """Astronomical conditions engine configuration."""

    model_config = SettingsConfigDict(env_prefix="ASTRO_")

    conjunction_orb_degrees: float = 10.0
    output_path: str = "astro_date_range_index.json"
    today_output_path: str = "astro_today_index.json"


class OutputSettings(BaseSettings):
    """Enriched dataset output configuration."""

    model_config = SettingsConfigDict(env_prefix="OUTPUT_")

    enriched_path: str = "enriched_data.json"


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    chain: ChainSettings = ChainSettings()
    indexer: IndexerSettings = IndexerSettings()
    astro: AstroSettings = AstroSettings()
    output: OutputSettings = OutputSettings()
