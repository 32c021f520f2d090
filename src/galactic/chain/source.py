"""Abstract log source interface.

Defines the contract for all chain segment fetchers. The indexer depends only
on this interface; the streaming portal and the batch JSON-RPC variants keep
their transport details in the concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Self

from galactic.config import ChainSettings
from galactic.models import RawLogRecord


class LogSource(ABC):
    """Abstract base class for sources of raw event logs.

    Implementations must yield records lazily in ascending block order and
    report transport or timeout problems as FetchFailure.
    """

    @abstractmethod
    def stream(
        self,
        address: str,
        topic0: str,
        from_block: int,
        to_block: int,
    ) -> AsyncIterator[RawLogRecord]:
        """Yield logs of ``address`` with ``topic0`` in [from_block, to_block]."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP connections."""
        ...

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()


def parse_quantity(value: int | str | None) -> int:
    """Parse a block number or timestamp given as int, decimal string, or 0x-hex string."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text[:2] in ("0x", "0X"):
        return int(text, 16)
    return int(text)


def build_source(settings: ChainSettings) -> LogSource:
    """Create the log source variant selected by ``settings.source``."""
    if settings.source == "rpc":
        from galactic.chain.rpc import RpcLogSource

        return RpcLogSource(
            settings.rpc_url,
            timeout_seconds=settings.request_timeout_seconds,
            max_block_span=settings.rpc_max_block_span,
        )

    from galactic.chain.portal import PortalLogSource

    return PortalLogSource(
        settings.portal_url,
        timeout_seconds=settings.request_timeout_seconds,
    )
