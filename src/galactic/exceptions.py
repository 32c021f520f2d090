"""Custom exceptions for the Galactic Alpha pipeline.

Per-record and per-chunk faults are contained by the indexer; only
argument validation is fatal.
"""


class GalacticError(Exception):
    """Base exception for all pipeline errors."""


class MalformedLog(GalacticError):
    """Raised when a swap log payload is structurally invalid. The record is skipped."""


class FetchFailure(GalacticError):
    """Raised when fetching logs for a block range fails (transport error or timeout)."""

    def __init__(self, message: str, from_block: int | None = None, to_block: int | None = None) -> None:
        super().__init__(message)
        self.from_block = from_block
        self.to_block = to_block


class CheckpointCorruption(GalacticError):
    """Raised when persisted indexing state cannot be read back."""


class InvalidArguments(GalacticError):
    """Raised when block or date arguments are malformed. Fatal, checked before any work."""
