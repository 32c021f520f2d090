"""Chunked batch indexing with a pluggable, resumable checkpoint."""

from galactic.indexer.checkpoint import (
    CheckpointStore,
    JsonFileCheckpointStore,
    MemoryCheckpointStore,
    SqliteCheckpointStore,
    build_checkpoint_store,
)
from galactic.indexer.chunks import plan_chunks
from galactic.indexer.runner import ChunkedIndexer

__all__ = [
    "CheckpointStore",
    "ChunkedIndexer",
    "JsonFileCheckpointStore",
    "MemoryCheckpointStore",
    "SqliteCheckpointStore",
    "build_checkpoint_store",
    "plan_chunks",
]
