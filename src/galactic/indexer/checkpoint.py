"""Checkpoint persistence port and its storage backends.

The indexer only sees CheckpointStore.load()/save(); whether progress lives in
memory, in a JSON artifact on disk, or in SQLite is a wiring decision.

The JSON backend writes the price/volume artifact itself (an array of swap
objects) and keeps completed chunk ranges in a ``<stem>.progress.json``
sidecar, so the artifact stays a plain array for downstream consumers.
"""

import asyncio
import json
import os
import tempfile
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path

import aiosqlite

from galactic.config import IndexerSettings
from galactic.exceptions import CheckpointCorruption
from galactic.indexer.database import CheckpointDatabase
from galactic.logging import get_logger
from galactic.models import Checkpoint, SwapRecord

logger = get_logger(__name__)


class CheckpointStore(ABC):
    """Load/save port for indexing progress."""

    @abstractmethod
    async def load(self) -> Checkpoint:
        """Return the persisted checkpoint, or an empty one if none exists.

        Raises:
            CheckpointCorruption: If persisted state exists but cannot be read.
        """
        ...

    @abstractmethod
    async def save(self, checkpoint: Checkpoint) -> None:
        """Persist the full checkpoint."""
        ...

    async def close(self) -> None:
        """Release any underlying resources."""


class MemoryCheckpointStore(CheckpointStore):
    """In-process store. Saves are snapshots so later mutation does not leak back."""

    def __init__(self, checkpoint: Checkpoint | None = None) -> None:
        self._saved = self._copy(checkpoint) if checkpoint is not None else None
        self.save_count = 0

    @staticmethod
    def _copy(checkpoint: Checkpoint) -> Checkpoint:
        return Checkpoint(swaps=dict(checkpoint.swaps), completed=set(checkpoint.completed))

    async def load(self) -> Checkpoint:
        if self._saved is None:
            return Checkpoint()
        return self._copy(self._saved)

    async def save(self, checkpoint: Checkpoint) -> None:
        self._saved = self._copy(checkpoint)
        self.save_count += 1


def _atomic_write_json(path: Path, payload: object) -> None:
    """Write JSON to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class JsonFileCheckpointStore(CheckpointStore):
    """Price/volume artifact on disk plus a completed-chunks sidecar.

    Usage:
        store = JsonFileCheckpointStore("swap_data.json")
        checkpoint = await store.load()
    """

    def __init__(self, path: str | Path = "swap_data.json") -> None:
        self.path = Path(path)
        self.progress_path = self.path.with_suffix(".progress.json")

    async def load(self) -> Checkpoint:
        return await asyncio.to_thread(self._read)

    async def save(self, checkpoint: Checkpoint) -> None:
        records = [record.to_dict() for record in checkpoint.records()]
        progress = {"completed": sorted([start, end] for start, end in checkpoint.completed)}
        await asyncio.to_thread(self._write, records, progress)

    def _read(self) -> Checkpoint:
        if not self.path.exists():
            return Checkpoint()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CheckpointCorruption(f"cannot read {self.path}: {e}") from e

        if not isinstance(raw, list):
            raise CheckpointCorruption(
                f"{self.path} holds a {type(raw).__name__}, expected an array"
            )

        try:
            records = [SwapRecord.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise CheckpointCorruption(f"invalid swap entry in {self.path}: {e!r}") from e

        checkpoint = Checkpoint()
        checkpoint.merge(records)
        checkpoint.completed = self._read_progress()
        return checkpoint

    def _read_progress(self) -> set[tuple[int, int]]:
        """Completed chunk ranges. A missing or unreadable sidecar means none."""
        if not self.progress_path.exists():
            return set()
        try:
            raw = json.loads(self.progress_path.read_text(encoding="utf-8"))
            return {(int(start), int(end)) for start, end in raw["completed"]}
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                "checkpoint_progress_unreadable",
                path=str(self.progress_path),
                error=str(e),
            )
            return set()

    def _write(self, records: list[dict], progress: dict) -> None:
        # Records first: a crash between the two writes only loses progress
        # markers, and those chunks are re-fetched and deduplicated.
        _atomic_write_json(self.path, records)
        _atomic_write_json(self.progress_path, progress)


class SqliteCheckpointStore(CheckpointStore):
    """Checkpoint in SQLite via aiosqlite. Inserts are INSERT OR IGNORE, so blocks are never overwritten.

    Prices and volumes are stored as TEXT to preserve Decimal precision.
    """

    def __init__(self, db_path: str = "data/swaps.db") -> None:
        self._database = CheckpointDatabase(db_path)

    async def _ensure_connected(self) -> None:
        if not self._database.is_connected:
            await self._database.connect()

    async def load(self) -> Checkpoint:
        """Read the checkpoint.

        An unreadable database is closed and moved aside to ``<path>.corrupt``
        before CheckpointCorruption is raised, so the next save() starts a
        fresh database at the original path.
        """
        try:
            await self._ensure_connected()
            cursor = await self._database.db.execute(
                "SELECT block, timestamp, date, tx_hash, price, volume "
                "FROM swaps ORDER BY block"
            )
            rows = await cursor.fetchall()
            cursor = await self._database.db.execute(
                "SELECT start_block, end_block FROM completed_chunks"
            )
            chunk_rows = await cursor.fetchall()

            checkpoint = Checkpoint()
            checkpoint.merge(
                [
                    SwapRecord(
                        block=row[0],
                        timestamp=row[1],
                        date=row[2],
                        tx_hash=row[3],
                        price=Decimal(row[4]),
                        volume=Decimal(row[5]),
                    )
                    for row in rows
                ]
            )
            checkpoint.completed = {(row[0], row[1]) for row in chunk_rows}
        except (aiosqlite.DatabaseError, ArithmeticError, TypeError) as e:
            await self._quarantine()
            raise CheckpointCorruption(f"cannot read checkpoint database: {e!r}") from e

        return checkpoint

    async def _quarantine(self) -> None:
        """Close the connection and rename the database file and its WAL files out of the way."""
        await self._database.close()
        path = self._database.db_path
        if not os.path.exists(path):
            return

        os.replace(path, path + ".corrupt")
        for suffix in ("-wal", "-shm"):
            if os.path.exists(path + suffix):
                os.unlink(path + suffix)
        logger.warning("checkpoint_db_quarantined", db_path=path, moved_to=path + ".corrupt")

    async def save(self, checkpoint: Checkpoint) -> None:
        await self._ensure_connected()
        now = int(time.time())

        await self._database.db.executemany(
            "INSERT OR IGNORE INTO swaps "
            "(block, timestamp, date, tx_hash, price, volume) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            [
                (r.block, r.timestamp, r.date, r.tx_hash, str(r.price), str(r.volume))
                for r in checkpoint.records()
            ],
        )
        await self._database.db.executemany(
            "INSERT OR IGNORE INTO completed_chunks "
            "(start_block, end_block, completed_at) VALUES (?, ?, ?)",
            [(start, end, now) for start, end in sorted(checkpoint.completed)],
        )
        await self._database.db.commit()

    async def export_records(self) -> list[SwapRecord]:
        """All persisted swaps in block order, for writing the JSON artifact."""
        checkpoint = await self.load()
        return checkpoint.records()

    async def close(self) -> None:
        await self._database.close()


def build_checkpoint_store(settings: IndexerSettings) -> CheckpointStore:
    """Create the checkpoint backend selected by ``settings.checkpoint_backend``."""
    if settings.checkpoint_backend == "sqlite":
        return SqliteCheckpointStore(settings.sqlite_path)
    return JsonFileCheckpointStore(settings.checkpoint_path)
