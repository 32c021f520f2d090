"""JSON artifacts exchanged with the chart: price/volume, astro, and enriched series."""

import json
from pathlib import Path

from galactic.models import AstroRecord, EnrichedRecord, SwapRecord


def write_json(path: str | Path, payload: object) -> Path:
    """Write pretty-printed JSON, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return target


def read_swaps(path: str | Path) -> list[SwapRecord]:
    """Read a price/volume artifact, sorted by block.

    Raises:
        FileNotFoundError: If the artifact does not exist.
        ValueError: If it is not a JSON array of swap objects.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON array")
    try:
        swaps = [SwapRecord.from_dict(item) for item in raw]
    except (KeyError, TypeError, ArithmeticError) as e:
        raise ValueError(f"invalid swap entry in {path}: {e!r}") from e
    return sorted(swaps, key=lambda s: s.block)


def write_swaps(path: str | Path, swaps: list[SwapRecord]) -> Path:
    return write_json(path, [swap.to_dict() for swap in swaps])


def write_astro(path: str | Path, records: list[AstroRecord] | AstroRecord) -> Path:
    """Write a single astro object or an array of them."""
    if isinstance(records, AstroRecord):
        return write_json(path, records.to_dict())
    return write_json(path, [record.to_dict() for record in records])


def write_enriched(path: str | Path, records: list[EnrichedRecord]) -> Path:
    return write_json(path, [record.to_dict() for record in records])
