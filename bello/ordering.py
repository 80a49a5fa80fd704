from __future__ import annotations

import time
from typing import Iterable, Sequence, TypeVar

RANK_STEP = 1000.0
DUPLICATE_OFFSET = 100.0

T = TypeVar("T")


def default_position() -> float:
    """Millisecond timestamp: later inserts land after earlier ones."""
    return float(int(time.time() * 1000))


def ranked(count: int) -> list[float]:
    return [(rank + 1) * RANK_STEP for rank in range(count)]


def sort_cards(cards: Iterable[T], mode: str) -> list[T]:
    """Order cards for ``mode``.

    ``oldest`` / ``newest`` sort by ``(created_at, id)`` ascending or
    descending. ``abc`` compares ``content`` ordinally, so uppercase sorts
    before lowercase; ties fall back to id.
    """
    if mode == "oldest":
        return sorted(cards, key=lambda c: (c.created_at, c.id))
    if mode == "newest":
        return sorted(cards, key=lambda c: (c.created_at, c.id), reverse=True)
    if mode == "abc":
        return sorted(cards, key=lambda c: (c.content, c.id))
    raise ValueError(f"unknown sort mode: {mode!r}")


def append_after(existing: Sequence[float], count: int) -> list[float]:
    """Positions for ``count`` items appended after ``existing``."""
    base = max(existing) if existing else 0.0
    return [base + step for step in ranked(count)]
