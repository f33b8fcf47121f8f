"""Seeded randomness helpers for deterministic games."""

import random
from typing import List, Sequence, TypeVar

T = TypeVar("T")


def build_rng(*, seed: int | None = None) -> random.Random:
    """Return a random generator, deterministic when ``seed`` is given."""
    return random.Random(seed)


def sample_cells(rng: random.Random, *, count: int, total_cells: int) -> List[int]:
    """Sample ``count`` distinct cell indices out of ``total_cells``.

    Args:
        rng: Random number generator
        count: Number of cells to pick
        total_cells: Size of the board (cells are 0-indexed)

    Returns:
        Sorted list of distinct cell indices
    """
    cells = rng.sample(range(total_cells), count)
    cells.sort()
    return cells


def shuffled(rng: random.Random, items: Sequence[T]) -> List[T]:
    """Return a shuffled copy of ``items``."""
    pool = list(items)
    rng.shuffle(pool)
    return pool
