"""Payout tables for every game variant.

This module defines the fixed odds each variant plays with: mines bomb
counts and their target multipliers, the tower multiplier schedule, dealer
rules for blackjack and the higher/lower number range.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List

from .errors import UnknownVariant

BOARD_CELLS = 25


@dataclass(frozen=True)
class CoinflipRuleset:
    """A single 50/50 flip."""

    win_multiplier: int = 2


@dataclass(frozen=True)
class BlackjackRuleset:
    """Dealer behaviour and payouts for a single-deck blackjack hand."""

    dealer_stands_on: int = 17
    bust_above: int = 21
    win_multiplier: int = 2
    natural_multiplier: float = 2.5

    def __post_init__(self) -> None:
        if self.dealer_stands_on > self.bust_above:
            raise ValueError("Dealer must stand at or below the bust limit")


@dataclass(frozen=True)
class MinesRuleset:
    """Defines a mines board with a given number of bombs."""

    bombs: int
    max_multiplier: float
    cells: int = BOARD_CELLS

    def __post_init__(self) -> None:
        if not (1 <= self.bombs < self.cells):
            raise ValueError(f"Bomb count must be between 1 and {self.cells - 1}")
        if self.max_multiplier < 1.0:
            raise ValueError("Maximum multiplier must be at least 1.0")

    @property
    def safe_cells(self) -> int:
        return self.cells - self.bombs

    @property
    def step(self) -> float:
        """Multiplier gained per safe reveal."""
        return (self.max_multiplier - 1.0) / self.safe_cells

    def multiplier_for(self, revealed: int) -> float:
        """Multiplier after ``revealed`` safe cells.

        Computed from the count rather than accumulated so that revealing every
        safe cell lands exactly on :attr:`max_multiplier`.
        """
        if revealed >= self.safe_cells:
            return self.max_multiplier
        return round(1.0 + revealed * self.step, 6)

    def payout_for(self, bet: int, revealed: int) -> int:
        """``floor(bet * multiplier)`` after ``revealed`` safe cells, in exact arithmetic."""
        revealed = max(0, min(revealed, self.safe_cells))
        gain = (Fraction(str(self.max_multiplier)) - 1) * revealed / self.safe_cells
        return int(bet * (1 + gain))


@dataclass(frozen=True)
class HigherLowerRuleset:
    """Range both numbers are drawn from; ties always lose."""

    low: int = 1
    high: int = 10
    win_multiplier: int = 2

    def __post_init__(self) -> None:
        if self.low >= self.high:
            raise ValueError("Range must contain at least two numbers")


@dataclass(frozen=True)
class TowerRuleset:
    """Levels, tiles per level and the cashout multiplier per level reached."""

    levels: int = 10
    tiles: int = 3
    multipliers: List[float] = field(
        default_factory=lambda: [1.0, 1.2, 1.5, 1.9, 2.4, 3.0, 3.8, 4.8, 6.0, 7.5, 10.0]
    )

    def __post_init__(self) -> None:
        if len(self.multipliers) != self.levels + 1:
            raise ValueError(f"Tower schedule needs {self.levels + 1} entries (levels 0..{self.levels})")
        if self.multipliers[0] != 1.0:
            raise ValueError("Tower schedule must start at 1.0")
        if any(b <= a for a, b in zip(self.multipliers, self.multipliers[1:])):
            raise ValueError("Tower schedule must be strictly increasing")

    @property
    def max_multiplier(self) -> float:
        return self.multipliers[-1]

    def multiplier_for(self, level: int) -> float:
        return self.multipliers[max(0, min(level, self.levels))]


COINFLIP = CoinflipRuleset()
BLACKJACK = BlackjackRuleset()
HIGHER_LOWER = HigherLowerRuleset()
TOWER = TowerRuleset()

# Supported mines boards keyed by bomb count
MINES_RULESETS: Dict[int, MinesRuleset] = {
    5: MinesRuleset(bombs=5, max_multiplier=1.5),
    7: MinesRuleset(bombs=7, max_multiplier=2.0),
    12: MinesRuleset(bombs=12, max_multiplier=3.0),
}

DEFAULT_BOMBS = 5


def get_mines_ruleset(bombs: int) -> MinesRuleset:
    """Get the mines board for a bomb count.

    Raises:
        UnknownVariant: If no board is defined for ``bombs``
    """
    if bombs not in MINES_RULESETS:
        available = ", ".join(map(str, get_available_bomb_counts()))
        raise UnknownVariant(f"No mines board with {bombs} bombs. Available: {available}")
    return MINES_RULESETS[bombs]


def get_available_bomb_counts() -> List[int]:
    return sorted(MINES_RULESETS.keys())
