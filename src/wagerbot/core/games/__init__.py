"""Game-variant state machines."""

from __future__ import annotations

from typing import Any, Dict, Union

from ..errors import UnknownVariant
from ..schemas import Variant
from .base import Game, Settlement, StepResult
from .blackjack import BlackjackGame
from .coinflip import CoinflipGame
from .higher_lower import HigherLowerGame
from .mines import MinesGame
from .tower import TowerGame

GAMES: Dict[Variant, Game[Any]] = {
    Variant.COINFLIP: CoinflipGame(),
    Variant.BLACKJACK: BlackjackGame(),
    Variant.MINES: MinesGame(),
    Variant.HIGHER_LOWER: HigherLowerGame(),
    Variant.TOWER: TowerGame(),
}


def parse_variant(value: Union[str, Variant]) -> Variant:
    if isinstance(value, Variant):
        return value
    normalized = str(value).strip().lower().replace("-", "").replace("_", "").replace(" ", "")
    try:
        return Variant(normalized)
    except ValueError as exc:
        available = ", ".join(v.value for v in Variant)
        raise UnknownVariant(f"Unknown game {value!r}. Available: {available}") from exc


def get_game(variant: Union[str, Variant]) -> Game[Any]:
    return GAMES[parse_variant(variant)]


__all__ = [
    "GAMES",
    "Game",
    "Settlement",
    "StepResult",
    "get_game",
    "parse_variant",
]
