"""Tower: climb ten levels by picking the one safe tile out of three."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..amounts import apply_multiplier
from ..errors import InvalidAction, InvalidCellOrTile
from ..rulesets import TOWER, TowerRuleset
from ..schemas import ActionKind, CashoutAction, ChooseTileAction, Outcome, Variant
from .base import Game, Settlement, StepResult


class TowerPhase(str, Enum):
    CLIMBING = "CLIMBING"
    FAILED = "FAILED"
    COMPLETED = "COMPLETED"
    CASHED_OUT = "CASHED_OUT"


@dataclass
class TowerState:
    bet: int
    safe_tiles: List[int]
    level: int = 0
    phase: TowerPhase = TowerPhase.CLIMBING
    picks: List[int] = field(default_factory=list)
    failed_tile: Optional[int] = None


class TowerGame(Game[TowerState]):
    variant = Variant.TOWER

    def __init__(self, ruleset: TowerRuleset = TOWER) -> None:
        self.ruleset = ruleset

    def start(self, bet: int, rng: random.Random, **options: Any) -> StepResult[TowerState]:
        # The whole path is fixed up front; picks never re-roll a level
        safe_tiles = [rng.randrange(self.ruleset.tiles) for _ in range(self.ruleset.levels)]
        return StepResult(TowerState(bet=bet, safe_tiles=safe_tiles))

    def step(self, state: TowerState, action: Any, rng: random.Random) -> StepResult[TowerState]:
        if state.phase != TowerPhase.CLIMBING:
            raise self.reject(state, action)
        if isinstance(action, ChooseTileAction):
            return self._choose(state, action.tile)
        if isinstance(action, CashoutAction):
            if state.level == 0:
                raise InvalidAction("Cannot cash out before clearing the first level")
            state.phase = TowerPhase.CASHED_OUT
            return self._settle(state, Outcome.CASHED_OUT, apply_multiplier(state.bet, self.multiplier(state)))
        raise self.reject(state, action)

    def _choose(self, state: TowerState, tile: int) -> StepResult[TowerState]:
        if not (0 <= tile < self.ruleset.tiles):
            raise InvalidCellOrTile(tile, f"tile must be between 0 and {self.ruleset.tiles - 1}")

        state.picks.append(tile)
        if tile != state.safe_tiles[state.level]:
            state.phase = TowerPhase.FAILED
            state.failed_tile = tile
            return self._settle(state, Outcome.LOSE, 0)

        state.level += 1
        if state.level == self.ruleset.levels:
            state.phase = TowerPhase.COMPLETED
            return self._settle(state, Outcome.WIN, apply_multiplier(state.bet, self.ruleset.max_multiplier))
        return StepResult(state)

    def _settle(self, state: TowerState, outcome: Outcome, payout: int) -> StepResult[TowerState]:
        detail = {
            "level_reached": state.level,
            "picks": list(state.picks),
            "safe_tiles": list(state.safe_tiles[: len(state.picks)]),
            "multiplier": self.multiplier(state) if outcome != Outcome.LOSE else 0.0,
        }
        return StepResult(state, Settlement(outcome=outcome, payout=payout, detail=detail))

    def legal_actions(self, state: TowerState) -> List[ActionKind]:
        if state.phase != TowerPhase.CLIMBING:
            return []
        if state.level > 0:
            return [ActionKind.CHOOSE_TILE, ActionKind.CASHOUT]
        return [ActionKind.CHOOSE_TILE]

    def view(self, state: TowerState) -> Dict[str, Any]:
        return {
            "level": state.level,
            "levels": self.ruleset.levels,
            "tiles": self.ruleset.tiles,
            "picks": list(state.picks),
            "next_multiplier": self.ruleset.multiplier_for(state.level + 1),
        }

    def multiplier(self, state: TowerState) -> float:
        return self.ruleset.multiplier_for(state.level)

    def level(self, state: TowerState) -> Optional[int]:
        return state.level
