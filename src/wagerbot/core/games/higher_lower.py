"""Higher/lower: guess whether a freshly drawn number beats the shown one."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..rulesets import HIGHER_LOWER, HigherLowerRuleset
from ..schemas import ActionKind, Direction, GuessAction, Outcome, Variant
from .base import Game, Settlement, StepResult


class HigherLowerPhase(str, Enum):
    AWAITING_GUESS = "AWAITING_GUESS"
    RESOLVED = "RESOLVED"


@dataclass
class HigherLowerState:
    bet: int
    current: int
    phase: HigherLowerPhase = HigherLowerPhase.AWAITING_GUESS
    guess: Optional[Direction] = None
    drawn: Optional[int] = None
    won: Optional[bool] = None


class HigherLowerGame(Game[HigherLowerState]):
    variant = Variant.HIGHER_LOWER

    def __init__(self, ruleset: HigherLowerRuleset = HIGHER_LOWER) -> None:
        self.ruleset = ruleset

    def start(self, bet: int, rng: random.Random, **options: Any) -> StepResult[HigherLowerState]:
        current = rng.randint(self.ruleset.low, self.ruleset.high)
        return StepResult(HigherLowerState(bet=bet, current=current))

    def step(self, state: HigherLowerState, action: Any, rng: random.Random) -> StepResult[HigherLowerState]:
        if state.phase != HigherLowerPhase.AWAITING_GUESS or not isinstance(action, GuessAction):
            raise self.reject(state, action)

        drawn = rng.randint(self.ruleset.low, self.ruleset.high)
        # A tie never wins
        if action.direction == Direction.HIGHER:
            won = drawn > state.current
        else:
            won = drawn < state.current

        state.guess = action.direction
        state.drawn = drawn
        state.won = won
        state.phase = HigherLowerPhase.RESOLVED
        payout = state.bet * self.ruleset.win_multiplier if won else 0
        return StepResult(
            state,
            Settlement(
                outcome=Outcome.WIN if won else Outcome.LOSE,
                payout=payout,
                detail={"current": state.current, "drawn": drawn, "guess": action.direction.value},
            ),
        )

    def legal_actions(self, state: HigherLowerState) -> List[ActionKind]:
        if state.phase == HigherLowerPhase.AWAITING_GUESS:
            return [ActionKind.GUESS]
        return []

    def view(self, state: HigherLowerState) -> Dict[str, Any]:
        return {
            "current": state.current,
            "range": [self.ruleset.low, self.ruleset.high],
            "drawn": state.drawn,
            "won": state.won,
        }

    def multiplier(self, state: HigherLowerState) -> float:
        return float(self.ruleset.win_multiplier)
