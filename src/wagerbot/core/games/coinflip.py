"""Coinflip: one 50/50 draw against the player's chosen side."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..rulesets import COINFLIP, CoinflipRuleset
from ..schemas import ActionKind, ChooseSideAction, CoinSide, Outcome, Variant
from .base import Game, Settlement, StepResult


class CoinflipPhase(str, Enum):
    AWAITING_CHOICE = "AWAITING_CHOICE"
    RESOLVED = "RESOLVED"


@dataclass
class CoinflipState:
    bet: int
    phase: CoinflipPhase = CoinflipPhase.AWAITING_CHOICE
    choice: Optional[CoinSide] = None
    result: Optional[CoinSide] = None
    won: Optional[bool] = None


class CoinflipGame(Game[CoinflipState]):
    variant = Variant.COINFLIP

    def __init__(self, ruleset: CoinflipRuleset = COINFLIP) -> None:
        self.ruleset = ruleset

    def start(self, bet: int, rng: random.Random, **options: Any) -> StepResult[CoinflipState]:
        return StepResult(CoinflipState(bet=bet))

    def step(self, state: CoinflipState, action: Any, rng: random.Random) -> StepResult[CoinflipState]:
        if state.phase != CoinflipPhase.AWAITING_CHOICE or not isinstance(action, ChooseSideAction):
            raise self.reject(state, action)

        result = CoinSide.HEADS if rng.random() < 0.5 else CoinSide.TAILS
        state.choice = action.side
        state.result = result
        state.won = result == action.side
        state.phase = CoinflipPhase.RESOLVED

        payout = state.bet * self.ruleset.win_multiplier if state.won else 0
        outcome = Outcome.WIN if state.won else Outcome.LOSE
        return StepResult(
            state,
            Settlement(outcome=outcome, payout=payout, detail={"choice": action.side.value, "result": result.value}),
        )

    def legal_actions(self, state: CoinflipState) -> List[ActionKind]:
        if state.phase == CoinflipPhase.AWAITING_CHOICE:
            return [ActionKind.CHOOSE_SIDE]
        return []

    def view(self, state: CoinflipState) -> Dict[str, Any]:
        return {
            "choice": state.choice.value if state.choice else None,
            "result": state.result.value if state.result else None,
            "won": state.won,
        }

    def multiplier(self, state: CoinflipState) -> float:
        return float(self.ruleset.win_multiplier)
