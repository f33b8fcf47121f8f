"""Mines: reveal safe cells on a 5x5 board and cash out before hitting a bomb."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ..errors import InvalidAction, InvalidCellOrTile, UnknownVariant
from ..rulesets import DEFAULT_BOMBS, MinesRuleset, get_mines_ruleset
from ..schemas import ActionKind, CashoutAction, Outcome, RevealAction, Variant
from ...utils.rng import sample_cells
from .base import Game, Settlement, StepResult


class MinesPhase(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    BUSTED = "BUSTED"
    CASHED_OUT = "CASHED_OUT"


@dataclass
class MinesState:
    bet: int
    bombs: int
    bomb_cells: Set[int]
    revealed: Set[int] = field(default_factory=set)
    multiplier: float = 1.0
    phase: MinesPhase = MinesPhase.IN_PROGRESS
    hit_cell: Optional[int] = None


class MinesGame(Game[MinesState]):
    variant = Variant.MINES

    def start(self, bet: int, rng: random.Random, **options: Any) -> StepResult[MinesState]:
        bombs = options.get("bombs", DEFAULT_BOMBS)
        try:
            bombs = int(bombs)
        except (TypeError, ValueError) as exc:
            raise UnknownVariant(f"Bomb count must be an integer, got {bombs!r}") from exc
        ruleset = get_mines_ruleset(bombs)
        bomb_cells = set(sample_cells(rng, count=ruleset.bombs, total_cells=ruleset.cells))
        return StepResult(MinesState(bet=bet, bombs=ruleset.bombs, bomb_cells=bomb_cells))

    def ruleset(self, state: MinesState) -> MinesRuleset:
        return get_mines_ruleset(state.bombs)

    def step(self, state: MinesState, action: Any, rng: random.Random) -> StepResult[MinesState]:
        if state.phase != MinesPhase.IN_PROGRESS:
            raise self.reject(state, action)
        if isinstance(action, RevealAction):
            return self._reveal(state, action.cell)
        if isinstance(action, CashoutAction):
            if not state.revealed:
                raise InvalidAction("Cannot cash out before revealing a safe cell")
            return self._cash_out(state, Outcome.CASHED_OUT)
        raise self.reject(state, action)

    def _reveal(self, state: MinesState, cell: int) -> StepResult[MinesState]:
        ruleset = self.ruleset(state)
        if not (0 <= cell < ruleset.cells):
            raise InvalidCellOrTile(cell, f"cell must be between 0 and {ruleset.cells - 1}")
        if cell in state.revealed:
            raise InvalidCellOrTile(cell, "cell already revealed")

        state.revealed.add(cell)
        if cell in state.bomb_cells:
            state.phase = MinesPhase.BUSTED
            state.hit_cell = cell
            return StepResult(state, Settlement(outcome=Outcome.LOSE, payout=0, detail=self._detail(state)))

        state.multiplier = ruleset.multiplier_for(len(state.revealed))
        if len(state.revealed) == ruleset.safe_cells:
            return self._cash_out(state, Outcome.WIN)
        return StepResult(state)

    def _cash_out(self, state: MinesState, outcome: Outcome) -> StepResult[MinesState]:
        state.phase = MinesPhase.CASHED_OUT
        payout = self.ruleset(state).payout_for(state.bet, len(state.revealed))
        return StepResult(state, Settlement(outcome=outcome, payout=payout, detail=self._detail(state)))

    def _detail(self, state: MinesState) -> Dict[str, Any]:
        return {
            "bombs": state.bombs,
            "bomb_cells": sorted(state.bomb_cells),
            "revealed": sorted(state.revealed),
            "hit_cell": state.hit_cell,
            "multiplier": state.multiplier,
        }

    def legal_actions(self, state: MinesState) -> List[ActionKind]:
        if state.phase != MinesPhase.IN_PROGRESS:
            return []
        if state.revealed:
            return [ActionKind.REVEAL, ActionKind.CASHOUT]
        return [ActionKind.REVEAL]

    def view(self, state: MinesState) -> Dict[str, Any]:
        ruleset = self.ruleset(state)
        finished = state.phase != MinesPhase.IN_PROGRESS
        board: List[str] = []
        for cell in range(ruleset.cells):
            if cell in state.revealed:
                board.append("bomb" if cell in state.bomb_cells else "safe")
            elif finished and cell in state.bomb_cells:
                board.append("bomb")
            else:
                board.append("hidden")
        return {
            "bombs": state.bombs,
            "revealed": sorted(state.revealed),
            "safe_remaining": ruleset.safe_cells - len(state.revealed - state.bomb_cells),
            "next_multiplier": ruleset.multiplier_for(len(state.revealed) + 1),
            "board": board,
        }

    def multiplier(self, state: MinesState) -> float:
        return state.multiplier
