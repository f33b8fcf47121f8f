"""Common contract for game-variant state machines."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from ..errors import InvalidAction
from ..schemas import ActionKind, Outcome, Variant

S = TypeVar("S")


@dataclass
class Settlement:
    """Terminal result of a game: what gets credited back to the account."""

    outcome: Outcome
    payout: int
    detail: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.payout < 0:
            raise ValueError("Payout cannot be negative")


@dataclass
class StepResult(Generic[S]):
    """New state plus a settlement when the transition was terminal."""

    state: S
    settlement: Optional[Settlement] = None

    @property
    def terminal(self) -> bool:
        return self.settlement is not None


class Game(ABC, Generic[S]):
    """Abstract base for all game variants.

    Implementations validate an action completely before touching ``state``;
    the engine additionally hands them a private copy, so a rejected action
    never leaks into the live session.
    """

    variant: Variant

    @abstractmethod
    def start(self, bet: int, rng: random.Random, **options: Any) -> StepResult[S]:
        """Build the initial state, drawing any pre-generated randomness."""

    @abstractmethod
    def step(self, state: S, action: Any, rng: random.Random) -> StepResult[S]:
        """Apply one player action."""

    @abstractmethod
    def legal_actions(self, state: S) -> List[ActionKind]:
        """Actions accepted in the current phase."""

    @abstractmethod
    def view(self, state: S) -> Dict[str, Any]:
        """Player-visible part of the state."""

    def multiplier(self, state: S) -> float:
        return 1.0

    def level(self, state: S) -> Optional[int]:
        return None

    def phase(self, state: S) -> str:
        value = getattr(state, "phase", "")
        return value.value if hasattr(value, "value") else str(value)

    def reject(self, state: S, action: Any) -> InvalidAction:
        kind = getattr(action, "kind", action)
        kind_name = kind.value if hasattr(kind, "value") else str(kind)
        return InvalidAction(
            f"'{kind_name}' is not valid for {self.variant.value} during {self.phase(state)}"
        )
