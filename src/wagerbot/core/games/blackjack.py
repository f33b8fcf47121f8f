"""Single-deck blackjack against a dealer who stands on 17."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..amounts import apply_multiplier
from ..rulesets import BLACKJACK, BlackjackRuleset
from ..schemas import ActionKind, HitAction, Outcome, StandAction, Variant
from ...utils.rng import shuffled
from .base import Game, Settlement, StepResult

SUITS = ("♠", "♥", "♦", "♣")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")
FACE_RANKS = {"J", "Q", "K"}


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    @property
    def value(self) -> int:
        """Ace counts 11 here; :func:`hand_value` demotes it when needed."""
        if self.rank == "A":
            return 11
        if self.rank in FACE_RANKS:
            return 10
        return int(self.rank)

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"


def build_deck() -> List[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]


def hand_value(cards: Iterable[Card]) -> int:
    """Sum card values, demoting aces from 11 to 1 while the total is over 21.

    >>> hand_value([Card("A", "♠"), Card("A", "♥"), Card("9", "♦")])
    21
    >>> hand_value([Card("K", "♠"), Card("Q", "♥"), Card("A", "♦")])
    21
    """
    cards = list(cards)
    total = sum(card.value for card in cards)
    aces = sum(1 for card in cards if card.rank == "A")
    while total > 21 and aces:
        total -= 10
        aces -= 1
    return total


def is_natural(cards: List[Card]) -> bool:
    return len(cards) == 2 and hand_value(cards) == 21


class BlackjackPhase(str, Enum):
    PLAYER_TURN = "PLAYER_TURN"
    DEALER_TURN = "DEALER_TURN"
    RESOLVED = "RESOLVED"


@dataclass
class BlackjackState:
    bet: int
    deck: List[Card]
    player: List[Card] = field(default_factory=list)
    dealer: List[Card] = field(default_factory=list)
    phase: BlackjackPhase = BlackjackPhase.PLAYER_TURN
    outcome: Optional[Outcome] = None
    natural: bool = False


class BlackjackGame(Game[BlackjackState]):
    variant = Variant.BLACKJACK

    def __init__(self, ruleset: BlackjackRuleset = BLACKJACK) -> None:
        self.ruleset = ruleset

    def start(self, bet: int, rng: random.Random, **options: Any) -> StepResult[BlackjackState]:
        state = BlackjackState(bet=bet, deck=shuffled(rng, build_deck()))
        for _ in range(2):
            state.player.append(state.deck.pop())
            state.dealer.append(state.deck.pop())

        # A natural on the opening deal settles immediately instead of being redealt
        if is_natural(state.player):
            state.natural = True
            if is_natural(state.dealer):
                return self._resolve(state, Outcome.PUSH, state.bet)
            return self._resolve(state, Outcome.WIN, apply_multiplier(bet, self.ruleset.natural_multiplier))
        return StepResult(state)

    def step(self, state: BlackjackState, action: Any, rng: random.Random) -> StepResult[BlackjackState]:
        if state.phase != BlackjackPhase.PLAYER_TURN:
            raise self.reject(state, action)

        if isinstance(action, HitAction):
            state.player.append(state.deck.pop())
            if hand_value(state.player) > self.ruleset.bust_above:
                return self._resolve(state, Outcome.LOSE, 0)
            return StepResult(state)

        if isinstance(action, StandAction):
            state.phase = BlackjackPhase.DEALER_TURN
            while hand_value(state.dealer) < self.ruleset.dealer_stands_on:
                state.dealer.append(state.deck.pop())
            return self._compare(state)

        raise self.reject(state, action)

    def _compare(self, state: BlackjackState) -> StepResult[BlackjackState]:
        player = hand_value(state.player)
        dealer = hand_value(state.dealer)
        if dealer > self.ruleset.bust_above or player > dealer:
            return self._resolve(state, Outcome.WIN, state.bet * self.ruleset.win_multiplier)
        if player == dealer:
            return self._resolve(state, Outcome.PUSH, state.bet)
        return self._resolve(state, Outcome.LOSE, 0)

    def _resolve(self, state: BlackjackState, outcome: Outcome, payout: int) -> StepResult[BlackjackState]:
        state.phase = BlackjackPhase.RESOLVED
        state.outcome = outcome
        detail = {
            "player": [str(card) for card in state.player],
            "dealer": [str(card) for card in state.dealer],
            "player_value": hand_value(state.player),
            "dealer_value": hand_value(state.dealer),
            "natural": state.natural,
        }
        return StepResult(state, Settlement(outcome=outcome, payout=payout, detail=detail))

    def legal_actions(self, state: BlackjackState) -> List[ActionKind]:
        if state.phase == BlackjackPhase.PLAYER_TURN:
            return [ActionKind.HIT, ActionKind.STAND]
        return []

    def view(self, state: BlackjackState) -> Dict[str, Any]:
        hidden = state.phase == BlackjackPhase.PLAYER_TURN
        dealer_cards = [str(state.dealer[0]), "??"] if hidden else [str(card) for card in state.dealer]
        return {
            "player": [str(card) for card in state.player],
            "player_value": hand_value(state.player),
            "dealer": dealer_cards,
            "dealer_value": state.dealer[0].value if hidden else hand_value(state.dealer),
            "outcome": state.outcome.value if state.outcome else None,
        }

    def multiplier(self, state: BlackjackState) -> float:
        return float(self.ruleset.win_multiplier)
