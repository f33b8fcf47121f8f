"""Pydantic contracts for player actions and engine reports."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import InvalidAction


class Variant(str, Enum):
    """Game variants."""
    COINFLIP = "coinflip"
    BLACKJACK = "blackjack"
    MINES = "mines"
    HIGHER_LOWER = "higherlower"
    TOWER = "tower"


class ActionKind(str, Enum):
    """Action types."""
    CHOOSE_SIDE = "choose_side"
    HIT = "hit"
    STAND = "stand"
    REVEAL = "reveal"
    GUESS = "guess"
    CHOOSE_TILE = "choose_tile"
    CASHOUT = "cashout"


class CoinSide(str, Enum):
    HEADS = "heads"
    TAILS = "tails"


class Direction(str, Enum):
    HIGHER = "higher"
    LOWER = "lower"


class Outcome(str, Enum):
    """Settlement outcomes."""
    WIN = "win"
    LOSE = "lose"
    PUSH = "push"
    CASHED_OUT = "cashed_out"
    REFUNDED = "refunded"


class ChooseSideAction(BaseModel):
    """Pick a coin side."""
    kind: Literal[ActionKind.CHOOSE_SIDE] = ActionKind.CHOOSE_SIDE
    side: CoinSide


class HitAction(BaseModel):
    kind: Literal[ActionKind.HIT] = ActionKind.HIT


class StandAction(BaseModel):
    kind: Literal[ActionKind.STAND] = ActionKind.STAND


class RevealAction(BaseModel):
    """Reveal a mines cell (0-24, row-major)."""
    kind: Literal[ActionKind.REVEAL] = ActionKind.REVEAL
    cell: int


class GuessAction(BaseModel):
    """Guess whether the next number is higher or lower."""
    kind: Literal[ActionKind.GUESS] = ActionKind.GUESS
    direction: Direction


class ChooseTileAction(BaseModel):
    """Pick a tower tile (0-2) on the current level."""
    kind: Literal[ActionKind.CHOOSE_TILE] = ActionKind.CHOOSE_TILE
    tile: int


class CashoutAction(BaseModel):
    """Stop playing and collect the current multiplier."""
    kind: Literal[ActionKind.CASHOUT] = ActionKind.CASHOUT


GameAction = Annotated[
    Union[
        ChooseSideAction,
        HitAction,
        StandAction,
        RevealAction,
        GuessAction,
        ChooseTileAction,
        CashoutAction,
    ],
    Field(discriminator="kind"),
]

_ACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(GameAction)


def validate_action(payload: Union[Dict[str, Any], BaseModel]) -> Any:
    """Validate a raw action payload and return the typed action or raise InvalidAction."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return _ACTION_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise InvalidAction(f"Malformed action: {exc.errors(include_url=False)}") from exc


class SessionSnapshot(BaseModel):
    """Renderable view of an active game."""

    session_id: str
    account_id: str
    variant: Variant
    bet: int
    phase: str
    multiplier: float = 1.0
    level: Optional[int] = None
    view: Dict[str, Any] = Field(default_factory=dict)
    legal_actions: List[ActionKind] = Field(default_factory=list)
    created_at: float
    deadline: float


class SettlementReport(BaseModel):
    """Final result of a game, credited to the account."""

    account_id: str
    variant: Variant
    outcome: Outcome
    bet: int
    payout: int
    balance: int
    detail: Dict[str, Any] = Field(default_factory=dict)

    @property
    def net(self) -> int:
        return self.payout - self.bet


class GameReport(BaseModel):
    """What a front-end gets back after starting a game or acting in one.

    Exactly one of ``session`` (game still running) and ``settlement`` (game
    finished) is set.
    """

    account_id: str
    balance: int
    session: Optional[SessionSnapshot] = None
    settlement: Optional[SettlementReport] = None
