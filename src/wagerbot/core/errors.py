"""Exceptions raised by the wagering engine.

Every error is reported synchronously to the caller and is raised before any
state is mutated, so a rejected request leaves balances and sessions exactly
as they were.
"""

from __future__ import annotations

from typing import Optional


class WagerError(Exception):
    """Base class for all engine errors."""

    code = "wager_error"


class InsufficientBalance(WagerError):
    """Raised when a debit or bet exceeds the account balance."""

    code = "insufficient_balance"

    def __init__(self, account_id: str, requested: int, available: int) -> None:
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(f"Account {account_id} has {available}, needs {requested}")


class BelowMinimumBet(WagerError):
    """Raised when a bet is smaller than the configured floor."""

    code = "below_minimum_bet"

    def __init__(self, bet: int, minimum: int) -> None:
        self.bet = bet
        self.minimum = minimum
        super().__init__(f"Bet {bet} is below the minimum of {minimum}")


class SessionAlreadyActive(WagerError):
    """Raised when an account tries to open a second game."""

    code = "session_already_active"

    def __init__(self, account_id: str, variant: Optional[str] = None) -> None:
        self.account_id = account_id
        self.variant = variant
        suffix = f" ({variant})" if variant else ""
        super().__init__(f"Account {account_id} already has an active game{suffix}")


class SessionNotFound(WagerError):
    """Raised when no active game exists, e.g. after it expired."""

    code = "session_not_found"

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id} has no active game")


class InvalidAction(WagerError):
    """Raised when an action is not legal in the current game phase."""

    code = "invalid_action"


class UnknownVariant(InvalidAction):
    """Raised for unsupported game variants or variant options."""

    code = "unknown_variant"


class InvalidCellOrTile(WagerError):
    """Raised for an out-of-range or already revealed cell/tile."""

    code = "invalid_cell_or_tile"

    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"Invalid selection {index}: {reason}")


class MalformedAmount(WagerError):
    """Raised when a magnitude string such as ``"500K"`` cannot be parsed."""

    code = "malformed_amount"

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"Cannot parse amount {text!r}")


class PersistenceError(WagerError):
    """Raised when the balance store could not be written after retries."""

    code = "persistence_error"
