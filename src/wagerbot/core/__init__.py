"""Core wagering engine: balances, sessions, games and timeouts."""

from . import amounts, errors, games, ledger, rulesets, schemas, sessions, storage, timeouts
from .engine import AccountLocks, WagerEngine

__all__ = [
    "AccountLocks",
    "WagerEngine",
    "amounts",
    "errors",
    "games",
    "ledger",
    "rulesets",
    "schemas",
    "sessions",
    "storage",
    "timeouts",
]
