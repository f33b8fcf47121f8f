"""Wagering session engine for chat-bot casino games."""

from .core import amounts, engine, errors, games, ledger, rulesets, schemas, sessions, storage, timeouts
from .core.engine import WagerEngine
from .core.amounts import format_amount, parse_amount
from .config.settings import EngineConfig, load_engine_config

__all__ = [
    "EngineConfig",
    "WagerEngine",
    "amounts",
    "engine",
    "errors",
    "format_amount",
    "games",
    "ledger",
    "load_engine_config",
    "parse_amount",
    "rulesets",
    "schemas",
    "sessions",
    "storage",
    "timeouts",
]
