"""Engine configuration loaded from JSON with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import orjson
from dotenv import load_dotenv

from ..core.amounts import parse_amount

DEFAULT_CONFIG_PATH = Path("config/wagerbot.json")
DEFAULT_BALANCES_PATH = Path("data/balances.json")
ENV_PREFIX = "WAGERBOT_"


@dataclass
class EngineConfig:
    """Policy knobs for the wagering engine."""

    balances_path: Path = field(default_factory=lambda: DEFAULT_BALANCES_PATH)
    min_bet: int = 1
    session_timeout: float = 120.0  # seconds of inactivity before a refund
    persist_retries: int = 3
    persist_retry_delay: float = 0.05
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self.balances_path = Path(self.balances_path)
        if self.min_bet < 1:
            raise ValueError("min_bet must be at least 1")
        if self.session_timeout <= 0:
            raise ValueError("session_timeout must be positive")
        if self.persist_retries < 1:
            raise ValueError("persist_retries must be at least 1")
        if self.persist_retry_delay < 0:
            raise ValueError("persist_retry_delay cannot be negative")


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    mapping = {
        "BALANCES_PATH": "balances_path",
        "MIN_BET": "min_bet",
        "SESSION_TIMEOUT": "session_timeout",
        "PERSIST_RETRIES": "persist_retries",
        "SEED": "seed",
    }
    for suffix, key in mapping.items():
        value = os.getenv(f"{ENV_PREFIX}{suffix}")
        if value not in (None, ""):
            overrides[key] = value
    return overrides


def load_engine_config(path: Path = DEFAULT_CONFIG_PATH, *, use_env: bool = True) -> EngineConfig:
    """Load engine configuration from disk, falling back to defaults.

    Values from ``WAGERBOT_*`` environment variables (a ``.env`` file is
    honoured) take precedence over the JSON file.
    """

    data: Dict[str, Any] = {}
    if path.exists():
        raw = orjson.loads(path.read_bytes())
        if not isinstance(raw, dict):
            raise ValueError(f"{path} must contain a JSON object")
        data.update(raw)

    if use_env:
        load_dotenv()
        data.update(_env_overrides())

    kwargs: Dict[str, Any] = {}
    if "balances_path" in data:
        kwargs["balances_path"] = Path(str(data["balances_path"]))
    if "min_bet" in data:
        # Accept "1K" style values as well as plain integers
        kwargs["min_bet"] = parse_amount(data["min_bet"])
    if "session_timeout" in data:
        kwargs["session_timeout"] = float(data["session_timeout"])
    if "persist_retries" in data:
        kwargs["persist_retries"] = int(data["persist_retries"])
    if "persist_retry_delay" in data:
        kwargs["persist_retry_delay"] = float(data["persist_retry_delay"])
    if data.get("seed") not in (None, ""):
        kwargs["seed"] = int(data["seed"])

    return EngineConfig(**kwargs)
