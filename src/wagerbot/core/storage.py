"""Durable balance stores loaded at startup and rewritten after every mutation."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Protocol

import orjson


class BalanceStore(Protocol):
    """Persistence collaborator used by :class:`~wagerbot.core.ledger.BalanceLedger`."""

    def load(self) -> Dict[str, int]:
        ...

    def save(self, balances: Mapping[str, int]) -> None:
        ...


class StoreFormatError(ValueError):
    """Raised when the balances file does not hold an account -> integer mapping."""


class JsonBalanceStore:
    """Flat JSON object of account id to balance, replaced atomically on save."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, int]:
        if not self.path.exists():
            return {}
        raw = self.path.read_bytes()
        if not raw.strip():
            return {}
        data = orjson.loads(raw)
        if not isinstance(data, dict):
            raise StoreFormatError(f"{self.path} must contain a JSON object")

        balances: Dict[str, int] = {}
        for key, value in data.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise StoreFormatError(f"Invalid balance for {key!r} in {self.path}: {value!r}")
            balances[str(key)] = value
        return balances

    def save(self, balances: Mapping[str, int]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = orjson.dumps(dict(balances), option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class MemoryBalanceStore:
    """Keeps the last saved mapping in memory; used when embedding the engine."""

    def __init__(self, initial: Mapping[str, int] | None = None) -> None:
        self.data: Dict[str, int] = dict(initial or {})
        self.saves = 0

    def load(self) -> Dict[str, int]:
        return dict(self.data)

    def save(self, balances: Mapping[str, int]) -> None:
        self.data = dict(balances)
        self.saves += 1
