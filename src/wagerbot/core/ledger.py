"""Per-account integer balances with write-through persistence."""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from .errors import InsufficientBalance, PersistenceError
from .storage import BalanceStore

LOGGER = structlog.get_logger(__name__)


class BalanceLedger:
    """Holds every account's non-negative balance.

    A mutation is computed against a copy of the mapping, written to the
    store, and only then applied in memory; a write that keeps failing after
    ``persist_retries`` attempts raises :class:`PersistenceError` and leaves
    the balance untouched. Writes are serialized because each one replaces the
    whole file.
    """

    def __init__(
        self,
        store: BalanceStore,
        *,
        persist_retries: int = 3,
        retry_delay: float = 0.05,
        balances: Optional[Dict[str, int]] = None,
    ) -> None:
        if persist_retries < 1:
            raise ValueError("persist_retries must be at least 1")
        self._store = store
        self._persist_retries = persist_retries
        self._retry_delay = retry_delay
        self._balances: Dict[str, int] = dict(balances or {})
        self._write_lock = asyncio.Lock()

    @classmethod
    def load(cls, store: BalanceStore, **kwargs) -> "BalanceLedger":
        """Build a ledger from whatever the store currently holds."""
        balances = store.load()
        LOGGER.info("ledger.loaded", accounts=len(balances))
        return cls(store, balances=balances, **kwargs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, account_id: str) -> int:
        return self._balances.get(account_id, 0)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._balances)

    def top(self, limit: int = 10) -> List[Tuple[str, int]]:
        """Richest accounts first, ties broken by account id."""
        ranked = sorted(self._balances.items(), key=lambda item: (-item[1], item[0]))
        return ranked[: max(0, limit)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def credit(self, account_id: str, amount: int) -> int:
        _require_positive(amount)
        return await self._commit(account_id, "credit", lambda current: current + amount)

    async def debit(self, account_id: str, amount: int) -> int:
        _require_positive(amount)

        def _apply(current: int) -> int:
            if amount > current:
                raise InsufficientBalance(account_id, amount, current)
            return current - amount

        return await self._commit(account_id, "debit", _apply)

    async def set_absolute(self, account_id: str, amount: int) -> int:
        if amount < 0:
            raise ValueError("Balance cannot be negative")
        return await self._commit(account_id, "set", lambda _current: amount)

    async def remove(self, account_id: str, amount: int) -> int:
        """Administrative removal; clamps at zero instead of failing."""
        _require_positive(amount)
        return await self._commit(account_id, "remove", lambda current: max(0, current - amount))

    async def _commit(self, account_id: str, operation: str, compute: Callable[[int], int]) -> int:
        async with self._write_lock:
            before = self.get_balance(account_id)
            after = compute(before)
            if after < 0:  # pragma: no cover - compute functions never go negative
                raise ValueError(f"Refusing to store negative balance for {account_id}")
            pending = dict(self._balances)
            pending[account_id] = after
            await self._persist(pending)
            self._balances[account_id] = after

        LOGGER.info(f"ledger.{operation}", account_id=account_id, before=before, after=after)
        return after

    async def _persist(self, pending: Dict[str, int]) -> None:
        last_error: Optional[Exception] = None
        for attempt in range(1, self._persist_retries + 1):
            try:
                await asyncio.to_thread(self._store.save, pending)
                return
            except Exception as exc:
                last_error = exc
                LOGGER.warning("ledger.persist_retry", attempt=attempt, error=str(exc))
                if attempt < self._persist_retries:
                    await asyncio.sleep(self._retry_delay)
        raise PersistenceError(
            f"Could not persist balances after {self._persist_retries} attempts: {last_error}"
        ) from last_error


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Amount must be a positive integer, got {amount!r}")
