"""Wagering engine: escrow, per-account serialization, settlement and refunds."""

from __future__ import annotations

import asyncio
import copy
import inspect
import random
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import structlog

from ..config.settings import EngineConfig
from ..utils.rng import build_rng
from .amounts import parse_amount
from .errors import BelowMinimumBet, InsufficientBalance, PersistenceError, SessionAlreadyActive
from .games import get_game, parse_variant
from .games.base import Settlement, StepResult
from .ledger import BalanceLedger
from .schemas import (
    CashoutAction,
    GameReport,
    Outcome,
    SessionSnapshot,
    SettlementReport,
    Variant,
    validate_action,
)
from .sessions import Session, SessionRegistry
from .storage import BalanceStore, JsonBalanceStore
from .timeouts import TimeoutSupervisor

LOGGER = structlog.get_logger(__name__)

TimeoutCallback = Callable[[SettlementReport], Union[None, Awaitable[None]]]


class AccountLocks:
    """One :class:`asyncio.Lock` per account id, created on first use."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[None]:
        async with self.get(account_id):
            yield

    def locked(self, account_id: str) -> bool:
        lock = self._locks.get(account_id)
        return bool(lock and lock.locked())


class WagerEngine:
    """Coordinates the ledger, session registry and timeout supervisor.

    Every operation that touches an account runs inside that account's lock:
    starting a game (check, debit, create, arm), acting in one (validate,
    transition, settle or re-arm), administrative balance changes and timer
    expiry. Different accounts never wait on each other.
    """

    def __init__(
        self,
        *,
        ledger: BalanceLedger,
        config: Optional[EngineConfig] = None,
        registry: Optional[SessionRegistry] = None,
        rng: Optional[random.Random] = None,
        on_timeout: Optional[TimeoutCallback] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or EngineConfig()
        self.ledger = ledger
        self.registry = registry or SessionRegistry()
        self.rng = rng or build_rng(seed=self.config.seed)
        self.on_timeout = on_timeout
        self._clock = clock
        self._locks = AccountLocks()
        self.supervisor = TimeoutSupervisor(self._expire, clock=clock)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        *,
        store: Optional[BalanceStore] = None,
        on_timeout: Optional[TimeoutCallback] = None,
    ) -> "WagerEngine":
        """Load balances from ``store`` (the configured JSON file by default)."""
        store = store if store is not None else JsonBalanceStore(config.balances_path)
        ledger = BalanceLedger.load(
            store,
            persist_retries=config.persist_retries,
            retry_delay=config.persist_retry_delay,
        )
        return cls(ledger=ledger, config=config, on_timeout=on_timeout)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, account_id: str) -> int:
        return self.ledger.get_balance(account_id)

    def snapshot(self, account_id: str) -> Optional[SessionSnapshot]:
        session = self.registry.get(account_id)
        if session is None:
            return None
        return self._snapshot(session)

    def active_accounts(self) -> List[str]:
        return self.registry.accounts()

    # ------------------------------------------------------------------
    # Game lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        account_id: str,
        variant: Union[str, Variant],
        bet: Union[str, int],
        *,
        min_bet: Optional[int] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> GameReport:
        """Escrow ``bet`` and open a new game for ``account_id``.

        ``min_bet`` lets the caller impose a stricter floor than the
        configured one; it can never lower it.
        """

        variant = parse_variant(variant)
        game = get_game(variant)
        amount = parse_amount(bet)
        floor = max(self.config.min_bet, min_bet or 0, 1)
        if amount < floor:
            raise BelowMinimumBet(amount, floor)

        async with self._locks.hold(account_id):
            existing = self.registry.get(account_id)
            if existing is not None:
                raise SessionAlreadyActive(account_id, existing.variant.value)
            balance = self.ledger.get_balance(account_id)
            if amount > balance:
                raise InsufficientBalance(account_id, amount, balance)

            # Option errors (e.g. unsupported bomb count) surface before any debit
            opening = game.start(amount, self.rng, **dict(options or {}))
            await self.ledger.debit(account_id, amount)
            session = self.registry.try_create(
                account_id,
                Session(
                    account_id=account_id,
                    variant=variant,
                    bet=amount,
                    state=opening.state,
                    created_at=self._clock(),
                ),
            )
            LOGGER.info(
                "session.start",
                account_id=account_id,
                variant=variant.value,
                bet=amount,
                session_id=session.session_id,
            )

            if opening.terminal:
                return await self._settle(session, opening)

            session.deadline = self._arm(session)
            return GameReport(
                account_id=account_id,
                balance=self.ledger.get_balance(account_id),
                session=self._snapshot(session),
            )

    async def act(self, account_id: str, action: Any) -> GameReport:
        """Apply one player action to the account's active game."""

        action = validate_action(action)
        async with self._locks.hold(account_id):
            session = self.registry.require(account_id)
            game = get_game(session.variant)

            if session.pending is not None:
                # The game already finished; only the credit is outstanding
                return await self._settle(session, StepResult(session.state, session.pending))

            working = copy.deepcopy(session.state)
            result = game.step(working, action, self.rng)
            if result.terminal:
                return await self._settle(session, result)

            session.state = result.state
            session.deadline = self._arm(session)
            LOGGER.debug(
                "session.step",
                account_id=account_id,
                variant=session.variant.value,
                action=action.kind.value,
            )
            return GameReport(
                account_id=account_id,
                balance=self.ledger.get_balance(account_id),
                session=self._snapshot(session),
            )

    async def cashout(self, account_id: str) -> GameReport:
        return await self.act(account_id, CashoutAction())

    async def _settle(self, session: Session, result: StepResult[Any]) -> GameReport:
        """Credit a terminal result. Caller holds the account lock."""

        settlement = result.settlement
        assert settlement is not None
        account_id = session.account_id

        self.supervisor.disarm(account_id)
        session.state = result.state
        session.pending = settlement
        try:
            if settlement.payout > 0:
                balance = await self.ledger.credit(account_id, settlement.payout)
            else:
                balance = self.ledger.get_balance(account_id)
        except PersistenceError:
            # Keep the session so the payout is retried or refunded on expiry
            session.deadline = self._arm(session)
            LOGGER.error(
                "session.settle_failed",
                account_id=account_id,
                session_id=session.session_id,
                payout=settlement.payout,
            )
            raise

        self.registry.clear(account_id)
        report = self._settlement_report(session, settlement, balance)
        LOGGER.info(
            "session.settled",
            account_id=account_id,
            variant=session.variant.value,
            outcome=settlement.outcome.value,
            bet=session.bet,
            payout=settlement.payout,
            balance=balance,
        )
        return GameReport(account_id=account_id, balance=balance, settlement=report)

    # ------------------------------------------------------------------
    # Timeouts
    # ------------------------------------------------------------------

    def _arm(self, session: Session) -> float:
        return self.supervisor.arm(
            session.account_id,
            session.session_id,
            session.bet,
            self.config.session_timeout,
        )

    async def _expire(self, account_id: str, session_id: str, bet: int) -> None:
        report = await self._refund(account_id, session_id, reason="timeout")
        if report is not None:
            await self._notify_timeout(report)

    async def _refund(self, account_id: str, session_id: str, *, reason: str) -> Optional[SettlementReport]:
        """Return the escrowed bet (or an uncredited payout) and clear the session."""

        async with self._locks.hold(account_id):
            session = self.registry.get(account_id)
            # A fired timer removes itself first, so any armed timer was set by a later action
            rearmed = reason == "timeout" and self.supervisor.is_armed(account_id)
            if session is None or session.session_id != session_id or rearmed:
                LOGGER.info("session.refund_stale", account_id=account_id, session_id=session_id)
                return None

            if session.pending is not None:
                refund = session.pending.payout
                settlement = session.pending
            else:
                refund = session.bet
                settlement = Settlement(outcome=Outcome.REFUNDED, payout=refund, detail={"reason": reason})

            try:
                if refund > 0:
                    balance = await self.ledger.credit(account_id, refund)
                else:
                    balance = self.ledger.get_balance(account_id)
            except PersistenceError as exc:
                if reason == "timeout":
                    session.deadline = self._arm(session)
                LOGGER.error("session.refund_failed", account_id=account_id, reason=reason, error=str(exc))
                return None

            self.registry.clear(account_id)
            LOGGER.info(
                "session.refunded",
                account_id=account_id,
                session_id=session_id,
                variant=session.variant.value,
                reason=reason,
                refund=refund,
                balance=balance,
            )
            return self._settlement_report(session, settlement, balance)

    async def _notify_timeout(self, report: SettlementReport) -> None:
        if self.on_timeout is None:
            return
        try:
            result = self.on_timeout(report)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            LOGGER.warning("timeout.notify_failed", account_id=report.account_id, error=str(exc))

    async def close(self, *, refund_active: bool = True) -> List[SettlementReport]:
        """Cancel pending timers and, by default, refund every open game.

        Sessions live only in memory, so a game left open at shutdown would
        otherwise keep its escrowed bet forever.
        """
        await self.supervisor.close()
        reports: List[SettlementReport] = []
        if not refund_active:
            return reports
        for account_id in self.registry.accounts():
            session = self.registry.get(account_id)
            if session is None:
                continue
            report = await self._refund(account_id, session.session_id, reason="shutdown")
            if report is not None:
                reports.append(report)
        return reports

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def set_balance(self, account_id: str, amount: Union[str, int]) -> int:
        value = parse_amount(amount)
        async with self._locks.hold(account_id):
            return await self.ledger.set_absolute(account_id, value)

    async def add_balance(self, account_id: str, amount: Union[str, int]) -> int:
        value = parse_amount(amount)
        if value == 0:
            return self.get_balance(account_id)
        async with self._locks.hold(account_id):
            return await self.ledger.credit(account_id, value)

    async def remove_balance(self, account_id: str, amount: Union[str, int]) -> int:
        value = parse_amount(amount)
        if value == 0:
            return self.get_balance(account_id)
        async with self._locks.hold(account_id):
            return await self.ledger.remove(account_id, value)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _snapshot(self, session: Session) -> SessionSnapshot:
        game = get_game(session.variant)
        return SessionSnapshot(
            session_id=session.session_id,
            account_id=session.account_id,
            variant=session.variant,
            bet=session.bet,
            phase=game.phase(session.state),
            multiplier=game.multiplier(session.state),
            level=game.level(session.state),
            view=game.view(session.state),
            legal_actions=game.legal_actions(session.state) if session.pending is None else [],
            created_at=session.created_at,
            deadline=session.deadline,
        )

    def _settlement_report(self, session: Session, settlement: Settlement, balance: int) -> SettlementReport:
        return SettlementReport(
            account_id=session.account_id,
            variant=session.variant,
            outcome=settlement.outcome,
            bet=session.bet,
            payout=settlement.payout,
            balance=balance,
            detail=settlement.detail,
        )
