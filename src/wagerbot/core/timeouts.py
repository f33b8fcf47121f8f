"""Cancellable per-account expiry timers for abandoned sessions."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import structlog

LOGGER = structlog.get_logger(__name__)

ExpiryHandler = Callable[[str, str, int], Awaitable[None]]


@dataclass(slots=True)
class _Timer:
    session_id: str
    bet: int
    deadline: float
    task: "asyncio.Task[None]"


class TimeoutSupervisor:
    """Schedules one refund timer per account.

    When a timer fires it removes itself and awaits ``on_expire(account_id,
    session_id, bet)``. The handler is expected to take the account lock and
    re-check that the session still exists, which is what keeps a refund from
    racing a settlement that is completing at the same moment.
    """

    def __init__(self, on_expire: ExpiryHandler, *, clock: Callable[[], float] = time.time) -> None:
        self._on_expire = on_expire
        self._clock = clock
        self._timers: Dict[str, _Timer] = {}

    def arm(self, account_id: str, session_id: str, bet: int, duration: float) -> float:
        """(Re)schedule the refund for ``account_id`` and return its wall-clock deadline."""
        self.disarm(account_id)
        deadline = self._clock() + duration
        task = asyncio.get_running_loop().create_task(
            self._run(account_id, duration), name=f"session-timeout:{account_id}"
        )
        self._timers[account_id] = _Timer(session_id=session_id, bet=bet, deadline=deadline, task=task)
        LOGGER.debug("timeout.armed", account_id=account_id, session_id=session_id, duration=duration)
        return deadline

    def disarm(self, account_id: str) -> bool:
        timer = self._timers.pop(account_id, None)
        if timer is None:
            return False
        if timer.task is not asyncio.current_task():
            timer.task.cancel()
        LOGGER.debug("timeout.disarmed", account_id=account_id, session_id=timer.session_id)
        return True

    def is_armed(self, account_id: str) -> bool:
        return account_id in self._timers

    def deadline(self, account_id: str) -> Optional[float]:
        timer = self._timers.get(account_id)
        return timer.deadline if timer else None

    async def _run(self, account_id: str, duration: float) -> None:
        await asyncio.sleep(duration)
        timer = self._timers.get(account_id)
        if timer is None or timer.task is not asyncio.current_task():
            return
        del self._timers[account_id]
        LOGGER.info("timeout.fired", account_id=account_id, session_id=timer.session_id, bet=timer.bet)
        try:
            await self._on_expire(account_id, timer.session_id, timer.bet)
        except Exception as exc:  # pragma: no cover - nobody awaits this task
            LOGGER.error("timeout.handler_failed", account_id=account_id, error=str(exc))

    async def close(self) -> None:
        """Cancel every pending timer and wait for the tasks to finish."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.task.cancel()
        for timer in timers:
            try:
                await timer.task
            except asyncio.CancelledError:
                pass

    def __len__(self) -> int:
        return len(self._timers)
