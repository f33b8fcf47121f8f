"""Active game sessions, at most one per account."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import SessionAlreadyActive, SessionNotFound
from .games.base import Settlement
from .schemas import Variant


@dataclass(slots=True)
class Session:
    """One in-progress game bound to an account."""

    account_id: str
    variant: Variant
    bet: int
    state: Any
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)
    deadline: float = 0.0
    # Set when the game finished but crediting the payout failed; the payout
    # is retried on the next action or paid out by the timeout instead of the bet.
    pending: Optional[Settlement] = None

    def __post_init__(self) -> None:
        if self.bet <= 0:
            raise ValueError("Session bet must be positive")


class SessionRegistry:
    """Registry for the active :class:`Session` of every account.

    The registry itself does no locking: callers hold the per-account lock so
    that the existence check, the debit and :meth:`try_create` form one unit.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def try_create(self, account_id: str, session: Session) -> Session:
        existing = self._sessions.get(account_id)
        if existing is not None:
            raise SessionAlreadyActive(account_id, existing.variant.value)
        self._sessions[account_id] = session
        return session

    def get(self, account_id: str) -> Optional[Session]:
        return self._sessions.get(account_id)

    def require(self, account_id: str) -> Session:
        session = self._sessions.get(account_id)
        if session is None:
            raise SessionNotFound(account_id)
        return session

    def clear(self, account_id: str) -> Optional[Session]:
        return self._sessions.pop(account_id, None)

    def accounts(self) -> List[str]:
        return list(self._sessions.keys())

    def active_count(self) -> int:
        return len(self._sessions)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
