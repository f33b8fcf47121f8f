"""FastAPI application exposing the wagering engine to a front-end."""

from __future__ import annotations

from collections import defaultdict, deque
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Deque, Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from ..config.settings import load_engine_config
from ..core.amounts import format_amount
from ..core.engine import WagerEngine
from ..core.errors import (
    BelowMinimumBet,
    InsufficientBalance,
    InvalidAction,
    InvalidCellOrTile,
    MalformedAmount,
    PersistenceError,
    SessionAlreadyActive,
    SessionNotFound,
    WagerError,
)
from ..core.rulesets import DEFAULT_BOMBS, get_available_bomb_counts
from ..core.schemas import GameReport, SessionSnapshot, SettlementReport, Variant

NOTIFICATION_BACKLOG = 20

_STATUS_CODES: Dict[type, int] = {
    InsufficientBalance: 402,
    SessionNotFound: 404,
    SessionAlreadyActive: 409,
    BelowMinimumBet: 400,
    InvalidCellOrTile: 400,
    InvalidAction: 400,
    MalformedAmount: 422,
    PersistenceError: 503,
}


class StartGameRequest(BaseModel):
    """Payload for opening a game."""

    model_config = ConfigDict(populate_by_name=True)

    variant: Variant
    bet: Union[str, int] = Field(..., description='Bet amount, e.g. 1500 or "500K"')
    min_bet: Optional[int] = Field(None, alias="minBet", ge=1, description="Stricter per-call minimum bet")
    options: Dict[str, Any] = Field(default_factory=dict, description='Variant options such as {"bombs": 7}')


class BalanceOperation(str, Enum):
    SET = "set"
    ADD = "add"
    REMOVE = "remove"


class AdminBalanceRequest(BaseModel):
    """Administrative balance override."""

    operation: BalanceOperation
    amount: Union[str, int]


class TimeoutFeed:
    """Keeps recent timeout refunds per account until the front-end collects them."""

    def __init__(self, backlog: int = NOTIFICATION_BACKLOG) -> None:
        self._events: Dict[str, Deque[SettlementReport]] = defaultdict(lambda: deque(maxlen=backlog))

    def push(self, report: SettlementReport) -> None:
        self._events[report.account_id].append(report)

    def drain(self, account_id: str) -> List[SettlementReport]:
        events = self._events.pop(account_id, None)
        return list(events) if events else []


def _http_error(exc: WagerError) -> HTTPException:
    status = 400
    for error_type in type(exc).__mro__:
        if error_type in _STATUS_CODES:
            status = _STATUS_CODES[error_type]
            break
    return HTTPException(status_code=status, detail={"code": exc.code, "message": str(exc)})


def _engine(request: Request) -> WagerEngine:
    return request.app.state.engine


def create_app(engine: Optional[WagerEngine] = None) -> FastAPI:
    """Build the API around ``engine`` (loaded from config on startup when omitted)."""

    feed = TimeoutFeed()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        active = engine or WagerEngine.from_config(load_engine_config())
        if active.on_timeout is None:
            active.on_timeout = feed.push
        app.state.engine = active
        try:
            yield
        finally:
            await active.close()

    app = FastAPI(title="Wagerbot API", version="0.1.0", lifespan=lifespan)
    app.state.feed = feed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/games")
    async def list_games() -> Dict[str, Any]:
        """Playable variants and their options."""
        return {
            "variants": [variant.value for variant in Variant],
            "mines": {"bombs": get_available_bomb_counts(), "default": DEFAULT_BOMBS},
        }

    @app.get("/api/accounts/{account_id}/balance")
    async def get_balance(account_id: str, request: Request) -> Dict[str, Any]:
        """Return the account's balance."""
        balance = _engine(request).get_balance(account_id)
        return {"accountId": account_id, "balance": balance, "formatted": format_amount(balance)}

    @app.get("/api/accounts/{account_id}/session", response_model=SessionSnapshot)
    async def get_session(account_id: str, request: Request) -> SessionSnapshot:
        """Fetch the active game for an account."""
        snapshot = _engine(request).snapshot(account_id)
        if snapshot is None:
            raise _http_error(SessionNotFound(account_id))
        return snapshot

    @app.post("/api/accounts/{account_id}/games", response_model=GameReport)
    async def start_game(account_id: str, payload: StartGameRequest, request: Request) -> GameReport:
        """Escrow a bet and start a new game."""
        try:
            return await _engine(request).start(
                account_id,
                payload.variant,
                payload.bet,
                min_bet=payload.min_bet,
                options=payload.options,
            )
        except WagerError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/accounts/{account_id}/actions", response_model=GameReport)
    async def submit_action(account_id: str, payload: Dict[str, Any], request: Request) -> GameReport:
        """Apply a game action such as ``{"kind": "reveal", "cell": 12}``."""
        try:
            return await _engine(request).act(account_id, payload)
        except WagerError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/accounts/{account_id}/cashout", response_model=GameReport)
    async def cashout(account_id: str, request: Request) -> GameReport:
        try:
            return await _engine(request).cashout(account_id)
        except WagerError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/accounts/{account_id}/notifications")
    async def notifications(account_id: str, request: Request) -> Dict[str, Any]:
        """Timeout refunds that happened since the last poll."""
        events = request.app.state.feed.drain(account_id)
        return {"accountId": account_id, "events": [event.model_dump(mode="json") for event in events]}

    @app.post("/api/admin/accounts/{account_id}/balance")
    async def admin_balance(account_id: str, payload: AdminBalanceRequest, request: Request) -> Dict[str, Any]:
        engine_ = _engine(request)
        try:
            if payload.operation == BalanceOperation.SET:
                balance = await engine_.set_balance(account_id, payload.amount)
            elif payload.operation == BalanceOperation.ADD:
                balance = await engine_.add_balance(account_id, payload.amount)
            else:
                balance = await engine_.remove_balance(account_id, payload.amount)
        except WagerError as exc:
            raise _http_error(exc) from exc
        return {"accountId": account_id, "balance": balance, "formatted": format_amount(balance)}

    @app.get("/api/leaderboard")
    async def leaderboard(request: Request, limit: int = 10) -> Dict[str, Any]:
        ranked = _engine(request).ledger.top(limit)
        return {
            "accounts": [
                {"accountId": account_id, "balance": balance, "formatted": format_amount(balance)}
                for account_id, balance in ranked
            ]
        }

    return app
