"""Typer CLI for administering balances and playing games from a terminal."""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog
import typer
from rich.console import Console
from rich.table import Table

from ..config.settings import DEFAULT_CONFIG_PATH, EngineConfig, load_engine_config
from ..core.amounts import format_amount
from ..core.engine import WagerEngine
from ..core.errors import InvalidAction, WagerError
from ..core.games import parse_variant
from ..core.rulesets import DEFAULT_BOMBS, get_available_bomb_counts
from ..core.schemas import GameReport, SessionSnapshot, SettlementReport, Variant, validate_action

LOGGER = structlog.get_logger(__name__)

app = typer.Typer(help="Wagering engine administration and terminal play.", invoke_without_command=False)
console = Console()
_configured_logging = False

ACTION_WORDS: Dict[str, Dict[str, Any]] = {
    "heads": {"kind": "choose_side", "side": "heads"},
    "tails": {"kind": "choose_side", "side": "tails"},
    "hit": {"kind": "hit"},
    "stand": {"kind": "stand"},
    "higher": {"kind": "guess", "direction": "higher"},
    "lower": {"kind": "guess", "direction": "lower"},
    "cashout": {"kind": "cashout"},
    "cash": {"kind": "cashout"},
}


def configure_logging(level: int = logging.INFO) -> None:
    global _configured_logging
    if _configured_logging:
        return
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _configured_logging = True


@dataclass(slots=True)
class StartCommand:
    variant: Variant
    bet: str
    options: Dict[str, Any] = field(default_factory=dict)


def parse_command(text: str) -> Union[StartCommand, Any, None]:
    """Decode one line of player input.

    Returns a :class:`StartCommand`, a validated game action, or ``None`` for
    ``quit``. Examples: ``coinflip 500K``, ``mines 1K 7``, ``reveal 12``,
    ``tile 2``, ``heads``.
    """

    try:
        words = shlex.split(text.strip().lower())
    except ValueError as exc:
        raise InvalidAction(f"Cannot read command: {exc}") from exc
    if not words:
        raise InvalidAction("Empty command")
    head, args = words[0], words[1:]

    if head in {"quit", "exit"}:
        return None
    if head in ACTION_WORDS and not args:
        return validate_action(ACTION_WORDS[head])
    if head in {"reveal", "r"} and len(args) == 1:
        return validate_action({"kind": "reveal", "cell": _int_arg(args[0])})
    if head in {"tile", "t"} and len(args) == 1:
        return validate_action({"kind": "choose_tile", "tile": _int_arg(args[0])})

    variant = parse_variant(head)
    if not args:
        raise InvalidAction(f"Usage: {variant.value} <bet>")
    options: Dict[str, Any] = {}
    if variant == Variant.MINES and len(args) > 1:
        options["bombs"] = _int_arg(args[1])
    return StartCommand(variant=variant, bet=args[0], options=options)


def _int_arg(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidAction(f"Expected a number, got {value!r}") from exc


def render_snapshot(snapshot: SessionSnapshot) -> Table:
    table = Table(title=f"{snapshot.variant.value} · bet {format_amount(snapshot.bet)}", show_header=True)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("phase", snapshot.phase)
    table.add_row("multiplier", f"{snapshot.multiplier:.2f}x")
    if snapshot.level is not None:
        table.add_row("level", str(snapshot.level))
    for key, value in snapshot.view.items():
        if key == "board":
            continue
        table.add_row(key, str(value))
    table.add_row("actions", ", ".join(kind.value for kind in snapshot.legal_actions))
    return table


def render_board(board: list) -> str:
    symbols = {"hidden": "·", "safe": "◆", "bomb": "✸"}
    rows = []
    for row in range(5):
        cells = board[row * 5 : row * 5 + 5]
        rows.append(" ".join(symbols.get(cell, "?") for cell in cells))
    return "\n".join(rows)


def render_settlement(report: SettlementReport) -> str:
    color = "green" if report.payout > report.bet else "yellow" if report.payout == report.bet else "red"
    return (
        f"[bold {color}]{report.outcome.value.upper()}[/bold {color}] "
        f"payout {format_amount(report.payout)} · balance {format_amount(report.balance)}"
    )


def show_report(report: GameReport) -> None:
    if report.settlement is not None:
        console.print(render_settlement(report.settlement))
        return
    if report.session is not None:
        console.print(render_snapshot(report.session))
        board = report.session.view.get("board")
        if board:
            console.print(render_board(board))


def _load(config: Path) -> EngineConfig:
    return load_engine_config(config)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except WagerError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


@app.command("balance")
def balance(
    account: str = typer.Argument(..., help="Account id"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to engine configuration JSON"),
) -> None:
    """Show an account's balance."""

    engine = WagerEngine.from_config(_load(config))
    value = engine.get_balance(account)
    typer.echo(f"{account}: {format_amount(value)} ({value})")


@app.command("set-balance")
def set_balance(
    account: str = typer.Argument(..., help="Account id"),
    amount: str = typer.Argument(..., help='Amount, e.g. "2.5M"'),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to engine configuration JSON"),
) -> None:
    """Overwrite an account's balance."""

    configure_logging()
    engine = WagerEngine.from_config(_load(config))
    value = _run(engine.set_balance(account, amount))
    typer.echo(f"{account}: {format_amount(value)} ({value})")


@app.command("grant")
def grant(
    account: str = typer.Argument(..., help="Account id"),
    amount: str = typer.Argument(..., help='Amount, e.g. "500K"'),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to engine configuration JSON"),
) -> None:
    """Add to an account's balance."""

    configure_logging()
    engine = WagerEngine.from_config(_load(config))
    value = _run(engine.add_balance(account, amount))
    typer.echo(f"{account}: {format_amount(value)} ({value})")


@app.command("take")
def take(
    account: str = typer.Argument(..., help="Account id"),
    amount: str = typer.Argument(..., help='Amount, e.g. "500K"'),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to engine configuration JSON"),
) -> None:
    """Remove from an account's balance (never below zero)."""

    configure_logging()
    engine = WagerEngine.from_config(_load(config))
    value = _run(engine.remove_balance(account, amount))
    typer.echo(f"{account}: {format_amount(value)} ({value})")


@app.command("games")
def games() -> None:
    """List the playable games."""

    bombs = ", ".join(
        f"{count} (default)" if count == DEFAULT_BOMBS else str(count) for count in get_available_bomb_counts()
    )
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Game")
    table.add_column("Options")
    for variant in Variant:
        table.add_row(variant.value, f"bombs: {bombs}" if variant == Variant.MINES else "")
    console.print(table)


@app.command("leaderboard")
def leaderboard(
    limit: int = typer.Option(10, help="Number of accounts to show"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to engine configuration JSON"),
) -> None:
    """List the richest accounts."""

    engine = WagerEngine.from_config(_load(config))
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Account")
    table.add_column("Balance", justify="right")
    for rank, (account_id, value) in enumerate(engine.ledger.top(limit), start=1):
        table.add_row(str(rank), account_id, format_amount(value))
    console.print(table)


async def _play(engine: WagerEngine, account: str) -> None:
    def _on_timeout(report: SettlementReport) -> None:
        console.print(f"\n[yellow]Game expired, refunded {format_amount(report.payout)}[/yellow]")

    engine.on_timeout = _on_timeout
    console.print(f"Balance: [bold]{format_amount(engine.get_balance(account))}[/bold]. Type 'quit' to leave.")
    try:
        while True:
            line = await asyncio.to_thread(console.input, "[bold]> [/bold]")
            try:
                command = parse_command(line)
                if command is None:
                    break
                if isinstance(command, StartCommand):
                    report = await engine.start(account, command.variant, command.bet, options=command.options)
                else:
                    report = await engine.act(account, command)
            except WagerError as exc:
                console.print(f"[red]{exc}[/red]")
                continue
            show_report(report)
    finally:
        for report in await engine.close():
            console.print(f"[dim]Open {report.variant.value} game refunded ({format_amount(report.payout)}).[/dim]")


@app.command("play")
def play(
    account: str = typer.Argument(..., help="Account id to play as"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, help="Path to engine configuration JSON"),
    seed: Optional[int] = typer.Option(None, help="Seed for deterministic games"),
) -> None:
    """Play games interactively against the engine."""

    configure_logging(logging.WARNING)
    engine_config = _load(config)
    if seed is not None:
        engine_config.seed = seed
    engine = WagerEngine.from_config(engine_config)
    LOGGER.info("play.start", account_id=account, seed=engine_config.seed)
    asyncio.run(_play(engine, account))


if __name__ == "__main__":  # pragma: no cover
    app()
