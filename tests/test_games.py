import doctest
import random

import pytest

from conftest import FixedRandom
from wagerbot.core.errors import InvalidAction, InvalidCellOrTile, UnknownVariant
from wagerbot.core.games import GAMES, get_game, parse_variant
from wagerbot.core.games import blackjack
from wagerbot.core.games.blackjack import BlackjackGame, BlackjackPhase, Card, hand_value
from wagerbot.core.games.coinflip import CoinflipGame, CoinflipPhase
from wagerbot.core.games.higher_lower import HigherLowerGame
from wagerbot.core.games.mines import MinesGame, MinesPhase
from wagerbot.core.games.tower import TowerGame, TowerPhase
from wagerbot.core.rulesets import MINES_RULESETS, TOWER, MinesRuleset, TowerRuleset
from wagerbot.core.schemas import (
    ActionKind,
    CashoutAction,
    ChooseSideAction,
    ChooseTileAction,
    CoinSide,
    Direction,
    GuessAction,
    HitAction,
    Outcome,
    RevealAction,
    StandAction,
    Variant,
)


class StackedRandom(random.Random):
    """Shuffles so that ``top`` is dealt first, in order."""

    def __init__(self, top):
        super().__init__(0)
        self.top = list(top)

    def shuffle(self, x):
        for card in self.top:
            x.remove(card)
        x.extend(reversed(self.top))


def cards(*names):
    return [Card(name[:-1], name[-1]) for name in names]


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------


@pytest.mark.parametrize(
    "text, variant",
    [
        ("coinflip", Variant.COINFLIP),
        ("CoinFlip", Variant.COINFLIP),
        ("higher-lower", Variant.HIGHER_LOWER),
        ("higher_lower", Variant.HIGHER_LOWER),
        (" Tower ", Variant.TOWER),
    ],
)
def test_parse_variant(text, variant):
    assert parse_variant(text) == variant


def test_parse_variant_rejects_unknown():
    with pytest.raises(UnknownVariant):
        parse_variant("roulette")


def test_every_variant_has_a_game():
    assert set(GAMES) == set(Variant)
    for variant in Variant:
        assert get_game(variant).variant == variant


# ----------------------------------------------------------------------
# Coinflip
# ----------------------------------------------------------------------


def test_coinflip_win_pays_double():
    game = CoinflipGame()
    rng = FixedRandom(floats=[0.1])
    state = game.start(500, rng).state
    result = game.step(state, ChooseSideAction(side=CoinSide.HEADS), rng)
    assert result.terminal
    assert result.settlement.outcome == Outcome.WIN
    assert result.settlement.payout == 1000
    assert result.state.phase == CoinflipPhase.RESOLVED


def test_coinflip_loss_pays_nothing():
    game = CoinflipGame()
    rng = FixedRandom(floats=[0.1])
    state = game.start(500, rng).state
    result = game.step(state, ChooseSideAction(side=CoinSide.TAILS), rng)
    assert result.settlement.outcome == Outcome.LOSE
    assert result.settlement.payout == 0
    assert result.settlement.detail == {"choice": "tails", "result": "heads"}


def test_coinflip_is_roughly_fair():
    game = CoinflipGame()
    rng = random.Random(7)
    wins = 0
    trials = 4000
    for _ in range(trials):
        state = game.start(10, rng).state
        if game.step(state, ChooseSideAction(side=CoinSide.HEADS), rng).settlement.payout:
            wins += 1
    assert 0.45 < wins / trials < 0.55


def test_coinflip_rejects_other_actions():
    game = CoinflipGame()
    state = game.start(10, random.Random(0)).state
    with pytest.raises(InvalidAction):
        game.step(state, HitAction(), random.Random(0))
    assert game.legal_actions(state) == [ActionKind.CHOOSE_SIDE]


# ----------------------------------------------------------------------
# Blackjack
# ----------------------------------------------------------------------


def test_hand_value_demotes_aces():
    assert hand_value(cards("A♠", "A♥", "9♦")) == 21
    assert hand_value(cards("A♠", "K♥")) == 21
    assert hand_value(cards("A♠", "A♥", "A♦", "A♣")) == 14
    assert hand_value(cards("K♠", "Q♥", "5♦")) == 25


def test_blackjack_doctests():
    assert doctest.testmod(blackjack).failed == 0


def test_natural_pays_two_and_a_half():
    game = BlackjackGame()
    result = game.start(1000, StackedRandom(cards("A♠", "9♥", "K♠", "7♦")))
    assert result.terminal
    assert result.settlement.outcome == Outcome.WIN
    assert result.settlement.payout == 2500
    assert result.settlement.detail["natural"] is True


def test_natural_against_dealer_natural_pushes():
    game = BlackjackGame()
    result = game.start(1000, StackedRandom(cards("A♠", "A♥", "K♠", "Q♥")))
    assert result.settlement.outcome == Outcome.PUSH
    assert result.settlement.payout == 1000


def test_hit_past_21_busts():
    game = BlackjackGame()
    rng = StackedRandom(cards("10♠", "9♥", "6♠", "7♦", "K♣"))
    state = game.start(100, rng).state
    assert not game.start(100, StackedRandom(cards("10♠", "9♥", "6♠", "7♦"))).terminal
    result = game.step(state, HitAction(), rng)
    assert result.settlement.outcome == Outcome.LOSE
    assert result.settlement.payout == 0
    assert result.state.phase == BlackjackPhase.RESOLVED


def test_hit_under_21_continues():
    game = BlackjackGame()
    rng = StackedRandom(cards("2♠", "9♥", "3♠", "7♦", "4♣"))
    state = game.start(100, rng).state
    result = game.step(state, HitAction(), rng)
    assert not result.terminal
    assert hand_value(result.state.player) == 9


@pytest.mark.parametrize(
    "deal, outcome, payout",
    [
        (("10♠", "10♥", "9♠", "7♦", "10♣"), Outcome.WIN, 200),
        (("10♠", "9♥", "7♠", "7♦", "5♣"), Outcome.LOSE, 0),
        (("10♠", "10♥", "7♠", "7♦", "5♣"), Outcome.PUSH, 100),
        (("10♠", "10♥", "2♠", "6♦", "10♣"), Outcome.WIN, 200),
    ],
)
def test_stand_resolves_against_dealer(deal, outcome, payout):
    game = BlackjackGame()
    rng = StackedRandom(cards(*deal))
    state = game.start(100, rng).state
    result = game.step(state, StandAction(), rng)
    assert result.settlement.outcome == outcome
    assert result.settlement.payout == payout


def test_dealer_always_reaches_seventeen_or_busts():
    game = BlackjackGame()
    for seed in range(200):
        rng = random.Random(seed)
        opening = game.start(10, rng)
        if opening.terminal:
            continue
        result = game.step(opening.state, StandAction(), rng)
        assert hand_value(result.state.dealer) >= 17


def test_dealer_hole_card_hidden_during_player_turn():
    game = BlackjackGame()
    state = game.start(100, StackedRandom(cards("10♠", "9♥", "6♠", "7♦"))).state
    view = game.view(state)
    assert view["dealer"] == ["9♥", "??"]
    assert view["dealer_value"] == 9
    assert view["player_value"] == 16


# ----------------------------------------------------------------------
# Mines
# ----------------------------------------------------------------------


def test_mines_ruleset_multiplier_reaches_maximum():
    ruleset = MINES_RULESETS[5]
    assert ruleset.safe_cells == 20
    assert ruleset.multiplier_for(0) == 1.0
    assert ruleset.multiplier_for(10) == 1.25
    assert ruleset.multiplier_for(20) == 1.5


def test_mines_ruleset_validation():
    with pytest.raises(ValueError):
        MinesRuleset(bombs=25, max_multiplier=2.0)
    with pytest.raises(ValueError):
        MinesRuleset(bombs=3, max_multiplier=0.5)


@pytest.mark.parametrize("bombs, payout", [(5, 1500), (7, 2000), (12, 3000)])
def test_mines_clearing_board_pays_maximum(bombs, payout):
    game = MinesGame()
    rng = random.Random(bombs)
    state = game.start(1000, rng, bombs=bombs).state
    safe = [cell for cell in range(25) if cell not in state.bomb_cells]
    result = None
    for cell in safe:
        result = game.step(state, RevealAction(cell=cell), rng)
        state = result.state
    assert result.terminal
    assert result.settlement.outcome == Outcome.WIN
    assert result.settlement.payout == payout


def test_mines_bomb_loses_everything():
    game = MinesGame()
    rng = random.Random(3)
    state = game.start(1000, rng).state
    bomb = min(state.bomb_cells)
    result = game.step(state, RevealAction(cell=bomb), rng)
    assert result.settlement.outcome == Outcome.LOSE
    assert result.settlement.payout == 0
    assert result.state.phase == MinesPhase.BUSTED
    assert result.settlement.detail["hit_cell"] == bomb


def test_mines_cashout_uses_current_multiplier():
    game = MinesGame()
    rng = random.Random(4)
    state = game.start(1000, rng).state
    safe = [cell for cell in range(25) if cell not in state.bomb_cells]
    for cell in safe[:4]:
        state = game.step(state, RevealAction(cell=cell), rng).state
    assert state.multiplier == pytest.approx(1.1)
    result = game.step(state, CashoutAction(), rng)
    assert result.settlement.outcome == Outcome.CASHED_OUT
    assert result.settlement.payout == 1100


def test_mines_cashout_requires_a_safe_reveal():
    game = MinesGame()
    rng = random.Random(5)
    state = game.start(1000, rng).state
    assert game.legal_actions(state) == [ActionKind.REVEAL]
    with pytest.raises(InvalidAction):
        game.step(state, CashoutAction(), rng)
    assert state.phase == MinesPhase.IN_PROGRESS
    assert state.revealed == set()
    assert state.multiplier == 1.0

    safe = next(cell for cell in range(25) if cell not in state.bomb_cells)
    state = game.step(state, RevealAction(cell=safe), rng).state
    assert game.legal_actions(state) == [ActionKind.REVEAL, ActionKind.CASHOUT]


@pytest.mark.parametrize("revealed, payout", [(1, 15_000_000), (4, 21_000_000), (13, 39_000_000)])
def test_mines_payout_is_exact_for_large_bets(revealed, payout):
    assert MINES_RULESETS[12].payout_for(13_000_000, revealed) == payout


def test_mines_large_cashout_pays_exact_multiple():
    game = MinesGame()
    rng = random.Random(9)
    state = game.start(13_000_000, rng, bombs=12).state
    safe = [cell for cell in range(25) if cell not in state.bomb_cells]
    state = game.step(state, RevealAction(cell=safe[0]), rng).state
    assert game.step(state, CashoutAction(), rng).settlement.payout == 15_000_000


def test_mines_rejects_bad_cells():
    game = MinesGame()
    rng = random.Random(6)
    state = game.start(1000, rng).state
    safe = next(cell for cell in range(25) if cell not in state.bomb_cells)
    state = game.step(state, RevealAction(cell=safe), rng).state
    with pytest.raises(InvalidCellOrTile):
        game.step(state, RevealAction(cell=safe), rng)
    with pytest.raises(InvalidCellOrTile):
        game.step(state, RevealAction(cell=25), rng)
    with pytest.raises(InvalidCellOrTile):
        game.step(state, RevealAction(cell=-1), rng)
    assert state.revealed == {safe}


@pytest.mark.parametrize("bombs", [3, "many", None])
def test_mines_unsupported_bomb_count(bombs):
    with pytest.raises(UnknownVariant):
        MinesGame().start(1000, random.Random(0), bombs=bombs)


def test_mines_view_hides_bombs_until_finished():
    game = MinesGame()
    rng = random.Random(8)
    state = game.start(1000, rng, bombs=7).state
    view = game.view(state)
    assert view["board"] == ["hidden"] * 25
    assert view["safe_remaining"] == 18
    bomb = min(state.bomb_cells)
    finished = game.step(state, RevealAction(cell=bomb), rng).state
    assert game.view(finished)["board"].count("bomb") == 7


# ----------------------------------------------------------------------
# Higher / lower
# ----------------------------------------------------------------------


@pytest.mark.parametrize(
    "current, drawn, direction, outcome",
    [
        (5, 8, Direction.HIGHER, Outcome.WIN),
        (5, 2, Direction.HIGHER, Outcome.LOSE),
        (5, 2, Direction.LOWER, Outcome.WIN),
        (5, 5, Direction.HIGHER, Outcome.LOSE),
        (5, 5, Direction.LOWER, Outcome.LOSE),
    ],
)
def test_higher_lower(current, drawn, direction, outcome):
    game = HigherLowerGame()
    rng = FixedRandom(ints=[current, drawn])
    state = game.start(300, rng).state
    assert game.view(state)["current"] == current
    result = game.step(state, GuessAction(direction=direction), rng)
    assert result.settlement.outcome == outcome
    assert result.settlement.payout == (600 if outcome == Outcome.WIN else 0)


# ----------------------------------------------------------------------
# Tower
# ----------------------------------------------------------------------


def test_tower_ruleset_validation():
    assert TOWER.max_multiplier == 10.0
    with pytest.raises(ValueError):
        TowerRuleset(levels=2, multipliers=[1.0, 2.0])
    with pytest.raises(ValueError):
        TowerRuleset(levels=2, multipliers=[1.0, 2.0, 1.5])


def test_tower_completing_all_levels_auto_settles():
    game = TowerGame()
    rng = random.Random(11)
    state = game.start(1000, rng).state
    result = None
    for level in range(10):
        result = game.step(state, ChooseTileAction(tile=state.safe_tiles[level]), rng)
        state = result.state
        if level < 9:
            assert not result.terminal
    assert result.settlement.outcome == Outcome.WIN
    assert result.settlement.payout == 10_000
    assert state.phase == TowerPhase.COMPLETED


def test_tower_wrong_tile_reports_level():
    game = TowerGame()
    rng = random.Random(12)
    state = game.start(1000, rng).state
    for level in range(3):
        state = game.step(state, ChooseTileAction(tile=state.safe_tiles[level]), rng).state
    wrong = (state.safe_tiles[3] + 1) % 3
    result = game.step(state, ChooseTileAction(tile=wrong), rng)
    assert result.settlement.outcome == Outcome.LOSE
    assert result.settlement.payout == 0
    assert result.settlement.detail["level_reached"] == 3
    assert result.state.phase == TowerPhase.FAILED


def test_tower_cashout_after_two_levels():
    game = TowerGame()
    rng = random.Random(13)
    state = game.start(1000, rng).state
    assert game.legal_actions(state) == [ActionKind.CHOOSE_TILE]
    for level in range(2):
        state = game.step(state, ChooseTileAction(tile=state.safe_tiles[level]), rng).state
    assert ActionKind.CASHOUT in game.legal_actions(state)
    result = game.step(state, CashoutAction(), rng)
    assert result.settlement.outcome == Outcome.CASHED_OUT
    assert result.settlement.payout == 1500


def test_tower_rejects_early_cashout_and_bad_tiles():
    game = TowerGame()
    rng = random.Random(14)
    state = game.start(1000, rng).state
    with pytest.raises(InvalidAction):
        game.step(state, CashoutAction(), rng)
    with pytest.raises(InvalidCellOrTile):
        game.step(state, ChooseTileAction(tile=3), rng)
    assert state.level == 0
    assert state.picks == []
