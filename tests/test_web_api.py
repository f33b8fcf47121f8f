import time

import pytest
from fastapi.testclient import TestClient

from conftest import FixedRandom, make_engine
from wagerbot.services.web_api import create_app


@pytest.fixture()
def client():
    engine = make_engine({"alice": 1_000_000}, rng=FixedRandom(floats=[0.2]))
    with TestClient(create_app(engine)) as test_client:
        yield test_client


def test_balance(client):
    response = client.get("/api/accounts/alice/balance")
    assert response.status_code == 200
    assert response.json() == {"accountId": "alice", "balance": 1_000_000, "formatted": "1.00M"}


def test_coinflip_round(client):
    response = client.post("/api/accounts/alice/games", json={"variant": "coinflip", "bet": "500K"})
    assert response.status_code == 200
    body = response.json()
    assert body["balance"] == 500_000
    assert body["settlement"] is None
    assert body["session"]["legal_actions"] == ["choose_side"]

    session = client.get("/api/accounts/alice/session").json()
    assert session["variant"] == "coinflip"

    response = client.post("/api/accounts/alice/actions", json={"kind": "choose_side", "side": "heads"})
    assert response.status_code == 200
    settlement = response.json()["settlement"]
    assert settlement["outcome"] == "win"
    assert settlement["payout"] == 1_000_000
    assert response.json()["balance"] == 1_500_000

    assert client.get("/api/accounts/alice/session").status_code == 404


def test_error_mapping(client):
    client.post("/api/accounts/alice/games", json={"variant": "mines", "bet": 1000, "options": {"bombs": 7}})

    response = client.post("/api/accounts/alice/games", json={"variant": "coinflip", "bet": 1000})
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "session_already_active"

    response = client.post("/api/accounts/alice/actions", json={"kind": "reveal", "cell": 40})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_cell_or_tile"

    response = client.post("/api/accounts/alice/actions", json={"kind": "hit"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_action"

    response = client.post("/api/accounts/bob/games", json={"variant": "coinflip", "bet": 10})
    assert response.status_code == 402

    response = client.post("/api/accounts/bob/games", json={"variant": "coinflip", "bet": "lots"})
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "malformed_amount"

    response = client.post("/api/accounts/alice/games", json={"variant": "coinflip", "bet": 10, "minBet": 100})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "below_minimum_bet"

    assert client.post("/api/accounts/bob/cashout").status_code == 404


def test_mines_cashout_needs_a_reveal(client):
    response = client.post("/api/accounts/alice/games", json={"variant": "mines", "bet": 1000})
    session = response.json()["session"]
    assert session["view"]["board"] == ["hidden"] * 25
    assert session["legal_actions"] == ["reveal"]
    response = client.post("/api/accounts/alice/cashout")
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_action"
    assert client.get("/api/accounts/alice/session").json()["view"]["revealed"] == []
    assert client.get("/api/accounts/alice/balance").json()["balance"] == 999_000


def test_list_games(client):
    body = client.get("/api/games").json()
    assert body["variants"] == ["coinflip", "blackjack", "mines", "higherlower", "tower"]
    assert body["mines"] == {"bombs": [5, 7, 12], "default": 5}


def test_admin_and_leaderboard(client):
    response = client.post("/api/admin/accounts/bob/balance", json={"operation": "set", "amount": "2M"})
    assert response.json()["balance"] == 2_000_000
    response = client.post("/api/admin/accounts/bob/balance", json={"operation": "remove", "amount": "5M"})
    assert response.json()["balance"] == 0
    response = client.post("/api/admin/accounts/bob/balance", json={"operation": "add", "amount": 25})
    assert response.json()["formatted"] == "25"

    leaders = client.get("/api/leaderboard", params={"limit": 1}).json()["accounts"]
    assert leaders == [{"accountId": "alice", "balance": 1_000_000, "formatted": "1.00M"}]


def test_timeout_notification():
    engine = make_engine({"alice": 5000}, timeout=0.05)
    with TestClient(create_app(engine)) as client:
        client.post("/api/accounts/alice/games", json={"variant": "tower", "bet": 1200})
        time.sleep(0.5)
        events = client.get("/api/accounts/alice/notifications").json()["events"]
        assert len(events) == 1
        assert events[0]["outcome"] == "refunded"
        assert events[0]["payout"] == 1200
        assert client.get("/api/accounts/alice/balance").json()["balance"] == 5000
        assert client.get("/api/accounts/alice/notifications").json()["events"] == []


def test_shutdown_refunds_open_games():
    engine = make_engine({"alice": 5000})
    with TestClient(create_app(engine)) as client:
        client.post("/api/accounts/alice/games", json={"variant": "mines", "bet": 1000})
        assert engine.get_balance("alice") == 4000
    assert engine.get_balance("alice") == 5000
