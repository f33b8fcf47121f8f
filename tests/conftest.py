import random

import pytest

from wagerbot.config.settings import EngineConfig
from wagerbot.core.engine import WagerEngine
from wagerbot.core.ledger import BalanceLedger
from wagerbot.core.storage import MemoryBalanceStore


class FixedRandom(random.Random):
    """Random source whose ``random()`` and ``randint()`` answers are scripted."""

    def __init__(self, *, floats=(), ints=(), seed=0):
        super().__init__(seed)
        self._floats = list(floats)
        self._ints = list(ints)

    def random(self):
        if self._floats:
            return self._floats.pop(0)
        return super().random()

    def randint(self, a, b):
        if self._ints:
            return self._ints.pop(0)
        return super().randint(a, b)


def make_engine(balances=None, *, timeout=60.0, min_bet=1, rng=None, store=None, on_timeout=None, retries=1):
    store = store if store is not None else MemoryBalanceStore(balances or {})
    config = EngineConfig(min_bet=min_bet, session_timeout=timeout, persist_retries=retries, persist_retry_delay=0)
    ledger = BalanceLedger.load(store, persist_retries=retries, retry_delay=0)
    return WagerEngine(ledger=ledger, config=config, rng=rng or random.Random(1234), on_timeout=on_timeout)


@pytest.fixture()
def rng():
    return random.Random(42)


@pytest.fixture()
def memory_store():
    return MemoryBalanceStore({"alice": 1_000_000})
