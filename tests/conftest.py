import os
import random

import pytest

from helpers.factories import ACCOUNT, make_addresses

from amm_engine.config import PoolAddresses
from amm_engine.data.cache import PoolStateCache
from amm_engine.quote import QuoteEngine
from amm_engine.sim import SimulatedPool


@pytest.fixture(autouse=True)
def _seed_everything():
    random.seed(0)
    os.environ.setdefault("PYTHONHASHSEED", "0")


@pytest.fixture
def addresses() -> PoolAddresses:
    return make_addresses()


@pytest.fixture
def engine() -> QuoteEngine:
    return QuoteEngine()


@pytest.fixture
def cache() -> PoolStateCache:
    return PoolStateCache(window=16)


@pytest.fixture
def sim_pool(addresses: PoolAddresses) -> SimulatedPool:
    return SimulatedPool(addresses, account=ACCOUNT)
