"""
conftest.py - Shared pytest fixtures for lendpool tests

Provides common fixtures used across unit, conformance and functional tests:
- A test-mode ledger with SOL and USDC mints
- A LendingProtocol bound to it
- An empty pool and a pool with liquidity
- A borrower who has drawn against the funded pool
"""

import pytest

from lendpool import LendingProtocol

from tests.builders import make_ledger, make_pool, make_funded_pool, fund


@pytest.fixture
def ledger():
    return make_ledger()


@pytest.fixture
def protocol(ledger):
    return LendingProtocol(ledger)


@pytest.fixture
def pool(ledger):
    """Empty SOL/USDC pool: authority alice, ltv 50, threshold 80, penalty 5, rate 10."""
    return make_pool(ledger)


@pytest.fixture
def funded_pool(ledger):
    """SOL/USDC pool holding 1000 of each mint deposited by bob."""
    return make_funded_pool(ledger, liquidity=1000)


@pytest.fixture
def borrowed(ledger, protocol, funded_pool):
    """carol posted 1000 SOL and drew 500 USDC for ten (seconds) at T0."""
    fund(ledger, "carol", "SOL", 1000)
    protocol.borrow(funded_pool, "carol", "SOL", "USDC", 1000, 0)
    return funded_pool
