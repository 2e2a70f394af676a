"""
Isolation Conformance Tests

INVARIANT: Operations on the same record serialize; operations on disjoint
records never conflict.

    ∀ operations O1, O2 built from the same snapshot of record R:
        commit(O1) succeeds ⟹ commit(O2) fails with StaleState

The loser is rejected with nothing applied and may be rebuilt from the
current state.
"""

import threading

import pytest

from lendpool import (
    LendingProtocol, StaleState, ExecuteResult,
    compute_borrow, compute_provide_liquidity, compute_parameter_update,
    init_provider, load_pool, load_provider,
)
from tests.builders import make_ledger, make_funded_pool, fund, snapshot


class TestStaleSnapshots:

    def test_two_borrows_from_one_snapshot(self, ledger, funded_pool):
        fund(ledger, "carol", "SOL", 1000)
        fund(ledger, "erin", "SOL", 1000)
        first = compute_borrow(ledger, funded_pool, "carol", "SOL", "USDC", 1000, 0)
        second = compute_borrow(ledger, funded_pool, "erin", "SOL", "USDC", 1000, 0)
        ledger.commit(first)
        before = snapshot(ledger)
        with pytest.raises(StaleState):
            ledger.commit(second)
        assert snapshot(ledger) == before

        ledger.commit(compute_borrow(ledger, funded_pool, "erin", "SOL", "USDC", 1000, 0))
        assert load_pool(ledger, funded_pool).total_liquidity == 1000

    def test_parameter_update_races_deposit(self, ledger, funded_pool):
        fund(ledger, "bob", "SOL", 10)
        fund(ledger, "bob", "USDC", 10)
        deposit = compute_provide_liquidity(ledger, funded_pool, "bob", 10, 10)
        update = compute_parameter_update(ledger, funded_pool, "alice", 60, 80, 5, 10)
        assert ledger.execute(update) == ExecuteResult.APPLIED
        assert ledger.execute(deposit) == ExecuteResult.REJECTED
        assert load_pool(ledger, funded_pool).total_liquidity == 2000

    def test_disjoint_pools_do_not_conflict(self, ledger, protocol, funded_pool):
        other = make_funded_pool(ledger, liquidity=1000, provider="frank", authority="dave")
        fund(ledger, "carol", "SOL", 1000)
        fund(ledger, "erin", "SOL", 1000)
        first = compute_borrow(ledger, funded_pool, "carol", "SOL", "USDC", 1000, 0)
        second = compute_borrow(ledger, other, "erin", "SOL", "USDC", 1000, 0)
        assert ledger.execute(first) == ExecuteResult.APPLIED
        assert ledger.execute(second) == ExecuteResult.APPLIED


class TestConcurrentCommits:

    def test_concurrent_deposits_serialize(self):
        ledger = make_ledger()
        pool = make_funded_pool(ledger, liquidity=1000)
        protocol = LendingProtocol(ledger)
        providers = [f"provider_{i}" for i in range(8)]
        for provider in providers:
            ledger.commit(init_provider(ledger, provider))
            fund(ledger, provider, "SOL", 50)
            fund(ledger, provider, "USDC", 50)

        errors = []

        def deposit(provider):
            try:
                for _ in range(5):
                    while True:
                        try:
                            protocol.provide_liquidity(pool, provider, 10, 10)
                            break
                        except StaleState:
                            continue
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=deposit, args=(p,)) for p in providers]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert load_pool(ledger, pool).total_liquidity == 2000 + 8 * 5 * 20
        for provider in providers:
            assert load_provider(ledger, provider).total_lp_tokens == 100
        sequences = [tx.sequence_number for tx in ledger.transaction_log]
        assert sequences == list(range(len(sequences)))
