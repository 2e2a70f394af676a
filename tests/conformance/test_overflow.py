"""
Overflow Conformance Tests

INVARIANT: Every token quantity and record counter stays in [0, 2**64 - 1].

    ∀ operation O:
        some arithmetic step of O leaves the u64 range
            ⟹ O fails with Overflow (liquidity provision) or MathOverflow (borrowing)
            ⟹ every counter keeps its pre-call value

Nothing wraps and nothing saturates.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lendpool import (
    U64_MAX, Overflow, MathOverflow, MathError,
    compute_borrow, compute_provide_liquidity, init_provider, load_pool, load_position,
)
from tests.builders import make_ledger, make_pool, make_funded_pool, fund, snapshot


class TestOverflowProperties:

    @given(st.integers(min_value=2**63, max_value=U64_MAX))
    @settings(max_examples=50, deadline=None)
    def test_deposit_sum_overflow(self, amount):
        ledger = make_ledger()
        pool = make_pool(ledger)
        ledger.commit(init_provider(ledger, "bob"))
        before = snapshot(ledger)
        with pytest.raises(Overflow):
            compute_provide_liquidity(ledger, pool, "bob", amount, amount)
        assert snapshot(ledger) == before

    @given(st.integers(min_value=U64_MAX // 50 + 1, max_value=U64_MAX))
    @settings(max_examples=50, deadline=None)
    def test_ltv_multiplication_overflow(self, amount):
        ledger = make_ledger()
        pool = make_funded_pool(ledger)
        fund(ledger, "carol", "SOL", amount)
        before = snapshot(ledger)
        with pytest.raises(MathOverflow):
            compute_borrow(ledger, pool, "carol", "SOL", "USDC", amount, 0)
        assert snapshot(ledger) == before


class TestOverflowExamples:

    def test_errors_are_math_errors(self):
        assert issubclass(Overflow, MathError)
        assert issubclass(MathOverflow, MathError)

    def test_position_collateral_accumulator(self, ledger, protocol):
        pool = make_funded_pool(ledger, liquidity=2**62, ltv=1)
        fund(ledger, "carol", "SOL", 2**63)
        protocol.borrow(pool, "carol", "SOL", "USDC", 2**63, 0)
        position = load_position(ledger, "carol")
        assert position.total_collateral == 2**63
        assert position.total_borrowed == 2**63 // 100

        fund(ledger, "carol", "SOL", 2**63)
        before = snapshot(ledger)
        with pytest.raises(MathOverflow):
            protocol.borrow(pool, "carol", "SOL", "USDC", 2**63, 0)
        assert snapshot(ledger) == before
        assert load_pool(ledger, pool).total_liquidity == 2**63 - 2**63 // 100

    def test_borrow_beyond_recorded_liquidity(self, ledger, protocol, funded_pool):
        fund(ledger, "carol", "SOL", 5000)
        before = snapshot(ledger)
        with pytest.raises(MathOverflow):
            protocol.borrow(funded_pool, "carol", "SOL", "USDC", 4002, 0)
        assert snapshot(ledger) == before
