"""
test_provider.py - Unit tests for provider records and liquidity deposits

Tests:
- init_provider creates a zeroed record; duplicates rejected
- Symmetric deposits move both mints to the vaults and issue 1:1 LP shares
- Unequal deposits always rejected
- Overflow of deposit totals
- Provider binding follows the latest pool
"""

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from lendpool import (
    U64_MAX, SYSTEM_WALLET, ExecuteResult,
    InvalidLiquidityAmount, Overflow, AccountAlreadyInitialized, AccountNotInitialized,
    init_provider, compute_provide_liquidity, load_provider, load_pool,
    provider_address, associated_token_address,
)
from tests.builders import make_ledger, make_pool, fund, snapshot


class TestInitProvider:

    def test_zeroed_record(self, ledger, protocol):
        address = protocol.init_provider("bob")
        assert address == provider_address("bob")
        record = load_provider(ledger, "bob")
        assert record.provider == "bob"
        assert record.liquidity_pool == ""
        assert record.provided_token_a == record.provided_token_b == 0
        assert record.total_liquidity_provided == record.total_lp_tokens == 0

    def test_duplicate_init(self, ledger, protocol):
        protocol.init_provider("bob")
        with pytest.raises(AccountAlreadyInitialized):
            ledger.commit(init_provider(ledger, "bob"))


class TestProvideLiquidity:

    def test_first_deposit_into_empty_pool(self, ledger, protocol, pool):
        protocol.init_provider("bob")
        bob_sol = fund(ledger, "bob", "SOL", 1000)
        bob_usdc = fund(ledger, "bob", "USDC", 1000)

        protocol.provide_liquidity(pool, "bob", 1000, 1000)

        state = load_pool(ledger, pool)
        record = load_provider(ledger, "bob")
        assert state.total_liquidity == 2000
        assert record.total_lp_tokens == 2000
        assert record.total_liquidity_provided == 2000
        assert (record.provided_token_a, record.provided_token_b) == (1000, 1000)
        assert record.liquidity_pool == pool
        assert ledger.get_balance(state.vault_a, "SOL") == 1000
        assert ledger.get_balance(state.vault_b, "USDC") == 1000
        assert ledger.get_balance(bob_sol, "SOL") == 0
        assert ledger.get_balance(bob_usdc, "USDC") == 0
        lp_account = associated_token_address("bob", state.lp_mint)
        assert ledger.get_balance(lp_account, state.lp_mint) == 2000

    def test_lp_supply_stays_inert(self, ledger, funded_pool):
        state = load_pool(ledger, funded_pool)
        assert state.lp_supply == 0
        assert ledger.total_supply(state.lp_mint) == 2000

    def test_lp_shares_are_issued_by_the_pool(self, ledger, funded_pool):
        tx = ledger.transaction_log[-1]
        issuance = [m for m in tx.moves if m.source == SYSTEM_WALLET]
        assert len(issuance) == 1
        assert issuance[0].authority == funded_pool
        assert issuance[0].quantity == 2000

    def test_deposits_accumulate(self, ledger, protocol, funded_pool):
        fund(ledger, "bob", "SOL", 300)
        fund(ledger, "bob", "USDC", 300)
        protocol.provide_liquidity(funded_pool, "bob", 300, 300)
        record = load_provider(ledger, "bob")
        assert record.total_lp_tokens == 2600
        assert load_pool(ledger, funded_pool).total_liquidity == 2600

    def test_unequal_amounts(self, ledger, protocol, pool):
        protocol.init_provider("bob")
        with pytest.raises(InvalidLiquidityAmount):
            compute_provide_liquidity(ledger, pool, "bob", 100, 101)

    @given(st.integers(min_value=0, max_value=U64_MAX), st.integers(min_value=0, max_value=U64_MAX))
    @settings(max_examples=100, deadline=None)
    def test_any_unequal_pair_rejected(self, amount_a, amount_b):
        assume(amount_a != amount_b)
        ledger = make_ledger()
        pool = make_pool(ledger)
        ledger.commit(init_provider(ledger, "bob"))
        with pytest.raises(InvalidLiquidityAmount):
            compute_provide_liquidity(ledger, pool, "bob", amount_a, amount_b)

    def test_uninitialized_provider(self, ledger, pool):
        with pytest.raises(AccountNotInitialized):
            compute_provide_liquidity(ledger, pool, "bob", 10, 10)

    def test_missing_tokens_rejected_atomically(self, ledger, protocol, pool):
        protocol.init_provider("bob")
        fund(ledger, "bob", "SOL", 1000)
        fund(ledger, "bob", "USDC", 999)
        before = snapshot(ledger)
        result = ledger.execute(compute_provide_liquidity(ledger, pool, "bob", 1000, 1000))
        assert result == ExecuteResult.REJECTED
        assert snapshot(ledger) == before

    def test_deposit_sum_overflow(self, ledger, protocol, pool):
        protocol.init_provider("bob")
        with pytest.raises(Overflow):
            compute_provide_liquidity(ledger, pool, "bob", 2**63, 2**63)

    def test_pool_total_overflow_leaves_counters(self, ledger, protocol, pool):
        protocol.init_provider("bob")
        fund(ledger, "bob", "SOL", 2**63)
        fund(ledger, "bob", "USDC", 2**63)
        protocol.provide_liquidity(pool, "bob", 2**62, 2**62)
        before = snapshot(ledger)
        with pytest.raises(Overflow):
            protocol.provide_liquidity(pool, "bob", 2**62, 2**62)
        assert snapshot(ledger) == before
        assert load_pool(ledger, pool).total_liquidity == 2**63

    def test_binding_follows_latest_pool(self, ledger, protocol, funded_pool):
        other = protocol.create_pool("dave", "SOL", "USDC", 50, 80, 5, 10)
        fund(ledger, "bob", "SOL", 10)
        fund(ledger, "bob", "USDC", 10)
        protocol.provide_liquidity(other, "bob", 10, 10)
        record = load_provider(ledger, "bob")
        assert record.liquidity_pool == other
        assert record.total_lp_tokens == 2020

    def test_zero_deposit_binds_without_moves(self, ledger, protocol, pool):
        protocol.init_provider("bob")
        pending = compute_provide_liquidity(ledger, pool, "bob", 0, 0)
        assert pending.moves == ()
        ledger.commit(pending)
        assert load_provider(ledger, "bob").liquidity_pool == pool
