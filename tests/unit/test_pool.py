"""
test_pool.py - Unit tests for pool creation and parameter updates

Tests:
- create_pool allocations (record, LP mint, four custody accounts)
- Creation parameter validation, as examples and as a property
- Duplicate creation rejected by the ledger
- Parameter updates: authority check and update-time rules
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lendpool import (
    ExecuteResult, mint, unix_timestamp,
    SameTokenMints, InvalidLtv, InvalidLiquidationThreshold, InvalidLiquidationPenalty,
    InvalidAuthority, InvalidLtvThreshold, InvalidPenalty, InvalidInterestRate,
    UnitNotRegistered, AccountAlreadyInitialized, AccountNotInitialized, ValidationError,
    UNIT_TYPE_LIQUIDITY_POOL,
    create_pool, compute_parameter_update, load_pool, pool_address,
)
from tests.builders import make_ledger, snapshot
from tests.fake_view import FakeView


percent = st.integers(min_value=0, max_value=255)


class TestCreatePool:

    def test_pool_record(self, ledger, pool):
        state = load_pool(ledger, pool)
        assert pool == pool_address("SOL", "USDC", "alice")
        assert ledger.get_unit(pool).unit_type == UNIT_TYPE_LIQUIDITY_POOL
        assert state.authority == "alice"
        assert (state.mint_a, state.mint_b) == ("SOL", "USDC")
        assert (state.ltv_ratio, state.liquidation_threshold) == (50, 80)
        assert (state.liquidation_penalty, state.interest_rate) == (5, 10)
        assert state.created_at == unix_timestamp(ledger.current_time)

    def test_counters_start_at_zero(self, ledger, pool):
        state = load_pool(ledger, pool)
        assert state.total_liquidity == 0
        assert state.total_borrowed_a == state.total_borrowed_b == state.total_borrowed == 0
        assert state.lp_supply == 0

    def test_lp_mint_is_issued_by_the_pool(self, ledger, pool):
        lp = ledger.get_unit(load_pool(ledger, pool).lp_mint)
        assert lp.is_mint
        assert lp.decimals == 6
        assert lp.state['mint_authority'] == pool

    def test_custody_accounts_owned_by_pool(self, ledger, pool):
        state = load_pool(ledger, pool)
        expected = {
            state.vault_a: "SOL", state.vault_b: "USDC",
            state.fee_vault_a: "SOL", state.fee_vault_b: "USDC",
        }
        for address, mint_symbol in expected.items():
            account = ledger.get_account(address)
            assert account.owner == pool
            assert account.mint == mint_symbol
            assert ledger.get_balance(address, mint_symbol) == 0

    def test_same_mints(self, ledger):
        with pytest.raises(SameTokenMints):
            create_pool(ledger, "alice", "SOL", "SOL", 50, 80, 5, 10)

    @pytest.mark.parametrize("ltv,threshold,penalty,error", [
        (0, 80, 5, InvalidLtv),
        (101, 80, 5, InvalidLtv),
        (50, 0, 5, InvalidLiquidationThreshold),
        (50, 101, 5, InvalidLiquidationThreshold),
        (50, 80, 0, InvalidLiquidationPenalty),
        (50, 80, 101, InvalidLiquidationPenalty),
    ])
    def test_parameter_bounds(self, ledger, ltv, threshold, penalty, error):
        with pytest.raises(error):
            create_pool(ledger, "alice", "SOL", "USDC", ltv, threshold, penalty, 10)

    def test_ltv_above_threshold_allowed_at_creation(self, ledger):
        pending = create_pool(ledger, "alice", "SOL", "USDC", 90, 50, 100, 0)
        assert ledger.commit(pending) == ExecuteResult.APPLIED

    def test_unknown_mint(self, ledger):
        with pytest.raises(UnitNotRegistered):
            create_pool(ledger, "alice", "SOL", "BONK", 50, 80, 5, 10)

    def test_duplicate_pool(self, ledger, pool):
        before = snapshot(ledger)
        with pytest.raises(AccountAlreadyInitialized):
            ledger.commit(create_pool(ledger, "alice", "SOL", "USDC", 60, 80, 5, 10))
        assert snapshot(ledger) == before

    def test_other_authority_gets_its_own_pool(self, ledger, pool):
        pending = create_pool(ledger, "dave", "SOL", "USDC", 50, 80, 5, 10)
        assert ledger.commit(pending) == ExecuteResult.APPLIED
        assert load_pool(ledger, pool_address("SOL", "USDC", "dave")).authority == "dave"

    def test_pure_against_fake_view(self):
        view = FakeView(units={"SOL": mint("SOL", "Solana", 9), "USDC": mint("USDC", "USD Coin")})
        pending = create_pool(view, "alice", "SOL", "USDC", 50, 80, 5, 10)
        assert len(pending.units_to_create) == 2
        assert len(pending.accounts_to_create) == 4
        assert pending.moves == ()
        assert not view.has_unit(pool_address("SOL", "USDC", "alice"))

    @given(percent, percent, percent)
    @settings(max_examples=200, deadline=None)
    def test_accepted_iff_all_percentages_in_range(self, ltv, threshold, penalty):
        ledger = make_ledger()
        valid = 0 < ltv <= 100 and 0 < threshold <= 100 and 0 < penalty <= 100
        if valid:
            create_pool(ledger, "alice", "SOL", "USDC", ltv, threshold, penalty, 0)
        else:
            with pytest.raises(ValidationError):
                create_pool(ledger, "alice", "SOL", "USDC", ltv, threshold, penalty, 0)


class TestParameterUpdate:

    def test_authority_updates_all_four(self, ledger, protocol, pool):
        protocol.update_pool_parameters(pool, "alice", 60, 90, 10, 20)
        state = load_pool(ledger, pool)
        assert (state.ltv_ratio, state.liquidation_threshold) == (60, 90)
        assert (state.liquidation_penalty, state.interest_rate) == (10, 20)

    def test_non_authority_rejected(self, ledger, pool):
        with pytest.raises(InvalidAuthority):
            compute_parameter_update(ledger, pool, "mallory", 60, 90, 10, 20)

    def test_authority_checked_before_parameters(self, ledger, pool):
        with pytest.raises(InvalidAuthority):
            compute_parameter_update(ledger, pool, "mallory", 90, 60, 100, 200)

    def test_ltv_above_threshold(self, ledger, pool):
        with pytest.raises(InvalidLtvThreshold):
            compute_parameter_update(ledger, pool, "alice", 81, 80, 5, 10)

    def test_penalty_must_be_below_100(self, ledger, pool):
        with pytest.raises(InvalidPenalty):
            compute_parameter_update(ledger, pool, "alice", 50, 80, 100, 10)
        compute_parameter_update(ledger, pool, "alice", 50, 80, 99, 10)

    def test_interest_rate_at_most_100(self, ledger, pool):
        with pytest.raises(InvalidInterestRate):
            compute_parameter_update(ledger, pool, "alice", 50, 80, 5, 101)
        compute_parameter_update(ledger, pool, "alice", 50, 80, 5, 100)

    def test_zero_ltv_allowed_on_update(self, ledger, protocol, pool):
        protocol.update_pool_parameters(pool, "alice", 0, 0, 0, 0)
        assert load_pool(ledger, pool).ltv_ratio == 0

    def test_returning_to_an_earlier_setting(self, ledger, protocol, pool):
        for ltv in (60, 50, 60):
            assert protocol.update_pool_parameters(pool, "alice", ltv, 80, 5, 10) == ExecuteResult.APPLIED
        assert load_pool(ledger, pool).ltv_ratio == 60
        events = [tx.origin.event_type for tx in ledger.transaction_log]
        assert events.count("UPDATE_POOL_PARAMETERS") == 3

    def test_counters_untouched(self, ledger, protocol, funded_pool):
        before = load_pool(ledger, funded_pool)
        protocol.update_pool_parameters(funded_pool, "alice", 70, 90, 10, 20)
        after = load_pool(ledger, funded_pool)
        assert after.total_liquidity == before.total_liquidity == 2000

    def test_missing_pool(self, ledger):
        with pytest.raises(AccountNotInitialized):
            compute_parameter_update(ledger, "nope", "alice", 50, 80, 5, 10)

    @given(percent, percent, percent, percent)
    @settings(max_examples=200, deadline=None)
    def test_accepted_iff_rules_hold(self, ltv, threshold, penalty, rate):
        ledger = make_ledger()
        ledger.commit(create_pool(ledger, "alice", "SOL", "USDC", 50, 80, 5, 10))
        pool = pool_address("SOL", "USDC", "alice")
        valid = ltv <= threshold and penalty < 100 and rate <= 100
        if valid:
            compute_parameter_update(ledger, pool, "alice", ltv, threshold, penalty, rate)
        else:
            with pytest.raises(ValidationError):
                compute_parameter_update(ledger, pool, "alice", ltv, threshold, penalty, rate)
