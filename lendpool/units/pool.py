"""
pool.py - Liquidity Pool Records

A pool pairs two mints under one authority. It owns four custody accounts
(a vault and a fee vault per mint), issues LP shares through its own mint,
and carries the lending parameters every borrow reads.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASS (explicit inputs):
   - LiquidityPool: immutable snapshot of a pool record

2. PURE VALIDATION (validate_*):
   - Plain values in, typed error out

3. ADAPTER FUNCTIONS (load_pool / to_state_dict):
   - The ONLY place that touches LedgerView for pool reads

4. OPERATIONS (create_pool / compute_parameter_update):
   - Return a PendingTransaction; never mutate

Parameters:
    ltv_ratio               percent of collateral lent out on borrow
    liquidation_threshold   percent (stored; ltv <= threshold enforced on update only)
    liquidation_penalty     percent (stored; never applied to a payout)
    interest_rate           percent (stored; never accrued)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Any

from ..core import (
    LedgerView, PendingTransaction, TransactionOrigin, OriginType,
    UnitStateChange, TokenAccount,
    AccountNotInitialized, UnitNotRegistered,
    UNIT_TYPE_LIQUIDITY_POOL,
    build_transaction, mint, record_unit, unix_timestamp,
)
from ..errors import (
    SameTokenMints, InvalidLtv, InvalidLiquidationThreshold,
    InvalidLiquidationPenalty, InvalidAuthority, InvalidLtvThreshold,
    InvalidPenalty, InvalidInterestRate, InvalidMint,
)
from ..arithmetic import require_u8
from ..addressing import (
    pool_address, lp_mint_address,
    vault_a_address, vault_b_address,
    fee_vault_a_address, fee_vault_b_address,
)


PERCENT_MAX = 100
LP_MINT_DECIMALS = 6


@dataclass(frozen=True, slots=True)
class LiquidityPool:
    """Immutable snapshot of a pool record. ``address`` is the record's key, not a stored field."""
    address: str
    authority: str
    mint_a: str
    mint_b: str
    lp_mint: str
    vault_a: str
    vault_b: str
    fee_vault_a: str
    fee_vault_b: str
    total_liquidity: int
    total_borrowed_a: int
    total_borrowed_b: int
    total_borrowed: int
    ltv_ratio: int
    liquidation_threshold: int
    liquidation_penalty: int
    interest_rate: int
    created_at: int
    lp_supply: int

    def vault_for(self, mint_symbol: str) -> str:
        if mint_symbol == self.mint_a:
            return self.vault_a
        if mint_symbol == self.mint_b:
            return self.vault_b
        raise InvalidMint(f"{mint_symbol} is not a mint of pool {self.address}")

    def fee_vault_for(self, mint_symbol: str) -> str:
        if mint_symbol == self.mint_a:
            return self.fee_vault_a
        if mint_symbol == self.mint_b:
            return self.fee_vault_b
        raise InvalidMint(f"{mint_symbol} is not a mint of pool {self.address}")

    def other_mint(self, mint_symbol: str) -> str:
        """The pool's mint opposite to ``mint_symbol``."""
        if mint_symbol == self.mint_a:
            return self.mint_b
        if mint_symbol == self.mint_b:
            return self.mint_a
        raise InvalidMint(f"{mint_symbol} is not a mint of pool {self.address}")


def load_pool(view: LedgerView, pool: str) -> LiquidityPool:
    """
    Load a pool record as a frozen LiquidityPool.

    Raises:
        AccountNotInitialized: If no pool record exists at ``pool``
    """
    if not view.has_unit(pool) or view.get_unit(pool).unit_type != UNIT_TYPE_LIQUIDITY_POOL:
        raise AccountNotInitialized(f"No liquidity pool at {pool}")
    raw = view.get_unit_state(pool)
    return LiquidityPool(
        address=pool,
        authority=raw['authority'],
        mint_a=raw['mint_a'],
        mint_b=raw['mint_b'],
        lp_mint=raw['lp_mint'],
        vault_a=raw['vault_a'],
        vault_b=raw['vault_b'],
        fee_vault_a=raw['fee_vault_a'],
        fee_vault_b=raw['fee_vault_b'],
        total_liquidity=raw.get('total_liquidity', 0),
        total_borrowed_a=raw.get('total_borrowed_a', 0),
        total_borrowed_b=raw.get('total_borrowed_b', 0),
        total_borrowed=raw.get('total_borrowed', 0),
        ltv_ratio=raw['ltv_ratio'],
        liquidation_threshold=raw['liquidation_threshold'],
        liquidation_penalty=raw['liquidation_penalty'],
        interest_rate=raw['interest_rate'],
        created_at=raw.get('created_at', 0),
        lp_supply=raw.get('lp_supply', 0),
    )


def to_state_dict(pool: LiquidityPool) -> Dict[str, Any]:
    """Inverse of load_pool(): the stored fields of a pool record."""
    return {
        'authority': pool.authority,
        'mint_a': pool.mint_a,
        'mint_b': pool.mint_b,
        'lp_mint': pool.lp_mint,
        'vault_a': pool.vault_a,
        'vault_b': pool.vault_b,
        'fee_vault_a': pool.fee_vault_a,
        'fee_vault_b': pool.fee_vault_b,
        'total_liquidity': pool.total_liquidity,
        'total_borrowed_a': pool.total_borrowed_a,
        'total_borrowed_b': pool.total_borrowed_b,
        'total_borrowed': pool.total_borrowed,
        'ltv_ratio': pool.ltv_ratio,
        'liquidation_threshold': pool.liquidation_threshold,
        'liquidation_penalty': pool.liquidation_penalty,
        'interest_rate': pool.interest_rate,
        'created_at': pool.created_at,
        'lp_supply': pool.lp_supply,
    }


# ============================================================================
# VALIDATION
# ============================================================================

def validate_pool_parameters(ltv: int, liq_threshold: int, liq_penalty: int) -> None:
    """
    Creation-time parameter rules: each percentage in (0, 100].

    ltv <= liq_threshold is deliberately not checked here; only updates enforce it.
    """
    if not 0 < ltv <= PERCENT_MAX:
        raise InvalidLtv(f"ltv must be in (0, {PERCENT_MAX}], got {ltv}")
    if not 0 < liq_threshold <= PERCENT_MAX:
        raise InvalidLiquidationThreshold(
            f"liquidation threshold must be in (0, {PERCENT_MAX}], got {liq_threshold}"
        )
    if not 0 < liq_penalty <= PERCENT_MAX:
        raise InvalidLiquidationPenalty(
            f"liquidation penalty must be in (0, {PERCENT_MAX}], got {liq_penalty}"
        )


def validate_parameter_update(
    new_ltv: int, new_threshold: int, new_penalty: int, new_interest_rate: int
) -> None:
    """Update-time parameter rules."""
    if new_ltv > new_threshold:
        raise InvalidLtvThreshold(f"ltv {new_ltv} exceeds liquidation threshold {new_threshold}")
    if new_penalty >= PERCENT_MAX:
        raise InvalidPenalty(f"liquidation penalty must be below {PERCENT_MAX}, got {new_penalty}")
    if new_interest_rate > PERCENT_MAX:
        raise InvalidInterestRate(f"interest rate must be at most {PERCENT_MAX}, got {new_interest_rate}")


# ============================================================================
# OPERATIONS
# ============================================================================

def create_pool(
    view: LedgerView,
    creator: str,
    mint_a: str,
    mint_b: str,
    ltv: int,
    liq_threshold: int,
    liq_penalty: int,
    interest_rate: int,
) -> PendingTransaction:
    """
    Create a pool for (mint_a, mint_b) owned by ``creator``.

    The pending transaction allocates the pool record, its LP mint (6
    decimals, the pool as mint authority) and the four custody accounts,
    all owned by the pool. Counters start at zero.

    Raises:
        UnitNotRegistered: If either mint is unknown
        SameTokenMints, InvalidLtv, InvalidLiquidationThreshold,
        InvalidLiquidationPenalty: Parameter validation failures

    Example:
        pending = create_pool(ledger, "alice", "SOL", "USDC", 50, 80, 5, 10)
        ledger.commit(pending)
    """
    for name, value in (('ltv', ltv), ('liq_threshold', liq_threshold),
                        ('liq_penalty', liq_penalty), ('interest_rate', interest_rate)):
        require_u8(value, name)

    if mint_a == mint_b:
        raise SameTokenMints(f"Pool mints must differ, got {mint_a} twice")
    validate_pool_parameters(ltv, liq_threshold, liq_penalty)

    for symbol in (mint_a, mint_b):
        if not view.has_unit(symbol) or not view.get_unit(symbol).is_mint:
            raise UnitNotRegistered(f"Mint {symbol} not registered")

    address = pool_address(mint_a, mint_b, creator)
    pool = LiquidityPool(
        address=address,
        authority=creator,
        mint_a=mint_a,
        mint_b=mint_b,
        lp_mint=lp_mint_address(address),
        vault_a=vault_a_address(mint_a, address),
        vault_b=vault_b_address(mint_b, address),
        fee_vault_a=fee_vault_a_address(mint_a, address),
        fee_vault_b=fee_vault_b_address(mint_b, address),
        total_liquidity=0,
        total_borrowed_a=0,
        total_borrowed_b=0,
        total_borrowed=0,
        ltv_ratio=ltv,
        liquidation_threshold=liq_threshold,
        liquidation_penalty=liq_penalty,
        interest_rate=interest_rate,
        created_at=unix_timestamp(view.current_time),
        lp_supply=0,
    )

    units = (
        record_unit(address, f"Pool {mint_a}/{mint_b}", UNIT_TYPE_LIQUIDITY_POOL, to_state_dict(pool)),
        mint(pool.lp_mint, f"LP {mint_a}/{mint_b}", decimals=LP_MINT_DECIMALS, mint_authority=address),
    )
    accounts = (
        TokenAccount(address=pool.vault_a, owner=address, mint=mint_a),
        TokenAccount(address=pool.vault_b, owner=address, mint=mint_b),
        TokenAccount(address=pool.fee_vault_a, owner=address, mint=mint_a),
        TokenAccount(address=pool.fee_vault_b, owner=address, mint=mint_b),
    )
    origin = TransactionOrigin(OriginType.USER_ACTION, creator, unit_symbol=address, event_type="CREATE_POOL")
    return build_transaction(view, [], origin=origin, units_to_create=units, accounts_to_create=accounts)


def compute_parameter_update(
    view: LedgerView,
    pool: str,
    caller: str,
    new_ltv: int,
    new_threshold: int,
    new_penalty: int,
    new_interest_rate: int,
) -> PendingTransaction:
    """
    Overwrite the pool's four lending parameters in one state change.

    Raises:
        InvalidAuthority: If ``caller`` is not the pool authority
        InvalidLtvThreshold, InvalidPenalty, InvalidInterestRate
    """
    for name, value in (('new_ltv', new_ltv), ('new_threshold', new_threshold),
                        ('new_penalty', new_penalty), ('new_interest_rate', new_interest_rate)):
        require_u8(value, name)

    current = load_pool(view, pool)
    if caller != current.authority:
        raise InvalidAuthority(f"{caller} is not the authority of pool {pool}")
    validate_parameter_update(new_ltv, new_threshold, new_penalty, new_interest_rate)

    old_state = to_state_dict(current)
    new_state = {
        **old_state,
        'ltv_ratio': new_ltv,
        'liquidation_threshold': new_threshold,
        'liquidation_penalty': new_penalty,
        'interest_rate': new_interest_rate,
    }
    origin = TransactionOrigin(OriginType.USER_ACTION, caller, unit_symbol=pool, event_type="UPDATE_POOL_PARAMETERS")
    return build_transaction(
        view, [], [UnitStateChange(unit=pool, old_state=old_state, new_state=new_state)], origin=origin,
    )
