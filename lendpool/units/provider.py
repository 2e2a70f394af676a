"""
provider.py - Liquidity Provider Records

Tracks what each provider has contributed and the LP shares issued for it.
Deposits are symmetric (equal amounts of both pool mints) and LP shares are
issued 1:1 against the deposited total, with no share-price curve. All
provider counters only ever grow; there is no withdrawal.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Any, List

from ..core import (
    LedgerView, Move, PendingTransaction, TransactionOrigin, OriginType,
    UnitStateChange, AccountNotInitialized, SYSTEM_WALLET,
    UNIT_TYPE_LIQUIDITY_PROVIDER,
    build_transaction, record_unit,
)
from ..errors import InvalidLiquidityAmount, Overflow
from ..arithmetic import checked_add, require_u64
from ..addressing import provider_address, associated_token_address
from .custody import associated_account, transfer
from .pool import load_pool, to_state_dict as pool_state_dict


@dataclass(frozen=True, slots=True)
class LiquidityProvider:
    """Immutable snapshot of a provider record. ``liquidity_pool`` is empty until the first deposit."""
    address: str
    provider: str
    liquidity_pool: str
    provided_token_a: int
    provided_token_b: int
    total_liquidity_provided: int
    total_lp_tokens: int


def load_provider(view: LedgerView, provider: str) -> LiquidityProvider:
    """
    Load the record of ``provider`` (an identity, not an address).

    Raises:
        AccountNotInitialized: If init_provider() was never applied for this identity
    """
    address = provider_address(provider)
    if not view.has_unit(address):
        raise AccountNotInitialized(f"Provider {provider} not initialized")
    raw = view.get_unit_state(address)
    return LiquidityProvider(
        address=address,
        provider=raw['provider'],
        liquidity_pool=raw.get('liquidity_pool', ''),
        provided_token_a=raw.get('provided_token_a', 0),
        provided_token_b=raw.get('provided_token_b', 0),
        total_liquidity_provided=raw.get('total_liquidity_provided', 0),
        total_lp_tokens=raw.get('total_lp_tokens', 0),
    )


def to_state_dict(record: LiquidityProvider) -> Dict[str, Any]:
    return {
        'provider': record.provider,
        'liquidity_pool': record.liquidity_pool,
        'provided_token_a': record.provided_token_a,
        'provided_token_b': record.provided_token_b,
        'total_liquidity_provided': record.total_liquidity_provided,
        'total_lp_tokens': record.total_lp_tokens,
    }


def calculate_lp_tokens(amount_a: int, amount_b: int) -> int:
    """LP shares for a deposit: flat 1:1 against the deposited total."""
    return checked_add(amount_a, amount_b, error=Overflow)


def init_provider(view: LedgerView, provider: str) -> PendingTransaction:
    """
    Create a zeroed provider record.

    A second initialization for the same identity is rejected by the ledger
    with AccountAlreadyInitialized.
    """
    record = LiquidityProvider(
        address=provider_address(provider),
        provider=provider,
        liquidity_pool='',
        provided_token_a=0,
        provided_token_b=0,
        total_liquidity_provided=0,
        total_lp_tokens=0,
    )
    unit = record_unit(record.address, f"Provider {provider}", UNIT_TYPE_LIQUIDITY_PROVIDER, to_state_dict(record))
    origin = TransactionOrigin(OriginType.USER_ACTION, provider, unit_symbol=record.address, event_type="INIT_PROVIDER")
    return build_transaction(view, [], origin=origin, units_to_create=(unit,))


def compute_provide_liquidity(
    view: LedgerView,
    pool: str,
    provider: str,
    amount_a: int,
    amount_b: int,
) -> PendingTransaction:
    """
    Deposit equal amounts of both pool mints and receive LP shares.

    Moves:
        amount_a of mint_a  provider account -> vault_a   (signed by provider)
        amount_b of mint_b  provider account -> vault_b   (signed by provider)
        lp of LP mint       issuance -> provider LP account (signed by the pool)

    Record changes:
        pool.total_liquidity += amount_a + amount_b
        provider counters += deposit; provider bound to this pool

    Raises:
        InvalidLiquidityAmount: If amount_a != amount_b
        Overflow: If any counter would exceed u64
        AccountNotInitialized: If the pool or provider record is missing

    Example:
        # Empty pool: lp = 2000, pool.total_liquidity = 2000
        pending = compute_provide_liquidity(ledger, pool, "bob", 1000, 1000)
    """
    require_u64(amount_a, 'amount_a')
    require_u64(amount_b, 'amount_b')
    if amount_a != amount_b:
        raise InvalidLiquidityAmount(f"Deposits must be equal, got {amount_a} and {amount_b}")

    current_pool = load_pool(view, pool)
    record = load_provider(view, provider)

    lp_minted = calculate_lp_tokens(amount_a, amount_b)
    new_total_liquidity = checked_add(current_pool.total_liquidity, lp_minted, error=Overflow)
    new_record = LiquidityProvider(
        address=record.address,
        provider=record.provider,
        liquidity_pool=pool,
        provided_token_a=checked_add(record.provided_token_a, amount_a, error=Overflow),
        provided_token_b=checked_add(record.provided_token_b, amount_b, error=Overflow),
        total_liquidity_provided=checked_add(record.total_liquidity_provided, lp_minted, error=Overflow),
        total_lp_tokens=checked_add(record.total_lp_tokens, lp_minted, error=Overflow),
    )

    moves: List[Move] = []
    contract_id = f"provide_liquidity_{pool}"
    transfer(moves, view, amount_a, current_pool.mint_a,
             associated_token_address(provider, current_pool.mint_a), current_pool.vault_a,
             provider, contract_id)
    transfer(moves, view, amount_b, current_pool.mint_b,
             associated_token_address(provider, current_pool.mint_b), current_pool.vault_b,
             provider, contract_id)

    accounts = []
    if lp_minted:
        lp_account, to_open = associated_account(view, provider, current_pool.lp_mint)
        if to_open is not None:
            accounts.append(to_open)
        transfer(moves, view, lp_minted, current_pool.lp_mint, SYSTEM_WALLET, lp_account,
                 pool, contract_id)

    old_pool_state = pool_state_dict(current_pool)
    new_pool_state = {**old_pool_state, 'total_liquidity': new_total_liquidity}
    state_changes = [
        UnitStateChange(unit=pool, old_state=old_pool_state, new_state=new_pool_state),
        UnitStateChange(unit=record.address, old_state=to_state_dict(record), new_state=to_state_dict(new_record)),
    ]
    origin = TransactionOrigin(OriginType.USER_ACTION, provider, unit_symbol=pool, event_type="PROVIDE_LIQUIDITY")
    return build_transaction(view, moves, state_changes, origin=origin, accounts_to_create=tuple(accounts))
