"""
position.py - Borrow Positions

A borrower posts collateral in one pool mint and draws the other mint,
bounded by the pool's LTV:

    borrow_amount = floor(amount * ltv_ratio / 100)

Positions are keyed by borrower alone, so each borrower has one position
system-wide. Repeated borrows before full repayment accumulate into it;
every borrow overwrites borrowed_at and the duration.

Duration selectors map 0 -> TEN_DAYS, 1 -> TWENTY_DAYS, 2 -> TWENTY_DAYS and
anything else -> TEN_DAYS. THIRTY_DAYS is a valid stored value that no
selector produces.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, List, Optional

from ..core import (
    LedgerView, Move, PendingTransaction, TransactionOrigin, OriginType,
    UnitStateChange, AccountNotInitialized,
    UNIT_TYPE_BORROW_POSITION,
    build_transaction, record_unit, unix_timestamp,
)
from ..errors import InvalidMint, MathOverflow
from ..arithmetic import checked_add, checked_sub, checked_mul, checked_div, require_u64, require_u8
from ..addressing import position_address, associated_token_address
from .custody import associated_account, transfer
from .pool import PERCENT_MAX, LiquidityPool, load_pool, to_state_dict as pool_state_dict


class BorrowDuration(Enum):
    TEN_DAYS = 10
    TWENTY_DAYS = 20
    THIRTY_DAYS = 30


def duration_from_selector(selector: int) -> BorrowDuration:
    """Map a borrow's duration selector to a BorrowDuration. Never fails."""
    if selector == 0:
        return BorrowDuration.TEN_DAYS
    if selector in (1, 2):
        return BorrowDuration.TWENTY_DAYS
    return BorrowDuration.TEN_DAYS


@dataclass(frozen=True, slots=True)
class BorrowPosition:
    """
    Immutable snapshot of a borrower's position.

    repaid_amount and is_closed are stored for compatibility and never
    change after a borrow resets them.
    """
    address: str
    borrower: str
    borrowed_from_pool: str
    borrow_mint: str
    total_borrowed: int
    total_collateral: int
    borrowed_at: int
    borrow_duration: BorrowDuration
    repaid_amount: int
    is_closed: bool


def load_position(view: LedgerView, borrower: str) -> Optional[BorrowPosition]:
    """The position of ``borrower``, or None if the borrower never borrowed."""
    address = position_address(borrower)
    if not view.has_unit(address):
        return None
    raw = view.get_unit_state(address)
    return BorrowPosition(
        address=address,
        borrower=raw['borrower'],
        borrowed_from_pool=raw['borrowed_from_pool'],
        borrow_mint=raw.get('borrow_mint', ''),
        total_borrowed=raw.get('total_borrowed', 0),
        total_collateral=raw.get('total_collateral', 0),
        borrowed_at=raw.get('borrowed_at', 0),
        borrow_duration=BorrowDuration(raw.get('borrow_duration', BorrowDuration.TEN_DAYS.value)),
        repaid_amount=raw.get('repaid_amount', 0),
        is_closed=raw.get('is_closed', False),
    )


def require_position(view: LedgerView, borrower: str) -> BorrowPosition:
    """
    Raises:
        AccountNotInitialized: If the borrower has no position
    """
    position = load_position(view, borrower)
    if position is None:
        raise AccountNotInitialized(f"No borrow position for {borrower}")
    return position


def to_state_dict(position: BorrowPosition) -> Dict[str, Any]:
    return {
        'borrower': position.borrower,
        'borrowed_from_pool': position.borrowed_from_pool,
        'borrow_mint': position.borrow_mint,
        'total_borrowed': position.total_borrowed,
        'total_collateral': position.total_collateral,
        'borrowed_at': position.borrowed_at,
        'borrow_duration': position.borrow_duration.value,
        'repaid_amount': position.repaid_amount,
        'is_closed': position.is_closed,
    }


def calculate_borrow_amount(amount: int, ltv_ratio: int) -> int:
    """
    Amount lent against ``amount`` of collateral, truncated toward zero.

    >>> calculate_borrow_amount(1000, 50)
    500
    >>> calculate_borrow_amount(999, 33)
    329
    """
    return checked_div(checked_mul(amount, ltv_ratio, error=MathOverflow), PERCENT_MAX, error=MathOverflow)


def resolve_mints(pool: LiquidityPool, giving_mint: str):
    """(collateral_mint, borrow_mint) for a borrow that posts ``giving_mint``."""
    if giving_mint == pool.mint_a:
        return pool.mint_a, pool.mint_b
    if giving_mint == pool.mint_b:
        return pool.mint_b, pool.mint_a
    raise InvalidMint(f"{giving_mint} is not a mint of pool {pool.address}")


def compute_borrow(
    view: LedgerView,
    pool: str,
    borrower: str,
    giving_mint: str,
    wanted_mint: str,
    amount: int,
    duration_selector: int,
) -> PendingTransaction:
    """
    Post ``amount`` of ``giving_mint`` as collateral and draw the opposite mint.

    Moves:
        amount of collateral mint         borrower -> collateral vault (signed by borrower)
        borrow_amount of the borrow mint  borrow vault -> borrower's ``wanted_mint``
                                          account (signed by the pool)

    A wanted mint that is not the borrow mint is rejected by the ledger with
    MintMismatch, since the receiving account holds the wanted mint.

    Raises:
        InvalidMint: If giving_mint is not one of the pool's mints
        MathOverflow: If any bookkeeping step leaves the u64 range,
                      including total_liquidity going below zero

    Example:
        # ltv 50: 1000 SOL of collateral draws 500 USDC
        pending = compute_borrow(ledger, pool, "carol", "SOL", "USDC", 1000, 0)
    """
    require_u64(amount, 'amount')
    require_u8(duration_selector, 'duration_selector')

    current_pool = load_pool(view, pool)
    collateral_mint, borrow_mint = resolve_mints(current_pool, giving_mint)
    borrow_amount = calculate_borrow_amount(amount, current_pool.ltv_ratio)

    moves: List[Move] = []
    accounts = []
    contract_id = f"borrow_{pool}"
    transfer(moves, view, amount, collateral_mint,
             associated_token_address(borrower, collateral_mint), current_pool.vault_for(collateral_mint),
             borrower, contract_id)
    if borrow_amount:
        receiving, to_open = associated_account(view, borrower, wanted_mint)
        if to_open is not None:
            accounts.append(to_open)
        transfer(moves, view, borrow_amount, borrow_mint,
                 current_pool.vault_for(borrow_mint), receiving,
                 pool, contract_id)

    existing = load_position(view, borrower)
    previous_borrowed = existing.total_borrowed if existing else 0
    previous_collateral = existing.total_collateral if existing else 0
    position = BorrowPosition(
        address=position_address(borrower),
        borrower=borrower,
        borrowed_from_pool=pool,
        borrow_mint=borrow_mint,
        total_borrowed=checked_add(previous_borrowed, borrow_amount, error=MathOverflow),
        total_collateral=checked_add(previous_collateral, amount, error=MathOverflow),
        borrowed_at=unix_timestamp(view.current_time),
        borrow_duration=duration_from_selector(duration_selector),
        repaid_amount=0,
        is_closed=False,
    )

    total_borrowed_a = current_pool.total_borrowed_a
    total_borrowed_b = current_pool.total_borrowed_b
    if borrow_mint == current_pool.mint_a:
        total_borrowed_a = checked_add(total_borrowed_a, borrow_amount, error=MathOverflow)
    else:
        total_borrowed_b = checked_add(total_borrowed_b, borrow_amount, error=MathOverflow)
    old_pool_state = pool_state_dict(current_pool)
    new_pool_state = {
        **old_pool_state,
        'total_liquidity': checked_sub(current_pool.total_liquidity, borrow_amount, error=MathOverflow),
        'total_borrowed_a': total_borrowed_a,
        'total_borrowed_b': total_borrowed_b,
        'total_borrowed': checked_add(total_borrowed_a, total_borrowed_b, error=MathOverflow),
    }

    state_changes = [UnitStateChange(unit=pool, old_state=old_pool_state, new_state=new_pool_state)]
    units = ()
    if existing is None:
        units = (record_unit(position.address, f"Position {borrower}", UNIT_TYPE_BORROW_POSITION,
                             to_state_dict(position)),)
    else:
        state_changes.append(UnitStateChange(
            unit=position.address, old_state=to_state_dict(existing), new_state=to_state_dict(position),
        ))

    origin = TransactionOrigin(OriginType.USER_ACTION, borrower, unit_symbol=pool, event_type="BORROW")
    return build_transaction(view, moves, state_changes, origin=origin,
                             units_to_create=units, accounts_to_create=tuple(accounts))
