"""
liquidation.py - Seizure of Expired Positions

Once a position's duration has run out, anyone may liquidate it and receive
the whole collateral. The duration's value is counted in seconds:

    expiry = borrowed_at + borrow_duration.value
    liquidatable iff now > expiry   (the expiry second itself is not)

The seizure moves the collateral out of the borrower's own collateral
account, signed by the borrower. liquidation_penalty is not applied.
"""

from __future__ import annotations
from typing import List

from ..core import (
    LedgerView, Move, PendingTransaction, TransactionOrigin, OriginType,
    UnitStateChange, UNIT_TYPE_BORROW_POSITION,
    build_transaction, unix_timestamp,
)
from ..errors import InvalidBorrower, LoanNotExpired, MathOverflow
from ..arithmetic import checked_add
from ..addressing import associated_token_address
from .custody import associated_account, transfer
from .pool import load_pool
from .position import BorrowDuration, BorrowPosition, load_position, to_state_dict


def calculate_expiry(borrowed_at: int, duration: BorrowDuration) -> int:
    """Unix second after which the position can be liquidated."""
    return checked_add(borrowed_at, duration.value, error=MathOverflow)


def is_expired(position: BorrowPosition, now: int) -> bool:
    return now > calculate_expiry(position.borrowed_at, position.borrow_duration)


def compute_liquidation(
    view: LedgerView,
    pool: str,
    liquidator: str,
    borrower: str,
) -> PendingTransaction:
    """
    Seize the collateral of ``borrower``'s expired position for ``liquidator``.

    Raises:
        InvalidBorrower: If the borrower has no position, or the position
                         was drawn from another pool
        LoanNotExpired: If now <= borrowed_at + duration
    """
    current_pool = load_pool(view, pool)
    position = load_position(view, borrower)
    if position is None or position.borrower != borrower:
        raise InvalidBorrower(f"{borrower} has no borrow position")
    if position.borrowed_from_pool != pool:
        raise InvalidBorrower(f"Position of {borrower} was not drawn from pool {pool}")

    now = unix_timestamp(view.current_time)
    expiry = calculate_expiry(position.borrowed_at, position.borrow_duration)
    if not now > expiry:
        raise LoanNotExpired(f"Position of {borrower} expires at {expiry}, now {now}")

    collateral_mint = current_pool.other_mint(position.borrow_mint)
    moves: List[Move] = []
    accounts = []
    # A borrower liquidating their own position keeps the collateral where it is
    if position.total_collateral and liquidator != borrower:
        receiving, to_open = associated_account(view, liquidator, collateral_mint)
        if to_open is not None:
            accounts.append(to_open)
        transfer(moves, view, position.total_collateral, collateral_mint,
                 associated_token_address(borrower, collateral_mint), receiving,
                 borrower, f"liquidate_{pool}")

    seized = BorrowPosition(
        address=position.address,
        borrower=position.borrower,
        borrowed_from_pool=position.borrowed_from_pool,
        borrow_mint=position.borrow_mint,
        total_borrowed=0,
        total_collateral=0,
        borrowed_at=0,
        borrow_duration=position.borrow_duration,
        repaid_amount=position.repaid_amount,
        is_closed=position.is_closed,
    )
    state_changes = [UnitStateChange(
        unit=position.address, old_state=to_state_dict(position), new_state=to_state_dict(seized),
    )]
    origin = TransactionOrigin(OriginType.USER_ACTION, liquidator, unit_symbol=pool, event_type="LIQUIDATE")
    return build_transaction(view, moves, state_changes, origin=origin, accounts_to_create=tuple(accounts))


def find_expired_positions(view: LedgerView, pool: str) -> List[str]:
    """
    Borrowers whose positions in ``pool`` hold collateral and have expired.

    Read-only; sorted so keepers see a stable order.
    """
    now = unix_timestamp(view.current_time)
    borrowers = []
    for symbol in view.list_units():
        if view.get_unit(symbol).unit_type != UNIT_TYPE_BORROW_POSITION:
            continue
        borrower = view.get_unit_state(symbol)['borrower']
        position = load_position(view, borrower)
        if position.borrowed_from_pool == pool and position.total_collateral > 0 and is_expired(position, now):
            borrowers.append(borrower)
    return sorted(borrowers)
