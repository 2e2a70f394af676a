"""
repayment.py - Debt Repayment and Collateral Release

Repayment pays the borrowed mint back into its vault in the pool the
position was drawn from. Reaching zero debt releases the whole collateral
to the borrower from the pool's fee vault of the collateral mint (the mint
opposite to the one borrowed), not from the vault the collateral was
deposited into. No interest is charged and pool counters are left as they
are.
"""

from __future__ import annotations
from typing import List

from ..core import (
    LedgerView, Move, PendingTransaction, TransactionOrigin, OriginType,
    UnitStateChange, build_transaction,
)
from ..errors import InvalidBorrower, InvalidRepayAmount, MathOverflow
from ..arithmetic import checked_sub, require_u64
from ..addressing import associated_token_address
from .custody import associated_account, transfer
from .pool import load_pool
from .position import BorrowPosition, require_position, to_state_dict


def compute_repayment(
    view: LedgerView,
    pool: str,
    borrower: str,
    repay_amount: int,
) -> PendingTransaction:
    """
    Repay part or all of the borrower's debt.

    Raises:
        AccountNotInitialized: If the borrower has no position
        InvalidBorrower: If the position was drawn from another pool
        InvalidRepayAmount: If repay_amount exceeds the outstanding debt
        InvalidMint: If the position's borrow mint does not belong to ``pool``

    Example:
        # total_borrowed 500, total_collateral 1000: debt and collateral
        # both go to zero and 1000 is released in the same transaction
        pending = compute_repayment(ledger, pool, "carol", 500)
    """
    require_u64(repay_amount, 'repay_amount')

    current_pool = load_pool(view, pool)
    position = require_position(view, borrower)
    if position.borrowed_from_pool != pool:
        raise InvalidBorrower(f"Position of {borrower} was not drawn from pool {pool}")
    if repay_amount > position.total_borrowed:
        raise InvalidRepayAmount(
            f"Repayment {repay_amount} exceeds outstanding debt {position.total_borrowed}"
        )

    borrow_mint = position.borrow_mint
    collateral_mint = current_pool.other_mint(borrow_mint)
    remaining = checked_sub(position.total_borrowed, repay_amount, error=MathOverflow)

    moves: List[Move] = []
    accounts = []
    contract_id = f"repay_{pool}"
    transfer(moves, view, repay_amount, borrow_mint,
             associated_token_address(borrower, borrow_mint), current_pool.vault_for(borrow_mint),
             borrower, contract_id)

    total_collateral = position.total_collateral
    if remaining == 0:
        if total_collateral:
            receiving, to_open = associated_account(view, borrower, collateral_mint)
            if to_open is not None:
                accounts.append(to_open)
            transfer(moves, view, total_collateral, collateral_mint,
                     current_pool.fee_vault_for(collateral_mint), receiving,
                     pool, contract_id)
        total_collateral = 0

    updated = BorrowPosition(
        address=position.address,
        borrower=position.borrower,
        borrowed_from_pool=position.borrowed_from_pool,
        borrow_mint=position.borrow_mint,
        total_borrowed=remaining,
        total_collateral=total_collateral,
        borrowed_at=position.borrowed_at,
        borrow_duration=position.borrow_duration,
        repaid_amount=position.repaid_amount,
        is_closed=position.is_closed,
    )
    state_changes = [UnitStateChange(
        unit=position.address, old_state=to_state_dict(position), new_state=to_state_dict(updated),
    )]
    origin = TransactionOrigin(OriginType.USER_ACTION, borrower, unit_symbol=pool, event_type="REPAY")
    return build_transaction(view, moves, state_changes, origin=origin, accounts_to_create=tuple(accounts))
