"""
custody.py - Transfer building blocks shared by the lending operations.

Every operation expresses token movement as Moves against token accounts.
These helpers resolve a mint's decimals, locate (or plan to open) a user's
associated token account, and build a Move only when there is something to
move.
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from ..core import (
    LedgerView, Move, TokenAccount,
    UnitNotRegistered, WalletNotRegistered,
)
from ..addressing import associated_token_address


def mint_decimals(view: LedgerView, mint_symbol: str) -> int:
    """Decimals of a registered mint."""
    unit = view.get_unit(mint_symbol)
    if not unit.is_mint:
        raise UnitNotRegistered(f"{mint_symbol} is not a mint")
    return unit.decimals


def account_exists(view: LedgerView, address: str) -> bool:
    try:
        view.get_account(address)
    except WalletNotRegistered:
        return False
    return True


def associated_account(
    view: LedgerView, owner: str, mint_symbol: str
) -> Tuple[str, Optional[TokenAccount]]:
    """
    Address of ``owner``'s associated account for a mint.

    Returns (address, account_to_create). The second element is None when
    the account already exists; otherwise it is the account the transaction
    must open before paying into it.
    """
    address = associated_token_address(owner, mint_symbol)
    if account_exists(view, address):
        return address, None
    return address, TokenAccount(address=address, owner=owner, mint=mint_symbol)


def transfer(
    moves: List[Move],
    view: LedgerView,
    quantity: int,
    mint_symbol: str,
    source: str,
    dest: str,
    authority: str,
    contract_id: str,
) -> None:
    """Append a checked transfer to ``moves``. Zero quantities move nothing."""
    if quantity == 0:
        return
    moves.append(Move(
        quantity=quantity,
        unit_symbol=mint_symbol,
        source=source,
        dest=dest,
        authority=authority,
        decimals=mint_decimals(view, mint_symbol),
        contract_id=contract_id,
    ))
