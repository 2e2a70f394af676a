"""
protocol.py - Operation surface of the lending protocol.

LendingProtocol binds the pure compute functions to a Ledger: each method
builds the operation's PendingTransaction and commits it. A method either
applies its whole effect or raises, leaving the ledger untouched.

Example:
    ledger = Ledger("main")
    protocol = LendingProtocol(ledger)
    pool = protocol.create_pool("alice", "SOL", "USDC", ltv=50, liq_threshold=80,
                                liq_penalty=5, interest_rate=10)
    protocol.init_provider("bob")
    protocol.provide_liquidity(pool, "bob", 1000, 1000)
    protocol.borrow(pool, "carol", "SOL", "USDC", 1000, duration_selector=0)
"""

from __future__ import annotations

from .core import ExecuteResult, PendingTransaction, DuplicateTransaction
from .ledger import Ledger
from .addressing import pool_address, provider_address
from .units.pool import create_pool, compute_parameter_update
from .units.provider import init_provider, compute_provide_liquidity
from .units.position import compute_borrow
from .units.repayment import compute_repayment
from .units.liquidation import compute_liquidation


class LendingProtocol:
    """One method per operation, each committed atomically to ``ledger``."""

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    def submit(self, pending: PendingTransaction) -> ExecuteResult:
        """Commit a pending transaction, raising if it was already applied."""
        result = self.ledger.commit(pending)
        if result == ExecuteResult.ALREADY_APPLIED:
            raise DuplicateTransaction(f"Intent {pending.intent_id} was already applied")
        return result

    def create_pool(
        self,
        creator: str,
        mint_a: str,
        mint_b: str,
        ltv: int,
        liq_threshold: int,
        liq_penalty: int,
        interest_rate: int,
    ) -> str:
        """Create a pool and return its address."""
        pending = create_pool(self.ledger, creator, mint_a, mint_b, ltv, liq_threshold,
                              liq_penalty, interest_rate)
        self.submit(pending)
        return pool_address(mint_a, mint_b, creator)

    def update_pool_parameters(
        self,
        pool: str,
        caller: str,
        new_ltv: int,
        new_threshold: int,
        new_penalty: int,
        new_interest_rate: int,
    ) -> ExecuteResult:
        pending = compute_parameter_update(self.ledger, pool, caller, new_ltv, new_threshold,
                                           new_penalty, new_interest_rate)
        return self.submit(pending)

    def init_provider(self, provider: str) -> str:
        """Create the provider's record and return its address."""
        self.submit(init_provider(self.ledger, provider))
        return provider_address(provider)

    def provide_liquidity(self, pool: str, provider: str, amount_a: int, amount_b: int) -> ExecuteResult:
        return self.submit(compute_provide_liquidity(self.ledger, pool, provider, amount_a, amount_b))

    def borrow(
        self,
        pool: str,
        borrower: str,
        giving_mint: str,
        wanted_mint: str,
        amount: int,
        duration_selector: int,
    ) -> ExecuteResult:
        pending = compute_borrow(self.ledger, pool, borrower, giving_mint, wanted_mint,
                                 amount, duration_selector)
        return self.submit(pending)

    def repay(self, pool: str, borrower: str, repay_amount: int) -> ExecuteResult:
        return self.submit(compute_repayment(self.ledger, pool, borrower, repay_amount))

    def liquidate(self, pool: str, liquidator: str, borrower: str) -> ExecuteResult:
        return self.submit(compute_liquidation(self.ledger, pool, liquidator, borrower))
