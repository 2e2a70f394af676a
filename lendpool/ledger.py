"""
ledger.py - Stateful Host, Token Custody and Record Store

The Ledger class is the central state manager for the lending system.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by compute functions
    - Executes transactions atomically (everything applies or nothing does)
    - Holds token accounts and their balances, checking every transfer's mint,
      decimals, authority and funds
    - Stores records (pools, providers, positions) as units with frozen state and
      rejects state changes built against a stale snapshot
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Set, Optional, Any
import copy
import threading

from .core import (
    # Types
    Transaction, Unit, TokenAccount,
    PendingTransaction,
    ExecuteResult,
    UnitState, BalanceMap,
    # Constants
    SYSTEM_WALLET, UNIX_EPOCH,
    # Exceptions
    LedgerError, InsufficientFunds, MintMismatch, UnauthorizedTransfer,
    BalanceConstraintViolation, UnitNotRegistered, WalletNotRegistered,
    AccountAlreadyInitialized, StaleState,
    # Helper functions
    _freeze_state, unix_timestamp,
)
from .addressing import associated_token_address


class Ledger:
    """
    Token custody ledger and record store with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to
    compute functions that only read.

    Design Principles:
        - Always validates: every transaction is checked against account
          mints, decimals, signing authority, balances and record snapshots
          before any of it is applied. No shortcuts.
        - Always logs: every applied transaction is recorded in the audit trail.

    Thread Safety:
        execute() and commit() hold a ledger-wide lock. Record state changes
        carry their old_state, so two operations built concurrently against the
        same record serialize: the second one to commit is rejected with
        StaleState and must be rebuilt. Operations on disjoint records never
        conflict.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(mint("USDC", "USD Coin"))
        alice_usdc = ledger.open_account("alice", "USDC")
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print registrations, applied transactions and rejections (default: True)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, BalanceMap] = {}
        self.units: Dict[str, Unit] = {}
        self.accounts: Dict[str, TokenAccount] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or UNIX_EPOCH
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        self._lock = threading.RLock()

        # The system wallet is the issuance source for every mint
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    @property
    def sequence_number(self) -> int:
        """Number of transactions applied so far."""
        return self._next_sequence

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a mint in a token account.

        Raises:
            WalletNotRegistered: If the account does not exist
            UnitNotRegistered: If the mint does not exist
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return copy.deepcopy(self.units[unit_symbol].state)

    def has_unit(self, unit_symbol: str) -> bool:
        return unit_symbol in self.units

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_account(self, address: str) -> TokenAccount:
        """Return the token account at ``address``."""
        if address not in self.accounts:
            raise WalletNotRegistered(f"Account {address} not registered")
        return self.accounts[address]

    def total_supply(self, unit_symbol: str) -> int:
        """
        Total of a mint held across all token accounts, excluding the system wallet.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def verify_double_entry(self, expected_supplies: Dict[str, int] = None) -> Dict[str, Any]:
        """
        Verify token conservation for every mint.

        Issuance from the system wallet is the only way supply changes, so for
        every mint the sum over all wallets including the system wallet is
        always zero-sum relative to issuance; the circulating supply (excluding
        the system wallet) must match the expected figure when one is given.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Circulating supply per mint
            - 'discrepancies': List[Dict] - unit, expected, actual, difference

        Example:
            before = ledger.verify_double_entry()['supplies']
            protocol.borrow(...)
            assert ledger.verify_double_entry(before)['valid']
        """
        supplies = {}
        discrepancies = []

        for unit_symbol, unit in self.units.items():
            if not unit.is_mint:
                continue
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply

            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                if current_supply != expected:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': current_supply,
                        'difference': current_supply - expected,
                    })

        if expected_supplies:
            for unit_symbol, expected in expected_supplies.items():
                if unit_symbol not in supplies:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': 0,
                        'difference': -expected,
                        'error': 'unit not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_unit(self, unit: Unit) -> None:
        """
        Register a mint or record.

        Raises:
            AccountAlreadyInitialized: If the symbol is already registered
        """
        if unit.symbol in self.units:
            raise AccountAlreadyInitialized(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    def register_account(self, account: TokenAccount) -> str:
        """
        Register a token account.

        Raises:
            AccountAlreadyInitialized: If the address is already registered
            UnitNotRegistered: If the account's mint is unknown
        """
        if account.address in self.registered_wallets:
            raise AccountAlreadyInitialized(f"Account {account.address} already registered")
        if account.mint not in self.units:
            raise UnitNotRegistered(f"Unit {account.mint} not registered")
        self.registered_wallets.add(account.address)
        self.accounts[account.address] = account
        self.balances[account.address] = defaultdict(int)
        return account.address

    def open_account(self, owner: str, mint_symbol: str) -> str:
        """Register the associated token account of ``owner`` for a mint and return its address."""
        address = associated_token_address(owner, mint_symbol)
        return self.register_account(TokenAccount(address=address, owner=owner, mint=mint_symbol))

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Set a token account's balance directly.

        WARNING: bypasses custody checks and the audit trail; only available
        in test mode. Production issuance is a Move out of SYSTEM_WALLET signed
        by the mint authority.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Issue tokens with a Move from the system wallet instead. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        self.balances[wallet_id][unit_symbol] = int(quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{unix_seconds}"""
        seconds = unix_timestamp(self._current_time)
        return f"exec:{self.name}:{sequence:012d}:{seconds}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        Everything in the transaction is validated before anything is applied:
        allocations target free addresses, every move passes the custody checks
        in order, and every record snapshot is current. Resubmitting a pending
        transaction that was already applied changes nothing; its intent_id
        covers the ledger sequence it was built against, so the same content
        rebuilt later is a new intent.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if the intent was already executed
            ExecuteResult.REJECTED if validation failed (nothing applied)
        """
        try:
            return self.commit(pending)
        except LedgerError:
            return ExecuteResult.REJECTED

    def commit(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically, raising on rejection.

        Same semantics as execute(), but the validation failure is raised to
        the caller as its typed LedgerError instead of being reduced to
        ExecuteResult.REJECTED.
        """
        with self._lock:
            if pending.is_empty():
                return ExecuteResult.APPLIED

            try:
                self._check_allocations(pending)

                if pending.intent_id in self.seen_intent_ids:
                    if self.verbose:
                        print(f"⚠️  ALREADY_APPLIED: intent_id={pending.intent_id}")
                    return ExecuteResult.ALREADY_APPLIED

                self._validate_pending(pending)
            except LedgerError as e:
                if self.verbose:
                    print(f"✗ REJECTED: {type(e).__name__}: {e}")
                raise

            sequence = self._next_sequence
            self._next_sequence += 1

            tx = Transaction(
                moves=pending.moves,
                state_changes=pending.state_changes,
                origin=pending.origin,
                timestamp=pending.timestamp,
                intent_id=pending.intent_id,
                exec_id=self._generate_exec_id(sequence),
                ledger_name=self.name,
                execution_time=self._current_time,
                sequence_number=sequence,
                units_to_create=pending.units_to_create,
                accounts_to_create=pending.accounts_to_create,
            )

            for unit in tx.units_to_create:
                self.register_unit(unit)
            for account in tx.accounts_to_create:
                self.register_account(account)

            self._execute_moves(tx.moves)

            for sc in tx.state_changes:
                new_state = copy.deepcopy(sc.new_state if isinstance(sc.new_state, dict) else {})
                self.units[sc.unit] = replace(self.units[sc.unit], _frozen_state=_freeze_state(new_state))

            # Log transaction (always - audit trail is mandatory)
            self.transaction_log.append(tx)
            self.seen_intent_ids.add(pending.intent_id)

            if self.verbose:
                print(repr(tx))
                print("✓ APPLIED")
            return ExecuteResult.APPLIED

    def _check_allocations(self, pending: PendingTransaction) -> None:
        """Every record and account the transaction creates must land on a free address."""
        seen: Set[str] = set()
        for unit in pending.units_to_create:
            if unit.symbol in self.units or unit.symbol in seen:
                raise AccountAlreadyInitialized(f"{unit.unit_type} {unit.symbol} already in use")
            seen.add(unit.symbol)
        for account in pending.accounts_to_create:
            if account.address in self.registered_wallets or account.address in seen:
                raise AccountAlreadyInitialized(f"Account {account.address} already in use")
            seen.add(account.address)

    def _validate_pending(self, pending: PendingTransaction) -> None:
        """
        Validate a pending transaction against all constraints.

        Checks performed:
        1. Timestamp validation (transaction must not be from the future)
        2. Mint and account registration (including ones created by this transaction)
        3. Custody checks per move: account mint, declared decimals, signer
        4. Balances, applying moves in order as the transfers would run
        5. Record snapshots: every old_state equals the stored state

        Raises:
            LedgerError subclass describing the first failure
        """
        if pending.timestamp > self._current_time:
            raise LedgerError("future timestamp")

        units = dict(self.units)
        units.update({u.symbol: u for u in pending.units_to_create})
        accounts = dict(self.accounts)
        accounts.update({a.address: a for a in pending.accounts_to_create})

        for account in pending.accounts_to_create:
            if account.mint not in units:
                raise UnitNotRegistered(f"Unit {account.mint} not registered")

        running: Dict[tuple, int] = {}

        def balance(wallet: str, unit_sym: str) -> int:
            key = (wallet, unit_sym)
            if key not in running:
                existing = self.balances.get(wallet)
                running[key] = existing.get(unit_sym, 0) if existing is not None else 0
            return running[key]

        for move in pending.moves:
            unit = units.get(move.unit_symbol)
            if unit is None:
                raise UnitNotRegistered(f"Unit {move.unit_symbol} not registered")
            if not unit.is_mint:
                raise MintMismatch(f"{move.unit_symbol} is a {unit.unit_type}, not a mint")
            if move.decimals != unit.decimals:
                raise MintMismatch(
                    f"{move.unit_symbol} has {unit.decimals} decimals, transfer declared {move.decimals}"
                )

            for wallet in (move.source, move.dest):
                if wallet == SYSTEM_WALLET:
                    continue
                account = accounts.get(wallet)
                if account is None:
                    raise WalletNotRegistered(f"Wallet {wallet} not registered")
                if account.mint != move.unit_symbol:
                    raise MintMismatch(
                        f"Account {wallet} holds {account.mint}, transfer is {move.unit_symbol}"
                    )

            if move.source == SYSTEM_WALLET:
                mint_authority = unit.state.get('mint_authority')
                if move.authority != mint_authority:
                    raise UnauthorizedTransfer(
                        f"{move.authority} is not the mint authority of {move.unit_symbol}"
                    )
            elif accounts[move.source].owner != move.authority:
                raise UnauthorizedTransfer(
                    f"{move.authority} does not own {move.source}"
                )

            proposed_src = balance(move.source, move.unit_symbol) - move.quantity
            if move.source != SYSTEM_WALLET and proposed_src < unit.min_balance:
                raise InsufficientFunds(
                    f"{move.source} {move.unit_symbol}: "
                    f"{balance(move.source, move.unit_symbol)} < {move.quantity}"
                )
            proposed_dst = balance(move.dest, move.unit_symbol) + move.quantity
            if move.dest != SYSTEM_WALLET and proposed_dst > unit.max_balance:
                raise BalanceConstraintViolation(
                    f"{move.dest} {move.unit_symbol}: {proposed_dst} > max {unit.max_balance}"
                )
            running[(move.source, move.unit_symbol)] = proposed_src
            running[(move.dest, move.unit_symbol)] = proposed_dst

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                raise UnitNotRegistered(f"Unit {sc.unit} not registered")
            current_state = self.units[sc.unit].state
            if sc.old_state is not None and sc.old_state != current_state:
                raise StaleState(f"{sc.unit} changed since this transaction was built")

    def _execute_moves(self, moves) -> None:
        """Apply moves to balances in order."""
        for move in moves:
            self.balances[move.source][move.unit_symbol] -= move.quantity
            self.balances[move.dest][move.unit_symbol] += move.quantity
