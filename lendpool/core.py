"""
Core types and pure functions for the lending ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, TokenAccount, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError and the host/custody error types
4. Type aliases: UnitState, BalanceMap
5. Unit factories: mint() and record_unit()

All token quantities are unsigned 64-bit integers in base units of their mint.
Records (pools, providers, borrow positions) are units whose frozen state holds
the record fields; token accounts are wallets bound to one mint and one owner.

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Optional, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for token issuance. Exempt from balance validation; moves out
# of it must be authorized by the mint authority of the unit being issued.
SYSTEM_WALLET = "system"

U64_MAX = 2**64 - 1
U8_MAX = 2**8 - 1

# Unit type constants (strings, not enum per design decision).
UNIT_TYPE_MINT = "MINT"
UNIT_TYPE_LIQUIDITY_POOL = "LIQUIDITY_POOL"
UNIT_TYPE_LIQUIDITY_PROVIDER = "LIQUIDITY_PROVIDER"
UNIT_TYPE_BORROW_POSITION = "BORROW_POSITION"

UNIX_EPOCH = datetime(1970, 1, 1)


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Internal state for a unit: mint metadata or the fields of a record.
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Compute functions accept a LedgerView to declare their read-only intent.
    The Ledger class implements this protocol but also provides mutation
    methods; tests use FakeView, which is immutable.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    @property
    def sequence_number(self) -> int:
        """Return the number of transactions applied so far."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """Return the balance of a unit in a wallet (0 if none)."""
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def has_unit(self, unit_symbol: str) -> bool:
        """Return True if a unit (mint or record) exists at this symbol."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...

    def list_units(self) -> List[str]:
        """Return all registered unit symbols, sorted."""
        ...

    def get_account(self, address: str) -> 'TokenAccount':
        """Return the token account registered at an address."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: Transaction intent was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation; nothing was applied.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Operation invoked by a signer
    SYSTEM = "system"                     # Setup and issuance


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a move would take a token account below zero."""
    pass


class MintMismatch(LedgerError):
    """Raised when a move's mint or decimals do not match the accounts or the mint."""
    pass


class UnauthorizedTransfer(LedgerError):
    """Raised when a move is not signed by the source account's owner or the mint authority."""
    pass


class BalanceConstraintViolation(LedgerError):
    """Raised when a move would push a balance above the unit's maximum."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a mint or record that does not exist."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when operating on a token account that does not exist."""
    pass


class AccountAlreadyInitialized(LedgerError):
    """Raised when a transaction creates a record or account at an occupied address."""
    pass


class AccountNotInitialized(LedgerError):
    """Raised when an operation needs a record that was never created."""
    pass


class StaleState(LedgerError):
    """Raised when a state change was built against a record state that has since changed."""
    pass


class DuplicateTransaction(LedgerError):
    """Raised when a pending transaction that was already applied is submitted again."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identity that invoked the operation
        unit_symbol: Primary record the operation acted on (if applicable)
        event_type: Operation name (e.g., "BORROW", "REPAY")
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change, with complete before/after snapshots.

    old_state is also the concurrency token: the ledger rejects the change
    if the stored state no longer equals it.
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Return {field: (old, new)} for fields that differ."""
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        for key in set(old.keys()) | set(new.keys()):
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class TokenAccount:
    """
    A custody account: holds balances of exactly one mint for one owner.

    Attributes:
        address: Wallet ID of the account in the ledger.
        owner: Identity whose signature authorizes moves out of the account.
        mint: Symbol of the only unit the account may hold.
    """
    address: str
    owner: str
    mint: str

    def __post_init__(self):
        if not self.address or not self.address.strip():
            raise ValueError("TokenAccount address cannot be empty")
        if not self.owner or not self.owner.strip():
            raise ValueError("TokenAccount owner cannot be empty")
        if not self.mint or not self.mint.strip():
            raise ValueError("TokenAccount mint cannot be empty")


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single checked transfer of tokens between two accounts.

    Attributes:
        quantity: Amount in base units (positive u64).
        unit_symbol: Mint being transferred.
        source: Account debited.
        dest: Account credited.
        authority: Identity signing the transfer.
        decimals: Decimals the caller expects the mint to have.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    authority: str
    decimals: int
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.authority or not self.authority.strip():
            raise ValueError("Move authority cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0 or self.quantity > U64_MAX:
            raise ValueError(f"Move quantity out of range: {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest} by {self.authority})"


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Deterministic regardless of dict insertion order or nesting depth.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, Enum):
        return f"E:{value.name}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
    units_to_create: Tuple['Unit', ...] = (),
    accounts_to_create: Tuple[TokenAccount, ...] = (),
    sequence: int = 0,
) -> str:
    """
    Compute a deterministic hash for a transaction's intent.

    Based on the semantic content plus the ledger sequence the transaction
    was built against, never on timestamps. Resubmitting the same pending
    transaction yields the same id; rebuilding the same content after the
    ledger has moved on yields a new one.
    """
    content_parts = [f"sequence:{sequence}", f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for unit in sorted(units_to_create, key=lambda u: u.symbol):
        content_parts.append(
            f"unit_create:{unit.symbol}|{unit.unit_type}|{_canonicalize(unit.state)}"
        )

    for account in sorted(accounts_to_create, key=lambda a: a.address):
        content_parts.append(f"account_create:{account.address}|{account.owner}|{account.mint}")

    # Move order matters for readability only; sort for determinism
    for m in sorted(moves, key=lambda m: (m.quantity, m.unit_symbol, m.source, m.dest, m.contract_id)):
        content_parts.append(
            f"move:{m.quantity}|{m.unit_symbol}|{m.source}|{m.dest}|{m.authority}|{m.contract_id}"
        )

    for sc in sorted(state_changes, key=lambda s: s.unit):
        content_parts.append(
            f"state_change:{sc.unit}|{_canonicalize(sc.old_state)}|{_canonicalize(sc.new_state)}"
        )

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction description before execution - represents INTENT.

    Created by compute functions and submitted to the ledger for execution.

    Attributes:
        moves: Token transfers
        state_changes: Record state changes (with old_state and new_state)
        origin: Who invoked which operation
        timestamp: When this pending transaction was built
        units_to_create: Mints and records to allocate before applying moves
        accounts_to_create: Token accounts to allocate before applying moves
        sequence: Ledger sequence number the transaction was built against
        intent_id: Hash of the intent and its sequence (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    units_to_create: Tuple['Unit', ...] = ()
    accounts_to_create: Tuple[TokenAccount, ...] = ()
    sequence: int = 0
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.moves, self.state_changes, self.origin,
                self.units_to_create, self.accounts_to_create, self.sequence,
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if there is nothing to create, move or change."""
        return (
            not self.moves and not self.state_changes
            and not self.units_to_create and not self.accounts_to_create
        )

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    units_to_create: Optional[Tuple['Unit', ...]] = None,
    accounts_to_create: Optional[Tuple[TokenAccount, ...]] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state changes.

    This is the standard way to create transactions. State snapshots are deep
    copied so later mutation of the caller's dicts cannot leak in.

    Example:
        def compute_flag(view, symbol):
            old_state = view.get_unit_state(symbol)
            new_state = {**old_state, "is_closed": True}
            changes = [UnitStateChange(unit=symbol, old_state=old_state, new_state=new_state)]
            return build_transaction(view, [], changes)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.USER_ACTION,
            source_id="unknown",
        )

    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
        units_to_create=units_to_create or (),
        accounts_to_create=accounts_to_create or (),
        sequence=view.sequence_number,
    )


def empty_pending_transaction(view: LedgerView) -> PendingTransaction:
    """Create an empty PendingTransaction (nothing to do)."""
    return PendingTransaction(
        moves=(),
        state_changes=(),
        origin=TransactionOrigin(OriginType.SYSTEM, "noop"),
        timestamp=view.current_time,
        sequence=view.sequence_number,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Token transfers applied
        state_changes: Record state changes applied
        origin: Who invoked which operation
        timestamp: When the PendingTransaction was built
        intent_id: Content hash from PendingTransaction
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed
        sequence_number: Monotonic sequence within the ledger
        units_to_create: Mints and records allocated
        accounts_to_create: Token accounts allocated
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    units_to_create: Tuple['Unit', ...] = ()
    accounts_to_create: Tuple[TokenAccount, ...] = ()
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if (not self.moves and not self.state_changes
                and not self.units_to_create and not self.accounts_to_create):
            raise ValueError("Transaction must have moves, state_changes, or allocations")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   execution_time : ' + str(self.execution_time))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
        ]
        if self.units_to_create or self.accounts_to_create:
            lines.append(f"├{bar}┤")
            for unit in self.units_to_create:
                lines.append(f"│{pad('   + ' + unit.symbol + ' (' + unit.unit_type + ')')}│")
            for account in self.accounts_to_create:
                lines.append(f"│{pad('   + account ' + account.address + ' mint=' + account.mint)}│")
        if self.moves:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
            for i, move in enumerate(self.moves):
                lines.append(f"│{pad(f'   [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}')}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' State Changes (' + str(len(self.state_changes)) + '):')}│")
            for sc in self.state_changes:
                lines.append(f"│{pad('   [' + sc.unit + ']')}│")
                for field_name, (old_val, new_val) in sc.changed_fields().items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a state dict to a sorted tuple of (key, value) pairs."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    A mint or a record stored in the ledger.

    Attributes:
        symbol: Address of the mint or record.
        name: Human-readable name.
        unit_type: MINT, LIQUIDITY_POOL, LIQUIDITY_PROVIDER or BORROW_POSITION.
        decimals: Mint decimals (None for records).
        min_balance: Minimum balance in any token account.
        max_balance: Maximum balance in any token account.
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    decimals: Optional[int] = None
    min_balance: int = 0
    max_balance: int = U64_MAX
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """A new dict each time, so callers cannot mutate the unit."""
        return _thaw_state(self._frozen_state)

    @property
    def is_mint(self) -> bool:
        return self.unit_type == UNIT_TYPE_MINT


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def mint(symbol: str, name: str, decimals: int = 6, mint_authority: str = SYSTEM_WALLET) -> Unit:
    """
    Create a token mint.

    Args:
        symbol: Mint identity (e.g., "USDC").
        name: Full name of the token.
        decimals: Number of decimal places of the token (default: 6).
        mint_authority: Identity allowed to issue new tokens from SYSTEM_WALLET.
    """
    if decimals < 0 or decimals > U8_MAX:
        raise ValueError(f"decimals out of range: {decimals}")
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_MINT,
        decimals=decimals,
        _frozen_state=_freeze_state({'mint_authority': mint_authority, 'decimals': decimals}),
    )


def record_unit(symbol: str, name: str, unit_type: str, state: UnitState) -> Unit:
    """Create a record unit (pool, provider or position) holding ``state``."""
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=unit_type,
        _frozen_state=_freeze_state(state),
    )


def unix_timestamp(when: datetime) -> int:
    """Whole unix seconds for a ledger time. Naive datetimes are taken as UTC."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return int(when.timestamp())
