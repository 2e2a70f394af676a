"""
lendpool - Collateralized Lending Pool Accounting

Pooled two-mint liquidity, LTV-bounded borrowing against collateral,
repayment with collateral release, and liquidation of expired positions,
on top of an atomic token-custody ledger.

Usage:
    from lendpool import Ledger, LendingProtocol, mint

    ledger = Ledger("main", test_mode=True)
    ledger.register_unit(mint("SOL", "Solana", decimals=9))
    ledger.register_unit(mint("USDC", "USD Coin", decimals=6))

    protocol = LendingProtocol(ledger)
    pool = protocol.create_pool("alice", "SOL", "USDC", ltv=50, liq_threshold=80,
                                liq_penalty=5, interest_rate=10)

    bob_sol = ledger.open_account("bob", "SOL")
    bob_usdc = ledger.open_account("bob", "USDC")
    ledger.set_balance(bob_sol, "SOL", 1000)
    ledger.set_balance(bob_usdc, "USDC", 1000)

    protocol.init_provider("bob")
    protocol.provide_liquidity(pool, "bob", 1000, 1000)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    TokenAccount,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    empty_pending_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    InsufficientFunds,
    MintMismatch,
    UnauthorizedTransfer,
    BalanceConstraintViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    AccountAlreadyInitialized,
    AccountNotInitialized,
    StaleState, DuplicateTransaction,
    mint,
    record_unit,
    unix_timestamp,
    SYSTEM_WALLET,
    U64_MAX,
    U8_MAX,
    UNIT_TYPE_MINT,
    UNIT_TYPE_LIQUIDITY_POOL,
    UNIT_TYPE_LIQUIDITY_PROVIDER,
    UNIT_TYPE_BORROW_POSITION,
)

# Protocol errors
from .errors import (
    LendingError,
    ValidationError,
    AuthorizationError,
    MathError,
    TimingError,
    CustomError,
    SameTokenMints,
    InvalidLtv,
    InvalidLiquidationThreshold,
    InvalidLiquidationPenalty,
    InvalidLtvThreshold,
    InvalidPenalty,
    InvalidInterestRate,
    InvalidLiquidityAmount,
    InvalidMint,
    InvalidRepayAmount,
    InvalidDuration,
    InvalidAuthority,
    InvalidBorrower,
    Overflow,
    MathOverflow,
    LoanNotExpired,
)

# Arithmetic
from .arithmetic import (
    checked_add,
    checked_sub,
    checked_mul,
    checked_div,
)

# Addressing
from .addressing import (
    derive_address,
    pool_address,
    lp_mint_address,
    provider_address,
    position_address,
    associated_token_address,
)

# Ledger
from .ledger import Ledger

# Records and operations
from .units import (
    LiquidityPool,
    LiquidityProvider,
    BorrowPosition,
    BorrowDuration,
    PERCENT_MAX,
    LP_MINT_DECIMALS,
    load_pool,
    load_provider,
    load_position,
    create_pool,
    compute_parameter_update,
    init_provider,
    compute_provide_liquidity,
    duration_from_selector,
    calculate_borrow_amount,
    compute_borrow,
    compute_repayment,
    calculate_expiry,
    compute_liquidation,
    find_expired_positions,
)

# Operation surface
from .protocol import LendingProtocol

__version__ = "0.1.0"

__all__ = [
    # Core
    'LedgerView', 'Move', 'TokenAccount', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction', 'empty_pending_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult',
    'mint', 'record_unit', 'unix_timestamp',
    'SYSTEM_WALLET', 'U64_MAX', 'U8_MAX',
    'UNIT_TYPE_MINT', 'UNIT_TYPE_LIQUIDITY_POOL', 'UNIT_TYPE_LIQUIDITY_PROVIDER',
    'UNIT_TYPE_BORROW_POSITION',
    # Host errors
    'LedgerError', 'InsufficientFunds', 'MintMismatch', 'UnauthorizedTransfer',
    'BalanceConstraintViolation', 'UnitNotRegistered', 'WalletNotRegistered',
    'AccountAlreadyInitialized', 'AccountNotInitialized', 'StaleState', 'DuplicateTransaction',
    # Protocol errors
    'LendingError', 'ValidationError', 'AuthorizationError', 'MathError',
    'TimingError', 'CustomError',
    'SameTokenMints', 'InvalidLtv', 'InvalidLiquidationThreshold',
    'InvalidLiquidationPenalty', 'InvalidLtvThreshold', 'InvalidPenalty',
    'InvalidInterestRate', 'InvalidLiquidityAmount', 'InvalidMint',
    'InvalidRepayAmount', 'InvalidDuration', 'InvalidAuthority', 'InvalidBorrower',
    'Overflow', 'MathOverflow', 'LoanNotExpired',
    # Arithmetic
    'checked_add', 'checked_sub', 'checked_mul', 'checked_div',
    # Addressing
    'derive_address', 'pool_address', 'lp_mint_address', 'provider_address',
    'position_address', 'associated_token_address',
    # Ledger
    'Ledger',
    # Records and operations
    'LiquidityPool', 'LiquidityProvider', 'BorrowPosition', 'BorrowDuration',
    'PERCENT_MAX', 'LP_MINT_DECIMALS',
    'load_pool', 'load_provider', 'load_position',
    'create_pool', 'compute_parameter_update',
    'init_provider', 'compute_provide_liquidity',
    'duration_from_selector', 'calculate_borrow_amount', 'compute_borrow',
    'compute_repayment',
    'calculate_expiry', 'compute_liquidation', 'find_expired_positions',
    # Operation surface
    'LendingProtocol',
]
