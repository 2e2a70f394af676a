"""
errors.py - Lending Protocol Error Taxonomy

Every protocol failure is a typed exception carrying a stable ``code`` that
matches the on-chain error name, so callers can branch on either the class
or the code string.

Hierarchy:
    LedgerError
    └── LendingError
        ├── ValidationError     bad parameters or amounts
        ├── AuthorizationError  wrong caller or wrong borrower
        ├── MathError           u64 overflow/underflow
        ├── TimingError         time-gated transition not yet allowed
        └── CustomError         reserved

Errors are raised by the compute_* functions before any PendingTransaction
exists, so a failing operation never reaches the ledger.
"""

from __future__ import annotations

from .core import LedgerError


class LendingError(LedgerError):
    """Base exception for lending protocol errors."""
    code = "LendingError"


class ValidationError(LendingError):
    code = "ValidationError"


class AuthorizationError(LendingError):
    code = "AuthorizationError"


class MathError(LendingError):
    code = "MathError"


class TimingError(LendingError):
    code = "TimingError"


class CustomError(LendingError):
    """Reserved. No operation raises it."""
    code = "CustomError"


# Validation

class SameTokenMints(ValidationError):
    """Both pool mints are the same."""
    code = "SameTokenMints"


class InvalidLtv(ValidationError):
    code = "InvalidLtv"


class InvalidLiquidationThreshold(ValidationError):
    code = "InvalidLiquidationThreshold"


class InvalidLiquidationPenalty(ValidationError):
    code = "InvalidLiquidationPenalty"


class InvalidLtvThreshold(ValidationError):
    """LTV above the liquidation threshold on parameter update."""
    code = "InvalidLtvThreshold"


class InvalidPenalty(ValidationError):
    code = "InvalidPenalty"


class InvalidInterestRate(ValidationError):
    code = "InvalidInterestRate"


class InvalidLiquidityAmount(ValidationError):
    """Deposit amounts for the two mints differ."""
    code = "InvalidLiquidityAmount"


class InvalidMint(ValidationError):
    """Collateral mint is neither of the pool's mints."""
    code = "InvalidMint"


class InvalidRepayAmount(ValidationError):
    code = "InvalidRepayAmount"


class InvalidDuration(ValidationError):
    """Reserved: every duration selector maps to a duration."""
    code = "InvalidDuration"


# Authorization

class InvalidAuthority(AuthorizationError):
    code = "InvalidAuthority"


class InvalidBorrower(AuthorizationError):
    code = "InvalidBorrower"


# Arithmetic

class Overflow(MathError):
    """Overflow in liquidity provision bookkeeping."""
    code = "Overflow"


class MathOverflow(MathError):
    """Overflow or underflow in borrow bookkeeping."""
    code = "MathOverflow"


# Timing

class LoanNotExpired(TimingError):
    code = "LoanNotExpired"


ALL_ERRORS = (
    CustomError,
    SameTokenMints, InvalidLtv, InvalidLiquidationThreshold, InvalidLiquidationPenalty,
    InvalidLtvThreshold, InvalidPenalty, InvalidInterestRate, InvalidLiquidityAmount,
    InvalidMint, InvalidRepayAmount, InvalidDuration,
    InvalidAuthority, InvalidBorrower,
    Overflow, MathOverflow,
    LoanNotExpired,
)
