"""
arithmetic.py - Checked Unsigned 64-bit Arithmetic

All token quantities and record counters are unsigned 64-bit integers.
Python ints never overflow, so every operation here checks the result
against [0, U64_MAX] and raises the caller-supplied error class when the
result leaves that range. Nothing ever wraps or saturates.

    checked_add(a, b)                  -> a + b
    checked_sub(a, b)                  -> a - b   (underflow is an error too)
    checked_mul(a, b)                  -> a * b
    checked_div(a, b)                  -> a // b  (truncating, b == 0 is an error)

Each takes an ``error`` keyword so an operation can map failures to the
error name it reports (Overflow for liquidity provision, MathOverflow for
borrowing).
"""

from __future__ import annotations
from typing import Type

from .core import U64_MAX, U8_MAX
from .errors import LendingError, MathOverflow


def _check(value: int, error: Type[LendingError], op: str, a: int, b: int) -> int:
    if value < 0 or value > U64_MAX:
        raise error(f"{op}({a}, {b}) out of u64 range")
    return value


def checked_add(a: int, b: int, error: Type[LendingError] = MathOverflow) -> int:
    return _check(a + b, error, "checked_add", a, b)


def checked_sub(a: int, b: int, error: Type[LendingError] = MathOverflow) -> int:
    return _check(a - b, error, "checked_sub", a, b)


def checked_mul(a: int, b: int, error: Type[LendingError] = MathOverflow) -> int:
    return _check(a * b, error, "checked_mul", a, b)


def checked_div(a: int, b: int, error: Type[LendingError] = MathOverflow) -> int:
    """Truncating division. Division by zero raises ``error``."""
    if b == 0:
        raise error(f"checked_div({a}, 0): division by zero")
    return _check(a // b, error, "checked_div", a, b)


def require_u64(value: int, name: str) -> int:
    """
    Validate an operation argument as a u64.

    Raises:
        ValueError: If value is not an int (bools rejected) or is out of range.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise ValueError(f"{name} out of u64 range: {value}")
    return value


def require_u8(value: int, name: str) -> int:
    """Validate an operation argument as a u8 (percentages, selectors)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > U8_MAX:
        raise ValueError(f"{name} out of u8 range: {value}")
    return value
