"""
addressing.py - Deterministic Record and Account Addresses

Every record and custody account lives at an address derived from a fixed
seed tag plus the identities it belongs to, so any party can locate a pool,
its vaults, a provider record or a borrow position without a lookup table.

    pool            liquidity_pool     + mint_a + mint_b + authority
    LP mint         lp_token_mint      + pool
    vaults          token_vault_a/b    + mint + pool
    fee vaults      fee_vault_a/b      + mint + pool
    provider        liquidity_provider + provider
    position        borrower_account   + borrower      (not pool-scoped)
    user account    associated_token   + owner + mint
"""

from __future__ import annotations
import hashlib


POOL_SEED = "liquidity_pool"
LP_MINT_SEED = "lp_token_mint"
VAULT_A_SEED = "token_vault_a"
VAULT_B_SEED = "token_vault_b"
FEE_VAULT_A_SEED = "fee_vault_a"
FEE_VAULT_B_SEED = "fee_vault_b"
PROVIDER_SEED = "liquidity_provider"
POSITION_SEED = "borrower_account"
ASSOCIATED_TOKEN_SEED = "associated_token"


def derive_address(seed: str, *parts: str) -> str:
    """
    Derive a stable address from a seed tag and identities.

    The seed is kept as a readable prefix; the suffix is the first 16 hex
    digits of SHA-256 over the length-prefixed parts, so ("ab", "c") and
    ("a", "bc") never collide.

    Example:
        >>> derive_address("liquidity_pool", "SOL", "USDC", "alice")[:15]
        'liquidity_pool:'
    """
    if not parts:
        raise ValueError("derive_address needs at least one identity")
    hasher = hashlib.sha256(seed.encode())
    for part in parts:
        encoded = part.encode()
        hasher.update(len(encoded).to_bytes(4, "big"))
        hasher.update(encoded)
    return f"{seed}:{hasher.hexdigest()[:16]}"


def pool_address(mint_a: str, mint_b: str, authority: str) -> str:
    return derive_address(POOL_SEED, mint_a, mint_b, authority)


def lp_mint_address(pool: str) -> str:
    return derive_address(LP_MINT_SEED, pool)


def vault_a_address(mint_a: str, pool: str) -> str:
    return derive_address(VAULT_A_SEED, mint_a, pool)


def vault_b_address(mint_b: str, pool: str) -> str:
    return derive_address(VAULT_B_SEED, mint_b, pool)


def fee_vault_a_address(mint_a: str, pool: str) -> str:
    return derive_address(FEE_VAULT_A_SEED, mint_a, pool)


def fee_vault_b_address(mint_b: str, pool: str) -> str:
    return derive_address(FEE_VAULT_B_SEED, mint_b, pool)


def provider_address(provider: str) -> str:
    return derive_address(PROVIDER_SEED, provider)


def position_address(borrower: str) -> str:
    """Position address. Keyed by borrower alone: one position per borrower."""
    return derive_address(POSITION_SEED, borrower)


def associated_token_address(owner: str, mint: str) -> str:
    """The canonical token account of ``owner`` for ``mint``."""
    return derive_address(ASSOCIATED_TOKEN_SEED, owner, mint)
