"""
Units module - Records and operations of the lending protocol.

- Pools: creation and parameter updates
- Providers: initialization and symmetric liquidity deposits
- Positions: collateralized borrowing
- Repayment and liquidation of positions

Every operation is a pure function of a LedgerView returning a
PendingTransaction; all are re-exported here for convenience.
"""

# Pools
from .pool import (
    LiquidityPool,
    PERCENT_MAX,
    LP_MINT_DECIMALS,
    load_pool,
    create_pool,
    compute_parameter_update,
    validate_pool_parameters,
    validate_parameter_update,
)

# Providers
from .provider import (
    LiquidityProvider,
    load_provider,
    init_provider,
    compute_provide_liquidity,
    calculate_lp_tokens,
)

# Positions
from .position import (
    BorrowDuration,
    BorrowPosition,
    duration_from_selector,
    load_position,
    calculate_borrow_amount,
    compute_borrow,
)

# Repayment
from .repayment import compute_repayment

# Liquidation
from .liquidation import (
    calculate_expiry,
    compute_liquidation,
    find_expired_positions,
)

__all__ = [
    'LiquidityPool', 'PERCENT_MAX', 'LP_MINT_DECIMALS',
    'load_pool', 'create_pool', 'compute_parameter_update',
    'validate_pool_parameters', 'validate_parameter_update',
    'LiquidityProvider', 'load_provider', 'init_provider',
    'compute_provide_liquidity', 'calculate_lp_tokens',
    'BorrowDuration', 'BorrowPosition', 'duration_from_selector',
    'load_position', 'calculate_borrow_amount', 'compute_borrow',
    'compute_repayment',
    'calculate_expiry', 'compute_liquidation', 'find_expired_positions',
]
