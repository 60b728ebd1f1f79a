"""Test helpers module for shared test utilities.

- constants: Token addresses and element pool parameters
- factories: Pool factory functions
"""

from tests.helpers.constants import (
    BAL,
    BASE_TOKEN,
    DAI,
    ELEMENT_EXPIRY,
    ELEMENT_UNIT_SECONDS,
    PRINCIPAL_TOKEN,
    TOKEN_DECIMALS,
    USDC,
    USDT,
    WETH,
)
from tests.helpers.factories import (
    make_element_pool,
    make_stable_pool,
    make_weighted_pool,
    pool_address,
    pool_id,
)

__all__ = [
    # Constants
    "WETH",
    "USDC",
    "DAI",
    "USDT",
    "BAL",
    "BASE_TOKEN",
    "PRINCIPAL_TOKEN",
    "ELEMENT_EXPIRY",
    "ELEMENT_UNIT_SECONDS",
    "TOKEN_DECIMALS",
    # Factories
    "make_weighted_pool",
    "make_stable_pool",
    "make_element_pool",
    "pool_id",
    "pool_address",
]
