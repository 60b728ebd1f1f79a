"""Pool pair projection.

A PoolPairData is the per-(pool, token_in, token_out) view the curve math
works on: balances normalized to 18-decimal fixed point, the fee, and the
type-specific parameters. It is built fresh for every query because the
element curve depends on the query timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal

from sor.errors import InsufficientLiquidityError, ProjectionError
from sor.math.fixed_point import AMP_PRECISION, Bfp
from sor.models.pool import Pool, PoolToken
from sor.models.types import PoolType, normalize_address

__all__ = ["PoolPairData", "project_pair"]


@dataclass(frozen=True)
class PoolPairData:
    """Normalized data of one pool for one trading direction.

    Attributes:
        pool_id: Pool id
        pool_address: Pool contract address
        pool_type: Curve family
        token_in: Input token address (lowercase)
        token_out: Output token address (lowercase)
        balance_in: Input token balance as 18-decimal fixed point
        balance_out: Output token balance as 18-decimal fixed point
        decimals_in: Input token decimals
        decimals_out: Output token decimals
        swap_fee: Swap fee as decimal
        weight_in: Input token weight (weighted pools)
        weight_out: Output token weight (weighted pools)
        balances: All pool balances in pool order (stable pools)
        index_in: Index of token_in in balances (stable pools)
        index_out: Index of token_out in balances (stable pools)
        amp: Amplification parameter scaled by AMP_PRECISION (stable pools)
        total_shares: Pool share supply (element pools)
        expiry_time: Maturity timestamp (element pools)
        unit_seconds: Time-stretch constant (element pools)
        principal_token: Principal token address (element pools)
        base_token: Base token address (element pools)
        current_block_timestamp: Query timestamp
    """

    pool_id: str
    pool_address: str
    pool_type: PoolType
    token_in: str
    token_out: str
    balance_in: Bfp
    balance_out: Bfp
    decimals_in: int
    decimals_out: int
    swap_fee: Decimal
    weight_in: Bfp | None = None
    weight_out: Bfp | None = None
    balances: tuple[Bfp, ...] = ()
    index_in: int = 0
    index_out: int = 0
    amp: int | None = None
    total_shares: Bfp = field(default_factory=lambda: Bfp(0))
    expiry_time: int | None = None
    unit_seconds: int | None = None
    principal_token: str | None = None
    base_token: str | None = None
    current_block_timestamp: int = 0

    @property
    def scaling_factor_in(self) -> int:
        return 10 ** (18 - self.decimals_in)

    @property
    def scaling_factor_out(self) -> int:
        return 10 ** (18 - self.decimals_out)

    @property
    def principal_in(self) -> bool:
        return self.principal_token is not None and self.token_in == self.principal_token

    @property
    def principal_out(self) -> bool:
        return self.principal_token is not None and self.token_out == self.principal_token

    def after_swap(self, amount_in: Bfp, amount_out: Bfp) -> PoolPairData:
        """Return the pair data after amount_in is added and amount_out removed.

        Raises:
            InsufficientLiquidityError: If amount_out exceeds balance_out
        """
        if amount_out > self.balance_out:
            raise InsufficientLiquidityError(
                f"amount_out {amount_out.value} exceeds balance_out {self.balance_out.value}"
            )
        balance_in = self.balance_in.add(amount_in)
        balance_out = self.balance_out.sub(amount_out)
        balances = self.balances
        if balances:
            updated = list(balances)
            updated[self.index_in] = balance_in
            updated[self.index_out] = balance_out
            balances = tuple(updated)
        return replace(self, balance_in=balance_in, balance_out=balance_out, balances=balances)


# =============================================================================
# Projection
# =============================================================================


def _to_bfp(token: PoolToken, pool_id: str) -> Bfp:
    if token.balance < 0:
        raise ProjectionError(f"Pool {pool_id}: negative balance for {token.address}")
    if not 0 <= token.decimals <= 18:
        raise ProjectionError(
            f"Pool {pool_id}: decimals {token.decimals} out of range for {token.address}"
        )
    return Bfp.from_decimal_down(token.balance)


def _find_token(pool: Pool, address: str) -> tuple[int, PoolToken]:
    for i, token in enumerate(pool.tokens):
        if normalize_address(token.address) == address:
            return i, token
    raise ProjectionError(f"Token {address} not in pool {pool.id}")


def _weighted_fields(pool: Pool, token_in: PoolToken, token_out: PoolToken) -> dict:
    if token_in.weight is None or token_out.weight is None:
        raise ProjectionError(f"Weighted pool {pool.id} is missing token weights")
    if token_in.weight <= 0 or token_out.weight <= 0:
        raise ProjectionError(f"Weighted pool {pool.id} has a non-positive weight")
    return {
        "weight_in": Bfp.from_decimal(token_in.weight),
        "weight_out": Bfp.from_decimal(token_out.weight),
    }


def _stable_fields(pool: Pool, index_in: int, index_out: int) -> dict:
    if pool.amp is None or pool.amp <= 0:
        raise ProjectionError(f"Stable pool {pool.id} has no amplification parameter")
    return {
        "balances": tuple(_to_bfp(token, pool.id) for token in pool.tokens),
        "index_in": index_in,
        "index_out": index_out,
        "amp": int(pool.amp * AMP_PRECISION),
    }


def _element_fields(pool: Pool) -> dict:
    if pool.expiry_time is None or pool.unit_seconds is None:
        raise ProjectionError(f"Element pool {pool.id} is missing expiryTime/unitSeconds")
    if pool.unit_seconds <= 0:
        raise ProjectionError(f"Element pool {pool.id} has non-positive unitSeconds")
    if pool.principal_token is None or pool.base_token is None:
        raise ProjectionError(f"Element pool {pool.id} is missing principal/base token")
    principal = normalize_address(pool.principal_token)
    base = normalize_address(pool.base_token)
    if not pool.has_tokens(principal, base) or principal == base:
        raise ProjectionError(
            f"Element pool {pool.id}: principal/base tokens do not match pool tokens"
        )
    if pool.total_shares < 0:
        raise ProjectionError(f"Element pool {pool.id} has negative totalShares")
    return {
        "total_shares": Bfp.from_decimal_down(pool.total_shares),
        "expiry_time": pool.expiry_time,
        "unit_seconds": pool.unit_seconds,
        "principal_token": principal,
        "base_token": base,
    }


def project_pair(pool: Pool, token_in: str, token_out: str, timestamp: int = 0) -> PoolPairData:
    """Project a pool onto a trading direction.

    Args:
        pool: Pool snapshot
        token_in: Input token address
        token_out: Output token address
        timestamp: Query timestamp (used by element pools)

    Returns:
        PoolPairData for the direction token_in -> token_out

    Raises:
        ProjectionError: If a token is missing, the tokens are equal, or the
            pool data is inconsistent for its pool type
    """
    token_in = normalize_address(token_in)
    token_out = normalize_address(token_out)
    if token_in == token_out:
        raise ProjectionError(f"Pool {pool.id}: token_in and token_out are equal")
    if not Decimal(0) <= pool.swap_fee < Decimal(1):
        raise ProjectionError(f"Pool {pool.id}: swap fee {pool.swap_fee} not in [0, 1)")

    index_in, pool_token_in = _find_token(pool, token_in)
    index_out, pool_token_out = _find_token(pool, token_out)

    if pool.pool_type == PoolType.WEIGHTED:
        extra = _weighted_fields(pool, pool_token_in, pool_token_out)
    elif pool.pool_type == PoolType.STABLE:
        extra = _stable_fields(pool, index_in, index_out)
    elif pool.pool_type == PoolType.ELEMENT:
        extra = _element_fields(pool)
    else:
        raise ProjectionError(f"Pool {pool.id}: unsupported pool type {pool.pool_type}")

    return PoolPairData(
        pool_id=pool.id,
        pool_address=normalize_address(pool.address),
        pool_type=pool.pool_type,
        token_in=token_in,
        token_out=token_out,
        balance_in=_to_bfp(pool_token_in, pool.id),
        balance_out=_to_bfp(pool_token_out, pool.id),
        decimals_in=pool_token_in.decimals,
        decimals_out=pool_token_out.decimals,
        swap_fee=pool.swap_fee,
        current_block_timestamp=timestamp,
        **extra,
    )
