"""Path evaluation.

Chains curve math along a path, and realizes a whole allocation by
simulating each path in order against successor pool states, so that paths
sharing a pool see the balance changes made by the paths before them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

import structlog

from sor.curves import curve_for
from sor.curves.base import finite_difference
from sor.curves.scaling import scale_down_down, scale_down_up, scale_up, truncate_down, truncate_up
from sor.errors import CurveError, InsufficientLiquidityError, ProjectionError
from sor.math.decimal_utils import from_raw
from sor.math.fixed_point import Bfp
from sor.models.pool import Pool
from sor.models.types import SwapType
from sor.pairs import PoolPairData, project_pair
from sor.routing.paths import Path

logger = structlog.get_logger()

PathPairs = tuple[PoolPairData, ...]


@dataclass(frozen=True)
class HopFill:
    """Realized amounts of one hop, in token units."""

    pool: Pool
    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal


@dataclass(frozen=True)
class PathFill:
    """Realized amounts of one path.

    Attributes:
        path: The path
        hops: Per-hop fills in hop order
        amount_in_raw: Path input in token_in's native decimals
        amount_out_raw: Path output in token_out's native decimals
    """

    path: Path
    hops: tuple[HopFill, ...]
    amount_in_raw: int
    amount_out_raw: int


def project_path(
    path: Path,
    timestamp: int,
    pools: Mapping[str, Pool] | None = None,
) -> PathPairs:
    """Project every hop of a path, preferring successor pools when given."""
    pairs = []
    for hop in path.hops:
        pool = pools.get(hop.pool.id, hop.pool) if pools else hop.pool
        pairs.append(project_pair(pool, hop.token_in, hop.token_out, timestamp))
    return tuple(pairs)


def request_decimals(pairs: PathPairs, swap_type: SwapType) -> int:
    """Decimals of the token the request amount is denominated in."""
    if swap_type == SwapType.EXACT_IN:
        return pairs[0].decimals_in
    return pairs[-1].decimals_out


def quote_path(pairs: PathPairs, amount: Bfp, swap_type: SwapType) -> list[tuple[Bfp, Bfp]]:
    """Per-hop (amount_in, amount_out) for an amount traded along the path.

    Intermediate amounts are rounded to the intermediate token's precision:
    down when carried forward (exact-in), up when required (exact-out).

    Raises:
        CurveError: If any hop cannot price its share of the trade
    """
    last = len(pairs) - 1
    if swap_type == SwapType.EXACT_IN:
        hops = []
        for i, pair in enumerate(pairs):
            amount_out = curve_for(pair.pool_type).swap_exact_in(pair, amount)
            if i < last:
                amount_out = truncate_down(amount_out, pair.scaling_factor_out)
            hops.append((amount, amount_out))
            amount = amount_out
        return hops

    reversed_hops = []
    for i in range(last, -1, -1):
        pair = pairs[i]
        amount_in = curve_for(pair.pool_type).swap_exact_out(pair, amount)
        if i > 0:
            amount_in = truncate_up(amount_in, pair.scaling_factor_in)
        reversed_hops.append((amount_in, amount))
        amount = amount_in
    return reversed_hops[::-1]


def path_swap_exact_in(pairs: PathPairs, amount_in: Bfp) -> Bfp:
    return quote_path(pairs, amount_in, SwapType.EXACT_IN)[-1][1]


def path_swap_exact_out(pairs: PathPairs, amount_out: Bfp) -> Bfp:
    return quote_path(pairs, amount_out, SwapType.EXACT_OUT)[0][0]


def path_spot_price(pairs: PathPairs) -> Decimal:
    """Product of hop spot prices (tokenIn per tokenOut)."""
    price = Decimal(1)
    for pair in pairs:
        price *= curve_for(pair.pool_type).spot_price(pair)
    return price


def path_spot_price_after_swap(pairs: PathPairs, amount: Bfp, swap_type: SwapType) -> Decimal:
    if amount.is_zero():
        return path_spot_price(pairs)
    price = Decimal(1)
    for pair, (amount_in, amount_out) in zip(pairs, quote_path(pairs, amount, swap_type)):
        price *= curve_for(pair.pool_type).spot_price_after(pair, amount_in, amount_out)
    return price


def path_derivative_price(
    pairs: PathPairs,
    amount: Bfp,
    swap_type: SwapType,
    step: Bfp,
    limit: Bfp,
) -> Decimal:
    """Finite-difference derivative of the path's post-trade spot price."""
    return finite_difference(
        lambda a: path_spot_price_after_swap(pairs, a, swap_type), amount, step, limit
    )


def path_limit(pairs: PathPairs, swap_type: SwapType) -> Bfp:
    """Largest amount the path can take, in the request token.

    For two hops the limit of the second hop is carried back to the first
    (exact-in) or the limit of the first hop forward to the second (exact-out);
    if the carried amount cannot be priced the other hop's limit binds.

    Raises:
        CurveError: If a hop limit cannot be computed
    """
    first = pairs[0]
    curve_first = curve_for(first.pool_type)
    if len(pairs) == 1:
        limit = curve_first.limit_amount(first, swap_type)
    else:
        second = pairs[1]
        curve_second = curve_for(second.pool_type)
        if swap_type == SwapType.EXACT_IN:
            limit = curve_first.limit_amount(first, swap_type)
            second_limit = curve_second.limit_amount(second, swap_type)
            try:
                carried = curve_first.swap_exact_out(first, second_limit)
            except CurveError as e:
                logger.debug("path_limit_not_carried", pool_id=first.pool_id, error=str(e))
            else:
                limit = min(limit, carried)
        else:
            limit = curve_second.limit_amount(second, swap_type)
            first_limit = curve_first.limit_amount(first, swap_type)
            try:
                carried = curve_second.swap_exact_in(second, first_limit)
            except CurveError as e:
                logger.debug("path_limit_not_carried", pool_id=second.pool_id, error=str(e))
            else:
                limit = min(limit, carried)

    if swap_type == SwapType.EXACT_IN:
        return truncate_down(limit, first.scaling_factor_in)
    return truncate_down(limit, pairs[-1].scaling_factor_out)


# =============================================================================
# Allocation simulation
# =============================================================================


def _path_capacity(pairs: PathPairs, swap_type: SwapType) -> int:
    """Path limit in the request token's native decimals."""
    limit = path_limit(pairs, swap_type)
    if swap_type == SwapType.EXACT_IN:
        return scale_down_down(limit, pairs[0].scaling_factor_in)
    return scale_down_down(limit, pairs[-1].scaling_factor_out)


def _realize_path(
    path: Path,
    pairs: PathPairs,
    raw: int,
    swap_type: SwapType,
    pools: dict[str, Pool],
) -> PathFill:
    """Trade raw along the path and record the successor pools in place."""
    if swap_type == SwapType.EXACT_IN:
        amount = scale_up(raw, pairs[0].scaling_factor_in)
    else:
        amount = scale_up(raw, pairs[-1].scaling_factor_out)
    quotes = quote_path(pairs, amount, swap_type)

    hops = []
    for hop, pair, (amount_in, amount_out) in zip(path.hops, pairs, quotes):
        hop_fill = HopFill(
            pool=pools.get(hop.pool.id, hop.pool),
            token_in=hop.token_in,
            token_out=hop.token_out,
            amount_in=from_raw(scale_down_up(amount_in, pair.scaling_factor_in), pair.decimals_in),
            amount_out=from_raw(
                scale_down_down(amount_out, pair.scaling_factor_out), pair.decimals_out
            ),
        )
        pools[hop.pool.id] = hop_fill.pool.after_swap(
            hop.token_in, hop.token_out, hop_fill.amount_in, hop_fill.amount_out
        )
        hops.append(hop_fill)

    return PathFill(
        path=path,
        hops=tuple(hops),
        amount_in_raw=scale_down_up(quotes[0][0], pairs[0].scaling_factor_in),
        amount_out_raw=scale_down_down(quotes[-1][1], pairs[-1].scaling_factor_out),
    )


def simulate_allocation(
    paths: Sequence[Path],
    raw_amounts: Sequence[int],
    swap_type: SwapType,
    timestamp: int,
) -> list[PathFill]:
    """Realize an allocation path by path against successor pool states.

    Args:
        paths: Paths in execution order
        raw_amounts: Per-path amounts in the request token's native decimals
        swap_type: Exact-in (amounts are inputs) or exact-out (outputs)
        timestamp: Query timestamp

    Returns:
        Fills for the paths with a non-zero amount, in execution order

    Raises:
        CurveError: If a path cannot absorb its amount in the simulated state,
            including an amount above its limit once earlier paths have traded
    """
    pools: dict[str, Pool] = {}
    fills: list[PathFill] = []

    for path, raw in zip(paths, raw_amounts):
        if raw == 0:
            continue
        pairs = project_path(path, timestamp, pools)
        capacity = _path_capacity(pairs, swap_type)
        if raw > capacity:
            raise InsufficientLiquidityError(
                f"Path {path.id}: amount {raw} exceeds its limit {capacity} in the current state"
            )
        fills.append(_realize_path(path, pairs, raw, swap_type, pools))

    logger.debug(
        "allocation_simulated",
        swap_type=swap_type.value,
        paths=len(fills),
        shared_pools=len(pools) < sum(len(fill.hops) for fill in fills),
    )
    return fills


def fill_sequentially(
    paths: Sequence[Path],
    total_raw: int,
    swap_type: SwapType,
    timestamp: int,
) -> tuple[list[int], list[PathFill]]:
    """Fill total_raw path by path, each taking up to its limit in the pool
    state left behind by the paths before it.

    Paths that cannot be priced in that state take nothing. If the returned
    amounts sum to less than total_raw, that sum is what the paths can carry
    together in this order.

    Returns:
        (per-path raw amounts, fills of the paths with a non-zero amount)
    """
    pools: dict[str, Pool] = {}
    amounts: list[int] = []
    fills: list[PathFill] = []
    remaining = total_raw

    for path in paths:
        take = 0
        if remaining > 0:
            try:
                pairs = project_path(path, timestamp, pools)
                take = min(remaining, _path_capacity(pairs, swap_type))
                if take > 0:
                    fills.append(_realize_path(path, pairs, take, swap_type, pools))
            except (ProjectionError, CurveError) as e:
                logger.debug("path_skipped", path=path.id, error=str(e))
                take = 0
        amounts.append(take)
        remaining -= take

    return amounts, fills


def successor_pools(fills: Sequence[PathFill]) -> dict[str, Pool]:
    """Pool states after every fill has been applied, keyed by pool id."""
    pools: dict[str, Pool] = {}
    for fill in fills:
        for hop in fill.hops:
            pools[hop.pool.id] = hop.pool.after_swap(
                hop.token_in, hop.token_out, hop.amount_in, hop.amount_out
            )
    return pools


__all__ = [
    "HopFill",
    "PathFill",
    "PathPairs",
    "project_path",
    "request_decimals",
    "quote_path",
    "path_swap_exact_in",
    "path_swap_exact_out",
    "path_spot_price",
    "path_spot_price_after_swap",
    "path_derivative_price",
    "path_limit",
    "simulate_allocation",
    "fill_sequentially",
    "successor_pools",
]
