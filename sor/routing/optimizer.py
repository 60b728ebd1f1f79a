"""Gas-aware allocation optimizer.

For a fixed set of paths the best split of a trade equalizes the marginal
price across every path carrying flow (water-filling). The shared price level
is found by Newton iteration on the Lagrange multiplier, using each path's
post-trade spot price and its finite-difference derivative. The number of
paths is then chosen by realizing the allocation for k = 1, 2, ... paths and
scoring the return net of k times the per-path gas cost.
"""

from __future__ import annotations

import decimal
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

import structlog

from sor.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from sor.constants import MIN_DERIVATIVE
from sor.errors import CurveError, ProjectionError, RouteInsufficientLiquidityError
from sor.math.decimal_utils import DECIMAL_HIGH_PREC_CONTEXT, from_raw, to_raw
from sor.math.fixed_point import Bfp
from sor.models.types import SwapType
from sor.routing.evaluation import (
    PathFill,
    PathPairs,
    fill_sequentially,
    path_derivative_price,
    path_limit,
    path_spot_price,
    path_spot_price_after_swap,
    project_path,
    request_decimals,
    simulate_allocation,
    successor_pools,
)
from sor.routing.paths import Path

logger = structlog.get_logger()


@dataclass(frozen=True)
class PathCandidate:
    """A path priced at zero size.

    Attributes:
        path: The path
        pairs: Projected pair data per hop
        spot_price: Path spot price (tokenIn per tokenOut)
        limit: Largest amount the path can take, in the request token
    """

    path: Path
    pairs: PathPairs
    spot_price: Decimal
    limit: Decimal


@dataclass(frozen=True)
class Allocation:
    """Finalized split of a request across paths.

    Attributes:
        swap_type: Exact-in or exact-out
        paths: Paths in execution order
        amounts: Raw per-path amounts in the request token's decimals
        decimals: Decimals of the request token
        fills: Realized fills of the paths with a non-zero amount
        return_amount_raw: Total output (exact-in) or input (exact-out), raw
        return_decimals: Decimals of the return token
        marginal_price: Highest post-trade marginal price among used paths
        approximate: True if water-filling hit its iteration cap
    """

    swap_type: SwapType
    paths: tuple[Path, ...]
    amounts: tuple[int, ...]
    decimals: int
    fills: tuple[PathFill, ...]
    return_amount_raw: int
    return_decimals: int
    marginal_price: Decimal
    approximate: bool

    @property
    def total_raw(self) -> int:
        return sum(self.amounts)

    @property
    def paths_used(self) -> int:
        return sum(1 for amount in self.amounts if amount > 0)

    @property
    def return_amount(self) -> Decimal:
        return from_raw(self.return_amount_raw, self.return_decimals)

    @property
    def decimals_in(self) -> int:
        return self.decimals if self.swap_type == SwapType.EXACT_IN else self.return_decimals

    @property
    def decimals_out(self) -> int:
        return self.return_decimals if self.swap_type == SwapType.EXACT_IN else self.decimals


# =============================================================================
# Candidates
# =============================================================================


def prepare_candidates(
    paths: Sequence[Path], swap_type: SwapType, timestamp: int
) -> list[PathCandidate]:
    """Price every path at zero size, dropping paths the curves cannot price.

    Returns:
        Candidates ordered by spot price, ties by path id
    """
    candidates = []
    for path in paths:
        try:
            pairs = project_path(path, timestamp)
            spot_price = path_spot_price(pairs)
            limit = path_limit(pairs, swap_type).to_decimal()
        except (ProjectionError, CurveError) as e:
            logger.debug("path_excluded", path=path.id, error=str(e))
            continue
        if limit <= 0 or spot_price <= 0:
            logger.debug("path_excluded", path=path.id, error="no tradable amount")
            continue
        candidates.append(PathCandidate(path, pairs, spot_price, limit))

    candidates.sort(key=lambda c: (c.spot_price, c.path.id))
    return candidates


# =============================================================================
# Water-filling
# =============================================================================


@dataclass
class _FillState:
    amounts: list[Decimal]
    in_set: list[bool]
    pinned: list[bool]
    excluded: list[bool]

    def exclude(self, i: int) -> None:
        self.amounts[i] = Decimal(0)
        self.in_set[i] = False
        self.pinned[i] = False
        self.excluded[i] = True


def _price_after(candidate: PathCandidate, amount: Decimal, swap_type: SwapType) -> Decimal:
    if amount <= 0:
        return candidate.spot_price
    return path_spot_price_after_swap(candidate.pairs, Bfp.from_decimal_down(amount), swap_type)


def _derivative(
    candidate: PathCandidate, amount: Decimal, swap_type: SwapType, config: RouterConfig
) -> Decimal:
    limit = Bfp.from_decimal_down(candidate.limit)
    step = Bfp.from_decimal_down(candidate.limit * config.derivative_step)
    derivative = path_derivative_price(
        candidate.pairs, Bfp.from_decimal_down(amount), swap_type, step, limit
    )
    return max(derivative, MIN_DERIVATIVE)


def _is_converged(
    candidates: Sequence[PathCandidate],
    state: _FillState,
    prices: Sequence[Decimal],
    total: Decimal,
    tolerance: Decimal,
) -> bool:
    if abs(sum(state.amounts) - total) > total * tolerance:
        return False
    flowing = [
        prices[i] for i, amount in enumerate(state.amounts) if amount > 0 and not state.pinned[i]
    ]
    if not flowing:
        return True
    low, high = min(flowing), max(flowing)
    if (high - low) / low > tolerance:
        return False
    # No idle path may be cheaper than the flowing ones
    return all(
        candidates[i].spot_price >= high * (1 - tolerance)
        for i, amount in enumerate(state.amounts)
        if amount <= 0 and not state.excluded[i]
    )


def _settle_residual(
    candidates: Sequence[PathCandidate],
    state: _FillState,
    prices: Sequence[Decimal],
    total: Decimal,
) -> None:
    """Push sum(amounts) onto total: add to the cheapest paths with headroom,
    take from the most expensive ones."""
    amounts = state.amounts
    residual = total - sum(amounts)
    if residual > 0:
        for i in sorted(range(len(amounts)), key=lambda i: (prices[i], i)):
            if state.excluded[i]:
                continue
            take = min(residual, candidates[i].limit - amounts[i])
            if take > 0:
                amounts[i] += take
                residual -= take
            if residual <= 0:
                break
    elif residual < 0:
        for i in sorted(range(len(amounts)), key=lambda i: (-prices[i], i)):
            give = min(-residual, amounts[i])
            if give > 0:
                amounts[i] -= give
                residual += give
            if residual >= 0:
                break


def water_fill(
    candidates: Sequence[PathCandidate],
    swap_type: SwapType,
    total: Decimal,
    config: RouterConfig = DEFAULT_ROUTER_CONFIG,
) -> tuple[list[Decimal], Decimal, bool]:
    """Split total across candidates so that flowing paths share one marginal price.

    Each Newton step solves for the level lam with
        a_i' = a_i + (lam - p_i) / d_i,  sum(a_i') = remaining
    where p_i and d_i are the post-trade price of path i and its derivative.
    Paths going negative leave the active set, paths crossing their limit
    are pinned there, and idle paths re-enter when their zero-size price is
    below the level. A path whose curves fail at its current amount is
    dropped for good and carries nothing.

    Returns:
        (amounts, marginal price, converged)
    """
    n = len(candidates)
    state = _FillState(
        amounts=[Decimal(0)] * n, in_set=[True] * n, pinned=[False] * n, excluded=[False] * n
    )

    def price(i: int) -> Decimal:
        try:
            return _price_after(candidates[i], state.amounts[i], swap_type)
        except CurveError as e:
            logger.debug("path_excluded", path=candidates[i].path.id, error=str(e))
            state.exclude(i)
            return candidates[i].spot_price

    if n == 1:
        state.amounts[0] = min(total, candidates[0].limit)
        marginal_price = price(0)
        return state.amounts, marginal_price, True

    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        converged = False
        prices = [c.spot_price for c in candidates]

        for _ in range(config.max_iterations):
            prices = [price(i) for i in range(n)]
            if _is_converged(candidates, state, prices, total, config.price_tolerance):
                converged = True
                break

            # Readmit idle paths while the active set cannot hold total
            if sum((candidates[i].limit for i in range(n) if state.in_set[i]), Decimal(0)) < total:
                for i in range(n):
                    if not state.in_set[i] and not state.excluded[i]:
                        state.in_set[i] = True

            free = [i for i in range(n) if state.in_set[i] and not state.pinned[i]]
            derivatives = {}
            for i in free:
                try:
                    derivatives[i] = _derivative(candidates[i], state.amounts[i], swap_type, config)
                except CurveError as e:
                    logger.debug("path_excluded", path=candidates[i].path.id, error=str(e))
                    state.exclude(i)
            free = [i for i in free if not state.excluded[i]]
            if not free:
                break

            remaining = total - sum(
                candidates[i].limit for i in range(n) if state.pinned[i]
            )
            inverse_sum = sum(1 / derivatives[i] for i in free)
            level = (
                remaining
                - sum(state.amounts[i] for i in free)
                + sum(prices[i] / derivatives[i] for i in free)
            ) / inverse_sum

            for i in free:
                amount = state.amounts[i] + (level - prices[i]) / derivatives[i]
                if amount <= 0:
                    state.amounts[i] = Decimal(0)
                    state.in_set[i] = False
                elif amount >= candidates[i].limit:
                    state.amounts[i] = candidates[i].limit
                    state.pinned[i] = True
                else:
                    state.amounts[i] = amount

            for i in range(n):
                if state.excluded[i]:
                    continue
                if not state.in_set[i] and candidates[i].spot_price < level:
                    state.in_set[i] = True
                elif state.pinned[i] and i not in derivatives and prices[i] > level:
                    state.pinned[i] = False

        _settle_residual(candidates, state, prices, total)

        flowing = [price(i) for i in range(n) if state.amounts[i] > 0]
    marginal_price = max(flowing) if flowing else candidates[0].spot_price
    return state.amounts, marginal_price, converged


# =============================================================================
# Rounding
# =============================================================================


def round_allocation(
    amounts: Sequence[Decimal],
    limits: Sequence[int],
    total_raw: int,
    decimals: int,
) -> list[int] | None:
    """Round amounts down to raw integers and hand the remainder out so the
    sum is exactly total_raw.

    The remainder goes to the largest allocations first, within their limits.

    Returns:
        Raw amounts, or None if the limits cannot hold total_raw
    """
    raw = [min(to_raw(amount, decimals), limit) for amount, limit in zip(amounts, limits)]
    remainder = total_raw - sum(raw)
    if remainder < 0:
        for i in sorted(range(len(raw)), key=lambda i: (raw[i], -i)):
            give = min(-remainder, raw[i])
            raw[i] -= give
            remainder += give
            if remainder == 0:
                break
    for i in sorted(range(len(raw)), key=lambda i: (-raw[i], i)):
        if remainder == 0:
            break
        take = min(remainder, limits[i] - raw[i])
        if take > 0:
            raw[i] += take
            remainder -= take
    if remainder != 0:
        return None
    return raw


# =============================================================================
# Optimizer
# =============================================================================


def _score(allocation: Allocation, gas_price_per_path: Decimal) -> Decimal:
    gas = gas_price_per_path * allocation.paths_used
    if allocation.swap_type == SwapType.EXACT_IN:
        return allocation.return_amount - gas
    return -(allocation.return_amount + gas)


def _capacity(
    candidates: Sequence[PathCandidate], swap_type: SwapType, decimals: int, timestamp: int
) -> Decimal:
    """Largest amount the candidates can carry together, realized in order.

    Each path takes its limit in the pool state left by the paths before it,
    so pools shared between paths are not counted twice.
    """
    independent = sum((c.limit for c in candidates), Decimal(0))
    amounts, _ = fill_sequentially(
        [c.path for c in candidates], to_raw(independent, decimals), swap_type, timestamp
    )
    return from_raw(sum(amounts), decimals)


def _marginal_price_after(
    paths: Sequence[Path], fills: Sequence[PathFill], timestamp: int
) -> Decimal:
    """Highest spot price among the used paths once every fill is applied."""
    pools = successor_pools(fills)
    prices = []
    for fill in fills:
        try:
            prices.append(path_spot_price(project_path(fill.path, timestamp, pools)))
        except (ProjectionError, CurveError) as e:
            logger.debug("marginal_price_unavailable", path=fill.path.id, error=str(e))
    if prices:
        return max(prices)
    return path_spot_price(project_path(paths[0], timestamp))


def _allocate(
    selected: Sequence[PathCandidate],
    swap_type: SwapType,
    total: Decimal,
    total_raw: int,
    decimals: int,
    config: RouterConfig,
    timestamp: int,
) -> Allocation | None:
    amounts, marginal_price, converged = water_fill(selected, swap_type, total, config)
    # Paths water-filling left idle or dropped take no rounding dust
    limits = [
        to_raw(c.limit, decimals) if amount > 0 else 0 for c, amount in zip(selected, amounts)
    ]
    raw = round_allocation(amounts, limits, total_raw, decimals)
    paths = tuple(c.path for c in selected)

    fills = None
    if raw is not None:
        try:
            fills = simulate_allocation(paths, raw, swap_type, timestamp)
        except (ProjectionError, CurveError) as e:
            logger.debug("allocation_rejected", paths=[p.id for p in paths], error=str(e))

    if fills is None:
        # Shared pools or a failing curve: fill in order against successor states
        raw, fills = fill_sequentially(paths, total_raw, swap_type, timestamp)
        if sum(raw) != total_raw:
            return None
        marginal_price = _marginal_price_after(paths, fills, timestamp)
        logger.info("allocation_filled_sequentially", paths=[p.id for p in paths], amounts=raw)

    if swap_type == SwapType.EXACT_IN:
        return_raw = sum(fill.amount_out_raw for fill in fills)
        return_decimals = selected[0].pairs[-1].decimals_out
    else:
        return_raw = sum(fill.amount_in_raw for fill in fills)
        return_decimals = selected[0].pairs[0].decimals_in

    return Allocation(
        swap_type=swap_type,
        paths=paths,
        amounts=tuple(raw),
        decimals=decimals,
        fills=tuple(fills),
        return_amount_raw=return_raw,
        return_decimals=return_decimals,
        marginal_price=marginal_price,
        approximate=not converged,
    )


def optimize(
    paths: Sequence[Path],
    swap_type: SwapType,
    total_amount: Decimal,
    gas_price_per_path: Decimal = Decimal(0),
    config: RouterConfig = DEFAULT_ROUTER_CONFIG,
    *,
    timestamp: int = 0,
    max_pools: int | None = None,
) -> Allocation:
    """Find the gas-aware best allocation of total_amount over paths.

    Args:
        paths: Candidate paths
        swap_type: Exact-in (total_amount is input) or exact-out (output)
        total_amount: Requested amount in token units
        gas_price_per_path: Cost of one extra path, in the return token
        config: Optimizer configuration
        timestamp: Query timestamp
        max_pools: Cap on the number of paths; defaults to config.max_pools

    Returns:
        The best allocation found

    Raises:
        RouteInsufficientLiquidityError: If the candidate paths cannot absorb
            total_amount; max_amount carries what they can absorb
    """
    candidates = prepare_candidates(paths, swap_type, timestamp)
    if not candidates:
        raise RouteInsufficientLiquidityError(
            "No candidate path can price the request", max_amount=Decimal(0)
        )

    decimals = request_decimals(candidates[0].pairs, swap_type)
    aggregate_limit = sum((c.limit for c in candidates), Decimal(0))
    if aggregate_limit < total_amount:
        capacity = _capacity(candidates, swap_type, decimals, timestamp)
        raise RouteInsufficientLiquidityError(
            f"Requested {total_amount} exceeds aggregate path limit {capacity}",
            max_amount=capacity,
        )

    total_raw = to_raw(total_amount, decimals)
    total = from_raw(total_raw, decimals)
    k_max = min(max_pools or config.max_pools, len(candidates))

    best: Allocation | None = None
    best_score: Decimal | None = None
    for k in range(1, k_max + 1):
        selected = candidates[:k]
        if sum(c.limit for c in selected) < total:
            continue
        allocation = _allocate(selected, swap_type, total, total_raw, decimals, config, timestamp)
        if allocation is None:
            continue
        score = _score(allocation, gas_price_per_path)
        logger.debug("allocation_scored", paths=k, used=allocation.paths_used, score=str(score))
        if best_score is not None and score <= best_score:
            break
        best, best_score = allocation, score

    if best is None:
        # The cheapest k paths cannot hold the request; fall back to the deepest ones
        deepest = sorted(candidates, key=lambda c: (-c.limit, c.spot_price, c.path.id))[:k_max]
        deepest.sort(key=lambda c: (c.spot_price, c.path.id))
        if sum((c.limit for c in deepest), Decimal(0)) >= total:
            best = _allocate(deepest, swap_type, total, total_raw, decimals, config, timestamp)
        if best is None:
            capacity = _capacity(deepest, swap_type, decimals, timestamp)
            raise RouteInsufficientLiquidityError(
                f"Requested {total_amount} exceeds the limit of {k_max} paths ({capacity})",
                max_amount=capacity,
            )

    if best.approximate:
        logger.warning(
            "optimizer_non_convergence",
            paths=len(best.paths),
            max_iterations=config.max_iterations,
        )
    return best


__all__ = [
    "PathCandidate",
    "Allocation",
    "prepare_candidates",
    "water_fill",
    "round_allocation",
    "optimize",
]
