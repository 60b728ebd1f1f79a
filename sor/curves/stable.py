"""Stable pool curve (StableSwap).

Uses Newton-Raphson iteration for the invariant and for the unknown balance,
matching Balancer's StableMath.sol:
https://github.com/balancer-labs/balancer-v2-monorepo/blob/stable-deployment/pkg/pool-stable/contracts/StableMath.sol
"""

from __future__ import annotations

import decimal
from decimal import Decimal

from sor.curves.base import CurveMath, fixed_fraction_limit
from sor.curves.scaling import add_swap_fee_amount, subtract_swap_fee_amount
from sor.errors import (
    StableGetBalanceDidNotConverge,
    StableInvariantDidNotConverge,
    ZeroBalanceError,
)
from sor.math.decimal_utils import DECIMAL_HIGH_PREC_CONTEXT
from sor.math.fixed_point import AMP_PRECISION, Bfp
from sor.pairs import PoolPairData

_STABLE_MAX_ITERATIONS = 255


def calculate_invariant(amp: int, balances: list[Bfp]) -> Bfp:
    """Calculate StableSwap invariant D using Newton-Raphson iteration.

    Uses Balancer's parameterization where the Newton-Raphson formula uses
    A*n (not A*n^n). The n^n factor is incorporated through the iterative
    d_p calculation.

    Args:
        amp: Amplification parameter (scaled by AMP_PRECISION=1000)
        balances: Token balances (18 decimals)

    Raises:
        StableInvariantDidNotConverge: If iteration doesn't converge
        ZeroBalanceError: If any balance is zero
    """
    n_coins = len(balances)
    if n_coins == 0:
        return Bfp(0)

    for i, bal in enumerate(balances):
        if bal.value <= 0:
            raise ZeroBalanceError(f"Balance at index {i} must be positive")

    sum_balances = sum(b.value for b in balances)
    d_prev = sum_balances
    amp_times_n = amp * n_coins

    for _ in range(_STABLE_MAX_ITERATIONS):
        # d_p = D^(n+1) / (n^n * prod(balances))
        d_p = d_prev
        for bal in balances:
            d_p = (d_p * d_prev) // (n_coins * bal.value)

        numerator = ((amp_times_n * sum_balances) // AMP_PRECISION + d_p * n_coins) * d_prev
        denominator = ((amp_times_n - AMP_PRECISION) * d_prev) // AMP_PRECISION + (
            n_coins + 1
        ) * d_p
        d_new = numerator // denominator

        if abs(d_new - d_prev) <= 1:
            return Bfp(d_new)
        d_prev = d_new

    raise StableInvariantDidNotConverge(
        f"Stable invariant did not converge after {_STABLE_MAX_ITERATIONS} iterations"
    )


def get_token_balance_given_invariant_and_all_other_balances(
    amp: int,
    balances: list[Bfp],
    invariant: Bfp,
    token_index: int,
) -> Bfp:
    """Solve for balances[token_index] given D and all other balances.

    Raises:
        StableGetBalanceDidNotConverge: If iteration doesn't converge
    """
    n_coins = len(balances)
    d = invariant.value
    amp_times_total = amp * n_coins

    sum_balances = balances[0].value
    p_d = balances[0].value * n_coins
    for j in range(1, n_coins):
        p_d = (p_d * balances[j].value * n_coins) // d
        sum_balances += balances[j].value

    sum_others = sum_balances - balances[token_index].value
    inv2 = d * d

    amp_times_p_d = amp_times_total * p_d
    if amp_times_p_d == 0:
        raise StableGetBalanceDidNotConverge("amp_times_p_d is zero")
    c = ((inv2 + amp_times_p_d - 1) // amp_times_p_d) * AMP_PRECISION * balances[token_index].value
    b = sum_others + (d // amp_times_total) * AMP_PRECISION

    # Initial guess: (inv2 + c) / (invariant + b), rounded up
    token_balance = (inv2 + c + d + b - 1) // (d + b)

    for _ in range(_STABLE_MAX_ITERATIONS):
        prev_token_balance = token_balance
        numerator = token_balance * token_balance + c
        denominator = 2 * token_balance + b - d
        if denominator <= 0:
            raise StableGetBalanceDidNotConverge("Denominator became non-positive")
        token_balance = (numerator + denominator - 1) // denominator

        if abs(token_balance - prev_token_balance) <= 1:
            return Bfp(token_balance)

    raise StableGetBalanceDidNotConverge(
        f"Stable get_balance did not converge after {_STABLE_MAX_ITERATIONS} iterations"
    )


def stable_calc_out_given_in(
    amp: int,
    balances: list[Bfp],
    token_index_in: int,
    token_index_out: int,
    amount_in: Bfp,
) -> Bfp:
    """Calculate output amount for a given input (fee already subtracted).

    Output = old_balance_out - new_balance_out - 1 (1 wei rounding protection)
    """
    invariant = calculate_invariant(amp, balances)

    new_balances = list(balances)
    new_balances[token_index_in] = balances[token_index_in].add(amount_in)
    new_balance_out = get_token_balance_given_invariant_and_all_other_balances(
        amp, new_balances, invariant, token_index_out
    )

    old_balance_out = balances[token_index_out].value
    if new_balance_out.value >= old_balance_out:
        return Bfp(0)
    return Bfp(old_balance_out - new_balance_out.value - 1)


def stable_calc_in_given_out(
    amp: int,
    balances: list[Bfp],
    token_index_in: int,
    token_index_out: int,
    amount_out: Bfp,
) -> Bfp:
    """Calculate input amount for a given output (fee not yet added).

    Input = new_balance_in - old_balance_in + 1 (1 wei rounding protection)

    Raises:
        ZeroBalanceError: If amount_out >= balance_out
    """
    if amount_out.value >= balances[token_index_out].value:
        raise ZeroBalanceError("amount_out must be less than balance_out")

    invariant = calculate_invariant(amp, balances)

    new_balances = list(balances)
    new_balances[token_index_out] = balances[token_index_out].sub(amount_out)
    new_balance_in = get_token_balance_given_invariant_and_all_other_balances(
        amp, new_balances, invariant, token_index_in
    )

    return Bfp(new_balance_in.value - balances[token_index_in].value + 1)


# =============================================================================
# Pair-level capabilities
# =============================================================================


def _amp(pair: PoolPairData) -> int:
    if pair.amp is None:
        raise ZeroBalanceError(f"Pool {pair.pool_id}: missing amplification parameter")
    return pair.amp


def stable_spot_price(pair: PoolPairData) -> Decimal:
    """Ratio of the invariant's partial derivatives, grossed up by the fee.

    With the invariant written as amp*n*S + D = amp*n*D + D^(n+1) / (n^n * P),
    dF/dx_i = amp*n + D^(n+1) / (n^n * P * x_i); the price of token_out in
    token_in is dF/dx_out / dF/dx_in.
    """
    amp = _amp(pair)
    balances = list(pair.balances)
    invariant = calculate_invariant(amp, balances)
    n_coins = len(balances)

    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        amp_times_n = Decimal(amp) / AMP_PRECISION * n_coins
        d = invariant.to_decimal()
        product = Decimal(1)
        for bal in balances:
            product *= bal.to_decimal()
        common = d ** (n_coins + 1) / (Decimal(n_coins) ** n_coins * product)
        partial_in = amp_times_n + common / pair.balance_in.to_decimal()
        partial_out = amp_times_n + common / pair.balance_out.to_decimal()
        return partial_out / partial_in / (1 - pair.swap_fee)


def stable_out_given_in(pair: PoolPairData, amount_in: Bfp) -> Bfp:
    amount_in_after_fee = subtract_swap_fee_amount(amount_in, pair.swap_fee)
    return stable_calc_out_given_in(
        _amp(pair), list(pair.balances), pair.index_in, pair.index_out, amount_in_after_fee
    )


def stable_in_given_out(pair: PoolPairData, amount_out: Bfp) -> Bfp:
    amount_in = stable_calc_in_given_out(
        _amp(pair), list(pair.balances), pair.index_in, pair.index_out, amount_out
    )
    return add_swap_fee_amount(amount_in, pair.swap_fee)


def stable_normalized_liquidity(pair: PoolPairData) -> Decimal:
    """balance_out * amp."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return pair.balance_out.to_decimal() * Decimal(_amp(pair)) / AMP_PRECISION


STABLE_CURVE = CurveMath(
    spot_price=stable_spot_price,
    calc_out_given_in=stable_out_given_in,
    calc_in_given_out=stable_in_given_out,
    limit_amount=fixed_fraction_limit,
    normalized_liquidity=stable_normalized_liquidity,
)

__all__ = [
    "calculate_invariant",
    "get_token_balance_given_invariant_and_all_other_balances",
    "stable_calc_out_given_in",
    "stable_calc_in_given_out",
    "stable_spot_price",
    "stable_normalized_liquidity",
    "STABLE_CURVE",
]
