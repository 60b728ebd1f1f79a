"""Swap plan assembly: turns a finalized Allocation into a SwapInfo."""

from __future__ import annotations

from decimal import Decimal

from sor.math.decimal_utils import decimal_div, from_raw
from sor.models.swap_info import SwapInfo, SwapLeg
from sor.models.types import SwapType, normalize_address
from sor.routing.optimizer import Allocation


def empty_swap_info(
    token_in: str, token_out: str, swap_type: SwapType, swap_amount: Decimal = Decimal(0)
) -> SwapInfo:
    """SwapInfo with no legs, for zero-amount requests."""
    return SwapInfo(
        token_in=normalize_address(token_in),
        token_out=normalize_address(token_out),
        swap_type=swap_type,
        swap_amount=swap_amount,
        return_amount=Decimal(0),
        return_amount_considering_fees=Decimal(0),
    )


def assemble_swap_info(
    token_in: str,
    token_out: str,
    allocation: Allocation,
    gas_price_per_path: Decimal = Decimal(0),
) -> SwapInfo:
    """Flatten an allocation into ordered legs and totals.

    Exact-in outputs are summed from amounts rounded down, exact-out inputs
    from amounts rounded up, so the plan never promises more than the pools
    deliver. The gas cost of the used paths is subtracted from an exact-in
    return and added to an exact-out return.
    """
    swaps = tuple(
        SwapLeg(
            pool_id=hop.pool.id,
            pool_address=hop.pool.address,
            token_in=hop.token_in,
            token_out=hop.token_out,
            amount_in=hop.amount_in,
            amount_out=hop.amount_out,
            path_index=path_index,
            hop_index=hop_index,
        )
        for path_index, fill in enumerate(allocation.fills)
        for hop_index, hop in enumerate(fill.hops)
    )

    total_in = from_raw(
        sum(fill.amount_in_raw for fill in allocation.fills), allocation.decimals_in
    )
    total_out = from_raw(
        sum(fill.amount_out_raw for fill in allocation.fills), allocation.decimals_out
    )

    gas = gas_price_per_path * allocation.paths_used
    if allocation.swap_type == SwapType.EXACT_IN:
        return_amount = total_out
        considering_fees = return_amount - gas
    else:
        return_amount = total_in
        considering_fees = return_amount + gas

    return SwapInfo(
        token_in=normalize_address(token_in),
        token_out=normalize_address(token_out),
        swap_type=allocation.swap_type,
        swap_amount=from_raw(allocation.total_raw, allocation.decimals),
        return_amount=return_amount,
        return_amount_considering_fees=considering_fees,
        swaps=swaps,
        market_sp=allocation.marginal_price,
        effective_price=decimal_div(total_in, total_out) if total_out > 0 else Decimal(0),
        approximate=allocation.approximate,
    )
