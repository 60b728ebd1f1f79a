"""Curve math, one capability table per pool type.

Usage:
    from sor.curves import curve_for

    curve = curve_for(pair.pool_type)
    amount_out = curve.swap_exact_in(pair, amount_in)
"""

from __future__ import annotations

from collections.abc import Mapping

from sor.curves.base import CurveMath, converge_in_amount, fixed_fraction_limit
from sor.curves.convergent import CONVERGENT_CURVE, linear_time_to_maturity, make_convergent_curve
from sor.curves.stable import STABLE_CURVE
from sor.curves.weighted import WEIGHTED_CURVE
from sor.errors import CurveError
from sor.models.types import PoolType

CURVES: Mapping[PoolType, CurveMath] = {
    PoolType.WEIGHTED: WEIGHTED_CURVE,
    PoolType.STABLE: STABLE_CURVE,
    PoolType.ELEMENT: CONVERGENT_CURVE,
}


def curve_for(pool_type: PoolType, curves: Mapping[PoolType, CurveMath] = CURVES) -> CurveMath:
    """Look up the capability table of a pool type.

    Raises:
        CurveError: If no curve is registered for pool_type
    """
    curve = curves.get(pool_type)
    if curve is None:
        raise CurveError(f"No curve registered for pool type {pool_type}")
    return curve


__all__ = [
    "CURVES",
    "CurveMath",
    "curve_for",
    "converge_in_amount",
    "fixed_fraction_limit",
    "make_convergent_curve",
    "linear_time_to_maturity",
    "WEIGHTED_CURVE",
    "STABLE_CURVE",
    "CONVERGENT_CURVE",
]
