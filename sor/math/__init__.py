"""Mathematical utilities for the order router.

This package provides mathematical primitives for curve calculations:
- Bfp: 18-decimal fixed-point arithmetic (Balancer-style)
- DECIMAL_HIGH_PREC_CONTEXT: Decimal context for price calculations
"""

from sor.math.decimal_utils import DECIMAL_HIGH_PREC_CONTEXT
from sor.math.fixed_point import Bfp

__all__ = ["Bfp", "DECIMAL_HIGH_PREC_CONTEXT"]
