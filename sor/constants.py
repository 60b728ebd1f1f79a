"""Router defaults.

Curve protocol constants (ratio limits, amp precision) live in
sor.math.fixed_point next to the arithmetic that uses them.
"""

from decimal import Decimal

# Allocation optimizer
MAX_OPTIMIZER_ITERATIONS = 50
PRICE_TOLERANCE = Decimal("1e-9")

# Finite-difference step for price derivatives, relative to the path limit
DERIVATIVE_STEP = Decimal("1e-6")

# Lower bound for a derivative used as a Newton divisor
MIN_DERIVATIVE = Decimal("1e-30")

# Path construction
DEFAULT_MAX_POOLS = 4
DEFAULT_MAX_POOLS_PER_HOP = 10

# Forward verification of exact-out inputs
CONVERGE_IN_MAX_BUMPS = 6

# Environment variable prefix for RouterConfig.from_env
ENV_PREFIX = "SOR_"
