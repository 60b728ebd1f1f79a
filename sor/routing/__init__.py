"""Routing: path construction, allocation optimization and swap plan assembly."""

from sor.routing.assembler import assemble_swap_info, empty_swap_info
from sor.routing.evaluation import HopFill, PathFill, simulate_allocation
from sor.routing.optimizer import Allocation, PathCandidate, optimize
from sor.routing.paths import Hop, Path, build_paths
from sor.routing.router import SmartOrderRouter, SwapOptions

__all__ = [
    # Paths
    "Hop",
    "Path",
    "build_paths",
    # Evaluation
    "HopFill",
    "PathFill",
    "simulate_allocation",
    # Optimization
    "Allocation",
    "PathCandidate",
    "optimize",
    # Assembly
    "assemble_swap_info",
    "empty_swap_info",
    # Facade
    "SmartOrderRouter",
    "SwapOptions",
]
