"""Path construction.

Enumerates direct paths and two-hop paths through one intermediate token,
keeping only the most liquid pools at each hop to bound the number of
candidates.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

import structlog

from sor.curves import curve_for
from sor.errors import CurveError, ProjectionError
from sor.models.pool import Pool
from sor.models.types import normalize_address
from sor.pairs import project_pair

logger = structlog.get_logger()


@dataclass(frozen=True)
class Hop:
    """One pool traversal of a path."""

    pool: Pool
    token_in: str
    token_out: str


@dataclass(frozen=True)
class Path:
    """Ordered sequence of one or two hops.

    hops[i].token_out == hops[i + 1].token_in for consecutive hops.
    """

    hops: tuple[Hop, ...]

    def __post_init__(self) -> None:
        if not 1 <= len(self.hops) <= 2:
            raise ValueError(f"A path has one or two hops, got {len(self.hops)}")
        for first, second in zip(self.hops, self.hops[1:]):
            if first.token_out != second.token_in:
                raise ValueError(
                    f"Hop output {first.token_out} does not feed next input {second.token_in}"
                )

    @property
    def id(self) -> str:
        return ">".join(hop.pool.id for hop in self.hops)

    @property
    def token_in(self) -> str:
        return self.hops[0].token_in

    @property
    def token_out(self) -> str:
        return self.hops[-1].token_out

    @property
    def pool_ids(self) -> tuple[str, ...]:
        return tuple(hop.pool.id for hop in self.hops)

    @property
    def is_multihop(self) -> bool:
        return len(self.hops) > 1


def _rank_pools(
    pools: Sequence[Pool],
    token_in: str,
    token_out: str,
    max_pools_per_hop: int,
    timestamp: int,
) -> list[Pool]:
    """Pools trading token_in -> token_out, most liquid first, at most max_pools_per_hop."""
    ranked: list[tuple[Decimal, str, Pool]] = []
    for pool in pools:
        if not pool.has_tokens(token_in, token_out):
            continue
        try:
            pair = project_pair(pool, token_in, token_out, timestamp)
            liquidity = curve_for(pair.pool_type).normalized_liquidity(pair)
        except (ProjectionError, CurveError) as e:
            logger.debug(
                "pool_skipped",
                pool_id=pool.id,
                token_in=token_in,
                token_out=token_out,
                error=str(e),
            )
            continue
        ranked.append((liquidity, pool.id, pool))

    ranked.sort(key=lambda entry: (-entry[0], entry[1]))
    return [pool for _, _, pool in ranked[:max_pools_per_hop]]


def build_paths(
    pools: Sequence[Pool],
    token_in: str,
    token_out: str,
    max_pools_per_hop: int,
    timestamp: int = 0,
) -> list[Path]:
    """Build candidate paths from token_in to token_out.

    Direct paths come first, then two-hop paths grouped by intermediate token
    in address order. Within each hop pools are ranked by normalized
    liquidity (descending) with ties broken by pool id. Two-hop paths that
    would use the same pool twice are skipped.

    Returns:
        Candidate paths; an empty list means no route exists
    """
    token_in = normalize_address(token_in)
    token_out = normalize_address(token_out)
    if token_in == token_out:
        return []

    paths = [
        Path(hops=(Hop(pool, token_in, token_out),))
        for pool in _rank_pools(pools, token_in, token_out, max_pools_per_hop, timestamp)
    ]

    intermediates: set[str] = set()
    for pool in pools:
        if pool.get_token(token_in) is None:
            continue
        intermediates.update(normalize_address(address) for address in pool.token_addresses)
    intermediates -= {token_in, token_out}

    for mid in sorted(intermediates):
        first_hops = _rank_pools(pools, token_in, mid, max_pools_per_hop, timestamp)
        if not first_hops:
            continue
        second_hops = _rank_pools(pools, mid, token_out, max_pools_per_hop, timestamp)
        for first in first_hops:
            for second in second_hops:
                if first.id == second.id:
                    continue
                paths.append(
                    Path(hops=(Hop(first, token_in, mid), Hop(second, mid, token_out)))
                )

    logger.debug(
        "paths_built",
        token_in=token_in,
        token_out=token_out,
        direct=sum(1 for path in paths if not path.is_multihop),
        total=len(paths),
    )
    return paths


__all__ = ["Hop", "Path", "build_paths"]
