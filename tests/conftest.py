"""Pytest configuration and fixtures."""

import json
from pathlib import Path
from typing import Any

import pytest

from sor.models import Pool
from sor.pairs import PoolPairData, project_pair
from sor.provider import JsonPoolDataProvider, StaticPoolDataProvider
from tests.helpers import (
    BASE_TOKEN,
    DAI,
    PRINCIPAL_TOKEN,
    USDC,
    WETH,
    make_element_pool,
    make_stable_pool,
    make_weighted_pool,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return FIXTURES_DIR


def load_snapshot(name: str) -> dict[str, Any]:
    """Load a pool snapshot fixture by name (e.g. "element_pools")."""
    with open(FIXTURES_DIR / f"{name}.json") as f:
        return json.load(f)


# =============================================================================
# Pools
# =============================================================================


@pytest.fixture
def weighted_pool() -> Pool:
    """50/50 WETH/DAI pool at 2000 DAI per WETH."""
    return make_weighted_pool(11, (WETH, "100"), (DAI, "200000"))


@pytest.fixture
def stable_pool() -> Pool:
    """Balanced DAI/USDC stable pool."""
    return make_stable_pool(12, (DAI, "10000"), (USDC, "10000"))


@pytest.fixture
def element_pool() -> Pool:
    """BASE/PRINCIPAL element pool matching element_pools.json."""
    return make_element_pool()


# =============================================================================
# Pair data
# =============================================================================


@pytest.fixture
def weighted_pair(weighted_pool: Pool) -> PoolPairData:
    """WETH -> DAI."""
    return project_pair(weighted_pool, WETH, DAI)


@pytest.fixture
def stable_pair(stable_pool: Pool) -> PoolPairData:
    """DAI -> USDC."""
    return project_pair(stable_pool, DAI, USDC)


@pytest.fixture
def element_pair_factory(element_pool: Pool):
    """Build BASE -> PRINCIPAL (or reversed) pair data at a timestamp."""

    def _make(timestamp: int, reverse: bool = False) -> PoolPairData:
        if reverse:
            return project_pair(element_pool, PRINCIPAL_TOKEN, BASE_TOKEN, timestamp)
        return project_pair(element_pool, BASE_TOKEN, PRINCIPAL_TOKEN, timestamp)

    return _make


# =============================================================================
# Providers
# =============================================================================


@pytest.fixture
def element_provider() -> JsonPoolDataProvider:
    """JSON provider over the element pool snapshot."""
    return JsonPoolDataProvider(FIXTURES_DIR / "element_pools.json")


@pytest.fixture
def mixed_provider() -> JsonPoolDataProvider:
    """JSON provider over a snapshot of weighted, stable and invalid pools."""
    return JsonPoolDataProvider(FIXTURES_DIR / "mixed_pools.json")


@pytest.fixture
def static_provider(weighted_pool: Pool, stable_pool: Pool) -> StaticPoolDataProvider:
    """In-memory provider with the WETH/DAI and DAI/USDC pools."""
    return StaticPoolDataProvider([weighted_pool, stable_pool])
