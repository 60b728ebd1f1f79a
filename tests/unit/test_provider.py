"""Tests for pool data providers."""

import json

import pytest

from sor.models import PoolType
from sor.provider import JsonPoolDataProvider, PoolDataProvider, StaticPoolDataProvider


class TestStaticProvider:
    def test_returns_pools(self, weighted_pool, stable_pool):
        provider = StaticPoolDataProvider([weighted_pool, stable_pool])
        assert list(provider.get_pools()) == [weighted_pool, stable_pool]

    def test_is_pool_data_provider(self, static_provider):
        assert isinstance(static_provider, PoolDataProvider)


class TestJsonProvider:
    def test_loads_fixture(self, element_provider):
        pools = element_provider.get_pools()
        assert [pool.pool_type for pool in pools] == [PoolType.ELEMENT]

    def test_is_pool_data_provider(self, element_provider):
        assert isinstance(element_provider, PoolDataProvider)

    def test_rereads_file(self, tmp_path, fixtures_dir):
        path = tmp_path / "pools.json"
        path.write_text(json.dumps({"pools": []}))
        provider = JsonPoolDataProvider(path)
        assert provider.get_pools() == []

        path.write_text((fixtures_dir / "element_pools.json").read_text())
        assert len(provider.get_pools()) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            JsonPoolDataProvider(tmp_path / "missing.json").get_pools()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "pools.json"
        path.write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            JsonPoolDataProvider(path).get_pools()
