"""Pool data providers.

The router pulls a pool snapshot from a provider once per request and never
calls back into it. Fetching from a node or indexer is left to callers; an
in-memory and a JSON-file provider are supplied.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from sor.models.pool import Pool
from sor.models.snapshot import parse_pools

logger = structlog.get_logger()


@runtime_checkable
class PoolDataProvider(Protocol):
    """Source of pool snapshots."""

    def get_pools(self) -> Sequence[Pool]:
        """Return the current pool snapshot."""
        ...


class StaticPoolDataProvider:
    """Provider over a fixed, in-memory list of pools."""

    def __init__(self, pools: Sequence[Pool]) -> None:
        self._pools = tuple(pools)

    def get_pools(self) -> Sequence[Pool]:
        return self._pools


class JsonPoolDataProvider:
    """Provider reading a subgraph-style {"pools": [...]} JSON file.

    The file is read on every call, so edits to it are picked up by the next
    request.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get_pools(self) -> Sequence[Pool]:
        """Load and parse the snapshot file.

        Raises:
            OSError: If the file cannot be read
            json.JSONDecodeError: If the file is not valid JSON
            pydantic.ValidationError: If the document is not a pool snapshot
        """
        with open(self.path) as f:
            data = json.load(f)
        pools = parse_pools(data)
        logger.debug("pools_loaded", path=str(self.path), count=len(pools))
        return pools


__all__ = ["PoolDataProvider", "StaticPoolDataProvider", "JsonPoolDataProvider"]
