"""Pool dataclasses.

Pools are immutable snapshots. Simulating a trade against a pool produces a
successor pool with updated balances; the original value is never touched, so
the same snapshot can be reused across optimizer iterations.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from sor.models.types import PoolType, normalize_address


@dataclass(frozen=True)
class PoolToken:
    """Token held by a pool.

    Attributes:
        address: Token address (lowercase)
        balance: Pool balance in token units (e.g. Decimal("1000.5"))
        decimals: Token decimals, in [0, 18]
        weight: Normalized weight, weighted pools only
    """

    address: str
    balance: Decimal
    decimals: int
    weight: Decimal | None = None


@dataclass(frozen=True)
class Pool:
    """Liquidity pool snapshot.

    Attributes:
        id: Pool id (32-byte hex string)
        address: Pool contract address
        pool_type: Curve family
        tokens: Pool tokens in pool order
        swap_fee: Swap fee as decimal (e.g., 0.003 for 0.3%)
        total_shares: Pool share supply
        amp: Amplification parameter, stable pools only (unscaled, e.g. 200)
        expiry_time: Unix timestamp of maturity, element pools only
        unit_seconds: Time-stretch constant, element pools only
        principal_token: Principal token address, element pools only
        base_token: Base token address, element pools only
    """

    id: str
    address: str
    pool_type: PoolType
    tokens: tuple[PoolToken, ...]
    swap_fee: Decimal
    total_shares: Decimal = Decimal(0)
    amp: Decimal | None = None
    expiry_time: int | None = None
    unit_seconds: int | None = None
    principal_token: str | None = None
    base_token: str | None = None

    @property
    def token_addresses(self) -> tuple[str, ...]:
        return tuple(token.address for token in self.tokens)

    def get_token(self, address: str) -> PoolToken | None:
        """Get a pool token by address, or None if the pool does not hold it."""
        address_norm = normalize_address(address)
        for token in self.tokens:
            if normalize_address(token.address) == address_norm:
                return token
        return None

    def has_tokens(self, *addresses: str) -> bool:
        return all(self.get_token(address) is not None for address in addresses)

    def after_swap(
        self,
        token_in: str,
        token_out: str,
        amount_in: Decimal,
        amount_out: Decimal,
    ) -> Pool:
        """Return the successor pool after a swap of amount_in for amount_out."""
        token_in_norm = normalize_address(token_in)
        token_out_norm = normalize_address(token_out)
        tokens = []
        for token in self.tokens:
            address = normalize_address(token.address)
            if address == token_in_norm:
                token = replace(token, balance=token.balance + amount_in)
            elif address == token_out_norm:
                token = replace(token, balance=token.balance - amount_out)
            tokens.append(token)
        return replace(self, tokens=tuple(tokens))
