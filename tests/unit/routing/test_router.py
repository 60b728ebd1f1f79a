"""End-to-end tests for SmartOrderRouter.get_swaps."""

from decimal import Decimal

import pytest

from sor.config import RouterConfig
from sor.errors import NoPathError, RouteInsufficientLiquidityError
from sor.models import PoolFilter, SwapType
from sor.provider import StaticPoolDataProvider
from sor.routing import SmartOrderRouter, SwapOptions
from tests.helpers import (
    BASE_TOKEN,
    DAI,
    ELEMENT_EXPIRY,
    PRINCIPAL_TOKEN,
    USDC,
    USDT,
    WETH,
    make_element_pool,
    make_stable_pool,
    make_weighted_pool,
)


@pytest.fixture
def element_router(element_provider) -> SmartOrderRouter:
    return SmartOrderRouter(element_provider)


@pytest.fixture
def twin_router() -> SmartOrderRouter:
    """Two identical WETH/DAI pools."""
    return SmartOrderRouter(
        StaticPoolDataProvider(
            [
                make_weighted_pool(1, (WETH, "100"), (DAI, "200000")),
                make_weighted_pool(2, (WETH, "100"), (DAI, "200000")),
            ]
        )
    )


def _options(offset: int = 0, **kwargs) -> SwapOptions:
    return SwapOptions(timestamp=ELEMENT_EXPIRY + offset, **kwargs)


class TestElementPools:
    """Principal/base swaps around expiry."""

    def test_exact_in_before_expiry(self, element_router):
        info = element_router.get_swaps(
            BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal("0.1"), _options(-22)
        )
        assert len(info.swaps) == 1
        assert info.swaps[0].amount_in == Decimal("0.1")
        assert info.return_amount > Decimal("0.1")

    def test_exact_in_after_expiry(self, element_router):
        info = element_router.get_swaps(
            BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal("0.1"), _options(22)
        )
        assert info.return_amount == Decimal("0.1")
        assert info.effective_price == 1

    def test_exact_out_before_expiry(self, element_router):
        info = element_router.get_swaps(
            BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_OUT, Decimal(10), _options(-22)
        )
        assert info.swaps[0].amount_out == Decimal(10)
        assert Decimal(9) < info.return_amount < Decimal(10)

    @pytest.mark.parametrize("offset", [-22, 22])
    def test_exact_out_beyond_pool_limit(self, element_router, offset):
        with pytest.raises(RouteInsufficientLiquidityError) as exc_info:
            element_router.get_swaps(
                BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_OUT, Decimal(777), _options(offset)
            )
        assert exc_info.value.max_amount == Decimal(300)

    def test_exact_in_limit_depends_on_maturity(self, element_router):
        with pytest.raises(RouteInsufficientLiquidityError) as matured:
            element_router.get_swaps(
                BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal(301), _options(1)
            )
        with pytest.raises(RouteInsufficientLiquidityError) as active:
            element_router.get_swaps(
                BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal(301), _options(-10)
            )
        assert matured.value.max_amount == Decimal(300)
        assert 0 < active.value.max_amount < Decimal(301)
        assert active.value.max_amount != matured.value.max_amount

    def test_too_far_from_expiry(self, element_router):
        with pytest.raises(RouteInsufficientLiquidityError):
            element_router.get_swaps(
                BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal(1), _options(-5000)
            )


class TestCurveFailures:
    """One unusable pool does not sink the request."""

    def test_matured_pool_short_on_output(self):
        router = SmartOrderRouter(
            StaticPoolDataProvider(
                [
                    make_element_pool(1, base_balance="1000", principal_balance="100"),
                    make_weighted_pool(2, (BASE_TOKEN, "100000"), (PRINCIPAL_TOKEN, "100000")),
                ]
            )
        )
        info = router.get_swaps(
            BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal(250), _options(1)
        )
        assert sum(leg.amount_in for leg in info.swaps) == Decimal(250)
        assert info.return_amount > Decimal(200)


class TestRequestValidation:
    """Degenerate requests."""

    def test_zero_amount(self, element_router):
        info = element_router.get_swaps(
            BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal(0), _options()
        )
        assert info.is_empty
        assert info.return_amount == 0
        assert info.market_sp == 0

    def test_negative_amount(self, element_router):
        with pytest.raises(ValueError):
            element_router.get_swaps(
                BASE_TOKEN, PRINCIPAL_TOKEN, SwapType.EXACT_IN, Decimal(-1), _options()
            )

    def test_same_token(self, element_router):
        with pytest.raises(NoPathError):
            element_router.get_swaps(
                BASE_TOKEN, BASE_TOKEN, SwapType.EXACT_IN, Decimal(1), _options()
            )

    def test_unknown_token(self, element_router):
        with pytest.raises(NoPathError):
            element_router.get_swaps(BASE_TOKEN, USDT, SwapType.EXACT_IN, Decimal(1), _options())

    def test_pool_type_filter(self, element_router):
        with pytest.raises(NoPathError):
            element_router.get_swaps(
                BASE_TOKEN,
                PRINCIPAL_TOKEN,
                SwapType.EXACT_IN,
                Decimal(1),
                _options(-22, pool_type_filter=PoolFilter.STABLE),
            )
        info = element_router.get_swaps(
            BASE_TOKEN,
            PRINCIPAL_TOKEN,
            SwapType.EXACT_IN,
            Decimal(1),
            _options(-22, pool_type_filter=PoolFilter.ELEMENT),
        )
        assert not info.is_empty

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            SwapOptions(timestamp=0, max_pools=0)
        with pytest.raises(ValueError):
            SwapOptions(timestamp=0, gas_price_per_path=Decimal(-1))


class TestMultihop:
    """Routing through an intermediate token."""

    def test_weth_to_usdc_through_dai(self, mixed_provider):
        router = SmartOrderRouter(mixed_provider)
        info = router.get_swaps(WETH, USDC, SwapType.EXACT_IN, Decimal(1), SwapOptions(timestamp=0))
        assert [(leg.token_in, leg.token_out) for leg in info.swaps] == [(WETH, DAI), (DAI, USDC)]
        assert info.swaps[0].amount_out == info.swaps[1].amount_in
        assert info.path_count == 1
        assert Decimal(1900) < info.return_amount < Decimal(2000)
        assert info.return_amount == info.return_amount.quantize(Decimal("0.000001"))

    def test_exact_out_through_dai(self, mixed_provider):
        router = SmartOrderRouter(mixed_provider)
        info = router.get_swaps(
            WETH, USDC, SwapType.EXACT_OUT, Decimal(1000), SwapOptions(timestamp=0)
        )
        assert info.swaps[-1].amount_out == Decimal(1000)
        assert Decimal("0.4") < info.return_amount < Decimal("0.6")


class TestSwapInfo:
    """Totals, gas and determinism of the result."""

    def test_conservation_exact_in(self, twin_router):
        info = twin_router.get_swaps(
            WETH, DAI, SwapType.EXACT_IN, Decimal(10), SwapOptions(timestamp=0)
        )
        assert sum(leg.amount_in for leg in info.swaps if leg.hop_index == 0) == Decimal(10)
        assert sum(leg.amount_out for leg in info.swaps) == info.return_amount
        assert info.path_count == 2

    def test_conservation_exact_out(self, twin_router):
        info = twin_router.get_swaps(
            WETH, DAI, SwapType.EXACT_OUT, Decimal(10000), SwapOptions(timestamp=0)
        )
        assert sum(leg.amount_out for leg in info.swaps) == Decimal(10000)
        assert sum(leg.amount_in for leg in info.swaps) == info.return_amount
        assert info.effective_price == info.return_amount / Decimal(10000)

    def test_gas_in_return_considering_fees(self, twin_router):
        options = SwapOptions(timestamp=0, gas_price_per_path=Decimal(100))
        info = twin_router.get_swaps(WETH, DAI, SwapType.EXACT_IN, Decimal(10), options)
        assert info.return_amount_considering_fees == info.return_amount - 100 * info.path_count

    def test_gas_added_for_exact_out(self, twin_router):
        options = SwapOptions(timestamp=0, gas_price_per_path=Decimal("0.01"))
        info = twin_router.get_swaps(WETH, DAI, SwapType.EXACT_OUT, Decimal(10000), options)
        expected = info.return_amount + Decimal("0.01") * info.path_count
        assert info.return_amount_considering_fees == expected

    def test_max_pools_option(self, twin_router):
        options = SwapOptions(timestamp=0, max_pools=1)
        info = twin_router.get_swaps(WETH, DAI, SwapType.EXACT_IN, Decimal(10), options)
        assert info.path_count == 1

    def test_market_price_above_spot(self, twin_router):
        info = twin_router.get_swaps(
            WETH, DAI, SwapType.EXACT_IN, Decimal(10), SwapOptions(timestamp=0)
        )
        spot = Decimal("0.0005") / Decimal("0.997")
        assert info.market_sp > spot
        assert info.effective_price > spot

    def test_deterministic(self, twin_router):
        options = SwapOptions(timestamp=0)
        first = twin_router.get_swaps(WETH, DAI, SwapType.EXACT_IN, Decimal(10), options)
        second = twin_router.get_swaps(WETH, DAI, SwapType.EXACT_IN, Decimal(10), options)
        assert first == second

    def test_approximate_flag(self):
        router = SmartOrderRouter(
            StaticPoolDataProvider(
                [
                    make_weighted_pool(1, (WETH, "100"), (DAI, "200000")),
                    make_weighted_pool(2, (WETH, "50"), (DAI, "100000")),
                ]
            ),
            config=RouterConfig(max_iterations=1),
        )
        info = router.get_swaps(WETH, DAI, SwapType.EXACT_IN, Decimal(9), SwapOptions(timestamp=0))
        assert info.approximate
        assert info.swap_amount == Decimal(9)


class TestSharedPools:
    """Two routes into one stable pool."""

    @pytest.fixture
    def shared_router(self) -> SmartOrderRouter:
        return SmartOrderRouter(
            StaticPoolDataProvider(
                [
                    make_weighted_pool(1, (WETH, "1000"), (DAI, "2000000")),
                    make_weighted_pool(2, (WETH, "1000"), (USDC, "2000000")),
                    make_stable_pool(
                        3, (DAI, "1000000"), (USDC, "1000000"), (USDT, "1000000")
                    ),
                ]
            )
        )

    def test_exact_out_over_both_routes(self, shared_router):
        info = shared_router.get_swaps(
            WETH, USDT, SwapType.EXACT_OUT, Decimal(500000), SwapOptions(timestamp=0)
        )
        assert sum(leg.amount_out for leg in info.swaps if leg.token_out == USDT) == Decimal(
            500000
        )
        assert info.path_count == 2

    def test_insufficient_liquidity_reports_fillable_amount(self, shared_router):
        with pytest.raises(RouteInsufficientLiquidityError) as exc_info:
            shared_router.get_swaps(
                WETH, USDT, SwapType.EXACT_OUT, Decimal(600000), SwapOptions(timestamp=0)
            )
        assert exc_info.value.max_amount == Decimal(510000)
