from decimal import Decimal

import pytest

from treasury.domain.errors import ConfigOutOfBounds, FeeMismatch, RouterError, SlippageExceeded
from treasury.domain.models import SwapDirection
from treasury.domain.services.swap_executor import SwapExecutor

from tests.support import DummyRouter


@pytest.fixture
def executor_router():
    return DummyRouter()


@pytest.fixture
def executor(strategy, executor_router):
    return SwapExecutor(executor_router, strategy.swap, "WBTC", "cbBTC")


async def test_one_to_one_router_passes(executor, executor_router):
    result = await executor.execute(SwapDirection.A_TO_B, Decimal("1"), Decimal("0.99"))
    assert result.amount_out == Decimal("1")
    assert result.slippage_bps == 0
    assert result.gas_cost == Decimal("0.00002")
    assert executor.router_operational
    assert executor_router.swaps[0]["path"] == ["WBTC", "cbBTC"]
    assert executor_router.swaps[0]["fee_bps"] == 30


async def test_output_equal_to_input_with_zero_tolerance_passes(executor):
    result = await executor.execute(SwapDirection.B_TO_A, Decimal("0.5"), Decimal("0.5"))
    assert result.amount_out == Decimal("0.5")


async def test_quote_below_minimum_never_swaps(executor, executor_router):
    executor_router.quote_rate = Decimal("0.98")
    with pytest.raises(SlippageExceeded):
        await executor.execute(SwapDirection.A_TO_B, Decimal("1"), Decimal("0.99"))
    assert executor_router.swaps == []


async def test_realized_output_below_minimum(executor, executor_router):
    executor_router.rate = Decimal("0.5")
    executor_router.quote_rate = Decimal("1")
    with pytest.raises(SlippageExceeded) as exc_info:
        await executor.execute(SwapDirection.A_TO_B, Decimal("1"), Decimal("0.99"))
    assert exc_info.value.amount_out == Decimal("0.5")


async def test_router_failure_is_router_error(executor, executor_router):
    executor_router.error = RuntimeError("execution reverted")
    with pytest.raises(RouterError) as exc_info:
        await executor.execute(SwapDirection.A_TO_B, Decimal("1"), Decimal("0.99"))
    assert exc_info.value.amount_out is None
    assert not executor.router_operational


async def test_fee_outside_bounds_is_fee_mismatch(executor, executor_router):
    with pytest.raises(FeeMismatch):
        await executor.execute(SwapDirection.A_TO_B, Decimal("1"), Decimal("0.99"), fee_bps=150)
    assert executor_router.swaps == []


def test_setters_reject_instead_of_clamping(executor):
    with pytest.raises(ConfigOutOfBounds):
        executor.set_swap_fee(200)
    assert executor.swap_fee_bps == 30

    executor.set_max_slippage(50)
    assert executor.max_slippage_bps == 50

    with pytest.raises(ConfigOutOfBounds):
        executor.set_max_slippage(5)
    with pytest.raises(ConfigOutOfBounds):
        executor.set_max_slippage(1001)
    assert executor.max_slippage_bps == 50
