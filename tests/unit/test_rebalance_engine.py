import asyncio
from decimal import Decimal

import pytest

from treasury.domain.errors import RouterError
from treasury.domain.models import (
    BreakerPhase,
    CycleStatus,
    RebalanceOutcome,
    StrategyMode,
    SwapDirection,
)

HOUR = 3600


def fund(controller, a, b):
    controller.state.balance_a = Decimal(a)
    controller.state.balance_b = Decimal(b)


@pytest.fixture
def engine(controller):
    fund(controller, "6", "4")
    return controller.engine


async def test_overweight_asset_a_is_sold_toward_target(engine, router):
    result = await engine.run_cycle()

    assert result.status == CycleStatus.EXECUTED
    assert result.attempt.direction == SwapDirection.A_TO_B
    assert result.attempt.amount_in == Decimal("1")
    assert result.attempt.min_amount_out == Decimal("0.99")
    assert result.attempt.outcome == RebalanceOutcome.SUCCESS
    assert engine.state.balance_a == Decimal("5")
    assert engine.state.balance_b == Decimal("5")
    assert engine.counters.rebalances_executed == 1
    assert engine.counters.swaps_executed == 1
    assert engine.rate_limiter.daily_used == Decimal("1")
    assert router.swaps[0]["path"] == ["WBTC", "cbBTC"]


async def test_overweight_asset_b_is_sold(controller):
    fund(controller, "3", "7")
    result = await controller.engine.run_cycle()
    assert result.attempt.direction == SwapDirection.B_TO_A
    assert result.attempt.amount_in == Decimal("2")
    assert controller.state.balance_a == Decimal("5")


async def test_position_capped_at_max_size(controller):
    fund(controller, "30", "0")
    result = await controller.engine.run_cycle()
    assert result.attempt.amount_in == Decimal("10")


async def test_within_threshold_is_skipped(controller):
    fund(controller, "5.1", "4.9")
    result = await controller.engine.run_cycle()
    assert result.status == CycleStatus.SKIPPED
    assert result.reason == "within_threshold"
    assert len(controller.engine.attempts) == 0


async def test_no_holdings_is_skipped(controller):
    result = await controller.engine.run_cycle()
    assert result.reason == "no_holdings"


async def test_min_interval_gates_second_cycle(engine, clock):
    await engine.run_cycle()
    engine.state.balance_a = Decimal("8")
    result = await engine.run_cycle()
    assert result.reason == "min_interval_not_elapsed"

    clock.advance(HOUR)
    result = await engine.run_cycle()
    assert result.status == CycleStatus.EXECUTED


async def test_daily_limit_skip_logs_attempt_but_spares_breaker(engine, clock):
    engine.rate_limiter.try_reserve(Decimal("49.995"), clock.now())

    result = await engine.run_cycle()

    assert result.status == CycleStatus.SKIPPED
    assert result.reason == "daily_limit_exceeded"
    assert result.attempt.outcome == RebalanceOutcome.LIMIT_EXCEEDED
    assert engine.breaker.fail_count == 0
    assert engine.last_rebalance_time is None
    assert engine.counters.rebalances_failed == 0
    assert engine.state.balance_a == Decimal("6")


async def test_amount_reduced_to_remaining_budget(engine, clock):
    engine.rate_limiter.try_reserve(Decimal("49.5"), clock.now())
    result = await engine.run_cycle()
    assert result.attempt.amount_in == Decimal("0.5")
    assert engine.rate_limiter.daily_used == Decimal("50")


async def test_slippage_failure_counts_and_consumes_budget(engine, router):
    router.quote_rate = Decimal("0.98")
    result = await engine.run_cycle()

    assert result.status == CycleStatus.FAILED
    assert result.reason == "slippage_exceeded"
    assert result.attempt.outcome == RebalanceOutcome.SLIPPAGE_EXCEEDED
    assert engine.counters.rebalances_failed == 1
    assert engine.counters.swaps_failed == 1
    assert engine.rate_limiter.daily_used == Decimal("1")
    assert engine.state.balance_a == Decimal("6")
    assert engine.breaker.fail_count == 1


async def test_settled_swap_below_minimum_books_actual_exchange(engine, router):
    router.quote_rate = Decimal("1")
    router.rate = Decimal("0.5")
    result = await engine.run_cycle()

    assert result.status == CycleStatus.FAILED
    assert result.reason == "slippage_exceeded"
    assert result.attempt.amount_out == Decimal("0.5")
    assert result.attempt.gas_cost == Decimal("0.00002")
    assert engine.state.balance_a == Decimal("5")
    assert engine.state.balance_b == Decimal("4.5")
    assert engine.breaker.fail_count == 1
    assert engine.counters.swaps_failed == 1


async def test_reverted_swap_records_no_gas_from_earlier_swap(engine, router, clock):
    router.gas_cost = Decimal("0.005")
    first = await engine.run_cycle()
    assert first.attempt.gas_cost == Decimal("0.005")

    engine.state.balance_a = Decimal("8")
    clock.advance(HOUR)
    router.error = RouterError("reverted")
    result = await engine.run_cycle()

    assert result.reason == "router_error"
    assert result.attempt.outcome == RebalanceOutcome.REVERTED
    assert result.attempt.gas_cost == Decimal("0")
    assert result.attempt.amount_out == Decimal("0")


async def test_three_failures_trip_breaker_then_cycles_are_no_ops(engine, router, clock):
    router.error = RouterError("reverted")
    for _ in range(3):
        result = await engine.run_cycle()
        assert result.status == CycleStatus.FAILED
        clock.advance(HOUR)

    assert engine.breaker.tripped
    assert engine.breaker.phase == BreakerPhase.OPEN
    assert engine.mode(clock.now()) == StrategyMode.CIRCUIT_BREAKER_TRIPPED
    assert engine.rate_limiter.daily_used <= engine.rate_limiter.daily_limit

    counters = (engine.counters.rebalances_failed, engine.counters.swaps_failed)
    attempts = len(engine.attempts)
    router.error = None
    result = await engine.run_cycle()
    assert result.reason == "circuit_breaker_open"
    assert (engine.counters.rebalances_failed, engine.counters.swaps_failed) == counters
    assert len(engine.attempts) == attempts


async def test_recovery_resumes_after_trip_duration(engine, router, clock, strategy):
    router.error = RouterError("reverted")
    for _ in range(3):
        await engine.run_cycle()
        clock.advance(HOUR)
    router.error = None

    clock.set(engine.breaker.last_failure_at + strategy.circuit_breaker.trip_duration_seconds)
    result = await engine.run_cycle()

    assert result.status == CycleStatus.EXECUTED
    assert result.mode == StrategyMode.GRADUAL_RECOVERY
    assert engine.rate_limiter.daily_limit == strategy.circuit_breaker.recovery_floor


async def test_gates_in_priority_order(controller):
    fund(controller, "6", "4")
    controller.enable_oracle_failure_mode()
    result = await controller.engine.run_cycle()
    assert result.reason == "oracle_failure_mode"

    controller.pause()
    result = await controller.engine.run_cycle()
    assert result.reason == "strategy_paused"

    controller.shutdown()
    result = await controller.engine.run_cycle()
    assert result.reason == "strategy_shutdown"
    assert result.mode == StrategyMode.SHUTDOWN


async def test_oracle_failure_enters_and_leaves_automatic_mode(engine, market, clock):
    for feed_id in ("btc_usd", "btc_usd_fallback"):
        market["feeds"][feed_id].updated_at = clock.now() - 7200

    result = await engine.run_cycle()
    assert result.reason == "oracle_stale"
    assert engine.state.oracle_failure_auto
    assert result.mode == StrategyMode.ORACLE_FAILURE_MODE

    for feed_id in ("btc_usd", "btc_usd_fallback"):
        market["feeds"][feed_id].updated_at = None
    result = await engine.run_cycle()
    assert result.status == CycleStatus.EXECUTED
    assert not engine.state.oracle_failure_auto


async def test_concurrent_trigger_is_rejected(engine, router):
    router.hold = asyncio.Event()
    first = asyncio.create_task(engine.run_cycle())
    await router.entered.wait()

    second = await engine.run_cycle()
    assert second.reason == "cycle_in_progress"
    assert engine.last_rebalance_time is not None

    router.hold.set()
    result = await first
    assert result.status == CycleStatus.EXECUTED
    assert not engine.in_flight
