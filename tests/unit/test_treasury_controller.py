from decimal import Decimal

import pytest

from treasury.domain.errors import ConfigOutOfBounds, EmergencyWithdrawNotAllowed, RouterError
from treasury.domain.models import CycleStatus, StrategyMode


def test_emergency_withdraw_requires_shutdown(controller):
    controller.credit("WBTC", Decimal("1"))
    with pytest.raises(EmergencyWithdrawNotAllowed):
        controller.emergency_withdraw(Decimal("1"))


def test_emergency_withdraw_takes_larger_balance_first(controller):
    controller.credit("WBTC", Decimal("2"))
    controller.credit("cbBTC", Decimal("3"))
    controller.shutdown()

    withdrawn = controller.emergency_withdraw(Decimal("4"))
    assert withdrawn == {"WBTC": Decimal("1"), "cbBTC": Decimal("3")}
    assert controller.state.balance_a == Decimal("1")
    assert controller.state.balance_b == Decimal("0")


def test_emergency_withdraw_capped_at_holdings(controller):
    controller.credit("WBTC", Decimal("0.5"))
    controller.shutdown()
    withdrawn = controller.emergency_withdraw(Decimal("10"))
    assert withdrawn["WBTC"] == Decimal("0.5")
    assert controller.reporter.get_allocation_details().total_balance == Decimal("0")


def test_shutdown_is_terminal(controller):
    controller.shutdown()
    controller.shutdown()
    controller.unpause()
    assert controller.mode == StrategyMode.SHUTDOWN
    assert controller.state.paused


def test_oracle_override_toggles(controller):
    controller.enable_oracle_failure_mode()
    assert controller.mode == StrategyMode.ORACLE_FAILURE_MODE
    controller.state.oracle_failure_auto = True
    controller.disable_oracle_failure_mode()
    assert controller.mode == StrategyMode.NORMAL


def test_bounded_setters(controller):
    with pytest.raises(ConfigOutOfBounds):
        controller.set_swap_fee(200)
    controller.set_max_slippage(50)
    assert controller.engine.swap_executor.max_slippage_bps == 50

    with pytest.raises(ConfigOutOfBounds):
        controller.set_deposit_cap(Decimal("5000"))
    controller.set_deposit_cap(Decimal("10"))
    assert controller.deposit_cap == Decimal("10")


def test_deposit_limit(controller):
    controller.credit("WBTC", Decimal("40"))
    assert controller.available_deposit_limit() == Decimal("60")

    controller.credit("cbBTC", Decimal("70"))
    assert controller.available_deposit_limit() == Decimal("0")

    controller.debit("cbBTC", Decimal("70"))
    controller.pause()
    assert controller.available_deposit_limit() == Decimal("0")


def test_vault_hooks_validate_amounts(controller):
    with pytest.raises(ValueError):
        controller.credit("WBTC", Decimal("0"))
    with pytest.raises(ValueError):
        controller.debit("WBTC", Decimal("1"))
    with pytest.raises(ValueError):
        controller.credit("ETH", Decimal("1"))


async def test_trip_sends_operator_alert(controller, router, alert, clock):
    controller.credit("WBTC", Decimal("6"))
    controller.credit("cbBTC", Decimal("4"))
    router.error = RouterError("reverted")

    for _ in range(3):
        await controller.tend()
        clock.advance(3600)

    assert len(alert.calls) == 1
    tier, title, _ = alert.calls[0]
    assert tier == "BLOCKED"
    assert "Circuit breaker" in title


async def test_report_never_raises(controller, monkeypatch):
    async def boom():
        raise RuntimeError("unexpected")

    monkeypatch.setattr(controller.engine, "run_cycle", boom)
    result = await controller.report()
    assert result.status == CycleStatus.FAILED
    assert result.reason == "unexpected_error"
