from decimal import Decimal

import pytest

from treasury.domain.services.twap import deviation_bps, mean_tick, price_to_tick, tick_to_price


def test_mean_tick_rounds_toward_negative_infinity():
    assert mean_tick([0, 7], 2) == 3
    assert mean_tick([0, -7], 2) == -4
    assert mean_tick([100, 100], 60) == 0


def test_mean_tick_rejects_bad_input():
    with pytest.raises(ValueError):
        mean_tick([1, 2, 3], 10)
    with pytest.raises(ValueError):
        mean_tick([0, 10], 0)


def test_tick_zero_scales_by_decimals():
    assert tick_to_price(0, 8, 6) == Decimal("100")
    assert tick_to_price(0, 8, 6, invert=True) == Decimal("0.01")


def test_price_to_tick_round_trips_within_one_tick():
    tick = price_to_tick(Decimal("100000"), 8, 6)
    price = tick_to_price(tick, 8, 6)
    assert deviation_bps(price, Decimal("100000")) <= 1


def test_inverted_pool_quoted_through_btc_gives_eth_usd():
    # WBTC/WETH pool: 25 WETH per WBTC -> 1/25 WBTC per WETH -> * BTC/USD
    tick = price_to_tick(Decimal("25"), 8, 18)
    eth_usd = tick_to_price(tick, 8, 18, invert=True) * Decimal("100000")
    assert deviation_bps(eth_usd, Decimal("4000")) <= 1


def test_deviation_bps_rounds_up():
    assert deviation_bps(Decimal("101"), Decimal("100")) == 100
    assert deviation_bps(Decimal("100.001"), Decimal("100")) == 1
    assert deviation_bps(Decimal("100"), Decimal("100")) == 0
    with pytest.raises(ValueError):
        deviation_bps(Decimal("1"), Decimal("0"))
