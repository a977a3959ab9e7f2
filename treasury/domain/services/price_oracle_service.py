"""
PRICE ORACLE SERVICE
Validated reference prices with primary/fallback failover

RESPONSIBILITIES:
- Read primary feed, then fallback feed, per reference asset
- Reject stale, incomplete, repeated, regressed or out-of-bounds rounds
- Cross-check the accepted price against the reference pool TWAP

RULES:
❌ No retries within a call (next keeper cycle retries)
❌ No controller state mutation
✅ TWAP deviation falls through to the fallback feed like a bounds failure
✅ Last reading / last error cached per asset for the status surface
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from treasury.domain.errors import (
    OracleDeviationExceeded,
    OracleError,
    OracleOutOfBounds,
    OracleStale,
)
from treasury.domain.models import OracleReading, PriceSource
from treasury.domain.models.entities import PRICE_QUANTUM
from treasury.domain.services.config_engine import OraclePolicy
from treasury.domain.services.twap import deviation_bps, mean_tick, tick_to_price
from treasury.infrastructure.chain.types import PriceFeed, TwapPool
from treasury.utils.clock import Clock

logger = logging.getLogger(__name__)


class PriceOracleService:
    """Validates prices for every configured reference asset"""

    def __init__(
        self,
        policies: List[OraclePolicy],
        feeds: Dict[str, PriceFeed],
        pools: Dict[str, TwapPool],
        clock: Clock,
    ):
        self.policies = {p.asset: p for p in policies}
        self.order = [p.asset for p in policies]
        self.feeds = feeds
        self.pools = pools
        self.clock = clock

        for policy in policies:
            for feed_id in filter(None, (policy.primary_feed, policy.fallback_feed)):
                if feed_id not in feeds:
                    raise ValueError(f"Feed not wired: {feed_id} ({policy.asset})")
            if policy.twap and policy.twap.pool not in pools:
                raise ValueError(f"Pool not wired: {policy.twap.pool} ({policy.asset})")

        self._last_round: Dict[str, int] = {}
        self._last_readings: Dict[str, OracleReading] = {}
        self._last_errors: Dict[str, Optional[OracleError]] = {}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def get_validated_prices(self) -> Dict[str, OracleReading]:
        """Validate every reference asset in configured order."""
        readings: Dict[str, OracleReading] = {}
        for asset in self.order:
            readings[asset] = await self.get_validated_price(asset, quotes=readings)
        return readings

    async def get_validated_price(
        self,
        asset: str,
        quotes: Optional[Dict[str, OracleReading]] = None,
    ) -> OracleReading:
        """
        Return a validated reading for asset.

        Raises the failure of the last feed tried when neither the primary
        nor the fallback feed passes validation.
        """
        policy = self.policies.get(asset)
        if policy is None:
            raise ValueError(f"Unknown reference asset: {asset}")

        now = self.clock.now()
        last_error: Optional[OracleError] = None

        for source, feed_id in self._candidates(policy):
            try:
                reading = await self._read_feed(policy, feed_id, source, now)
                await self._check_twap(policy, reading, quotes or {}, now)
            except OracleError as exc:
                logger.warning("⚠️ %s %s feed rejected: %s", asset, source.value, exc.message)
                last_error = exc
                continue

            self._last_round[feed_id] = reading.round_id
            self._last_readings[asset] = reading
            self._last_errors[asset] = None
            return reading

        self._last_errors[asset] = last_error
        raise last_error

    def _candidates(self, policy: OraclePolicy) -> List[Tuple[PriceSource, str]]:
        candidates = [(PriceSource.PRIMARY, policy.primary_feed)]
        if policy.fallback_feed:
            candidates.append((PriceSource.FALLBACK, policy.fallback_feed))
        return candidates

    async def _read_feed(
        self,
        policy: OraclePolicy,
        feed_id: str,
        source: PriceSource,
        now: int,
    ) -> OracleReading:
        feed = self.feeds[feed_id]
        try:
            rnd = await feed.latest_round_data()
        except Exception as exc:
            raise OracleStale(f"{feed_id}: feed unavailable ({exc})")

        if rnd.updated_at <= 0 or rnd.updated_at > now:
            raise OracleStale(f"{feed_id}: invalid updatedAt {rnd.updated_at}")
        if now - rnd.updated_at > policy.heartbeat_seconds:
            raise OracleStale(f"{feed_id}: {now - rnd.updated_at}s old > heartbeat {policy.heartbeat_seconds}s")
        if rnd.answered_in_round < rnd.round_id:
            raise OracleStale(f"{feed_id}: round {rnd.round_id} answered in {rnd.answered_in_round}")
        last_round = self._last_round.get(feed_id)
        if last_round is not None and rnd.round_id <= last_round:
            raise OracleStale(f"{feed_id}: round {rnd.round_id} not after {last_round}")

        price = Decimal(rnd.answer).scaleb(-int(getattr(feed, "decimals", 8))).quantize(PRICE_QUANTUM)
        if price <= 0 or price < policy.min_price or price > policy.max_price:
            raise OracleOutOfBounds(
                f"{feed_id}: price {price} outside [{policy.min_price}, {policy.max_price}]"
            )

        return OracleReading(
            asset=policy.asset,
            price=price,
            updated_at=rnd.updated_at,
            round_id=rnd.round_id,
            source=source,
        )

    async def _check_twap(
        self,
        policy: OraclePolicy,
        reading: OracleReading,
        quotes: Dict[str, OracleReading],
        now: int,
    ) -> None:
        twap = policy.twap
        if twap is None:
            return

        try:
            cumulatives = await self.pools[twap.pool].observe([twap.lookback_seconds, 0])
            tick = mean_tick(cumulatives, twap.lookback_seconds)
            reference = tick_to_price(tick, twap.token0_decimals, twap.token1_decimals, twap.invert)
        except Exception as exc:
            raise OracleDeviationExceeded(f"{twap.pool}: TWAP unavailable ({exc})")

        if twap.quote_asset:
            quote = quotes.get(twap.quote_asset) or self._fresh_reading(twap.quote_asset, now)
            if quote is None:
                raise OracleDeviationExceeded(f"{twap.pool}: no validated {twap.quote_asset} quote")
            reference = reference * quote.price

        deviation = deviation_bps(reading.price, reference)
        if deviation > twap.max_deviation_bps:
            raise OracleDeviationExceeded(
                f"{policy.asset}: oracle {reading.price} vs TWAP {reference:.2f} "
                f"deviates {deviation} bps > {twap.max_deviation_bps}"
            )

    # ------------------------------------------------------------------
    # Read helpers (status surface)
    # ------------------------------------------------------------------

    def _fresh_reading(self, asset: str, now: int) -> Optional[OracleReading]:
        reading = self._last_readings.get(asset)
        policy = self.policies.get(asset)
        if reading is None or policy is None:
            return None
        if now - reading.updated_at > policy.heartbeat_seconds:
            return None
        return reading

    def last_reading(self, asset: str) -> Optional[OracleReading]:
        return self._last_readings.get(asset)

    def last_error(self, asset: str) -> Optional[OracleError]:
        return self._last_errors.get(asset)

    def is_healthy(self, asset: str, now: int) -> bool:
        """Last validation succeeded and its reading is still usable."""
        if self._last_errors.get(asset) is not None:
            return False
        reading = self._fresh_reading(asset, now)
        if reading is None:
            return False
        policy = self.policies[asset]
        return policy.min_price <= reading.price <= policy.max_price
