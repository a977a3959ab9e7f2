"""
Chain adapter factory (config-driven).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

from treasury.domain.services.config_engine import StrategyConfig
from treasury.infrastructure.chain.http_gateway import (
    ChainGatewayClient,
    HttpPriceFeed,
    HttpSwapRouter,
    HttpTwapPool,
)
from treasury.infrastructure.chain.paper import PaperPool, PaperPriceFeed, PaperRouter
from treasury.infrastructure.chain.types import PriceFeed, SwapRouter, TwapPool
from treasury.utils.clock import Clock


@dataclass
class ChainAdapters:
    feeds: Dict[str, PriceFeed]
    pools: Dict[str, TwapPool]
    router: SwapRouter
    balances: Dict[str, Decimal] = field(default_factory=dict)


def _required_ids(config: StrategyConfig):
    feed_ids = []
    pool_ids = []
    for policy in config.oracles:
        feed_ids.append(policy.primary_feed)
        if policy.fallback_feed:
            feed_ids.append(policy.fallback_feed)
        if policy.twap:
            pool_ids.append(policy.twap.pool)
    return feed_ids, pool_ids


def _build_paper(config: StrategyConfig, clock: Clock) -> ChainAdapters:
    paper_cfg = config.chain.get("paper", {})
    feeds_cfg = paper_cfg.get("feeds", {})
    pools_cfg = paper_cfg.get("pools", {})
    feed_ids, pool_ids = _required_ids(config)

    feeds: Dict[str, PriceFeed] = {}
    for feed_id in feed_ids:
        if feed_id not in feeds_cfg:
            raise ValueError(f"Paper feed not configured: {feed_id}")
        cfg = feeds_cfg[feed_id]
        feeds[feed_id] = PaperPriceFeed(Decimal(str(cfg["price"])), clock, int(cfg.get("decimals", 8)))

    pools: Dict[str, TwapPool] = {}
    for pool_id in pool_ids:
        if pool_id not in pools_cfg:
            raise ValueError(f"Paper pool not configured: {pool_id}")
        cfg = pools_cfg[pool_id]
        pools[pool_id] = PaperPool(
            Decimal(str(cfg["price"])),
            int(cfg["token0_decimals"]),
            int(cfg["token1_decimals"]),
            clock,
        )

    router_cfg = paper_cfg.get("routers", {}).get(config.swap.router, {})
    router = PaperRouter(
        rate=Decimal(str(router_cfg.get("rate", "1"))),
        gas_cost=Decimal(str(router_cfg.get("gas_cost", "0"))),
    )
    balances = {symbol: Decimal(str(v)) for symbol, v in paper_cfg.get("balances", {}).items()}
    return ChainAdapters(feeds=feeds, pools=pools, router=router, balances=balances)


def _build_http(
    config: StrategyConfig,
    gateway_url: Optional[str],
    api_key: Optional[str],
    timeout_sec: float,
) -> ChainAdapters:
    if not gateway_url:
        raise ValueError("CHAIN_GATEWAY_URL is required for the http chain provider")
    http_cfg = config.chain.get("http", {})
    client = ChainGatewayClient(gateway_url, api_key=api_key, timeout_sec=timeout_sec)
    feed_ids, pool_ids = _required_ids(config)
    decimals = int(http_cfg.get("feed_decimals", 8))

    feeds: Dict[str, PriceFeed] = {
        feed_id: HttpPriceFeed(client, feed_id, http_cfg["feed_path"], decimals) for feed_id in feed_ids
    }
    pools: Dict[str, TwapPool] = {
        pool_id: HttpTwapPool(client, pool_id, http_cfg["observe_path"]) for pool_id in pool_ids
    }
    router = HttpSwapRouter(
        client,
        config.swap.router,
        http_cfg["amounts_out_path"],
        http_cfg["swap_path"],
    )
    return ChainAdapters(feeds=feeds, pools=pools, router=router)


def build_chain_adapters(
    config: StrategyConfig,
    clock: Clock,
    provider: str = "paper",
    gateway_url: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout_sec: float = 10.0,
) -> ChainAdapters:
    name = (provider or "paper").lower()
    if name == "http":
        return _build_http(config, gateway_url, api_key, timeout_sec)
    if name == "paper":
        return _build_paper(config, clock)
    raise ValueError(f"Unknown chain provider: {provider}")
