"""
HTTP chain gateway adapters.

A gateway service exposes feeds, pools and the router as JSON endpoints;
these adapters translate them to the collaborator protocols. Errors are
raised to the caller, which decides whether they mean stale data or a
router failure.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from treasury.infrastructure.chain.types import FeedRound, SwapReceipt


class ChainGatewayClient:
    """Thin async HTTP wrapper; no treasury logic."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_sec: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_sec
        self._transport = transport
        self._logger = logging.getLogger(self.__class__.__name__)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            r = await client.get(url, params=params, headers=self._headers())
        if r.status_code != 200:
            self._logger.warning("GET non-200 %s: %s %s", url, r.status_code, r.text)
            r.raise_for_status()
        return r.json()

    async def post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            r = await client.post(url, json=payload, headers=self._headers())
        if r.status_code != 200:
            self._logger.warning("POST non-200 %s: %s %s", url, r.status_code, r.text)
            r.raise_for_status()
        return r.json()


class HttpPriceFeed:
    def __init__(self, client: ChainGatewayClient, feed_id: str, path: str, decimals: int = 8):
        self.client = client
        self.feed_id = feed_id
        self.path = path
        self.decimals = decimals

    async def latest_round_data(self) -> FeedRound:
        data = await self.client.get(self.path.format(feed_id=self.feed_id))
        return FeedRound(
            round_id=int(data["round_id"]),
            answer=int(data["answer"]),
            started_at=int(data.get("started_at", data["updated_at"])),
            updated_at=int(data["updated_at"]),
            answered_in_round=int(data.get("answered_in_round", data["round_id"])),
        )


class HttpTwapPool:
    def __init__(self, client: ChainGatewayClient, pool_id: str, path: str):
        self.client = client
        self.pool_id = pool_id
        self.path = path

    async def observe(self, seconds_agos: List[int]) -> List[int]:
        data = await self.client.get(
            self.path.format(pool_id=self.pool_id),
            params={"seconds_agos": ",".join(str(s) for s in seconds_agos)},
        )
        return [int(v) for v in data["tick_cumulatives"]]


class HttpSwapRouter:
    def __init__(
        self,
        client: ChainGatewayClient,
        router_id: str,
        amounts_out_path: str,
        swap_path: str,
    ):
        self.client = client
        self.router_id = router_id
        self.amounts_out_path = amounts_out_path
        self.swap_path = swap_path

    async def get_amounts_out(self, amount_in: Decimal, path: List[str]) -> List[Decimal]:
        data = await self.client.post(
            self.amounts_out_path.format(router_id=self.router_id),
            {"amount_in": str(amount_in), "path": path},
        )
        return [Decimal(str(v)) for v in data["amounts"]]

    async def swap(
        self,
        amount_in: Decimal,
        min_amount_out: Decimal,
        path: List[str],
        fee_bps: int,
    ) -> SwapReceipt:
        data = await self.client.post(
            self.swap_path.format(router_id=self.router_id),
            {
                "amount_in": str(amount_in),
                "min_amount_out": str(min_amount_out),
                "path": path,
                "fee_bps": fee_bps,
            },
        )
        return SwapReceipt(
            amounts=[Decimal(str(v)) for v in data["amounts"]],
            gas_cost=Decimal(str(data.get("gas_cost", "0"))),
            tx_hash=data.get("tx_hash", ""),
        )
