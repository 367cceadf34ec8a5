from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field

from loguru import logger
from pydantic import BaseModel

from gmgn_sniper.aggregators import gmgn
from gmgn_sniper.analytics.monitoring import MonitoringService
from gmgn_sniper.config import AppSettings
from gmgn_sniper.ratelimit import SequentialRateLimitedClient


class SwapQuote(BaseModel):
    inAmount: str | None = None
    outAmount: str | None = None
    priceImpact: float | None = None


class RawTx(BaseModel):
    swapTransaction: str


class SwapRouteData(BaseModel):
    raw_tx: RawTx
    quote: SwapQuote | None = None


class SwapRouteResponse(BaseModel):
    success: bool
    data: SwapRouteData | None = None
    message: str | None = None

    @property
    def swap_transaction(self) -> str | None:
        if self.success and self.data:
            return self.data.raw_tx.swapTransaction or None
        return None


class SubmitData(BaseModel):
    signature: str


class SubmitResponse(BaseModel):
    success: bool
    data: SubmitData | None = None
    message: str | None = None


class TokenInfo(BaseModel):
    liquidity: float = 0.0
    dev_wallet_percentage: float = 0.0
    market_cap: float = 0.0
    holders: int = 0
    is_safe: bool = False
    price: float = 0.0
    volume_24h: float = 0.0


class TokenInfoResponse(BaseModel):
    success: bool
    data: TokenInfo | None = None
    message: str | None = None
    # True when data is a placeholder because every upstream URL failed
    degraded: bool = False


def placeholder_token_info(mock: bool = False) -> TokenInfo:
    if not mock:
        return TokenInfo()
    return TokenInfo(
        liquidity=50 + random.random() * 200,
        dev_wallet_percentage=random.random() * 10,
        market_cap=random.random() * 1_000_000,
        holders=random.randint(0, 10_000),
        is_safe=random.random() > 0.3,
        price=random.random() * 0.001,
        volume_24h=random.random() * 100_000,
    )


@dataclass
class GMGNClient:
    host: str
    limiter: SequentialRateLimitedClient
    monitoring: MonitoringService = field(default_factory=MonitoringService)
    allow_mock_token_info: bool = False

    @classmethod
    def create(cls, settings: AppSettings, monitoring: MonitoringService | None = None) -> GMGNClient:
        limiter = SequentialRateLimitedClient(
            delay=settings.gmgn_rate_limit_delay_sec,
            timeout=settings.gmgn_request_timeout_sec,
            name="gmgn",
        )
        return cls(
            host=settings.gmgn_api_host,
            limiter=limiter,
            monitoring=monitoring or MonitoringService(),
            allow_mock_token_info=settings.allow_mock_token_info,
        )

    async def get_swap_route(
        self,
        token_in: str,
        token_out: str,
        in_amount: int,
        from_address: str,
        slippage: float = 0.5,
        priority_fee: float | None = None,
    ) -> SwapRouteResponse:
        async def op() -> SwapRouteResponse:
            self.monitoring.record("gmgn.api.request", endpoint="swap_route")
            data = await asyncio.to_thread(
                gmgn.get_swap_route,
                self.host,
                token_in,
                token_out,
                in_amount,
                from_address,
                slippage,
                priority_fee,
            )
            resp = SwapRouteResponse.model_validate(data)
            self.monitoring.record("gmgn.api.success", endpoint="swap_route")
            return resp

        try:
            return await self.limiter.enqueue(op, label="swap_route")
        except Exception as e:
            self.monitoring.record("gmgn.api.error", endpoint="swap_route")
            logger.error("Error fetching swap route for {}: {}", token_out, e)
            return SwapRouteResponse(success=False, message=str(e) or type(e).__name__)

    async def submit_transaction(self, signed_tx: str, priority_fee: float = 0.002) -> SubmitResponse:
        async def op() -> SubmitResponse:
            self.monitoring.record("gmgn.api.request", endpoint="submit_tx")
            data = await asyncio.to_thread(gmgn.submit_transaction, self.host, signed_tx, priority_fee)
            resp = SubmitResponse.model_validate(data)
            if resp.success:
                self.monitoring.record("gmgn.api.success", endpoint="submit_tx")
            else:
                self.monitoring.record("gmgn.api.error", endpoint="submit_tx")
            return resp

        try:
            return await self.limiter.enqueue(op, label="submit_tx")
        except Exception as e:
            self.monitoring.record("gmgn.api.error", endpoint="submit_tx")
            logger.error("Error submitting transaction: {}", e)
            return SubmitResponse(success=False, message=str(e) or type(e).__name__)

    def _token_info_budget(self) -> float:
        # Finish upstream calls before the queue gives up on the operation and moves on
        if self.limiter.timeout is None:
            return gmgn.TOKEN_INFO_BUDGET_SEC
        return min(gmgn.TOKEN_INFO_BUDGET_SEC, self.limiter.timeout * 0.8)

    async def get_token_info(self, token_address: str) -> TokenInfoResponse:
        async def op() -> dict | None:
            self.monitoring.record("gmgn.api.request", endpoint="token_info")
            return await asyncio.to_thread(
                gmgn.fetch_token_info, self.host, token_address, budget=self._token_info_budget()
            )

        try:
            info = await self.limiter.enqueue(op, label="token_info")
        except Exception as e:
            self.monitoring.record("gmgn.api.error", endpoint="token_info")
            logger.error("Error fetching token info for {}: {}", token_address, e)
            return TokenInfoResponse(success=False, message=str(e) or type(e).__name__)

        if info is None:
            self.monitoring.record("gmgn.api.degraded", endpoint="token_info")
            logger.warning(
                "All GMGN endpoints failed for token {}, returning placeholder data", token_address
            )
            return TokenInfoResponse(
                success=True,
                data=placeholder_token_info(mock=self.allow_mock_token_info),
                message="token info unavailable; placeholder data",
                degraded=True,
            )
        self.monitoring.record("gmgn.api.success", endpoint="token_info")
        return TokenInfoResponse(success=True, data=TokenInfo(**info))

    async def health(self) -> bool:
        return await asyncio.to_thread(gmgn.check_health, self.host)

    async def aclose(self) -> None:
        await self.limiter.aclose()
