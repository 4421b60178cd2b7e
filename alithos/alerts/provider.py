"""
Market data sources for alert evaluation.
"""

import time
from typing import Optional, Protocol

from ..clients.clob_client import ClobClient, OrderBook
from ..clients.data_client import DataApiClient
from ..clients.gamma_client import GammaClient, Market
from ..clients.http import UpstreamError
from ..utils.logger import get_logger

logger = get_logger("alerts.provider")

FLOW_TRADES = 20
FLOW_DECAY_MS = 60 * 60 * 1000


class MarketDataProvider(Protocol):
    """Market values an alert condition can be evaluated against."""

    async def get_price(self, market_id: str) -> Optional[float]:
        """YES price in percent (0-100)."""
        ...

    async def get_volume(self, market_id: str) -> Optional[float]:
        """24h volume in USDC."""
        ...

    async def get_depth(self, market_id: str) -> Optional[float]:
        """Total resting size on both sides of the YES book."""
        ...

    async def get_spread(self, market_id: str) -> Optional[float]:
        """Best ask minus best bid as a price fraction (0-1)."""
        ...

    async def get_flow(self, market_id: str) -> Optional[float]:
        """Recency-weighted notional of recent YES trades."""
        ...


class PolymarketDataProvider:
    """
    MarketDataProvider backed by the Gamma, CLOB and Data APIs.

    Upstream failures are logged and reported as missing values so a
    flaky API never aborts an alert sweep.
    """

    def __init__(
        self,
        gamma: GammaClient,
        clob: ClobClient,
        data_api: DataApiClient
    ):
        self.gamma = gamma
        self.clob = clob
        self.data_api = data_api

    async def _market(self, market_id: str) -> Optional[Market]:
        try:
            return await self.gamma.get_market(market_id)
        except UpstreamError as e:
            logger.warning(f"Market lookup failed: {e.message}", extra={"market_id": market_id})
            return None

    async def _yes_book(self, market_id: str) -> Optional[OrderBook]:
        market = await self._market(market_id)
        token = market.get_yes_token() if market else None
        if not token:
            return None
        try:
            return await self.clob.get_book(token.token_id)
        except UpstreamError as e:
            logger.warning(f"Order book fetch failed: {e.message}", extra={"market_id": market_id})
            return None

    async def get_price(self, market_id: str) -> Optional[float]:
        market = await self._market(market_id)
        token = market.get_yes_token() if market else None
        if not token:
            return None
        return token.price * 100

    async def get_volume(self, market_id: str) -> Optional[float]:
        market = await self._market(market_id)
        return market.volume_24hr if market else None

    async def get_depth(self, market_id: str) -> Optional[float]:
        book = await self._yes_book(market_id)
        if book is None:
            return None
        return sum(level.size for level in book.bids) + sum(level.size for level in book.asks)

    async def get_spread(self, market_id: str) -> Optional[float]:
        book = await self._yes_book(market_id)
        return book.spread if book else None

    async def get_flow(self, market_id: str) -> Optional[float]:
        market = await self._market(market_id)
        if not market:
            return None
        try:
            trades = await self.data_api.get_trades(
                market.condition_id or market_id, limit=100, market_id=market_id
            )
        except UpstreamError as e:
            logger.warning(f"Trade fetch failed: {e.message}", extra={"market_id": market_id})
            return None

        yes_trades = [t for t in trades if t.outcome == "YES"][-FLOW_TRADES:]
        now_ms = time.time() * 1000
        flow = 0.0
        for trade in yes_trades:
            age = max(0.0, now_ms - trade.timestamp_ms)
            flow += trade.amount * max(0.0, 1 - age / FLOW_DECAY_MS)
        return flow
