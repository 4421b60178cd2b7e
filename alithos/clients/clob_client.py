"""
Public (unauthenticated) Polymarket CLOB API client.
Order books, markets and midpoints; no order placement.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .http import HttpClient
from ..utils.logger import get_logger

logger = get_logger("clob")


@dataclass
class OrderBookLevel:
    """Single level in the order book."""
    price: float
    size: float


@dataclass
class OrderBook:
    """Order book state for a token, best levels first."""
    asset_id: str
    market_id: str = ""
    bids: list[OrderBookLevel] = field(default_factory=list)
    asks: list[OrderBookLevel] = field(default_factory=list)
    timestamp: float = 0.0

    @property
    def best_bid(self) -> Optional[float]:
        """Get best bid price."""
        if self.bids:
            return max(level.price for level in self.bids)
        return None

    @property
    def best_ask(self) -> Optional[float]:
        """Get best ask price."""
        if self.asks:
            return min(level.price for level in self.asks)
        return None

    @property
    def spread(self) -> Optional[float]:
        """Get bid-ask spread."""
        if self.best_bid is not None and self.best_ask is not None:
            return self.best_ask - self.best_bid
        return None

    @property
    def mid_price(self) -> Optional[float]:
        if self.best_bid is not None and self.best_ask is not None:
            return (self.best_bid + self.best_ask) / 2
        return self.best_bid if self.best_bid is not None else self.best_ask

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "market": self.market_id,
            "bids": [{"price": l.price, "size": l.size} for l in self.bids],
            "asks": [{"price": l.price, "size": l.size} for l in self.asks],
            "timestamp": self.timestamp,
        }


def parse_levels(raw: list[Any], descending: bool) -> list[OrderBookLevel]:
    """Parse string or numeric price levels and sort best first."""
    levels = []
    for entry in raw or []:
        try:
            price = float(entry["price"])
            size = float(entry["size"])
        except (KeyError, TypeError, ValueError):
            continue
        if size > 0:
            levels.append(OrderBookLevel(price=price, size=size))
    levels.sort(key=lambda l: l.price, reverse=descending)
    return levels


def parse_order_book(data: dict) -> OrderBook:
    """Parse a CLOB /book response."""
    timestamp = data.get("timestamp") or 0
    try:
        timestamp = float(timestamp)
    except (TypeError, ValueError):
        timestamp = 0.0
    return OrderBook(
        asset_id=str(data.get("asset_id", "")),
        market_id=str(data.get("market", "")),
        bids=parse_levels(data.get("bids", []), descending=True),
        asks=parse_levels(data.get("asks", []), descending=False),
        timestamp=timestamp,
    )


class ClobClient(HttpClient):
    """Client for the public Polymarket CLOB endpoints."""

    SERVICE = "CLOB API"
    BASE_URL = "https://clob.polymarket.com"

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: float = 10.0):
        super().__init__(base_url or self.BASE_URL, timeout_seconds)

    async def get_book_raw(self, token_id: str) -> dict:
        """Raw order book as returned upstream."""
        return await self._request("/book", params={"token_id": token_id})

    async def get_book(self, token_id: str) -> OrderBook:
        """
        Get the order book for an outcome token.

        Args:
            token_id: CLOB token ID

        Returns:
            OrderBook with bids descending and asks ascending
        """
        data = await self.get_book_raw(token_id)
        book = parse_order_book(data)
        if not book.asset_id:
            book.asset_id = token_id
        return book

    async def get_markets(
        self,
        next_cursor: Optional[str] = None,
        active: bool = True,
        limit: int = 1000
    ) -> Any:
        """List CLOB markets (cursor-paginated upstream)."""
        return await self._request(
            "/markets",
            params={"next_cursor": next_cursor, "active": active, "limit": limit},
            timeout_seconds=15,
        )

    async def get_market(self, condition_id: str) -> dict:
        return await self._request(f"/markets/{condition_id}")

    async def get_midpoint(self, token_id: str) -> Optional[float]:
        """Midpoint price for a token, or None if the book is empty."""
        data = await self._request("/midpoint", params={"token_id": token_id})
        mid = data.get("mid") if isinstance(data, dict) else None
        try:
            return float(mid) if mid is not None else None
        except (TypeError, ValueError):
            return None
