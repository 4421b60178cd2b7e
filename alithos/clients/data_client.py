"""
Polymarket Data-API client: public trade history, wallet positions and activity.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from .http import HttpClient
from ..anomaly.types import MS_CUTOFF, Trade
from ..utils.logger import get_logger

logger = get_logger("data_api")


def _parse_timestamp(raw: Any) -> float:
    """Seconds, milliseconds, digit strings or ISO strings to milliseconds."""
    if raw is None or raw == "":
        return 0.0
    if isinstance(raw, str):
        if "T" in raw or "-" in raw:
            try:
                return datetime.fromisoformat(raw.replace("Z", "+00:00")).timestamp() * 1000
            except ValueError:
                return 0.0
        try:
            raw = float(raw)
        except ValueError:
            return 0.0
    value = float(raw)
    return value * 1000 if value < MS_CUTOFF else value


def _parse_outcome(data: dict) -> str:
    index = data.get("outcomeIndex", data.get("outcomeTokenIndex"))
    if index is not None:
        return "YES" if str(index) == "0" else "NO"
    outcome = str(data.get("outcome") or "").upper()
    return "YES" if outcome in ("YES", "1") else "NO"


def parse_trade(data: dict, market_id: str) -> Optional[Trade]:
    """Normalise a Data-API trade; returns None when it has no usable timestamp."""
    timestamp = _parse_timestamp(data.get("timestamp") or data.get("created_at") or data.get("createdAt"))
    if timestamp <= 0:
        return None

    try:
        price = float(data.get("price") or data.get("outcomeTokenPrice") or 0.5)
    except (TypeError, ValueError):
        price = 0.5
    if 1 < price < 1e19:
        price /= 1e18  # wei-scaled
    price = max(0.0, min(1.0, price))

    try:
        size = float(data.get("size") or data.get("amount") or 0)
    except (TypeError, ValueError):
        size = 0.0
    # Data-API reports size in shares; notional is what the detectors use
    amount = size * price if "size" in data else size

    tx_hash = data.get("transactionHash") or data.get("txHash") or data.get("transaction_hash")
    return Trade(
        id=str(data.get("id") or tx_hash or f"{market_id}-{int(timestamp)}"),
        market_id=market_id,
        outcome=_parse_outcome(data),
        amount=amount,
        price=price,
        timestamp=timestamp,
        user=data.get("proxyWallet") or data.get("user") or data.get("maker") or None,
        transaction_hash=tx_hash,
    )


@dataclass
class Position:
    """A wallet's holding in one market outcome, valued in USDC."""
    market_id: str
    outcome: str
    amount: str
    cost_basis: float
    current_value: float
    realized_pnl: float = 0.0
    entry_price: Optional[float] = None
    current_price: Optional[float] = None
    question: Optional[str] = None
    slug: Optional[str] = None
    end_date: Optional[str] = None

    @property
    def unrealized_pnl(self) -> float:
        return self.current_value - self.cost_basis

    def to_dict(self, include_market: bool = True) -> dict:
        data = {
            "marketId": self.market_id,
            "outcome": self.outcome,
            "amount": self.amount,
            "costBasis": self.cost_basis,
            "currentValue": self.current_value,
            "realizedPnL": self.realized_pnl,
            "unrealizedPnL": self.unrealized_pnl,
        }
        if include_market:
            data["entryPrice"] = self.entry_price
            data["currentPrice"] = self.current_price
            if self.question:
                data["market"] = {"question": self.question, "slug": self.slug, "endDate": self.end_date}
        return data


def _float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_position(data: dict) -> Position:
    """
    Normalise a Data-API position. Cost basis and value fall back to
    size times the average and current prices when not reported.
    """
    size = _float(data.get("size"))
    avg_price = _float(data.get("avgPrice"), default=None)
    cur_price = _float(data.get("curPrice"), default=None)

    cost_basis = _float(data.get("initialValue"), default=None)
    if cost_basis is None:
        cost_basis = size * avg_price if avg_price is not None else 0.0
    current_value = _float(data.get("currentValue"), default=None)
    if current_value is None:
        current_value = size * cur_price if cur_price is not None else 0.0

    entry_price = avg_price
    if entry_price is None and size > 0:
        entry_price = cost_basis / size

    return Position(
        market_id=str(data.get("conditionId") or data.get("market") or data.get("asset") or ""),
        outcome=_parse_outcome(data),
        amount=str(data.get("size", "0")),
        cost_basis=cost_basis,
        current_value=current_value,
        realized_pnl=_float(data.get("realizedPnl")),
        entry_price=entry_price,
        current_price=cur_price,
        question=data.get("title"),
        slug=data.get("slug"),
        end_date=data.get("endDate"),
    )


def parse_activity(data: dict) -> dict:
    """Normalise a Data-API activity row into a position history entry."""
    timestamp = _parse_timestamp(data.get("timestamp"))
    return {
        "id": data.get("transactionHash") or f"{data.get('conditionId')}-{int(timestamp)}",
        "marketId": data.get("conditionId"),
        "outcome": _parse_outcome(data),
        "type": data.get("type") or "TRADE",
        "side": data.get("side"),
        "size": _float(data.get("size")),
        "price": _float(data.get("price"), default=None),
        "usdcSize": _float(data.get("usdcSize")),
        "timestamp": datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).isoformat() if timestamp else None,
        "transactionHash": data.get("transactionHash"),
        "market": {"question": data.get("title"), "slug": data.get("slug")},
    }


class DataApiClient(HttpClient):
    """Client for https://data-api.polymarket.com."""

    SERVICE = "Data API"
    BASE_URL = "https://data-api.polymarket.com"

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: float = 10.0):
        super().__init__(base_url or self.BASE_URL, timeout_seconds)

    async def get_trades_raw(self, market: str, limit: int = 1000) -> list[dict]:
        data = await self._request("/trades", params={"market": market, "limit": limit})
        if isinstance(data, dict):
            data = data.get("trades") or data.get("data") or []
        return data or []

    async def get_trades(
        self,
        market: str,
        limit: int = 1000,
        market_id: Optional[str] = None
    ) -> list[Trade]:
        """
        Trades for a market, oldest first.

        Args:
            market: Condition id as the Data-API expects it
            limit: Maximum trades
            market_id: Id to stamp on the trades; defaults to `market`
        """
        raw = await self.get_trades_raw(market, limit)
        trades = [t for t in (parse_trade(r, market_id or market) for r in raw) if t]
        trades.sort(key=lambda t: t.timestamp)
        logger.debug(f"Fetched {len(trades)} trades", extra={"market": market})
        return trades

    async def get_positions(self, user_address: str) -> list[Position]:
        """Open positions of a wallet."""
        data = await self._request("/positions", params={"user": user_address})
        if isinstance(data, dict):
            data = data.get("positions") or data.get("data") or []
        positions = [parse_position(p) for p in data or []]
        logger.debug(f"Fetched {len(positions)} positions", extra={"user": user_address})
        return positions

    async def get_activity(
        self,
        user_address: str,
        limit: int = 50,
        offset: int = 0,
        market: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> list[dict]:
        """
        Trade, split, merge and redeem activity of a wallet, newest first.

        Args:
            market: Condition id to restrict to
            start / end: Inclusive time bounds
        """
        params: dict[str, Any] = {"user": user_address, "limit": limit, "offset": offset}
        if market:
            params["market"] = market
        if start:
            params["start"] = int(start.timestamp())
        if end:
            params["end"] = int(end.timestamp())

        data = await self._request("/activity", params=params)
        if isinstance(data, dict):
            data = data.get("activity") or data.get("data") or []
        return [parse_activity(a) for a in data or []]
