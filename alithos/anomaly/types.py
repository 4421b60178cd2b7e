"""
Data types for the anomaly detection engine.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..clients.clob_client import OrderBookLevel

# Timestamps below this are treated as seconds (2000-01-01 in ms)
MS_CUTOFF = 946684800000


def to_ms(timestamp: float) -> float:
    """Normalise a seconds-or-milliseconds timestamp to milliseconds."""
    return timestamp * 1000 if timestamp < MS_CUTOFF else timestamp


class AnomalyType(str, Enum):
    VOLUME_SPIKE = "volume-spike"
    FLOW_IMBALANCE = "flow-imbalance"
    PRICE_JUMP = "price-jump"
    VOLATILITY_SPIKE = "volatility-spike"
    BREAKOUT = "breakout"
    SPREAD_WIDENING = "spread-widening"
    SPREAD_TIGHTENING = "spread-tightening"
    DEPTH_CHANGE = "depth-change"
    SLIPPAGE_CHANGE = "slippage-change"
    WHALE_TRADE = "whale-trade"
    WALLET_CONCENTRATION = "wallet-concentration"
    NEW_WALLET_IMPACT = "new-wallet-impact"
    CROSS_MARKET_MISPRICING = "cross-market-mispricing"
    PRE_EXPIRY_ANOMALY = "pre-expiry-anomaly"
    COMPOSITE_EVENT = "composite-event"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


@dataclass
class Trade:
    """A single fill. `amount` is notional in USDC, `outcome` is YES or NO."""
    id: str
    market_id: str
    outcome: str
    amount: float
    price: float
    timestamp: float  # seconds or milliseconds
    user: Optional[str] = None
    transaction_hash: Optional[str] = None

    @property
    def timestamp_ms(self) -> float:
        return to_ms(self.timestamp)

    @classmethod
    def from_dict(cls, data: dict) -> "Trade":
        """Parse a trade, tolerating string amounts and camelCase keys."""
        try:
            amount = float(data.get("amount") or 0)
        except (TypeError, ValueError):
            amount = 0.0
        try:
            price = float(data.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0
        return cls(
            id=str(data.get("id", "")),
            market_id=str(data.get("marketId") or data.get("market_id") or ""),
            outcome=str(data.get("outcome", "")).upper(),
            amount=amount,
            price=price,
            timestamp=float(data.get("timestamp") or 0),
            user=data.get("user"),
            transaction_hash=data.get("transactionHash") or data.get("transaction_hash"),
        )


@dataclass
class OrderBookSnapshot:
    """Order book captured at a point in time (milliseconds)."""
    market_id: str
    timestamp: float
    bids: list[OrderBookLevel] = field(default_factory=list)
    asks: list[OrderBookLevel] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "OrderBookSnapshot":
        def levels(raw):
            return [OrderBookLevel(price=float(l["price"]), size=float(l["size"])) for l in raw or []]
        return cls(
            market_id=str(data.get("marketId") or data.get("market_id") or ""),
            timestamp=to_ms(float(data.get("timestamp") or 0)),
            bids=levels(data.get("bids")),
            asks=levels(data.get("asks")),
        )


@dataclass
class MarketMetadata:
    """Market fields the cross-market detectors need."""
    id: str
    question: str = ""
    event_id: Optional[str] = None
    series_id: Optional[str] = None
    end_date: Optional[datetime] = None
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "MarketMetadata":
        end_date = data.get("endDate") or data.get("end_date")
        if isinstance(end_date, str):
            try:
                end_date = datetime.fromisoformat(end_date.replace("Z", "+00:00"))
            except ValueError:
                end_date = None
        return cls(
            id=str(data.get("id", "")),
            question=data.get("question", ""),
            event_id=data.get("eventId") or data.get("event_id"),
            series_id=data.get("seriesId") or data.get("series_id"),
            end_date=end_date,
            category=data.get("category"),
        )


@dataclass
class AnomalyMeta:
    wallet: Optional[str] = None
    outcome_id: Optional[str] = None
    group_id: Optional[str] = None


@dataclass
class AnomalyEvent:
    """An anomaly detected in one market."""
    id: str
    market_id: str
    type: AnomalyType
    severity: Severity
    score: float  # 0-100
    timestamp: float  # milliseconds
    label: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    meta: Optional[AnomalyMeta] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        return data


@dataclass
class MarketHeatScore:
    """Composite 0-100 unusual activity score for a market."""
    market_id: str
    score: float
    components: dict[str, float]
    last_updated: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DistributionStats:
    mean: float
    std: float
    min: float
    max: float
    percentile90: float
    percentile99: float
    count: int


@dataclass
class ReturnStats(DistributionStats):
    volatility: float = 0.0


@dataclass
class AnomalyFilters:
    """Query options for cached anomalies."""
    since: Optional[float] = None
    types: Optional[list[AnomalyType]] = None
    severity: Optional[list[Severity]] = None
    market_ids: Optional[list[str]] = None


@dataclass
class AnomalyDetectionResult:
    anomalies: list[AnomalyEvent]
    heat_scores: list[MarketHeatScore]
