"""
Gamma API client for Polymarket market metadata.
Fetches events and markets; event and series ids are attached to each
market so related markets can be grouped.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .http import HttpClient, UpstreamError
from ..anomaly.types import MarketMetadata
from ..utils.logger import get_logger

logger = get_logger("gamma")

MAX_EVENTS = 10000


@dataclass
class Token:
    """Token (outcome) information."""
    token_id: str
    outcome: str  # "Yes" or "No" or custom outcome name
    price: float = 0.0


@dataclass
class Market:
    """Market information."""
    id: str
    condition_id: str
    question: str
    tokens: list[Token] = field(default_factory=list)
    active: bool = True
    closed: bool = False
    end_date: Optional[datetime] = None
    volume_24hr: float = 0.0
    event_id: Optional[str] = None
    series_id: Optional[str] = None
    category: Optional[str] = None

    def get_yes_token(self) -> Optional[Token]:
        """Get the YES token for binary markets."""
        for token in self.tokens:
            if token.outcome.lower() == "yes":
                return token
        return self.tokens[0] if self.tokens else None

    def get_no_token(self) -> Optional[Token]:
        """Get the NO token for binary markets."""
        for token in self.tokens:
            if token.outcome.lower() == "no":
                return token
        return self.tokens[1] if len(self.tokens) > 1 else None

    def to_metadata(self) -> MarketMetadata:
        return MarketMetadata(
            id=self.id,
            question=self.question,
            event_id=self.event_id,
            series_id=self.series_id,
            end_date=self.end_date,
            category=self.category,
        )


def parse_list_field(raw: Any) -> list[str]:
    """Gamma encodes list fields as JSON arrays, JSON strings or comma-separated text."""
    if isinstance(raw, list):
        return [str(v) for v in raw]
    if not raw:
        return []
    raw = str(raw)
    if raw.startswith("["):
        try:
            return [str(v) for v in json.loads(raw)]
        except json.JSONDecodeError:
            pass
    return raw.split(",")


def parse_market(data: dict) -> Market:
    """Parse market from API response."""
    token_ids = parse_list_field(data.get("clobTokenIds"))
    outcomes = parse_list_field(data.get("outcomes"))
    prices = parse_list_field(data.get("outcomePrices"))

    tokens = []
    for i, token_id in enumerate(token_ids):
        token_id = token_id.strip()
        if not token_id:
            continue
        outcome = outcomes[i].strip() if i < len(outcomes) else f"Outcome {i}"
        try:
            price = float(prices[i].strip()) if i < len(prices) else 0.0
        except ValueError:
            price = 0.0
        tokens.append(Token(token_id=token_id, outcome=outcome, price=price))

    end_date = None
    if data.get("endDate"):
        try:
            end_date = datetime.fromisoformat(str(data["endDate"]).replace("Z", "+00:00"))
        except ValueError:
            pass

    try:
        volume = float(data.get("volume24hr") or 0)
    except (TypeError, ValueError):
        volume = 0.0

    return Market(
        id=str(data.get("id", "")),
        condition_id=data.get("conditionId", ""),
        question=data.get("question", ""),
        tokens=tokens,
        active=data.get("active", True),
        closed=data.get("closed", False),
        end_date=end_date,
        volume_24hr=volume,
        event_id=data.get("eventId"),
        series_id=data.get("seriesId"),
        category=data.get("category"),
    )


def _tag_matches(tag: dict, wanted: str) -> bool:
    slug = str((tag or {}).get("slug") or "").lower()
    return bool(slug) and (slug == wanted or wanted in slug or slug in wanted)


def flatten_event_markets(events: list[dict], tag: Optional[str] = None) -> list[dict]:
    """
    Expand events into their markets, attaching event and series info.

    With `tag`, only events carrying a matching tag slug are kept and the
    matched slug becomes the market category.
    """
    wanted = tag.lower() if tag else None
    markets = []
    for event in events:
        category = None
        if wanted:
            match = next((t for t in event.get("tags") or [] if _tag_matches(t, wanted)), None)
            if match is None:
                continue
            category = match.get("slug") or tag

        series = event.get("series") or []
        series = series[0] if isinstance(series, list) and series else {}
        series_id = series.get("id") or event.get("seriesId")
        event_image = event.get("imageUrl") or event.get("image") or event.get("icon")

        for market in event.get("markets") or []:
            enriched = dict(market)
            enriched["imageUrl"] = market.get("imageUrl") or market.get("image") or event_image
            enriched["eventId"] = str(event["id"]) if event.get("id") is not None else None
            enriched["eventTitle"] = event.get("title")
            enriched["seriesId"] = str(series_id) if series_id is not None else None
            enriched["seriesTitle"] = series.get("title")
            if category:
                enriched["category"] = category
            markets.append(enriched)
    return markets


class GammaClient(HttpClient):
    """
    Client for Polymarket Gamma API.

    The Gamma API provides event and market metadata without
    requiring authentication.
    """

    SERVICE = "Gamma API"
    BASE_URL = "https://gamma-api.polymarket.com"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        cache_ttl_seconds: int = 300
    ):
        super().__init__(base_url or self.BASE_URL, timeout_seconds)
        self.cache_ttl_seconds = cache_ttl_seconds
        self._markets_cache: dict[str, tuple[float, dict]] = {}

    async def fetch_events(
        self,
        active: bool = True,
        closed: bool = False,
        limit: int = 100,
        offset: int = 0
    ) -> list[dict]:
        data = await self._request(
            "/events",
            params={"active": active, "closed": closed, "limit": limit, "offset": offset},
        )
        return data if isinstance(data, list) else []

    async def fetch_markets(
        self,
        active: bool = True,
        closed: bool = False,
        limit: Optional[int] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None
    ) -> list[dict]:
        """
        Fetch markets through the events endpoint so event and series ids
        come along.

        Args:
            active: Only active markets
            closed: Include closed markets
            limit: Maximum markets returned; None for all
            tag: Event tag slug filter (category)
            search: Case-insensitive substring filter on the question

        Returns:
            Raw market dicts enriched with eventId/seriesId
        """
        events_limit = MAX_EVENTS if limit is None else min(limit * 4, MAX_EVENTS)
        events = await self.fetch_events(active, closed, events_limit)
        markets = flatten_event_markets(events, tag)

        if search:
            needle = search.lower()
            markets = [m for m in markets if needle in str(m.get("question", "")).lower()]

        if limit is not None:
            markets = markets[:limit]

        now = time.time()
        for market in markets:
            if market.get("id") is not None:
                self._markets_cache[str(market["id"])] = (now, market)

        logger.info(f"Fetched {len(events)} events, returning {len(markets)} markets")
        return markets

    async def get_market_raw(self, market_id: str) -> Optional[dict]:
        """
        Get a market by numeric id, slug or condition id.

        Returns:
            Raw market dict, or None when a condition id cannot be found
        """
        cached = self._markets_cache.get(market_id)
        if cached and time.time() - cached[0] < self.cache_ttl_seconds:
            return cached[1]

        if market_id.startswith("0x") and len(market_id) > 20:
            data = await self._request("/markets", params={"conditionId": market_id})
            if isinstance(data, list):
                data = next(
                    (m for m in data if str(m.get("conditionId", "")).lower() == market_id.lower()),
                    None,
                )
        else:
            data = await self._request(f"/markets/{market_id}")

        if data:
            self._markets_cache[market_id] = (time.time(), data)
        return data or None

    async def get_market(self, market_id: str) -> Optional[Market]:
        try:
            data = await self.get_market_raw(market_id)
        except UpstreamError as e:
            if e.status_code in (404, 422):
                return None
            raise
        return parse_market(data) if data else None

    def clear_cache(self) -> None:
        self._markets_cache.clear()
