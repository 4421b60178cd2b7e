"""
Anomaly engine: runs every detector family over a batch of markets and
keeps the latest results per market for querying.
"""

from typing import Mapping, Optional, Sequence

from ..utils.logger import get_logger
from .config import AnomalyDetectionConfig, merge_config
from .detectors import (
    detect_cross_market_anomalies,
    detect_liquidity_anomalies,
    detect_participant_anomalies,
    detect_price_volatility_anomalies,
    detect_volume_flow_anomalies,
)
from .scoring import compute_heat_scores
from .types import (
    AnomalyDetectionResult,
    AnomalyEvent,
    AnomalyFilters,
    MarketHeatScore,
    MarketMetadata,
    OrderBookSnapshot,
    Trade,
)

logger = get_logger("anomaly")


class AnomalyEngine:
    """
    Stateful front for the pure detectors.

    Each `compute_market_anomalies` call replaces the cached anomalies and
    heat score of every market it produced results for; other markets keep
    their previous entries until `clear_cache`.
    """

    def __init__(self, config: Optional[AnomalyDetectionConfig] = None):
        self.config = config or merge_config()
        self._heat_scores: dict[str, MarketHeatScore] = {}
        self._anomalies: dict[str, list[AnomalyEvent]] = {}

    def compute_market_anomalies(
        self,
        trades_by_market: Mapping[str, Sequence[Trade]],
        now: float,
        window_ms: Optional[float] = None,
        snapshots_by_market: Optional[Mapping[str, Sequence[OrderBookSnapshot]]] = None,
        metadata_by_market: Optional[Mapping[str, MarketMetadata]] = None,
        config: Optional[AnomalyDetectionConfig] = None
    ) -> AnomalyDetectionResult:
        """
        Run all detectors for every market with trades.

        Args:
            trades_by_market: Trades keyed by market id
            now: Evaluation time in milliseconds
            window_ms: Detection window; defaults to the short window
            snapshots_by_market: Order book history, oldest first; the last
                entry is treated as the current book
            metadata_by_market: Event/series grouping and end dates
            config: Overrides the engine config for this call

        Returns:
            All anomalies found and the heat scores, hottest first
        """
        config = config or self.config
        window_ms = window_ms or config.windows.short
        snapshots_by_market = snapshots_by_market or {}
        metadata_by_market = metadata_by_market or {}

        all_trades = [t for trades in trades_by_market.values() for t in trades]
        anomalies: list[AnomalyEvent] = []

        for market_id, trades in trades_by_market.items():
            if not trades:
                continue

            anomalies.extend(detect_volume_flow_anomalies(market_id, window_ms, trades, now, config))
            anomalies.extend(detect_price_volatility_anomalies(market_id, window_ms, trades, now, config))
            anomalies.extend(detect_participant_anomalies(market_id, window_ms, trades, now, config))
            anomalies.extend(detect_cross_market_anomalies(
                market_id, window_ms, all_trades, now, list(anomalies), metadata_by_market, config
            ))

            snapshots = snapshots_by_market.get(market_id) or []
            if snapshots:
                anomalies.extend(detect_liquidity_anomalies(market_id, snapshots[-1], snapshots, config))

        by_market: dict[str, list[AnomalyEvent]] = {}
        for anomaly in anomalies:
            by_market.setdefault(anomaly.market_id, []).append(anomaly)

        heat_scores = compute_heat_scores(by_market, config, now)

        for heat in heat_scores:
            self._heat_scores[heat.market_id] = heat
        self._anomalies.update(by_market)

        logger.info(
            f"Anomaly pass complete: {len(anomalies)} anomalies across {len(by_market)} markets",
            extra={"markets": len(trades_by_market), "anomalies": len(anomalies)}
        )
        return AnomalyDetectionResult(anomalies=anomalies, heat_scores=heat_scores)

    def get_heat_score_for_market(self, market_id: str) -> Optional[MarketHeatScore]:
        return self._heat_scores.get(market_id)

    def get_anomalies_for_market(
        self,
        market_id: str,
        filters: Optional[AnomalyFilters] = None
    ) -> list[AnomalyEvent]:
        """Cached anomalies for one market, most recent first."""
        filters = filters or AnomalyFilters()
        if filters.market_ids and market_id not in filters.market_ids:
            return []

        anomalies = list(self._anomalies.get(market_id, []))
        if filters.since is not None:
            anomalies = [a for a in anomalies if a.timestamp >= filters.since]
        if filters.types:
            anomalies = [a for a in anomalies if a.type in filters.types]
        if filters.severity:
            anomalies = [a for a in anomalies if a.severity in filters.severity]

        anomalies.sort(key=lambda a: a.timestamp, reverse=True)
        return anomalies

    def query(self, filters: Optional[AnomalyFilters] = None) -> list[AnomalyEvent]:
        """Filtered anomalies across every cached market, most recent first."""
        filters = filters or AnomalyFilters()
        market_ids = filters.market_ids or list(self._anomalies)
        result = []
        for market_id in market_ids:
            result.extend(self.get_anomalies_for_market(market_id, filters))
        result.sort(key=lambda a: a.timestamp, reverse=True)
        return result

    def clear_cache(self) -> None:
        self._heat_scores.clear()
        self._anomalies.clear()

    def get_all_heat_scores(self) -> list[MarketHeatScore]:
        return sorted(self._heat_scores.values(), key=lambda h: h.score, reverse=True)

    def get_all_anomalies(self) -> list[AnomalyEvent]:
        return [a for anomalies in self._anomalies.values() for a in anomalies]
