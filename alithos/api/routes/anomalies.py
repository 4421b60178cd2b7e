"""
Anomaly detection over client-supplied or freshly fetched market activity.
"""
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from ...anomaly import (
    AnomalyDetectionResult,
    AnomalyFilters,
    AnomalyType,
    MarketMetadata,
    OrderBookSnapshot,
    Severity,
    Trade,
    get_severity_band,
    merge_config,
)
from ...utils.logger import get_logger
from ..deps import Services, camelize, get_services
from ..errors import BadRequest, NotFound
from ..schemas import ApiModel, ComputeAnomalies

logger = get_logger("api.anomalies")

router = APIRouter(prefix="/api/anomalies", tags=["anomalies"])

REFRESH_TRADE_LIMIT = 500


class RefreshAnomalies(ApiModel):
    market_ids: list[str] = Field(min_length=1, max_length=50)
    window_ms: Optional[float] = Field(default=None, gt=0)


def _csv(raw: Optional[str]) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def _group(items: list, key: str) -> dict[str, list]:
    grouped: dict[str, list] = {}
    for item in items:
        grouped.setdefault(getattr(item, key), []).append(item)
    return grouped


def serialize_result(result: AnomalyDetectionResult, services: Services) -> dict:
    config = services.anomaly_engine.config
    return {
        "anomalies": camelize([a.to_dict() for a in result.anomalies]),
        "heatScores": [
            {**camelize(h.to_dict()), "band": get_severity_band(h.score, config)}
            for h in result.heat_scores
        ],
    }


@router.post("/compute")
async def compute_anomalies(body: ComputeAnomalies, services: Services = Depends(get_services)):
    try:
        config = merge_config(body.config) if body.config else None
        trades = [Trade.from_dict(t) for t in body.trades]
        snapshots = [OrderBookSnapshot.from_dict(s) for s in body.snapshots]
        markets = [MarketMetadata.from_dict(m) for m in body.markets]
    except (KeyError, TypeError, ValueError) as e:
        raise BadRequest("Invalid anomaly input", details=str(e))

    trades_by_market = _group(trades, "market_id")
    for market in markets:
        trades_by_market.setdefault(market.id, [])

    snapshots_by_market = _group(snapshots, "market_id")
    for market_snapshots in snapshots_by_market.values():
        market_snapshots.sort(key=lambda s: s.timestamp)

    result = services.anomaly_engine.compute_market_anomalies(
        trades_by_market,
        now=body.now if body.now is not None else time.time() * 1000,
        window_ms=body.window_ms,
        snapshots_by_market=snapshots_by_market,
        metadata_by_market={m.id: m for m in markets},
        config=config,
    )
    return serialize_result(result, services)


@router.post("/refresh")
async def refresh_anomalies(body: RefreshAnomalies, services: Services = Depends(get_services)):
    """Fetch recent trades for the given markets and run detection on them."""
    trades_by_market = {}
    metadata = {}
    for market_id in body.market_ids:
        market = await services.gamma.get_market(market_id)
        if market is None:
            raise NotFound("Market not found", details=market_id)
        metadata[market.id] = market.to_metadata()
        trades_by_market[market.id] = await services.data_api.get_trades(
            market.condition_id or market.id,
            limit=REFRESH_TRADE_LIMIT,
            market_id=market.id,
        )

    result = services.anomaly_engine.compute_market_anomalies(
        trades_by_market,
        now=time.time() * 1000,
        window_ms=body.window_ms,
        metadata_by_market=metadata,
    )
    return serialize_result(result, services)


@router.get("")
async def list_anomalies(
    since: Optional[float] = None,
    types: Optional[str] = None,
    severity: Optional[str] = None,
    market_ids: Optional[str] = Query(default=None, alias="marketIds"),
    limit: int = Query(default=100, ge=1, le=1000),
    services: Services = Depends(get_services)
):
    try:
        filters = AnomalyFilters(
            since=since,
            types=[AnomalyType(t) for t in _csv(types)] or None,
            severity=[Severity(s) for s in _csv(severity)] or None,
            market_ids=_csv(market_ids) or None,
        )
    except ValueError as e:
        raise BadRequest("Invalid anomaly filter", details=str(e))

    anomalies = services.anomaly_engine.query(filters)
    return {
        "anomalies": camelize([a.to_dict() for a in anomalies[:limit]]),
        "total": len(anomalies),
    }


@router.get("/heat")
async def list_heat_scores(
    market_id: Optional[str] = Query(default=None, alias="marketId"),
    services: Services = Depends(get_services)
):
    engine = services.anomaly_engine
    if market_id:
        heat = engine.get_heat_score_for_market(market_id)
        scores = [heat] if heat else []
    else:
        scores = engine.get_all_heat_scores()
    return {
        "heatScores": [
            {**camelize(h.to_dict()), "band": get_severity_band(h.score, engine.config)}
            for h in scores
        ]
    }


@router.delete("")
async def clear_anomalies(services: Services = Depends(get_services)):
    services.anomaly_engine.clear_cache()
    return {"success": True}
