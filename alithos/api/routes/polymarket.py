"""
Read-only proxies over the Polymarket Gamma and CLOB APIs.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...clients.http import UpstreamError
from ..deps import Services, get_services
from ..errors import BadRequest, NotFound

router = APIRouter(prefix="/api/polymarket", tags=["polymarket"])


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    """`all` or absent means no limit."""
    if raw is None or raw == "all":
        return None
    try:
        limit = int(raw)
    except ValueError:
        raise BadRequest("Invalid limit", details="limit must be a positive integer or 'all'")
    if limit < 1:
        raise BadRequest("Invalid limit", details="limit must be a positive integer or 'all'")
    return limit


@router.get("/markets")
async def list_markets(
    active: bool = True,
    closed: bool = False,
    limit: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    services: Services = Depends(get_services)
):
    return await services.gamma.fetch_markets(
        active=active,
        closed=closed,
        limit=_parse_limit(limit),
        tag=tag or category,
        search=search,
    )


@router.get("/market/{market_id}")
async def get_market(market_id: str, services: Services = Depends(get_services)):
    try:
        market = await services.gamma.get_market_raw(market_id)
    except UpstreamError as e:
        if e.status_code in (404, 422):
            raise NotFound("Market not found", details=e.details or None)
        raise
    if market is None:
        raise NotFound("Market not found")
    return market


@router.get("/clob/book")
async def get_order_book(
    token_id: Optional[str] = None,
    raw: bool = False,
    services: Services = Depends(get_services)
):
    if not token_id:
        raise BadRequest("token_id parameter is required")
    if raw:
        return await services.clob.get_book_raw(token_id)
    book = await services.clob.get_book(token_id)
    return book.to_dict()


@router.get("/clob/markets")
async def list_clob_markets(
    condition_id: Optional[str] = Query(default=None, alias="conditionId"),
    next_cursor: Optional[str] = None,
    active: bool = True,
    limit: int = Query(default=1000, ge=1),
    services: Services = Depends(get_services)
):
    if condition_id:
        return await services.clob.get_market(condition_id)
    return await services.clob.get_markets(next_cursor=next_cursor, active=active, limit=limit)
