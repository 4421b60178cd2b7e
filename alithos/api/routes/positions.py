"""
Wallet positions with P&L, and position history, from the Polymarket Data-API.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from ...storage import users as user_store
from ..deps import Services, get_optional_user_id, get_services, parse_iso
from ..errors import BadRequest
from ..schemas import ethereum_address

router = APIRouter(prefix="/api/positions", tags=["positions"])


def _checked_address(address: str) -> str:
    try:
        return ethereum_address(address)
    except ValueError as e:
        raise BadRequest("Invalid query parameters", details={"userAddress": [str(e)]})


@router.get("")
async def list_positions(
    user_address: Optional[str] = Query(default=None, alias="userAddress"),
    include_market: str = Query(default="true", alias="includeMarket"),
    services: Services = Depends(get_services)
):
    """Open positions of a wallet; unrealizedPnL is currentValue - costBasis."""
    if not user_address:
        raise BadRequest("Invalid query parameters", details={"userAddress": ["User address is required"]})

    positions = await services.data_api.get_positions(_checked_address(user_address))
    include = include_market != "false"
    return {"positions": [p.to_dict(include_market=include) for p in positions]}


@router.get("/history")
async def position_history(
    user_address: Optional[str] = Query(default=None, alias="userAddress"),
    market_id: Optional[str] = Query(default=None, alias="marketId"),
    outcome: Optional[Literal["YES", "NO"]] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    user_id: Optional[str] = Depends(get_optional_user_id),
    services: Services = Depends(get_services)
):
    """
    Position activity of a wallet, newest first. The wallet is userAddress,
    or the stored wallet of the identified user.
    """
    address = user_address
    if not address and user_id:
        user = await run_in_threadpool(user_store.get_user, user_id)
        address = user.get("wallet_address") if user else None
    if not address:
        raise BadRequest("Wallet address required")

    try:
        start = parse_iso(start_date)
        end = parse_iso(end_date)
    except ValueError as e:
        raise BadRequest("Invalid date range", details=str(e))

    history = await services.data_api.get_activity(
        _checked_address(address), limit=limit, offset=offset, market=market_id, start=start, end=end
    )
    if outcome:
        history = [h for h in history if h["outcome"] == outcome]

    return {"history": history, "total": len(history), "limit": limit, "offset": offset}
