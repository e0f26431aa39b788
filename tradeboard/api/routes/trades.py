"""
Trade API endpoints - record, settle, delete and list option trades.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from tradeboard.api.deps import CurrentUser, DbSession, LeaderboardCache, MarketData, Notifier
from tradeboard.schemas.common import ErrorResponse, MessageResponse, PaginatedResponse
from tradeboard.schemas.trading import (
    CreateTradeRequest,
    SettleTradeRequest,
    SettleTradeResponse,
    TradeFillResponse,
    TradeListParams,
    TradeResponse,
)
from tradeboard.services.trade_service import TradeService

router = APIRouter(prefix="/trades", tags=["trades"])


def _service(db, market_data, notifier, cache) -> TradeService:
    return TradeService(db, market_data=market_data, notifier=notifier, cache=cache)


@router.get("", response_model=PaginatedResponse[TradeResponse])
async def list_trades(
    db: DbSession,
    current_user: CurrentUser,
    market_data: MarketData,
    notifier: Notifier,
    cache: LeaderboardCache,
    params: Annotated[TradeListParams, Depends()],
):
    """
    List the caller's trades in the current company, newest first.
    Filter by status and search by ticker.
    """
    result = await _service(db, market_data, notifier, cache).list_trades(current_user, params)
    return PaginatedResponse[TradeResponse](
        items=[TradeResponse.model_validate(t) for t in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
        total_pages=result["total_pages"],
    )


@router.post(
    "",
    response_model=TradeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
async def create_trade(
    order: CreateTradeRequest,
    db: DbSession,
    current_user: CurrentUser,
    market_data: MarketData,
    notifier: Notifier,
    cache: LeaderboardCache,
):
    """
    Record a BUY order.

    A fill price outside the market band records the trade as REJECTED
    and responds 400 with the rejected trade.
    """
    created = await _service(db, market_data, notifier, cache).create_trade(current_user, order)

    if created.rejected:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "TradeRejected",
                "message": created.rejection_reason or "Fill price could not be verified",
                "details": {
                    "trade": TradeResponse.model_validate(created.trade).model_dump(mode="json"),
                },
            },
        )
    return TradeResponse.model_validate(created.trade)


@router.post("/settle", response_model=SettleTradeResponse)
async def settle_trade(
    request: SettleTradeRequest,
    db: DbSession,
    current_user: CurrentUser,
    market_data: MarketData,
    notifier: Notifier,
    cache: LeaderboardCache,
):
    """
    Sell contracts from an OPEN trade. The trade closes when no
    contracts remain.
    """
    settled = await _service(db, market_data, notifier, cache).settle_trade(current_user, request)
    closed = settled.trade.remaining_open_contracts == 0
    return SettleTradeResponse(
        message="Trade closed" if closed else "Trade partially settled",
        trade=TradeResponse.model_validate(settled.trade),
        fill=TradeFillResponse.model_validate(settled.fill),
    )


@router.delete("/{trade_id}", response_model=MessageResponse)
async def delete_trade(
    trade_id: uuid.UUID,
    db: DbSession,
    current_user: CurrentUser,
    market_data: MarketData,
    notifier: Notifier,
    cache: LeaderboardCache,
):
    """
    Delete an OPEN trade and its fills.
    """
    await _service(db, market_data, notifier, cache).delete_trade(current_user, trade_id)
    return MessageResponse(message="Trade deleted successfully")
