"""
Trade Service - records, settles, deletes and lists option trades.

Settlement and deletion are guarded by conditional statements so that
concurrent requests can never oversell a trade or delete one that was
settled in the meantime.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.config import Settings, get_settings
from tradeboard.core.cache import InMemoryCache, leaderboard_cache
from tradeboard.core.exceptions import ExternalServiceError, NotFoundError, StateError, ValidationError
from tradeboard.core.logging_service import log_trade_event
from tradeboard.db.crud import ActivityLogCRUD, TradeCRUD, TradeFillCRUD
from tradeboard.models.trade import Trade, TradeSide, TradeStatus
from tradeboard.models.trade_fill import TradeFill
from tradeboard.models.user import User
from tradeboard.schemas.trading import CreateTradeRequest, SettleTradeRequest, TradeListParams
from tradeboard.services.authorization import require_trade_manager
from tradeboard.services.lifecycle import check_fill, ensure_deletable, open_trade, settle_totals
from tradeboard.services.market_data import MarketDataClient
from tradeboard.services.market_hours import ensure_market_open
from tradeboard.services.notifier import TradeNotifier, get_notifier
from tradeboard.services.pricing import FixedPriceBandPolicy, PriceQuote, get_pricing_policy

logger = logging.getLogger(__name__)


@dataclass
class CreatedTrade:
    """A newly recorded trade and, if it was REJECTED, why."""
    trade: Trade
    rejection_reason: str | None = None

    @property
    def rejected(self) -> bool:
        return self.trade.status == TradeStatus.REJECTED.value


@dataclass
class SettledTrade:
    """A trade after a SELL fill, with the fill that was recorded."""
    trade: Trade
    fill: TradeFill


def _trade_details(trade: Trade, **extra: Any) -> dict[str, Any]:
    """JSON-safe summary of a trade for the activity log."""
    details = {
        "trade_id": str(trade.id),
        "ticker": trade.ticker,
        "strike": str(trade.strike),
        "option_type": trade.option_type,
        "expiry_date": trade.expiry_date.isoformat(),
        "contracts": trade.contracts,
        "fill_price": str(trade.fill_price),
    }
    for key, value in extra.items():
        if value is None or isinstance(value, (int, bool, str)):
            details[key] = value
        else:
            details[key] = str(value)
    return details


class TradeService:
    """
    Orchestrates the trade lifecycle for one request.

    Collaborators:
    - market data client, through the fill pricing policy
    - notifier (never fails the request)
    - activity log
    - leaderboard cache, cleared after every mutation
    """

    def __init__(
        self,
        db: AsyncSession,
        market_data: MarketDataClient | None = None,
        notifier: TradeNotifier | None = None,
        cache: InMemoryCache | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.market_data = market_data or MarketDataClient()
        self.notifier = notifier or get_notifier()
        self.cache = cache if cache is not None else leaderboard_cache

    def _check_preconditions(self, user: User) -> None:
        require_trade_manager(user)
        if not user.company_id:
            raise ValidationError("Company ID is required")
        if self.settings.enforce_market_hours:
            ensure_market_open()

    async def _get_owned_trade(self, user: User, trade_id: uuid.UUID) -> Trade:
        trade = await TradeCRUD.get_owned(self.db, trade_id, user.id, user.company_id)
        if trade is None:
            raise NotFoundError("Trade not found", details={"trade_id": str(trade_id)})
        return trade

    async def create_trade(self, user: User, order: CreateTradeRequest) -> CreatedTrade:
        """
        Record a BUY order.

        The entry price is checked against the market band. A price outside
        the band, or market data that cannot be read, records the trade as
        REJECTED instead of failing the request.

        Args:
            user: Trade owner
            order: Validated order

        Returns:
            CreatedTrade with the OPEN or REJECTED trade
        """
        self._check_preconditions(user)

        policy = FixedPriceBandPolicy(self.market_data, self.settings.price_band_pct)
        try:
            quote = await policy.quote(order, order.fill_price)
        except ExternalServiceError as e:
            logger.warning(f"Price verification unavailable for {order.ticker}: {e.message}")
            quote = PriceQuote(valid=False, fill_price=order.fill_price, error=e.message)

        trade = open_trade(order, quote, user.id, user.company_id)
        await TradeCRUD.create(self.db, trade)

        if trade.status == TradeStatus.OPEN.value:
            await TradeFillCRUD.create(
                self.db,
                trade_id=trade.id,
                company_id=trade.company_id,
                side=TradeSide.BUY.value,
                contracts=trade.contracts,
                fill_price=trade.fill_price,
                price_verified=True,
                ref_price=quote.reference_price,
                ref_timestamp=quote.reference_timestamp,
            )
        await self.db.commit()

        if trade.status == TradeStatus.OPEN.value:
            action = "trade_created"
            details = _trade_details(trade, ref_price=quote.reference_price)
        else:
            action = "trade_rejected"
            details = _trade_details(trade, ref_price=quote.reference_price, reason=quote.error)

        await ActivityLogCRUD.create(self.db, user.id, action, details)
        log_trade_event(action, str(trade.id), user_id=str(user.id), company_id=user.company_id)

        await self.cache.clear()
        await self.notifier.notify_trade_created(user, trade, quote.error)

        trade = await TradeCRUD.get_with_fills(self.db, trade.id)
        return CreatedTrade(trade=trade, rejection_reason=None if quote.valid else quote.error)

    async def settle_trade(self, user: User, request: SettleTradeRequest) -> SettledTrade:
        """
        Apply a SELL fill to an OPEN trade.

        Check order: trade exists, is OPEN, has enough contracts, then the
        fill price. The decrement itself is a compare-and-decrement in the
        same transaction as the fill insert, so concurrent settlements of
        the last contracts cannot both succeed.

        Raises:
            NotFoundError: No such trade for this user and company
            StateError: Trade is not OPEN
            ValidationError: Contracts exceed remaining, or price outside band
            ExternalServiceError: Market data unavailable
        """
        self._check_preconditions(user)
        trade_id = request.trade_id

        trade = await self._get_owned_trade(user, trade_id)
        check_fill(trade, request.contracts)

        policy = get_pricing_policy(self.settings, self.market_data, request.market_order)
        quote = await policy.quote(trade, request.fill_price)

        if not quote.valid:
            await ActivityLogCRUD.create(
                self.db,
                user.id,
                "trade_settle_rejected",
                _trade_details(
                    trade,
                    sell_contracts=request.contracts,
                    sell_price=quote.fill_price,
                    ref_price=quote.reference_price,
                    reason=quote.error,
                ),
            )
            log_trade_event("trade_settle_rejected", str(trade_id), reason=quote.error)
            raise ValidationError(
                quote.error,
                details={
                    "fill_price": str(quote.fill_price),
                    "reference_price": str(quote.reference_price),
                }
            )

        now = datetime.now(timezone.utc)
        try:
            updated = await TradeCRUD.decrement_remaining(self.db, trade_id, request.contracts)
            if updated != 1:
                await self.db.rollback()
                current = await TradeCRUD.get_with_fills(self.db, trade_id)
                if current is None:
                    raise NotFoundError("Trade not found", details={"trade_id": str(trade_id)})
                check_fill(current, request.contracts)
                raise StateError("Trade was modified concurrently, please retry")

            await self.db.refresh(trade)
            fill = await TradeFillCRUD.create(
                self.db,
                trade_id=trade_id,
                company_id=trade.company_id,
                side=TradeSide.SELL.value,
                contracts=request.contracts,
                fill_price=quote.fill_price,
                price_verified=True,
                ref_price=quote.reference_price,
                ref_timestamp=quote.reference_timestamp,
            )
            fills = await TradeFillCRUD.get_for_trade(self.db, trade_id)
            settle_totals(trade, fills, now)
            await self.db.commit()
        except (NotFoundError, StateError, ValidationError):
            raise
        except Exception:
            await self.db.rollback()
            logger.exception(f"Settlement of trade {trade_id} failed")
            raise

        await ActivityLogCRUD.create(
            self.db,
            user.id,
            "trade_settled",
            _trade_details(
                trade,
                sell_contracts=fill.contracts,
                sell_price=fill.fill_price,
                remaining=trade.remaining_open_contracts,
                status=trade.status,
                net_pnl=trade.net_pnl,
            ),
        )
        log_trade_event(
            "trade_settled",
            str(trade_id),
            contracts=fill.contracts,
            remaining=trade.remaining_open_contracts,
            status=trade.status,
        )

        await self.cache.clear()
        await self.notifier.notify_trade_settled(user, trade, fill)

        trade = await TradeCRUD.get_with_fills(self.db, trade_id)
        return SettledTrade(trade=trade, fill=fill)

    async def delete_trade(self, user: User, trade_id: uuid.UUID) -> None:
        """
        Delete an OPEN trade together with its fills.

        Raises:
            NotFoundError: No such trade for this user and company
            StateError: Trade is CLOSED or REJECTED
        """
        require_trade_manager(user)

        trade = await self._get_owned_trade(user, trade_id)
        ensure_deletable(trade)
        details = _trade_details(trade)

        await TradeFillCRUD.delete_for_trade(self.db, trade_id)
        deleted = await TradeCRUD.delete_open(self.db, trade_id)
        if deleted != 1:
            await self.db.rollback()
            current = await TradeCRUD.get_by_id(self.db, trade_id)
            if current is None:
                raise NotFoundError("Trade not found", details={"trade_id": str(trade_id)})
            ensure_deletable(current)
            raise StateError("Trade was modified concurrently, please retry")
        await self.db.commit()
        self.db.expunge(trade)

        await ActivityLogCRUD.create(self.db, user.id, "trade_deleted", details)
        log_trade_event("trade_deleted", str(trade_id), user_id=str(user.id))

        await self.cache.clear()
        await self.notifier.notify_trade_deleted(user, trade)

    async def list_trades(self, user: User, params: TradeListParams) -> dict[str, Any]:
        """
        The user's trades in the current company, newest first.

        Returns:
            Dict with items, total, page, page_size and total_pages
        """
        status = params.status.value if params.status else None
        trades, total = await TradeCRUD.list_for_user(
            self.db,
            user.id,
            user.company_id,
            page=params.page,
            page_size=params.page_size,
            status=status,
            search=params.search,
        )
        return {
            "items": trades,
            "total": total,
            "page": params.page,
            "page_size": params.page_size,
            "total_pages": max(1, math.ceil(total / params.page_size)),
        }
