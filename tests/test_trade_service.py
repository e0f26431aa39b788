"""
Tests for TradeService: recording, settling, deleting and listing trades.
"""

import uuid
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from tradeboard.core.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    StateError,
    ValidationError,
)
from tradeboard.db.crud import ActivityLogCRUD, TradeCRUD, TradeFillCRUD
from tradeboard.models.trade import TradeOutcome, TradeSide, TradeStatus
from tradeboard.models.user import Role
from tradeboard.schemas.trading import CreateTradeRequest, SettleTradeRequest, TradeListParams
from tradeboard.services.trade_service import TradeService


def order(contracts: int = 3, fill_price: str = "2.00", ticker: str = "AAPL") -> CreateTradeRequest:
    return CreateTradeRequest(
        ticker=ticker,
        strike=Decimal("150"),
        option_type="C",
        expiry_date="12/19/2025",
        contracts=contracts,
        fill_price=Decimal(fill_price),
    )


def settle(trade_id, contracts: int, fill_price: str | None = None, market_order: bool = False):
    return SettleTradeRequest(
        trade_id=trade_id,
        contracts=contracts,
        fill_price=Decimal(fill_price) if fill_price else None,
        market_order=market_order,
    )


@pytest.fixture
def service(db_session, market_data, notifier, cache, settings):
    return TradeService(db_session, market_data=market_data, notifier=notifier, cache=cache,
                        settings=settings)


@pytest.fixture
async def owner(make_user):
    return await make_user("owner_1", role=Role.COMPANY_OWNER.value)


# =============================================================================
# Create
# =============================================================================

class TestCreateTrade:
    """Tests for recording BUY orders."""

    @pytest.mark.asyncio
    async def test_price_in_band_opens_trade(self, service, owner, db_session):
        """Market $2.00, fill $2.05: OPEN with a BUY entry fill."""
        created = await service.create_trade(owner, order(3, "2.05"))
        trade = created.trade

        assert not created.rejected
        assert trade.status == TradeStatus.OPEN.value
        assert trade.price_verified is True
        assert trade.remaining_open_contracts == 3
        assert trade.total_buy_notional == Decimal("615")
        assert trade.ref_price == Decimal("2.00")
        assert trade.option_contract == "O:AAPL251219C00150000"
        assert trade.expiry_date == date(2025, 12, 19)

        assert len(trade.fills) == 1
        assert trade.fills[0].side == TradeSide.BUY.value
        assert trade.fills[0].notional == Decimal("615")

    @pytest.mark.asyncio
    async def test_side_effects_after_create(self, service, owner, db_session, notifier, cache):
        """Activity is logged, the leaderboard cache is cleared and the notifier is called."""
        await cache.set("leaderboard:range=all", ["stale"])

        created = await service.create_trade(owner, order())

        logs = await ActivityLogCRUD.get_recent(db_session, owner.id, action="trade_created")
        assert len(logs) == 1
        assert logs[0].details["trade_id"] == str(created.trade.id)
        assert await cache.get("leaderboard:range=all") is None
        notifier.notify_trade_created.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_price_outside_band_rejects(self, service, owner, db_session):
        """Fill $2.50 vs market $2.00 is REJECTED with no ledger entry."""
        created = await service.create_trade(owner, order(3, "2.50"))
        trade = created.trade

        assert created.rejected
        assert "outside allowed 5% range" in created.rejection_reason
        assert trade.status == TradeStatus.REJECTED.value
        assert trade.price_verified is False
        assert trade.remaining_open_contracts == 3
        assert trade.total_buy_notional == Decimal("0")
        assert trade.fills == []

        logs = await ActivityLogCRUD.get_recent(db_session, owner.id, action="trade_rejected")
        assert len(logs) == 1

    @pytest.mark.asyncio
    async def test_market_data_outage_rejects(self, service, owner, market_data):
        market_data.error = ExternalServiceError("Market data unavailable")

        created = await service.create_trade(owner, order())

        assert created.rejected
        assert created.rejection_reason == "Market data unavailable"

    @pytest.mark.asyncio
    async def test_members_cannot_trade(self, service, make_user):
        member = await make_user("member_1", role=Role.MEMBER.value)
        with pytest.raises(AuthorizationError):
            await service.create_trade(member, order())

    @pytest.mark.asyncio
    async def test_company_required(self, service, make_user):
        user = await make_user("owner_x", company_id=None)
        with pytest.raises(ValidationError):
            await service.create_trade(user, order())

    @pytest.mark.asyncio
    async def test_market_hours_enforced_when_enabled(self, service, owner):
        service.settings.enforce_market_hours = True
        with patch("tradeboard.services.trade_service.ensure_market_open",
                   side_effect=ValidationError("closed")):
            with pytest.raises(ValidationError):
                await service.create_trade(owner, order())


# =============================================================================
# Settle
# =============================================================================

class TestSettleTrade:
    """Tests for SELL fills."""

    @pytest.mark.asyncio
    async def test_partial_then_full_settlement(self, service, owner, market_data, notifier):
        """Buy 3 @ $2.00, sell 2 @ $3.00, then 1 @ $1.00: +$100 WIN."""
        trade = (await service.create_trade(owner, order(3, "2.00"))).trade

        market_data.price = Decimal("3.00")
        first = await service.settle_trade(owner, settle(trade.id, 2, "3.00"))

        assert first.trade.status == TradeStatus.OPEN.value
        assert first.trade.remaining_open_contracts == 1
        assert first.trade.total_sell_notional == Decimal("600")
        assert first.fill.notional == Decimal("600")

        market_data.price = Decimal("1.00")
        second = await service.settle_trade(owner, settle(trade.id, 1, "1.00"))
        closed = second.trade

        assert closed.status == TradeStatus.CLOSED.value
        assert closed.remaining_open_contracts == 0
        assert closed.total_sell_notional == Decimal("700")
        assert closed.net_pnl == Decimal("100")
        assert closed.outcome == TradeOutcome.WIN.value
        assert closed.closed_at is not None
        assert [f.side for f in closed.fills] == ["BUY", "SELL", "SELL"]
        assert notifier.notify_trade_settled.await_count == 2

    @pytest.mark.asyncio
    async def test_oversell_is_rejected(self, service, owner, db_session):
        trade = (await service.create_trade(owner, order(3))).trade

        with pytest.raises(ValidationError, match="exceeds remaining"):
            await service.settle_trade(owner, settle(trade.id, 4, "2.00"))

        reloaded = await TradeCRUD.get_with_fills(db_session, trade.id)
        assert reloaded.remaining_open_contracts == 3
        assert len(reloaded.fills) == 1

    @pytest.mark.asyncio
    async def test_closed_trade_cannot_be_settled(self, service, owner):
        trade = (await service.create_trade(owner, order(1))).trade
        await service.settle_trade(owner, settle(trade.id, 1, "2.00"))

        with pytest.raises(StateError):
            await service.settle_trade(owner, settle(trade.id, 1, "2.00"))

    @pytest.mark.asyncio
    async def test_rejected_trade_cannot_be_settled(self, service, owner):
        trade = (await service.create_trade(owner, order(1, "9.00"))).trade

        with pytest.raises(StateError):
            await service.settle_trade(owner, settle(trade.id, 1, "2.00"))

    @pytest.mark.asyncio
    async def test_unknown_trade(self, service, owner):
        with pytest.raises(NotFoundError):
            await service.settle_trade(owner, settle(uuid.uuid4(), 1, "2.00"))

    @pytest.mark.asyncio
    async def test_other_users_trade_is_not_found(self, service, owner, make_user):
        """Ownership is checked per user and company."""
        trade = (await service.create_trade(owner, order(1))).trade
        admin = await make_user("admin_1", role=Role.ADMIN.value)

        with pytest.raises(NotFoundError):
            await service.settle_trade(admin, settle(trade.id, 1, "2.00"))

    @pytest.mark.asyncio
    async def test_sell_price_outside_band(self, service, owner, db_session):
        """A bad sell price is refused and leaves the trade untouched."""
        trade = (await service.create_trade(owner, order(2))).trade

        with pytest.raises(ValidationError, match="outside allowed"):
            await service.settle_trade(owner, settle(trade.id, 1, "5.00"))

        reloaded = await TradeCRUD.get_with_fills(db_session, trade.id)
        assert reloaded.remaining_open_contracts == 2
        logs = await ActivityLogCRUD.get_recent(db_session, owner.id, action="trade_settle_rejected")
        assert len(logs) == 1

    @pytest.mark.asyncio
    async def test_missing_price_without_market_order(self, service, owner):
        trade = (await service.create_trade(owner, order(1))).trade
        with pytest.raises(ValidationError):
            await service.settle_trade(owner, settle(trade.id, 1))

    @pytest.mark.asyncio
    async def test_market_order_fills_at_reference(self, service, owner, market_data):
        trade = (await service.create_trade(owner, order(1, "2.00"))).trade
        market_data.price = Decimal("4.40")

        settled = await service.settle_trade(owner, settle(trade.id, 1, market_order=True))

        assert settled.fill.fill_price == Decimal("4.40")
        assert settled.trade.net_pnl == Decimal("240")

    @pytest.mark.asyncio
    async def test_market_data_outage_propagates(self, service, owner, market_data):
        trade = (await service.create_trade(owner, order(1))).trade
        market_data.error = ExternalServiceError("down")

        with pytest.raises(ExternalServiceError):
            await service.settle_trade(owner, settle(trade.id, 1, "2.00"))

    @pytest.mark.asyncio
    async def test_lost_race_leaves_trade_unchanged(self, service, owner, db_session):
        """If another settlement takes the contracts first, nothing is written."""
        trade = (await service.create_trade(owner, order(3))).trade
        original = TradeCRUD.decrement_remaining

        async def competing_decrement(db, trade_id, contracts):
            await original(db, trade_id, 3)
            return await original(db, trade_id, contracts)

        with patch.object(TradeCRUD, "decrement_remaining", side_effect=competing_decrement):
            with pytest.raises(StateError, match="concurrently"):
                await service.settle_trade(owner, settle(trade.id, 2, "2.00"))

        fills = await TradeFillCRUD.get_for_trade(db_session, trade.id)
        assert [f.side for f in fills] == ["BUY"]

    @pytest.mark.asyncio
    async def test_compare_and_decrement_refuses_oversell(self, service, owner, db_session):
        trade = (await service.create_trade(owner, order(3))).trade

        assert await TradeCRUD.decrement_remaining(db_session, trade.id, 2) == 1
        assert await TradeCRUD.decrement_remaining(db_session, trade.id, 2) == 0
        await db_session.commit()

        with pytest.raises(ValidationError, match="exceeds remaining"):
            await service.settle_trade(owner, settle(trade.id, 2, "2.00"))


# =============================================================================
# Delete
# =============================================================================

class TestDeleteTrade:
    """Tests for deleting OPEN trades."""

    @pytest.mark.asyncio
    async def test_delete_open_trade_removes_fills(self, service, owner, db_session, notifier):
        trade = (await service.create_trade(owner, order(2))).trade
        trade_id = trade.id

        await service.delete_trade(owner, trade_id)

        assert await TradeCRUD.get_by_id(db_session, trade_id) is None
        assert await TradeFillCRUD.get_for_trade(db_session, trade_id) == []
        notifier.notify_trade_deleted.assert_awaited_once()
        logs = await ActivityLogCRUD.get_recent(db_session, owner.id, action="trade_deleted")
        assert len(logs) == 1

    @pytest.mark.asyncio
    async def test_partially_settled_trade_can_be_deleted(self, service, owner, db_session):
        trade = (await service.create_trade(owner, order(2))).trade
        await service.settle_trade(owner, settle(trade.id, 1, "2.00"))

        await service.delete_trade(owner, trade.id)

        assert await TradeFillCRUD.get_for_trade(db_session, trade.id) == []

    @pytest.mark.asyncio
    async def test_closed_trade_cannot_be_deleted(self, service, owner, db_session):
        trade = (await service.create_trade(owner, order(1))).trade
        await service.settle_trade(owner, settle(trade.id, 1, "2.00"))

        with pytest.raises(StateError):
            await service.delete_trade(owner, trade.id)
        assert await TradeCRUD.get_by_id(db_session, trade.id) is not None

    @pytest.mark.asyncio
    async def test_rejected_trade_cannot_be_deleted(self, service, owner):
        trade = (await service.create_trade(owner, order(1, "9.00"))).trade
        with pytest.raises(StateError):
            await service.delete_trade(owner, trade.id)

    @pytest.mark.asyncio
    async def test_unknown_trade(self, service, owner):
        with pytest.raises(NotFoundError):
            await service.delete_trade(owner, uuid.uuid4())


# =============================================================================
# List
# =============================================================================

class TestListTrades:
    """Tests for the caller's trade list."""

    @pytest.mark.asyncio
    async def test_newest_first_with_pagination(self, service, owner):
        for ticker in ("AAPL", "MSFT", "TSLA"):
            await service.create_trade(owner, order(1, ticker=ticker))

        result = await service.list_trades(owner, TradeListParams(page=1, page_size=2))

        assert result["total"] == 3
        assert result["total_pages"] == 2
        assert [t.ticker for t in result["items"]] == ["TSLA", "MSFT"]

    @pytest.mark.asyncio
    async def test_filter_by_status_and_search(self, service, owner):
        await service.create_trade(owner, order(1, ticker="AAPL"))
        await service.create_trade(owner, order(1, "9.00", ticker="AMZN"))
        await service.create_trade(owner, order(1, ticker="MSFT"))

        rejected = await service.list_trades(owner, TradeListParams(status="REJECTED"))
        searched = await service.list_trades(owner, TradeListParams(search="a"))

        assert [t.ticker for t in rejected["items"]] == ["AMZN"]
        assert {t.ticker for t in searched["items"]} == {"AAPL", "AMZN"}

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, service, owner):
        await service.create_trade(owner, order(1, ticker="AAPL"))

        for term in ("_", "%", "A_PL"):
            result = await service.list_trades(owner, TradeListParams(search=term))
            assert result["total"] == 0

    @pytest.mark.asyncio
    async def test_only_own_trades(self, service, owner, make_user):
        admin = await make_user("admin_1", role=Role.ADMIN.value)
        await service.create_trade(owner, order(1))

        result = await service.list_trades(admin, TradeListParams())

        assert result["total"] == 0
        assert result["total_pages"] == 1
