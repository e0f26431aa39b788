"""
Shared fixtures: in-memory database, users, trades and fake collaborators.
"""

import os

# Must be set before tradeboard modules create the engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENFORCE_MARKET_HOURS"] = "false"
os.environ["FILL_PRICING_POLICY"] = "fixed_band"
os.environ["PRICE_BAND_PCT"] = "0.05"
os.environ.pop("MAX_CONTRACTS_PER_TRADE", None)
os.environ.pop("DISCORD_WEBHOOK_URL", None)

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import tradeboard.models  # noqa: F401
from tradeboard.config import Settings
from tradeboard.core.cache import InMemoryCache
from tradeboard.db.crud import UserCRUD
from tradeboard.db.database import Base, engine, async_session_factory
from tradeboard.models.trade import Trade, TradeSide, TradeStatus
from tradeboard.models.user import Role
from tradeboard.services.lifecycle import classify_outcome
from tradeboard.services.market_data import OptionSnapshot, build_option_contract
from tradeboard.services.notifier import TradeNotifier
from tradeboard.services.pnl import notional


class FakeMarketData:
    """Stands in for MarketDataClient; returns a configurable reference price."""

    def __init__(self, price: str = "2.00"):
        self.price = Decimal(price)
        self.error: Exception | None = None
        self.get_option_snapshot = AsyncMock(side_effect=self._snapshot)

    async def _snapshot(self, ticker, strike, expiry, option_type):
        if self.error is not None:
            raise self.error
        return OptionSnapshot(
            option_contract=build_option_contract(ticker, expiry, option_type, strike),
            bid=None,
            ask=None,
            last_price=self.price,
            timestamp=datetime(2025, 1, 2, 15, 0, tzinfo=timezone.utc),
        )

    async def close(self):
        pass


@pytest.fixture
async def db_session():
    """Fresh schema per test on the shared in-memory connection."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        fill_pricing_policy="fixed_band",
        price_band_pct=0.05,
        enforce_market_hours=False,
    )


@pytest.fixture
def market_data():
    return FakeMarketData("2.00")


@pytest.fixture
def notifier():
    mock = MagicMock(spec=TradeNotifier)
    mock.notify_trade_created = AsyncMock(return_value=True)
    mock.notify_trade_settled = AsyncMock(return_value=True)
    mock.notify_trade_deleted = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def cache():
    return InMemoryCache(default_ttl=10)


@pytest.fixture
def make_user(db_session):
    """Factory creating users in a company."""
    async def _make_user(
        external_user_id: str = "user_1",
        company_id: str | None = "biz_1",
        role: str = Role.COMPANY_OWNER.value,
        alias: str | None = None,
        **fields,
    ):
        return await UserCRUD.create(
            db_session,
            external_user_id=external_user_id,
            company_id=company_id,
            alias=alias or external_user_id,
            role=role,
            **fields,
        )
    return _make_user


@pytest.fixture
def make_closed_trade(db_session):
    """Factory inserting a CLOSED trade with the given buy and sell prices."""
    async def _make_closed_trade(
        user,
        buy_price: str,
        sell_price: str,
        contracts: int = 1,
        closed_at: datetime | None = None,
        company_id: str | None = None,
        ticker: str = "AAPL",
    ):
        closed_at = closed_at or datetime.now(timezone.utc)
        buy = notional(contracts, Decimal(buy_price))
        sell = notional(contracts, Decimal(sell_price))
        trade = Trade(
            user_id=user.id,
            company_id=company_id or user.company_id,
            side=TradeSide.BUY.value,
            ticker=ticker,
            strike=Decimal("150"),
            option_type="C",
            expiry_date=date(2025, 12, 19),
            contracts=contracts,
            fill_price=Decimal(buy_price),
            price_verified=True,
            status=TradeStatus.CLOSED.value,
            remaining_open_contracts=0,
            total_buy_notional=buy,
            total_sell_notional=sell,
            net_pnl=sell - buy,
            outcome=classify_outcome(sell - buy),
            created_at=closed_at - timedelta(hours=1),
            closed_at=closed_at,
        )
        db_session.add(trade)
        await db_session.commit()
        return trade
    return _make_closed_trade
