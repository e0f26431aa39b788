"""
Tests for trade notifications over Discord and integration webhooks.
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx

from tradeboard.core.retry import event_webhook_circuit
from tradeboard.services.notifier import TradeNotifier


@pytest.fixture
def user():
    return SimpleNamespace(
        alias="Desk One",
        discord_webhook_url=None,
        webhook_url=None,
        notify_on_settlement=True,
    )


@pytest.fixture
def trade():
    return SimpleNamespace(
        id="7f1c9a52-0000-4000-8000-000000000001",
        ticker="AAPL",
        strike=Decimal("150"),
        option_type="C",
        expiry_date=date(2025, 12, 19),
        contracts=3,
        fill_price=Decimal("2.00"),
        ref_price=Decimal("2.02"),
        status="CLOSED",
        remaining_open_contracts=0,
        net_pnl=Decimal("100"),
        outcome="WIN",
    )


class TestTradeNotifier:
    """Tests for webhook payloads and delivery rules."""

    @pytest.mark.asyncio
    async def test_no_webhook_configured(self, user, trade):
        notifier = TradeNotifier(default_webhook_url=None)
        assert await notifier.notify_trade_created(user, trade) is False

    @pytest.mark.asyncio
    async def test_user_webhook_overrides_default(self, user, trade):
        user.discord_webhook_url = "https://discord.test/user"
        notifier = TradeNotifier(default_webhook_url="https://discord.test/default")

        with patch.object(notifier, "_send_webhook", AsyncMock(return_value=True)) as send:
            await notifier.notify_trade_deleted(user, trade)

        assert send.await_args_list[0].args[0] == "https://discord.test/user"

    @pytest.mark.asyncio
    async def test_closed_settlement_embed(self, user, trade):
        notifier = TradeNotifier(default_webhook_url="https://discord.test/default")
        fill = SimpleNamespace(contracts=1, fill_price=Decimal("1.00"))

        with patch.object(notifier, "_send_webhook", AsyncMock(return_value=True)) as send:
            assert await notifier.notify_trade_settled(user, trade, fill) is True

        embed = send.await_args_list[0].args[1]["embeds"][0]
        assert embed["title"] == "Trade Closed - WIN"
        assert embed["color"] == TradeNotifier.COLOR_PROFIT
        assert {"name": "P&L", "value": "+$100.00", "inline": True} in embed["fields"]

    @pytest.mark.asyncio
    async def test_settlement_notifications_are_opt_in(self, user, trade):
        user.notify_on_settlement = False
        notifier = TradeNotifier(default_webhook_url="https://discord.test/default")

        with patch.object(notifier, "_send_webhook", AsyncMock(return_value=True)) as send:
            assert await notifier.notify_trade_settled(user, trade, SimpleNamespace()) is False
        send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivery_failures_are_swallowed(self, user, trade):
        notifier = TradeNotifier(default_webhook_url="https://discord.test/default")
        client = AsyncMock()
        client.post.side_effect = RuntimeError("boom")
        notifier._client = client

        assert await notifier.notify_trade_created(user, trade, None) is False

    @pytest.mark.asyncio
    async def test_integration_webhook_gets_json_event(self, user, trade):
        user.webhook_url = "https://hooks.test/desk"
        notifier = TradeNotifier(default_webhook_url="https://discord.test/default")
        fill = SimpleNamespace(contracts=1, fill_price=Decimal("1.00"))

        with patch.object(notifier, "_send_webhook", AsyncMock(return_value=True)) as send:
            await notifier.notify_trade_settled(user, trade, fill)

        assert send.await_count == 2
        call = send.await_args_list[1]
        assert call.args[0] == "https://hooks.test/desk"
        assert call.kwargs["breaker"] is event_webhook_circuit

        event = call.args[1]
        assert event["event"] == "trade.closed"
        assert event["trade"]["net_pnl"] == "100.00"
        assert event["trade"]["outcome"] == "WIN"
        assert event["fill"] == {"contracts": 1, "fill_price": "1.00"}

    @pytest.mark.asyncio
    async def test_integration_webhook_alone_counts_as_delivered(self, user, trade):
        user.webhook_url = "https://hooks.test/desk"
        notifier = TradeNotifier(default_webhook_url=None)
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            return httpx.Response(202)

        notifier._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        assert await notifier.notify_trade_deleted(user, trade) is True
        assert seen == ["hooks.test"]

    @pytest.mark.asyncio
    async def test_integration_webhook_failure_does_not_block_discord(self, user, trade):
        user.webhook_url = "https://hooks.test/desk"
        notifier = TradeNotifier(default_webhook_url="https://discord.test/default")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "hooks.test":
                return httpx.Response(400)
            return httpx.Response(204)

        notifier._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        assert await notifier.notify_trade_created(user, trade) is True
