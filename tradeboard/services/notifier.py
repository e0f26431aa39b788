"""
Trade notifications.

Each trade event goes to two places. Discord gets an embed. The user's
own integration webhook, when one is set, gets a plain JSON event.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from tradeboard.config import get_settings
from tradeboard.core.retry import (
    WEBHOOK_RETRY,
    CircuitBreaker,
    discord_circuit,
    event_webhook_circuit,
    send_with_retry,
)
from tradeboard.models.trade import Trade, TradeStatus
from tradeboard.models.trade_fill import TradeFill
from tradeboard.models.user import User
from tradeboard.services.pnl import to_money


logger = logging.getLogger(__name__)


class TradeNotifier:
    """
    Sends trade notifications over webhooks.

    Discord: the user's discord_webhook_url, else the application-wide
    DISCORD_WEBHOOK_URL. Integration events: the user's webhook_url only.
    Sending never raises: a failed delivery is logged and reported as False.
    """

    # Discord embed colors
    COLOR_INFO = 0x3B82F6     # Blue
    COLOR_WARNING = 0xF59E0B  # Amber
    COLOR_PROFIT = 0x10B981   # Green
    COLOR_LOSS = 0xEF4444     # Red
    COLOR_NEUTRAL = 0x6B7280  # Gray

    FOOTER = {"text": "Tradeboard"}

    def __init__(self, default_webhook_url: str | None = None):
        """
        Initialize notifier.

        Args:
            default_webhook_url: Discord webhook used when a user has none configured
        """
        self.default_webhook_url = default_webhook_url
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def webhook_for(self, user: User) -> str | None:
        return user.discord_webhook_url or self.default_webhook_url

    async def _send_webhook(
        self,
        webhook_url: str | None,
        payload: dict[str, Any],
        breaker: CircuitBreaker = discord_circuit,
    ) -> bool:
        """
        POST a JSON payload to a webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not webhook_url:
            logger.debug(f"No {breaker.name} webhook configured, skipping notification")
            return False

        try:
            client = await self._get_client()

            response = await send_with_retry(
                client.post,
                webhook_url,
                json=payload,
                policy=WEBHOOK_RETRY,
                breaker=breaker,
            )

            if response.is_success:
                return True

            logger.warning(f"{breaker.name} webhook returned {response.status_code}")
            return False

        except Exception as e:
            logger.error(f"Failed to send {breaker.name} notification: {e}")
            return False

    def _event_payload(self, event: str, user: User, trade: Trade, **extra: Any) -> dict[str, Any]:
        return {
            "event": event,
            "alias": user.alias,
            "trade": {
                "id": str(trade.id),
                "contract": self._contract_label(trade),
                "status": trade.status,
                "contracts": trade.contracts,
                "remaining_open_contracts": trade.remaining_open_contracts,
                "fill_price": str(to_money(trade.fill_price)),
                "net_pnl": None if trade.net_pnl is None else str(to_money(trade.net_pnl)),
                "outcome": trade.outcome,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **extra,
        }

    async def _dispatch(self, user: User, embed: dict, event: dict[str, Any]) -> bool:
        """Deliver to Discord and to the integration webhook. True if either succeeded."""
        sent_discord = await self._send_webhook(self.webhook_for(user), {"embeds": [embed]})
        sent_event = await self._send_webhook(user.webhook_url, event, breaker=event_webhook_circuit)
        return sent_discord or sent_event

    def _contract_label(self, trade: Trade) -> str:
        option = "CALL" if trade.option_type == "C" else "PUT"
        return f"{trade.ticker} {to_money(trade.strike)} {option} {trade.expiry_date:%m/%d/%Y}"

    def _embed(self, title: str, description: str, color: int, fields: list[dict]) -> dict:
        return {
            "title": title,
            "description": description,
            "color": color,
            "fields": fields,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "footer": self.FOOTER,
        }

    async def notify_trade_created(self, user: User, trade: Trade, reason: str | None = None) -> bool:
        """
        Send notification for a new trade, OPEN or REJECTED.

        Args:
            user: Trade owner
            trade: The trade just recorded
            reason: Rejection reason, if any
        """
        rejected = trade.status == TradeStatus.REJECTED.value
        fields = [
            {"name": "Contracts", "value": str(trade.contracts), "inline": True},
            {"name": "Fill", "value": f"${to_money(trade.fill_price)}", "inline": True},
        ]
        if trade.ref_price is not None:
            fields.append({"name": "Market", "value": f"${to_money(trade.ref_price)}", "inline": True})
        if rejected and reason:
            fields.append({"name": "Reason", "value": reason[:1024], "inline": False})

        embed = self._embed(
            "Trade Rejected" if rejected else "Trade Opened",
            f"**{user.alias}** bought **{self._contract_label(trade)}**",
            self.COLOR_WARNING if rejected else self.COLOR_INFO,
            fields,
        )
        event = self._event_payload(
            "trade.rejected" if rejected else "trade.opened", user, trade, reason=reason if rejected else None
        )
        return await self._dispatch(user, embed, event)

    async def notify_trade_settled(self, user: User, trade: Trade, fill: TradeFill) -> bool:
        """
        Send notification for a SELL fill. Skipped unless the user opted
        into settlement notifications.
        """
        if not user.notify_on_settlement:
            return False

        fields = [
            {"name": "Sold", "value": str(fill.contracts), "inline": True},
            {"name": "Price", "value": f"${to_money(fill.fill_price)}", "inline": True},
            {"name": "Remaining", "value": str(trade.remaining_open_contracts), "inline": True},
        ]

        if trade.status == TradeStatus.CLOSED.value:
            net = Decimal(trade.net_pnl or 0)
            sign = "+" if net >= 0 else ""
            color = self.COLOR_PROFIT if net > 0 else self.COLOR_LOSS if net < 0 else self.COLOR_NEUTRAL
            title = f"Trade Closed - {trade.outcome}"
            fields.append({"name": "P&L", "value": f"{sign}${to_money(net)}", "inline": True})
        else:
            color = self.COLOR_INFO
            title = "Trade Partially Settled"

        embed = self._embed(
            title,
            f"**{user.alias}** sold **{self._contract_label(trade)}**",
            color,
            fields,
        )
        event = self._event_payload(
            "trade.closed" if trade.status == TradeStatus.CLOSED.value else "trade.settled",
            user,
            trade,
            fill={"contracts": fill.contracts, "fill_price": str(to_money(fill.fill_price))},
        )
        return await self._dispatch(user, embed, event)

    async def notify_trade_deleted(self, user: User, trade: Trade) -> bool:
        """Send notification when an OPEN trade is deleted."""
        embed = self._embed(
            "Trade Deleted",
            f"**{user.alias}** deleted **{self._contract_label(trade)}**",
            self.COLOR_NEUTRAL,
            [{"name": "Contracts", "value": str(trade.contracts), "inline": True}],
        )
        return await self._dispatch(user, embed, self._event_payload("trade.deleted", user, trade))


_notifier: TradeNotifier | None = None


def get_notifier() -> TradeNotifier:
    """Returns the shared notifier."""
    global _notifier
    if _notifier is None:
        _notifier = TradeNotifier(get_settings().discord_webhook_url)
    return _notifier
