"""
Trade lifecycle rules.

A trade starts OPEN (or REJECTED when its entry price could not be
verified), is reduced by SELL fills, and becomes CLOSED when nothing
remains open. These functions only inspect and update in-memory
objects; persistence and locking live in the trade service.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from tradeboard.core.exceptions import StateError, ValidationError
from tradeboard.models.trade import Trade, TradeSide, TradeStatus, TradeOutcome
from tradeboard.models.trade_fill import TradeFill
from tradeboard.services import pnl


def classify_outcome(net_pnl: Decimal) -> str:
    """WIN for a profit, LOSS for a loss, BREAKEVEN otherwise."""
    if net_pnl > 0:
        return TradeOutcome.WIN.value
    if net_pnl < 0:
        return TradeOutcome.LOSS.value
    return TradeOutcome.BREAKEVEN.value


def open_trade(order, quote, user_id, company_id: str) -> Trade:
    """
    Build a new BUY trade from a validated order and its price check.

    Args:
        order: Validated order with ticker, strike, option_type,
            expiry_date, contracts and fill_price
        quote: PriceQuote from the pricing policy
        user_id: Owning user
        company_id: Company the trade is recorded in

    Returns:
        Unsaved Trade, OPEN if the quote is valid, REJECTED otherwise
    """
    verified = bool(quote.valid)
    fill_price = pnl.to_decimal(order.fill_price)

    return Trade(
        user_id=user_id,
        company_id=company_id,
        side=TradeSide.BUY.value,
        ticker=order.ticker,
        strike=pnl.to_decimal(order.strike),
        option_type=getattr(order.option_type, "value", order.option_type),
        expiry_date=order.expiry_date,
        option_contract=quote.option_contract,
        contracts=order.contracts,
        fill_price=fill_price,
        price_verified=verified,
        ref_price=quote.reference_price,
        ref_timestamp=quote.reference_timestamp,
        status=TradeStatus.OPEN.value if verified else TradeStatus.REJECTED.value,
        remaining_open_contracts=order.contracts,
        # Nothing was bought on a rejected order
        total_buy_notional=pnl.notional(order.contracts, fill_price) if verified else pnl.ZERO,
        total_sell_notional=pnl.ZERO,
    )


def check_fill(trade: Trade, contracts: int) -> None:
    """
    Verify a SELL of `contracts` may be applied to the trade.

    Raises:
        StateError: Trade is not OPEN
        ValidationError: Contracts are not positive or exceed remaining
    """
    if trade.status != TradeStatus.OPEN.value:
        raise StateError(
            f"Trade is {trade.status}, only OPEN trades can be settled",
            details={"trade_id": str(trade.id), "status": trade.status}
        )
    if contracts <= 0:
        raise ValidationError("Contracts must be a positive integer")
    if contracts > trade.remaining_open_contracts:
        raise ValidationError(
            f"Cannot sell {contracts} contracts, exceeds remaining "
            f"{trade.remaining_open_contracts} open contracts",
            details={
                "requested": contracts,
                "remaining": trade.remaining_open_contracts,
            }
        )


def settle_totals(
    trade: Trade,
    fills: Iterable[TradeFill],
    now: datetime | None = None
) -> Trade:
    """
    Recompute sell totals from the full fill ledger and close the trade
    once no contracts remain.

    Totals are summed from every SELL fill rather than accumulated, so a
    replay of the ledger always yields the same numbers.
    """
    now = now or datetime.now(timezone.utc)

    trade.total_sell_notional = sum(
        (pnl.to_decimal(f.notional) for f in fills if f.side == TradeSide.SELL.value),
        pnl.ZERO
    )
    trade.updated_at = now

    if trade.remaining_open_contracts == 0:
        result = pnl.net_pnl(trade)
        trade.status = TradeStatus.CLOSED.value
        trade.net_pnl = result
        trade.outcome = classify_outcome(result)
        trade.closed_at = now

    return trade


def apply_fill(
    trade: Trade,
    fill: TradeFill,
    fills: Iterable[TradeFill] | None = None,
    now: datetime | None = None
) -> Trade:
    """
    Apply a SELL fill to a trade held in memory.

    Args:
        trade: OPEN trade
        fill: New SELL fill
        fills: Fills already recorded for the trade
        now: Clock override for tests

    Raises:
        StateError / ValidationError from check_fill; the trade is left
        untouched when a check fails.
    """
    if fill.side != TradeSide.SELL.value:
        raise ValidationError("Only SELL fills can settle a trade")
    check_fill(trade, fill.contracts)

    ledger = list(fills or [])
    if not any(existing is fill for existing in ledger):
        ledger.append(fill)

    trade.remaining_open_contracts -= fill.contracts
    return settle_totals(trade, ledger, now)


def ensure_deletable(trade: Trade) -> None:
    """Only OPEN trades may be deleted."""
    if trade.status != TradeStatus.OPEN.value:
        raise StateError(
            f"Trade is {trade.status}, only OPEN trades can be deleted",
            details={"trade_id": str(trade.id), "status": trade.status}
        )
