"""
Notional and P&L calculations for option trades.

All arithmetic is exact Decimal. Values are rounded to cents only when
they are presented, via to_money(), so per-trade and aggregate figures
never drift apart.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

# One option contract covers 100 shares of the underlying
CONTRACT_MULTIPLIER = 100

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, strings and floats to Decimal without binary float noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def notional(contracts: int, price: Decimal | float | str) -> Decimal:
    """
    Dollar value of a fill.

    Args:
        contracts: Number of contracts
        price: Price per share of the option

    Returns:
        contracts * price * 100
    """
    return Decimal(contracts) * to_decimal(price) * CONTRACT_MULTIPLIER


def net_pnl(trade) -> Decimal:
    """Realized P&L of a trade: sell notional minus buy notional."""
    return to_decimal(trade.total_sell_notional) - to_decimal(trade.total_buy_notional)


def percentage(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator * 100, or 0 when the denominator is 0."""
    if not denominator:
        return ZERO
    return to_decimal(numerator) / to_decimal(denominator) * 100


def to_money(value: Any) -> Decimal:
    """Round to 2 decimal places, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
