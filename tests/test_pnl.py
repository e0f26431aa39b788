"""
Tests for notional and P&L calculations.
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from tradeboard.services.pnl import (
    CONTRACT_MULTIPLIER,
    net_pnl,
    notional,
    percentage,
    to_decimal,
    to_money,
)


class TestNotional:
    """Tests for fill notional."""

    def test_contract_multiplier_is_100(self):
        """One contract covers 100 shares."""
        assert CONTRACT_MULTIPLIER == 100

    def test_notional_multiplies_contracts_price_and_multiplier(self):
        """3 contracts at $2.00 are worth $600."""
        assert notional(3, Decimal("2.00")) == Decimal("600")

    def test_notional_is_exact_for_sub_cent_prices(self):
        """No float noise for fractional prices."""
        assert notional(7, Decimal("0.015")) == Decimal("10.5")

    def test_notional_accepts_strings_and_floats(self):
        """Floats go through str() so 0.1 stays 0.1."""
        assert notional(1, "1.25") == Decimal("125")
        assert notional(1, 0.1) == Decimal("10")


class TestNetPnl:
    """Tests for realized P&L."""

    def test_net_pnl_is_sell_minus_buy(self):
        """Profit when sells exceed buys."""
        trade = SimpleNamespace(total_buy_notional=Decimal("600"), total_sell_notional=Decimal("700"))
        assert net_pnl(trade) == Decimal("100")

    def test_net_pnl_negative_for_loss(self):
        trade = SimpleNamespace(total_buy_notional=Decimal("500"), total_sell_notional=Decimal("125.50"))
        assert net_pnl(trade) == Decimal("-374.50")

    def test_missing_totals_count_as_zero(self):
        trade = SimpleNamespace(total_buy_notional=None, total_sell_notional=None)
        assert net_pnl(trade) == Decimal("0")


class TestRounding:
    """Tests for presentation rounding."""

    @pytest.mark.parametrize("value,expected", [
        (Decimal("1.005"), Decimal("1.01")),
        (Decimal("1.004"), Decimal("1.00")),
        (Decimal("-1.005"), Decimal("-1.01")),
        (Decimal("33.3333"), Decimal("33.33")),
    ])
    def test_to_money_rounds_half_up(self, value, expected):
        """Half cents round away from zero."""
        assert to_money(value) == expected

    def test_percentage_guards_zero_denominator(self):
        """Ratios fall back to 0 instead of dividing by zero."""
        assert percentage(Decimal("10"), Decimal("0")) == Decimal("0")

    def test_percentage(self):
        assert percentage(Decimal("150"), Decimal("600")) == Decimal("25")

    def test_to_decimal_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")
