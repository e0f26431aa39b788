"""
Fill pricing policies.

A policy checks (or supplies) the price of a fill against the market:
- fixed_band: the caller's price must sit within a percentage band of
  the market reference price
- market: the fill executes at the market reference price
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from tradeboard.config import Settings
from tradeboard.core.exceptions import ExternalServiceError, ValidationError
from tradeboard.services.market_data import MarketDataClient
from tradeboard.services.pnl import to_decimal, to_money


logger = logging.getLogger(__name__)


@dataclass
class PriceQuote:
    """Result of checking a fill price against the market."""
    valid: bool
    fill_price: Decimal | None = None
    reference_price: Decimal | None = None
    reference_timestamp: datetime | None = None
    option_contract: str | None = None
    error: str | None = None


class FillPricingPolicy(ABC):
    """Base class for fill pricing policies."""

    name: str = ""

    def __init__(self, client: MarketDataClient):
        self.client = client

    async def _snapshot(self, instrument):
        return await self.client.get_option_snapshot(
            instrument.ticker,
            instrument.strike,
            instrument.expiry_date,
            instrument.option_type,
        )

    @abstractmethod
    async def quote(self, instrument, proposed_price: Decimal | None) -> PriceQuote:
        """
        Price a fill for an instrument.

        Args:
            instrument: Object with ticker, strike, expiry_date, option_type
            proposed_price: Caller's price, if any

        Raises:
            ExternalServiceError: Market data unavailable
        """


class FixedPriceBandPolicy(FillPricingPolicy):
    """Accept the caller's price only if it is within ±band of the market."""

    name = "fixed_band"

    def __init__(self, client: MarketDataClient, band_pct: float = 0.05):
        super().__init__(client)
        self.band_pct = Decimal(str(band_pct))

    def within_band(self, price: Decimal, reference: Decimal) -> bool:
        return abs(price - reference) <= reference * self.band_pct

    async def quote(self, instrument, proposed_price: Decimal | None) -> PriceQuote:
        if proposed_price is None:
            raise ValidationError("Fill price is required unless market_order is set")

        price = to_decimal(proposed_price)
        snapshot = await self._snapshot(instrument)
        reference = snapshot.reference_price

        if self.within_band(price, reference):
            return PriceQuote(
                valid=True,
                fill_price=price,
                reference_price=reference,
                reference_timestamp=snapshot.timestamp,
                option_contract=snapshot.option_contract,
            )

        pct = (self.band_pct * 100).normalize()
        logger.info(
            f"Fill price {price} outside {pct}% band of {reference} "
            f"for {snapshot.option_contract}"
        )
        return PriceQuote(
            valid=False,
            fill_price=price,
            reference_price=reference,
            reference_timestamp=snapshot.timestamp,
            option_contract=snapshot.option_contract,
            error=(
                f"Fill price ${to_money(price)} is outside allowed {pct}% range "
                f"vs market ${to_money(reference)} at time of submission."
            ),
        )


class MarketOrderPolicy(FillPricingPolicy):
    """Fill at the market reference price; any caller price is ignored."""

    name = "market"

    async def quote(self, instrument, proposed_price: Decimal | None = None) -> PriceQuote:
        snapshot = await self._snapshot(instrument)
        reference = snapshot.reference_price
        if reference is None:
            raise ExternalServiceError(
                f"No market price available for {snapshot.option_contract}"
            )
        return PriceQuote(
            valid=True,
            fill_price=reference,
            reference_price=reference,
            reference_timestamp=snapshot.timestamp,
            option_contract=snapshot.option_contract,
        )


def get_pricing_policy(
    settings: Settings,
    client: MarketDataClient,
    market_order: bool = False,
) -> FillPricingPolicy:
    """
    Select the pricing policy for a fill.

    An explicit market order always uses market pricing; otherwise the
    configured FILL_PRICING_POLICY applies.
    """
    if market_order or settings.fill_pricing_policy == MarketOrderPolicy.name:
        return MarketOrderPolicy(client)
    return FixedPriceBandPolicy(client, settings.price_band_pct)
