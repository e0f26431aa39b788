"""
Trading schemas for creating, settling and listing option trades.
"""

import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator, model_validator

from tradeboard.config import get_settings
from tradeboard.models.trade import OptionType, TradeStatus
from tradeboard.schemas.common import Money

TICKER_PATTERN = re.compile(r"^[A-Z]{1,10}$")
EXPIRY_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")

OPTION_TYPE_ALIASES = {
    "C": OptionType.CALL.value,
    "CALL": OptionType.CALL.value,
    "P": OptionType.PUT.value,
    "PUT": OptionType.PUT.value,
}


class CreateTradeRequest(BaseModel):
    """
    Schema for recording a BUY order.
    Expiry is given as MM/DD/YYYY.
    """
    ticker: str
    strike: Decimal = Field(..., gt=0)
    option_type: str
    expiry_date: date
    contracts: int = Field(..., gt=0)
    fill_price: Decimal = Field(..., gt=0)

    @field_validator("ticker", mode="before")
    @classmethod
    def validate_ticker(cls, v: str) -> str:
        """1-10 letters, stored uppercase."""
        if not isinstance(v, str):
            raise ValueError("Ticker must be a string")
        v = v.strip().upper()
        if not TICKER_PATTERN.match(v):
            raise ValueError("Ticker must be 1-10 letters (A-Z)")
        return v

    @field_validator("option_type", mode="before")
    @classmethod
    def validate_option_type(cls, v: str) -> str:
        """Accepts C, P, CALL or PUT in any case; stored as C or P."""
        normalized = OPTION_TYPE_ALIASES.get(str(v).strip().upper())
        if normalized is None:
            raise ValueError("Option type must be C, P, CALL or PUT")
        return normalized

    @field_validator("expiry_date", mode="before")
    @classmethod
    def parse_expiry(cls, v):
        """Parse MM/DD/YYYY into a date."""
        if isinstance(v, date):
            return v
        if not isinstance(v, str) or not EXPIRY_PATTERN.match(v.strip()):
            raise ValueError("Expiry must be in MM/DD/YYYY format")
        try:
            return datetime.strptime(v.strip(), "%m/%d/%Y").date()
        except ValueError:
            raise ValueError("Expiry is not a valid calendar date")

    @model_validator(mode="after")
    def check_contract_cap(self) -> "CreateTradeRequest":
        cap = get_settings().max_contracts_per_trade
        if cap is not None and self.contracts > cap:
            raise ValueError(f"Contracts cannot exceed {cap} per trade")
        return self


class SettleTradeRequest(BaseModel):
    """
    Schema for a SELL fill against an OPEN trade.
    Either a fill price or market_order=true, never both. A request with
    neither is only valid under the market fill pricing policy.
    """
    trade_id: uuid.UUID
    contracts: int = Field(..., gt=0)
    fill_price: Decimal | None = Field(default=None, gt=0)
    market_order: bool = False

    @model_validator(mode="after")
    def validate_price_source(self) -> "SettleTradeRequest":
        if self.market_order and self.fill_price is not None:
            raise ValueError("Provide either fill_price or market_order, not both")
        return self


class TradeFillResponse(BaseModel):
    """
    Schema for a ledger fill in API responses.
    """
    id: uuid.UUID
    side: str
    contracts: int
    fill_price: Decimal
    notional: Money
    price_verified: bool
    ref_price: Decimal | None
    ref_timestamp: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TradeResponse(BaseModel):
    """
    Schema for a trade in API responses.
    """
    id: uuid.UUID
    company_id: str
    side: str
    ticker: str
    strike: Decimal
    option_type: str
    expiry_date: date
    option_contract: str | None
    contracts: int
    fill_price: Decimal
    price_verified: bool
    ref_price: Decimal | None
    ref_timestamp: datetime | None
    status: str
    remaining_open_contracts: int
    total_buy_notional: Money
    total_sell_notional: Money
    outcome: str | None
    net_pnl: Money | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None
    fills: list[TradeFillResponse] = []

    model_config = {"from_attributes": True}


class TradeListParams(BaseModel):
    """
    Query parameters for listing trades.
    """
    page: int = 1
    page_size: int = 10
    status: TradeStatus | None = None
    search: str | None = None

    @field_validator("page", mode="before")
    @classmethod
    def clamp_page(cls, v) -> int:
        return max(1, int(v or 1))

    @field_validator("page_size", mode="before")
    @classmethod
    def clamp_page_size(cls, v) -> int:
        return min(100, max(1, int(v or 10)))


class SettleTradeResponse(BaseModel):
    """
    Response for a settlement: the updated trade and the new fill.
    """
    message: str
    trade: TradeResponse
    fill: TradeFillResponse
