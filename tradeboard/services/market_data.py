"""
Market data client for option snapshots.
Reads reference prices from a Polygon-style REST API for fill verification.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from tradeboard.config import get_settings
from tradeboard.core.exceptions import ExternalServiceError
from tradeboard.core.retry import (
    MARKET_DATA_RETRY,
    CircuitBreaker,
    CircuitOpenError,
    RetryPolicy,
    market_data_circuit,
    send_with_retry,
)


logger = logging.getLogger(__name__)


def build_option_contract(ticker: str, expiry: date, option_type: str, strike: Decimal) -> str:
    """
    Build the OCC-style contract symbol, e.g. O:AAPL250117C00150000.

    Strike is encoded in thousandths, zero-padded to 8 digits.
    """
    option_type = getattr(option_type, "value", option_type)
    strike_code = int((Decimal(str(strike)) * 1000).to_integral_value())
    return f"O:{ticker.upper()}{expiry:%y%m%d}{option_type}{strike_code:08d}"


def _to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        result = Decimal(str(value))
    except ArithmeticError:
        return None
    return result if result > 0 else None


def _from_nanos(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value) / 1_000_000_000, tz=timezone.utc)


@dataclass
class OptionSnapshot:
    """Latest quote and trade for a single option contract."""
    option_contract: str
    bid: Decimal | None
    ask: Decimal | None
    last_price: Decimal | None
    timestamp: datetime

    @property
    def midpoint(self) -> Decimal | None:
        if self.bid is not None and self.ask is not None:
            return (self.bid + self.ask) / 2
        return None

    @property
    def reference_price(self) -> Decimal | None:
        """Quote midpoint when both sides are present, else last trade."""
        return self.midpoint if self.midpoint is not None else self.last_price

    @classmethod
    def from_api(cls, option_contract: str, payload: dict[str, Any]) -> "OptionSnapshot":
        results = payload.get("results") or {}
        quote = results.get("last_quote") or {}
        trade = results.get("last_trade") or {}
        day = results.get("day") or {}
        details = results.get("details") or {}

        timestamp = (
            _from_nanos(quote.get("last_updated"))
            or _from_nanos(trade.get("sip_timestamp"))
            or datetime.now(timezone.utc)
        )
        return cls(
            option_contract=details.get("ticker") or option_contract,
            bid=_to_decimal(quote.get("bid")),
            ask=_to_decimal(quote.get("ask")),
            last_price=_to_decimal(trade.get("price")) or _to_decimal(day.get("close")),
            timestamp=timestamp,
        )


class MarketDataClient:
    """
    Async client for the options snapshot endpoint.

    Transient failures (timeouts, 429, 5xx) are retried with backoff
    behind a circuit breaker. Anything unrecoverable surfaces as
    ExternalServiceError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.market_data_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.market_data_api_key
        self.timeout = timeout or settings.market_data_timeout_seconds
        self.circuit_breaker = circuit_breaker or market_data_circuit
        self.retry_policy = retry_policy or MARKET_DATA_RETRY
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_option_snapshot(
        self,
        ticker: str,
        strike: Decimal,
        expiry: date,
        option_type: str,
    ) -> OptionSnapshot:
        """
        Fetch the latest snapshot for an option contract.

        Args:
            ticker: Underlying symbol
            strike: Strike price
            expiry: Expiration date
            option_type: "C" or "P"

        Returns:
            OptionSnapshot for the contract

        Raises:
            ExternalServiceError: API unavailable, contract unknown, or no price
        """
        if not self.api_key:
            raise ExternalServiceError("Market data API key not configured")

        contract = build_option_contract(ticker, expiry, option_type, strike)
        path = f"/v3/snapshot/options/{ticker.upper()}/{contract}"

        try:
            client = await self._get_client()
            response = await send_with_retry(
                client.get,
                path,
                params={"apiKey": self.api_key},
                policy=self.retry_policy,
                breaker=self.circuit_breaker,
            )
        except CircuitOpenError as e:
            logger.warning(f"Market data circuit open, skipping lookup for {contract}")
            raise ExternalServiceError(str(e), details={"option_contract": contract})
        except httpx.HTTPError as e:
            logger.error(f"Market data request failed for {contract}: {e}")
            raise ExternalServiceError(
                "Market data service unavailable",
                details={"option_contract": contract}
            )

        if response.status_code == 404:
            raise ExternalServiceError(
                f"Option contract {contract} not found",
                details={"option_contract": contract}
            )
        if response.status_code != 200:
            logger.warning(f"Market data returned {response.status_code} for {contract}")
            raise ExternalServiceError(
                f"Market data service returned {response.status_code}",
                details={"option_contract": contract, "status_code": response.status_code}
            )

        try:
            snapshot = OptionSnapshot.from_api(contract, response.json())
        except ValueError as e:
            raise ExternalServiceError(f"Malformed market data response: {e}")

        if snapshot.reference_price is None:
            raise ExternalServiceError(
                f"No market price available for {contract}",
                details={"option_contract": contract}
            )
        return snapshot
