"""
Retry and circuit breaking for outbound HTTP calls.

Two collaborators talk to the network: the market data API and the
Discord webhook. Each has its own breaker so an outage of one never
blocks the other.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx


logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Calls flow normally
    OPEN = "open"            # Calls are refused
    HALF_OPEN = "half_open"  # One trial call allowed


class CircuitOpenError(Exception):
    """Raised when a call is refused because the circuit is open."""


@dataclass
class CircuitBreaker:
    """
    Stops calling a service after repeated failures.

    CLOSED -> OPEN after `failure_threshold` consecutive failures.
    OPEN -> HALF_OPEN once `recovery_timeout` seconds have passed.
    HALF_OPEN -> CLOSED on the next success, back to OPEN on failure.
    """
    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0

    failures: int = field(default=0, init=False)
    opened_at: float | None = field(default=None, init=False)
    state: CircuitState = field(default=CircuitState.CLOSED, init=False)

    def allow(self) -> bool:
        """True if a call may be attempted now."""
        if self.state != CircuitState.OPEN:
            return True
        if self.opened_at is not None and time.monotonic() - self.opened_at >= self.recovery_timeout:
            self.state = CircuitState.HALF_OPEN
            logger.info(f"Circuit '{self.name}' half-open, allowing a trial call")
            return True
        return False

    def record_failure(self) -> None:
        self.failures += 1
        if self.state == CircuitState.HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning(f"Circuit '{self.name}' opened after {self.failures} failures")
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()

    def record_success(self) -> None:
        if self.state != CircuitState.CLOSED:
            logger.info(f"Circuit '{self.name}' closed")
        self.failures = 0
        self.opened_at = None
        self.state = CircuitState.CLOSED


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently to retry a request.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, doubled each time
        max_delay: Upper bound for a single delay
        retry_statuses: Response codes treated as transient
    """
    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 10.0
    retry_statuses: frozenset = frozenset({429, 500, 502, 503, 504})

    def delay(self, attempt: int, response: httpx.Response | None = None) -> float:
        """Backoff before retry number `attempt` (0-based), with up to 10% jitter."""
        if response is not None and response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                return min(float(retry_after), self.max_delay)
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return delay + random.uniform(0, delay * 0.1)


async def send_with_retry(
    send: Callable[..., Awaitable[httpx.Response]],
    *args: Any,
    policy: RetryPolicy,
    breaker: CircuitBreaker | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send an HTTP request, retrying transport errors and transient statuses.

    Args:
        send: Bound client method, e.g. client.get
        policy: Retry policy
        breaker: Optional circuit breaker for the target service

    Returns:
        The first non-transient response, or the last response once
        retries are exhausted

    Raises:
        CircuitOpenError: Breaker refused the call
        httpx.TransportError: Network failure on the final attempt
    """
    attempt = 0
    while True:
        if breaker is not None and not breaker.allow():
            raise CircuitOpenError(f"Circuit breaker '{breaker.name}' is OPEN, rejecting call")

        final = attempt == policy.max_retries
        try:
            response = await send(*args, **kwargs)
        except httpx.TransportError as e:
            if breaker is not None:
                breaker.record_failure()
            if final:
                logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                raise
            wait = policy.delay(attempt)
            logger.warning(f"Attempt {attempt + 1} failed ({type(e).__name__}), retrying in {wait:.2f}s")
            await asyncio.sleep(wait)
            attempt += 1
            continue

        if response.status_code not in policy.retry_statuses:
            if breaker is not None:
                breaker.record_success()
            return response

        if breaker is not None:
            breaker.record_failure()
        if final:
            logger.error(f"Giving up after {attempt + 1} attempts: status {response.status_code}")
            return response
        wait = policy.delay(attempt, response)
        logger.warning(f"Attempt {attempt + 1} returned {response.status_code}, retrying in {wait:.2f}s")
        await asyncio.sleep(wait)
        attempt += 1


MARKET_DATA_RETRY = RetryPolicy(max_retries=2, base_delay=0.5)
WEBHOOK_RETRY = RetryPolicy(max_retries=2, base_delay=1.0)

market_data_circuit = CircuitBreaker("market_data", failure_threshold=5, recovery_timeout=60)
discord_circuit = CircuitBreaker("discord", failure_threshold=3, recovery_timeout=120)
event_webhook_circuit = CircuitBreaker("event_webhook", failure_threshold=3, recovery_timeout=120)
