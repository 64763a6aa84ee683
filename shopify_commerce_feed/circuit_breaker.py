"""Circuit breaker guarding calls to the Shopify Admin API."""

import logging
import time

logger = logging.getLogger(__name__)


class CircuitBreakerOpen(Exception):
    """Raised when calls are refused because the circuit breaker is open."""

    def __init__(self, name: str):
        super().__init__(f"Circuit breaker open for {name}")
        self.name = name


class CircuitBreaker:
    """Opens after consecutive failures and closes again after a cool-down."""

    def __init__(self, name: str, failure_threshold: int = 3, reset_timeout_seconds: int = 30):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout_seconds = reset_timeout_seconds
        self.failure_count = 0
        self.opened_at: float | None = None

    def is_open(self) -> bool:
        if self.opened_at is None:
            return False
        if time.monotonic() - self.opened_at >= self.reset_timeout_seconds:
            self.opened_at = None
            self.failure_count = 0
            return False
        return True

    def record_success(self) -> None:
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.failure_count >= self.failure_threshold and self.opened_at is None:
            logger.warning(
                "Opening circuit for %s after %d consecutive failures",
                self.name,
                self.failure_count,
            )
            self.opened_at = time.monotonic()

    def guard(self) -> None:
        if self.is_open():
            raise CircuitBreakerOpen(self.name)
