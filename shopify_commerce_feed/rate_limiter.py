"""Rate limiter for the Shopify Admin GraphQL API."""

import asyncio
import time
from typing import Any, Dict, Optional


class CostBucketRateLimiter:
    """
    Leaky bucket over GraphQL query cost points.

    Shopify throttles GraphQL calls by calculated query cost rather than
    request count. Each call acquires its requested cost before it is sent;
    the bucket is then corrected from the ``throttleStatus`` Shopify
    reports with every response.
    """

    def __init__(self, bucket_size: float, restore_rate: float):
        """
        Initialize rate limiter.

        Args:
            bucket_size: Maximum cost points available (Shopify's maximumAvailable)
            restore_rate: Cost points restored per second
        """
        self.bucket_size = bucket_size
        self.restore_rate = restore_rate
        self.available = bucket_size
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.available = min(self.bucket_size, self.available + elapsed * self.restore_rate)
        self.last_update = now

    async def acquire(self, cost: float = 1.0) -> None:
        """
        Take ``cost`` points from the bucket, waiting for them to restore if needed.

        Costs larger than the bucket are capped at the bucket size.
        """
        cost = min(cost, self.bucket_size)
        async with self._lock:
            while True:
                self._refill()
                if self.available >= cost:
                    self.available -= cost
                    return
                await asyncio.sleep((cost - self.available) / self.restore_rate)

    def sync(self, throttle_status: Optional[Dict[str, Any]]) -> None:
        """Adopt the bucket state reported in ``extensions.cost.throttleStatus``."""
        if not throttle_status:
            return
        self.bucket_size = float(throttle_status.get("maximumAvailable", self.bucket_size))
        self.restore_rate = float(throttle_status.get("restoreRate", self.restore_rate))
        self.available = float(throttle_status.get("currentlyAvailable", self.available))
        self.last_update = time.monotonic()
