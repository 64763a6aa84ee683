"""Feed generation service: fetch, map, serialize and cache per shop."""

import asyncio
import logging
from time import perf_counter
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Set

from .client import UPSTREAM_ERRORS, UnknownShopError
from .mapper import feed_to_jsonl, map_products_to_feed
from .models.feed_models import CachedFeed, FeedSettings, GenerationResult
from .models.shopify_models import ShopifyProduct, ShopInfo, ShopPolicies
from .storage import BaseFeedStore, now_ms
from .telemetry import get_generation_duration_histogram, get_records_counter

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    """What the service needs from a per-shop Shopify client."""

    async def fetch_all_products(self) -> List[ShopifyProduct]: ...

    async def fetch_shop_info(self) -> ShopInfo: ...

    async def fetch_shop_policies(self) -> ShopPolicies: ...

    async def __aenter__(self) -> "CatalogSource": ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> Any: ...


CatalogClientFactory = Callable[[str], CatalogSource]


def settings_from_shop(shop: str, shop_info: ShopInfo, policies: ShopPolicies) -> Dict[str, Any]:
    """Settings changes derived from Shopify's shop data and published policies."""
    primary = shop_info.primary_domain.url if shop_info.primary_domain else None
    shop_url = primary or shop_info.url or f"https://{shop}"

    changes: Dict[str, Any] = {
        "seller_url": shop_url.rstrip("/"),
        "store_country": shop_info.billing_country_code or "US",
        "target_countries": ",".join(shop_info.ships_to_countries) or "US",
    }
    if shop_info.name:
        changes["seller_name"] = shop_info.name
    if policies.privacy_url:
        changes["privacy_policy_url"] = policies.privacy_url
    if policies.terms_url:
        changes["terms_of_service_url"] = policies.terms_url
    if policies.refund_url:
        changes["return_policy_url"] = policies.refund_url
    return changes


class FeedService:
    """
    Coordinates feed generation and the settings/cache store for all shops.

    Generation is single-flight per shop: concurrent requests for the same
    shop run one after another, so the last run to start is the one whose
    feed ends up cached.
    """

    def __init__(
        self,
        store: BaseFeedStore,
        client_factory: CatalogClientFactory,
        catalog_timeout_seconds: Optional[float] = 300.0,
    ):
        """
        Initialize the service.

        Args:
            store: Settings and feed cache store
            client_factory: Returns a Shopify client for a shop domain
            catalog_timeout_seconds: Upper bound for a full catalog fetch (None disables it)
        """
        self.store = store
        self.client_factory = client_factory
        self.catalog_timeout_seconds = catalog_timeout_seconds
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._duration_histogram = get_generation_duration_histogram()
        self._records_counter = get_records_counter()

    async def get_settings(self, shop: str) -> FeedSettings:
        return await asyncio.to_thread(self.store.get_settings, shop)

    async def has_settings(self, shop: str) -> bool:
        return await asyncio.to_thread(self.store.has_settings, shop)

    async def update_settings(self, shop: str, changes: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self.store.update_settings, shop, changes)

    async def read(self, shop: str) -> Optional[CachedFeed]:
        """Return the last successfully generated feed, or None if there is none yet."""
        return await asyncio.to_thread(self.store.get_cached_feed, shop)

    async def auto_populate(self, shop: str) -> FeedSettings:
        """
        Refresh seller, geo and policy settings from Shopify.

        Used on first install and for a manual re-sync. Only fields Shopify
        actually supplies are overwritten.
        """
        async with self.client_factory(shop) as client:
            shop_info, policies = await asyncio.gather(
                client.fetch_shop_info(),
                client.fetch_shop_policies(),
            )
        changes = settings_from_shop(shop, shop_info, policies)
        await self.update_settings(shop, changes)
        logger.info("Synced settings from Shopify for %s: %s", shop, sorted(changes))
        return await self.get_settings(shop)

    async def get_or_populate_settings(self, shop: str) -> FeedSettings:
        """
        Return the shop's settings, auto-populating them while no seller name is set.

        A shop Shopify cannot be reached for keeps its stored settings.
        """
        settings = await self.get_settings(shop)
        if settings.seller_name:
            return settings
        try:
            return await self.auto_populate(shop)
        except UnknownShopError:
            logger.info("No Shopify credentials for %s, using stored settings", shop)
        except UPSTREAM_ERRORS as exc:
            logger.warning("Settings auto-populate failed for %s: %s", shop, exc)
        return settings

    async def generate(self, shop: str) -> GenerationResult:
        """
        Regenerate and cache the feed for a shop.

        Never raises: failures are logged and returned as an unsuccessful
        result, and the previously cached feed is left untouched.
        """
        lock = self._locks.setdefault(shop, asyncio.Lock())
        async with lock:
            return await self._generate(shop)

    async def _generate(self, shop: str) -> GenerationResult:
        start = perf_counter()
        logger.info("Starting feed generation for %s", shop)
        try:
            async with self.client_factory(shop) as client:
                shop_info, settings = await asyncio.gather(
                    client.fetch_shop_info(),
                    self.get_settings(shop),
                )
                products = await asyncio.wait_for(
                    client.fetch_all_products(),
                    timeout=self.catalog_timeout_seconds,
                )
            logger.info("Fetched %d products for %s", len(products), shop)

            records = map_products_to_feed(products, shop_info, settings)
            feed_data = feed_to_jsonl(records)
            await asyncio.to_thread(
                self.store.replace_feed, shop, feed_data, len(records), now_ms()
            )
        except Exception as exc:
            logger.exception("Feed generation failed for %s", shop)
            self._record_duration(start, shop, success=False)
            return GenerationResult(success=False, error=str(exc) or exc.__class__.__name__)

        self._record_duration(start, shop, success=True)
        self._records_counter.add(len(records), attributes={"shop": shop})
        logger.info("Feed generation complete for %s: %d items", shop, len(records))
        return GenerationResult(success=True, product_count=len(records))

    def _record_duration(self, start: float, shop: str, success: bool) -> None:
        duration_ms = (perf_counter() - start) * 1000
        self._duration_histogram.record(duration_ms, attributes={"shop": shop, "success": success})

    def schedule_generation(self, shop: str) -> asyncio.Task:
        """
        Start a background generation without waiting for it.

        The task is kept referenced until it finishes; its outcome is only
        logged. Must be called from a running event loop.
        """
        task = asyncio.create_task(self.generate(shop), name=f"feed-generation:{shop}")
        self._tasks.add(task)
        task.add_done_callback(self._on_generation_done)
        return task

    def _on_generation_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background generation %s was cancelled", task.get_name())
            return
        result = task.result()
        if result.success:
            logger.info("%s regenerated %d items", task.get_name(), result.product_count)
        else:
            logger.error("%s failed: %s", task.get_name(), result.error)

    async def drain(self) -> None:
        """Wait for all background generations started so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def delete(self, shop: str) -> None:
        """
        Remove a shop's settings and cached feed.

        Both deletes are always issued. A failure of either is logged and the
        first one re-raised once both have run; nothing is rolled back.
        """
        results = await asyncio.gather(
            asyncio.to_thread(self.store.delete_settings, shop),
            asyncio.to_thread(self.store.delete_cache, shop),
            return_exceptions=True,
        )
        lock = self._locks.get(shop)
        if lock is not None and not lock.locked():
            del self._locks[shop]

        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            logger.error("Failed to delete feed data for %s", shop, exc_info=failure)
        if failures:
            raise failures[0]
        logger.info("Deleted feed data for %s", shop)
