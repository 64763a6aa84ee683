import asyncio
import json

import httpx
import pytest

from shopify_commerce_feed.client import ShopifyAdminClient, UnknownShopError
from shopify_commerce_feed.mock_client import MockShopifyClient
from shopify_commerce_feed.models.shopify_models import ShopInfo, ShopPolicies
from shopify_commerce_feed.service import FeedService, settings_from_shop
from shopify_commerce_feed.storage import SQLiteFeedStore

SHOP = "mock-store.myshopify.com"


def mock_factory(**mock_kwargs):
    def factory(shop):
        return ShopifyAdminClient(shop, "shpat_test", client=MockShopifyClient(**mock_kwargs))
    return factory


class FailingCatalog:
    """Catalog client whose product fetch fails."""

    def __init__(self, error):
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def fetch_shop_info(self):
        return ShopInfo(name="Mock Store", url="https://mock-store.myshopify.com")

    async def fetch_shop_policies(self):
        return ShopPolicies()

    async def fetch_all_products(self):
        raise self.error


class UnreachableCatalog(FailingCatalog):
    async def fetch_shop_info(self):
        raise self.error


class SlowCatalog(FailingCatalog):
    async def fetch_all_products(self):
        await asyncio.sleep(5)
        return []


@pytest.fixture()
def store():
    store = SQLiteFeedStore(":memory:")
    yield store
    store.close()


@pytest.mark.asyncio
async def test_generate_caches_feed_and_stamps_settings(store):
    service = FeedService(store, mock_factory())

    result = await service.generate(SHOP)

    assert result.success
    assert result.product_count == 3
    cached = await service.read(SHOP)
    items = [json.loads(line) for line in cached.feed_data.split("\n")]
    assert [item["item_id"] for item in items] == ["TS-RED-S", "101-1002", "MUG-1"]
    assert items[0]["price"] == "24.99 USD"
    assert items[0]["sale_price"] == "19.99 USD"
    assert items[1]["availability"] == "out_of_stock"
    assert items[1]["image_url"] == "https://cdn.example/tshirt-blue.jpg"
    assert items[2]["url"] == "https://mockstore.example/products/mock-mug"
    assert cached.product_count == 3

    settings = await service.get_settings(SHOP)
    assert settings.feed_generated_at == cached.generated_at
    assert settings.product_count == 3


@pytest.mark.asyncio
async def test_generate_failure_returns_result_and_writes_nothing(store):
    service = FeedService(store, lambda shop: FailingCatalog(httpx.ConnectError("connection refused")))

    result = await service.generate(SHOP)

    assert not result.success
    assert result.product_count == 0
    assert "connection refused" in result.error
    assert await service.read(SHOP) is None


@pytest.mark.asyncio
async def test_failed_generation_keeps_previous_feed(store):
    await FeedService(store, mock_factory()).generate(SHOP)
    previous = store.get_cached_feed(SHOP)

    failing = FeedService(store, lambda shop: FailingCatalog(ValueError("bad payload")))
    result = await failing.generate(SHOP)

    assert not result.success
    assert store.get_cached_feed(SHOP) == previous


@pytest.mark.asyncio
async def test_generate_for_unknown_shop_fails_cleanly(store):
    def factory(shop):
        raise UnknownShopError(shop)

    result = await FeedService(store, factory).generate(SHOP)
    assert not result.success
    assert SHOP in result.error


@pytest.mark.asyncio
async def test_catalog_fetch_timeout_aborts_generation(store):
    service = FeedService(store, lambda shop: SlowCatalog(None), catalog_timeout_seconds=0.01)

    result = await service.generate(SHOP)

    assert not result.success
    assert result.error == "TimeoutError"
    assert await service.read(SHOP) is None


@pytest.mark.asyncio
async def test_shop_without_eligible_products_gets_empty_feed(store):
    service = FeedService(store, mock_factory(products=[]))

    result = await service.generate(SHOP)

    assert result.success
    assert result.product_count == 0
    cached = await service.read(SHOP)
    assert cached is not None
    assert cached.feed_data == ""


@pytest.mark.asyncio
async def test_concurrent_generations_for_one_shop_leave_one_cache_row(store):
    service = FeedService(store, mock_factory())

    results = await asyncio.gather(service.generate(SHOP), service.generate(SHOP))

    assert all(r.success for r in results)
    rows = store._conn.execute("SELECT COUNT(*) FROM feed_cache WHERE shop = ?", (SHOP,)).fetchone()[0]
    assert rows == 1


@pytest.mark.asyncio
async def test_scheduled_generation_runs_in_background(store):
    service = FeedService(store, mock_factory())

    task = service.schedule_generation(SHOP)
    await service.drain()

    assert task.done()
    assert task.result().success
    assert (await service.read(SHOP)).product_count == 3


@pytest.mark.asyncio
async def test_auto_populate_from_shop_and_policies(store):
    policies = {
        "privacyPolicy": {"url": "https://mockstore.example/policies/privacy-policy"},
        "termsOfService": None,
        "refundPolicy": {"url": "https://mockstore.example/policies/refund-policy"},
    }
    service = FeedService(store, mock_factory(policies=policies))
    await service.update_settings(SHOP, {"terms_of_service_url": "https://mockstore.example/terms", "enable_search": False})

    settings = await service.auto_populate(SHOP)

    assert settings.seller_name == "Mock Store"
    assert settings.seller_url == "https://mockstore.example"
    assert settings.store_country == "US"
    assert settings.target_countries == "US,CA"
    assert settings.privacy_policy_url == "https://mockstore.example/policies/privacy-policy"
    assert settings.return_policy_url == "https://mockstore.example/policies/refund-policy"
    assert settings.terms_of_service_url == "https://mockstore.example/terms"
    assert settings.enable_search is False


@pytest.mark.asyncio
async def test_auto_populate_without_policies_keeps_manual_urls(store):
    service = FeedService(store, mock_factory(policies=None))
    await service.update_settings(SHOP, {"privacy_policy_url": "https://mockstore.example/privacy"})

    settings = await service.auto_populate(SHOP)

    assert settings.privacy_policy_url == "https://mockstore.example/privacy"
    assert settings.return_policy_url is None


@pytest.mark.asyncio
async def test_get_or_populate_only_fills_unnamed_shops(store):
    service = FeedService(store, mock_factory())
    await service.update_settings(SHOP, {"seller_name": "Hand Named"})

    settings = await service.get_or_populate_settings(SHOP)

    assert settings.seller_name == "Hand Named"
    assert settings.seller_url is None


@pytest.mark.asyncio
async def test_get_or_populate_keeps_stored_settings_when_shopify_fails(store):
    service = FeedService(store, lambda shop: UnreachableCatalog(httpx.ConnectError("connection refused")))
    await service.update_settings(SHOP, {"store_country": "CA"})

    settings = await service.get_or_populate_settings(SHOP)

    assert settings.seller_name is None
    assert settings.store_country == "CA"


@pytest.mark.asyncio
async def test_get_or_populate_without_credentials_returns_defaults(store):
    def factory(shop):
        raise UnknownShopError(shop)

    settings = await FeedService(store, factory).get_or_populate_settings(SHOP)

    assert settings.seller_name is None
    assert settings.enable_search is True


def test_settings_from_shop_fallbacks():
    changes = settings_from_shop(SHOP, ShopInfo(), ShopPolicies())
    assert changes == {
        "seller_url": "https://mock-store.myshopify.com",
        "store_country": "US",
        "target_countries": "US",
    }


@pytest.mark.asyncio
async def test_delete_removes_settings_and_cache(store):
    service = FeedService(store, mock_factory())
    await service.generate(SHOP)

    await service.delete(SHOP)
    await service.delete(SHOP)

    assert not await service.has_settings(SHOP)
    assert await service.read(SHOP) is None
    assert SHOP not in service._locks


class BrokenSettingsStore(SQLiteFeedStore):
    def delete_settings(self, shop):
        raise RuntimeError("settings table locked")


@pytest.mark.asyncio
async def test_delete_issues_both_deletes_when_one_fails():
    store = BrokenSettingsStore(":memory:")
    store.replace_feed(SHOP, "{}", 1, 1_700_000_000_000)
    service = FeedService(store, mock_factory())

    with pytest.raises(RuntimeError, match="settings table locked"):
        await service.delete(SHOP)

    assert store.get_cached_feed(SHOP) is None
    store.close()
