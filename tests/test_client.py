import json

import httpx
import pytest

from shopify_commerce_feed.circuit_breaker import CircuitBreakerOpen
from shopify_commerce_feed.client import ShopifyAdminClient, ShopifyAPIError, UnknownShopError, make_client_factory
from shopify_commerce_feed.config import FeedAppConfig
from shopify_commerce_feed.mock_client import SAMPLE_PRODUCTS, MockShopifyClient
from shopify_commerce_feed.rate_limiter import CostBucketRateLimiter

SHOP = "mock-store.myshopify.com"


def transport_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=f"https://{SHOP}")


def products_page(nodes, has_next_page, end_cursor):
    return {
        "data": {
            "products": {
                "pageInfo": {"hasNextPage": has_next_page, "endCursor": end_cursor},
                "edges": [{"node": node} for node in nodes],
            }
        }
    }


@pytest.mark.asyncio
async def test_fetch_all_products_follows_cursor():
    mock = MockShopifyClient(page_size=1)
    client = ShopifyAdminClient(SHOP, "shpat_test", page_size=1, client=mock)

    products = await client.fetch_all_products()

    assert [p.handle for p in products] == ["mock-t-shirt", "mock-mug", "draft-poster"]
    assert [r["variables"]["cursor"] for r in mock.requests] == [None, "1", "2"]
    assert all(r["variables"]["first"] == 1 for r in mock.requests)
    assert len(products[0].variants) == 2
    assert products[0].images[1].url == "https://cdn.example/tshirt-back.jpg"


@pytest.mark.asyncio
async def test_malformed_page_stops_pagination_and_keeps_earlier_pages():
    pages = [
        products_page(SAMPLE_PRODUCTS[:1], True, "c1"),
        {"errors": [{"message": "Throttled"}]},
        products_page(SAMPLE_PRODUCTS[1:], False, None),
    ]
    calls = []

    def handler(request):
        calls.append(json.loads(request.content))
        return httpx.Response(200, json=pages[len(calls) - 1])

    async with transport_client(handler) as http:
        client = ShopifyAdminClient(SHOP, "shpat_test", client=http)
        products = await client.fetch_all_products()

    assert [p.handle for p in products] == ["mock-t-shirt"]
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_requests_go_to_versioned_graphql_endpoint():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": {"shop": {"name": "Mock Store", "url": "https://mock-store.myshopify.com"}}})

    async with transport_client(handler) as http:
        client = ShopifyAdminClient(SHOP, "shpat_test", api_version="2025-01", client=http)
        info = await client.fetch_shop_info()

    assert info.name == "Mock Store"
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/admin/api/2025-01/graphql.json"


@pytest.mark.asyncio
async def test_shop_info_without_data_raises():
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "Access denied"}]})

    async with transport_client(handler) as http:
        client = ShopifyAdminClient(SHOP, "shpat_test", client=http)
        with pytest.raises(ShopifyAPIError, match="Access denied"):
            await client.fetch_shop_info()


@pytest.mark.asyncio
async def test_policy_errors_yield_empty_policies():
    client = ShopifyAdminClient(SHOP, "shpat_test", client=MockShopifyClient(policies=None))
    policies = await client.fetch_shop_policies()
    assert (policies.privacy_url, policies.terms_url, policies.refund_url) == (None, None, None)


@pytest.mark.asyncio
async def test_http_errors_propagate_and_open_the_circuit():
    def handler(request):
        return httpx.Response(503, json={"errors": "unavailable"})

    async with transport_client(handler) as http:
        client = ShopifyAdminClient(SHOP, "shpat_test", client=http)
        for _ in range(3):
            with pytest.raises(httpx.HTTPStatusError):
                await client.fetch_shop_info()
        with pytest.raises(CircuitBreakerOpen):
            await client.fetch_shop_info()


@pytest.mark.asyncio
async def test_throttle_status_syncs_rate_limiter():
    def handler(request):
        return httpx.Response(200, json={
            "data": {"shop": {"name": "Mock Store"}},
            "extensions": {
                "cost": {
                    "requestedQueryCost": 1,
                    "throttleStatus": {"maximumAvailable": 2000.0, "currentlyAvailable": 1500.0, "restoreRate": 100.0},
                }
            },
        })

    limiter = CostBucketRateLimiter(bucket_size=1000.0, restore_rate=50.0)
    async with transport_client(handler) as http:
        client = ShopifyAdminClient(SHOP, "shpat_test", rate_limiter=limiter, client=http)
        await client.fetch_shop_info()

    assert limiter.bucket_size == 2000.0
    assert limiter.restore_rate == 100.0
    assert 1500.0 <= limiter.available <= 2000.0


@pytest.mark.asyncio
async def test_rate_limiter_spends_cost_points():
    limiter = CostBucketRateLimiter(bucket_size=100.0, restore_rate=1.0)
    await limiter.acquire(40)
    await limiter.acquire(40)
    assert limiter.available < 21


def test_client_factory_uses_configured_tokens():
    config = FeedAppConfig(
        shopify={"api_version": "2024-10", "access_tokens": {SHOP: "shpat_live"}},
        feed={"page_size": 25},
    )
    factory = make_client_factory(config)

    client = factory(SHOP)
    assert client.endpoint == "/admin/api/2024-10/graphql.json"
    assert client.page_size == 25
    assert client.client.headers["X-Shopify-Access-Token"] == "shpat_live"
    assert factory(SHOP).rate_limiter is client.rate_limiter

    with pytest.raises(UnknownShopError):
        factory("unknown.myshopify.com")
