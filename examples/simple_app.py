from fastapi import FastAPI

from shopify_commerce_feed import FeedService, SQLiteFeedStore, get_feed_router
from shopify_commerce_feed.client import ShopifyAdminClient
from shopify_commerce_feed.mock_client import MockShopifyClient


def sandbox_client(shop: str) -> ShopifyAdminClient:
    return ShopifyAdminClient(shop, "sandbox", client=MockShopifyClient())


app = FastAPI()
service = FeedService(SQLiteFeedStore(":memory:"), sandbox_client)
app.include_router(get_feed_router(service))

# Run: uvicorn examples.simple_app:app --reload
# Then: curl -X POST localhost:8000/shops/mock-store.myshopify.com/feed
#       curl localhost:8000/feed/mock-store/products.jsonl
