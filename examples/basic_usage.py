"""Example usage of the Shopify commerce feed generator."""

import asyncio
import json

from shopify_commerce_feed import FeedAppConfig, FeedService, SQLiteFeedStore
from shopify_commerce_feed.client import make_client_factory


async def main():
    """Example: generate a shop's feed and print the first items."""

    # Load configuration
    with open('config.json') as f:
        config_data = json.load(f)

    config = FeedAppConfig(**config_data)
    shop = next(iter(config.shopify.access_tokens))

    service = FeedService(
        SQLiteFeedStore(config.storage.db_path),
        make_client_factory(config),
        catalog_timeout_seconds=config.feed.catalog_timeout_seconds,
    )

    # Pull seller name, domain and policies from Shopify into the settings
    settings = await service.auto_populate(shop)
    print(f"Seller: {settings.seller_name} ({settings.seller_url})")

    result = await service.generate(shop)
    if not result.success:
        print(f"Generation failed: {result.error}")
        return
    print(f"Generated {result.product_count} feed items")

    cached = await service.read(shop)
    for line in cached.feed_data.splitlines()[:3]:
        item = json.loads(line)
        print(f"- {item['title']}: {item['price']} ({item['availability']})")


if __name__ == "__main__":
    asyncio.run(main())
