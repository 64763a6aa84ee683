"""Example feed server with webhooks."""

import json
import logging

from shopify_commerce_feed import FeedAppConfig, FeedService, SQLiteFeedStore, WebhookHandler
from shopify_commerce_feed.client import make_client_factory
from shopify_commerce_feed.config import configure_logging


# Load configuration
with open('config.json') as f:
    config_data = json.load(f)

config = FeedAppConfig(**config_data)
configure_logging(config)

service = FeedService(SQLiteFeedStore(config.storage.db_path), make_client_factory(config))
handler = WebhookHandler(service, config.shopify.webhook_secret)


# Extra handlers run after the built-in feed regeneration
@handler.on('products/delete')
async def on_product_delete(shop, product_data):
    """Custom handler for product deletions."""
    logging.getLogger("webhook_server").info(
        "Product %s removed from %s", product_data.get('id'), shop
    )


app = handler.create_fastapi_app()

# Run with: uvicorn examples.webhook_server:app --reload
