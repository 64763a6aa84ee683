"""
Shopify Commerce Feed

Maps a Shopify catalog to a JSON Lines commerce feed for shopping
assistants, caches it per shop and serves it over HTTP.
"""

__version__ = "0.1.0"

from .client import ShopifyAdminClient
from .config import FeedAppConfig
from .mapper import feed_to_jsonl, map_products_to_feed, map_variant_to_record
from .mock_client import MockShopifyClient
from .router import get_feed_router
from .service import FeedService
from .storage import SQLiteFeedStore
from .text import strip_markup
from .webhook import WebhookHandler, create_feed_app

__all__ = [
    "ShopifyAdminClient",
    "FeedAppConfig",
    "FeedService",
    "SQLiteFeedStore",
    "MockShopifyClient",
    "WebhookHandler",
    "create_feed_app",
    "get_feed_router",
    "map_variant_to_record",
    "map_products_to_feed",
    "feed_to_jsonl",
    "strip_markup",
]
