"""Data models for Shopify input and commerce feed output."""

from .shopify_models import (
    ShopifyProduct,
    ShopifyVariant,
    ShopifyImage,
    SelectedOption,
    ShopInfo,
    ShopPolicies,
)
from .feed_models import (
    Availability,
    FeedRecord,
    FeedSettings,
    FeedSettingsUpdate,
    CachedFeed,
    GenerationResult,
)

__all__ = [
    "ShopifyProduct",
    "ShopifyVariant",
    "ShopifyImage",
    "SelectedOption",
    "ShopInfo",
    "ShopPolicies",
    "Availability",
    "FeedRecord",
    "FeedSettings",
    "FeedSettingsUpdate",
    "CachedFeed",
    "GenerationResult",
]
