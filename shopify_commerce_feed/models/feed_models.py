"""Pydantic models for the commerce feed, its settings and its cache."""

from typing import Optional, Literal
from pydantic import BaseModel, Field, ConfigDict


Availability = Literal["in_stock", "out_of_stock", "preorder"]


class FeedSettings(BaseModel):
    """Per-shop feed configuration, created with defaults on first access."""
    shop: str
    enable_search: bool = True
    enable_checkout: bool = False
    seller_name: Optional[str] = None
    seller_url: Optional[str] = None
    privacy_policy_url: Optional[str] = None
    terms_of_service_url: Optional[str] = None
    return_policy_url: Optional[str] = None
    accepts_returns: bool = True
    return_deadline_days: int = 30
    accepts_exchanges: bool = True
    store_country: str = "US"
    target_countries: str = "US"

    # Status of the last successful generation
    feed_generated_at: Optional[int] = None
    product_count: int = 0


class FeedSettingsUpdate(BaseModel):
    """Partial settings change; only fields that were explicitly set are applied."""
    enable_search: Optional[bool] = None
    enable_checkout: Optional[bool] = None
    seller_name: Optional[str] = None
    seller_url: Optional[str] = None
    privacy_policy_url: Optional[str] = None
    terms_of_service_url: Optional[str] = None
    return_policy_url: Optional[str] = None
    accepts_returns: Optional[bool] = None
    return_deadline_days: Optional[int] = Field(None, ge=0)
    accepts_exchanges: Optional[bool] = None
    store_country: Optional[str] = None
    target_countries: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class FeedRecord(BaseModel):
    """
    One feed line: a single purchasable variant.

    Field order is the wire order. Optional fields left as ``None`` are
    omitted from the serialized line.
    """
    # Eligibility flags
    is_eligible_search: bool
    is_eligible_checkout: bool

    # Basic product data
    item_id: str
    title: str
    description: str
    url: str

    # Item info
    condition: Literal["new"] = "new"
    product_category: str
    brand: str

    # Media
    image_url: str
    additional_image_urls: Optional[str] = None

    # Price & promotions
    price: str
    sale_price: Optional[str] = None

    # Availability
    availability: Availability

    # Variants
    group_id: str
    listing_has_variations: bool
    variant_dict: Optional[str] = None
    item_group_title: str
    color: Optional[str] = None
    size: Optional[str] = None
    offer_id: Optional[str] = None

    # Weight
    weight: Optional[str] = None
    item_weight_unit: Optional[str] = None

    # Merchant info
    seller_name: str
    seller_url: str
    seller_privacy_policy: Optional[str] = None
    seller_tos: Optional[str] = None

    # Returns
    accepts_returns: Optional[bool] = None
    return_deadline_in_days: Optional[int] = None
    accepts_exchanges: Optional[bool] = None
    return_policy: Optional[str] = None

    # Geo
    target_countries: str
    store_country: str

    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)


class CachedFeed(BaseModel):
    """The most recent successfully generated feed for a shop."""
    shop: str
    feed_data: str
    product_count: int
    generated_at: int = Field(description="Milliseconds since the epoch")


class GenerationResult(BaseModel):
    """Outcome of a feed generation run."""
    success: bool
    product_count: int = 0
    error: Optional[str] = None
