"""Pydantic models for Shopify Admin GraphQL responses."""

from typing import Optional, List, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator


def unwrap_edges(value: Any) -> Any:
    """Flatten a GraphQL connection (``{"edges": [{"node": ...}]}``) into a list."""
    if isinstance(value, dict) and "edges" in value:
        return [edge["node"] for edge in value.get("edges") or []]
    return value


class ShopifyImage(BaseModel):
    """Shopify image data."""
    url: str
    alt_text: Optional[str] = Field(None, alias="altText")

    model_config = ConfigDict(populate_by_name=True)


class SelectedOption(BaseModel):
    """A name/value option pair selected by a variant."""
    name: str
    value: str


class ShopifyVariant(BaseModel):
    """Shopify product variant."""
    id: str
    title: str = ""
    sku: Optional[str] = None
    barcode: Optional[str] = None
    price: str
    compare_at_price: Optional[str] = Field(None, alias="compareAtPrice")
    available_for_sale: bool = Field(False, alias="availableForSale")
    inventory_quantity: Optional[int] = Field(None, alias="inventoryQuantity")
    inventory_policy: str = Field("DENY", alias="inventoryPolicy")
    weight: Optional[float] = None
    weight_unit: Optional[str] = Field(None, alias="weightUnit")
    selected_options: List[SelectedOption] = Field(default_factory=list, alias="selectedOptions")
    image: Optional[ShopifyImage] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("price", "compare_at_price", mode="before")
    @classmethod
    def _money_as_text(cls, value: Any) -> Any:
        # Admin API serializes Money scalars as strings; keep them verbatim.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("selected_options", mode="before")
    @classmethod
    def _no_null_options(cls, value: Any) -> Any:
        return value or []


class ShopifyProduct(BaseModel):
    """Shopify product data model."""
    id: str
    title: str
    description: str = ""
    description_html: str = Field("", alias="descriptionHtml")
    handle: str
    vendor: Optional[str] = None
    product_type: Optional[str] = Field(None, alias="productType")
    tags: List[str] = Field(default_factory=list)
    status: str
    online_store_url: Optional[str] = Field(None, alias="onlineStoreUrl")
    images: List[ShopifyImage] = Field(default_factory=list)
    variants: List[ShopifyVariant] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("images", "variants", mode="before")
    @classmethod
    def _flatten_connection(cls, value: Any) -> Any:
        return unwrap_edges(value) or []

    @field_validator("description", "description_html", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return value or ""


class ShopDomain(BaseModel):
    url: str


class BillingAddress(BaseModel):
    country: Optional[str] = None
    country_code_v2: Optional[str] = Field(None, alias="countryCodeV2")

    model_config = ConfigDict(populate_by_name=True)


class ShopInfo(BaseModel):
    """Shop-level data used for seller, currency and geo fields."""
    name: str = ""
    url: str = ""
    primary_domain: Optional[ShopDomain] = Field(None, alias="primaryDomain")
    currency_code: Optional[str] = Field(None, alias="currencyCode")
    billing_address: Optional[BillingAddress] = Field(None, alias="billingAddress")
    ships_to_countries: List[str] = Field(default_factory=list, alias="shipsToCountries")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def billing_country_code(self) -> Optional[str]:
        if self.billing_address is None:
            return None
        return self.billing_address.country_code_v2


class ShopPolicies(BaseModel):
    """Published policy URLs; every field may legitimately be empty."""
    privacy_url: Optional[str] = None
    terms_url: Optional[str] = None
    refund_url: Optional[str] = None
