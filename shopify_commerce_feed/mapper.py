"""Mapping of Shopify products and variants to commerce feed records."""

import json
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence

from .models.shopify_models import ShopifyProduct, ShopifyVariant, ShopInfo
from .models.feed_models import Availability, FeedRecord, FeedSettings
from .text import strip_markup

DEFAULT_OPTION_VALUE = "Default Title"
DEFAULT_CURRENCY = "USD"
DEFAULT_COUNTRY = "US"
DEFAULT_CATEGORY = "Uncategorized"

WEIGHT_UNITS = {
    "KILOGRAMS": "kg",
    "GRAMS": "g",
    "POUNDS": "lb",
    "OUNCES": "oz",
}


def extract_shopify_id(gid: str) -> str:
    """
    Reduce a global ID to its trailing segment.

    ``gid://shopify/Product/123456`` becomes ``123456``.
    """
    return gid.split("/")[-1]


def get_availability(variant: ShopifyVariant) -> Availability:
    """
    Derive feed availability for a variant.

    Variants that keep selling when out of stock are always in stock. The
    last branch repeats the ``available_for_sale`` check and is kept so edge
    cases keep producing the same output.
    """
    if variant.inventory_policy == "CONTINUE":
        return "in_stock"

    if variant.available_for_sale:
        return "in_stock"

    if variant.inventory_quantity is not None and variant.inventory_quantity <= 0:
        return "out_of_stock"

    return "in_stock" if variant.available_for_sale else "out_of_stock"


def map_weight_unit(unit: Optional[str]) -> str:
    return WEIGHT_UNITS.get(unit or "", "lb")


def build_variant_dict(variant: ShopifyVariant) -> Optional[Dict[str, str]]:
    """Option name (lower-cased) to value, or None for default-only variants."""
    options = variant.selected_options
    if not options or (len(options) == 1 and options[0].value == DEFAULT_OPTION_VALUE):
        return None
    return {opt.name.lower(): opt.value for opt in options}


def extract_option(variant: ShopifyVariant, option_name: str) -> Optional[str]:
    wanted = option_name.lower()
    for opt in variant.selected_options:
        if opt.name.lower() == wanted:
            return opt.value if opt.value and opt.value != DEFAULT_OPTION_VALUE else None
    return None


def _strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


def resolve_shop_url(shop_info: ShopInfo, settings: FeedSettings) -> str:
    """Seller URL override, else the primary domain, else the shop URL."""
    primary = shop_info.primary_domain.url if shop_info.primary_domain else None
    return _strip_trailing_slash(settings.seller_url or primary or shop_info.url or "")


def build_product_url(shop_url: str, handle: str) -> str:
    return f"{_strip_trailing_slash(shop_url)}/products/{handle}"


def has_variations(product: ShopifyProduct, variant: ShopifyVariant) -> bool:
    options = variant.selected_options
    return len(product.variants) > 1 or (
        len(options) > 0 and options[0].value != DEFAULT_OPTION_VALUE
    )


def _to_decimal(amount: Optional[str]) -> Optional[Decimal]:
    if amount is None:
        return None
    try:
        value = Decimal(amount)
    except (InvalidOperation, ValueError):
        return None
    return value if value.is_finite() else None


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _resolve_prices(variant: ShopifyVariant, currency: str) -> tuple[str, Optional[str]]:
    """
    Return ``(price, sale_price)`` strings.

    A compare-at amount above the current price is advertised as the price,
    with the current price becoming the sale price.
    """
    price = _to_decimal(variant.price)
    compare_at = _to_decimal(variant.compare_at_price)
    if price is not None and compare_at is not None and compare_at > price:
        return f"{variant.compare_at_price} {currency}", f"{variant.price} {currency}"
    return f"{variant.price} {currency}", None


def map_variant_to_record(
    product: ShopifyProduct,
    variant: ShopifyVariant,
    shop_info: ShopInfo,
    settings: FeedSettings,
) -> Optional[FeedRecord]:
    """
    Map a single product variant to a feed record.

    Args:
        product: Product owning the variant
        variant: Variant to map
        shop_info: Shop-level data (currency, domain, billing country)
        settings: Feed settings for the shop

    Returns:
        The feed record, or None when the pair is not eligible (inactive
        product, or no image to show)
    """
    if product.status != "ACTIVE":
        return None

    product_id = extract_shopify_id(product.id)
    variant_id = extract_shopify_id(variant.id)
    shop_url = resolve_shop_url(shop_info, settings)

    product_images = [img.url for img in product.images]
    main_image = (variant.image.url if variant.image else None) or (
        product_images[0] if product_images else ""
    )
    if not main_image:
        return None

    additional_images = [url for url in product_images if url != main_image]

    currency = shop_info.currency_code or DEFAULT_CURRENCY
    price, sale_price = _resolve_prices(variant, currency)

    variations = has_variations(product, variant)
    variant_dict = build_variant_dict(variant)
    item_id = variant.sku or f"{product_id}-{variant_id}"

    weight = None
    weight_unit = None
    if variant.weight and variant.weight > 0:
        weight = _format_number(variant.weight)
        weight_unit = map_weight_unit(variant.weight_unit)

    returns = {}
    if settings.return_policy_url:
        returns = {
            "accepts_returns": settings.accepts_returns,
            "return_deadline_in_days": settings.return_deadline_days,
            "accepts_exchanges": settings.accepts_exchanges,
            "return_policy": settings.return_policy_url,
        }

    return FeedRecord(
        is_eligible_search=settings.enable_search,
        is_eligible_checkout=settings.enable_checkout,
        item_id=item_id,
        title=f"{product.title} - {variant.title}" if variations else product.title,
        description=product.description or strip_markup(product.description_html) or product.title,
        url=product.online_store_url or build_product_url(shop_url, product.handle),
        product_category=product.product_type or DEFAULT_CATEGORY,
        brand=product.vendor or settings.seller_name or "",
        image_url=main_image,
        additional_image_urls=",".join(additional_images) or None,
        price=price,
        sale_price=sale_price,
        availability=get_availability(variant),
        group_id=product_id,
        listing_has_variations=variations,
        variant_dict=json.dumps(variant_dict, separators=(",", ":"), ensure_ascii=False) if variant_dict else None,
        item_group_title=product.title,
        color=extract_option(variant, "color"),
        size=extract_option(variant, "size"),
        offer_id=item_id,
        weight=weight,
        item_weight_unit=weight_unit,
        seller_name=settings.seller_name or shop_info.name or "",
        seller_url=shop_url,
        seller_privacy_policy=settings.privacy_policy_url or None,
        seller_tos=settings.terms_of_service_url or None,
        target_countries=settings.target_countries or DEFAULT_COUNTRY,
        store_country=settings.store_country or shop_info.billing_country_code or DEFAULT_COUNTRY,
        **returns,
    )


def map_products_to_feed(
    products: Sequence[ShopifyProduct],
    shop_info: ShopInfo,
    settings: FeedSettings,
) -> List[FeedRecord]:
    """
    Map a catalog to feed records, one per eligible variant.

    Products and variants keep their input order.
    """
    records: List[FeedRecord] = []
    for product in products:
        for variant in product.variants:
            record = map_variant_to_record(product, variant, shop_info, settings)
            if record is not None:
                records.append(record)
    return records


def feed_to_jsonl(records: Sequence[FeedRecord]) -> str:
    """Serialize records as JSON Lines (no trailing newline)."""
    return "\n".join(
        json.dumps(record.to_wire(), separators=(",", ":"), ensure_ascii=False)
        for record in records
    )
