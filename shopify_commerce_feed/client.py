"""Async Shopify Admin GraphQL client for catalog, shop and policy data."""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from .config import FeedAppConfig
from .models.shopify_models import ShopifyProduct, ShopInfo, ShopPolicies, unwrap_edges
from .rate_limiter import CostBucketRateLimiter

logger = logging.getLogger(__name__)


PRODUCTS_QUERY = """
query GetProducts($first: Int!, $cursor: String) {
  products(first: $first, after: $cursor, sortKey: ID) {
    pageInfo {
      hasNextPage
      endCursor
    }
    edges {
      node {
        id
        title
        descriptionHtml
        description
        handle
        vendor
        productType
        tags
        status
        onlineStoreUrl
        images(first: 10) {
          edges { node { url altText } }
        }
        variants(first: 100) {
          edges {
            node {
              id
              title
              sku
              barcode
              price
              compareAtPrice
              availableForSale
              inventoryQuantity
              inventoryPolicy
              weight
              weightUnit
              selectedOptions { name value }
              image { url altText }
            }
          }
        }
      }
    }
  }
}
"""

SHOP_QUERY = """
query GetShop {
  shop {
    name
    url
    primaryDomain { url }
    currencyCode
    billingAddress { country countryCodeV2 }
    shipsToCountries
  }
}
"""

POLICIES_QUERY = """
query GetShopPolicies {
  shop {
    privacyPolicy { url }
    termsOfService { url }
    refundPolicy { url }
  }
}
"""

# Rough per-call cost estimates; the bucket is corrected from each response.
PRODUCTS_PAGE_COST = 50.0
SHOP_QUERY_COST = 1.0


class ShopifyAPIError(Exception):
    """Raised when the Admin API answers without the data that was asked for."""


class ShopifyAdminClient:
    """
    Client for the parts of the Shopify Admin GraphQL API the feed needs.

    This class handles:
    - Cursor-based pagination over the full product catalog
    - Cost-based rate limiting
    - A circuit breaker around the HTTP transport
    - Validating upstream payloads into typed models
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = "2025-01",
        page_size: int = 50,
        timeout: float = 30.0,
        rate_limiter: Optional[CostBucketRateLimiter] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the client.

        Args:
            shop_domain: Shop domain (e.g., 'mystore.myshopify.com')
            access_token: Admin API access token for the shop
            api_version: Admin API version
            page_size: Products requested per page
            timeout: Per-request timeout in seconds
            rate_limiter: Optional shared rate limiter
            client: Optional HTTP client (e.g., MockShopifyClient)
        """
        self.shop_domain = shop_domain
        self.api_version = api_version
        self.page_size = page_size
        self.rate_limiter = rate_limiter or CostBucketRateLimiter(bucket_size=1000.0, restore_rate=50.0)
        self.circuit_breaker = CircuitBreaker(name=shop_domain)
        self.endpoint = f"/admin/api/{api_version}/graphql.json"

        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(
                base_url=f"https://{shop_domain}",
                headers={
                    "X-Shopify-Access-Token": access_token,
                    "Content-Type": "application/json",
                },
                timeout=timeout,
            )
            self._owns_client = True

    async def close(self):
        """Close HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _graphql(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        cost: float = SHOP_QUERY_COST,
    ) -> Dict[str, Any]:
        """
        Run a rate-limited GraphQL query.

        Returns:
            The full response document (``data``, ``errors``, ``extensions``)
        """
        self.circuit_breaker.guard()
        await self.rate_limiter.acquire(cost)

        try:
            response = await self.client.request(
                "POST",
                self.endpoint,
                json={"query": query, "variables": variables or {}},
            )
            response.raise_for_status()
        except (httpx.HTTPStatusError, httpx.RequestError):
            self.circuit_breaker.record_failure()
            raise
        self.circuit_breaker.record_success()

        payload = response.json()
        cost_info = (payload.get("extensions") or {}).get("cost") or {}
        self.rate_limiter.sync(cost_info.get("throttleStatus"))
        return payload

    async def fetch_all_products(self) -> List[ShopifyProduct]:
        """
        Fetch every product, following the pagination cursor page by page.

        A page without product data ends pagination early; products from
        earlier pages are still returned.
        """
        products: List[ShopifyProduct] = []
        cursor: Optional[str] = None
        has_next_page = True

        while has_next_page:
            payload = await self._graphql(
                PRODUCTS_QUERY,
                {"first": self.page_size, "cursor": cursor},
                cost=PRODUCTS_PAGE_COST,
            )
            connection = (payload.get("data") or {}).get("products")
            page_info = connection.get("pageInfo") if connection else None
            if not connection or page_info is None:
                logger.error(
                    "Failed to fetch products for %s: %s",
                    self.shop_domain,
                    payload.get("errors"),
                )
                break

            products.extend(
                ShopifyProduct.model_validate(node) for node in unwrap_edges(connection)
            )
            has_next_page = bool(page_info.get("hasNextPage"))
            cursor = page_info.get("endCursor")
            if has_next_page and not cursor:
                logger.error("Missing end cursor for %s, stopping pagination", self.shop_domain)
                break

        logger.debug("Fetched %d products for %s", len(products), self.shop_domain)
        return products

    async def fetch_shop_info(self) -> ShopInfo:
        payload = await self._graphql(SHOP_QUERY)
        shop = (payload.get("data") or {}).get("shop")
        if not shop:
            raise ShopifyAPIError(
                f"Shop query for {self.shop_domain} returned no data: {payload.get('errors')}"
            )
        return ShopInfo.model_validate(shop)

    async def fetch_shop_policies(self) -> ShopPolicies:
        """
        Fetch published policy URLs.

        Newer API versions no longer serve these fields; a query error or
        missing policy simply leaves the corresponding URL empty.
        """
        payload = await self._graphql(POLICIES_QUERY)
        shop = (payload.get("data") or {}).get("shop")
        if payload.get("errors") or not shop:
            logger.info("Shop policies unavailable for %s", self.shop_domain)
            return ShopPolicies()

        def policy_url(key: str) -> Optional[str]:
            return (shop.get(key) or {}).get("url") or None

        return ShopPolicies(
            privacy_url=policy_url("privacyPolicy"),
            terms_url=policy_url("termsOfService"),
            refund_url=policy_url("refundPolicy"),
        )


class UnknownShopError(KeyError):
    """Raised when no access token is configured for a shop."""


# Failures talking to the Admin API, as opposed to local misconfiguration.
UPSTREAM_ERRORS = (httpx.HTTPError, ShopifyAPIError, CircuitBreakerOpen)


def make_client_factory(config: FeedAppConfig) -> Callable[[str], ShopifyAdminClient]:
    """
    Build a factory returning an Admin API client for a shop.

    Each shop gets its own rate limiter, shared across the clients created
    for it, since Shopify throttles per shop and app.
    """
    limiters: Dict[str, CostBucketRateLimiter] = {}

    def factory(shop: str) -> ShopifyAdminClient:
        token = config.shopify.access_tokens.get(shop)
        if not token:
            raise UnknownShopError(shop)
        limiter = limiters.setdefault(
            shop,
            CostBucketRateLimiter(
                bucket_size=config.rate_limit.bucket_size,
                restore_rate=config.rate_limit.restore_rate,
            ),
        )
        return ShopifyAdminClient(
            shop_domain=shop,
            access_token=token,
            api_version=config.shopify.api_version,
            page_size=config.feed.page_size,
            timeout=config.feed.http_timeout_seconds,
            rate_limiter=limiter,
        )

    return factory


__all__ = [
    "ShopifyAdminClient",
    "ShopifyAPIError",
    "UnknownShopError",
    "UPSTREAM_ERRORS",
    "CircuitBreakerOpen",
    "make_client_factory",
]
