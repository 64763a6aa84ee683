"""Mock Shopify Admin GraphQL transport for sandbox mode."""

import copy
from typing import Any, Dict, List, Optional

import httpx


def _connection(nodes: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"edges": [{"node": node} for node in nodes]}


SAMPLE_SHOP = {
    "name": "Mock Store",
    "url": "https://mock-store.myshopify.com",
    "primaryDomain": {"url": "https://mockstore.example/"},
    "currencyCode": "USD",
    "billingAddress": {"country": "United States", "countryCodeV2": "US"},
    "shipsToCountries": ["US", "CA"],
}

SAMPLE_PRODUCTS = [
    {
        "id": "gid://shopify/Product/101",
        "title": "Mock T-Shirt",
        "description": "",
        "descriptionHtml": "<p>Soft&nbsp;cotton <strong>t-shirt</strong></p>",
        "handle": "mock-t-shirt",
        "vendor": "MockBrand",
        "productType": "Apparel",
        "tags": ["cotton"],
        "status": "ACTIVE",
        "onlineStoreUrl": None,
        "images": _connection([
            {"url": "https://cdn.example/tshirt-front.jpg", "altText": "Front"},
            {"url": "https://cdn.example/tshirt-back.jpg", "altText": "Back"},
        ]),
        "variants": _connection([
            {
                "id": "gid://shopify/ProductVariant/1001",
                "title": "Red / Small",
                "sku": "TS-RED-S",
                "barcode": None,
                "price": "19.99",
                "compareAtPrice": "24.99",
                "availableForSale": True,
                "inventoryQuantity": 12,
                "inventoryPolicy": "DENY",
                "weight": 0.2,
                "weightUnit": "KILOGRAMS",
                "selectedOptions": [
                    {"name": "Color", "value": "Red"},
                    {"name": "Size", "value": "Small"},
                ],
                "image": None,
            },
            {
                "id": "gid://shopify/ProductVariant/1002",
                "title": "Blue / Large",
                "sku": None,
                "barcode": None,
                "price": "19.99",
                "compareAtPrice": None,
                "availableForSale": False,
                "inventoryQuantity": 0,
                "inventoryPolicy": "DENY",
                "weight": 0,
                "weightUnit": "KILOGRAMS",
                "selectedOptions": [
                    {"name": "Color", "value": "Blue"},
                    {"name": "Size", "value": "Large"},
                ],
                "image": {"url": "https://cdn.example/tshirt-blue.jpg", "altText": None},
            },
        ]),
    },
    {
        "id": "gid://shopify/Product/102",
        "title": "Mock Mug",
        "description": "Stoneware mug",
        "descriptionHtml": "<p>Stoneware mug</p>",
        "handle": "mock-mug",
        "vendor": "",
        "productType": "",
        "tags": [],
        "status": "ACTIVE",
        "onlineStoreUrl": "https://mockstore.example/products/mock-mug",
        "images": _connection([{"url": "https://cdn.example/mug.jpg", "altText": None}]),
        "variants": _connection([
            {
                "id": "gid://shopify/ProductVariant/2001",
                "title": "Default Title",
                "sku": "MUG-1",
                "barcode": None,
                "price": "10.00",
                "compareAtPrice": None,
                "availableForSale": True,
                "inventoryQuantity": 3,
                "inventoryPolicy": "DENY",
                "weight": 1,
                "weightUnit": "POUNDS",
                "selectedOptions": [{"name": "Title", "value": "Default Title"}],
                "image": None,
            },
        ]),
    },
    {
        "id": "gid://shopify/Product/103",
        "title": "Draft Poster",
        "description": "Not yet published",
        "descriptionHtml": "",
        "handle": "draft-poster",
        "vendor": "MockBrand",
        "productType": "Art",
        "tags": [],
        "status": "DRAFT",
        "onlineStoreUrl": None,
        "images": _connection([{"url": "https://cdn.example/poster.jpg", "altText": None}]),
        "variants": _connection([
            {
                "id": "gid://shopify/ProductVariant/3001",
                "title": "Default Title",
                "sku": "POSTER",
                "price": "15.00",
                "availableForSale": True,
                "inventoryPolicy": "DENY",
                "selectedOptions": [{"name": "Title", "value": "Default Title"}],
            },
        ]),
    },
]


class MockShopifyClient:
    """
    Mock HTTP client that answers Admin GraphQL queries with sample data.

    Products are served in pages of ``page_size`` so pagination behaves as it
    does against a real shop. ``policies`` may be set to None to mimic API
    versions that no longer serve policy fields.
    """

    def __init__(
        self,
        products: Optional[List[Dict[str, Any]]] = None,
        shop: Optional[Dict[str, Any]] = None,
        policies: Optional[Dict[str, Any]] = None,
        page_size: int = 2,
    ):
        self.products = copy.deepcopy(SAMPLE_PRODUCTS if products is None else products)
        self.shop = copy.deepcopy(SAMPLE_SHOP if shop is None else shop)
        self.policies = policies
        self.page_size = page_size
        self.requests: List[Dict[str, Any]] = []

    def _products_page(self, cursor: Optional[str]) -> Dict[str, Any]:
        start = int(cursor) if cursor else 0
        end = start + self.page_size
        page = self.products[start:end]
        has_next_page = end < len(self.products)
        return {
            "products": {
                "pageInfo": {
                    "hasNextPage": has_next_page,
                    "endCursor": str(end) if has_next_page else None,
                },
                "edges": [{"node": node} for node in page],
            }
        }

    def _answer(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        if "GetShopPolicies" in query:
            if self.policies is None:
                return {"errors": [{"message": "Field 'privacyPolicy' doesn't exist on type 'Shop'"}]}
            return {"data": {"shop": self.policies}}
        if "GetShop" in query:
            return {"data": {"shop": self.shop}}
        if "GetProducts" in query:
            return {"data": self._products_page(variables.get("cursor"))}
        return {"errors": [{"message": "Unsupported query"}]}

    async def request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        body = kwargs.get("json") or {}
        self.requests.append(body)
        data = self._answer(body.get("query", ""), body.get("variables") or {})
        return httpx.Response(
            200,
            json=data,
            request=httpx.Request(method, f"https://mock-store.myshopify.com{endpoint}"),
        )

    async def aclose(self) -> None:
        return None
