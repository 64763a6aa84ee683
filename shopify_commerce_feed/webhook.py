"""Webhook handling and the application factory for the feed service."""

import base64
import hashlib
import hmac
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import FastAPI, Request, HTTPException, status

from .client import make_client_factory
from .config import FeedAppConfig, configure_logging
from .router import get_feed_router
from .service import CatalogClientFactory, FeedService
from .storage import BaseFeedStore, SQLiteFeedStore

logger = logging.getLogger(__name__)

PRODUCT_TOPICS = ("products/create", "products/update", "products/delete")
UNINSTALL_TOPIC = "app/uninstalled"

WebhookCallback = Callable[[str, Dict[str, Any]], Awaitable[None]]


class WebhookHandler:
    """
    Handle Shopify webhooks that affect the feed.

    Supports webhook topics:
    - products/create, products/update, products/delete: regenerate the feed
      in the background for shops that have feed settings
    - app/uninstalled: delete the shop's settings and cached feed
    """

    def __init__(self, service: FeedService, webhook_secret: Optional[str] = None):
        """
        Initialize webhook handler.

        Args:
            service: Feed service instance
            webhook_secret: Secret for webhook verification
        """
        self.service = service
        self.webhook_secret = webhook_secret
        self._handlers: Dict[str, List[WebhookCallback]] = {}

        for topic in PRODUCT_TOPICS:
            self.on(topic)(self._regenerate_feed)
        self.on(UNINSTALL_TOPIC)(self._delete_feed_data)

    def verify_webhook(self, data: bytes, hmac_header: str) -> bool:
        """
        Verify Shopify webhook signature.

        Args:
            data: Raw request body
            hmac_header: Base64 HMAC-SHA256 header from Shopify

        Returns:
            True if signature is valid
        """
        if not self.webhook_secret:
            return True  # Skip verification if no secret configured

        digest = hmac.new(
            self.webhook_secret.encode("utf-8"),
            data,
            hashlib.sha256
        ).digest()
        computed_hmac = base64.b64encode(digest).decode("ascii")

        return hmac.compare_digest(computed_hmac, hmac_header)

    def on(self, topic: str):
        """
        Decorator to register webhook event handlers.

        Args:
            topic: Webhook topic (e.g., 'products/update')

        Example:
            @webhook_handler.on('products/update')
            async def handle_product_update(shop, product_data):
                ...
        """
        def decorator(func: WebhookCallback):
            self._handlers.setdefault(topic, []).append(func)
            return func
        return decorator

    async def handle_webhook(self, topic: str, shop: str, data: Dict[str, Any]):
        """
        Process webhook event and call registered handlers.

        Args:
            topic: Webhook topic
            shop: Shop domain the event belongs to
            data: Webhook payload data
        """
        logger.info("Received %s webhook for %s", topic, shop)
        for handler in self._handlers.get(topic, []):
            await handler(shop, data)

    async def _regenerate_feed(self, shop: str, data: Dict[str, Any]) -> None:
        if not await self.service.has_settings(shop):
            logger.info("No feed settings for %s, skipping regeneration", shop)
            return
        # Acknowledge right away; generation finishes in the background.
        self.service.schedule_generation(shop)

    async def _delete_feed_data(self, shop: str, data: Dict[str, Any]) -> None:
        await self.service.delete(shop)

    def create_fastapi_app(self) -> FastAPI:
        """
        Create a FastAPI app with the webhook endpoint and the feed routes.

        Returns:
            FastAPI application
        """
        @asynccontextmanager
        async def lifespan(_app: FastAPI):
            yield
            await self.service.drain()

        app = FastAPI(title="Shopify Commerce Feed", lifespan=lifespan)
        app.include_router(get_feed_router(self.service))

        @app.post("/webhooks/shopify")
        async def shopify_webhook(request: Request):
            """Endpoint to receive Shopify webhooks."""
            hmac_header = request.headers.get("X-Shopify-Hmac-Sha256", "")
            topic = request.headers.get("X-Shopify-Topic", "")
            shop = request.headers.get("X-Shopify-Shop-Domain", "")

            body = await request.body()

            if not self.verify_webhook(body, hmac_header):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid webhook signature"
                )
            if not shop:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Missing shop domain header"
                )

            try:
                data = json.loads(body) if body else {}
            except json.JSONDecodeError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid JSON payload"
                )

            await self.handle_webhook(topic, shop, data)

            return {"status": "success"}

        @app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {"status": "healthy"}

        return app


def create_feed_app(
    config: FeedAppConfig,
    store: Optional[BaseFeedStore] = None,
    client_factory: Optional[CatalogClientFactory] = None,
) -> FastAPI:
    """
    Convenience function to create the feed app from configuration.

    Args:
        config: Service configuration
        store: Optional store (defaults to SQLite at the configured path)
        client_factory: Optional Shopify client factory (defaults to configured access tokens)

    Returns:
        FastAPI app ready to run

    Example:
        app = create_feed_app(config)

        # Run with uvicorn:
        # uvicorn app:app --host 0.0.0.0 --port 8000
    """
    configure_logging(config)
    service = FeedService(
        store or SQLiteFeedStore(config.storage.db_path),
        client_factory or make_client_factory(config),
        catalog_timeout_seconds=config.feed.catalog_timeout_seconds,
    )
    handler = WebhookHandler(service, config.shopify.webhook_secret)
    return handler.create_fastapi_app()
