"""FastAPI router serving cached feeds and the per-shop settings surface."""

import gzip
import logging
from email.utils import formatdate

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from .client import UPSTREAM_ERRORS, UnknownShopError
from .models.feed_models import FeedSettings, FeedSettingsUpdate
from .service import FeedService

logger = logging.getLogger(__name__)

FEED_MEDIA_TYPE = "application/jsonl"


def shop_from_slug(shop_slug: str) -> str:
    """Public feed URLs carry the shop's myshopify subdomain only."""
    return f"{shop_slug}.myshopify.com"


def get_feed_router(service: FeedService) -> APIRouter:
    """
    Create a FastAPI router for feed and settings endpoints.

    Args:
        service: Feed service instance

    Returns:
        APIRouter with async endpoints
    """
    router = APIRouter(tags=["feed"])

    @router.get("/feed/{shop_slug}/products.jsonl")
    async def get_feed(shop_slug: str, request: Request):
        """Serve the cached JSONL feed, gzip-encoded when the client accepts it."""
        shop = shop_from_slug(shop_slug)
        try:
            cached = await service.read(shop)
        except Exception:
            logger.exception("Error serving feed for %s", shop)
            return PlainTextResponse("Internal Server Error", status_code=500)

        if cached is None:
            return PlainTextResponse("Feed not found. Generate the feed first.", status_code=404)

        headers = {
            "Last-Modified": formatdate(cached.generated_at / 1000, usegmt=True),
            "Cache-Control": "public, max-age=3600",
            "Access-Control-Allow-Origin": "*",
            "X-Product-Count": str(cached.product_count),
            "Vary": "Accept-Encoding",
        }
        body = cached.feed_data.encode("utf-8")

        if "gzip" in request.headers.get("accept-encoding", ""):
            headers["Content-Encoding"] = "gzip"
            headers["Content-Disposition"] = "inline; filename=products.jsonl.gz"
            return Response(gzip.compress(body), media_type=FEED_MEDIA_TYPE, headers=headers)

        headers["Content-Disposition"] = "inline; filename=products.jsonl"
        return Response(body, media_type=FEED_MEDIA_TYPE, headers=headers)

    @router.get("/shops/{shop}/settings", response_model=FeedSettings)
    async def get_settings(shop: str):
        """Get the shop's feed settings, filling them from Shopify on first access."""
        return await service.get_or_populate_settings(shop)

    @router.patch("/shops/{shop}/settings", response_model=FeedSettings)
    async def update_settings(shop: str, update: FeedSettingsUpdate):
        """Apply a partial settings change; omitted fields keep their values."""
        await service.update_settings(shop, update.changes())
        return await service.get_settings(shop)

    @router.post("/shops/{shop}/settings/sync", response_model=FeedSettings)
    async def sync_settings(shop: str):
        """Re-sync seller, geo and policy settings from Shopify."""
        try:
            return await service.auto_populate(shop)
        except UnknownShopError:
            raise HTTPException(status_code=404, detail=f"No Shopify credentials for {shop}")
        except UPSTREAM_ERRORS as exc:
            logger.warning("Settings sync failed for %s: %s", shop, exc)
            raise HTTPException(status_code=502, detail="Shopify request failed") from exc

    @router.post("/shops/{shop}/feed")
    async def generate_feed(shop: str):
        """Regenerate the feed now and report the outcome."""
        result = await service.generate(shop)
        status_code = 200 if result.success else 502
        return JSONResponse(result.model_dump(), status_code=status_code)

    return router
