"""Configuration management for the Shopify commerce feed service."""

import logging
from typing import Optional, Dict
from pydantic import BaseModel, Field, ConfigDict


class ShopifyConfig(BaseModel):
    """Shopify Admin API configuration."""
    api_version: str = Field("2025-01", description="Shopify Admin API version")
    webhook_secret: Optional[str] = Field(None, description="Webhook verification secret")
    access_tokens: Dict[str, str] = Field(
        default_factory=dict,
        description="Offline Admin API access tokens keyed by shop domain (e.g. 'mystore.myshopify.com')"
    )


class StorageConfig(BaseModel):
    """Feed settings and cache storage."""
    db_path: str = Field("feeds.db", description="SQLite database file (':memory:' for a throwaway store)")


class RateLimitConfig(BaseModel):
    """GraphQL cost-based rate limiting."""
    bucket_size: float = Field(1000.0, gt=0, description="Maximum query cost points available at once")
    restore_rate: float = Field(50.0, gt=0, description="Query cost points restored per second")


class FeedConfig(BaseModel):
    """Feed generation settings."""
    page_size: int = Field(50, gt=0, le=250, description="Products requested per GraphQL page")
    catalog_timeout_seconds: float = Field(300.0, gt=0, description="Upper bound for a full catalog fetch")
    http_timeout_seconds: float = Field(30.0, gt=0, description="Timeout for a single Admin API request")


class LoggingConfig(BaseModel):
    """Logging output."""
    level: str = Field("INFO", description="Log level name")
    file: Optional[str] = Field(None, description="Log file path (stderr when unset)")


class FeedAppConfig(BaseModel):
    """Main configuration for the commerce feed service."""
    shopify: ShopifyConfig = Field(default_factory=ShopifyConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "shopify": {
                    "api_version": "2025-01",
                    "webhook_secret": "your_webhook_secret_here",
                    "access_tokens": {
                        "mystore.myshopify.com": "shpat_xxxxx"
                    }
                },
                "storage": {
                    "db_path": "feeds.db"
                },
                "rate_limit": {
                    "bucket_size": 1000.0,
                    "restore_rate": 50.0
                },
                "feed": {
                    "page_size": 50,
                    "catalog_timeout_seconds": 300.0,
                    "http_timeout_seconds": 30.0
                },
                "logging": {
                    "level": "INFO",
                    "file": "feed.log"
                }
            }
        }
    )


def configure_logging(config: FeedAppConfig) -> None:
    """Apply the configured log level and destination."""
    logging.basicConfig(
        filename=config.logging.file,
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
