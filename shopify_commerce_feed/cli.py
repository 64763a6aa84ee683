"""Command-line interface for the Shopify commerce feed service."""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
import typer
from rich.console import Console
from rich.table import Table
from rich.json import JSON

from .client import ShopifyAdminClient, make_client_factory
from .config import FeedAppConfig, configure_logging
from .mock_client import MockShopifyClient
from .service import FeedService
from .storage import SQLiteFeedStore

app = typer.Typer(
    name="shopify-feed",
    help="Shopify commerce feed generator CLI"
)
console = Console()


def load_config(config_path: str) -> FeedAppConfig:
    """Load configuration from JSON file."""
    config_file = Path(config_path)
    if not config_file.exists():
        console.print(f"[red]Error: Config file not found: {config_path}[/red]")
        raise typer.Exit(1)

    with open(config_file) as f:
        config_data = json.load(f)

    return FeedAppConfig(**config_data)


def build_service(cfg: FeedAppConfig, sandbox: bool = False) -> FeedService:
    """Create a feed service; in sandbox mode Shopify is replaced by sample data."""
    if sandbox:
        def factory(shop: str) -> ShopifyAdminClient:
            return ShopifyAdminClient(
                shop_domain=shop,
                access_token="sandbox",
                api_version=cfg.shopify.api_version,
                page_size=cfg.feed.page_size,
                client=MockShopifyClient(),
            )
    else:
        factory = make_client_factory(cfg)

    return FeedService(
        SQLiteFeedStore(cfg.storage.db_path),
        factory,
        catalog_timeout_seconds=cfg.feed.catalog_timeout_seconds,
    )


def _format_ms(value: int | None) -> str:
    if value is None:
        return "never"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


@app.command()
def init(
    output: str = typer.Option("config.json", help="Output configuration file path")
):
    """Initialize a new configuration file with example values."""
    example_config = FeedAppConfig.model_config["json_schema_extra"]["example"]

    output_path = Path(output)
    with open(output_path, 'w') as f:
        json.dump(example_config, f, indent=2)

    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]⚠ Please edit the file and add your shop access tokens![/yellow]")


@app.command()
def validate(
    config: str = typer.Option("config.json", help="Configuration file path"),
):
    """Validate configuration file."""
    try:
        cfg = load_config(config)
    except ValueError as e:
        console.print(f"[red]✗ Configuration error:[/red] {str(e)}")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Configuration is valid!")
    console.print(f"\n[bold]API version:[/bold] {cfg.shopify.api_version}")
    console.print(f"[bold]Shops:[/bold] {', '.join(cfg.shopify.access_tokens) or 'none'}")
    console.print(f"[bold]Database:[/bold] {cfg.storage.db_path}")


@app.command()
def generate(
    shop: str = typer.Argument(..., help="Shop domain (e.g., mystore.myshopify.com)"),
    config: str = typer.Option("config.json", help="Configuration file path"),
    sandbox: bool = typer.Option(False, help="Use sample data instead of the Shopify API"),
):
    """Fetch the catalog, generate the feed and store it in the cache."""
    cfg = load_config(config)
    configure_logging(cfg)
    service = build_service(cfg, sandbox)

    console.print(f"[blue]Generating feed for {shop}...[/blue]")
    result = asyncio.run(service.generate(shop))
    if not result.success:
        console.print(f"[red]✗ Feed generation failed:[/red] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Generated {result.product_count} feed items")


@app.command()
def feed(
    shop: str = typer.Argument(..., help="Shop domain"),
    config: str = typer.Option("config.json", help="Configuration file path"),
    limit: int = typer.Option(10, help="Number of items to show"),
    output: str | None = typer.Option(None, help="Write the JSONL feed to this file"),
):
    """Show the cached feed for a shop."""
    cfg = load_config(config)
    service = build_service(cfg)
    cached = asyncio.run(service.read(shop))
    if cached is None:
        console.print("[yellow]No feed generated yet for this shop.[/yellow]")
        raise typer.Exit(1)

    console.print(f"[bold]Items:[/bold] {cached.product_count}")
    console.print(f"[bold]Generated:[/bold] {_format_ms(cached.generated_at)}")

    if output:
        Path(output).write_text(cached.feed_data, encoding="utf-8")
        console.print(f"\n[green]✓[/green] Saved to {output}")
        return

    table = Table(title="Feed Items")
    table.add_column("Item ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Price", justify="right", style="yellow")
    table.add_column("Availability", style="magenta")

    lines = cached.feed_data.splitlines() if cached.feed_data else []
    for line in lines[:limit]:
        item = json.loads(line)
        title = item["title"]
        table.add_row(
            item["item_id"],
            title[:50] + "..." if len(title) > 50 else title,
            item.get("sale_price") or item["price"],
            item["availability"],
        )
    console.print(table)


@app.command()
def settings(
    shop: str = typer.Argument(..., help="Shop domain"),
    config: str = typer.Option("config.json", help="Configuration file path"),
    sandbox: bool = typer.Option(False, help="Use sample data instead of the Shopify API"),
):
    """Print the feed settings for a shop, filling them from Shopify on first use."""
    cfg = load_config(config)
    service = build_service(cfg, sandbox)
    current = asyncio.run(service.get_or_populate_settings(shop))
    console.print(JSON(current.model_dump_json(indent=2)))


@app.command()
def sync(
    shop: str = typer.Argument(..., help="Shop domain"),
    config: str = typer.Option("config.json", help="Configuration file path"),
    sandbox: bool = typer.Option(False, help="Use sample data instead of the Shopify API"),
):
    """Re-sync seller, geo and policy settings from Shopify."""
    cfg = load_config(config)
    configure_logging(cfg)
    service = build_service(cfg, sandbox)
    refreshed = asyncio.run(service.auto_populate(shop))
    console.print("[green]✓[/green] Settings synced from Shopify")
    console.print(JSON(refreshed.model_dump_json(indent=2)))


@app.command()
def serve(
    config: str = typer.Option("config.json", help="Configuration file path"),
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
):
    """Start the feed server (feed endpoint, settings API and webhooks)."""
    from .telemetry import init_metrics
    from .webhook import create_feed_app
    import uvicorn

    cfg = load_config(config)
    init_metrics()
    feed_app = create_feed_app(cfg)

    console.print(f"[green]Starting feed server on {host}:{port}[/green]")
    console.print(f"[blue]Feed endpoint: http://{host}:{port}/feed/<shop>/products.jsonl[/blue]")
    console.print(f"[blue]Webhook endpoint: http://{host}:{port}/webhooks/shopify[/blue]")

    uvicorn.run(feed_app, host=host, port=port)


if __name__ == "__main__":
    app()
