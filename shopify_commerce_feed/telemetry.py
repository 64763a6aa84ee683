"""OpenTelemetry helpers for feed generation metrics."""

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader

METER_NAME = "shopify_commerce_feed"

_meter_provider_initialized = False


def init_metrics() -> None:
    """Initialize OpenTelemetry metrics with a console exporter."""
    global _meter_provider_initialized
    if _meter_provider_initialized:
        return
    reader = PeriodicExportingMetricReader(ConsoleMetricExporter())
    provider = MeterProvider(metric_readers=[reader])
    metrics.set_meter_provider(provider)
    _meter_provider_initialized = True


def get_generation_duration_histogram() -> Histogram:
    """Return a histogram for feed generation duration."""
    meter = metrics.get_meter(METER_NAME)
    return meter.create_histogram(
        name="feed.generation.duration",
        unit="ms",
        description="Duration of feed generation runs",
    )


def get_records_counter() -> Counter:
    """Return a counter of feed records written to the cache."""
    meter = metrics.get_meter(METER_NAME)
    return meter.create_counter(
        name="feed.records.generated",
        unit="1",
        description="Feed records produced by successful generations",
    )
