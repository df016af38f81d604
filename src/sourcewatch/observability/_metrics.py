"""sourcewatch Prometheus metrics.

Counters and histograms for the reconcile pipeline:
- reconciliations by outcome
- artifact fetches, retries and durations
- target resource creates and updates
"""

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from sourcewatch.config.settings import get_settings


_settings = get_settings()

# Create custom registry if needed, otherwise use default
registry = REGISTRY if _settings.observability.metrics_enabled else CollectorRegistry()


# ============================================================================
# Counter Metrics - Monotonically increasing values
# ============================================================================

reconciliations_total = Counter(
    name="reconciliations_total",
    documentation="Total number of GitRepository reconciliations",
    labelnames=["result"],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)

artifact_fetches_total = Counter(
    name="artifact_fetches_total",
    documentation="Total number of artifact download and extract attempts",
    labelnames=["result"],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)

artifact_fetch_retries_total = Counter(
    name="artifact_fetch_retries_total",
    documentation="Total number of retried artifact download requests",
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)

target_upserts_total = Counter(
    name="target_upserts_total",
    documentation="Total number of target resource create/update calls",
    labelnames=["operation", "result"],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)


# ============================================================================
# Histogram Metrics - Distribution of values
# ============================================================================

artifact_fetch_duration_seconds = Histogram(
    name="artifact_fetch_duration_seconds",
    documentation="Time spent downloading and extracting artifacts",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)

reconcile_duration_seconds = Histogram(
    name="reconcile_duration_seconds",
    documentation="Time spent in a full reconciliation",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)


__all__ = [
    "artifact_fetch_duration_seconds",
    "artifact_fetch_retries_total",
    "artifact_fetches_total",
    "reconcile_duration_seconds",
    "reconciliations_total",
    "registry",
    "target_upserts_total",
]
