"""shadowlink Prometheus metrics.

- Counter metrics for created and reused shadow pods and workflow errors
- Histogram for the shadow pod readiness wait
"""

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from shadowlink.config.settings import get_settings


_settings = get_settings()

# Private registry unless the process exports metrics
registry = REGISTRY if _settings.observability.prometheus_enabled else CollectorRegistry()


shadow_pods_created_total = Counter(
    name="shadow_pods_created_total",
    documentation="Total number of shadow pods provisioned",
    labelnames=["namespace"],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)

shadow_pods_reused_total = Counter(
    name="shadow_pods_reused_total",
    documentation="Total number of existing shadow pods reused",
    labelnames=["namespace"],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)

shadow_errors_total = Counter(
    name="shadow_errors_total",
    documentation="Total number of shadow workflow failures",
    labelnames=["reason"],
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)

shadow_pod_ready_duration_seconds = Histogram(
    name="shadow_pod_ready_duration_seconds",
    documentation="Time spent waiting for a shadow pod to become ready",
    buckets=(1, 2, 5, 10, 20, 30, 60, 120, 300),
    registry=registry,
    namespace=_settings.observability.metrics_namespace,
)


__all__ = [
    "registry",
    "shadow_errors_total",
    "shadow_pod_ready_duration_seconds",
    "shadow_pods_created_total",
    "shadow_pods_reused_total",
]
