from .client import (
    MetricsClient,
    PrometheusClient,
    PrometheusConfig,
    Sample,
    build_prometheus_client,
    parse_vector,
)

__all__ = [
    "MetricsClient",
    "PrometheusClient",
    "PrometheusConfig",
    "Sample",
    "build_prometheus_client",
    "parse_vector",
]
