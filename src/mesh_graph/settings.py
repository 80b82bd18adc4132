from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MeshGraphSettings(BaseSettings):
    """Unified configuration for mesh-graph.

    Environment variables are prefixed with MESH_GRAPH_.
    """

    model_config = SettingsConfigDict(env_prefix="MESH_GRAPH_", extra="ignore")

    # --- Core ---
    log_level: str = Field(default="INFO", description="Python logging level")

    # --- Prometheus ---
    prometheus_url: str = Field(default="http://localhost:9090")
    prometheus_token: str | None = Field(default=None, description="Bearer token, if required")
    prometheus_timeout_s: float = Field(default=30.0)

    # --- Mesh ---
    istio_namespace: str = Field(default="istio-system", description="Control plane namespace")
    infrastructure_namespaces: list[str] = Field(
        default_factory=list,
        description="Additional namespaces hosting control plane components",
    )

    # --- Graph defaults ---
    graph_type: str = Field(default="versionedApp", description="app|versionedApp|workload|service")
    duration_s: int = Field(default=600, description="Lookback window in seconds")
    inject_service_nodes: bool = True
    quantile: float = Field(default=95.0, description="Response time percentile, (0, 100)")

    def infrastructure_namespace_set(self) -> frozenset[str]:
        names = {self.istio_namespace, *self.infrastructure_namespaces}
        return frozenset(n for n in names if n)


settings = MeshGraphSettings()
