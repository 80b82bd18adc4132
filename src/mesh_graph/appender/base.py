"""Appender contract and the request-scoped context appenders share."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol

from mesh_graph.errors import ClientConstructionError
from mesh_graph.graph.models import TrafficMap
from mesh_graph.prometheus.client import MetricsClient, PrometheusConfig, build_prometheus_client
from mesh_graph.settings import settings

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], MetricsClient]


def default_client_factory() -> MetricsClient:
    return build_prometheus_client(
        PrometheusConfig(
            url=settings.prometheus_url,
            token=settings.prometheus_token,
            timeout_s=settings.prometheus_timeout_s,
        )
    )


class GlobalInfo:
    """Resources shared by every appender and namespace of one graph request.

    The metrics client is built on first use, exactly once, even when several
    namespaces ask for it concurrently. Use as an async context manager (or
    call `aclose`) to bound its lifetime to the request.
    """

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        *,
        client: MetricsClient | None = None,
    ):
        self._client_factory = client_factory or default_client_factory
        self._client = client
        self._error: ClientConstructionError | None = None
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._client is not None

    async def metrics_client(self) -> MetricsClient:
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._error is not None:
                raise self._error
            if self._client is None:
                try:
                    self._client = self._client_factory()
                except Exception as e:
                    # remembered, a failed construction is never retried
                    self._error = ClientConstructionError(f"unable to build metrics client: {e}")
                    raise self._error from e
                logger.debug("Metrics client initialized")
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> GlobalInfo:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()


@dataclass(frozen=True, slots=True)
class NamespaceInfo:
    """Parameters for enriching one namespace. Immutable for its processing."""

    name: str
    duration: timedelta = timedelta(minutes=10)
    infrastructure_namespaces: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_infrastructure(self) -> bool:
        return self.name in self.infrastructure_namespaces

    @property
    def duration_s(self) -> int:
        return int(self.duration.total_seconds())


NamespaceInfoMap = Mapping[str, NamespaceInfo]


def requested_infrastructure_namespaces(namespaces: NamespaceInfoMap) -> list[str]:
    """Requested namespaces that are infrastructure namespaces, sorted."""
    return sorted(name for name, info in namespaces.items() if info.is_infrastructure)


def unrequested_infrastructure_namespaces(
    namespace_info: NamespaceInfo, namespaces: NamespaceInfoMap
) -> list[str]:
    """Configured infrastructure namespaces that were not requested, sorted."""
    return sorted(n for n in namespace_info.infrastructure_namespaces if n not in namespaces)


class Appender(Protocol):
    """One enrichment stage.

    Appenders annotate node and edge metadata in place; they never add or
    remove nodes or edges.
    """

    name: str

    async def append_graph(
        self,
        traffic_map: TrafficMap,
        global_info: GlobalInfo,
        namespace_info: NamespaceInfo,
    ) -> None: ...
