from __future__ import annotations

from enum import Enum

UNKNOWN = "unknown"

# Edge metadata keys
RESPONSE_TIME = "responseTime"


class NodeType(str, Enum):
    """Kind of entity a graph node stands for."""

    APP = "app"
    SERVICE = "service"
    WORKLOAD = "workload"
    UNKNOWN = "unknown"


class GraphType(str, Enum):
    """Granularity at which mesh entities collapse into graph nodes."""

    APP = "app"
    VERSIONED_APP = "versionedApp"
    WORKLOAD = "workload"
    SERVICE = "service"


DEFAULT_GRAPH_TYPE = GraphType.VERSIONED_APP
