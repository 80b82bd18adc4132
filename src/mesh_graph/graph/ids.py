"""Deterministic node identity.

Every node in a traffic graph is keyed by an id derived only from the
telemetry labels describing it and the graph granularity. The same labels at
the same granularity always produce the same id, which is what lets separate
metrics queries be merged onto one topology.
"""

from __future__ import annotations

import logging

from .types import DEFAULT_GRAPH_TYPE, UNKNOWN, GraphType, NodeType

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE_ID = "source-unknown"


def is_ok(name: str | None) -> bool:
    return bool(name) and name != UNKNOWN


def as_graph_type(value: GraphType | str | None) -> GraphType:
    if isinstance(value, GraphType):
        return value
    if not value:
        return DEFAULT_GRAPH_TYPE
    try:
        return GraphType(value)
    except ValueError:
        logger.warning("Unrecognised graph type [%s], using [%s]", value, DEFAULT_GRAPH_TYPE.value)
        return DEFAULT_GRAPH_TYPE


def unknown_node_id(namespace: str) -> str:
    return f"unknown_{namespace or UNKNOWN}"


def resolve_node_id(
    service_namespace: str,
    service: str,
    workload_namespace: str,
    workload: str,
    app: str,
    version: str,
    graph_type: GraphType | str,
) -> tuple[str, NodeType]:
    """Map mesh entity labels to a stable (node id, node type).

    Never raises: identity too incomplete to classify becomes an Unknown node
    scoped to its namespace.
    """

    graph_type = as_graph_type(graph_type)

    # prefer the workload namespace
    namespace = workload_namespace if is_ok(workload_namespace) else service_namespace

    # requests entering the mesh from outside
    if namespace == UNKNOWN and workload == UNKNOWN and app == UNKNOWN and not service:
        return UNKNOWN_SOURCE_ID, NodeType.UNKNOWN

    # a request to an unknown destination, one per namespace
    if workload == UNKNOWN and app == UNKNOWN and service == UNKNOWN:
        return f"svc_{namespace}_{UNKNOWN}", NodeType.SERVICE

    workload_ok = is_ok(workload)
    app_ok = is_ok(app)
    service_ok = is_ok(service)

    if not workload_ok and not app_ok and not service_ok:
        logger.debug(
            "Incomplete identity: namespace=[%s] workload=[%s] app=[%s] version=[%s] service=[%s]",
            namespace,
            workload,
            app,
            version,
            service,
        )
        return unknown_node_id(namespace), NodeType.UNKNOWN

    svc_node_id = f"svc_{service_namespace}_{service}"

    # service graphs are built as workload graphs
    if graph_type in (GraphType.WORKLOAD, GraphType.SERVICE):
        if workload_ok:
            return f"wl_{namespace}_{workload}", NodeType.WORKLOAD
        if service_ok:
            return svc_node_id, NodeType.SERVICE
        return unknown_node_id(namespace), NodeType.UNKNOWN

    if app_ok:
        # versioned apps key on workload when possible, it survives labeling anti-patterns
        if graph_type == GraphType.VERSIONED_APP:
            if workload_ok:
                return f"vapp_{namespace}_{workload}", NodeType.APP
            if is_ok(version):
                return f"vapp_{namespace}_{app}_{version}", NodeType.APP
        return f"app_{namespace}_{app}", NodeType.APP

    if workload_ok:
        return f"wl_{namespace}_{workload}", NodeType.WORKLOAD

    return svc_node_id, NodeType.SERVICE
