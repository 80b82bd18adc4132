"""JSON-friendly encoding of traffic maps.

Wire shape::

    {
      "nodes": [{"id": ..., "nodeType": ..., "namespace": ..., ...}],
      "edges": [{"source": <node id>, "target": <node id>, "metadata": {...}}]
    }

Output is sorted by id so encoding the same graph twice yields identical text.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import Edge, Node, TrafficMap
from .types import NodeType


class NodeDoc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    node_type: NodeType = Field(alias="nodeType")
    namespace: str
    workload: str = ""
    app: str = ""
    version: str = ""
    service: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class EdgeDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    source: str
    target: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrafficMapDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nodes: list[NodeDoc] = Field(default_factory=list)
    edges: list[EdgeDoc] = Field(default_factory=list)


def decode_traffic_map(data: dict[str, Any]) -> TrafficMap:
    """Build a TrafficMap from its dict form.

    Raises ValueError (pydantic.ValidationError included) on malformed input,
    or when an edge references an undeclared node.
    """

    doc = TrafficMapDoc.model_validate(data)
    tm = TrafficMap()
    for nd in doc.nodes:
        tm.add(
            Node(
                id=nd.id,
                node_type=nd.node_type,
                namespace=nd.namespace,
                workload=nd.workload,
                app=nd.app,
                version=nd.version,
                service=nd.service,
                metadata=dict(nd.metadata),
            )
        )
    for ed in doc.edges:
        source = tm.get(ed.source)
        dest = tm.get(ed.target)
        if source is None or dest is None:
            raise ValueError(f"edge {ed.source} -> {ed.target} references an unknown node")
        edge = source.add_edge(dest)
        edge.metadata.update(ed.metadata)
    return tm


def _clean(metadata: dict[str, Any]) -> dict[str, Any]:
    # NaN/Inf are not valid JSON
    return {
        k: v
        for k, v in sorted(metadata.items())
        if not (isinstance(v, float) and not math.isfinite(v))
    }


def _encode_edge(edge: Edge) -> dict[str, Any]:
    return {"source": edge.source.id, "target": edge.dest.id, "metadata": _clean(edge.metadata)}


def encode_traffic_map(tm: TrafficMap) -> dict[str, Any]:
    nodes = []
    edges = []
    for node_id in sorted(tm):
        node = tm[node_id]
        nodes.append(
            {
                "id": node.id,
                "nodeType": node.node_type.value,
                "namespace": node.namespace,
                "workload": node.workload,
                "app": node.app,
                "version": node.version,
                "service": node.service,
                "metadata": _clean(node.metadata),
            }
        )
        for edge in sorted(node.edges, key=lambda e: e.dest.id):
            edges.append(_encode_edge(edge))
    return {"nodes": nodes, "edges": edges}
