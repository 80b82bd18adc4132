from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from .ids import resolve_node_id
from .types import GraphType, NodeType


@dataclass(frozen=True, slots=True)
class EdgeKey:
    """Identifies an edge by its ordered (source, dest) node ids."""

    source: str
    dest: str

    def __str__(self) -> str:
        return f"{self.source} {self.dest}"


@dataclass(eq=False)
class Node:
    """A graph vertex: one service, workload or app at the graph granularity.

    Service nodes carry only service-level identity; workload and app nodes
    carry workload, app and version.
    """

    id: str
    node_type: NodeType
    namespace: str
    workload: str = ""
    app: str = ""
    version: str = ""
    service: str = ""
    edges: list[Edge] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def add_edge(self, dest: Node) -> Edge:
        """Return the edge to `dest`, creating it on first use."""
        for edge in self.edges:
            if edge.dest.id == dest.id:
                return edge
        edge = Edge(source=self, dest=dest)
        self.edges.append(edge)
        return edge

    def edge_to(self, dest_id: str) -> Edge | None:
        for edge in self.edges:
            if edge.dest.id == dest_id:
                return edge
        return None


@dataclass(eq=False)
class Edge:
    """Observed traffic from one node to another."""

    source: Node
    dest: Node
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> EdgeKey:
        return EdgeKey(self.source.id, self.dest.id)

    def __repr__(self) -> str:
        return f"Edge({self.source.id!r} -> {self.dest.id!r}, metadata={self.metadata!r})"


def new_node(
    service_namespace: str,
    service: str,
    workload_namespace: str,
    workload: str,
    app: str,
    version: str,
    graph_type: GraphType | str,
) -> Node:
    """Build a node whose id and identity fields follow the granularity."""

    node_id, node_type = resolve_node_id(
        service_namespace, service, workload_namespace, workload, app, version, graph_type
    )
    namespace = workload_namespace or service_namespace
    if node_type == NodeType.SERVICE:
        return Node(id=node_id, node_type=node_type, namespace=service_namespace, service=service)
    return Node(
        id=node_id,
        node_type=node_type,
        namespace=namespace,
        workload=workload,
        app=app,
        version=version,
        service=service,
    )


class TrafficMap(dict[str, Node]):
    """Mapping of node id to node. Edges hang off their source node.

    Not safe for unsynchronized concurrent mutation.
    """

    def add(self, node: Node) -> Node:
        """Insert `node`, or return the node already stored under its id."""
        return self.setdefault(node.id, node)

    def ensure_node(
        self,
        service_namespace: str,
        service: str,
        workload_namespace: str,
        workload: str,
        app: str,
        version: str,
        graph_type: GraphType | str,
    ) -> Node:
        return self.add(
            new_node(service_namespace, service, workload_namespace, workload, app, version, graph_type)
        )

    def edges(self) -> Iterator[Edge]:
        for node in self.values():
            yield from node.edges

    def edge(self, source_id: str, dest_id: str) -> Edge | None:
        node = self.get(source_id)
        if node is None:
            return None
        return node.edge_to(dest_id)
