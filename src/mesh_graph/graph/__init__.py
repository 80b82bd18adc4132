"""Traffic graph model.

- Deterministic node identity (`resolve_node_id`)
- Node/Edge containers forming a `TrafficMap`
- A dict codec for feeding graphs in and out of the engine
"""

from .codec import decode_traffic_map, encode_traffic_map
from .ids import UNKNOWN_SOURCE_ID, resolve_node_id
from .models import Edge, EdgeKey, Node, TrafficMap, new_node
from .types import RESPONSE_TIME, GraphType, NodeType

__all__ = [
    "Edge",
    "EdgeKey",
    "GraphType",
    "Node",
    "NodeType",
    "RESPONSE_TIME",
    "TrafficMap",
    "UNKNOWN_SOURCE_ID",
    "decode_traffic_map",
    "encode_traffic_map",
    "new_node",
    "resolve_node_id",
]
