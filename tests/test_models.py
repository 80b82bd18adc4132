import json

import pytest

from mesh_graph.graph import (
    RESPONSE_TIME,
    EdgeKey,
    GraphType,
    NodeType,
    TrafficMap,
    decode_traffic_map,
    encode_traffic_map,
)


def build_map():
    tm = TrafficMap()
    pp = tm.ensure_node("bookinfo", "", "bookinfo", "productpage-v1", "productpage", "v1", GraphType.VERSIONED_APP)
    svc = tm.ensure_node("bookinfo", "reviews", "", "", "", "", GraphType.VERSIONED_APP)
    rv = tm.ensure_node("bookinfo", "reviews", "bookinfo", "reviews-v2", "reviews", "v2", GraphType.VERSIONED_APP)
    pp.add_edge(svc)
    svc.add_edge(rv)
    return tm


def test_ensure_node_is_idempotent():
    tm = build_map()
    again = tm.ensure_node("bookinfo", "reviews", "", "", "", "", GraphType.VERSIONED_APP)
    assert again is tm["svc_bookinfo_reviews"]
    assert len(tm) == 3


def test_service_node_carries_service_identity_only():
    tm = build_map()
    svc = tm["svc_bookinfo_reviews"]
    assert svc.node_type == NodeType.SERVICE
    assert (svc.workload, svc.app, svc.version) == ("", "", "")
    assert svc.service == "reviews"


def test_one_edge_per_ordered_pair():
    tm = build_map()
    pp = tm["vapp_bookinfo_productpage-v1"]
    first = pp.edges[0]
    assert pp.add_edge(tm["svc_bookinfo_reviews"]) is first
    assert len(pp.edges) == 1


def test_edge_key_structural_equality():
    tm = build_map()
    edge = tm.edge("svc_bookinfo_reviews", "vapp_bookinfo_reviews-v2")
    assert edge.key == EdgeKey("svc_bookinfo_reviews", "vapp_bookinfo_reviews-v2")
    assert {edge.key: 1}[EdgeKey("svc_bookinfo_reviews", "vapp_bookinfo_reviews-v2")] == 1
    # ids containing the old separator stay unambiguous
    assert EdgeKey("a b", "c") != EdgeKey("a", "b c")


def test_codec_preserves_structure_and_metadata():
    tm = build_map()
    tm.edge("svc_bookinfo_reviews", "vapp_bookinfo_reviews-v2").metadata[RESPONSE_TIME] = 12.5

    doc = encode_traffic_map(tm)
    decoded = decode_traffic_map(json.loads(json.dumps(doc)))

    assert set(decoded) == set(tm)
    assert decoded["svc_bookinfo_reviews"].node_type == NodeType.SERVICE
    assert decoded.edge("svc_bookinfo_reviews", "vapp_bookinfo_reviews-v2").metadata == {RESPONSE_TIME: 12.5}
    assert encode_traffic_map(decoded) == doc


def test_encoding_is_deterministic_and_drops_nan():
    tm = build_map()
    tm.edge("vapp_bookinfo_productpage-v1", "svc_bookinfo_reviews").metadata["x"] = float("nan")
    first = json.dumps(encode_traffic_map(tm))
    assert first == json.dumps(encode_traffic_map(tm))
    assert "NaN" not in first


def test_decode_rejects_dangling_edge():
    with pytest.raises(ValueError):
        decode_traffic_map(
            {
                "nodes": [{"id": "a", "nodeType": "app", "namespace": "ns"}],
                "edges": [{"source": "a", "target": "b"}],
            }
        )
