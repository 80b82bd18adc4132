from mesh_graph.settings import MeshGraphSettings


def test_defaults():
    s = MeshGraphSettings()
    assert s.quantile == 95.0
    assert s.istio_namespace == "istio-system"
    assert s.infrastructure_namespace_set() == frozenset({"istio-system"})


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MESH_GRAPH_ISTIO_NAMESPACE", "mesh-system")
    monkeypatch.setenv("MESH_GRAPH_INFRASTRUCTURE_NAMESPACES", '["mesh-ingress", "mesh-egress"]')
    monkeypatch.setenv("MESH_GRAPH_PROMETHEUS_URL", "http://prometheus.monitoring:9090")
    monkeypatch.setenv("MESH_GRAPH_DURATION_S", "300")

    s = MeshGraphSettings()

    assert s.prometheus_url == "http://prometheus.monitoring:9090"
    assert s.duration_s == 300
    assert s.infrastructure_namespace_set() == frozenset({"mesh-system", "mesh-ingress", "mesh-egress"})
