import json

import pytest

from mesh_graph.appender import base
from mesh_graph.cli.main import app
from mesh_graph.graph import RESPONSE_TIME, GraphType, TrafficMap, encode_traffic_map
from mesh_graph.prometheus import Sample


def write_map(path):
    tm = TrafficMap()
    a = tm.ensure_node("bookinfo", "", "bookinfo", "a-v1", "a", "v1", GraphType.WORKLOAD)
    b = tm.ensure_node("bookinfo", "", "bookinfo", "b-v1", "b", "v1", GraphType.WORKLOAD)
    a.add_edge(b)
    path.write_text(json.dumps(encode_traffic_map(tm)))


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        app(["version"])
    assert exc.value.code == 0
    assert capsys.readouterr().out.strip() == "0.1.0"


def test_enrich_writes_annotated_map(tmp_path, monkeypatch, labels, fake_client_cls):
    src = tmp_path / "traffic.json"
    out = tmp_path / "enriched.json"
    write_map(src)

    metric = labels("bookinfo", "a-v1", "a", "v1", "bookinfo", "b", "bookinfo", "b-v1", "b", "v1")
    client = fake_client_cls([('source_workload_namespace="bookinfo"', [Sample(metric, 0.04)])])
    monkeypatch.setattr(base, "default_client_factory", lambda: client)

    with pytest.raises(SystemExit) as exc:
        app(
            [
                "enrich",
                str(src),
                "--namespace",
                "bookinfo",
                "--graph-type",
                "workload",
                "--no-inject-service-nodes",
                "--query-time",
                "1700000000",
                "--output",
                str(out),
            ]
        )

    assert exc.value.code == 0
    doc = json.loads(out.read_text())
    [edge] = doc["edges"]
    assert edge["metadata"][RESPONSE_TIME] == pytest.approx(40.0)
    assert client.closed


def test_enrich_reports_namespace_failure(tmp_path, monkeypatch, fake_client_cls):
    src = tmp_path / "traffic.json"
    write_map(src)
    client = fake_client_cls(fail_on="bookinfo")
    monkeypatch.setattr(base, "default_client_factory", lambda: client)

    with pytest.raises(SystemExit) as exc:
        app(["enrich", str(src), "--namespace", "bookinfo", "--output", str(tmp_path / "o.json")])
    assert exc.value.code == 1


def test_enrich_fails_when_client_cannot_be_built(tmp_path, monkeypatch):
    src = tmp_path / "traffic.json"
    write_map(src)

    def broken():
        raise ValueError("invalid prometheus url")

    monkeypatch.setattr(base, "default_client_factory", broken)

    with pytest.raises(SystemExit) as exc:
        app(["enrich", str(src), "--namespace", "bookinfo"])
    assert exc.value.code == 2


def test_enrich_missing_file_exits_cleanly(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        app(["enrich", str(tmp_path / "absent.json"), "--namespace", "bookinfo"])
    assert exc.value.code == 2
    assert "unable to read traffic map" in capsys.readouterr().err


@pytest.mark.parametrize("content", ["{not json", '{"nodes": 5}'])
def test_enrich_invalid_file_exits_cleanly(tmp_path, capsys, content):
    src = tmp_path / "traffic.json"
    src.write_text(content)
    with pytest.raises(SystemExit) as exc:
        app(["enrich", str(src), "--namespace", "bookinfo"])
    assert exc.value.code == 2
    assert "unable to read traffic map" in capsys.readouterr().err
