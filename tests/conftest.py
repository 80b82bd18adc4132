"""
Pytest configuration and fixtures for mesh-graph tests.

This file provides:
- A fake metrics client answering queries from canned vectors
- A label-set builder for istio request telemetry
"""

import pytest

from mesh_graph.errors import QueryError


class FakeMetricsClient:
    """Answers each query with the vector of the first matching fragment."""

    def __init__(self, responses=None, *, fail_on=None):
        self.responses = list(responses or [])
        self.fail_on = fail_on
        self.queries = []
        self.closed = False

    async def query(self, expression, ts):
        self.queries.append((expression, ts))
        if self.fail_on and self.fail_on in expression:
            raise QueryError("boom", expression=expression)
        for fragment, vector in self.responses:
            if fragment in expression:
                return list(vector)
        return []

    async def aclose(self):
        self.closed = True


def _labels(
    source_ns,
    source_wl,
    source_app,
    source_ver,
    dest_svc_ns,
    dest_svc,
    dest_wl_ns,
    dest_wl,
    dest_app,
    dest_ver,
):
    return {
        "source_workload_namespace": source_ns,
        "source_workload": source_wl,
        "source_app": source_app,
        "source_version": source_ver,
        "destination_service_namespace": dest_svc_ns,
        "destination_service_name": dest_svc,
        "destination_workload_namespace": dest_wl_ns,
        "destination_workload": dest_wl,
        "destination_app": dest_app,
        "destination_version": dest_ver,
    }


@pytest.fixture
def labels():
    return _labels


@pytest.fixture
def fake_client_cls():
    return FakeMetricsClient
