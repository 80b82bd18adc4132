from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import ClassVar

from mesh_graph.graph.ids import resolve_node_id
from mesh_graph.graph.models import EdgeKey, TrafficMap
from mesh_graph.graph.types import RESPONSE_TIME, UNKNOWN, GraphType, NodeType
from mesh_graph.prometheus import promql
from mesh_graph.prometheus.client import MetricsClient, Sample

from .base import (
    GlobalInfo,
    NamespaceInfo,
    NamespaceInfoMap,
    requested_infrastructure_namespaces,
    unrequested_infrastructure_namespaces,
)

logger = logging.getLogger(__name__)

RESPONSE_TIME_APPENDER_NAME = "responseTime"
DEFAULT_QUANTILE = 95.0

DURATION_METRIC = "istio_request_duration_seconds_bucket"
# must match success for all expected protocols
SUCCESS_RESPONSE_CODES = "2[0-9]{2}|^0$"

SOURCE_LABELS = (
    "source_workload_namespace",
    "source_workload",
    "source_app",
    "source_version",
)
DEST_LABELS = (
    "destination_service_namespace",
    "destination_service_name",
    "destination_workload_namespace",
    "destination_workload",
    "destination_app",
    "destination_version",
)
EXPECTED_LABELS = SOURCE_LABELS + DEST_LABELS
GROUP_BY = ("le",) + EXPECTED_LABELS

ResponseTimeMap = dict[EdgeKey, float]


def effective_quantile(quantile: float) -> float:
    if not 0.0 < quantile < 100.0:
        logger.warning("Replacing invalid quantile [%.2f] with default [%.2f]", quantile, DEFAULT_QUANTILE)
        return DEFAULT_QUANTILE
    return quantile


@dataclass
class ResponseTimeAppender:
    """Adds a response time percentile to every edge that saw traffic.

    The default 95th percentile means 95% of requests completed in no more
    than the stored number of milliseconds.

    Latency is reported by the caller's proxy, the callee's proxy, or both,
    depending on where traffic comes from. The namespace is covered by
    disjoint queries so no request is counted twice:

    1. requests from outside the mesh (callee-side only)
    2. requests from workloads in other namespaces
    3. requests from workloads inside the namespace
    4. for infrastructure namespaces, infrastructure-to-infrastructure
       requests, which are only ever reported callee-side
    """

    name: ClassVar[str] = RESPONSE_TIME_APPENDER_NAME

    graph_type: GraphType | str = GraphType.VERSIONED_APP
    inject_service_nodes: bool = False
    namespaces: NamespaceInfoMap = field(default_factory=dict)
    quantile: float = DEFAULT_QUANTILE
    query_time: float | None = None  # unix seconds, None for now

    def __post_init__(self) -> None:
        self.quantile = effective_quantile(self.quantile)

    async def append_graph(
        self,
        traffic_map: TrafficMap,
        global_info: GlobalInfo,
        namespace_info: NamespaceInfo,
    ) -> None:
        if not traffic_map:
            return

        client = await global_info.metrics_client()
        response_times = await self.collect(client, namespace_info)
        apply_response_time(traffic_map, response_times)

    def queries(self, namespace_info: NamespaceInfo) -> list[str]:
        """Expressions for `namespace_info`, in merge order."""

        namespace = namespace_info.name
        duration_s = namespace_info.duration_s
        success = promql.re_match("response_code", SUCCESS_RESPONSE_CODES)

        def build(*matchers: str) -> str:
            return promql.histogram_quantile(
                self.quantile, DURATION_METRIC, [*matchers, success], duration_s, GROUP_BY
            )

        # 1) requests originating from "unknown" (i.e. the internet)
        unknown_source = build(
            promql.eq("reporter", "destination"),
            promql.eq("source_workload", UNKNOWN),
            promql.eq("destination_service_namespace", namespace),
        )

        # 2) requests from workloads outside the namespace, "unknown" sources excluded
        reporter = "source"
        source_ns_matcher = promql.neq("source_workload_namespace", namespace)
        if namespace_info.is_infrastructure:
            # infrastructure components don't report source-side, also exclude
            # any infrastructure namespaces that were not requested
            reporter = "destination"
            excluded = unrequested_infrastructure_namespaces(namespace_info, self.namespaces)
            if excluded:
                source_ns_matcher = promql.re_not_match(
                    "source_workload_namespace", "|".join([namespace, *excluded])
                )
        external = build(
            promql.eq("reporter", reporter),
            source_ns_matcher,
            promql.neq("source_workload", UNKNOWN),
            promql.eq("destination_service_namespace", namespace),
        )

        # 3) requests from workloads inside the namespace
        internal = build(
            promql.eq("reporter", "source"),
            promql.eq("source_workload_namespace", namespace),
        )

        expressions = [unknown_source, external, internal]

        # 4) query 3 misses infrastructure-to-infrastructure traffic
        if namespace_info.is_infrastructure:
            targets = requested_infrastructure_namespaces(self.namespaces) or [namespace]
            expressions.append(
                build(
                    promql.eq("reporter", "destination"),
                    promql.eq("source_workload_namespace", namespace),
                    promql.re_match("destination_service_namespace", "|".join(targets)),
                )
            )
        return expressions

    async def collect(self, client: MetricsClient, namespace_info: NamespaceInfo) -> ResponseTimeMap:
        """Run the queries concurrently and merge their results in query order."""

        logger.debug(
            "Generating responseTime using quantile [%.2f]; namespace = %s",
            self.quantile,
            namespace_info.name,
        )
        expressions = self.queries(namespace_info)
        query_time = self.query_time if self.query_time is not None else time.time()
        results = await asyncio.gather(
            *(client.query(expr, query_time) for expr in expressions),
            return_exceptions=True,
        )
        # every query has settled; surface the first failure in query order
        for result in results:
            if isinstance(result, BaseException):
                raise result
        vectors: list[Sequence[Sample]] = list(results)

        response_times: ResponseTimeMap = {}
        for vector in vectors:
            self.populate(response_times, vector)
        return response_times

    def populate(self, response_times: ResponseTimeMap, vector: Sequence[Sample]) -> None:
        for sample in vector:
            m = sample.metric
            missing = [label for label in EXPECTED_LABELS if label not in m]
            if missing:
                logger.warning("Skipping %s, missing expected labels %s", m, missing)
                continue

            # convert to millis now, the thousandths place is dropped downstream
            val = float(sample.value) * 1000.0

            # NaN when there was no traffic in the window
            if math.isnan(val):
                continue

            source_ns = m["source_workload_namespace"]
            dest_svc_ns = m["destination_service_namespace"]
            dest_svc = m["destination_service_name"]
            dest = (
                dest_svc_ns,
                dest_svc,
                m["destination_workload_namespace"],
                m["destination_workload"],
                m["destination_app"],
                m["destination_version"],
            )

            if self.inject_service_nodes and dest_svc:
                _, dest_type = resolve_node_id(*dest, self.graph_type)
                if dest_type != NodeType.SERVICE:
                    # Leave the incoming edge alone, one hop can't pool the
                    # response times of several downstream versions.
                    self._add(response_times, val, (dest_svc_ns, dest_svc, "", "", ""), dest)
                    continue

            source = (
                source_ns,
                "",
                m["source_workload"],
                m["source_app"],
                m["source_version"],
            )
            self._add(response_times, val, source, dest)

    def _add(
        self,
        response_times: ResponseTimeMap,
        val: float,
        source: tuple[str, str, str, str, str],
        dest: tuple[str, str, str, str, str, str],
    ) -> None:
        source_ns, source_svc, source_wl, source_app, source_ver = source
        source_id, _ = resolve_node_id(
            source_ns, source_svc, source_ns, source_wl, source_app, source_ver, self.graph_type
        )
        dest_id, _ = resolve_node_id(*dest, self.graph_type)
        key = EdgeKey(source_id, dest_id)

        previous = response_times.get(key)
        if previous is not None and previous != val:
            logger.debug("Overwriting responseTime for [%s]: %.3f -> %.3f", key, previous, val)
        response_times[key] = val


def apply_response_time(traffic_map: TrafficMap, response_times: ResponseTimeMap) -> None:
    for edge in traffic_map.edges():
        val = response_times.get(edge.key)
        if val is not None:
            edge.metadata[RESPONSE_TIME] = val
