"""Sequential appender pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from mesh_graph.errors import ClientConstructionError, NamespaceEnrichmentError
from mesh_graph.graph.models import TrafficMap

from .base import Appender, GlobalInfo, NamespaceInfo, NamespaceInfoMap

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NamespaceRun:
    namespace: str
    appenders: list[str] = field(default_factory=list)
    elapsed_ms: dict[str, float] = field(default_factory=dict)
    error: NamespaceEnrichmentError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class PipelineReport:
    runs: dict[str, NamespaceRun] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(run.ok for run in self.runs.values())

    @property
    def errors(self) -> list[NamespaceEnrichmentError]:
        return [run.error for run in self.runs.values() if run.error is not None]


class AppenderPipeline:
    """Runs caller-ordered appenders against a traffic map, one namespace at a time.

    Within a namespace appenders run strictly in order, later stages may read
    metadata written by earlier ones. A failing appender stops its own
    namespace only. A metrics client that can't be built stops everything.
    """

    def __init__(self, appenders: Iterable[Appender]) -> None:
        self.appenders: list[Appender] = list(appenders)

    @property
    def names(self) -> list[str]:
        return [a.name for a in self.appenders]

    async def run_namespace(
        self,
        traffic_map: TrafficMap,
        global_info: GlobalInfo,
        namespace_info: NamespaceInfo,
    ) -> NamespaceRun:
        run = NamespaceRun(namespace=namespace_info.name)
        for appender in self.appenders:
            t0 = time.perf_counter()
            try:
                await appender.append_graph(traffic_map, global_info, namespace_info)
            except ClientConstructionError:
                raise
            except Exception as e:
                run.error = NamespaceEnrichmentError(namespace_info.name, appender.name, e)
                logger.error("%s", run.error)
                break
            finally:
                run.elapsed_ms[appender.name] = (time.perf_counter() - t0) * 1000.0
            run.appenders.append(appender.name)
        return run

    async def run(
        self,
        traffic_map: TrafficMap,
        global_info: GlobalInfo,
        namespaces: NamespaceInfoMap,
        *,
        fail_fast: bool = False,
    ) -> PipelineReport:
        """Enrich one shared map for every namespace, sequentially."""

        report = PipelineReport()
        for name, namespace_info in namespaces.items():
            run = await self.run_namespace(traffic_map, global_info, namespace_info)
            report.runs[name] = run
            if run.error is not None and fail_fast:
                raise run.error
        return report

    async def run_each(
        self,
        traffic_maps: Mapping[str, TrafficMap],
        global_info: GlobalInfo,
        namespaces: NamespaceInfoMap,
        *,
        fail_fast: bool = False,
    ) -> PipelineReport:
        """Enrich a separate map per namespace, namespaces running concurrently.

        A failing namespace does not cancel the others.
        """

        missing = [name for name in namespaces if name not in traffic_maps]
        if missing:
            raise ValueError(f"no traffic map for namespaces {missing}")
        maps = [traffic_maps[name] for name in namespaces]
        if len({id(tm) for tm in maps}) != len(maps):
            raise ValueError("run_each requires a distinct traffic map per namespace")

        results = await asyncio.gather(
            *(
                self.run_namespace(tm, global_info, namespace_info)
                for tm, namespace_info in zip(maps, namespaces.values())
            ),
            return_exceptions=True,
        )

        report = PipelineReport()
        for name, result in zip(namespaces, results):
            if isinstance(result, BaseException):
                raise result
            report.runs[name] = result
        if fail_fast and report.errors:
            raise report.errors[0]
        return report
