from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx

from mesh_graph.errors import QueryError
from mesh_graph.prometheus.http import HttpClientFactory, transient_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Sample:
    """One element of an instant vector: a label set and its value."""

    metric: dict[str, str]
    value: float
    timestamp: float | None = None


@dataclass(frozen=True)
class PrometheusConfig:
    url: str = "http://localhost:9090"
    token: str | None = None
    timeout_s: float = 30.0
    extra_headers: dict[str, str] = field(default_factory=dict)


class MetricsClient(Protocol):
    """What the enrichment engine needs from a metrics store."""

    async def query(self, expression: str, ts: datetime | float) -> list[Sample]: ...

    async def aclose(self) -> None: ...


def _unix(ts: datetime | float) -> float:
    if isinstance(ts, datetime):
        return ts.timestamp()
    return float(ts)


class PrometheusClient:
    """Prometheus HTTP API client (instant queries only).

    Docs: https://prometheus.io/docs/prometheus/latest/querying/api/

    Transport failures are retried with backoff; HTTP and PromQL errors are
    raised as QueryError straight away.
    """

    def __init__(self, cfg: PrometheusConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self.cfg = cfg
        headers = dict(cfg.extra_headers)
        if cfg.token:
            headers["Authorization"] = f"Bearer {cfg.token}"
        self._client = HttpClientFactory.client(
            base_url=cfg.url.rstrip("/"),
            headers=headers,
            read_timeout_s=cfg.timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def query(self, expression: str, ts: datetime | float) -> list[Sample]:
        try:
            payload = await self._get_query(expression, _unix(ts))
        except httpx.HTTPStatusError as e:
            raise QueryError(
                f"prometheus returned HTTP {e.response.status_code}: {_error_text(e.response)}",
                expression=expression,
            ) from e
        except httpx.HTTPError as e:
            raise QueryError(f"prometheus request failed: {e}", expression=expression) from e
        return parse_vector(payload, expression=expression)

    @transient_retry()
    async def _get_query(self, expression: str, ts: float) -> dict[str, Any]:
        logger.debug("Prometheus query at %.3f: %s", ts, expression)
        r = await self._client.get("/api/v1/query", params={"query": expression, "time": f"{ts:.3f}"})
        r.raise_for_status()
        return r.json()


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text[:200]


def parse_vector(payload: Any, *, expression: str | None = None) -> list[Sample]:
    """Convert an instant-query response body into samples.

    Raises QueryError for error payloads and for anything but a vector.
    Malformed elements are logged and skipped.
    """

    if not isinstance(payload, dict):
        raise QueryError("malformed prometheus response", expression=expression)
    if payload.get("status") != "success":
        raise QueryError(
            f"prometheus query failed: {payload.get('errorType', 'error')}: {payload.get('error', '')}",
            expression=expression,
        )

    data = payload.get("data") or {}
    result_type = data.get("resultType")
    if result_type != "vector":
        raise QueryError(f"expected a vector result, got [{result_type}]", expression=expression)

    samples: list[Sample] = []
    for item in data.get("result") or []:
        try:
            ts, raw = item["value"]
            samples.append(
                Sample(
                    metric={str(k): str(v) for k, v in (item.get("metric") or {}).items()},
                    value=float(raw),
                    timestamp=float(ts),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed vector element %r", item)
            continue
    return samples


def build_prometheus_client(
    cfg: PrometheusConfig, *, transport: httpx.AsyncBaseTransport | None = None
) -> PrometheusClient:
    """Validate `cfg` and create the client."""

    if not cfg.url:
        raise ValueError("prometheus url must be set")
    parsed = urlparse(cfg.url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"invalid prometheus url [{cfg.url}]")
    if cfg.timeout_s <= 0:
        raise ValueError("timeout_s must be > 0")
    return PrometheusClient(cfg, transport=transport)
