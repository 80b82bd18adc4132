"""Small helpers for composing PromQL text."""

from __future__ import annotations

from collections.abc import Iterable


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def eq(label: str, value: str) -> str:
    return f"{label}={_quote(value)}"


def neq(label: str, value: str) -> str:
    return f"{label}!={_quote(value)}"


def re_match(label: str, pattern: str) -> str:
    return f"{label}=~{_quote(pattern)}"


def re_not_match(label: str, pattern: str) -> str:
    return f"{label}!~{_quote(pattern)}"


def alternation(values: Iterable[str]) -> str:
    """`a|b|c` over the distinct values, sorted for stable query text."""
    return "|".join(sorted({v for v in values if v}))


def histogram_quantile(
    quantile: float,
    metric: str,
    matchers: Iterable[str],
    duration_s: int,
    group_by: Iterable[str],
) -> str:
    """Percentile over a rate-normalized histogram.

    `quantile` is a percentage in (0, 100); PromQL expects a fraction.
    """

    selector = ",".join(matchers)
    by = ",".join(group_by)
    return (
        f"histogram_quantile({quantile / 100.0:.10g}, "
        f"sum(rate({metric}{{{selector}}}[{int(duration_s)}s])) by ({by}))"
    )
