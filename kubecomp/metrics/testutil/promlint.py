"""Linting of metrics in the text exposition format."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import IO

from ..exposition import parse_text
from ..model import MetricFamily, MetricType

# Metrics that break lint rules but predate the linter.
_EXCEPTION_METRICS = frozenset(
    {
        "apiserver_egress_dialer_dial_failure_count",
        "apiserver_request_total",
        "authenticated_user_requests",
        "authentication_attempts",
        "aggregator_openapi_v2_regeneration_count",
        "apiserver_admission_step_admission_duration_seconds_summary",
        "apiserver_current_inflight_requests",
        "apiserver_longrunning_gauge",
        "get_token_count",
        "get_token_fail_count",
        "ssh_tunnel_open_count",
        "ssh_tunnel_open_fail_count",
        "attachdetach_controller_forced_detaches",
        "node_collector_evictions_number",
    }
)

_CAMEL = re.compile(r"[a-z][A-Z]")


@dataclass(frozen=True, order=True)
class Problem:
    """An issue found with one metric."""

    metric: str
    text: str

    def __str__(self) -> str:
        return f"{self.metric}:{self.text}"


class LintError(Exception):
    """Raised when metrics break lint rules."""


def _family_problems(family: MetricFamily) -> Iterable[Problem]:
    name = family.name
    if not family.help:
        yield Problem(name, "no help text")
    if family.type is MetricType.COUNTER and not name.endswith("_total"):
        yield Problem(name, 'counter metrics should have "_total" suffix')
    if family.type is not MetricType.COUNTER and name.endswith("_total"):
        yield Problem(name, 'non-counter metrics should not have "_total" suffix')
    if _CAMEL.search(name):
        yield Problem(name, "metric names should be written in 'snake_case' not 'camelCase'")
    if ":" in name:
        yield Problem(name, "metric names should not contain ':'")
    label_names = {pair.name for metric in family.metrics for pair in metric.labels}
    if any(_CAMEL.search(label) for label in label_names):
        yield Problem(name, "label names should be written in 'snake_case' not 'camelCase'")


def lint_families(families: Iterable[MetricFamily]) -> list[Problem]:
    """Return the problems of families, sorted by metric name and text."""
    return sorted({p for family in families for p in _family_problems(family)})


class Linter:
    """Lints metrics read from exposition text, ignoring known exceptions."""

    def __init__(self, source: str | IO[str]) -> None:
        self._text = source if isinstance(source, str) else source.read()

    def lint(self) -> list[Problem]:
        """Return the problems found, sorted, without excepted metrics."""
        problems = lint_families(parse_text(self._text))
        return [p for p in problems if p.metric not in _EXCEPTION_METRICS]


def merge_problems(problems: Iterable[Problem] | None) -> str:
    """Join problems into one comma-separated message."""
    return ",".join(str(p) for p in problems or ())


def raise_for_problems(problems: Iterable[Problem]) -> None:
    """Raise LintError if any problem concerns a metric not on the exception list."""
    remaining = [p for p in problems if p.metric not in _EXCEPTION_METRICS]
    if remaining:
        raise LintError(f"lint error: {merge_problems(remaining)}")