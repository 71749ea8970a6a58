"""Comparison of gathered metrics with expected exposition text."""

from __future__ import annotations

from collections.abc import Iterable
from typing import IO

from ...version import Info
from ..exposition import format_text, parse_text
from ..model import Collector, Gatherer, MetricFamily
from ..registry import KubeRegistry, PromRegistry, StableCollector, new_kube_registry
from .promlint import lint_families, raise_for_problems


class ComparisonError(AssertionError):
    """Raised when gathered metrics differ from the expected ones."""


def _read(expected: str | IO[str]) -> str:
    return expected if isinstance(expected, str) else expected.read()


def _select(families: Iterable[MetricFamily], names: frozenset[str]) -> list[MetricFamily]:
    families = list(families)
    if not names:
        return families
    return [family for family in families if family.name in names]


def _normalize(families: Iterable[MetricFamily]) -> list[MetricFamily]:
    def label_key(metric):
        return tuple(sorted((pair.name, pair.value) for pair in metric.labels))

    return [
        MetricFamily(
            name=family.name,
            type=family.type,
            help=family.help,
            metrics=sorted(family.metrics, key=label_key),
        )
        for family in sorted(families, key=lambda f: f.name)
    ]


def gather_and_compare(gatherer: Gatherer, expected: str | IO[str], *args: str) -> None:
    """Lint and compare gathered metrics with expected text.

    When metric names are given in args, only those metrics are considered.
    Raises LintError on lint problems and ComparisonError on a difference.
    """
    names = frozenset(args)
    got = _select(gatherer.gather(), names)
    raise_for_problems(lint_families(got))
    want = _select(parse_text(_read(expected)), names)
    got_text = format_text(_normalize(got))
    want_text = format_text(_normalize(want))
    if got_text != want_text:
        raise ComparisonError(
            "metric output does not match expectation; want:\n\n"
            f"{want_text}\ngot:\n\n{got_text}"
        )


def collect_and_compare(collector: Collector, expected: str | IO[str], *args: str) -> None:
    """Register collector with a fresh registry and compare what it gathers."""
    registry = PromRegistry()
    registry.register(collector)
    gather_and_compare(registry, expected, *args)


def custom_collect_and_compare(
    collector: StableCollector, expected: str | IO[str], *args: str
) -> None:
    """Register a stable collector with a fresh registry and compare what it gathers."""
    registry = new_kube_registry()
    registry.custom_must_register(collector)
    gather_and_compare(registry, expected, *args)


def new_fake_kube_registry(ver: str) -> KubeRegistry:
    """Create a registry that behaves as if built at version ver, e.g. '1.18.0'."""
    return new_kube_registry(Info(git_version=f"v{ver}-alpha+1.12345"))