"""Data model of gathered metrics and the interfaces that produce them."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


class MetricType(Enum):
    """Kind of a metric family, named as in the text format."""

    COUNTER = "counter"
    GAUGE = "gauge"
    SUMMARY = "summary"
    UNTYPED = "untyped"
    HISTOGRAM = "histogram"


@dataclass
class LabelPair:
    """One label of a metric."""

    name: str
    value: str


@dataclass
class Bucket:
    """Cumulative bucket of a histogram."""

    cumulative_count: int | None = None
    upper_bound: float | None = None


@dataclass
class HistogramData:
    """Histogram state; the implicit +Inf bucket is not stored."""

    sample_count: int | None = None
    sample_sum: float | None = None
    buckets: list[Bucket | None] = field(default_factory=list)


@dataclass
class SummaryData:
    """Summary state with quantile values keyed by quantile."""

    sample_count: int | None = None
    sample_sum: float | None = None
    quantiles: dict[float, float] = field(default_factory=dict)


@dataclass
class Metric:
    """A single labelled metric of a family."""

    labels: list[LabelPair] = field(default_factory=list)
    value: float | None = None
    histogram: HistogramData | None = None
    summary: SummaryData | None = None
    timestamp_ms: int | None = None

    def label_map(self) -> dict[str, str]:
        """Return the labels as a name to value mapping."""
        return {pair.name: pair.value for pair in self.labels}


@dataclass
class MetricFamily:
    """All metrics sharing one name."""

    name: str
    type: MetricType = MetricType.UNTYPED
    help: str | None = None
    metrics: list[Metric] = field(default_factory=list)


@runtime_checkable
class Collector(Protocol):
    """Something that produces metric families."""

    def describe(self) -> Iterable[str]:
        """Yield the fully-qualified names of the metrics this collector produces."""

    def collect(self) -> Iterable[MetricFamily]:
        """Yield the current metric families."""


@runtime_checkable
class Gatherer(Protocol):
    """Something that gathers collected metrics into families."""

    def gather(self) -> list[MetricFamily]:
        """Return the gathered families sorted by name."""