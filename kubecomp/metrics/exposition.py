"""Reading and writing the Prometheus text exposition format."""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable

from .model import (
    Bucket,
    HistogramData,
    LabelPair,
    Metric,
    MetricFamily,
    MetricType,
    SummaryData,
)


class ExpositionError(ValueError):
    """Raised for text that is not valid exposition format, or families that cannot be written."""


_BLANK = re.compile(r"[ \t]*")
_METRIC_NAME = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_LABEL_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"')
_ESCAPE = re.compile(r"\\(.)")
_LABEL_ESCAPES = {"\\": "\\", '"': '"', "n": "\n"}
_HELP_ESCAPES = {"\\": "\\", "n": "\n"}
_SUFFIXES = ("_bucket", "_sum", "_count")


def _unescape(text: str, table: dict[str, str], error: Callable[[str], ExpositionError]) -> str:
    def replace(match: re.Match) -> str:
        try:
            return table[match.group(1)]
        except KeyError:
            raise error(f"invalid escape sequence '\\{match.group(1)}'") from None

    return _ESCAPE.sub(replace, text)


def _pairs(labels: dict[str, str]) -> list[LabelPair]:
    return [LabelPair(name, value) for name, value in sorted(labels.items())]


class _Parser:
    def __init__(self) -> None:
        self._families: dict[str, MetricFamily] = {}
        self._typed: set[str] = set()
        self._grouped: dict[tuple[str, tuple[tuple[str, str], ...]], Metric] = {}
        self._inf_buckets: list[tuple[Metric, int]] = []
        self._lineno = 0

    def parse(self, text: str) -> list[MetricFamily]:
        for self._lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.lstrip(" \t")
            if not line.strip():
                continue
            if line.startswith("#"):
                self._comment(line[1:])
            else:
                self._sample(line)
        for metric, count in self._inf_buckets:
            if metric.histogram.sample_count is None:
                metric.histogram.sample_count = count
        return [family for family in self._families.values() if family.metrics]

    def _error(self, message: str) -> ExpositionError:
        return ExpositionError(f"line {self._lineno}: {message}")

    def _family(self, name: str) -> MetricFamily:
        family = self._families.get(name)
        if family is None:
            family = self._families[name] = MetricFamily(name=name)
        return family

    def _comment(self, body: str) -> None:
        tokens = body.split(None, 2)
        if not tokens or tokens[0] not in ("HELP", "TYPE"):
            return
        keyword = tokens[0]
        if len(tokens) < 2 or not _METRIC_NAME.fullmatch(tokens[1]):
            raise self._error(f"{keyword} line without a valid metric name")
        name = tokens[1]
        rest = tokens[2] if len(tokens) > 2 else ""
        family = self._family(name)
        if keyword == "HELP":
            if family.help is not None:
                raise self._error(f"second HELP line for metric name {name!r}")
            family.help = _unescape(rest, _HELP_ESCAPES, self._error)
            return
        if name in self._typed:
            raise self._error(f"second TYPE line for metric name {name!r}")
        if family.metrics:
            raise self._error(f"TYPE line for {name!r} must come before its samples")
        try:
            family.type = MetricType(rest.strip())
        except ValueError:
            raise self._error(f"unknown metric type {rest.strip()!r}") from None
        self._typed.add(name)

    def _family_for(self, name: str) -> tuple[MetricFamily, str]:
        family = self._families.get(name)
        if family is not None:
            return family, ""
        for suffix in _SUFFIXES:
            if name.endswith(suffix):
                base = self._families.get(name[: -len(suffix)])
                if base is not None and (
                    base.type is MetricType.HISTOGRAM
                    or (base.type is MetricType.SUMMARY and suffix != "_bucket")
                ):
                    return base, suffix
        return self._family(name), ""

    def _float(self, token: str) -> float:
        if "_" in token:
            raise self._error(f"invalid value {token!r}")
        try:
            return float(token)
        except ValueError:
            raise self._error(f"invalid value {token!r}") from None

    def _count(self, value: float) -> int:
        if not math.isfinite(value) or value < 0:
            raise self._error(f"invalid count {value!r}")
        return int(value)

    def _labels(self, line: str, pos: int) -> tuple[dict[str, str], int]:
        labels: dict[str, str] = {}
        while True:
            pos = _BLANK.match(line, pos).end()
            if pos >= len(line):
                raise self._error("unterminated label set")
            if line.startswith("}", pos):
                return labels, pos + 1
            name_match = _LABEL_NAME.match(line, pos)
            if name_match is None:
                raise self._error("invalid label name")
            name = name_match.group()
            pos = _BLANK.match(line, name_match.end()).end()
            if not line.startswith("=", pos):
                raise self._error(f"expected '=' after label name {name!r}")
            pos = _BLANK.match(line, pos + 1).end()
            value_match = _QUOTED.match(line, pos)
            if value_match is None:
                raise self._error(f"expected quoted value for label {name!r}")
            if name in labels:
                raise self._error(f"duplicate label name {name!r}")
            labels[name] = _unescape(value_match.group(1), _LABEL_ESCAPES, self._error)
            pos = _BLANK.match(line, value_match.end()).end()
            if line.startswith(",", pos):
                pos += 1
            elif not line.startswith("}", pos):
                raise self._error("expected ',' or '}' in label set")

    def _split_sample(self, line: str) -> tuple[str, dict[str, str], float, int | None]:
        match = _METRIC_NAME.match(line)
        if match is None:
            raise self._error(f"invalid metric name in {line!r}")
        name = match.group()
        pos = _BLANK.match(line, match.end()).end()
        labels: dict[str, str] = {}
        if line.startswith("{", pos):
            labels, pos = self._labels(line, pos + 1)
        elif pos == match.end() and pos < len(line):
            raise self._error(f"invalid metric name in {line!r}")
        fields = line[pos:].split()
        if not fields or len(fields) > 2:
            raise self._error("expected a value and an optional timestamp")
        value = self._float(fields[0])
        timestamp = None
        if len(fields) == 2:
            try:
                timestamp = int(fields[1])
            except ValueError:
                raise self._error(f"invalid timestamp {fields[1]!r}") from None
        return name, labels, value, timestamp

    def _grouped_metric(
        self, family: MetricFamily, labels: dict[str, str], timestamp: int | None
    ) -> Metric:
        key = (family.name, tuple(sorted(labels.items())))
        metric = self._grouped.get(key)
        if metric is None:
            metric = Metric(labels=_pairs(labels), timestamp_ms=timestamp)
            if family.type is MetricType.HISTOGRAM:
                metric.histogram = HistogramData()
            else:
                metric.summary = SummaryData()
            self._grouped[key] = metric
            family.metrics.append(metric)
        return metric

    def _sample(self, line: str) -> None:
        name, labels, value, timestamp = self._split_sample(line)
        family, suffix = self._family_for(name)
        if family.type is MetricType.HISTOGRAM:
            self._histogram_sample(family, suffix, labels, value, timestamp)
        elif family.type is MetricType.SUMMARY:
            self._summary_sample(family, suffix, labels, value, timestamp)
        else:
            family.metrics.append(Metric(labels=_pairs(labels), value=value, timestamp_ms=timestamp))

    def _histogram_sample(self, family, suffix, labels, value, timestamp) -> None:
        if suffix == "":
            raise self._error(f"sample of histogram {family.name!r} lacks a suffix")
        bound = labels.pop("le", None) if suffix == "_bucket" else None
        if suffix == "_bucket" and bound is None:
            raise self._error(f"bucket of histogram {family.name!r} lacks an 'le' label")
        metric = self._grouped_metric(family, labels, timestamp)
        if suffix == "_bucket":
            upper = self._float(bound)
            count = self._count(value)
            if upper == math.inf:
                self._inf_buckets.append((metric, count))
            else:
                metric.histogram.buckets.append(Bucket(cumulative_count=count, upper_bound=upper))
        elif suffix == "_sum":
            metric.histogram.sample_sum = value
        else:
            metric.histogram.sample_count = self._count(value)

    def _summary_sample(self, family, suffix, labels, value, timestamp) -> None:
        quantile = labels.pop("quantile", None) if suffix == "" else None
        if suffix == "" and quantile is None:
            raise self._error(f"sample of summary {family.name!r} lacks a 'quantile' label")
        metric = self._grouped_metric(family, labels, timestamp)
        if suffix == "":
            metric.summary.quantiles[self._float(quantile)] = value
        elif suffix == "_sum":
            metric.summary.sample_sum = value
        else:
            metric.summary.sample_count = self._count(value)


def parse_text(text: str) -> list[MetricFamily]:
    """Parse exposition text into metric families, dropping families without samples."""
    return _Parser().parse(text)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _escape_help(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n")


def _format_line(
    name: str, metric: Metric, value: str, extra: tuple[str, str] | None = None
) -> str:
    labels = [(pair.name, pair.value) for pair in metric.labels]
    if extra is not None:
        labels.append(extra)
    label_text = ""
    if labels:
        label_text = "{" + ",".join(f'{n}="{_escape_label(v)}"' for n, v in labels) + "}"
    line = f"{name}{label_text} {value}"
    if metric.timestamp_ms is not None:
        line += f" {metric.timestamp_ms}"
    return line


def _format_metric(family: MetricFamily, metric: Metric) -> Iterable[str]:
    name = family.name
    if family.type is MetricType.SUMMARY:
        summary = metric.summary
        if summary is None:
            raise ExpositionError(f"summary {name!r} has a metric without summary data")
        for quantile, value in sorted(summary.quantiles.items()):
            yield _format_line(name, metric, _format_float(value), ("quantile", _format_float(quantile)))
        yield _format_line(name + "_sum", metric, _format_float(summary.sample_sum or 0.0))
        yield _format_line(name + "_count", metric, str(summary.sample_count or 0))
    elif family.type is MetricType.HISTOGRAM:
        histogram = metric.histogram
        if histogram is None:
            raise ExpositionError(f"histogram {name!r} has a metric without histogram data")
        count = histogram.sample_count or 0
        last_bound = None
        for bucket in histogram.buckets:
            if bucket is None or bucket.upper_bound is None:
                raise ExpositionError(f"histogram {name!r} has an incomplete bucket")
            last_bound = bucket.upper_bound
            yield _format_line(
                name + "_bucket",
                metric,
                str(bucket.cumulative_count or 0),
                ("le", _format_float(bucket.upper_bound)),
            )
        if last_bound != math.inf:
            yield _format_line(name + "_bucket", metric, str(count), ("le", "+Inf"))
        yield _format_line(name + "_sum", metric, _format_float(histogram.sample_sum or 0.0))
        yield _format_line(name + "_count", metric, str(count))
    else:
        if metric.value is None:
            raise ExpositionError(f"{family.type.value} {name!r} has a metric without a value")
        yield _format_line(name, metric, _format_float(metric.value))


def format_text(families: Iterable[MetricFamily]) -> str:
    """Write metric families in the text exposition format."""
    lines: list[str] = []
    for family in families:
        if not family.metrics:
            raise ExpositionError(f"metric family {family.name!r} has no metrics")
        if family.help is not None:
            lines.append(f"# HELP {family.name} {_escape_help(family.help)}")
        lines.append(f"# TYPE {family.name} {family.type.value}")
        for metric in family.metrics:
            lines.extend(_format_metric(family, metric))
    return "".join(line + "\n" for line in lines)