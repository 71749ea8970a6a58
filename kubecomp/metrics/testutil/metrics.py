"""Helpers for inspecting gathered and exposed metrics in tests."""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import IO, Protocol

from ..exposition import parse_text
from ..model import Bucket, Gatherer, HistogramData, Metric, MetricFamily, MetricType

METRIC_NAME_LABEL = "__name__"
QUANTILE_LABEL = "quantile"
_BUCKET_LABEL = "le"


def _format_value(value: float) -> str:
    """Format a sample value in plain decimal notation."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_label_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _ratio(numerator: float, denominator: float) -> float:
    """Divide with IEEE semantics instead of raising on a zero denominator."""
    if denominator:
        return numerator / denominator
    if numerator == 0 or math.isnan(numerator):
        return math.nan
    return math.copysign(math.inf, numerator)


@dataclass(eq=False)
class Sample:
    """One value of a metric with its full label set, the name included."""

    metric: dict[str, str]
    value: float
    timestamp_ms: int | None = None

    @property
    def name(self) -> str:
        return self.metric.get(METRIC_NAME_LABEL, "")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        same_value = self.value == other.value or (
            math.isnan(self.value) and math.isnan(other.value)
        )
        return (
            same_value
            and self.metric == other.metric
            and self.timestamp_ms == other.timestamp_ms
        )

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        labels = ", ".join(
            f"{key}={json.dumps(value)}"
            for key, value in sorted(self.metric.items())
            if key != METRIC_NAME_LABEL
        )
        text = f"{self.name}{{{labels}}}" if labels else self.name
        text += f" => {_format_value(self.value)}"
        if self.timestamp_ms is not None:
            text += f" @[{self.timestamp_ms}]"
        return text


class Metrics(dict):
    """Samples grouped by metric name."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return self.keys() == other.keys() and all(
            list(samples) == list(other[name]) for name, samples in self.items()
        )

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None  # type: ignore[assignment]


def _family_samples(family: MetricFamily) -> Iterator[Sample]:
    name = family.name
    for metric in family.metrics:
        base = metric.label_map()
        stamp = metric.timestamp_ms
        if family.type is MetricType.SUMMARY:
            summary = metric.summary
            quantiles = summary.quantiles if summary else {}
            for quantile, value in quantiles.items():
                labels = {**base, QUANTILE_LABEL: _format_label_float(quantile)}
                yield Sample({**labels, METRIC_NAME_LABEL: name}, value, stamp)
            total = summary.sample_sum if summary and summary.sample_sum is not None else 0.0
            count = summary.sample_count if summary and summary.sample_count is not None else 0
            yield Sample({**base, METRIC_NAME_LABEL: name + "_sum"}, total, stamp)
            yield Sample({**base, METRIC_NAME_LABEL: name + "_count"}, float(count), stamp)
        elif family.type is MetricType.HISTOGRAM:
            histogram = metric.histogram or HistogramData()
            inf_seen = False
            for bucket in histogram.buckets:
                bound = bucket.upper_bound if bucket and bucket.upper_bound is not None else 0.0
                count = bucket.cumulative_count if bucket and bucket.cumulative_count else 0
                inf_seen = inf_seen or bound == math.inf
                labels = {**base, _BUCKET_LABEL: _format_label_float(bound)}
                yield Sample({**labels, METRIC_NAME_LABEL: name + "_bucket"}, float(count), stamp)
            total = histogram.sample_sum if histogram.sample_sum is not None else 0.0
            count = histogram.sample_count if histogram.sample_count is not None else 0
            yield Sample({**base, METRIC_NAME_LABEL: name + "_sum"}, total, stamp)
            yield Sample({**base, METRIC_NAME_LABEL: name + "_count"}, float(count), stamp)
            if not inf_seen:
                labels = {**base, _BUCKET_LABEL: "+Inf"}
                yield Sample({**labels, METRIC_NAME_LABEL: name + "_bucket"}, float(count), stamp)
        else:
            value = metric.value if metric.value is not None else 0.0
            yield Sample({**base, METRIC_NAME_LABEL: name}, value, stamp)


def parse_metrics(data: str, output: Metrics | None = None) -> Metrics:
    """Add the samples of exposition text to output, grouped by sample name."""
    if output is None:
        output = Metrics()
    for family in parse_text(data):
        for sample in _family_samples(family):
            output.setdefault(sample.name, []).append(sample)
    return output


def text_to_metric_families(source: str | IO[str]) -> dict[str, MetricFamily]:
    """Parse exposition text into families keyed by metric name."""
    text = source if isinstance(source, str) else source.read()
    return {family.name: family for family in parse_text(text)}


def print_sample(sample: Sample) -> str:
    """Return a short, readable form of a sample."""
    normal_container = "kubernetes_container_name" in sample.metric
    parts = [
        f"{key}={value}"
        for key, value in sorted(sample.metric.items())
        if not key.startswith("__") and not (key == "id" and normal_container)
    ]
    return f"[{','.join(parts)}] = {_format_value(sample.value)}"


def compute_histogram_delta(
    before: Iterable[Sample], after: Iterable[Sample], label: str
) -> None:
    """Subtract the matching before values from the after samples, in place."""

    def key(sample: Sample) -> tuple[str, str]:
        return sample.metric.get(label, ""), sample.metric.get(_BUCKET_LABEL, "")

    earlier = {key(sample): sample for sample in before}
    for sample in after:
        match = earlier.get(key(sample))
        if match is not None:
            sample.value -= match.value


def get_metric_values_for_label(
    ms: Mapping[str, list[Sample]], metric_name: str, label: str
) -> dict[str, int]:
    """Map each value of label to the integer value of the metric."""
    return {
        sample.metric.get(label, ""): int(sample.value) for sample in ms.get(metric_name, ())
    }


def validate_metrics(metrics: Mapping[str, list[Sample]], metric_name: str, *args: str) -> None:
    """Raise ValueError unless every sample of the metric has all labels in args."""
    samples = metrics.get(metric_name)
    if samples is None:
        raise ValueError(f"metric {json.dumps(metric_name)} was not found in metrics")
    for sample in samples:
        for label in args:
            if label not in sample.metric:
                raise ValueError(
                    f"metric {json.dumps(metric_name)} is missing label {json.dumps(label)}, "
                    f"sample: {json.dumps(str(sample))}"
                )


@dataclass
class _Bucket:
    upper_bound: float
    count: float


def _bucket_count(bucket: Bucket | None) -> float:
    if bucket is None or bucket.cumulative_count is None:
        return 0.0
    return float(bucket.cumulative_count)


def _bucket_bound(bucket: Bucket | None) -> float:
    if bucket is None or bucket.upper_bound is None:
        return 0.0
    return bucket.upper_bound


def _bucket_quantile(q: float, buckets: list[_Bucket]) -> float:
    if q < 0:
        return -math.inf
    if q > 1:
        return math.inf
    if len(buckets) < 2:
        return math.nan

    rank = q * buckets[-1].count
    last = len(buckets) - 1
    b = next((i for i, bucket in enumerate(buckets[:-1]) if bucket.count >= rank), last)

    if b == 0:
        return buckets[0].upper_bound * _ratio(rank, buckets[0].count)
    if b == last and math.isinf(buckets[b].upper_bound) and buckets[b].upper_bound > 0:
        return buckets[-2].upper_bound

    lower, upper = buckets[b - 1], buckets[b]
    size = upper.upper_bound - lower.upper_bound
    return lower.upper_bound + size * _ratio(rank - lower.count, upper.count - lower.count)


def _with_inf_bucket(buckets: list[_Bucket], total: int) -> list[_Bucket]:
    if not buckets or buckets[-1].upper_bound != math.inf:
        # Stored buckets omit the final +Inf bucket, which holds every sample.
        buckets.append(_Bucket(math.inf, float(total)))
    return buckets


class Histogram(HistogramData):
    """Histogram data with quantile and validation helpers."""

    def quantile(self, q: float) -> float:
        """Estimate the q-th quantile of the cumulative histogram."""
        buckets = [_Bucket(_bucket_bound(b), _bucket_count(b)) for b in self.buckets]
        return _bucket_quantile(q, _with_inf_bucket(buckets, self.sample_count or 0))

    def average(self) -> float:
        """Return the mean of the observed samples."""
        return _ratio(self.sample_sum or 0.0, float(self.sample_count or 0))

    def validate(self) -> None:
        """Raise ValueError unless all necessary fields are set to valid values."""
        if not self.sample_count:
            raise ValueError("nil or empty histogram SampleCount")
        if not self.sample_sum:
            raise ValueError("nil or empty histogram SampleSum")
        for bucket in self.buckets:
            if bucket is None:
                raise ValueError("empty histogram bucket")
            if bucket.upper_bound is None or bucket.upper_bound < 0:
                raise ValueError("nil or negative histogram bucket UpperBound")


class HistogramVec(list):
    """Histograms that share one bucket layout."""

    def aggregated_sample_count(self) -> int:
        """Return the total sample count of all histograms."""
        return sum(hist.sample_count or 0 for hist in self)

    def aggregated_sample_sum(self) -> float:
        """Return the total sample sum of all histograms."""
        return sum((hist.sample_sum or 0.0 for hist in self), 0.0)

    def quantile(self, q: float) -> float:
        """Estimate the q-th quantile over the histograms' combined buckets."""
        hists = iter(self)
        first = next(hists, None)
        buckets = (
            [] if first is None else [_Bucket(_bucket_bound(b), _bucket_count(b)) for b in first.buckets]
        )
        for hist in hists:
            if len(hist.buckets) > len(buckets):
                raise ValueError("histograms have more buckets than the first one")
            for aggregate, bucket in zip(buckets, hist.buckets):
                aggregate.count += _bucket_count(bucket)
        return _bucket_quantile(q, _with_inf_bucket(buckets, self.aggregated_sample_count()))

    def average(self) -> float:
        """Return the mean over all samples of all histograms."""
        return _ratio(self.aggregated_sample_sum(), float(self.aggregated_sample_count()))

    def validate(self) -> None:
        """Raise ValueError if a histogram is invalid or bucket sizes differ."""
        size = None
        for index, hist in enumerate(self):
            hist.validate()
            if size is None:
                size = len(hist.buckets)
            elif size != len(hist.buckets):
                raise ValueError(
                    f"found different bucket size: expect {size}, "
                    f"but got {len(hist.buckets)} at index {index}"
                )


def get_histogram_vec_from_gatherer(
    gatherer: Gatherer, metric_name: str, lv_map: Mapping[str, str]
) -> HistogramVec:
    """Collect the histograms of metric_name whose labels match lv_map."""
    family = next((f for f in gatherer.gather() if f.name == metric_name), None)
    if family is None:
        raise ValueError(f"metric {json.dumps(metric_name)} not found")
    if not family.metrics:
        raise ValueError(f"metric {json.dumps(metric_name)} is empty")
    return HistogramVec(
        Histogram(
            sample_count=metric.histogram.sample_count,
            sample_sum=metric.histogram.sample_sum,
            buckets=list(metric.histogram.buckets),
        )
        for metric in family.metrics
        if labels_match(metric, lv_map) and metric.histogram is not None
    )


class _Writable(Protocol):
    def write(self) -> Metric: ...


def get_gauge_metric_value(metric: _Writable) -> float:
    """Return the current value of a gauge."""
    value = metric.write().value
    return value if value is not None else 0.0


def get_counter_metric_value(metric: _Writable) -> float:
    """Return the current value of a counter."""
    value = metric.write().value
    return value if value is not None else 0.0


def get_histogram_metric_value(metric: _Writable) -> float:
    """Return the sum of all samples observed by a histogram."""
    histogram = metric.write().histogram
    if histogram is None or histogram.sample_sum is None:
        return 0.0
    return histogram.sample_sum


def get_histogram_metric_count(metric: _Writable) -> int:
    """Return the number of samples observed by a histogram."""
    histogram = metric.write().histogram
    if histogram is None or histogram.sample_count is None:
        return 0
    return histogram.sample_count


def labels_match(metric: Metric, label_filter: Mapping[str, str]) -> bool:
    """Return True if the metric carries every label of the filter with its value."""
    labels = metric.label_map()
    if len(label_filter) > len(labels):
        return False
    return all(labels.get(name) == value for name, value in label_filter.items())