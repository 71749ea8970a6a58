# kubecomp

Building blocks for long-running components that report their build
version and expose metrics in the Prometheus text format.

## What is inside

- `kubecomp.version` – the build's version record `Info` and `get()`,
  which returns it. `str(info)` gives the git version string.
- `kubecomp.verflag` – a `--version` option for `argparse`.
  `add_flags(parser)` adds it; `--version` alone means `true`, and
  `--version=raw` asks for the full record. `parse_version_value(text)`
  turns `true`/`false`-style words or `raw` into a `VersionValue`.
  `print_and_exit_if_requested(value)` prints `Kubernetes <git version>`
  (or the `repr` of the record for `raw`) and raises `SystemExit(0)`;
  for `VersionValue.FALSE` it does nothing.
- `kubecomp.term` – `terminal_size(stream)` returns `(width, height)` of
  the terminal behind a stream and raises `OSError` when the stream is not
  a terminal.
- `kubecomp.metrics.version_parser` – `parse_version(info)` takes the
  `major.minor.patch` part out of a `v…` git version (raising `ValueError`
  when there is none); `parse_semver(text)` parses a version string or
  returns `None` for an empty one.
- `kubecomp.metrics.model` – `MetricFamily`, `Metric`, `LabelPair`,
  `Bucket`, `HistogramData`, `SummaryData` and `MetricType`, plus the
  `Collector` and `Gatherer` protocols.
- `kubecomp.metrics.exposition` – `parse_text(text)` and
  `format_text(families)` for the text exposition format. Malformed input,
  or a family that cannot be written (for example one with no metrics),
  raises `ExpositionError`.
- `kubecomp.metrics.registry` – `KubeRegistry`, created with
  `new_kube_registry(info)`, knows the build version and applies the
  deprecation lifecycle through each collector's `create(version)`: a
  collector that returns `False` is kept aside as hidden, and
  `set_show_hidden()` registers all hidden collectors of every registry
  (only the first call has an effect). `should_hide(current, deprecated)`
  tells whether a deprecation version lies before the current minor
  release. `set_disabled_metric(name)` records a metric name as disabled
  and `is_metric_disabled(name)` reports it, for collectors to consult.
  `reset()` calls `reset()` on every registered collector that has one.
  `PromRegistry` is the plain registry underneath.
- `kubecomp.metrics.testutil.metrics` – `Histogram` and `HistogramVec`
  with quantile, average and validation helpers, `labels_match`,
  `get_histogram_vec_from_gatherer`, and sample-level helpers
  (`parse_metrics`, `Metrics`, `Sample`, `print_sample`,
  `compute_histogram_delta`, `validate_metrics`, …).
- `kubecomp.metrics.testutil.promlint` – a metrics `Linter` with a
  built-in list of known exceptions, `Problem`, `merge_problems` and
  `raise_for_problems`.
- `kubecomp.metrics.testutil.testutil` – `gather_and_compare`,
  `collect_and_compare`, `custom_collect_and_compare` and
  `new_fake_kube_registry`.

## Usage

A collector and a registry:

```python
from kubecomp.metrics.model import Metric, MetricFamily, MetricType
from kubecomp.metrics.registry import new_kube_registry
from kubecomp.version import get


class Requests:
    def __init__(self):
        self.count = 0

    def fq_name(self):
        return "requests_total"

    def describe(self):
        yield "requests_total"

    def create(self, version):
        return True  # False keeps the collector hidden

    def clear_state(self):
        pass

    def reset(self):
        self.count = 0

    def collect(self):
        yield MetricFamily(
            name="requests_total",
            type=MetricType.COUNTER,
            help="Requests served.",
            metrics=[Metric(value=float(self.count))],
        )


registry = new_kube_registry(get())
requests = Requests()
registry.must_register(requests)
requests.count += 1
families = registry.gather()
```

Registering the same collector twice raises `AlreadyRegisteredError`.
Custom collectors that follow the `StableCollector` protocol go through
`registry.custom_register(...)` or `registry.custom_must_register(...)`;
`raw_must_register(...)` skips the stability checks.

Rendering what a registry holds:

```python
from kubecomp.metrics.exposition import format_text

print(format_text(registry.gather()), end="")
```

A `--version` flag:

```python
import argparse
from kubecomp.verflag import add_flags, print_and_exit_if_requested

parser = argparse.ArgumentParser()
add_flags(parser)
args = parser.parse_args()
print_and_exit_if_requested(args.version)
```

Testing metrics against a pinned build version:

```python
from kubecomp.metrics.testutil.testutil import new_fake_kube_registry, gather_and_compare

registry = new_fake_kube_registry("1.18.0")
# register collectors, record some values, then:
gather_and_compare(registry, expected_text, "requests_total")
```

`gather_and_compare` lints the gathered metrics first (raising `LintError`
for problems not on the exception list) and raises `ComparisonError`, an
`AssertionError`, when the output differs from the expected text.

Linting exposition text directly:

```python
from kubecomp.metrics.testutil.promlint import Linter

for problem in Linter(text).lint():
    print(problem)
```

Histogram quantiles from gathered data:

```python
from kubecomp.metrics.testutil.metrics import get_histogram_vec_from_gatherer

vec = get_histogram_vec_from_gatherer(registry, "request_duration_seconds", {"verb": "GET"})
vec.validate()
print(vec.quantile(0.99), vec.average())
```

## What it does not do

The package has no ready-made metric types: there are no counter, gauge,
histogram or summary classes, no labelled metric vectors and no label
value allow-lists. You supply collectors that follow the `Registerable`
or `StableCollector` protocols and decide in `create(version)` whether
they are hidden and how their help text is marked. Nothing serves metrics
over HTTP, and there is no command-line program; `verflag` only provides
the option for your own.

## Running the tests

Install the `test` extra; the suite runs under pytest.