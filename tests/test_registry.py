import pytest

from kubecomp.metrics import registry as registry_mod
from kubecomp.metrics.model import Metric, LabelPair, MetricFamily, MetricType
from kubecomp.metrics.registry import (
    AlreadyRegisteredError,
    is_metric_disabled,
    new_kube_registry,
    set_disabled_metric,
    set_show_hidden,
    should_hide,
)
from kubecomp.metrics.version_parser import parse_semver, parse_version
from kubecomp.version import Info

V115 = Info(major="1", minor="15", git_version="v1.15.0-alpha-1.12345")
V117 = Info(major="1", minor="17", git_version="v1.17.1-alpha-1.12345")


@pytest.fixture(autouse=True)
def _hidden_off(monkeypatch):
    monkeypatch.setattr(registry_mod, "_show_hidden", False)


def _hides(version, deprecated):
    dep = parse_semver(deprecated)
    return (
        dep is not None
        and should_hide(version, dep)
        and not registry_mod.should_show_hidden()
    )


class FakeCounter:
    def __init__(self, name, deprecated="", stability="ALPHA"):
        self.name = name
        self.deprecated_version = deprecated
        self.stability = stability
        self.value = 0.0
        self.clear_state()

    def create(self, version):
        self.deprecated = bool(self.deprecated_version)
        if _hides(version, self.deprecated_version):
            self.hidden = True
            return False
        self.created = True
        return True

    def clear_state(self):
        self.created = self.hidden = self.deprecated = False

    def fq_name(self):
        return self.name

    def describe(self):
        return [self.name]

    def inc(self):
        if self.created:
            self.value += 1

    def reset(self):
        self.value = 0.0

    def collect(self):
        if not self.created:
            return
        dep = f"(Deprecated since {self.deprecated_version}) " if self.deprecated else ""
        yield MetricFamily(
            name=self.name,
            type=MetricType.COUNTER,
            help=f"[{self.stability}] {dep}counter help",
            metrics=[Metric(value=self.value)],
        )


class FakeGauge(FakeCounter):
    reset = None

    def collect(self):
        for family in super().collect():
            family.type = MetricType.GAUGE
            yield family


class FakeStableCollector:
    def __init__(self, *descs):
        self.descs = descs
        self.clear_state()

    def create(self, version):
        for name, dep in self.descs:
            (self.hidden if _hides(version, dep) else self.created).append(name)
        return bool(self.created)

    def clear_state(self):
        self.created, self.hidden = [], []

    def hidden_metrics(self):
        return list(self.hidden)

    def describe(self):
        return list(self.created)

    def collect(self):
        for name in self.created:
            yield MetricFamily(
                name=name,
                type=MetricType.GAUGE,
                help="[STABLE] help",
                metrics=[Metric(labels=[LabelPair("name", "value")], value=1.0)],
            )


@pytest.mark.parametrize("deprecated,expected", [("1.17.0", False), ("1.16.0", True)])
def test_should_hide(deprecated, expected):
    current = parse_version(Info(major="1", minor="17", git_version="v1.17.1-alpha-1.12345"))
    assert should_hide(current, parse_semver(deprecated)) is expected


@pytest.mark.parametrize(
    "deprecated,created,is_deprecated,hidden",
    [("", True, False, False), ("1.15.0", True, True, False), ("1.14.0", False, True, True)],
)
def test_register(deprecated, created, is_deprecated, hidden):
    registry = new_kube_registry(V115)
    counter = FakeCounter("some_namespace_subsystem_c", deprecated)
    registry.register(counter)
    assert (counter.created, counter.deprecated, counter.hidden) == (created, is_deprecated, hidden)


def test_register_twice_raises():
    registry = new_kube_registry(V115)
    counter = FakeCounter("some_counter")
    registry.register(counter)
    with pytest.raises(AlreadyRegisteredError):
        registry.register(counter)
    assert counter.created


@pytest.mark.parametrize("deprecated", ["", "1.15.0"])
def test_must_register_twice_raises(deprecated):
    registry = new_kube_registry(V115)
    counter = FakeCounter("some_counter", deprecated)
    registry.must_register(counter)
    with pytest.raises(AlreadyRegisteredError):
        registry.must_register(counter)


def test_hidden_must_register_gathers_nothing():
    registry = new_kube_registry(V115)
    registry.must_register(FakeCounter("hidden", "1.14.0"))
    assert registry.gather() == []


def test_show_hidden_metric(monkeypatch):
    registry = new_kube_registry(V115)
    registry.must_register(FakeCounter("hidden_a", "1.14.0"))
    assert len(registry.gather()) == 0
    monkeypatch.setattr(registry_mod, "_show_hidden", True)
    registry.must_register(FakeCounter("hidden_b", "1.14.0"))
    assert len(registry.gather()) == 1


@pytest.mark.parametrize("must", [False, True])
def test_enable_hidden_metrics(must):
    registry = new_kube_registry(V117)
    counter = FakeCounter("hidden_metric", "1.16.0", "STABLE")
    (registry.must_register if must else registry.register)(counter)
    counter.inc()
    assert registry.gather() == []
    set_show_hidden()
    counter.inc()
    families = registry.gather()
    assert [f.name for f in families] == ["hidden_metric"]
    assert families[0].help == "[STABLE] (Deprecated since 1.16.0) counter help"
    assert families[0].metrics[0].value == 1.0


@pytest.mark.parametrize(
    "descs,before,after",
    [
        ((("hidden_a", "1.16.0"), ("hidden_b", "1.16.0")), [], ["hidden_a", "hidden_b"]),
        (
            (("normal", ""), ("hidden_a", "1.16.0"), ("hidden_b", "1.16.0")),
            ["normal"],
            ["hidden_a", "hidden_b", "normal"],
        ),
    ],
)
def test_enable_hidden_stable_collector(descs, before, after):
    registry = new_kube_registry(Info(git_version="v1.17.0-alpha-1.12345"))
    registry.custom_must_register(FakeStableCollector(*descs))
    assert [f.name for f in registry.gather()] == before
    set_show_hidden()
    assert [f.name for f in registry.gather()] == after


def test_set_show_hidden_only_once():
    set_show_hidden()
    assert registry_mod.should_show_hidden() is True
    set_show_hidden()
    assert registry_mod.should_show_hidden() is True


def test_registry_reset():
    registry = new_kube_registry(V117)
    resettable = FakeCounter("reset_metric")
    gauge = FakeGauge("not_reset_metric")
    registry.must_register(resettable)
    registry.must_register(gauge)
    resettable.inc()
    resettable.inc()
    gauge.inc()
    registry.reset()
    values = {f.name: f.metrics[0].value for f in registry.gather()}
    assert values == {"not_reset_metric": 1.0, "reset_metric": 0.0}


def test_unregister():
    registry = new_kube_registry(V117)
    counter = FakeCounter("to_remove")
    registry.must_register(counter)
    assert registry.unregister(counter) is True
    assert registry.unregister(counter) is False
    assert registry.gather() == []


def test_disabled_metric():
    set_disabled_metric("should_be_disabled_x")
    assert is_metric_disabled("should_be_disabled_x") is True
    assert is_metric_disabled("should_be_enabled_x") is False