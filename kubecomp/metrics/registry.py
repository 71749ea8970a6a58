"""Registries that apply the metric stability and deprecation rules."""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from semver import Version

from ..version import Info
from ..version import get as _get_version
from .model import MetricFamily
from .version_parser import parse_version

_state_lock = threading.Lock()
_show_hidden = False
_disabled_metrics: set[str] = set()
_registries: "weakref.WeakSet[KubeRegistry]" = weakref.WeakSet()


def should_hide(current_version: Version, deprecated_version: Version) -> bool:
    """Return True when a metric deprecated at deprecated_version is hidden by now."""
    guard = Version(current_version.major, current_version.minor, 0)
    return deprecated_version < guard


def set_disabled_metric(name: str) -> None:
    """Mark the metric with this fully-qualified name as disabled."""
    with _state_lock:
        _disabled_metrics.add(name)


def is_metric_disabled(name: str) -> bool:
    """Return whether the metric with this name has been disabled."""
    with _state_lock:
        return name in _disabled_metrics


def set_show_hidden() -> None:
    """Show hidden metrics from now on; only the first call has an effect."""
    global _show_hidden
    with _state_lock:
        if _show_hidden:
            return
        _show_hidden = True
        registries = list(_registries)
    for registry in registries:
        registry._enable_hidden_collectors()
        registry._enable_hidden_stable_collectors()


def should_show_hidden() -> bool:
    """Return whether hidden deprecated metrics are being shown."""
    return _show_hidden


@runtime_checkable
class Registerable(Protocol):
    """A collector that knows its deprecation state."""

    def describe(self) -> Iterable[str]: ...

    def collect(self) -> Iterable[MetricFamily]: ...

    def create(self, version: Version) -> bool:
        """Mark deprecation state for version; return False when hidden."""

    def clear_state(self) -> None:
        """Forget the state set by create."""

    def fq_name(self) -> str:
        """Return the fully-qualified metric name."""


@runtime_checkable
class StableCollector(Protocol):
    """A custom collector whose metrics carry stability information."""

    def describe(self) -> Iterable[str]: ...

    def collect(self) -> Iterable[MetricFamily]: ...

    def create(self, version: Version) -> bool:
        """Prepare the collector for version; return False when every metric is hidden."""

    def clear_state(self) -> None:
        """Forget the state set by create."""

    def hidden_metrics(self) -> list[str]:
        """Return the names of the metrics currently hidden."""


class AlreadyRegisteredError(ValueError):
    """Raised when an equal collector is registered a second time."""

    def __init__(self, existing: object) -> None:
        super().__init__("duplicate metrics collector registration attempted")
        self.existing = existing


class PromRegistry:
    """A plain registry of collectors."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: list[tuple[object, frozenset[str]]] = []

    def register(self, collector) -> None:
        """Add collector; raise when it collides with a registered one."""
        names = frozenset(collector.describe())
        with self._lock:
            for existing, existing_names in self._entries:
                if existing is collector or (names and existing_names == names):
                    raise AlreadyRegisteredError(existing)
                overlap = names & existing_names
                if overlap:
                    raise ValueError(
                        f"collector produces metrics already registered: {sorted(overlap)}"
                    )
            self._entries.append((collector, names))

    def must_register(self, *args) -> None:
        """Register every collector, raising on the first failure."""
        for collector in args:
            self.register(collector)

    def unregister(self, collector) -> bool:
        """Remove the collector equal to this one; return whether one was removed."""
        names = frozenset(collector.describe())
        if not names:
            return False
        with self._lock:
            for index, (_, existing_names) in enumerate(self._entries):
                if existing_names == names:
                    del self._entries[index]
                    return True
        return False

    def gather(self) -> list[MetricFamily]:
        """Collect all families, merged by name and sorted."""
        with self._lock:
            collectors = [c for c, _ in self._entries]
        families: dict[str, MetricFamily] = {}
        for collector in collectors:
            for family in collector.collect():
                if not family.metrics:
                    continue
                merged = families.get(family.name)
                if merged is None:
                    families[family.name] = MetricFamily(
                        name=family.name,
                        type=family.type,
                        help=family.help,
                        metrics=list(family.metrics),
                    )
                elif merged.type is not family.type or merged.help != family.help:
                    raise ValueError(f"inconsistent metric family {family.name!r}")
                else:
                    merged.metrics.extend(family.metrics)
        return [families[name] for name in sorted(families)]


class KubeRegistry:
    """Registry that hides deprecated metrics according to the build version."""

    def __init__(self, version: Version) -> None:
        self.version = version
        self._prom = PromRegistry()
        self._hidden: dict[str, Registerable] = {}
        self._stable: list[StableCollector] = []
        self._resettables: list[object] = []
        self._hidden_lock = threading.Lock()
        self._stable_lock = threading.Lock()
        self._reset_lock = threading.Lock()

    def register(self, collector: Registerable) -> None:
        """Register collector, or keep it aside if it is hidden."""
        if collector.create(self.version):
            try:
                self._prom.register(collector)
            finally:
                self._add_resettable(collector)
            return
        self._track_hidden(collector)

    def must_register(self, *args: Registerable) -> None:
        """Register any number of collectors, raising on the first failure."""
        visible = []
        for collector in args:
            if collector.create(self.version):
                visible.append(collector)
                self._add_resettable(collector)
            else:
                self._track_hidden(collector)
        self._prom.must_register(*visible)

    def custom_register(self, collector: StableCollector) -> None:
        """Register a stable custom collector."""
        self._track_stable(collector)
        try:
            if collector.create(self.version):
                self._prom.register(collector)
        finally:
            self._add_resettable(collector)

    def custom_must_register(self, *args: StableCollector) -> None:
        """Register any number of stable collectors, raising on the first failure."""
        self._track_stable(*args)
        visible = []
        for collector in args:
            if collector.create(self.version):
                self._add_resettable(collector)
                visible.append(collector)
        self._prom.must_register(*visible)

    def raw_must_register(self, *args) -> None:
        """Register plain collectors without any stability checks."""
        self._prom.must_register(*args)
        for collector in args:
            self._add_resettable(collector)

    def unregister(self, collector) -> bool:
        """Remove an equal collector; return whether one was removed."""
        return self._prom.unregister(collector)

    def gather(self) -> list[MetricFamily]:
        """Collect the metrics of all registered collectors."""
        return self._prom.gather()

    def reset(self) -> None:
        """Reset every registered collector that can be reset."""
        with self._reset_lock:
            resettables = list(self._resettables)
        for item in resettables:
            item.reset()

    def _add_resettable(self, item: object) -> None:
        if callable(getattr(item, "reset", None)):
            with self._reset_lock:
                self._resettables.append(item)

    def _track_hidden(self, collector: Registerable) -> None:
        with self._hidden_lock:
            self._hidden[collector.fq_name()] = collector

    def _track_stable(self, *collectors: StableCollector) -> None:
        with self._stable_lock:
            self._stable.extend(collectors)

    def _enable_hidden_collectors(self) -> None:
        with self._hidden_lock:
            collectors = list(self._hidden.values())
            self._hidden = {}
        if not collectors:
            return
        for collector in collectors:
            collector.clear_state()
        self.must_register(*collectors)

    def _enable_hidden_stable_collectors(self) -> None:
        with self._stable_lock:
            stable = self._stable
            self._stable = []
        if not stable:
            return
        again = []
        for collector in stable:
            if collector.hidden_metrics():
                # Unregister first: afterwards the description would no longer match.
                self.unregister(collector)
                collector.clear_state()
                again.append(collector)
        self.custom_must_register(*again)


def new_kube_registry(info: Info | None = None) -> KubeRegistry:
    """Create an empty registry for the build described by info."""
    registry = KubeRegistry(parse_version(info if info is not None else _get_version()))
    with _state_lock:
        _registries.add(registry)
    return registry