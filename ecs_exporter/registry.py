"""Thread-safe holder of the exposed metric samples."""

import itertools
import threading
from typing import Dict, Iterable, Iterator, Optional, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from .collectors.projection import HTTP_REQUESTS, METRIC_HELP, request_samples
from .utils.metrics import COUNTER, MetricSample


class _SnapshotCollector:
    """prometheus_client collector yielding one published sample set."""

    def __init__(self, registry: "MetricsRegistry"):
        self._registry = registry

    def collect(self) -> Iterator[Metric]:
        samples = self._registry.exposed_samples()
        for name, group in itertools.groupby(samples, key=lambda s: s.name):
            group = list(group)
            first = group[0]
            family_type = CounterMetricFamily if first.metric_type == COUNTER else GaugeMetricFamily
            family = family_type(name, METRIC_HELP.get(name, name), labels=first.label_names)
            for sample in group:
                family.add_metric(sample.label_values, sample.value)
            yield family


class MetricsRegistry:
    """
    Current metric samples, replaced wholesale once per collection cycle.

    Readers take the sample tuple reference under a lock and render from it,
    so they always see exactly one published set. The /metrics request
    counter lives beside the published set and survives every replace.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self):
        self._lock = threading.Lock()
        self._samples: Tuple[MetricSample, ...] = ()
        self._request_counts: Dict[str, int] = {}
        self._prometheus_registry = CollectorRegistry(auto_describe=False)
        self._prometheus_registry.register(_SnapshotCollector(self))

    def replace_all(self, samples: Iterable[MetricSample]) -> None:
        """
        Validate and atomically publish a new sample set.

        Args:
            samples: Complete set of samples to expose

        Raises:
            ValueError: If two samples share name and labels, one metric
                name is used with different label names or types, or a
                sample uses the request counter's name
        """
        ordered = tuple(sorted(samples, key=lambda s: (s.name, s.labels)))

        shapes: Dict[str, Tuple[Tuple[str, ...], str]] = {}
        previous: Optional[MetricSample] = None
        for sample in ordered:
            if sample.name == HTTP_REQUESTS:
                raise ValueError(f"{HTTP_REQUESTS} is maintained by the registry")
            if previous is not None and previous.key == sample.key:
                raise ValueError(f"Duplicate sample {sample.name}{dict(sample.labels)}")
            shape = (sample.label_names, sample.metric_type)
            if shapes.setdefault(sample.name, shape) != shape:
                raise ValueError(f"Inconsistent labels or type for metric {sample.name}")
            previous = sample

        with self._lock:
            self._samples = ordered

    def count_request(self, status: str) -> None:
        """Count one /metrics request under *status* (``success`` or ``error``)."""
        with self._lock:
            self._request_counts[status] = self._request_counts.get(status, 0) + 1

    def samples(self) -> Tuple[MetricSample, ...]:
        """Currently published samples, sorted by name then labels."""
        with self._lock:
            return self._samples

    def exposed_samples(self) -> Tuple[MetricSample, ...]:
        """Published samples plus the request counter, sorted by name then labels."""
        with self._lock:
            published = self._samples
            counts = dict(self._request_counts)
        return tuple(sorted(
            published + tuple(request_samples(counts)),
            key=lambda s: (s.name, s.labels)
        ))

    def render(self) -> bytes:
        """Current samples in the Prometheus text exposition format."""
        return generate_latest(self._prometheus_registry)

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Value of one exposed sample, or None when absent."""
        key = (name, tuple(sorted((labels or {}).items())))
        for sample in self.exposed_samples():
            if sample.key == key:
                return sample.value
        return None
