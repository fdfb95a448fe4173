"""Metric data structures for the collector."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import time

from ..aws.errors import EcsError
from ..aws.models import ClusterDescription, ClusterTarget


GAUGE = "gauge"
COUNTER = "counter"

Labels = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class MetricSample:
    """One (metric name, label set, value) point of the exposition."""

    name: str
    labels: Labels
    value: float
    metric_type: str = GAUGE

    @classmethod
    def create(cls, name: str, value: float, metric_type: str = GAUGE, **labels: str) -> "MetricSample":
        """Build a sample with its labels sorted by name."""
        return cls(
            name=name,
            labels=tuple(sorted(labels.items())),
            value=float(value),
            metric_type=metric_type
        )

    @property
    def label_names(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.labels)

    @property
    def label_values(self) -> Tuple[str, ...]:
        return tuple(value for _, value in self.labels)

    @property
    def key(self) -> Tuple[str, Labels]:
        """Identity of the series this sample belongs to."""
        return self.name, self.labels


@dataclass(frozen=True)
class ClusterOutcome:
    """Result or error of describing one cluster in one cycle."""

    target: ClusterTarget
    description: Optional[ClusterDescription] = None
    error: Optional[EcsError] = None
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class CollectionResult:
    """All per-cluster outcomes of one collection cycle."""

    successes: List[ClusterDescription] = field(default_factory=list)
    failures: List[Tuple[ClusterTarget, EcsError]] = field(default_factory=list)
    started_at: Optional[float] = None
    duration: float = 0.0
    retries: int = 0

    def __post_init__(self):
        """Set start time if not provided."""
        if self.started_at is None:
            self.started_at = time.time()

    @classmethod
    def from_outcomes(
        cls,
        outcomes: List[ClusterOutcome],
        started_at: Optional[float] = None,
        duration: float = 0.0
    ) -> "CollectionResult":
        result = cls(started_at=started_at, duration=duration)
        for outcome in outcomes:
            result.retries += outcome.attempts - 1
            if outcome.succeeded:
                result.successes.append(outcome.description)
            else:
                result.failures.append((outcome.target, outcome.error))
        return result

    @property
    def outcome(self) -> str:
        """complete, partial or failed."""
        if not self.failures:
            return "complete"
        if self.successes:
            return "partial"
        return "failed"
