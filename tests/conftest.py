"""Shared pytest configuration and fixtures."""

import asyncio
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple, Union

import pytest

from ecs_exporter.aws.errors import EcsError, ErrorKind
from ecs_exporter.aws.models import ClusterDescription, ClusterSnapshot, ServiceSnapshot
from ecs_exporter.config.models import CollectionConfig
from ecs_exporter.registry import MetricsRegistry
from ecs_exporter.utils.logger import setup_logger


Outcome = Union[ClusterDescription, BaseException]


def make_description(
    cluster: str,
    running: int = 0,
    pending: int = 0,
    instances: int = 0,
    active_services: int = 0,
    services: Sequence[Tuple[str, int, int, int]] = ()
) -> ClusterDescription:
    """Build a ClusterDescription; services are (name, desired, running, pending)."""
    return ClusterDescription(
        cluster=ClusterSnapshot(
            cluster=cluster,
            arn=f"arn:aws:ecs:us-east-1:123456789012:cluster/{cluster}",
            status="ACTIVE",
            registered_instances=instances,
            running_tasks=running,
            pending_tasks=pending,
            active_services=active_services,
            connected_instances=instances,
        ),
        services=tuple(
            ServiceSnapshot(
                cluster=cluster,
                name=name,
                status="ACTIVE",
                desired_tasks=desired,
                running_tasks=svc_running,
                pending_tasks=svc_pending,
            )
            for name, desired, svc_running, svc_pending in services
        ),
    )


class FakeEcsClient:
    """
    Counting stand-in for EcsClientAdapter.

    ``responses`` maps a cluster label to a description, an exception, or a
    list of those consumed one per attempt (the last one repeats).
    """

    def __init__(self, responses: Dict[str, Union[Outcome, List[Outcome]]], delay: float = 0.0):
        self.responses = responses
        self.delay = delay
        self.calls: Dict[str, int] = defaultdict(int)
        self.in_flight = 0
        self.max_in_flight = 0

    def set(self, cluster: str, outcome: Union[Outcome, List[Outcome]]) -> None:
        self.responses[cluster] = outcome
        self.calls[cluster] = 0

    async def describe_cluster(self, target):
        attempt = self.calls[target.label]
        self.calls[target.label] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            outcome = self.responses[target.label]
            if isinstance(outcome, list):
                outcome = outcome[min(attempt, len(outcome) - 1)]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def collection_config():
    """Collection settings with no backoff so retry tests run instantly."""
    return CollectionConfig(
        interval_seconds=1,
        call_timeout_seconds=1,
        retry_bound=2,
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
        max_concurrency=4,
        cycle_timeout_seconds=5,
    )


@pytest.fixture
def registry():
    return MetricsRegistry()


@pytest.fixture
def fake_client_cls():
    """The FakeEcsClient class, for tests that build their own."""
    return FakeEcsClient


@pytest.fixture
def describe():
    """The make_description helper."""
    return make_description


@pytest.fixture
def ecs_error():
    """Factory for classified adapter errors."""
    def factory(kind: ErrorKind, cluster: str = "cluster", message: str = "boom") -> EcsError:
        return EcsError(kind, cluster, message)
    return factory
