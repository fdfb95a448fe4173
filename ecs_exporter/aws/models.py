"""Domain snapshots produced by the ECS client adapter."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ClusterTarget:
    """A cluster to poll, by name or ARN."""

    identifier: str

    @property
    def label(self) -> str:
        """Cluster name used as the `cluster` label value.

        ARNs look like ``arn:aws:ecs:<region>:<account>:cluster/<name>``.
        """
        if self.identifier.startswith("arn:") and ":cluster/" in self.identifier:
            return self.identifier.rsplit(":cluster/", 1)[1]
        return self.identifier


@dataclass(frozen=True)
class ClusterSnapshot:
    """Aggregate state of one cluster at one point in time."""

    cluster: str
    arn: str
    status: str
    registered_instances: int
    running_tasks: int
    pending_tasks: int
    active_services: int
    connected_instances: int = 0
    draining_instances: int = 0


@dataclass(frozen=True)
class ServiceSnapshot:
    """Task counts of one service; `cluster` is the owning cluster's label."""

    cluster: str
    name: str
    status: str
    desired_tasks: int
    running_tasks: int
    pending_tasks: int


@dataclass(frozen=True)
class ClusterDescription:
    """Everything the adapter learned about one cluster."""

    cluster: ClusterSnapshot
    services: Tuple[ServiceSnapshot, ...] = ()
