"""Map ECS snapshots onto metric samples."""

from typing import Dict, List

from ..aws.errors import ErrorKind
from ..aws.models import ClusterDescription
from ..utils.metrics import COUNTER, MetricSample


# Metric name -> (ClusterSnapshot attribute, help text)
CLUSTER_GAUGES = {
    "ecs_cluster_running_tasks": ("running_tasks", "Number of tasks in the RUNNING state"),
    "ecs_cluster_pending_tasks": ("pending_tasks", "Number of tasks in the PENDING state"),
    "ecs_cluster_registered_instances": (
        "registered_instances", "Number of container instances registered to the cluster"
    ),
    "ecs_cluster_active_services": ("active_services", "Number of services in the ACTIVE state"),
    "ecs_cluster_connected_instances": (
        "connected_instances", "Number of container instances whose ECS agent is connected"
    ),
    "ecs_cluster_draining_instances": (
        "draining_instances", "Number of container instances in the DRAINING state"
    ),
}

# Metric name -> (ServiceSnapshot attribute, help text)
SERVICE_GAUGES = {
    "ecs_service_desired_tasks": ("desired_tasks", "Desired task count of the service"),
    "ecs_service_running_tasks": ("running_tasks", "Running task count of the service"),
    "ecs_service_pending_tasks": ("pending_tasks", "Pending task count of the service"),
}

CLUSTER_LAST_SUCCESS = "ecs_cluster_last_success_timestamp_seconds"
COLLECTION_ERROR = "ecs_collection_error"

CYCLES_TOTAL = "ecs_exporter_collection_cycles_total"
LAST_CYCLE_DURATION = "ecs_exporter_last_cycle_duration_seconds"
LAST_CYCLE_TIMESTAMP = "ecs_exporter_last_cycle_timestamp_seconds"
LAST_CYCLE_SUCCESS = "ecs_exporter_last_cycle_success"
CLUSTERS_FAILED = "ecs_exporter_clusters_failed"
BUILD_INFO = "ecs_exporter_build_info"
HTTP_REQUESTS = "ecs_exporter_http_requests_total"

CYCLE_OUTCOMES = ("complete", "partial", "failed", "abandoned")
REQUEST_STATUSES = ("success", "error")

METRIC_HELP: Dict[str, str] = {
    **{name: text for name, (_, text) in CLUSTER_GAUGES.items()},
    **{name: text for name, (_, text) in SERVICE_GAUGES.items()},
    CLUSTER_LAST_SUCCESS: "Unix time of the last successful describe of the cluster",
    COLLECTION_ERROR: "Set to 1 when the cluster failed the last collection cycle, labeled by error kind",
    CYCLES_TOTAL: "Collection cycles run, by outcome",
    LAST_CYCLE_DURATION: "Duration of the last completed collection cycle",
    LAST_CYCLE_TIMESTAMP: "Unix time the last completed collection cycle started",
    LAST_CYCLE_SUCCESS: "Whether every cluster was described successfully in the last completed cycle",
    CLUSTERS_FAILED: "Number of clusters that failed the last completed cycle",
    BUILD_INFO: "Exporter build information",
    HTTP_REQUESTS: "Number of HTTP requests received by the exporter",
}


def project_cluster(description: ClusterDescription, collected_at: float) -> List[MetricSample]:
    """
    Project one successful cluster description onto samples.

    Args:
        description: Cluster and service snapshots
        collected_at: Unix time of the cycle that produced the description

    Returns:
        List[MetricSample]: Cluster gauges followed by service gauges
    """
    cluster = description.cluster
    samples = [
        MetricSample.create(name, getattr(cluster, attribute), cluster=cluster.cluster)
        for name, (attribute, _) in CLUSTER_GAUGES.items()
    ]
    samples.append(MetricSample.create(CLUSTER_LAST_SUCCESS, collected_at, cluster=cluster.cluster))

    for service in description.services:
        samples.extend(
            MetricSample.create(
                name,
                getattr(service, attribute),
                cluster=service.cluster,
                service=service.name
            )
            for name, (attribute, _) in SERVICE_GAUGES.items()
        )
    return samples


def error_sample(cluster: str, kind: ErrorKind) -> MetricSample:
    """Error indicator for a cluster that failed the cycle."""
    return MetricSample.create(COLLECTION_ERROR, 1, cluster=cluster, kind=kind.value)


def exporter_samples(
    cycle_counts: Dict[str, int],
    last_cycle_duration: float,
    last_cycle_timestamp: float,
    last_cycle_success: bool,
    clusters_failed: int,
    version: str
) -> List[MetricSample]:
    """
    Samples describing the exporter itself.

    Args:
        cycle_counts: Cycles run so far, by outcome
        last_cycle_duration: Seconds the last completed cycle took
        last_cycle_timestamp: Unix time the last completed cycle started
        last_cycle_success: Whether every cluster succeeded in that cycle
        clusters_failed: Clusters that failed in that cycle
        version: Exporter version

    Returns:
        List[MetricSample]: Exporter samples
    """
    samples = [
        MetricSample.create(CYCLES_TOTAL, cycle_counts.get(outcome, 0), metric_type=COUNTER, outcome=outcome)
        for outcome in CYCLE_OUTCOMES
    ]
    samples.extend([
        MetricSample.create(LAST_CYCLE_DURATION, last_cycle_duration),
        MetricSample.create(LAST_CYCLE_TIMESTAMP, last_cycle_timestamp),
        MetricSample.create(LAST_CYCLE_SUCCESS, 1 if last_cycle_success else 0),
        MetricSample.create(CLUSTERS_FAILED, clusters_failed),
        MetricSample.create(BUILD_INFO, 1, version=version),
    ])
    return samples


def request_samples(request_counts: Dict[str, int]) -> List[MetricSample]:
    """
    Counter of /metrics requests served.

    ``success`` means the response carried a fully successful last cycle,
    ``error`` that some cluster failed or no cycle has completed yet.
    """
    return [
        MetricSample.create(HTTP_REQUESTS, request_counts.get(status, 0), metric_type=COUNTER, status=status)
        for status in REQUEST_STATUSES
    ]
