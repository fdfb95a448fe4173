"""ECS client adapter: describe a cluster into domain snapshots."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Tuple

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ParamValidationError,
    PartialCredentialsError,
)

from .errors import EcsError, ErrorKind
from .models import ClusterDescription, ClusterSnapshot, ClusterTarget, ServiceSnapshot


UNAUTHORIZED_CODES = frozenset({
    "AccessDenied",
    "AccessDeniedException",
    "AuthFailure",
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidClientTokenId",
    "InvalidSignatureException",
    "MissingAuthenticationToken",
    "SignatureDoesNotMatch",
    "UnauthorizedOperation",
    "UnrecognizedClientException",
})

THROTTLED_CODES = frozenset({
    "RequestLimitExceeded",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
})

TRANSIENT_CODES = frozenset({
    "InternalFailure",
    "RequestTimeout",
    "RequestTimeoutException",
    "ServerException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
})


def classify_client_error(cluster: str, error: ClientError) -> EcsError:
    """
    Map a botocore ClientError onto the adapter's error taxonomy.

    Args:
        cluster: Label of the cluster being described
        error: Error raised by the ECS client

    Returns:
        EcsError: Classified error
    """
    details = error.response.get("Error", {})
    code = details.get("Code", "")
    message = details.get("Message") or str(error)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)

    if code in UNAUTHORIZED_CODES:
        kind = ErrorKind.UNAUTHORIZED
    elif code == "ClusterNotFoundException":
        kind = ErrorKind.CLUSTER_NOT_FOUND
    elif code in THROTTLED_CODES:
        kind = ErrorKind.THROTTLED
    elif code in TRANSIENT_CODES or status >= 500:
        kind = ErrorKind.TRANSIENT
    else:
        kind = ErrorKind.MALFORMED

    return EcsError(kind, cluster, message, code=code)


def _chunks(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} is {type(value).__name__}, expected int")
    return value


class EcsClientAdapter:
    """
    Translate ECS API responses into ClusterDescription snapshots.

    Blocking boto3 calls run on a private thread pool. A worker slot is held
    from submission until the worker thread returns, even when the caller
    gave up on it, and ``call_timeout`` only starts once a slot is held, so
    a hung describe never eats into the time budget of another cluster.
    The adapter never retries; a describe that outlives ``call_timeout``
    fails as TRANSIENT.
    """

    # API limits for DescribeServices / DescribeContainerInstances
    DESCRIBE_SERVICES_BATCH = 10
    DESCRIBE_INSTANCES_BATCH = 100

    def __init__(
        self,
        ecs_client,
        call_timeout: float,
        max_workers: int,
        logger: logging.Logger,
        collect_services: bool = True,
        collect_instances: bool = True
    ):
        """
        Initialize the adapter.

        Args:
            ecs_client: boto3 ECS client
            call_timeout: Upper bound in seconds for one cluster describe
            max_workers: Thread pool size
            logger: Logger instance
            collect_services: Fetch per-service task counts
            collect_instances: Fetch container instance details
        """
        self.ecs_client = ecs_client
        self.call_timeout = call_timeout
        self.collect_services = collect_services
        self.collect_instances = collect_instances
        self.logger = logger.getChild(self.__class__.__name__)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ecs-describe")
        # One slot per worker thread, released only when the thread is done
        self._slots = asyncio.Semaphore(max_workers)

    async def describe_cluster(self, target: ClusterTarget) -> ClusterDescription:
        """
        Describe one cluster.

        Waits for a free worker first; the wait does not count against
        ``call_timeout``.

        Args:
            target: Cluster to describe

        Returns:
            ClusterDescription: Cluster aggregates and its services

        Raises:
            EcsError: Classified failure
        """
        await self._slots.acquire()
        try:
            future = self._executor.submit(self._describe_cluster, target)
        except RuntimeError:
            # Pool already shut down
            self._slots.release()
            raise

        loop = asyncio.get_running_loop()
        future.add_done_callback(lambda _: self._release_slot(loop))

        try:
            return await asyncio.wait_for(asyncio.wrap_future(future), timeout=self.call_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Describe of {target.label} still running after {self.call_timeout:g}s; "
                "its worker stays busy until it returns"
            )
            raise EcsError(
                ErrorKind.TRANSIENT,
                target.label,
                f"describe did not complete within {self.call_timeout:g}s"
            ) from None

    def close(self) -> None:
        """Release the thread pool without waiting for stragglers."""
        self._executor.shutdown(wait=False)

    def _release_slot(self, loop: asyncio.AbstractEventLoop) -> None:
        # Usually called on the worker thread
        if not loop.is_closed():
            loop.call_soon_threadsafe(self._slots.release)

    def _describe_cluster(self, target: ClusterTarget) -> ClusterDescription:
        label = target.label
        try:
            return self._build_description(target)
        except EcsError:
            raise
        except ClientError as e:
            raise classify_client_error(label, e) from e
        except (NoCredentialsError, PartialCredentialsError) as e:
            raise EcsError(ErrorKind.UNAUTHORIZED, label, str(e)) from e
        except (ParamValidationError, NoRegionError) as e:
            raise EcsError(ErrorKind.MALFORMED, label, str(e)) from e
        except BotoCoreError as e:
            # Endpoint connection errors, socket timeouts, closed connections
            raise EcsError(ErrorKind.TRANSIENT, label, str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Unexpected ECS response shape for {label}: {e!r}")
            raise EcsError(ErrorKind.MALFORMED, label, f"unexpected response shape: {e!r}") from e

    def _build_description(self, target: ClusterTarget) -> ClusterDescription:
        services: Tuple[ServiceSnapshot, ...] = ()
        connected = draining = 0

        cluster = self._get_cluster(target)
        if self.collect_services:
            services = tuple(self._get_services(target))
        if self.collect_instances:
            connected, draining = self._count_container_instances(target)

        snapshot = ClusterSnapshot(
            cluster=target.label,
            arn=cluster["clusterArn"],
            status=cluster["status"],
            registered_instances=_require_int(cluster, "registeredContainerInstancesCount"),
            running_tasks=_require_int(cluster, "runningTasksCount"),
            pending_tasks=_require_int(cluster, "pendingTasksCount"),
            active_services=_require_int(cluster, "activeServicesCount"),
            connected_instances=connected,
            draining_instances=draining,
        )
        return ClusterDescription(cluster=snapshot, services=services)

    def _get_cluster(self, target: ClusterTarget) -> Dict[str, Any]:
        """
        Fetch cluster aggregates.

        Raises:
            EcsError: CLUSTER_NOT_FOUND if ECS reports the cluster missing or inactive
        """
        response = self.ecs_client.describe_clusters(clusters=[target.identifier])

        failures = response.get("failures") or []
        clusters = response.get("clusters") or []
        if not clusters:
            reason = failures[0].get("reason", "MISSING") if failures else "MISSING"
            raise EcsError(ErrorKind.CLUSTER_NOT_FOUND, target.label, f"cluster {reason.lower()}")

        cluster = clusters[0]
        if cluster.get("status") == "INACTIVE":
            raise EcsError(ErrorKind.CLUSTER_NOT_FOUND, target.label, "cluster inactive")
        return cluster

    def _list(self, operation: str, result_key: str, target: ClusterTarget) -> List[str]:
        paginator = self.ecs_client.get_paginator(operation)
        arns: List[str] = []
        for page in paginator.paginate(cluster=target.identifier):
            arns.extend(page[result_key])
        return arns

    def _get_services(self, target: ClusterTarget) -> List[ServiceSnapshot]:
        """Describe every service of the cluster, batching DescribeServices."""
        service_arns = self._list("list_services", "serviceArns", target)

        services = []
        for batch in _chunks(service_arns, self.DESCRIBE_SERVICES_BATCH):
            response = self.ecs_client.describe_services(cluster=target.identifier, services=batch)
            self._log_failures(target, "service", response.get("failures"))
            for service in response["services"]:
                services.append(ServiceSnapshot(
                    cluster=target.label,
                    name=service["serviceName"],
                    status=service.get("status", "UNKNOWN"),
                    desired_tasks=_require_int(service, "desiredCount"),
                    running_tasks=_require_int(service, "runningCount"),
                    pending_tasks=_require_int(service, "pendingCount"),
                ))

        services.sort(key=lambda s: s.name)
        return services

    def _count_container_instances(self, target: ClusterTarget) -> Tuple[int, int]:
        """
        Count container instances whose agent is connected, and those draining.

        Returns:
            Tuple[int, int]: (connected, draining)
        """
        instance_arns = self._list("list_container_instances", "containerInstanceArns", target)

        connected = draining = 0
        for batch in _chunks(instance_arns, self.DESCRIBE_INSTANCES_BATCH):
            response = self.ecs_client.describe_container_instances(
                cluster=target.identifier,
                containerInstances=batch
            )
            self._log_failures(target, "container instance", response.get("failures"))
            for instance in response["containerInstances"]:
                if instance["agentConnected"]:
                    connected += 1
                if instance.get("status") == "DRAINING":
                    draining += 1

        return connected, draining

    def _log_failures(self, target: ClusterTarget, resource: str, failures: Optional[List[Dict]]) -> None:
        """Missing resources are logged and skipped; they do not fail the describe."""
        for failure in failures or []:
            self.logger.warning(
                f"Failed to describe {resource} in {target.label}",
                extra={
                    "failure_arn": failure.get("arn"),
                    "failure_reason": failure.get("reason"),
                    "failure_detail": failure.get("detail"),
                }
            )
