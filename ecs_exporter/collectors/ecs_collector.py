"""ECS collector: fan out over clusters, publish one projection per cycle."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..aws.errors import EcsError, ErrorKind
from ..aws.models import ClusterDescription, ClusterTarget
from ..config.models import CollectionConfig
from ..registry import MetricsRegistry
from ..services.retry_handler import RetryHandler
from ..utils.metrics import ClusterOutcome, CollectionResult, MetricSample
from .projection import error_sample, exporter_samples, project_cluster


class EcsCollector:
    """
    Runs collection cycles against a fixed set of clusters.

    Each cycle describes every cluster concurrently (at most
    ``max_concurrency`` describes in flight), retries throttled and
    transient failures, and publishes the whole projection to the registry
    in one swap. A cluster that fails keeps its last good samples next to an
    ``ecs_collection_error`` gauge.
    """

    def __init__(
        self,
        client,
        registry: MetricsRegistry,
        targets: Iterable[ClusterTarget],
        collection: CollectionConfig,
        logger: logging.Logger,
        version: str = "unknown",
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the collector.

        Args:
            client: Adapter exposing ``async describe_cluster(target)``
            registry: Registry the projection is published to
            targets: Clusters to poll
            collection: Timing, retry and concurrency settings
            logger: Logger instance
            version: Exporter version reported in build info
            clock: Wall clock, replaceable in tests
        """
        self.client = client
        self.registry = registry
        self.targets = tuple(targets)
        self.collection = collection
        self.version = version
        self.clock = clock
        self.logger = logger.getChild(self.__class__.__name__)

        self._semaphore = asyncio.Semaphore(collection.max_concurrency)
        self._cycle_lock = asyncio.Lock()

        self._last_good: Dict[str, List[MetricSample]] = {}
        self._cluster_samples: List[MetricSample] = []
        self._cycle_counts: Dict[str, int] = {}
        self._last_result: Optional[CollectionResult] = None

    @property
    def last_result(self) -> Optional[CollectionResult]:
        """Result of the last cycle that ran to completion."""
        return self._last_result

    async def run_cycle(self) -> Optional[CollectionResult]:
        """
        Run one collection cycle and publish its projection.

        Returns:
            Optional[CollectionResult]: The cycle's result, or None if the
                cycle overran ``cycle_timeout_seconds`` and was abandoned
        """
        async with self._cycle_lock:
            started_at = self.clock()
            start = time.monotonic()
            self.logger.info(f"Starting collection cycle for {len(self.targets)} cluster(s)")

            try:
                outcomes = await asyncio.wait_for(
                    asyncio.gather(*(self._collect_cluster(target) for target in self.targets)),
                    timeout=self.collection.cycle_timeout_seconds
                )
            except asyncio.TimeoutError:
                self.logger.error(
                    f"Collection cycle exceeded {self.collection.cycle_timeout_seconds:g}s and was "
                    "abandoned; previous metrics stay exposed"
                )
                self._cycle_counts["abandoned"] = self._cycle_counts.get("abandoned", 0) + 1
                self._publish()
                return None

            result = CollectionResult.from_outcomes(
                outcomes,
                started_at=started_at,
                duration=time.monotonic() - start
            )
            self._apply(result)

            self.logger.info(
                f"Collection cycle {result.outcome} in {result.duration:.2f}s: "
                f"{len(result.successes)} succeeded, {len(result.failures)} failed, "
                f"{result.retries} retries"
            )
            return result

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """
        Run cycles every ``interval_seconds`` until *stop_event* is set.

        The first cycle starts immediately. At most one cycle is in flight;
        a tick that falls while a cycle is still running is skipped.
        """
        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        scheduler.add_job(
            self._scheduled_cycle,
            trigger=IntervalTrigger(
                seconds=self.collection.interval_seconds,
                timezone=timezone.utc
            ),
            id='collection_cycle',
            name='ECS Collection Cycle',
            max_instances=1,  # Prevent overlapping executions
            coalesce=True,  # If missed, run once
            next_run_time=datetime.now(timezone.utc)
        )

        scheduler.start()
        self.logger.info(
            f"Scheduler started, collecting every {self.collection.interval_seconds:g}s"
        )
        try:
            await stop_event.wait()
        finally:
            scheduler.shutdown(wait=False)
            self.logger.info("Collection loop stopped")

    async def _scheduled_cycle(self) -> None:
        try:
            await self.run_cycle()
        except Exception as e:
            self.logger.error(f"Collection cycle failed: {e}", exc_info=True)

    async def _collect_cluster(self, target: ClusterTarget) -> ClusterOutcome:
        """
        Describe one cluster with retries. Never raises.

        Args:
            target: Cluster to describe

        Returns:
            ClusterOutcome: Description or classified error
        """
        attempts = 0

        def count_attempt(attempt: int) -> None:
            nonlocal attempts
            attempts = attempt

        async def describe() -> ClusterDescription:
            async with self._semaphore:
                return await self.client.describe_cluster(target)

        try:
            description = await RetryHandler.with_retry(
                describe,
                max_attempts=self.collection.retry_bound + 1,
                base_delay=self.collection.retry_base_delay_seconds,
                max_delay=self.collection.retry_max_delay_seconds,
                exceptions=(EcsError,),
                should_retry=lambda e: e.retryable,
                on_attempt=count_attempt,
                logger=self.logger
            )
        except EcsError as e:
            self.logger.warning(
                f"Failed to describe cluster {target.label} after {attempts} attempt(s): {e.message}",
                extra={"cluster": target.label, "error_kind": e.kind.value, "error_code": e.code}
            )
            return ClusterOutcome(target=target, error=e, attempts=attempts)
        except Exception as e:
            self.logger.error(f"Unexpected failure describing cluster {target.label}: {e}", exc_info=True)
            error = EcsError(ErrorKind.MALFORMED, target.label, str(e))
            return ClusterOutcome(target=target, error=error, attempts=attempts)

        return ClusterOutcome(target=target, description=description, attempts=attempts)

    def _apply(self, result: CollectionResult) -> None:
        """Fold a finished cycle into the exposed projection and publish it."""
        for description in result.successes:
            self._last_good[description.cluster.cluster] = project_cluster(description, result.started_at)

        failed = {target.label: error for target, error in result.failures}

        samples: List[MetricSample] = []
        for target in self.targets:
            label = target.label
            samples.extend(self._last_good.get(label, ()))
            if label in failed:
                samples.append(error_sample(label, failed[label].kind))

        self._cluster_samples = samples
        self._last_result = result
        self._cycle_counts[result.outcome] = self._cycle_counts.get(result.outcome, 0) + 1
        self._publish()

    def _publish(self) -> None:
        result = self._last_result
        samples = list(self._cluster_samples)
        samples.extend(exporter_samples(
            cycle_counts=self._cycle_counts,
            last_cycle_duration=result.duration if result else 0.0,
            last_cycle_timestamp=result.started_at if result else 0.0,
            last_cycle_success=bool(result) and not result.failures,
            clusters_failed=len(result.failures) if result else 0,
            version=self.version
        ))
        self.registry.replace_all(samples)
