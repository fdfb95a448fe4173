"""Main application entry point for the AWS ECS Prometheus exporter."""

import argparse
import asyncio
import logging
import os
import signal
import sys
from importlib.metadata import PackageNotFoundError, version as package_version
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .aws.client import create_ecs_client, create_session
from .aws.ecs_client import EcsClientAdapter
from .collectors.ecs_collector import EcsCollector
from .config.loader import ConfigLoader
from .config.models import ExporterConfig
from .registry import MetricsRegistry
from .server import create_app, create_ssl_context, start_server
from .utils.logger import setup_logger


def get_version() -> str:
    try:
        return package_version("aws-ecs-exporter")
    except PackageNotFoundError:
        return "0.0.0+local"


class ExporterApp:
    """
    Main exporter application.

    Wires the ECS client adapter, collector, registry and HTTP frontend
    together, runs the collection loop and shuts down on SIGTERM/SIGINT.
    """

    def __init__(
        self,
        config: ExporterConfig,
        logger: logging.Logger = None,
        ecs_client=None
    ):
        """
        Initialize exporter application.

        Args:
            config: Validated configuration
            logger: Optional logger instance
            ecs_client: Optional pre-built boto3 ECS client; one is created
                from ``config.aws`` otherwise
        """
        self.config = config
        self.version = get_version()
        self.logger = logger or setup_logger(
            "ecs_exporter",
            config.logging.level,
            config.logging.json_format
        )

        if ecs_client is None:
            session = create_session(config.aws)
            ecs_client = create_ecs_client(session, config.collection)

        collection = config.collection
        self.adapter = EcsClientAdapter(
            ecs_client,
            call_timeout=collection.call_timeout_seconds,
            max_workers=collection.max_concurrency,
            logger=self.logger,
            collect_services=collection.collect_services,
            collect_instances=collection.collect_instances
        )
        self.registry = MetricsRegistry()
        self.collector = EcsCollector(
            self.adapter,
            self.registry,
            config.targets,
            collection,
            self.logger,
            version=self.version
        )
        self.app = create_app(self.registry, self.version)

        self.logger.info(
            f"Exporter v{self.version} initialized for cluster(s): {', '.join(config.clusters)}"
        )

    async def run_once(self) -> bool:
        """
        Run a single collection cycle.

        Returns:
            bool: True if every cluster was described successfully
        """
        try:
            result = await self.collector.run_cycle()
        finally:
            self.adapter.close()
        return result is not None and not result.failures

    async def serve(self) -> None:
        """Serve HTTP and collect on the configured interval until signalled."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self._request_stop, stop_event, signum)

        runner = await start_server(
            self.app,
            self.config.listen_host,
            self.config.listen_port,
            self.logger,
            ssl_context=create_ssl_context(self.config.tls)
        )
        try:
            await self.collector.run_forever(stop_event)
        finally:
            self.logger.info("Shutting down HTTP server")
            await runner.cleanup()
            self.adapter.close()

    def _request_stop(self, stop_event: asyncio.Event, signum: int) -> None:
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name}, initiating graceful shutdown...")
        stop_event.set()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Export AWS ECS cluster, service and task state as Prometheus metrics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Poll two clusters, serve on the default [::1]:6543
  aws-ecs-exporter --cluster prod --cluster staging

  # Use a config file and assume a role
  aws-ecs-exporter --config exporter.yaml --role arn:aws:iam::123456789012:role/ecs-read

  # Collect once, print the exposition and exit
  aws-ecs-exporter --cluster prod --run-once

Environment:
  ECS_EXPORTER_CLUSTERS, ECS_EXPORTER_LISTEN, ECS_EXPORTER_ROLE,
  ECS_EXPORTER_CONFIG, AWS_REGION, LOG_LEVEL
        """
    )

    parser.add_argument(
        '--config',
        default=None,
        help='Path to YAML configuration file (default: ECS_EXPORTER_CONFIG, if set)'
    )

    parser.add_argument(
        '--cluster',
        dest='clusters',
        action='append',
        metavar='CLUSTER',
        help='Cluster name or ARN; repeat for several clusters'
    )

    parser.add_argument(
        '-l', '--listen',
        default=None,
        help='HTTP listen address (default: [::1]:6543)'
    )

    parser.add_argument(
        '--region',
        default=None,
        help='AWS region to use, if any'
    )

    parser.add_argument(
        '--role',
        default=None,
        help='AWS role ARN to assume, if any'
    )

    parser.add_argument(
        '--interval',
        type=float,
        default=None,
        help='Seconds between collection cycles (default: 60)'
    )

    parser.add_argument(
        '--log-level',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Run one collection cycle, print the metrics and exit'
    )

    return parser.parse_args(argv)


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Raw configuration values given on the command line."""
    overrides: Dict[str, Any] = {}
    if args.clusters:
        overrides['clusters'] = args.clusters
    if args.listen:
        overrides['listen_address'] = args.listen

    aws: Dict[str, Any] = {}
    if args.region:
        aws['region'] = args.region
    if args.role:
        aws['role_arn'] = args.role
    if aws:
        overrides['aws'] = aws

    if args.interval is not None:
        overrides['collection'] = {'interval_seconds': args.interval}
    if args.log_level:
        overrides['logging'] = {'level': args.log_level}
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        int: Exit code (0 for success, non-zero for error)
    """
    args = parse_args(argv)
    logger = setup_logger("ecs_exporter", args.log_level or os.getenv('LOG_LEVEL', 'INFO'))

    try:
        config = ConfigLoader.load(args.config, cli_overrides(args))
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except (ValidationError, yaml.YAMLError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        app = ExporterApp(config)

        if args.run_once:
            success = asyncio.run(app.run_once())
            sys.stdout.write(app.registry.render().decode('utf-8'))
            return 0 if success else 1

        asyncio.run(app.serve())
        return 0

    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.error(f"Exporter failed: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
