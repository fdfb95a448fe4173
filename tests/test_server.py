"""Tests for the HTTP frontend."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from ecs_exporter.aws.errors import ErrorKind
from ecs_exporter.aws.models import ClusterTarget
from ecs_exporter.collectors.ecs_collector import EcsCollector
from ecs_exporter.server import create_app, create_ssl_context
from ecs_exporter.utils.metrics import MetricSample

# Fixtures imported from conftest.py: registry, fake_client_cls, ecs_error, collection_config, logger


@pytest.mark.asyncio
async def test_status_ok_while_aws_failing(registry, fake_client_cls, ecs_error, collection_config, logger):
    """Liveness stays 200 even when every cluster fails."""
    client = fake_client_cls({"prod": ecs_error(ErrorKind.UNAUTHORIZED, "prod")})
    collector = EcsCollector(client, registry, [ClusterTarget("prod")], collection_config, logger)
    await collector.run_cycle()

    async with TestClient(TestServer(create_app(registry))) as http:
        response = await http.get("/status")
        body = await response.text()

    assert response.status == 200
    assert "Ok" in body
    assert client.calls["prod"] == 1


@pytest.mark.asyncio
async def test_metrics_endpoint(registry):
    registry.replace_all([MetricSample.create("ecs_cluster_running_tasks", 5, cluster="prod")])

    async with TestClient(TestServer(create_app(registry))) as http:
        response = await http.get("/metrics")
        body = await response.text()

    assert response.status == 200
    assert response.headers["Content-Type"].startswith("text/plain")
    assert 'ecs_cluster_running_tasks{cluster="prod"} 5.0' in body


@pytest.mark.asyncio
async def test_metrics_before_first_cycle(registry):
    """Before any cycle only the request counter is exposed, counting errors."""
    async with TestClient(TestServer(create_app(registry))) as http:
        await http.get("/metrics")
        response = await http.get("/metrics")
        body = await response.text()

    assert response.status == 200
    assert 'ecs_exporter_http_requests_total{status="error"} 2.0' in body
    assert 'ecs_exporter_http_requests_total{status="success"} 0.0' in body
    assert "ecs_cluster_" not in body


@pytest.mark.asyncio
async def test_index_page_links(registry):
    async with TestClient(TestServer(create_app(registry, version="1.2.3"))) as http:
        response = await http.get("/")
        body = await response.text()

    assert response.status == 200
    assert "v1.2.3" in body
    assert 'href="/metrics"' in body
    assert 'href="/status"' in body


@pytest.mark.asyncio
async def test_unknown_path_is_404(registry):
    async with TestClient(TestServer(create_app(registry))) as http:
        response = await http.get("/nope")

    assert response.status == 404


def test_no_tls_means_no_ssl_context():
    assert create_ssl_context(None) is None


@pytest.mark.asyncio
async def test_metrics_requests_counted_by_last_cycle(registry, fake_client_cls, describe, ecs_error,
                                                      collection_config, logger):
    """Each /metrics request is counted as success or error after the last cycle."""
    client = fake_client_cls({"prod": describe("prod", running=1)})
    collector = EcsCollector(client, registry, [ClusterTarget("prod")], collection_config, logger)
    await collector.run_cycle()

    async with TestClient(TestServer(create_app(registry))) as http:
        await http.get("/metrics")
        client.set("prod", ecs_error(ErrorKind.UNAUTHORIZED, "prod"))
        await collector.run_cycle()
        response = await http.get("/metrics")
        body = await response.text()
        await http.get("/status")

    assert 'ecs_exporter_http_requests_total{status="success"} 1.0' in body
    assert 'ecs_exporter_http_requests_total{status="error"} 1.0' in body
    assert registry.get_sample_value("ecs_exporter_http_requests_total", {"status": "error"}) == 1
