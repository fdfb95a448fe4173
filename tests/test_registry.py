"""Tests for MetricsRegistry."""

import pytest

from ecs_exporter.registry import MetricsRegistry
from ecs_exporter.utils.metrics import COUNTER, MetricSample

# Fixtures imported from conftest.py: registry


def test_empty_registry_renders_only_request_counter(registry):
    body = registry.render().decode("utf-8")

    assert registry.samples() == ()
    assert 'ecs_exporter_http_requests_total{status="error"} 0.0' in body
    assert 'ecs_exporter_http_requests_total{status="success"} 0.0' in body
    assert "ecs_cluster_" not in body


def test_render_text_format(registry):
    """Samples are rendered with HELP and TYPE lines per metric."""
    registry.replace_all([
        MetricSample.create("ecs_cluster_running_tasks", 5, cluster="prod"),
        MetricSample.create("ecs_collection_error", 1, cluster="staging", kind="unauthorized"),
    ])
    body = registry.render().decode("utf-8")

    assert "# HELP ecs_cluster_running_tasks Number of tasks in the RUNNING state" in body
    assert "# TYPE ecs_cluster_running_tasks gauge" in body
    assert 'ecs_cluster_running_tasks{cluster="prod"} 5.0' in body
    assert 'ecs_collection_error{cluster="staging",kind="unauthorized"} 1.0' in body


def test_counter_rendering(registry):
    registry.replace_all([
        MetricSample.create(
            "ecs_exporter_collection_cycles_total", 2, metric_type=COUNTER, outcome="complete"
        ),
    ])
    body = registry.render().decode("utf-8")

    assert "# TYPE ecs_exporter_collection_cycles_total counter" in body
    assert 'ecs_exporter_collection_cycles_total{outcome="complete"} 2.0' in body


def test_render_is_deterministic():
    """Input order does not change the exposition."""
    samples = [
        MetricSample.create("ecs_cluster_running_tasks", 1, cluster="b"),
        MetricSample.create("ecs_cluster_pending_tasks", 0, cluster="a"),
        MetricSample.create("ecs_cluster_running_tasks", 2, cluster="a"),
    ]
    first = MetricsRegistry()
    second = MetricsRegistry()
    first.replace_all(samples)
    second.replace_all(reversed(samples))

    assert first.render() == second.render()
    assert first.render() == first.render()


def test_replace_all_swaps_everything(registry):
    """A new sample set fully replaces the previous one."""
    registry.replace_all([MetricSample.create("ecs_cluster_running_tasks", 1, cluster="old")])
    registry.replace_all([MetricSample.create("ecs_cluster_running_tasks", 2, cluster="new")])

    assert registry.get_sample_value("ecs_cluster_running_tasks", {"cluster": "old"}) is None
    assert registry.get_sample_value("ecs_cluster_running_tasks", {"cluster": "new"}) == 2


def test_duplicate_sample_rejected(registry):
    """Duplicates are rejected and the previous set stays published."""
    registry.replace_all([MetricSample.create("ecs_cluster_running_tasks", 1, cluster="prod")])

    with pytest.raises(ValueError, match="Duplicate"):
        registry.replace_all([
            MetricSample.create("ecs_cluster_running_tasks", 1, cluster="prod"),
            MetricSample.create("ecs_cluster_running_tasks", 2, cluster="prod"),
        ])

    assert registry.get_sample_value("ecs_cluster_running_tasks", {"cluster": "prod"}) == 1


def test_inconsistent_labels_rejected(registry):
    with pytest.raises(ValueError, match="Inconsistent"):
        registry.replace_all([
            MetricSample.create("ecs_cluster_running_tasks", 1, cluster="prod"),
            MetricSample.create("ecs_cluster_running_tasks", 1, cluster="prod", service="web"),
        ])


def test_label_values_escaped(registry):
    registry.replace_all([MetricSample.create("ecs_cluster_running_tasks", 1, cluster='we"ird')])

    assert 'cluster="we\\"ird"' in registry.render().decode("utf-8")


def test_request_counter_survives_replace(registry):
    """Request counts are not part of the published set and outlive each swap."""
    registry.count_request("success")
    registry.count_request("error")
    registry.count_request("success")
    registry.replace_all([MetricSample.create("ecs_cluster_running_tasks", 1, cluster="prod")])

    assert registry.get_sample_value("ecs_exporter_http_requests_total", {"status": "success"}) == 2
    assert registry.get_sample_value("ecs_exporter_http_requests_total", {"status": "error"}) == 1
    body = registry.render().decode("utf-8")
    assert "# TYPE ecs_exporter_http_requests_total counter" in body
    assert 'ecs_exporter_http_requests_total{status="success"} 2.0' in body


def test_request_counter_name_reserved(registry):
    with pytest.raises(ValueError, match="maintained by the registry"):
        registry.replace_all([
            MetricSample.create("ecs_exporter_http_requests_total", 1, metric_type=COUNTER, status="success"),
        ])
