"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from ecs_exporter.config.models import (
    AWSConfig,
    CollectionConfig,
    ExporterConfig,
    LoggingConfig,
    parse_listen_address,
)


class TestListenAddress:
    """Test suite for parse_listen_address."""

    @pytest.mark.parametrize("value,expected", [
        ("[::1]:6543", ("::1", 6543)),
        ("[::]:80", ("::", 80)),
        ("0.0.0.0:9000", ("0.0.0.0", 9000)),
        ("localhost:65535", ("localhost", 65535)),
    ])
    def test_valid(self, value, expected):
        assert parse_listen_address(value) == expected

    @pytest.mark.parametrize("value", [
        "6543",
        "::1:6543",
        "[::1]",
        "[not-ipv6]:80",
        "127.0.0.1:0",
        "127.0.0.1:70000",
        "127.0.0.1:http",
        ":80",
    ])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_listen_address(value)


def test_defaults():
    config = ExporterConfig(clusters=["prod"])

    assert config.listen_host == "::1"
    assert config.listen_port == 6543
    assert config.collection.interval_seconds == 60
    assert config.collection.call_timeout_seconds == 10
    assert config.collection.retry_bound == 2
    assert config.collection.cycle_timeout_seconds == 120
    assert config.aws.role_arn is None
    assert config.tls is None
    assert config.logging.json_format is True


def test_clusters_required():
    with pytest.raises(ValidationError):
        ExporterConfig(clusters=[])
    with pytest.raises(ValidationError):
        ExporterConfig(clusters=["  ", ""])


def test_clusters_deduplicated():
    config = ExporterConfig(clusters=["prod", " prod ", "staging"])

    assert config.clusters == ["prod", "staging"]


def test_cluster_name_collision_rejected():
    """A name and an ARN that resolve to the same label cannot both be polled."""
    with pytest.raises(ValidationError, match="both resolve"):
        ExporterConfig(clusters=["prod", "arn:aws:ecs:us-east-1:123456789012:cluster/prod"])


def test_invalid_listen_address_rejected():
    with pytest.raises(ValidationError):
        ExporterConfig(clusters=["prod"], listen_address="nonsense")


@pytest.mark.parametrize("role", [
    "arn:aws:iam::123456789012:role/ecs-read",
    "ARN:AWS:IAM::123456789012:ROLE/path/ecs-read",
])
def test_role_arn_accepted(role):
    assert AWSConfig(role_arn=role).role_arn == role


@pytest.mark.parametrize("role", [
    "ecs-read",
    "arn:aws:iam::12345:role/ecs-read",
    "arn:aws:iam::123456789012:user/bob",
])
def test_role_arn_rejected(role):
    with pytest.raises(ValidationError, match="arn:aws:iam"):
        AWSConfig(role_arn=role)


def test_cycle_timeout_must_cover_call_timeout():
    with pytest.raises(ValidationError, match="cycle_timeout_seconds"):
        CollectionConfig(call_timeout_seconds=30, cycle_timeout_seconds=10)


@pytest.mark.parametrize("field,value", [
    ("interval_seconds", 0),
    ("retry_bound", -1),
    ("retry_bound", 11),
    ("max_concurrency", 0),
])
def test_collection_bounds(field, value):
    with pytest.raises(ValidationError):
        CollectionConfig(**{field: value})


def test_log_level_normalized():
    assert LoggingConfig(level="warning").level == "WARNING"
    with pytest.raises(ValidationError):
        LoggingConfig(level="verbose")


def test_models_are_frozen():
    config = ExporterConfig(clusters=["prod"])
    with pytest.raises(ValidationError):
        config.listen_address = "0.0.0.0:1"
