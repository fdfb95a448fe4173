"""Pydantic configuration models for the exporter."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional, Tuple
import ipaddress
import re

from ..aws.models import ClusterTarget
from ..utils.logger import LOG_LEVELS


ROLE_ARN_PATTERN = re.compile(r"(?i:arn:aws:iam::\d{12}:role/.*)")

DEFAULT_LISTEN_ADDRESS = "[::1]:6543"


def parse_listen_address(value: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` listen address.

    IPv6 hosts must be bracketed, e.g. ``[::1]:6543``.

    Returns:
        Tuple[str, int]: Host (without brackets) and port

    Raises:
        ValueError: If the address is not a valid socket address
    """
    value = value.strip()
    if value.startswith("["):
        host, sep, port = value[1:].partition("]:")
        if not sep:
            raise ValueError(f"Invalid listen address: {value}")
        ipaddress.IPv6Address(host)
    else:
        host, sep, port = value.rpartition(":")
        if not sep or not host or ":" in host:
            raise ValueError(f"Invalid listen address: {value}")

    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"Invalid port in listen address: {value}")
    return host, int(port)


class AWSConfig(BaseModel):
    """AWS session configuration."""
    model_config = ConfigDict(frozen=True)

    region: Optional[str] = None
    profile: Optional[str] = None
    role_arn: Optional[str] = None
    external_id: Optional[str] = None
    session_name: str = "aws-ecs-exporter"

    @field_validator('role_arn')
    @classmethod
    def validate_role_arn(cls, v: Optional[str]) -> Optional[str]:
        """Role must look like an IAM role ARN."""
        if v is not None and not ROLE_ARN_PATTERN.fullmatch(v):
            raise ValueError('must be of the form `arn:aws:iam::123456789012:role/something`')
        return v


class CollectionConfig(BaseModel):
    """Collection cycle timing, retry and concurrency limits."""
    model_config = ConfigDict(frozen=True)

    interval_seconds: float = Field(default=60.0, gt=0)
    call_timeout_seconds: float = Field(default=10.0, gt=0)
    retry_bound: int = Field(default=2, ge=0, le=10)
    retry_base_delay_seconds: float = Field(default=0.5, ge=0)
    retry_max_delay_seconds: float = Field(default=5.0, ge=0)
    max_concurrency: int = Field(default=4, ge=1, le=64)
    cycle_timeout_seconds: float = Field(default=120.0, gt=0)
    collect_services: bool = True
    collect_instances: bool = True

    @model_validator(mode='after')
    def cycle_outlasts_call(self) -> 'CollectionConfig':
        """A cycle must leave room for at least one full describe call."""
        if self.cycle_timeout_seconds < self.call_timeout_seconds:
            raise ValueError('cycle_timeout_seconds must be >= call_timeout_seconds')
        return self


class TLSConfig(BaseModel):
    """Certificate and key for serving HTTPS."""
    model_config = ConfigDict(frozen=True)

    cert_path: str
    key_path: str


class LoggingConfig(BaseModel):
    """Log level and format."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    level: str = "INFO"
    json_format: bool = Field(default=True, alias="json")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Only standard level names are accepted."""
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f'Unknown log level: {v}')
        return level


class ExporterConfig(BaseModel):
    """Root configuration model for the exporter."""
    model_config = ConfigDict(frozen=True)

    clusters: List[str] = Field(min_length=1)
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    aws: AWSConfig = Field(default_factory=AWSConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)
    tls: Optional[TLSConfig] = None
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('clusters')
    @classmethod
    def unique_clusters(cls, v: List[str]) -> List[str]:
        """Drop blanks and duplicates; reject two identifiers for one cluster name."""
        identifiers = []
        labels = {}
        for raw in v:
            identifier = raw.strip()
            if not identifier or identifier in identifiers:
                continue
            label = ClusterTarget(identifier).label
            if label in labels:
                raise ValueError(
                    f'Clusters {labels[label]!r} and {identifier!r} both resolve to name {label!r}'
                )
            labels[label] = identifier
            identifiers.append(identifier)
        if not identifiers:
            raise ValueError('At least one cluster is required')
        return identifiers

    @field_validator('listen_address')
    @classmethod
    def validate_listen_address(cls, v: str) -> str:
        """Listen address must parse as host:port."""
        parse_listen_address(v)
        return v.strip()

    @property
    def targets(self) -> Tuple[ClusterTarget, ...]:
        return tuple(ClusterTarget(identifier) for identifier in self.clusters)

    @property
    def listen_host(self) -> str:
        return parse_listen_address(self.listen_address)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_address(self.listen_address)[1]
