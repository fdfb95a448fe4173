"""Typed failures raised by the ECS client adapter."""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Why describing a cluster failed."""

    UNAUTHORIZED = "unauthorized"
    CLUSTER_NOT_FOUND = "cluster_not_found"
    THROTTLED = "throttled"
    TRANSIENT = "transient"
    MALFORMED = "malformed"

    @property
    def retryable(self) -> bool:
        """Throttling and transient failures may succeed on a later attempt."""
        return self in (ErrorKind.THROTTLED, ErrorKind.TRANSIENT)


class EcsError(Exception):
    """A cluster could not be described."""

    def __init__(self, kind: ErrorKind, cluster: str, message: str, code: Optional[str] = None):
        """
        Initialize the error.

        Args:
            kind: Failure classification
            cluster: Label of the cluster being described
            message: Human-readable detail
            code: Provider error code, when there was one
        """
        super().__init__(f"{cluster}: {kind.value}: {message}")
        self.kind = kind
        self.cluster = cluster
        self.message = message
        self.code = code

    @property
    def retryable(self) -> bool:
        return self.kind.retryable
