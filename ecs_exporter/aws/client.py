"""AWS session and ECS client initialization."""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.credentials import RefreshableCredentials
from botocore.session import get_session

from ..config.models import AWSConfig, CollectionConfig


logger = logging.getLogger(__name__)


def create_session(aws_config: AWSConfig) -> boto3.Session:
    """
    Create the boto3 session the exporter polls with.

    Uses the named profile or the default credential chain, and assumes
    ``aws_config.role_arn`` on top of it when one is configured.

    Args:
        aws_config: AWS configuration

    Returns:
        boto3.Session: Ready-to-use session
    """
    session_kwargs = {}
    if aws_config.profile:
        session_kwargs["profile_name"] = aws_config.profile
    if aws_config.region:
        session_kwargs["region_name"] = aws_config.region

    session = boto3.Session(**session_kwargs)

    if aws_config.role_arn:
        return assume_role_session(
            session,
            aws_config.role_arn,
            external_id=aws_config.external_id,
            session_name=aws_config.session_name,
            region=aws_config.region or session.region_name,
        )
    return session


def assume_role_session(
    base_session: boto3.Session,
    role_arn: str,
    external_id: Optional[str] = None,
    session_name: str = "aws-ecs-exporter",
    region: Optional[str] = None,
) -> boto3.Session:
    """
    Build a session whose credentials come from STS AssumeRole.

    The credentials refresh themselves shortly before they expire, so a
    long-running exporter never polls with a stale token.

    Args:
        base_session: Session holding the credentials allowed to assume the role
        role_arn: Role to assume
        external_id: Optional external ID required by the role's trust policy
        session_name: Role session name
        region: Region for the resulting session

    Returns:
        boto3.Session: Session backed by refreshable role credentials
    """
    sts_client = base_session.client("sts", region_name=region)

    assume_kwargs: Dict[str, Any] = {
        "RoleArn": role_arn,
        "RoleSessionName": session_name,
    }
    if external_id:
        assume_kwargs["ExternalId"] = external_id

    def refresh() -> Dict[str, str]:
        logger.info(f"Assuming role {role_arn}")
        credentials = sts_client.assume_role(**assume_kwargs)["Credentials"]
        return {
            "access_key": credentials["AccessKeyId"],
            "secret_key": credentials["SecretAccessKey"],
            "token": credentials["SessionToken"],
            "expiry_time": credentials["Expiration"].isoformat(),
        }

    refreshable = RefreshableCredentials.create_from_metadata(
        metadata=refresh(),
        refresh_using=refresh,
        method="sts-assume-role",
    )

    botocore_session = get_session()
    botocore_session._credentials = refreshable
    if region:
        botocore_session.set_config_variable("region", region)

    return boto3.Session(botocore_session=botocore_session)


def create_ecs_client(session: boto3.Session, collection: CollectionConfig):
    """
    Create an ECS client tuned for the collector.

    Retries are turned off here because the collector owns the retry
    budget; socket timeouts are capped by the per-call timeout.

    Args:
        session: Authenticated boto3 session
        collection: Collection configuration

    Returns:
        Configured boto3 ECS client
    """
    boto_config = BotoConfig(
        retries={
            "total_max_attempts": 1,
            "mode": "standard",
        },
        connect_timeout=collection.call_timeout_seconds,
        read_timeout=collection.call_timeout_seconds,
        max_pool_connections=max(10, collection.max_concurrency),
    )

    return session.client("ecs", config=boto_config)
