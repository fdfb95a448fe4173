"""Environment settings."""

import os
import re
from typing import Dict, List, Optional


class Settings:
    """Application settings from environment variables."""

    CLUSTERS = "ECS_EXPORTER_CLUSTERS"
    LISTEN = "ECS_EXPORTER_LISTEN"
    ROLE = "ECS_EXPORTER_ROLE"
    CONFIG = "ECS_EXPORTER_CONFIG"
    REGION = "AWS_REGION"
    LOG_LEVEL = "LOG_LEVEL"

    @staticmethod
    def get(key: str, default: Optional[str] = None, required: bool = False) -> str:
        """
        Get environment variable value.

        Args:
            key: Environment variable name
            default: Default value if not set
            required: Whether the variable is required

        Returns:
            str: Environment variable value

        Raises:
            ValueError: If required variable is not set
        """
        value = os.getenv(key, default)
        if required and not value:
            raise ValueError(f"Required environment variable not set: {key}")
        return value or ""

    @staticmethod
    def cluster_list() -> List[str]:
        """Clusters from ECS_EXPORTER_CLUSTERS, separated by commas or whitespace."""
        raw = Settings.get(Settings.CLUSTERS)
        return [name for name in re.split(r"[,\s]+", raw) if name]

    @staticmethod
    def overrides() -> Dict:
        """
        Configuration values present in the environment.

        Returns:
            Dict: Partial raw configuration, shaped like the YAML file
        """
        raw: Dict = {}

        clusters = Settings.cluster_list()
        if clusters:
            raw["clusters"] = clusters

        listen = Settings.get(Settings.LISTEN)
        if listen:
            raw["listen_address"] = listen

        aws = {}
        region = Settings.get(Settings.REGION)
        if region:
            aws["region"] = region
        role = Settings.get(Settings.ROLE)
        if role:
            aws["role_arn"] = role
        if aws:
            raw["aws"] = aws

        level = Settings.get(Settings.LOG_LEVEL)
        if level:
            raw["logging"] = {"level": level}

        return raw
