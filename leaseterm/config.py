from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

CheckpointPolicy = Literal["blocking", "best_effort"]


class ApiConfig(BaseModel):
    """Connection settings for the lending backend."""

    base_url: str = "http://localhost:5000/api"
    timeout: float = 30.0
    max_retries: int = 2


class WorkflowConfig(BaseModel):
    """Workflow behaviour settings."""

    checkpoint_policy: CheckpointPolicy = "blocking"


class LeaseTermConfig(BaseModel):
    """Top-level configuration model."""

    api: ApiConfig = ApiConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> LeaseTermConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to LEASETERM_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("LEASETERM_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = LeaseTermConfig(**data)
    else:
        config = LeaseTermConfig()

    env_api_url = os.getenv("LEASETERM_API_URL")
    if env_api_url:
        config.api.base_url = env_api_url

    env_db_url = os.getenv("LEASETERM_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url

    env_policy = os.getenv("LEASETERM_CHECKPOINT_POLICY")
    if env_policy:
        config.workflow = WorkflowConfig(checkpoint_policy=env_policy)
    return config
