from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_EXECUTOR_RETRIES,
    DEFAULT_EXECUTOR_TIMEOUT,
    DEFAULT_REDIS_QUEUE,
)


class RedisConfig(BaseModel):
    """Configuration for the Redis executor queue."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    queue: str = DEFAULT_REDIS_QUEUE


class HttpExecutorConfig(BaseModel):
    """Configuration for the HTTP executor endpoint."""

    url: Optional[str] = None
    headers: dict[str, str] = {}


class ExecutorConfig(BaseModel):
    """Executor trigger settings."""

    backend: Literal["inmemory", "http", "redis"] = "inmemory"
    timeout: float = DEFAULT_EXECUTOR_TIMEOUT
    max_retries: int = DEFAULT_EXECUTOR_RETRIES
    http: HttpExecutorConfig = HttpExecutorConfig()
    redis: RedisConfig = RedisConfig()


class CascadeConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    history_url: Optional[str] = None
    executor: ExecutorConfig = ExecutorConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> CascadeConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to TASKCASCADE_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("TASKCASCADE_CONFIG", DEFAULT_CONFIG_PATH)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CascadeConfig(**data)
    else:
        config = CascadeConfig()

    env_db_url = os.getenv("TASKCASCADE_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_history_url = os.getenv("TASKCASCADE_HISTORY_URL")
    if env_history_url:
        config.history_url = env_history_url
    env_log_level = os.getenv("TASKCASCADE_LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level.upper()
    return config
