from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .constants import DEFAULT_POLL_INTERVAL, REQUEST_CREATED_CHANNEL


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Message router settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    capacity: Optional[int] = Field(default=None, gt=0)
    overflow: Literal["reject", "drop_oldest"] = "reject"
    dead_letter_channel: Optional[str] = None


class WorkerConfig(BaseModel):
    """Orchestration worker settings."""

    channel: str = REQUEST_CREATED_CHANNEL
    preparation_delay_min: float = Field(default=0.5, ge=0)
    preparation_delay_max: float = Field(default=1.5, ge=0)
    external_timeout: Optional[float] = Field(default=None, gt=0)
    max_in_flight: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_delays(self) -> "WorkerConfig":
        if self.preparation_delay_max < self.preparation_delay_min:
            raise ValueError("preparation_delay_max must be >= preparation_delay_min")
        return self


class RetryConfig(BaseModel):
    """Bounded retry for external deliveries (single attempt by default)."""

    max_attempts: int = Field(default=1, ge=1)
    base: float = 1.5
    jitter: float = 0.5


class GatewayConfig(BaseModel):
    """External-system gateway settings."""

    backend: Literal["simulated", "http"] = "simulated"
    success_rate: float = Field(default=0.9, ge=0, le=1)
    latency_min: float = Field(default=0.1, ge=0)
    latency_max: float = Field(default=0.5, ge=0)
    endpoints: Dict[str, str] = Field(default_factory=dict)
    timeout: float = 30.0
    retry: RetryConfig = RetryConfig()


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "[%(asctime)s %(levelname)s] %(name)s - %(message)s"


class IntegrationHubConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    worker: WorkerConfig = WorkerConfig()
    gateway: GatewayConfig = GatewayConfig()
    logging: LoggingConfig = LoggingConfig()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> IntegrationHubConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to INTEGRATIONHUB_CONFIG
            env variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("INTEGRATIONHUB_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = IntegrationHubConfig(**data)
    else:
        config = IntegrationHubConfig()

    env_transport = os.getenv("INTEGRATIONHUB_TRANSPORT")
    if env_transport:
        config.transport.backend = env_transport.lower()
    env_db_url = os.getenv("INTEGRATIONHUB_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_level = os.getenv("INTEGRATIONHUB_LOG_LEVEL")
    if env_level:
        config.logging.level = env_level.upper()
    return config
