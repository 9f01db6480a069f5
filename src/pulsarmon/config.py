"""Configuration management using Pydantic v2."""

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> str:
    """Find .env file: check project root first, then CWD."""
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    env_path = os.path.join(project_root, ".env")
    if os.path.exists(env_path):
        return env_path
    return ".env"


class AlertPolicy(BaseModel):
    """When repeated failures of one component turn into an incident."""

    ceiling: int = Field(
        default=1,
        ge=0,
        description="Consecutive failures before an incident opens (0 disables)",
    )
    moving_window_seconds: int = Field(
        default=0,
        ge=0,
        description="Length of the moving window in seconds (0 disables the window rule)",
    )
    ceiling_in_moving_window: int = Field(
        default=0,
        ge=0,
        description="Failures within the moving window before an incident opens",
    )


class PulsarMonSettings(BaseSettings):
    """Main configuration for pulsarmon."""

    model_config = SettingsConfigDict(
        env_file=_find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Cluster identity
    cluster_name: str = Field(
        default="pulsar",
        min_length=1,
        description="Cluster display name; the scope label is '<name>-in-cluster'",
    )

    # Kubernetes cluster monitoring
    k8s_enabled: bool = Field(
        default=False,
        description="Enable in-cluster Kubernetes health monitoring",
    )
    cluster_client: str | None = Field(
        default=None,
        description="Import path 'module:attr' of a zero-argument ClusterClient factory",
    )

    # Incident policy for the k8s monitor
    alert_ceiling: int = Field(default=1, ge=0, description="Consecutive TotalDown ticks before an incident")
    alert_moving_window_seconds: int = Field(default=0, ge=0, description="Moving window length in seconds")
    alert_ceiling_in_moving_window: int = Field(
        default=0, ge=0, description="TotalDown ticks within the moving window before an incident"
    )

    # Observability
    metrics_port: int = Field(default=8089, gt=0, le=65535, description="Prometheus /metrics and /health port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["text", "json"] = Field(default="text", description="Log output format")

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, v: object) -> object:
        """Accept LOG_FORMAT in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("cluster_client")
    @classmethod
    def validate_cluster_client(cls, v: str | None) -> str | None:
        """Require the 'module:attr' form."""
        if v is None:
            return v
        module, sep, attr = v.partition(":")
        if not sep or not module or not attr:
            raise ValueError(f"cluster_client must look like 'package.module:factory', got {v!r}")
        return v

    @property
    def cluster_scope(self) -> str:
        """Scope label attached to k8s metrics and incidents (in-cluster monitoring only)."""
        return f"{self.cluster_name}-in-cluster"

    @property
    def alert_policy(self) -> AlertPolicy:
        return AlertPolicy(
            ceiling=self.alert_ceiling,
            moving_window_seconds=self.alert_moving_window_seconds,
            ceiling_in_moving_window=self.alert_ceiling_in_moving_window,
        )


# Global settings instance
settings = PulsarMonSettings()
