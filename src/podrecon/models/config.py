"""Configuration models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReconcilerSettings(BaseModel):
    """Timeouts and polling cadence of the reconciler."""
    poll_interval: float = Field(default=2.0, gt=0)
    create_timeout: float = Field(default=300.0, gt=0)
    update_timeout: float = Field(default=300.0, gt=0)
    delete_timeout: float = Field(default=300.0, gt=0)


class ClusterConfig(BaseModel):
    """Cluster connection settings handed to the transport layer."""
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    default_namespace: str = Field(default="default")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class PodreconConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore")

    reconciler: ReconcilerSettings = Field(default_factory=ReconcilerSettings)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    watch_interval: int = Field(default=30, ge=5)
