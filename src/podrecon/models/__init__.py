"""Pydantic models for the pod schema and configuration."""

from podrecon.models.config import ClusterConfig, LoggingConfig, PodreconConfig, ReconcilerSettings
from podrecon.models.container import (
    Container,
    EnvFromSource,
    EnvVar,
    EnvVarSource,
    Lifecycle,
    LifecycleHandler,
    Probe,
    ResourceRequirements,
    SecurityContext,
    VolumeMount,
)
from podrecon.models.pod import (
    ObjectMeta,
    PodSecurityContext,
    PodSpec,
    ReadinessGate,
    TopologySpreadConstraint,
    load_pod_spec,
)
from podrecon.models.volume import Volume, VolumeProjection

__all__ = [
    "ClusterConfig",
    "LoggingConfig",
    "PodreconConfig",
    "ReconcilerSettings",
    "Container",
    "EnvFromSource",
    "EnvVar",
    "EnvVarSource",
    "Lifecycle",
    "LifecycleHandler",
    "Probe",
    "ResourceRequirements",
    "SecurityContext",
    "VolumeMount",
    "ObjectMeta",
    "PodSecurityContext",
    "PodSpec",
    "ReadinessGate",
    "TopologySpreadConstraint",
    "load_pod_spec",
    "Volume",
    "VolumeProjection",
]
