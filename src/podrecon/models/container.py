"""Container specification models."""

from typing import ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import Field, field_validator, model_validator

from podrecon.models.common import (
    ObjectFieldSelector,
    OneOfModel,
    ResourceFieldSelector,
    SchemaModel,
    SeccompProfile,
    SELinuxOptions,
    canonical_quantities,
)


class KeySelector(SchemaModel):
    """Selects a key of a config map or secret."""
    name: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    optional: Optional[bool] = None


class EnvVarSource(OneOfModel):
    """Source of an environment variable value."""
    VARIANTS: ClassVar[Tuple[str, ...]] = (
        "field_ref",
        "resource_field_ref",
        "config_map_key_ref",
        "secret_key_ref",
    )

    field_ref: Optional[ObjectFieldSelector] = None
    resource_field_ref: Optional[ResourceFieldSelector] = None
    config_map_key_ref: Optional[KeySelector] = None
    secret_key_ref: Optional[KeySelector] = None


class EnvVar(SchemaModel):
    """Environment variable with a literal value or a reference."""
    name: str = Field(..., min_length=1, description="Variable name")
    value: Optional[str] = None
    value_from: Optional[EnvVarSource] = None

    @model_validator(mode="after")
    def _check_value_source(self):
        if self.value is not None and self.value_from is not None:
            raise ValueError(f"env {self.name}: value and value_from are mutually exclusive")
        return self


class EnvFromReference(SchemaModel):
    """Bulk reference to a config map or secret."""
    name: str = Field(..., min_length=1)
    optional: Optional[bool] = None


class EnvFromSource(OneOfModel):
    """Imports every key of a config map or secret as environment variables."""
    VARIANTS: ClassVar[Tuple[str, ...]] = ("config_map_ref", "secret_ref")

    prefix: Optional[str] = None
    config_map_ref: Optional[EnvFromReference] = None
    secret_ref: Optional[EnvFromReference] = None


class ContainerPort(SchemaModel):
    """Port exposed by a container."""
    container_port: int = Field(..., ge=1, le=65535)
    name: Optional[str] = None
    protocol: Literal["TCP", "UDP", "SCTP"] = Field(default="TCP")
    host_port: Optional[int] = Field(None, ge=1, le=65535)
    host_ip: Optional[str] = None


class VolumeMount(SchemaModel):
    """Mount of a pod volume into a container."""
    name: str = Field(..., min_length=1)
    mount_path: str = Field(..., min_length=1)
    read_only: Optional[bool] = None
    sub_path: Optional[str] = None
    mount_propagation: Optional[Literal["None", "HostToContainer", "Bidirectional"]] = None


class ResourceRequirements(SchemaModel):
    """Compute resource requests and limits."""
    limits: Dict[str, str] = Field(default_factory=dict)
    requests: Dict[str, str] = Field(default_factory=dict)

    @field_validator("limits", "requests", mode="before")
    @classmethod
    def validate_quantities(cls, v):
        """Canonicalise quantities so equal values compare equal."""
        return canonical_quantities(v)


class ExecAction(SchemaModel):
    """Command executed inside the container."""
    command: List[str] = Field(default_factory=list)


class HTTPHeader(SchemaModel):
    """Custom HTTP header for a probe."""
    name: str = Field(..., min_length=1)
    value: str


class HTTPGetAction(SchemaModel):
    """HTTP GET request against the container."""
    port: str = Field(..., description="Port number or name")
    path: Optional[str] = None
    host: Optional[str] = None
    scheme: Optional[Literal["HTTP", "HTTPS"]] = None
    http_headers: List[HTTPHeader] = Field(default_factory=list)

    @field_validator("port", mode="before")
    @classmethod
    def validate_port(cls, v):
        """Accept numeric ports."""
        return str(v) if isinstance(v, int) else v


class TCPSocketAction(SchemaModel):
    """TCP connection attempt against the container."""
    port: str = Field(..., description="Port number or name")
    host: Optional[str] = None

    @field_validator("port", mode="before")
    @classmethod
    def validate_port(cls, v):
        """Accept numeric ports."""
        return str(v) if isinstance(v, int) else v


class GRPCAction(SchemaModel):
    """gRPC health check against the container."""
    port: int = Field(..., ge=1, le=65535)
    service: Optional[str] = None


class Probe(OneOfModel):
    """Container probe, polymorphic over its check mechanism."""
    VARIANTS: ClassVar[Tuple[str, ...]] = ("exec", "http_get", "tcp_socket", "grpc")

    exec: Optional[ExecAction] = None
    http_get: Optional[HTTPGetAction] = None
    tcp_socket: Optional[TCPSocketAction] = None
    grpc: Optional[GRPCAction] = None
    initial_delay_seconds: Optional[int] = Field(None, ge=0)
    period_seconds: Optional[int] = Field(None, ge=1)
    timeout_seconds: Optional[int] = Field(None, ge=1)
    success_threshold: Optional[int] = Field(None, ge=1)
    failure_threshold: Optional[int] = Field(None, ge=1)


class LifecycleHandler(OneOfModel):
    """Action run by a lifecycle hook."""
    VARIANTS: ClassVar[Tuple[str, ...]] = ("exec", "http_get", "tcp_socket")

    exec: Optional[ExecAction] = None
    http_get: Optional[HTTPGetAction] = None
    tcp_socket: Optional[TCPSocketAction] = None


class Lifecycle(SchemaModel):
    """Container lifecycle hooks."""
    post_start: Optional[LifecycleHandler] = None
    pre_stop: Optional[LifecycleHandler] = None


class Capabilities(SchemaModel):
    """Linux capabilities added or dropped."""
    add: List[str] = Field(default_factory=list)
    drop: List[str] = Field(default_factory=list)


class SecurityContext(SchemaModel):
    """Container-level security settings."""
    allow_privilege_escalation: Optional[bool] = None
    capabilities: Optional[Capabilities] = None
    privileged: Optional[bool] = None
    read_only_root_filesystem: Optional[bool] = None
    run_as_group: Optional[int] = None
    run_as_non_root: Optional[bool] = None
    run_as_user: Optional[int] = None
    seccomp_profile: Optional[SeccompProfile] = None
    se_linux_options: Optional[SELinuxOptions] = None


class Container(SchemaModel):
    """Container specification."""
    name: str = Field(..., min_length=1, description="Container name, unique within the pod")
    image: str = Field(..., min_length=1, description="Container image")
    command: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)
    env: List[EnvVar] = Field(default_factory=list)
    env_from: List[EnvFromSource] = Field(default_factory=list)
    ports: List[ContainerPort] = Field(default_factory=list)
    volume_mounts: List[VolumeMount] = Field(default_factory=list)
    resources: Optional[ResourceRequirements] = None
    liveness_probe: Optional[Probe] = None
    readiness_probe: Optional[Probe] = None
    startup_probe: Optional[Probe] = None
    lifecycle: Optional[Lifecycle] = None
    security_context: Optional[SecurityContext] = None
    working_dir: Optional[str] = None
    image_pull_policy: Optional[Literal["Always", "IfNotPresent", "Never"]] = None
    termination_message_path: Optional[str] = None
    termination_message_policy: Literal["File", "FallbackToLogsOnError"] = Field(default="File")

