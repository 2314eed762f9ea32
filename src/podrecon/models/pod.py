"""Pod specification models."""

from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import Field, ValidationError as PydanticValidationError, model_validator

from podrecon.errors import ValidationError
from podrecon.models.common import LocalObjectReference, SchemaModel, SeccompProfile, SELinuxOptions
from podrecon.models.container import Container
from podrecon.models.volume import Volume


DNS_SUBDOMAIN_PATTERN = r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$"
DNS_LABEL_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


class ObjectMeta(SchemaModel):
    """Pod metadata.

    ``uid``, ``resource_version`` and ``generation`` are assigned by the
    cluster. They are filled in when a live object is flattened and are
    never sent on create or update.
    """
    name: str = Field(..., max_length=253, pattern=DNS_SUBDOMAIN_PATTERN)
    namespace: str = Field(default="default", max_length=63, pattern=DNS_LABEL_PATTERN)
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)

    uid: Optional[str] = None
    resource_version: Optional[str] = None
    generation: Optional[int] = None


class Sysctl(SchemaModel):
    """Namespaced kernel parameter."""
    name: str = Field(..., min_length=1)
    value: str


class PodSecurityContext(SchemaModel):
    """Pod-level security settings."""
    fs_group: Optional[int] = None
    fs_group_change_policy: Optional[Literal["OnRootMismatch", "Always"]] = None
    run_as_group: Optional[int] = None
    run_as_non_root: Optional[bool] = None
    run_as_user: Optional[int] = None
    supplemental_groups: List[int] = Field(default_factory=list)
    seccomp_profile: Optional[SeccompProfile] = None
    se_linux_options: Optional[SELinuxOptions] = None
    sysctls: List[Sysctl] = Field(default_factory=list)


class ReadinessGate(SchemaModel):
    """Extra condition that must be True before the pod counts as ready."""
    condition_type: str = Field(..., min_length=1)


class LabelSelector(SchemaModel):
    """Equality-based label selector."""
    match_labels: Dict[str, str] = Field(default_factory=dict)


class TopologySpreadConstraint(SchemaModel):
    """How pods are spread across a topology domain."""
    topology_key: str = Field(..., min_length=1)
    max_skew: int = Field(default=1, ge=1)
    when_unsatisfiable: Literal["DoNotSchedule", "ScheduleAnyway"] = Field(default="DoNotSchedule")
    label_selector: Optional[LabelSelector] = None


class Toleration(SchemaModel):
    """Allows scheduling onto nodes with matching taints."""
    key: Optional[str] = None
    operator: Optional[Literal["Exists", "Equal"]] = None
    value: Optional[str] = None
    effect: Optional[Literal["NoSchedule", "PreferNoSchedule", "NoExecute"]] = None
    toleration_seconds: Optional[int] = None


class PodSpec(SchemaModel):
    """Declarative description of a pod, the root of the schema tree."""
    metadata: ObjectMeta
    containers: List[Container] = Field(..., min_length=1)
    init_containers: List[Container] = Field(default_factory=list)
    volumes: List[Volume] = Field(default_factory=list)
    security_context: Optional[PodSecurityContext] = None
    scheduler_name: Optional[str] = None
    service_account_name: Optional[str] = None
    automount_service_account_token: Optional[bool] = None
    node_selector: Dict[str, str] = Field(default_factory=dict)
    restart_policy: Optional[Literal["Always", "OnFailure", "Never"]] = None
    termination_grace_period_seconds: Optional[int] = Field(None, ge=0)
    readiness_gates: List[ReadinessGate] = Field(default_factory=list)
    topology_spread_constraints: List[TopologySpreadConstraint] = Field(default_factory=list)
    runtime_class_name: Optional[str] = None
    enable_service_links: Optional[bool] = None
    priority_class_name: Optional[str] = None
    active_deadline_seconds: Optional[int] = Field(None, ge=1)
    dns_policy: Optional[Literal["ClusterFirst", "ClusterFirstWithHostNet", "Default", "None"]] = None
    hostname: Optional[str] = None
    node_name: Optional[str] = None
    host_network: Optional[bool] = None
    image_pull_secrets: List[LocalObjectReference] = Field(default_factory=list)
    tolerations: List[Toleration] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_names(self):
        seen = set()
        for container in [*self.init_containers, *self.containers]:
            if container.name in seen:
                raise ValueError(f"duplicate container name: {container.name}")
            seen.add(container.name)

        volume_names = set()
        for volume in self.volumes:
            if volume.name in volume_names:
                raise ValueError(f"duplicate volume name: {volume.name}")
            volume_names.add(volume.name)
        return self

    @property
    def pod_id(self) -> str:
        """Identity in ``namespace/name`` form."""
        return f"{self.metadata.namespace}/{self.metadata.name}"

    def without_server_fields(self) -> "PodSpec":
        """Copy with the cluster-assigned metadata cleared."""
        metadata = self.metadata.model_copy(
            update={"uid": None, "resource_version": None, "generation": None}
        )
        return self.model_copy(update={"metadata": metadata})


def load_pod_spec(data: Union[PodSpec, Mapping[str, Any]]) -> PodSpec:
    """Build a validated PodSpec from a mapping or re-check an existing one.

    Raises:
        ValidationError: If the configuration is malformed or ambiguous
    """
    if isinstance(data, PodSpec):
        data = data.model_dump()
    try:
        return PodSpec.model_validate(data)
    except PydanticValidationError as e:
        name = None
        if isinstance(data, Mapping):
            metadata = data.get("metadata") or {}
            if isinstance(metadata, Mapping):
                name = metadata.get("name")
        raise ValidationError(format_errors(e), operation="validate", pod_id=name) from e


def format_errors(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
