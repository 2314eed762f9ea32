"""Volume specification models.

Each volume carries exactly one source. Projected volumes hold an ordered
list of sources which are themselves polymorphic.
"""

from typing import ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import Field, field_validator

from podrecon.models.common import (
    FileMode,
    KeyToPath,
    LocalObjectReference,
    ObjectFieldSelector,
    OneOfModel,
    ResourceFieldSelector,
    SchemaModel,
    canonical_quantities,
)
from podrecon.utils.quantity import QuantityError, canonical_quantity


class SecretVolumeSource(SchemaModel):
    """Secret mounted as files."""
    secret_name: Optional[str] = None
    items: List[KeyToPath] = Field(default_factory=list)
    default_mode: Optional[FileMode] = None
    optional: Optional[bool] = None


class ConfigMapVolumeSource(SchemaModel):
    """Config map mounted as files."""
    name: Optional[str] = None
    items: List[KeyToPath] = Field(default_factory=list)
    default_mode: Optional[FileMode] = None
    optional: Optional[bool] = None


class EmptyDirVolumeSource(SchemaModel):
    """Scratch directory sharing the pod's lifetime."""
    medium: Optional[Literal["", "Memory"]] = None
    size_limit: Optional[str] = None

    @field_validator("size_limit")
    @classmethod
    def validate_size_limit(cls, v):
        """Canonicalise the size limit quantity."""
        if v is None:
            return v
        try:
            return canonical_quantity(v)
        except QuantityError as e:
            raise ValueError(str(e)) from e


class CSIVolumeSource(SchemaModel):
    """Volume provided by a CSI driver."""
    driver: str = Field(..., min_length=1)
    read_only: Optional[bool] = None
    fs_type: Optional[str] = None
    volume_attributes: Dict[str, str] = Field(default_factory=dict)
    node_publish_secret_ref: Optional[LocalObjectReference] = None


class HostPathVolumeSource(SchemaModel):
    """Directory on the node's filesystem."""
    path: str = Field(..., min_length=1)
    type: Optional[str] = None


class PersistentVolumeClaimVolumeSource(SchemaModel):
    """Existing persistent volume claim."""
    claim_name: str = Field(..., min_length=1)
    read_only: Optional[bool] = None


class DownwardAPIVolumeFile(OneOfModel):
    """File populated from pod metadata or container resources."""
    VARIANTS: ClassVar[Tuple[str, ...]] = ("field_ref", "resource_field_ref")

    path: str = Field(..., min_length=1)
    field_ref: Optional[ObjectFieldSelector] = None
    resource_field_ref: Optional[ResourceFieldSelector] = None
    mode: Optional[FileMode] = None


class DownwardAPIVolumeSource(SchemaModel):
    """Pod metadata exposed as files."""
    items: List[DownwardAPIVolumeFile] = Field(default_factory=list)
    default_mode: Optional[FileMode] = None


class SecretProjection(SchemaModel):
    """Secret keys projected into a projected volume."""
    name: Optional[str] = None
    items: List[KeyToPath] = Field(default_factory=list)
    optional: Optional[bool] = None


class ConfigMapProjection(SchemaModel):
    """Config map keys projected into a projected volume."""
    name: Optional[str] = None
    items: List[KeyToPath] = Field(default_factory=list)
    optional: Optional[bool] = None


class DownwardAPIProjection(SchemaModel):
    """Downward API files projected into a projected volume."""
    items: List[DownwardAPIVolumeFile] = Field(default_factory=list)


class ServiceAccountTokenProjection(SchemaModel):
    """Service account token projected into a projected volume."""
    path: str = Field(..., min_length=1)
    audience: Optional[str] = None
    expiration_seconds: Optional[int] = Field(None, ge=600)


class VolumeProjection(OneOfModel):
    """One source of a projected volume."""
    VARIANTS: ClassVar[Tuple[str, ...]] = (
        "config_map",
        "secret",
        "downward_api",
        "service_account_token",
    )

    config_map: Optional[ConfigMapProjection] = None
    secret: Optional[SecretProjection] = None
    downward_api: Optional[DownwardAPIProjection] = None
    service_account_token: Optional[ServiceAccountTokenProjection] = None


class ProjectedVolumeSource(SchemaModel):
    """Several sources projected into one directory."""
    sources: List[VolumeProjection] = Field(..., min_length=1)
    default_mode: Optional[FileMode] = None


class ClaimTemplateMetadata(SchemaModel):
    """Metadata stamped onto the generated claim."""
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class ClaimResources(SchemaModel):
    """Storage requests and limits of a generated claim."""
    requests: Dict[str, str] = Field(default_factory=dict)
    limits: Dict[str, str] = Field(default_factory=dict)

    @field_validator("limits", "requests", mode="before")
    @classmethod
    def validate_quantities(cls, v):
        """Canonicalise storage quantities."""
        return canonical_quantities(v)


class ClaimTemplateSpec(SchemaModel):
    """Spec of the claim generated for an ephemeral volume."""
    access_modes: List[str] = Field(..., min_length=1)
    resources: ClaimResources
    storage_class_name: Optional[str] = None
    volume_mode: Optional[Literal["Filesystem", "Block"]] = None


class VolumeClaimTemplate(SchemaModel):
    """Template of the claim generated for an ephemeral volume."""
    metadata: Optional[ClaimTemplateMetadata] = None
    spec: ClaimTemplateSpec


class EphemeralVolumeSource(SchemaModel):
    """Volume backed by a claim created and deleted with the pod."""
    volume_claim_template: VolumeClaimTemplate


class Volume(OneOfModel):
    """Named pod volume with exactly one source."""
    VARIANTS: ClassVar[Tuple[str, ...]] = (
        "secret",
        "config_map",
        "empty_dir",
        "csi",
        "projected",
        "ephemeral",
        "host_path",
        "persistent_volume_claim",
        "downward_api",
    )

    name: str = Field(..., min_length=1, description="Volume name, referenced by mounts")
    secret: Optional[SecretVolumeSource] = None
    config_map: Optional[ConfigMapVolumeSource] = None
    empty_dir: Optional[EmptyDirVolumeSource] = None
    csi: Optional[CSIVolumeSource] = None
    projected: Optional[ProjectedVolumeSource] = None
    ephemeral: Optional[EphemeralVolumeSource] = None
    host_path: Optional[HostPathVolumeSource] = None
    persistent_volume_claim: Optional[PersistentVolumeClaimVolumeSource] = None
    downward_api: Optional[DownwardAPIVolumeSource] = None
