"""Shared building blocks for the pod schema models."""

from typing import Annotated, Any, ClassVar, Dict, Optional, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from podrecon.utils.quantity import QuantityError, canonical_quantity


FILE_MODE_PATTERN = r"^0?[0-7]{3,4}$"


def normalize_file_mode(value: str) -> str:
    """Render an octal file mode with four digits ('644' -> '0644')."""
    return "%04o" % int(value, 8)


FileMode = Annotated[str, Field(pattern=FILE_MODE_PATTERN), AfterValidator(normalize_file_mode)]


class SchemaModel(BaseModel):
    """Base for every block of the pod schema."""

    model_config = ConfigDict(extra="forbid")


class OneOfModel(SchemaModel):
    """Block that must carry exactly one of its variant fields."""

    VARIANTS: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _check_single_variant(self):
        chosen = [name for name in self.VARIANTS if getattr(self, name) is not None]
        if len(chosen) != 1:
            raise ValueError(
                f"exactly one of {', '.join(self.VARIANTS)} must be set, got {len(chosen)}"
            )
        return self

    def variant(self) -> Tuple[str, Any]:
        """Return the name and value of the variant that is set."""
        for name in self.VARIANTS:
            value = getattr(self, name)
            if value is not None:
                return name, value
        raise ValueError(f"{type(self).__name__} has no variant set")


def canonical_quantities(value: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    """Canonicalise every quantity in a resource mapping."""
    if value is None:
        return None
    try:
        return {key: canonical_quantity(qty) for key, qty in value.items()}
    except QuantityError as e:
        raise ValueError(str(e)) from e


class LocalObjectReference(SchemaModel):
    """Reference to an object in the pod's namespace."""
    name: str = Field(..., min_length=1)


class SeccompProfile(SchemaModel):
    """Seccomp profile selection."""
    type: str = Field(..., pattern=r"^(Unconfined|RuntimeDefault|Localhost)$")
    localhost_profile: Optional[str] = None

    @model_validator(mode="after")
    def _check_localhost(self):
        if self.type == "Localhost" and not self.localhost_profile:
            raise ValueError("localhost_profile is required when type is Localhost")
        if self.type != "Localhost" and self.localhost_profile:
            raise ValueError("localhost_profile is only valid when type is Localhost")
        return self


class SELinuxOptions(SchemaModel):
    """SELinux labels applied to a container or pod."""
    level: Optional[str] = None
    role: Optional[str] = None
    type: Optional[str] = None
    user: Optional[str] = None


class ObjectFieldSelector(SchemaModel):
    """Selects a field of the pod."""
    field_path: str = Field(..., min_length=1)
    api_version: str = Field(default="v1")


class ResourceFieldSelector(SchemaModel):
    """Selects a resource of a container."""
    resource: str = Field(..., min_length=1)
    container_name: Optional[str] = None
    divisor: Optional[str] = None

    @field_validator("divisor")
    @classmethod
    def validate_divisor(cls, v):
        """Canonicalise the divisor quantity."""
        if v is None:
            return v
        try:
            return canonical_quantity(v)
        except QuantityError as e:
            raise ValueError(str(e)) from e


class KeyToPath(SchemaModel):
    """Projects a key of a config map or secret onto a file path."""
    key: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)
    mode: Optional[FileMode] = None
