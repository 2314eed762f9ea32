"""Decide whether a change can be applied in place or needs a replacement."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from podrecon.models.pod import PodSpec
from podrecon.translator import expand
from podrecon.utils.quantity import QuantityError, quantities_equal


Path = Tuple[Union[str, int], ...]
ANY_INDEX = "*"


class FieldPolicy(Enum):
    """How the cluster treats a change to a field."""
    MUTABLE = "mutable"
    REPLACE = "replace"


class ChangeAction(Enum):
    """Outcome of comparing two pod declarations."""
    NO_CHANGE = "no_change"
    IN_PLACE = "in_place"
    REPLACE = "replace"


# Longest matching prefix wins; anything unlisted forces a replacement.
FIELD_POLICIES: Dict[Tuple[str, ...], FieldPolicy] = {
    ("metadata", "labels"): FieldPolicy.MUTABLE,
    ("metadata", "annotations"): FieldPolicy.MUTABLE,
    ("metadata", "name"): FieldPolicy.REPLACE,
    ("metadata", "namespace"): FieldPolicy.REPLACE,
    ("spec",): FieldPolicy.REPLACE,
    ("spec", "containers"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "image"): FieldPolicy.MUTABLE,
    ("spec", "containers", ANY_INDEX, "args"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "command"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "env"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "envFrom"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "resources"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "ports"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "volumeMounts"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "livenessProbe"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "readinessProbe"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "startupProbe"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "lifecycle"): FieldPolicy.REPLACE,
    ("spec", "containers", ANY_INDEX, "securityContext"): FieldPolicy.REPLACE,
    ("spec", "initContainers"): FieldPolicy.REPLACE,
    ("spec", "activeDeadlineSeconds"): FieldPolicy.MUTABLE,
    ("spec", "schedulerName"): FieldPolicy.REPLACE,
    ("spec", "securityContext"): FieldPolicy.REPLACE,
    ("spec", "volumes"): FieldPolicy.REPLACE,
    ("spec", "tolerations"): FieldPolicy.REPLACE,
    ("spec", "readinessGates"): FieldPolicy.REPLACE,
}

# Changes under these paths restart containers
RESTARTING_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("spec", "containers", ANY_INDEX, "image"),
)

SERVER_METADATA = ("uid", "resourceVersion", "generation", "creationTimestamp", "managedFields", "selfLink")

# Leaves holding resource quantities, compared by value rather than spelling
QUANTITY_PARENTS = ("limits", "requests")
QUANTITY_KEYS = ("sizeLimit", "divisor")


@dataclass
class Classification:
    """Result of :func:`classify`."""
    action: ChangeAction
    changed: List[Path] = field(default_factory=list)
    replace_paths: List[Path] = field(default_factory=list)

    @property
    def requires_replace(self) -> bool:
        return self.action == ChangeAction.REPLACE

    @property
    def affects_readiness(self) -> bool:
        """True when applying the change restarts a container."""
        return any(
            _matches(pattern, path) for path in self.changed for pattern in RESTARTING_PATHS
        )

    @property
    def mutable_paths(self) -> List[Path]:
        return [path for path in self.changed if path not in self.replace_paths]


def policy_for(path: Path) -> FieldPolicy:
    """Look up the policy of a field path."""
    best: Optional[Tuple[str, ...]] = None
    for pattern in FIELD_POLICIES:
        if _matches(pattern, path) and (best is None or len(pattern) > len(best)):
            best = pattern
    return FIELD_POLICIES[best] if best is not None else FieldPolicy.REPLACE


def classify(old: Union[PodSpec, Mapping[str, Any]], new: Union[PodSpec, Mapping[str, Any]]) -> Classification:
    """Compare two declarations and decide how to move from one to the other.

    Either side may be a PodSpec or a canonical object; server-assigned
    fields and status are ignored.
    """
    changed = diff_paths(comparable(old), comparable(new))
    if not changed:
        return Classification(ChangeAction.NO_CHANGE)

    replace_paths = [path for path in changed if policy_for(path) == FieldPolicy.REPLACE]
    action = ChangeAction.REPLACE if replace_paths else ChangeAction.IN_PLACE
    return Classification(action, changed=changed, replace_paths=replace_paths)


def comparable(value: Union[PodSpec, Mapping[str, Any]]) -> Dict[str, Any]:
    """Canonical object stripped of everything the server owns."""
    obj = expand(value) if isinstance(value, PodSpec) else dict(value)
    metadata = {
        key: item for key, item in (obj.get("metadata") or {}).items() if key not in SERVER_METADATA
    }
    return {"metadata": metadata, "spec": obj.get("spec") or {}}


def diff_paths(old: Any, new: Any, prefix: Path = ()) -> List[Path]:
    """Paths at which two canonical objects differ.

    Lists of different lengths are reported at the list itself. Quantity
    leaves are equal when their values are, so "1Gi" matches "1073741824".
    """
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        paths: List[Path] = []
        for key in sorted(set(old) | set(new)):
            if key not in old or key not in new:
                paths.append(prefix + (key,))
            else:
                paths.extend(diff_paths(old[key], new[key], prefix + (key,)))
        return paths
    if isinstance(old, list) and isinstance(new, list):
        if len(old) != len(new):
            return [prefix]
        paths = []
        for index, (left, right) in enumerate(zip(old, new)):
            paths.extend(diff_paths(left, right, prefix + (index,)))
        return paths
    return [] if _leaf_equal(old, new, prefix) else [prefix]


def _leaf_equal(old: Any, new: Any, path: Path) -> bool:
    if old == new:
        return True
    if not _is_quantity_path(path) or isinstance(old, bool) or isinstance(new, bool):
        return False
    if not isinstance(old, (str, int, float)) or not isinstance(new, (str, int, float)):
        return False
    try:
        return quantities_equal(str(old), str(new))
    except QuantityError:
        return False


def _is_quantity_path(path: Path) -> bool:
    if not path or not isinstance(path[-1], str):
        return False
    if path[-1] in QUANTITY_KEYS:
        return True
    return len(path) >= 2 and path[-2] in QUANTITY_PARENTS


def _matches(pattern: Tuple[str, ...], path: Path) -> bool:
    if len(pattern) > len(path):
        return False
    for expected, actual in zip(pattern, path):
        if expected == ANY_INDEX:
            if not isinstance(actual, int):
                return False
        elif expected != actual:
            return False
    return True
