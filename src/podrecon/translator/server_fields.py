"""Reconcile server-populated fields of a live pod against the declared spec.

The API server and admission controllers fill in defaults, inject the
service account token volume and copy limits into requests. Those values
would otherwise show up as perpetual drift, so before a live object is
flattened every such field the declaration left unset is removed.
"""

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional

from podrecon.models.pod import PodSpec
from podrecon.translator.pod import expand, flatten
from podrecon.utils.quantity import quantities_equal


logger = logging.getLogger(__name__)

POD_DEFAULTS: Dict[str, Any] = {
    "dnsPolicy": "ClusterFirst",
    "restartPolicy": "Always",
    "schedulerName": "default-scheduler",
    "terminationGracePeriodSeconds": 30,
    "enableServiceLinks": True,
    "serviceAccountName": "default",
}

# Set by the scheduler or admission, never meaningful unless declared
POD_ASSIGNED = ("nodeName",)

CONTAINER_DEFAULTS: Dict[str, Any] = {
    "terminationMessagePath": "/dev/termination-log",
}

PROBE_DEFAULTS: Dict[str, Any] = {
    "timeoutSeconds": 1,
    "periodSeconds": 10,
    "successThreshold": 1,
    "failureThreshold": 3,
}

DEFAULT_VOLUME_MODE = 0o644
DEFAULT_TOKEN_EXPIRATION = 3600

INJECTED_TOLERATION_KEYS = (
    "node.kubernetes.io/not-ready",
    "node.kubernetes.io/unreachable",
)
SERVICE_ACCOUNT_VOLUME_PREFIXES = ("kube-api-access-", "default-token-")
SYSTEM_KEY_MARKERS = ("kubernetes.io/", "k8s.io/")


def flatten_live(obj: Mapping[str, Any], prior: Optional[PodSpec] = None) -> PodSpec:
    """Flatten a live object, discarding what the server added on its own.

    Args:
        obj: Pod as returned by the cluster
        prior: Last declared spec, or None when importing

    Returns:
        PodSpec describing only what the declaration controls
    """
    desired = expand(prior) if prior is not None else {"metadata": {}, "spec": {}}
    live = copy.deepcopy(dict(obj))
    strip_server_fields(live, desired)
    return flatten(live)


def strip_server_fields(live: Dict[str, Any], desired: Mapping[str, Any]) -> None:
    """Remove server-populated fields from ``live`` in place."""
    _strip_metadata(live.setdefault("metadata", {}), desired.get("metadata") or {})

    spec = live.setdefault("spec", {})
    wanted = desired.get("spec") or {}

    _drop_defaults(spec, wanted, POD_DEFAULTS)
    for key in POD_ASSIGNED:
        if key not in wanted:
            spec.pop(key, None)
    if spec.get("securityContext") == {} and "securityContext" not in wanted:
        del spec["securityContext"]

    _strip_tolerations(spec, wanted)
    dropped = _strip_volumes(spec, wanted)

    for list_key in ("initContainers", "containers"):
        declared = {c.get("name"): c for c in wanted.get(list_key) or []}
        for container in spec.get(list_key) or []:
            _strip_container(container, declared.get(container.get("name"), {}), dropped)


def _drop_defaults(live: Dict[str, Any], wanted: Mapping[str, Any], defaults: Mapping[str, Any]) -> None:
    for key, default in defaults.items():
        if key not in wanted and key in live and live[key] == default:
            del live[key]


def _strip_metadata(meta: Dict[str, Any], wanted: Mapping[str, Any]) -> None:
    for field in ("labels", "annotations"):
        values = meta.get(field)
        if not values:
            continue
        declared = wanted.get(field) or {}
        for key in list(values):
            if key not in declared and any(marker in key for marker in SYSTEM_KEY_MARKERS):
                logger.debug(f"Ignoring server-managed {field[:-1]} {key}")
                del values[key]
        if not values:
            del meta[field]


def _strip_tolerations(spec: Dict[str, Any], wanted: Mapping[str, Any]) -> None:
    tolerations = spec.get("tolerations")
    if not tolerations:
        return
    declared = {t.get("key") for t in wanted.get("tolerations") or []}
    kept = [
        t for t in tolerations
        if t.get("key") not in INJECTED_TOLERATION_KEYS or t.get("key") in declared
    ]
    if kept:
        spec["tolerations"] = kept
    else:
        del spec["tolerations"]


def _is_service_account_volume(name: str) -> bool:
    return any(name.startswith(prefix) for prefix in SERVICE_ACCOUNT_VOLUME_PREFIXES)


def _strip_volumes(spec: Dict[str, Any], wanted: Mapping[str, Any]) -> List[str]:
    """Drop injected token volumes and volume defaults; return dropped names."""
    volumes = spec.get("volumes")
    if not volumes:
        return []
    declared = {v.get("name"): v for v in wanted.get("volumes") or []}
    dropped = []
    kept = []
    for volume in volumes:
        name = volume.get("name", "")
        if name not in declared and _is_service_account_volume(name):
            dropped.append(name)
            continue
        _strip_volume_source(volume, declared.get(name, {}))
        kept.append(volume)
    if kept:
        spec["volumes"] = kept
    else:
        del spec["volumes"]
    return dropped


def _strip_volume_source(volume: Dict[str, Any], wanted: Mapping[str, Any]) -> None:
    for key in ("secret", "configMap", "downwardAPI", "projected"):
        source = volume.get(key)
        if not isinstance(source, dict):
            continue
        wanted_source = wanted.get(key) or {}
        _drop_defaults(source, wanted_source, {"defaultMode": DEFAULT_VOLUME_MODE})
        if key == "downwardAPI":
            _strip_downward_items(source.get("items") or [], wanted_source.get("items") or [])
        if key == "projected":
            _strip_projections(source.get("sources") or [], wanted_source.get("sources") or [])

    claim = ((volume.get("ephemeral") or {}).get("volumeClaimTemplate") or {}).get("spec")
    if isinstance(claim, dict):
        wanted_claim = (((wanted.get("ephemeral") or {}).get("volumeClaimTemplate") or {}).get("spec")) or {}
        _drop_defaults(claim, wanted_claim, {"volumeMode": "Filesystem"})


def _strip_projections(sources: List[Dict[str, Any]], wanted: List[Mapping[str, Any]]) -> None:
    for index, source in enumerate(sources):
        wanted_source = wanted[index] if index < len(wanted) else {}
        token = source.get("serviceAccountToken")
        if isinstance(token, dict):
            _drop_defaults(
                token,
                wanted_source.get("serviceAccountToken") or {},
                {"expirationSeconds": DEFAULT_TOKEN_EXPIRATION},
            )
        downward = source.get("downwardAPI")
        if isinstance(downward, dict):
            _strip_downward_items(
                downward.get("items") or [],
                (wanted_source.get("downwardAPI") or {}).get("items") or [],
            )


def _strip_downward_items(items: List[Dict[str, Any]], wanted: List[Mapping[str, Any]]) -> None:
    declared = {item.get("path"): item for item in wanted}
    for item in items:
        selector = item.get("resourceFieldRef")
        if isinstance(selector, dict):
            wanted_selector = declared.get(item.get("path"), {}).get("resourceFieldRef") or {}
            _drop_defaults(selector, wanted_selector, {"divisor": "0"})


def _strip_container(container: Dict[str, Any], wanted: Mapping[str, Any], dropped: List[str]) -> None:
    _drop_defaults(container, wanted, CONTAINER_DEFAULTS)
    if "imagePullPolicy" not in wanted:
        container.pop("imagePullPolicy", None)

    mounts = container.get("volumeMounts")
    if mounts:
        kept = [m for m in mounts if m.get("name") not in dropped]
        if kept:
            container["volumeMounts"] = kept
        else:
            del container["volumeMounts"]

    _strip_resources(container, wanted)

    for probe_key in ("livenessProbe", "readinessProbe", "startupProbe"):
        probe = container.get(probe_key)
        if isinstance(probe, dict):
            wanted_probe = wanted.get(probe_key) or {}
            _drop_defaults(probe, wanted_probe, PROBE_DEFAULTS)
            http = probe.get("httpGet")
            if isinstance(http, dict):
                _drop_defaults(http, wanted_probe.get("httpGet") or {}, {"scheme": "HTTP"})

    for var in container.get("env") or []:
        selector = (var.get("valueFrom") or {}).get("resourceFieldRef")
        if isinstance(selector, dict):
            wanted_var = next((w for w in wanted.get("env") or [] if w.get("name") == var.get("name")), {})
            wanted_selector = (wanted_var.get("valueFrom") or {}).get("resourceFieldRef") or {}
            _drop_defaults(selector, wanted_selector, {"divisor": "0"})


def _strip_resources(container: Dict[str, Any], wanted: Mapping[str, Any]) -> None:
    resources = container.get("resources")
    if resources is None:
        return
    wanted_resources = wanted.get("resources")
    if wanted_resources is None and not resources:
        del container["resources"]
        return
    wanted_resources = wanted_resources or {}
    limits = resources.get("limits")
    if limits and "requests" not in wanted_resources and _same_quantities(resources.get("requests"), limits):
        del resources["requests"]


def _same_quantities(left: Optional[Mapping[str, Any]], right: Mapping[str, Any]) -> bool:
    if not left or set(left) != set(right):
        return False
    return all(quantities_equal(str(left[key]), str(right[key])) for key in left)
