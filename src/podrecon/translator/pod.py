"""Whole-pod translation between the schema and the cluster object."""

import json
from typing import Any, Dict, Mapping

from pydantic import ValidationError as PydanticValidationError

from podrecon.errors import ValidationError
from podrecon.models.pod import PodSpec, format_errors
from podrecon.translator.containers import (
    expand_container,
    expand_se_linux,
    expand_seccomp,
    flatten_container,
    flatten_se_linux,
    flatten_seccomp,
)
from podrecon.translator.helpers import put, put_list, put_map
from podrecon.translator.volumes import expand_volume, flatten_volume


_POD_SCALARS = (
    ("scheduler_name", "schedulerName"),
    ("service_account_name", "serviceAccountName"),
    ("automount_service_account_token", "automountServiceAccountToken"),
    ("restart_policy", "restartPolicy"),
    ("termination_grace_period_seconds", "terminationGracePeriodSeconds"),
    ("runtime_class_name", "runtimeClassName"),
    ("enable_service_links", "enableServiceLinks"),
    ("priority_class_name", "priorityClassName"),
    ("active_deadline_seconds", "activeDeadlineSeconds"),
    ("dns_policy", "dnsPolicy"),
    ("hostname", "hostname"),
    ("node_name", "nodeName"),
    ("host_network", "hostNetwork"),
)

_POD_SECURITY_SCALARS = (
    ("fs_group", "fsGroup"),
    ("fs_group_change_policy", "fsGroupChangePolicy"),
    ("run_as_group", "runAsGroup"),
    ("run_as_non_root", "runAsNonRoot"),
    ("run_as_user", "runAsUser"),
)

_TOLERATION_FIELDS = (
    ("key", "key"),
    ("operator", "operator"),
    ("value", "value"),
    ("effect", "effect"),
    ("toleration_seconds", "tolerationSeconds"),
)


def expand(spec: PodSpec) -> Dict[str, Any]:
    """Build the cluster object for a pod spec.

    Only fields that were set are emitted. An empty block becomes ``{}``,
    an absent block is left out.
    """
    metadata: Dict[str, Any] = {
        "name": spec.metadata.name,
        "namespace": spec.metadata.namespace,
    }
    put_map(metadata, "labels", spec.metadata.labels)
    put_map(metadata, "annotations", spec.metadata.annotations)

    body: Dict[str, Any] = {"containers": [expand_container(c) for c in spec.containers]}
    put_list(body, "initContainers", (expand_container(c) for c in spec.init_containers))
    put_list(body, "volumes", (expand_volume(v) for v in spec.volumes))
    if spec.security_context is not None:
        body["securityContext"] = _expand_pod_security(spec.security_context)
    for field, wire_key in _POD_SCALARS:
        put(body, wire_key, getattr(spec, field))
    put_map(body, "nodeSelector", spec.node_selector)
    put_list(body, "readinessGates", ({"conditionType": g.condition_type} for g in spec.readiness_gates))
    put_list(body, "topologySpreadConstraints", (_expand_spread(c) for c in spec.topology_spread_constraints))
    put_list(body, "imagePullSecrets", ({"name": ref.name} for ref in spec.image_pull_secrets))
    put_list(body, "tolerations", (_expand_toleration(t) for t in spec.tolerations))

    return {"apiVersion": "v1", "kind": "Pod", "metadata": metadata, "spec": body}


def flatten(obj: Mapping[str, Any]) -> PodSpec:
    """Build a pod spec from a cluster object, inverting :func:`expand`.

    Cluster-assigned metadata (uid, resourceVersion, generation) is kept on
    the result. Server defaults are not stripped here, see ``flatten_live``.

    Raises:
        ValidationError: If the object holds shapes the schema cannot express
    """
    meta = obj.get("metadata") or {}
    body = obj.get("spec") or {}

    metadata: Dict[str, Any] = {
        "name": meta.get("name"),
        "namespace": meta.get("namespace") or "default",
        "labels": dict(meta.get("labels") or {}),
        "annotations": dict(meta.get("annotations") or {}),
    }
    put(metadata, "uid", meta.get("uid"))
    put(metadata, "resource_version", meta.get("resourceVersion"))
    put(metadata, "generation", meta.get("generation"))

    data: Dict[str, Any] = {
        "metadata": metadata,
        "containers": [flatten_container(c) for c in body.get("containers") or []],
        "init_containers": [flatten_container(c) for c in body.get("initContainers") or []],
        "volumes": [flatten_volume(v) for v in body.get("volumes") or []],
        "node_selector": dict(body.get("nodeSelector") or {}),
        "readiness_gates": [
            {"condition_type": g.get("conditionType")} for g in body.get("readinessGates") or []
        ],
        "topology_spread_constraints": [
            _flatten_spread(c) for c in body.get("topologySpreadConstraints") or []
        ],
        "image_pull_secrets": [{"name": ref.get("name")} for ref in body.get("imagePullSecrets") or []],
        "tolerations": [_flatten_toleration(t) for t in body.get("tolerations") or []],
    }
    if "securityContext" in body:
        data["security_context"] = _flatten_pod_security(body["securityContext"] or {})
    for field, wire_key in _POD_SCALARS:
        put(data, field, body.get(wire_key))

    try:
        return PodSpec.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(format_errors(e), operation="flatten", pod_id=meta.get("name")) from e


def canonical_json(obj: Mapping[str, Any]) -> str:
    """Stable serialisation used for comparisons and hashing."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


def _expand_pod_security(context) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field, wire_key in _POD_SECURITY_SCALARS:
        put(out, wire_key, getattr(context, field))
    put_list(out, "supplementalGroups", context.supplemental_groups)
    if context.seccomp_profile is not None:
        out["seccompProfile"] = expand_seccomp(context.seccomp_profile)
    if context.se_linux_options is not None:
        out["seLinuxOptions"] = expand_se_linux(context.se_linux_options)
    put_list(out, "sysctls", ({"name": s.name, "value": s.value} for s in context.sysctls))
    return out


def _flatten_pod_security(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "supplemental_groups": list(data.get("supplementalGroups") or []),
        "sysctls": [{"name": s.get("name"), "value": s.get("value")} for s in data.get("sysctls") or []],
    }
    for field, wire_key in _POD_SECURITY_SCALARS:
        put(out, field, data.get(wire_key))
    if "seccompProfile" in data:
        out["seccomp_profile"] = flatten_seccomp(data["seccompProfile"])
    if "seLinuxOptions" in data:
        out["se_linux_options"] = flatten_se_linux(data["seLinuxOptions"])
    return out


def _expand_spread(constraint) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "topologyKey": constraint.topology_key,
        "maxSkew": constraint.max_skew,
        "whenUnsatisfiable": constraint.when_unsatisfiable,
    }
    if constraint.label_selector is not None:
        selector: Dict[str, Any] = {}
        put_map(selector, "matchLabels", constraint.label_selector.match_labels)
        out["labelSelector"] = selector
    return out


def _flatten_spread(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"topology_key": data.get("topologyKey")}
    put(out, "max_skew", data.get("maxSkew"))
    put(out, "when_unsatisfiable", data.get("whenUnsatisfiable"))
    if "labelSelector" in data:
        selector = data["labelSelector"] or {}
        if selector.get("matchExpressions"):
            raise ValidationError("label selector match expressions are not supported")
        out["label_selector"] = {"match_labels": dict(selector.get("matchLabels") or {})}
    return out


def _expand_toleration(toleration) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field, wire_key in _TOLERATION_FIELDS:
        put(out, wire_key, getattr(toleration, field))
    return out


def _flatten_toleration(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field, wire_key in _TOLERATION_FIELDS:
        put(out, field, data.get(wire_key))
    return out
