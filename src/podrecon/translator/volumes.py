"""Expand and flatten pod volumes and their sources."""

from typing import Any, Dict, Mapping

from podrecon.errors import ValidationError
from podrecon.models.volume import Volume, VolumeProjection
from podrecon.translator.containers import Codec
from podrecon.translator.helpers import (
    expand_field_selector,
    expand_key_to_path,
    expand_resource_selector,
    flatten_field_selector,
    flatten_key_to_path,
    flatten_resource_selector,
    mode_to_int,
    mode_to_str,
    put,
    put_list,
    put_map,
)


def _expand_items(out: Dict[str, Any], source) -> None:
    put_list(out, "items", (expand_key_to_path(item) for item in source.items))


def _flatten_items(data: Mapping[str, Any]):
    return [flatten_key_to_path(item) for item in data.get("items") or []]


def _expand_secret(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put(out, "secretName", source.secret_name)
    _expand_items(out, source)
    put(out, "defaultMode", mode_to_int(source.default_mode))
    put(out, "optional", source.optional)
    return out


def _flatten_secret(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"items": _flatten_items(data)}
    put(out, "secret_name", data.get("secretName"))
    put(out, "default_mode", mode_to_str(data.get("defaultMode")))
    put(out, "optional", data.get("optional"))
    return out


def _expand_config_map(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put(out, "name", source.name)
    _expand_items(out, source)
    put(out, "defaultMode", mode_to_int(source.default_mode))
    put(out, "optional", source.optional)
    return out


def _flatten_config_map(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"items": _flatten_items(data)}
    put(out, "name", data.get("name"))
    put(out, "default_mode", mode_to_str(data.get("defaultMode")))
    put(out, "optional", data.get("optional"))
    return out


def _expand_empty_dir(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put(out, "medium", source.medium)
    put(out, "sizeLimit", source.size_limit)
    return out


def _flatten_empty_dir(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put(out, "medium", data.get("medium"))
    put(out, "size_limit", data.get("sizeLimit"))
    return out


def _expand_csi(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {"driver": source.driver}
    put(out, "readOnly", source.read_only)
    put(out, "fsType", source.fs_type)
    put_map(out, "volumeAttributes", source.volume_attributes)
    if source.node_publish_secret_ref is not None:
        out["nodePublishSecretRef"] = {"name": source.node_publish_secret_ref.name}
    return out


def _flatten_csi(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "driver": data.get("driver"),
        "volume_attributes": dict(data.get("volumeAttributes") or {}),
    }
    put(out, "read_only", data.get("readOnly"))
    put(out, "fs_type", data.get("fsType"))
    if "nodePublishSecretRef" in data:
        out["node_publish_secret_ref"] = {"name": data["nodePublishSecretRef"].get("name")}
    return out


def _expand_host_path(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {"path": source.path}
    put(out, "type", source.type)
    return out


def _flatten_host_path(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"path": data.get("path")}
    put(out, "type", data.get("type"))
    return out


def _expand_pvc(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {"claimName": source.claim_name}
    put(out, "readOnly", source.read_only)
    return out


def _flatten_pvc(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"claim_name": data.get("claimName")}
    put(out, "read_only", data.get("readOnly"))
    return out


def _expand_downward_file(item) -> Dict[str, Any]:
    out: Dict[str, Any] = {"path": item.path}
    if item.field_ref is not None:
        out["fieldRef"] = expand_field_selector(item.field_ref)
    if item.resource_field_ref is not None:
        out["resourceFieldRef"] = expand_resource_selector(item.resource_field_ref)
    put(out, "mode", mode_to_int(item.mode))
    return out


def _flatten_downward_file(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"path": data.get("path")}
    if "fieldRef" in data:
        out["field_ref"] = flatten_field_selector(data["fieldRef"])
    if "resourceFieldRef" in data:
        out["resource_field_ref"] = flatten_resource_selector(data["resourceFieldRef"])
    put(out, "mode", mode_to_str(data.get("mode")))
    return out


def _expand_downward_api(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put_list(out, "items", (_expand_downward_file(item) for item in source.items))
    put(out, "defaultMode", mode_to_int(getattr(source, "default_mode", None)))
    return out


def _flatten_downward_api(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"items": [_flatten_downward_file(item) for item in data.get("items") or []]}
    put(out, "default_mode", mode_to_str(data.get("defaultMode")))
    return out


def _expand_projected_ref(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put(out, "name", source.name)
    _expand_items(out, source)
    put(out, "optional", source.optional)
    return out


def _flatten_projected_ref(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"items": _flatten_items(data)}
    put(out, "name", data.get("name"))
    put(out, "optional", data.get("optional"))
    return out


def _expand_projected_downward(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put_list(out, "items", (_expand_downward_file(item) for item in source.items))
    return out


def _flatten_projected_downward(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {"items": [_flatten_downward_file(item) for item in data.get("items") or []]}


def _expand_token(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {"path": source.path}
    put(out, "audience", source.audience)
    put(out, "expirationSeconds", source.expiration_seconds)
    return out


def _flatten_token(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"path": data.get("path")}
    put(out, "audience", data.get("audience"))
    put(out, "expiration_seconds", data.get("expirationSeconds"))
    return out


PROJECTION_CODECS: Dict[str, Codec] = {
    "config_map": ("configMap", _expand_projected_ref, _flatten_projected_ref),
    "secret": ("secret", _expand_projected_ref, _flatten_projected_ref),
    "downward_api": ("downwardAPI", _expand_projected_downward, _flatten_projected_downward),
    "service_account_token": ("serviceAccountToken", _expand_token, _flatten_token),
}


def expand_projection(projection: VolumeProjection) -> Dict[str, Any]:
    kind, source = projection.variant()
    wire_key, expand, _ = PROJECTION_CODECS[kind]
    return {wire_key: expand(source)}


def flatten_projection(data: Mapping[str, Any]) -> Dict[str, Any]:
    for kind, (wire_key, _, flatten) in PROJECTION_CODECS.items():
        if wire_key in data:
            return {kind: flatten(data[wire_key] or {})}
    raise ValidationError(f"projected volume source of unknown type: {sorted(data)}")


def _expand_projected(source) -> Dict[str, Any]:
    out: Dict[str, Any] = {"sources": [expand_projection(item) for item in source.sources]}
    put(out, "defaultMode", mode_to_int(source.default_mode))
    return out


def _flatten_projected(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"sources": [flatten_projection(item) for item in data.get("sources") or []]}
    put(out, "default_mode", mode_to_str(data.get("defaultMode")))
    return out


def _expand_ephemeral(source) -> Dict[str, Any]:
    template = source.volume_claim_template
    spec = template.spec
    resources: Dict[str, Any] = {}
    put_map(resources, "requests", spec.resources.requests)
    put_map(resources, "limits", spec.resources.limits)
    claim: Dict[str, Any] = {"accessModes": list(spec.access_modes), "resources": resources}
    put(claim, "storageClassName", spec.storage_class_name)
    put(claim, "volumeMode", spec.volume_mode)

    body: Dict[str, Any] = {"spec": claim}
    if template.metadata is not None:
        metadata: Dict[str, Any] = {}
        put_map(metadata, "labels", template.metadata.labels)
        put_map(metadata, "annotations", template.metadata.annotations)
        body["metadata"] = metadata
    return {"volumeClaimTemplate": body}


def _flatten_ephemeral(data: Mapping[str, Any]) -> Dict[str, Any]:
    template = data.get("volumeClaimTemplate") or {}
    claim = template.get("spec") or {}
    resources = claim.get("resources") or {}
    spec: Dict[str, Any] = {
        "access_modes": list(claim.get("accessModes") or []),
        "resources": {
            "requests": dict(resources.get("requests") or {}),
            "limits": dict(resources.get("limits") or {}),
        },
    }
    put(spec, "storage_class_name", claim.get("storageClassName"))
    put(spec, "volume_mode", claim.get("volumeMode"))

    body: Dict[str, Any] = {"spec": spec}
    if "metadata" in template:
        metadata = template["metadata"] or {}
        body["metadata"] = {
            "labels": dict(metadata.get("labels") or {}),
            "annotations": dict(metadata.get("annotations") or {}),
        }
    return {"volume_claim_template": body}


VOLUME_SOURCE_CODECS: Dict[str, Codec] = {
    "secret": ("secret", _expand_secret, _flatten_secret),
    "config_map": ("configMap", _expand_config_map, _flatten_config_map),
    "empty_dir": ("emptyDir", _expand_empty_dir, _flatten_empty_dir),
    "csi": ("csi", _expand_csi, _flatten_csi),
    "projected": ("projected", _expand_projected, _flatten_projected),
    "ephemeral": ("ephemeral", _expand_ephemeral, _flatten_ephemeral),
    "host_path": ("hostPath", _expand_host_path, _flatten_host_path),
    "persistent_volume_claim": ("persistentVolumeClaim", _expand_pvc, _flatten_pvc),
    "downward_api": ("downwardAPI", _expand_downward_api, _flatten_downward_api),
}


def expand_volume(volume: Volume) -> Dict[str, Any]:
    """Translate a volume into its wire form."""
    kind, source = volume.variant()
    wire_key, expand, _ = VOLUME_SOURCE_CODECS[kind]
    return {"name": volume.name, wire_key: expand(source)}


def flatten_volume(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate a wire volume back into schema form.

    Raises:
        ValidationError: If the volume uses a source this schema does not model
    """
    for kind, (wire_key, _, flatten) in VOLUME_SOURCE_CODECS.items():
        if wire_key in data:
            return {"name": data.get("name"), kind: flatten(data[wire_key] or {})}
    sources = sorted(key for key in data if key != "name")
    raise ValidationError(f"volume {data.get('name')}: unsupported source {sources}")
