"""Expand and flatten container blocks."""

from typing import Any, Callable, Dict, Mapping, Tuple

from podrecon.errors import ValidationError
from podrecon.models.container import (
    Container,
    EnvFromSource,
    EnvVar,
    ExecAction,
    GRPCAction,
    HTTPGetAction,
    Lifecycle,
    LifecycleHandler,
    Probe,
    ResourceRequirements,
    SecurityContext,
)
from podrecon.translator.helpers import (
    expand_field_selector,
    expand_resource_selector,
    flatten_field_selector,
    flatten_resource_selector,
    int_or_string,
    put,
    put_list,
    put_map,
)


# --- handlers shared by probes and lifecycle hooks ---------------------------

def _expand_exec(action: ExecAction) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put_list(out, "command", action.command)
    return out


def _flatten_exec(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {"command": list(data.get("command") or [])}


def _expand_http_get(action: HTTPGetAction) -> Dict[str, Any]:
    out: Dict[str, Any] = {"port": int_or_string(action.port)}
    put(out, "path", action.path)
    put(out, "host", action.host)
    put(out, "scheme", action.scheme)
    put_list(out, "httpHeaders", ({"name": h.name, "value": h.value} for h in action.http_headers))
    return out


def _flatten_http_get(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"port": str(data.get("port"))}
    put(out, "path", data.get("path"))
    put(out, "host", data.get("host"))
    put(out, "scheme", data.get("scheme"))
    out["http_headers"] = [
        {"name": h.get("name"), "value": h.get("value", "")} for h in data.get("httpHeaders") or []
    ]
    return out


def _expand_tcp_socket(action) -> Dict[str, Any]:
    out: Dict[str, Any] = {"port": int_or_string(action.port)}
    put(out, "host", action.host)
    return out


def _flatten_tcp_socket(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"port": str(data.get("port"))}
    put(out, "host", data.get("host"))
    return out


def _expand_grpc(action: GRPCAction) -> Dict[str, Any]:
    out: Dict[str, Any] = {"port": action.port}
    put(out, "service", action.service)
    return out


def _flatten_grpc(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"port": data.get("port")}
    put(out, "service", data.get("service"))
    return out


Codec = Tuple[str, Callable[[Any], Dict[str, Any]], Callable[[Mapping[str, Any]], Dict[str, Any]]]

# variant field -> (wire key, expand, flatten)
HANDLER_CODECS: Dict[str, Codec] = {
    "exec": ("exec", _expand_exec, _flatten_exec),
    "http_get": ("httpGet", _expand_http_get, _flatten_http_get),
    "tcp_socket": ("tcpSocket", _expand_tcp_socket, _flatten_tcp_socket),
    "grpc": ("grpc", _expand_grpc, _flatten_grpc),
}

_PROBE_TIMINGS = (
    ("initial_delay_seconds", "initialDelaySeconds"),
    ("period_seconds", "periodSeconds"),
    ("timeout_seconds", "timeoutSeconds"),
    ("success_threshold", "successThreshold"),
    ("failure_threshold", "failureThreshold"),
)


def _expand_handler(block, allowed) -> Dict[str, Any]:
    kind, action = block.variant()
    if kind not in allowed:
        raise ValidationError(f"unsupported handler type: {kind}")
    wire_key, expand, _ = HANDLER_CODECS[kind]
    return {wire_key: expand(action)}


def _flatten_handler(data: Mapping[str, Any], allowed) -> Dict[str, Any]:
    for kind in allowed:
        wire_key, _, flatten = HANDLER_CODECS[kind]
        if wire_key in data:
            return {kind: flatten(data[wire_key] or {})}
    raise ValidationError(f"handler without a supported type: {sorted(data)}")


def expand_probe(probe: Probe) -> Dict[str, Any]:
    out = _expand_handler(probe, Probe.VARIANTS)
    for field, wire_key in _PROBE_TIMINGS:
        put(out, wire_key, getattr(probe, field))
    return out


def flatten_probe(data: Mapping[str, Any]) -> Dict[str, Any]:
    out = _flatten_handler(data, Probe.VARIANTS)
    for field, wire_key in _PROBE_TIMINGS:
        put(out, field, data.get(wire_key))
    return out


def expand_lifecycle(lifecycle: Lifecycle) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if lifecycle.post_start is not None:
        out["postStart"] = _expand_handler(lifecycle.post_start, LifecycleHandler.VARIANTS)
    if lifecycle.pre_stop is not None:
        out["preStop"] = _expand_handler(lifecycle.pre_stop, LifecycleHandler.VARIANTS)
    return out


def flatten_lifecycle(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if "postStart" in data:
        out["post_start"] = _flatten_handler(data["postStart"], LifecycleHandler.VARIANTS)
    if "preStop" in data:
        out["pre_stop"] = _flatten_handler(data["preStop"], LifecycleHandler.VARIANTS)
    return out


# --- environment -------------------------------------------------------------

def _expand_key_selector(selector) -> Dict[str, Any]:
    out = {"name": selector.name, "key": selector.key}
    put(out, "optional", selector.optional)
    return out


def _flatten_key_selector(data: Mapping[str, Any]) -> Dict[str, Any]:
    out = {"name": data.get("name"), "key": data.get("key")}
    put(out, "optional", data.get("optional"))
    return out


ENV_SOURCE_CODECS: Dict[str, Codec] = {
    "field_ref": ("fieldRef", expand_field_selector, flatten_field_selector),
    "resource_field_ref": ("resourceFieldRef", expand_resource_selector, flatten_resource_selector),
    "config_map_key_ref": ("configMapKeyRef", _expand_key_selector, _flatten_key_selector),
    "secret_key_ref": ("secretKeyRef", _expand_key_selector, _flatten_key_selector),
}


def expand_env(var: EnvVar) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": var.name}
    put(out, "value", var.value)
    if var.value_from is not None:
        kind, selector = var.value_from.variant()
        wire_key, expand, _ = ENV_SOURCE_CODECS[kind]
        out["valueFrom"] = {wire_key: expand(selector)}
    return out


def flatten_env(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": data.get("name")}
    put(out, "value", data.get("value"))
    source = data.get("valueFrom")
    if source:
        for kind, (wire_key, _, flatten) in ENV_SOURCE_CODECS.items():
            if wire_key in source:
                out["value_from"] = {kind: flatten(source[wire_key])}
                break
        else:
            raise ValidationError(f"env {data.get('name')}: unsupported value source {sorted(source)}")
    return out


def _expand_env_from(source: EnvFromSource) -> Dict[str, Any]:
    kind, ref = source.variant()
    wire_key = "configMapRef" if kind == "config_map_ref" else "secretRef"
    body = {"name": ref.name}
    put(body, "optional", ref.optional)
    out: Dict[str, Any] = {wire_key: body}
    put(out, "prefix", source.prefix)
    return out


def _flatten_env_from(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put(out, "prefix", data.get("prefix"))
    for kind, wire_key in (("config_map_ref", "configMapRef"), ("secret_ref", "secretRef")):
        if wire_key in data:
            ref = {"name": data[wire_key].get("name")}
            put(ref, "optional", data[wire_key].get("optional"))
            out[kind] = ref
    return out


# --- resources and security --------------------------------------------------

def expand_resources(resources: ResourceRequirements) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    put_map(out, "limits", resources.limits)
    put_map(out, "requests", resources.requests)
    return out


def flatten_resources(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "limits": dict(data.get("limits") or {}),
        "requests": dict(data.get("requests") or {}),
    }


def expand_seccomp(profile) -> Dict[str, Any]:
    out = {"type": profile.type}
    put(out, "localhostProfile", profile.localhost_profile)
    return out


def flatten_seccomp(data: Mapping[str, Any]) -> Dict[str, Any]:
    out = {"type": data.get("type")}
    put(out, "localhost_profile", data.get("localhostProfile"))
    return out


def expand_se_linux(options) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field in ("level", "role", "type", "user"):
        put(out, field, getattr(options, field))
    return out


def flatten_se_linux(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {field: data[field] for field in ("level", "role", "type", "user") if field in data}


_SECURITY_SCALARS = (
    ("allow_privilege_escalation", "allowPrivilegeEscalation"),
    ("privileged", "privileged"),
    ("read_only_root_filesystem", "readOnlyRootFilesystem"),
    ("run_as_group", "runAsGroup"),
    ("run_as_non_root", "runAsNonRoot"),
    ("run_as_user", "runAsUser"),
)


def expand_security_context(context: SecurityContext) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field, wire_key in _SECURITY_SCALARS:
        put(out, wire_key, getattr(context, field))
    if context.capabilities is not None:
        caps: Dict[str, Any] = {}
        put_list(caps, "add", context.capabilities.add)
        put_list(caps, "drop", context.capabilities.drop)
        out["capabilities"] = caps
    if context.seccomp_profile is not None:
        out["seccompProfile"] = expand_seccomp(context.seccomp_profile)
    if context.se_linux_options is not None:
        out["seLinuxOptions"] = expand_se_linux(context.se_linux_options)
    return out


def flatten_security_context(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field, wire_key in _SECURITY_SCALARS:
        put(out, field, data.get(wire_key))
    if "capabilities" in data:
        caps = data["capabilities"] or {}
        out["capabilities"] = {"add": list(caps.get("add") or []), "drop": list(caps.get("drop") or [])}
    if "seccompProfile" in data:
        out["seccomp_profile"] = flatten_seccomp(data["seccompProfile"])
    if "seLinuxOptions" in data:
        out["se_linux_options"] = flatten_se_linux(data["seLinuxOptions"])
    return out


# --- container ---------------------------------------------------------------

_PROBES = (
    ("liveness_probe", "livenessProbe"),
    ("readiness_probe", "readinessProbe"),
    ("startup_probe", "startupProbe"),
)


def expand_container(container: Container) -> Dict[str, Any]:
    """Translate a container block into its wire form, preserving all ordering."""
    out: Dict[str, Any] = {"name": container.name, "image": container.image}
    put_list(out, "command", container.command)
    put_list(out, "args", container.args)
    put_list(out, "env", (expand_env(var) for var in container.env))
    put_list(out, "envFrom", (_expand_env_from(src) for src in container.env_from))
    put_list(out, "ports", (_expand_port(port) for port in container.ports))
    put_list(out, "volumeMounts", (_expand_mount(mount) for mount in container.volume_mounts))
    if container.resources is not None:
        out["resources"] = expand_resources(container.resources)
    for field, wire_key in _PROBES:
        probe = getattr(container, field)
        if probe is not None:
            out[wire_key] = expand_probe(probe)
    if container.lifecycle is not None:
        out["lifecycle"] = expand_lifecycle(container.lifecycle)
    if container.security_context is not None:
        out["securityContext"] = expand_security_context(container.security_context)
    put(out, "workingDir", container.working_dir)
    put(out, "imagePullPolicy", container.image_pull_policy)
    put(out, "terminationMessagePath", container.termination_message_path)
    out["terminationMessagePolicy"] = container.termination_message_policy
    return out


def flatten_container(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate a wire container back into schema form."""
    out: Dict[str, Any] = {
        "name": data.get("name"),
        "image": data.get("image"),
        "command": list(data.get("command") or []),
        "args": list(data.get("args") or []),
        "env": [flatten_env(var) for var in data.get("env") or []],
        "env_from": [_flatten_env_from(src) for src in data.get("envFrom") or []],
        "ports": [_flatten_port(port) for port in data.get("ports") or []],
        "volume_mounts": [_flatten_mount(mount) for mount in data.get("volumeMounts") or []],
    }
    if "resources" in data:
        out["resources"] = flatten_resources(data["resources"] or {})
    for field, wire_key in _PROBES:
        if wire_key in data:
            out[field] = flatten_probe(data[wire_key])
    if "lifecycle" in data:
        out["lifecycle"] = flatten_lifecycle(data["lifecycle"] or {})
    if "securityContext" in data:
        out["security_context"] = flatten_security_context(data["securityContext"] or {})
    put(out, "working_dir", data.get("workingDir"))
    put(out, "image_pull_policy", data.get("imagePullPolicy"))
    put(out, "termination_message_path", data.get("terminationMessagePath"))
    put(out, "termination_message_policy", data.get("terminationMessagePolicy"))
    return out


def _expand_port(port) -> Dict[str, Any]:
    out: Dict[str, Any] = {"containerPort": port.container_port, "protocol": port.protocol}
    put(out, "name", port.name)
    put(out, "hostPort", port.host_port)
    put(out, "hostIP", port.host_ip)
    return out


def _flatten_port(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"container_port": data.get("containerPort")}
    put(out, "protocol", data.get("protocol"))
    put(out, "name", data.get("name"))
    put(out, "host_port", data.get("hostPort"))
    put(out, "host_ip", data.get("hostIP"))
    return out


def _expand_mount(mount) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": mount.name, "mountPath": mount.mount_path}
    put(out, "readOnly", mount.read_only)
    put(out, "subPath", mount.sub_path)
    put(out, "mountPropagation", mount.mount_propagation)
    return out


def _flatten_mount(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": data.get("name"), "mount_path": data.get("mountPath")}
    put(out, "read_only", data.get("readOnly"))
    put(out, "sub_path", data.get("subPath"))
    put(out, "mount_propagation", data.get("mountPropagation"))
    return out
