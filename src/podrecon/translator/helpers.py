"""Small helpers shared by the expand and flatten functions."""

from typing import Any, Dict, Iterable, Mapping, Optional, Union

from podrecon.models.common import KeyToPath, ObjectFieldSelector, ResourceFieldSelector


def put(out: Dict[str, Any], key: str, value: Any) -> None:
    """Set ``key`` only when the value was given."""
    if value is not None:
        out[key] = value


def put_list(out: Dict[str, Any], key: str, items: Iterable[Any]) -> None:
    """Set ``key`` only for non-empty sequences."""
    items = list(items)
    if items:
        out[key] = items


def put_map(out: Dict[str, Any], key: str, mapping: Optional[Mapping[str, Any]]) -> None:
    """Set ``key`` only for non-empty mappings."""
    if mapping:
        out[key] = dict(mapping)


def mode_to_int(mode: Optional[str]) -> Optional[int]:
    """Octal mode string to the integer sent on the wire."""
    return int(mode, 8) if mode is not None else None


def mode_to_str(mode: Optional[int]) -> Optional[str]:
    """Wire integer mode back to its octal string form."""
    return "%04o" % mode if mode is not None else None


def int_or_string(value: str) -> Union[int, str]:
    """Numeric port strings travel as integers, named ports as strings."""
    return int(value) if value.isdigit() else value


def expand_key_to_path(item: KeyToPath) -> Dict[str, Any]:
    out = {"key": item.key, "path": item.path}
    put(out, "mode", mode_to_int(item.mode))
    return out


def flatten_key_to_path(data: Mapping[str, Any]) -> Dict[str, Any]:
    out = {"key": data.get("key"), "path": data.get("path")}
    put(out, "mode", mode_to_str(data.get("mode")))
    return out


def expand_field_selector(selector: ObjectFieldSelector) -> Dict[str, Any]:
    return {"apiVersion": selector.api_version, "fieldPath": selector.field_path}


def flatten_field_selector(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {"api_version": data.get("apiVersion", "v1"), "field_path": data.get("fieldPath")}


def expand_resource_selector(selector: ResourceFieldSelector) -> Dict[str, Any]:
    out = {"resource": selector.resource}
    put(out, "containerName", selector.container_name)
    put(out, "divisor", selector.divisor)
    return out


def flatten_resource_selector(data: Mapping[str, Any]) -> Dict[str, Any]:
    out = {"resource": data.get("resource")}
    put(out, "container_name", data.get("containerName"))
    put(out, "divisor", data.get("divisor"))
    return out
