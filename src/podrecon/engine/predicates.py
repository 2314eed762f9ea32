"""Readiness predicates evaluated against a live pod object."""

from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from podrecon.models.pod import PodSpec


Predicate = Callable[[Mapping[str, Any]], bool]

DEFAULT_SCHEDULER = "default-scheduler"


def phase(obj: Mapping[str, Any]) -> Optional[str]:
    return (obj.get("status") or {}).get("phase")


def conditions(obj: Mapping[str, Any]) -> Dict[str, str]:
    """Condition type to status string ('True', 'False', 'Unknown')."""
    return {
        item.get("type"): item.get("status")
        for item in (obj.get("status") or {}).get("conditions") or []
    }


def pod_running(obj: Mapping[str, Any]) -> bool:
    return phase(obj) == "Running"


def containers_ready(obj: Mapping[str, Any]) -> bool:
    """Running with every container reporting ready."""
    return pod_running(obj) and conditions(obj).get("ContainersReady") == "True"


def phase_not_pending(obj: Mapping[str, Any]) -> bool:
    """Left Pending; used when a custom scheduler may never bind the pod."""
    current = phase(obj)
    return current is not None and current != "Pending"


def phase_in(*phases: str) -> Predicate:
    """Predicate satisfied by any of the given phases."""
    wanted = frozenset(phases)

    def check(obj: Mapping[str, Any]) -> bool:
        return phase(obj) in wanted

    check.__name__ = f"phase_in({', '.join(phases)})"
    return check


def with_readiness_gates(predicate: Predicate, gates: Iterable[str]) -> Predicate:
    """Extend a predicate so every readiness gate condition must be True."""
    gates = tuple(gates)
    if not gates:
        return predicate

    def check(obj: Mapping[str, Any]) -> bool:
        if not predicate(obj):
            return False
        current = conditions(obj)
        return all(current.get(gate) == "True" for gate in gates)

    check.__name__ = f"{getattr(predicate, '__name__', 'predicate')}+gates"
    return check


def default_readiness(spec: PodSpec) -> Predicate:
    """Readiness predicate implied by a pod declaration.

    Pods handed to a custom scheduler may stay Pending indefinitely, so for
    them leaving Pending is enough. Declared readiness gates always apply.
    """
    base: Predicate = containers_ready
    if spec.scheduler_name and spec.scheduler_name != DEFAULT_SCHEDULER:
        base = phase_not_pending
    gates = [gate.condition_type for gate in spec.readiness_gates]
    return with_readiness_gates(base, gates)
