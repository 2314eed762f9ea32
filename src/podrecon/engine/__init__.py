"""Reconciliation engine: change classification, readiness waiting and the reconciler."""

from podrecon.engine.classifier import ChangeAction, Classification, FieldPolicy, classify, policy_for
from podrecon.engine.predicates import (
    containers_ready,
    default_readiness,
    phase_in,
    phase_not_pending,
    pod_running,
    with_readiness_gates,
)
from podrecon.engine.reconciler import (
    PodReconciler,
    PodState,
    ResourceState,
    UpdateResult,
    format_pod_id,
    parse_pod_id,
)
from podrecon.engine.waiter import ReadinessWaiter, Ticker, WaitState

__all__ = [
    "ChangeAction",
    "Classification",
    "FieldPolicy",
    "classify",
    "policy_for",
    "containers_ready",
    "default_readiness",
    "phase_in",
    "phase_not_pending",
    "pod_running",
    "with_readiness_gates",
    "PodReconciler",
    "PodState",
    "ResourceState",
    "UpdateResult",
    "format_pod_id",
    "parse_pod_id",
    "ReadinessWaiter",
    "Ticker",
    "WaitState",
]
