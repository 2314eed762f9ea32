"""
podrecon - declarative pod reconciliation.

Translates a declared pod tree into the cluster's Pod object, decides
between in-place updates and replacement, and waits for readiness.
"""

__version__ = "1.0.0"

# Re-export key components for easier access
from podrecon.engine.reconciler import PodReconciler, PodState, UpdateResult
from podrecon.models.config import PodreconConfig
from podrecon.models.pod import PodSpec, load_pod_spec

__all__ = [
    "PodReconciler",
    "PodState",
    "UpdateResult",
    "PodreconConfig",
    "PodSpec",
    "load_pod_spec",
]
