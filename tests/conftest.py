"""Shared fixtures: an in-memory cluster and pod spec builders."""

import copy
import uuid
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from podrecon.client.base import ClusterClient
from podrecon.engine.reconciler import PodReconciler
from podrecon.errors import ConflictError, NotFoundError, RejectedError
from podrecon.models.config import ReconcilerSettings
from podrecon.models.pod import PodSpec, load_pod_spec


TOKEN_MOUNT_PATH = "/var/run/secrets/kubernetes.io/serviceaccount"

PROBE_DEFAULTS = {"timeoutSeconds": 1, "periodSeconds": 10, "successThreshold": 1, "failureThreshold": 3}


class FakeCluster(ClusterClient):
    """In-memory API server that behaves like a small, single-node cluster.

    It assigns uids and resource versions, fills in server defaults,
    injects the service account token volume, copies limits into requests
    and moves pods from Pending to Running after ``ready_after`` reads.
    """

    def __init__(self, ready_after: int = 1, delete_after: int = 0):
        self.pods: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.ready_after = ready_after
        self.delete_after = delete_after
        self.stuck_delete = False
        self.reject_next: Optional[str] = None
        self.fail_pods: Set[str] = set()
        self.pending_pods: Set[str] = set()
        self._resource_version = 0
        self._reads: Dict[Tuple[str, str], int] = {}
        self._deleting: Dict[Tuple[str, str], int] = {}

    # helpers for tests

    def mutating_calls(self) -> List[Tuple[str, str]]:
        return [call for call in self.calls if call[0] in ("create", "update", "delete")]

    def set_condition(self, namespace: str, name: str, condition_type: str, status: str = "True"):
        """Write a status condition the way an external controller would."""
        pod = self.pods[(namespace, name)]
        conditions = pod["status"].setdefault("conditions", [])
        for condition in conditions:
            if condition["type"] == condition_type:
                condition["status"] = status
                break
        else:
            conditions.append({"type": condition_type, "status": status})
        self._refresh_ready(pod)
        self._bump(pod)

    def _next_version(self) -> str:
        self._resource_version += 1
        return str(self._resource_version)

    def _bump(self, pod: Dict[str, Any]):
        pod["metadata"]["resourceVersion"] = self._next_version()

    # ClusterClient

    async def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        key = (obj["metadata"].get("namespace", "default"), obj["metadata"]["name"])
        self.calls.append(("create", "/".join(key)))
        if self.reject_next is not None:
            message, self.reject_next = self.reject_next, None
            raise RejectedError(message, status=422)
        if key in self.pods:
            raise ConflictError(f"pods \"{key[1]}\" already exists")

        pod = copy.deepcopy(obj)
        metadata = pod["metadata"]
        metadata["namespace"] = key[0]
        metadata["uid"] = str(uuid.uuid4())
        metadata["resourceVersion"] = self._next_version()
        metadata["generation"] = 1
        metadata["creationTimestamp"] = "2024-01-01T00:00:00Z"
        self._apply_defaults(pod)
        pod["status"] = {"phase": "Pending", "conditions": []}

        self.pods[key] = pod
        self._reads[key] = 0
        return copy.deepcopy(pod)

    async def get(self, namespace: str, name: str) -> Dict[str, Any]:
        key = (namespace, name)
        self.calls.append(("get", f"{namespace}/{name}"))
        if key not in self.pods:
            raise NotFoundError(f"pods \"{name}\" not found")

        if key in self._deleting and not self.stuck_delete:
            self._deleting[key] -= 1
            if self._deleting[key] <= 0:
                del self._deleting[key]
                del self.pods[key]
                raise NotFoundError(f"pods \"{name}\" not found")

        pod = self.pods[key]
        self._reads[key] = self._reads.get(key, 0) + 1
        self._progress(pod, self._reads[key])
        return copy.deepcopy(pod)

    async def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        key = (obj["metadata"].get("namespace", "default"), obj["metadata"]["name"])
        self.calls.append(("update", "/".join(key)))
        if key not in self.pods:
            raise NotFoundError(f"pods \"{key[1]}\" not found")
        current = self.pods[key]
        if obj["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ConflictError("the object has been modified; please apply your changes to the latest version")

        old_spec = current["spec"]
        new_spec = copy.deepcopy(obj["spec"])
        if _immutable_view(old_spec) != _immutable_view(new_spec):
            raise RejectedError("Pod updates may not change fields other than image and activeDeadlineSeconds", status=422)

        images_changed = [c["image"] for c in old_spec["containers"]] != [c["image"] for c in new_spec["containers"]]
        current["metadata"]["labels"] = copy.deepcopy(obj["metadata"].get("labels") or {})
        current["metadata"]["annotations"] = copy.deepcopy(obj["metadata"].get("annotations") or {})
        if not current["metadata"]["labels"]:
            del current["metadata"]["labels"]
        if not current["metadata"]["annotations"]:
            del current["metadata"]["annotations"]
        if new_spec != old_spec:
            current["metadata"]["generation"] += 1
        current["spec"] = new_spec
        self._bump(current)

        if images_changed:
            # containers restart, readiness has to be earned again
            self._reads[key] = 0
            self._set_status(current, "ContainersReady", "False")
            self._refresh_ready(current)
        return copy.deepcopy(current)

    async def delete(self, namespace: str, name: str) -> None:
        key = (namespace, name)
        self.calls.append(("delete", f"{namespace}/{name}"))
        if key not in self.pods:
            raise NotFoundError(f"pods \"{name}\" not found")
        if self.delete_after <= 0 and not self.stuck_delete:
            del self.pods[key]
            return
        self.pods[key]["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:30Z"
        self._deleting[key] = self.delete_after

    # server behaviour

    def _apply_defaults(self, pod: Dict[str, Any]):
        spec = pod["spec"]
        spec.setdefault("dnsPolicy", "ClusterFirst")
        spec.setdefault("restartPolicy", "Always")
        spec.setdefault("schedulerName", "default-scheduler")
        spec.setdefault("terminationGracePeriodSeconds", 30)
        spec.setdefault("enableServiceLinks", True)
        spec.setdefault("serviceAccountName", "default")
        spec.setdefault("serviceAccount", spec["serviceAccountName"])
        spec.setdefault("securityContext", {})
        spec.setdefault("priority", 0)
        spec.setdefault("preemptionPolicy", "PreemptLowerPriority")
        spec.setdefault("nodeName", "node-1")
        tolerations = spec.setdefault("tolerations", [])
        for toleration_key in ("node.kubernetes.io/not-ready", "node.kubernetes.io/unreachable"):
            tolerations.append({
                "key": toleration_key,
                "operator": "Exists",
                "effect": "NoExecute",
                "tolerationSeconds": 300,
            })

        for volume in spec.get("volumes") or []:
            for source_key in ("secret", "configMap", "downwardAPI", "projected"):
                if source_key in volume:
                    volume[source_key].setdefault("defaultMode", 420)
            for source in (volume.get("projected") or {}).get("sources") or []:
                if "serviceAccountToken" in source:
                    source["serviceAccountToken"].setdefault("expirationSeconds", 3600)

        inject_token = spec.get("automountServiceAccountToken") is not False
        token_volume = f"kube-api-access-{uuid.uuid4().hex[:5]}"
        if inject_token:
            spec.setdefault("volumes", []).append({
                "name": token_volume,
                "projected": {
                    "defaultMode": 420,
                    "sources": [
                        {"serviceAccountToken": {"expirationSeconds": 3607, "path": "token"}},
                        {"configMap": {"name": "kube-root-ca.crt", "items": [{"key": "ca.crt", "path": "ca.crt"}]}},
                    ],
                },
            })

        for container in [*(spec.get("initContainers") or []), *spec["containers"]]:
            container.setdefault("terminationMessagePath", "/dev/termination-log")
            container.setdefault("terminationMessagePolicy", "File")
            image = container["image"]
            default_policy = "Always" if image.endswith(":latest") or ":" not in image else "IfNotPresent"
            container.setdefault("imagePullPolicy", default_policy)
            resources = container.setdefault("resources", {})
            if resources.get("limits") and "requests" not in resources:
                resources["requests"] = copy.deepcopy(resources["limits"])
            for probe_key in ("livenessProbe", "readinessProbe", "startupProbe"):
                probe = container.get(probe_key)
                if probe is None:
                    continue
                for field, value in PROBE_DEFAULTS.items():
                    probe.setdefault(field, value)
                if "httpGet" in probe:
                    probe["httpGet"].setdefault("scheme", "HTTP")
            if inject_token:
                container.setdefault("volumeMounts", []).append({
                    "name": token_volume,
                    "mountPath": TOKEN_MOUNT_PATH,
                    "readOnly": True,
                })

    def _progress(self, pod: Dict[str, Any], reads: int):
        name = pod["metadata"]["name"]
        status = pod["status"]
        if name in self.fail_pods:
            status["phase"] = "Failed"
            return
        if name in self.pending_pods or reads < self.ready_after:
            return
        if status["phase"] == "Pending" or self._condition(pod, "ContainersReady") == "False":
            status["phase"] = "Running"
            for condition_type in ("PodScheduled", "Initialized", "ContainersReady"):
                self._set_status(pod, condition_type, "True")
            self._refresh_ready(pod)

    @staticmethod
    def _condition(pod: Dict[str, Any], condition_type: str) -> Optional[str]:
        for condition in pod["status"].get("conditions") or []:
            if condition["type"] == condition_type:
                return condition["status"]
        return None

    def _set_status(self, pod: Dict[str, Any], condition_type: str, status: str):
        conditions = pod["status"].setdefault("conditions", [])
        for condition in conditions:
            if condition["type"] == condition_type:
                condition["status"] = status
                return
        conditions.append({"type": condition_type, "status": status})

    def _refresh_ready(self, pod: Dict[str, Any]):
        gates = [gate["conditionType"] for gate in pod["spec"].get("readinessGates") or []]
        ready = self._condition(pod, "ContainersReady") == "True" and all(
            self._condition(pod, gate) == "True" for gate in gates
        )
        self._set_status(pod, "Ready", "True" if ready else "False")


def _immutable_view(spec: Dict[str, Any]) -> Dict[str, Any]:
    view = copy.deepcopy(spec)
    view.pop("activeDeadlineSeconds", None)
    for container in view.get("containers") or []:
        container.pop("image", None)
    return view


@pytest.fixture
def fake_cluster():
    """In-memory cluster that becomes ready on the first read."""
    return FakeCluster()


@pytest.fixture
def settings():
    """Fast polling and short timeouts for tests."""
    return ReconcilerSettings(poll_interval=0.01, create_timeout=1.0, update_timeout=1.0, delete_timeout=1.0)


@pytest.fixture
def reconciler(fake_cluster, settings):
    return PodReconciler(fake_cluster, settings)


def build_spec(name: str = "web", namespace: str = "default", **overrides: Any) -> PodSpec:
    """Pod spec with a single nginx container, adjusted by ``overrides``."""
    data: Dict[str, Any] = {
        "metadata": {"name": name, "namespace": namespace, "labels": {"app": name}},
        "containers": [{"name": "app", "image": "nginx:1.25"}],
    }
    data.update(overrides)
    return load_pod_spec(data)


@pytest.fixture
def make_spec():
    return build_spec
