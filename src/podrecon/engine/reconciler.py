"""Pod reconciler: create, read, update, delete and import pods."""

import asyncio
import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from podrecon.client.base import ClusterClient
from podrecon.engine.classifier import ChangeAction, Classification, Path, classify
from podrecon.engine.predicates import Predicate, conditions, default_readiness, phase
from podrecon.engine.waiter import ReadinessWaiter
from podrecon.errors import (
    ConflictError,
    DeleteTimeoutError,
    NotFoundError,
    OperationCancelledError,
    PodError,
    PodFailedError,
    ReadinessTimeoutError,
    RejectedError,
    ValidationError,
)
from podrecon.models.config import ReconcilerSettings
from podrecon.models.pod import PodSpec, load_pod_spec
from podrecon.translator import expand, flatten_live


logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"

SpecInput = Union[PodSpec, Mapping[str, Any]]


class ResourceState(Enum):
    """Lifecycle of a pod as seen by the reconciler."""
    ABSENT = "absent"
    CREATING = "creating"
    READY = "ready"
    UPDATING = "updating"
    DELETING = "deleting"
    FAILED = "failed"


def format_pod_id(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"


def parse_pod_id(
    pod_id: str, strict: bool = False, default_namespace: str = DEFAULT_NAMESPACE
) -> Tuple[str, str]:
    """Split an identity into namespace and name.

    A bare name means ``default_namespace`` unless ``strict`` is set.

    Raises:
        ValidationError: If the identity is malformed
    """
    parts = pod_id.split("/")
    if len(parts) == 1 and not strict and parts[0]:
        return default_namespace, parts[0]
    if len(parts) == 2 and all(parts):
        return parts[0], parts[1]
    expected = "'namespace/name'" if strict else "'name' or 'namespace/name'"
    raise ValidationError(f"invalid pod id {pod_id!r}, expected {expected}", pod_id=pod_id)


@dataclass
class PodState:
    """Observed state of a pod."""
    pod_id: str
    uid: Optional[str]
    resource_version: Optional[str]
    phase: Optional[str]
    conditions: Dict[str, str]
    object: Dict[str, Any]
    spec: PodSpec

    @classmethod
    def from_object(cls, obj: Dict[str, Any], prior: Optional[PodSpec] = None) -> "PodState":
        metadata = obj.get("metadata") or {}
        return cls(
            pod_id=format_pod_id(metadata.get("namespace", DEFAULT_NAMESPACE), metadata.get("name")),
            uid=metadata.get("uid"),
            resource_version=metadata.get("resourceVersion"),
            phase=phase(obj),
            conditions=conditions(obj),
            object=obj,
            spec=flatten_live(obj, prior),
        )


@dataclass
class UpdateResult:
    """Outcome of update or apply.

    ``classification`` is None when apply had to create the pod.
    """
    state: PodState
    classification: Optional[Classification] = None
    previous_uid: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.previous_uid is None

    @property
    def replaced(self) -> bool:
        return self.previous_uid is not None and self.previous_uid != self.state.uid

    @property
    def changed(self) -> bool:
        return self.classification is None or self.classification.action != ChangeAction.NO_CHANGE


@contextmanager
def operation_context(operation: str, pod_id: str):
    """Attach operation and identity to reconciler errors passing through."""
    try:
        yield
    except PodError as e:
        e.with_context(operation, pod_id)
        raise


@contextmanager
def replace_step(step: str, pod_id: str):
    """Report a failed stage of a replacement as a failure of the update."""
    try:
        yield
    except PodError as e:
        e.operation = "update"
        e.step = step
        e.pod_id = e.pod_id or pod_id
        raise


class PodReconciler:
    """Drives pods toward their declared state."""

    def __init__(
        self,
        client: ClusterClient,
        settings: Optional[ReconcilerSettings] = None,
        waiter: Optional[ReadinessWaiter] = None,
        default_namespace: str = DEFAULT_NAMESPACE,
    ):
        self.client = client
        self.settings = settings or ReconcilerSettings()
        self.default_namespace = default_namespace
        self.waiter = waiter or ReadinessWaiter(
            client, poll_interval=self.settings.poll_interval, timeout=self.settings.create_timeout
        )
        self._states: Dict[str, ResourceState] = {}

    def parse_pod_id(self, pod_id: str) -> Tuple[str, str]:
        """Split an identity, resolving bare names in the configured namespace."""
        return parse_pod_id(pod_id, default_namespace=self.default_namespace)

    def state_of(self, pod_id: str) -> ResourceState:
        """Last known lifecycle state of a pod."""
        namespace, name = self.parse_pod_id(pod_id)
        return self._states.get(format_pod_id(namespace, name), ResourceState.ABSENT)

    def _transition(self, pod_id: str, state: ResourceState) -> None:
        previous = self._states.get(pod_id, ResourceState.ABSENT)
        if previous != state:
            logger.debug(f"{pod_id}: {previous.value} -> {state.value}")
        self._states[pod_id] = state

    async def create(
        self,
        spec: SpecInput,
        predicate: Optional[Predicate] = None,
        cancel: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> PodState:
        """Create a pod and wait until it is ready.

        Raises:
            ValidationError: The pod spec is malformed, nothing was sent
            RejectedError: The cluster refused the pod, it stays absent
            ConflictError: A pod with this identity already exists, its state is kept
            ReadinessTimeoutError: The pod exists but did not become ready in time
        """
        spec = load_pod_spec(spec)
        pod_id = spec.pod_id
        with operation_context("create", pod_id):
            obj = expand(spec)
            logger.info(f"Creating pod {pod_id}")
            previous = self._states.get(pod_id, ResourceState.ABSENT)
            self._transition(pod_id, ResourceState.CREATING)
            try:
                created = await self.client.create(obj)
            except RejectedError:
                self._transition(pod_id, ResourceState.ABSENT)
                raise
            except PodError:
                self._transition(pod_id, previous)
                raise

            ready = await self._wait_ready(
                spec,
                created,
                predicate,
                cancel,
                self.settings.create_timeout if timeout is None else timeout,
            )
            logger.info(f"Pod {pod_id} is ready")
            return PodState.from_object(ready, spec)

    async def read(self, pod_id: str, prior: Optional[SpecInput] = None) -> Optional[PodState]:
        """Observe a pod; None means it no longer exists."""
        namespace, name = self.parse_pod_id(pod_id)
        pod_id = format_pod_id(namespace, name)
        if prior is not None:
            prior = load_pod_spec(prior)
        with operation_context("read", pod_id):
            try:
                obj = await self.client.get(namespace, name)
            except NotFoundError:
                logger.info(f"Pod {pod_id} not found")
                self._transition(pod_id, ResourceState.ABSENT)
                return None

            state = PodState.from_object(obj, prior)
            if state.phase == "Failed":
                self._transition(pod_id, ResourceState.FAILED)
            elif self.state_of(pod_id) in (ResourceState.ABSENT, ResourceState.FAILED):
                self._transition(pod_id, ResourceState.READY)
            return state

    async def update(
        self,
        old_state: PodState,
        new_spec: SpecInput,
        cancel: Optional[asyncio.Event] = None,
    ) -> UpdateResult:
        """Move a pod from its observed state to a new declaration.

        Immutable changes delete and recreate the pod, so the uid changes.
        Mutable changes are written onto the live object and guarded by its
        resourceVersion.
        """
        new_spec = load_pod_spec(new_spec)
        pod_id = old_state.pod_id
        classification = classify(old_state.spec, new_spec)

        if classification.action == ChangeAction.NO_CHANGE:
            logger.debug(f"Pod {pod_id} is up to date")
            return UpdateResult(old_state, classification, old_state.uid)

        if classification.action == ChangeAction.REPLACE:
            paths = ", ".join(render_path(path) for path in classification.replace_paths)
            logger.info(f"Replacing pod {pod_id}, immutable fields changed: {paths}")
            self._transition(pod_id, ResourceState.UPDATING)
            with replace_step("delete", pod_id):
                await self.delete(pod_id, cancel=cancel)
            with replace_step("create", pod_id):
                state = await self.create(new_spec, cancel=cancel, timeout=self.settings.update_timeout)
            return UpdateResult(state, classification, old_state.uid)

        with operation_context("update", pod_id):
            state = await self._update_in_place(old_state, new_spec, classification, cancel)
        return UpdateResult(state, classification, old_state.uid)

    async def _update_in_place(
        self,
        old_state: PodState,
        new_spec: PodSpec,
        classification: Classification,
        cancel: Optional[asyncio.Event],
    ) -> PodState:
        pod_id = old_state.pod_id
        namespace, name = self.parse_pod_id(pod_id)
        paths = ", ".join(render_path(path) for path in classification.changed)
        logger.info(f"Updating pod {pod_id} in place: {paths}")
        previous = self._states.get(pod_id, ResourceState.READY)
        self._transition(pod_id, ResourceState.UPDATING)

        live = await self.client.get(namespace, name)
        live_uid = (live.get("metadata") or {}).get("uid")
        if old_state.uid is not None and live_uid != old_state.uid:
            self._transition(pod_id, ResourceState.FAILED)
            raise ConflictError(f"pod was replaced outside of podrecon (uid {old_state.uid} -> {live_uid})")

        desired = expand(new_spec)
        patched = copy.deepcopy(live)
        for path in classification.changed:
            copy_path(patched, desired, path)

        try:
            updated = await self.client.update(patched)
        except (ConflictError, RejectedError):
            # the live pod is untouched
            self._transition(pod_id, previous)
            raise
        if classification.affects_readiness:
            updated = await self._wait_ready(
                new_spec, updated, None, cancel, self.settings.update_timeout
            )
        else:
            self._transition(pod_id, ResourceState.READY)
        return PodState.from_object(updated, new_spec)

    async def delete(self, pod_id: str, cancel: Optional[asyncio.Event] = None) -> None:
        """Delete a pod and wait until it is gone. An absent pod counts as deleted."""
        namespace, name = self.parse_pod_id(pod_id)
        pod_id = format_pod_id(namespace, name)
        with operation_context("delete", pod_id):
            logger.info(f"Deleting pod {pod_id}")
            self._transition(pod_id, ResourceState.DELETING)
            try:
                await self.client.delete(namespace, name)
            except NotFoundError:
                logger.debug(f"Pod {pod_id} already absent")
                self._transition(pod_id, ResourceState.ABSENT)
                return

            try:
                await self.waiter.wait_until_gone(
                    namespace, name, timeout=self.settings.delete_timeout, cancel=cancel
                )
            except DeleteTimeoutError:
                logger.error(f"Pod {pod_id} still present after {self.settings.delete_timeout}s")
                self._transition(pod_id, ResourceState.FAILED)
                raise
            self._transition(pod_id, ResourceState.ABSENT)
            logger.info(f"Pod {pod_id} deleted")

    async def import_pod(self, pod_id: str) -> PodState:
        """Adopt an existing pod identified by ``namespace/name``."""
        namespace, name = parse_pod_id(pod_id, strict=True)
        with operation_context("import", pod_id):
            obj = await self.client.get(namespace, name)
            state = PodState.from_object(obj)
            self._transition(pod_id, ResourceState.READY)
            logger.info(f"Imported pod {pod_id} (uid {state.uid})")
            return state

    def diff(self, old: SpecInput, new: SpecInput) -> bool:
        """True when moving from ``old`` to ``new`` requires a replacement."""
        return classify(load_pod_spec(old), load_pod_spec(new)).requires_replace

    async def apply(self, spec: SpecInput, cancel: Optional[asyncio.Event] = None) -> UpdateResult:
        """Create the pod when absent, otherwise update it from its live state."""
        spec = load_pod_spec(spec)
        current = await self.read(spec.pod_id, prior=spec)
        if current is None:
            state = await self.create(spec, cancel=cancel)
            return UpdateResult(state)
        return await self.update(current, spec, cancel=cancel)

    async def _wait_ready(
        self,
        spec: PodSpec,
        obj: Dict[str, Any],
        predicate: Optional[Predicate],
        cancel: Optional[asyncio.Event],
        timeout: float,
    ) -> Dict[str, Any]:
        pod_id = spec.pod_id
        metadata = obj.get("metadata") or {}
        try:
            ready = await self.waiter.wait_until(
                metadata.get("namespace", spec.metadata.namespace),
                metadata.get("name", spec.metadata.name),
                predicate or default_readiness(spec),
                timeout=timeout,
                cancel=cancel,
                expected_uid=metadata.get("uid"),
            )
        except (ReadinessTimeoutError, PodFailedError) as e:
            logger.error(f"Pod {pod_id} did not become ready: {e.message}")
            self._transition(pod_id, ResourceState.FAILED)
            raise
        except (OperationCancelledError, ConflictError) as e:
            # readiness is unknown until the next read
            logger.warning(f"Stopped waiting for pod {pod_id}: {e.message}")
            self._transition(pod_id, ResourceState.FAILED)
            raise
        except NotFoundError:
            logger.error(f"Pod {pod_id} disappeared while waiting for readiness")
            self._transition(pod_id, ResourceState.ABSENT)
            raise
        self._transition(pod_id, ResourceState.READY)
        return ready


_MISSING = object()


def copy_path(target: Dict[str, Any], source: Mapping[str, Any], path: Path) -> None:
    """Make ``target`` match ``source`` at ``path``, removing it if ``source`` lacks it."""
    value: Any = source
    for segment in path:
        value = _child(value, segment)
        if value is _MISSING:
            break

    node: Any = target
    for segment in path[:-1]:
        child = _child(node, segment)
        if child is _MISSING:
            if value is _MISSING:
                return
            child = {}
            node[segment] = child
        node = child

    last = path[-1]
    if value is _MISSING:
        if isinstance(node, dict):
            node.pop(last, None)
    else:
        node[last] = copy.deepcopy(value)


def _child(node: Any, segment: Union[str, int]) -> Any:
    if isinstance(node, Mapping):
        return node.get(segment, _MISSING)
    if isinstance(node, list) and isinstance(segment, int) and segment < len(node):
        return node[segment]
    return _MISSING


def render_path(path: Path) -> str:
    parts: List[str] = []
    for segment in path:
        if isinstance(segment, int):
            parts[-1] = f"{parts[-1]}[{segment}]"
        else:
            parts.append(segment)
    return ".".join(parts)
