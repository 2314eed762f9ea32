"""Bounded polling until a pod satisfies a predicate."""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from podrecon.client.base import ClusterClient
from podrecon.engine.predicates import Predicate, phase
from podrecon.errors import (
    ConflictError,
    DeleteTimeoutError,
    NotFoundError,
    OperationCancelledError,
    PodFailedError,
    ReadinessTimeoutError,
)


logger = logging.getLogger(__name__)


class WaitState(Enum):
    """States of a single wait."""
    POLLING = "polling"
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    FAILED = "failed"


class Ticker:
    """Sleeps between polls, waking early when the cancel event fires."""

    def __init__(self, interval: float, cancel: Optional[asyncio.Event] = None):
        self.interval = interval
        self.cancel = cancel or asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self.cancel.is_set()

    async def tick(self, limit: Optional[float] = None) -> bool:
        """Wait one interval (or ``limit`` if shorter).

        Returns:
            False if cancelled during the wait, True otherwise
        """
        delay = self.interval if limit is None else max(0.0, min(self.interval, limit))
        try:
            await asyncio.wait_for(self.cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False


def failed_phase(obj: Mapping[str, Any]) -> bool:
    return phase(obj) == "Failed"


class ReadinessWaiter:
    """Polls the cluster until a pod reaches a predicate or the deadline passes."""

    def __init__(self, client: ClusterClient, poll_interval: float = 2.0, timeout: float = 300.0):
        self.client = client
        self.poll_interval = poll_interval
        self.timeout = timeout

    async def wait_until(
        self,
        namespace: str,
        name: str,
        predicate: Predicate,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
        expected_uid: Optional[str] = None,
        failure: Callable[[Mapping[str, Any]], bool] = failed_phase,
    ) -> Dict[str, Any]:
        """Poll until ``predicate`` holds for the pod.

        Returns:
            The object that satisfied the predicate

        Raises:
            ReadinessTimeoutError: The deadline passed first
            OperationCancelledError: The cancel event was set
            ConflictError: The pod was replaced underneath (uid changed)
            PodFailedError: The pod reached a terminal failure
            NotFoundError: The pod disappeared while waiting
        """
        pod_id = f"{namespace}/{name}"
        timeout = self.timeout if timeout is None else timeout
        ticker = Ticker(self.poll_interval, cancel)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        last: Optional[Dict[str, Any]] = None
        state = WaitState.POLLING
        check_name = getattr(predicate, "__name__", "predicate")

        logger.debug(f"Waiting for {pod_id} to satisfy {check_name} (timeout {timeout:.1f}s)")
        while state == WaitState.POLLING:
            if ticker.cancelled:
                state = WaitState.CANCELLED
                break

            last = await self.client.get(namespace, name)
            uid = (last.get("metadata") or {}).get("uid")
            if expected_uid is not None and uid != expected_uid:
                raise ConflictError(
                    f"pod was replaced while waiting (uid {expected_uid} -> {uid})",
                    operation="wait",
                    pod_id=pod_id,
                )

            if predicate(last):
                state = WaitState.SATISFIED
            elif failure(last):
                state = WaitState.FAILED
            else:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    state = WaitState.TIMED_OUT
                else:
                    logger.debug(f"{pod_id} in phase {phase(last)}, polling again")
                    if not await ticker.tick(remaining):
                        state = WaitState.CANCELLED

        if state == WaitState.SATISFIED:
            logger.debug(f"{pod_id} satisfied {check_name}")
            return last
        if state == WaitState.FAILED:
            raise PodFailedError(
                f"pod entered phase {phase(last)}", operation="wait", pod_id=pod_id
            )
        if state == WaitState.CANCELLED:
            raise OperationCancelledError("wait cancelled", operation="wait", pod_id=pod_id)
        raise ReadinessTimeoutError(
            f"not ready after {timeout:.1f}s (phase {phase(last)})",
            operation="wait",
            pod_id=pod_id,
            last_observed=last,
        )

    async def wait_until_gone(
        self,
        namespace: str,
        name: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """Poll until the pod no longer exists.

        Raises:
            DeleteTimeoutError: The pod is still present after the deadline
            OperationCancelledError: The cancel event was set
        """
        pod_id = f"{namespace}/{name}"
        timeout = self.timeout if timeout is None else timeout
        ticker = Ticker(self.poll_interval, cancel)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if ticker.cancelled:
                raise OperationCancelledError("wait cancelled", operation="delete", pod_id=pod_id)
            try:
                await self.client.get(namespace, name)
            except NotFoundError:
                logger.debug(f"{pod_id} is gone")
                return
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DeleteTimeoutError(
                    f"still present after {timeout:.1f}s", operation="delete", pod_id=pod_id
                )
            if not await ticker.tick(remaining):
                raise OperationCancelledError("wait cancelled", operation="delete", pod_id=pod_id)
