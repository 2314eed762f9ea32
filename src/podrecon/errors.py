"""Error taxonomy for pod reconciliation."""

from typing import Any, Dict, Optional


class PodError(Exception):
    """Base class for all reconciliation errors.

    Attributes:
        operation: Reconciler operation that failed (create, read, ...)
        pod_id: Identity of the pod in ``namespace/name`` form
        step: Stage of a replacing update that failed (delete or create)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        pod_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.pod_id = pod_id
        self.step: Optional[str] = None

    def with_context(self, operation: str, pod_id: str) -> "PodError":
        """Attach operation context without overwriting existing context."""
        if self.operation is None:
            self.operation = operation
        if self.pod_id is None:
            self.pod_id = pod_id
        return self

    def __str__(self) -> str:
        operation = f"{self.operation} ({self.step})" if self.operation and self.step else self.operation
        if operation and self.pod_id:
            return f"{operation} {self.pod_id}: {self.message}"
        if self.pod_id:
            return f"{self.pod_id}: {self.message}"
        return self.message


class ValidationError(PodError, ValueError):
    """Malformed or ambiguous pod configuration, rejected before any cluster call."""


class NotFoundError(PodError):
    """The pod does not exist in the cluster."""


class ConflictError(PodError):
    """The pod was modified concurrently (uid or resourceVersion mismatch)."""


class ReadinessTimeoutError(PodError):
    """The pod did not become ready within the bounded wait.

    The pod may still become ready later; ``last_observed`` holds the
    last object seen so the caller can decide whether to keep it.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        pod_id: Optional[str] = None,
        last_observed: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, operation=operation, pod_id=pod_id)
        self.last_observed = last_observed


class OperationCancelledError(PodError):
    """The caller cancelled the operation while it was waiting."""


class FatalError(PodError):
    """Non-retryable failure."""


class RejectedError(FatalError):
    """The cluster refused a well-formed request (admission, invalid reference)."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        pod_id: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message, operation=operation, pod_id=pod_id)
        self.status = status


class DeleteTimeoutError(FatalError):
    """The pod was still present after the deletion wait elapsed."""


class PodFailedError(FatalError):
    """The pod reached the Failed phase while waiting for readiness."""
