"""Cluster client interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict


class ClusterClient(ABC):
    """Narrow capability the reconciler needs from the cluster API.

    Implementations exchange canonical Pod objects as plain dicts and must
    translate transport failures into ``NotFoundError``, ``ConflictError``
    and ``RejectedError``.
    """

    @abstractmethod
    async def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Create a pod and return the object the server stored."""
        pass

    @abstractmethod
    async def get(self, namespace: str, name: str) -> Dict[str, Any]:
        """Fetch a pod, raising NotFoundError when it is absent."""
        pass

    @abstractmethod
    async def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a pod guarded by its ``metadata.resourceVersion``."""
        pass

    @abstractmethod
    async def delete(self, namespace: str, name: str) -> None:
        """Request deletion of a pod."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
