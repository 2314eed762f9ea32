"""Kubernetes cluster client built on kubernetes_asyncio."""

import json
import logging
from typing import Any, Dict, Optional

from kubernetes_asyncio import client, config
from kubernetes_asyncio.client.api_client import ApiClient
from kubernetes_asyncio.client.rest import ApiException
from kubernetes_asyncio.config.config_exception import ConfigException

from podrecon.client.base import ClusterClient
from podrecon.errors import ConflictError, NotFoundError, PodError, RejectedError
from podrecon.models.config import ClusterConfig


logger = logging.getLogger(__name__)


class KubernetesClusterClient(ClusterClient):
    """Pod operations against a real API server through ``CoreV1Api``."""

    def __init__(self, api_client: ApiClient):
        self.api_client = api_client
        self.core_v1 = client.CoreV1Api(api_client)

    @classmethod
    async def from_config(cls, cluster: Optional[ClusterConfig] = None) -> "KubernetesClusterClient":
        """Load credentials from kubeconfig, falling back to in-cluster config."""
        cluster = cluster or ClusterConfig()
        try:
            await config.load_kube_config(
                config_file=str(cluster.kubeconfig) if cluster.kubeconfig else None,
                context=cluster.context,
            )
            logger.debug(f"Loaded kubeconfig (context: {cluster.context or 'current'})")
        except (ConfigException, FileNotFoundError):
            logger.info("No usable kubeconfig, trying in-cluster configuration")
            config.load_incluster_config()
        return cls(ApiClient())

    async def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        namespace = obj["metadata"].get("namespace", "default")
        name = obj["metadata"]["name"]
        try:
            pod = await self.core_v1.create_namespaced_pod(namespace=namespace, body=obj)
        except ApiException as e:
            raise _translate(e, "create", namespace, name) from e
        return self._to_dict(pod)

    async def get(self, namespace: str, name: str) -> Dict[str, Any]:
        try:
            pod = await self.core_v1.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            raise _translate(e, "get", namespace, name) from e
        return self._to_dict(pod)

    async def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        namespace = obj["metadata"].get("namespace", "default")
        name = obj["metadata"]["name"]
        try:
            pod = await self.core_v1.replace_namespaced_pod(name=name, namespace=namespace, body=obj)
        except ApiException as e:
            raise _translate(e, "update", namespace, name) from e
        return self._to_dict(pod)

    async def delete(self, namespace: str, name: str) -> None:
        try:
            await self.core_v1.delete_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            raise _translate(e, "delete", namespace, name) from e

    async def close(self) -> None:
        await self.api_client.close()

    def _to_dict(self, pod: Any) -> Dict[str, Any]:
        return self.api_client.sanitize_for_serialization(pod)


def _translate(error: ApiException, operation: str, namespace: str, name: str) -> PodError:
    """Map an API failure onto the reconciler's error taxonomy."""
    pod_id = f"{namespace}/{name}"
    message = _reason(error)
    if error.status == 404:
        return NotFoundError(message, operation=operation, pod_id=pod_id)
    if error.status == 409:
        return ConflictError(message, operation=operation, pod_id=pod_id)
    if error.status is not None and 400 <= error.status < 500:
        return RejectedError(message, operation=operation, pod_id=pod_id, status=error.status)
    logger.error(f"API server error during {operation} of {pod_id}: {error.status} {error.reason}")
    return PodError(message, operation=operation, pod_id=pod_id)


def _reason(error: ApiException) -> str:
    if error.body:
        try:
            body = json.loads(error.body)
        except (TypeError, ValueError):
            return str(error.body)
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
    return f"{error.status} {error.reason}"
