"""Tests for the kubernetes_asyncio backed cluster client."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from kubernetes_asyncio.client.rest import ApiException
from kubernetes_asyncio.config.config_exception import ConfigException

from podrecon.client.kube import KubernetesClusterClient, _translate
from podrecon.errors import ConflictError, NotFoundError, PodError, RejectedError
from podrecon.models.config import ClusterConfig


def api_error(status, reason="", message=None):
    error = ApiException(status=status, reason=reason)
    if message is not None:
        error.body = json.dumps({"kind": "Status", "message": message})
    return error


@pytest.fixture
def kube_client():
    """Client with the CoreV1Api replaced by async mocks."""
    api_client = MagicMock()
    api_client.sanitize_for_serialization.side_effect = lambda obj: {"sanitized": obj}
    api_client.close = AsyncMock()
    kube = KubernetesClusterClient(api_client)
    kube.core_v1 = AsyncMock()
    return kube


class TestTranslate:
    """Test mapping API failures onto the error taxonomy."""

    def test_not_found(self):
        error = _translate(api_error(404, "Not Found", 'pods "web" not found'), "get", "default", "web")
        assert isinstance(error, NotFoundError)
        assert error.message == 'pods "web" not found'
        assert error.pod_id == "default/web"
        assert error.operation == "get"

    def test_conflict(self):
        assert isinstance(_translate(api_error(409, "Conflict"), "update", "default", "web"), ConflictError)

    def test_rejected(self):
        error = _translate(
            api_error(422, "Unprocessable Entity", "Pod \"web\" is invalid: spec: Forbidden"),
            "update",
            "default",
            "web",
        )
        assert isinstance(error, RejectedError)
        assert error.status == 422
        assert "Forbidden" in error.message

    def test_server_error(self):
        error = _translate(api_error(500, "Internal Server Error"), "create", "default", "web")
        assert type(error) is PodError
        assert error.message == "500 Internal Server Error"

    def test_plain_text_body(self):
        error = api_error(403, "Forbidden")
        error.body = "forbidden: quota exceeded"
        assert _translate(error, "create", "default", "web").message == "forbidden: quota exceeded"


@pytest.mark.asyncio
class TestPodOperations:
    """Test calls made against CoreV1Api."""

    async def test_create(self, kube_client):
        obj = {"metadata": {"name": "web", "namespace": "prod"}, "spec": {}}
        kube_client.core_v1.create_namespaced_pod.return_value = "pod"

        result = await kube_client.create(obj)

        kube_client.core_v1.create_namespaced_pod.assert_awaited_once_with(namespace="prod", body=obj)
        assert result == {"sanitized": "pod"}

    async def test_get_not_found(self, kube_client):
        kube_client.core_v1.read_namespaced_pod.side_effect = api_error(404, "Not Found")

        with pytest.raises(NotFoundError):
            await kube_client.get("default", "web")

    async def test_update(self, kube_client):
        obj = {"metadata": {"name": "web", "resourceVersion": "5"}, "spec": {}}

        await kube_client.update(obj)

        kube_client.core_v1.replace_namespaced_pod.assert_awaited_once_with(
            name="web", namespace="default", body=obj
        )

    async def test_update_conflict(self, kube_client):
        kube_client.core_v1.replace_namespaced_pod.side_effect = api_error(409, "Conflict")

        with pytest.raises(ConflictError):
            await kube_client.update({"metadata": {"name": "web"}})

    async def test_delete(self, kube_client):
        await kube_client.delete("default", "web")
        kube_client.core_v1.delete_namespaced_pod.assert_awaited_once_with(name="web", namespace="default")

    async def test_close(self, kube_client):
        await kube_client.close()
        kube_client.api_client.close.assert_awaited_once()


@pytest.mark.asyncio
class TestFromConfig:
    """Test credential loading."""

    @patch("podrecon.client.kube.ApiClient")
    @patch("podrecon.client.kube.config")
    async def test_kubeconfig(self, mock_config, mock_api_client):
        mock_config.load_kube_config = AsyncMock()

        kube = await KubernetesClusterClient.from_config(ClusterConfig(kubeconfig="/tmp/kube", context="staging"))

        mock_config.load_kube_config.assert_awaited_once_with(config_file="/tmp/kube", context="staging")
        mock_config.load_incluster_config.assert_not_called()
        assert kube.api_client is mock_api_client.return_value

    @patch("podrecon.client.kube.ApiClient")
    @patch("podrecon.client.kube.config")
    async def test_falls_back_to_in_cluster(self, mock_config, mock_api_client):
        mock_config.load_kube_config = AsyncMock(side_effect=ConfigException("no config"))

        await KubernetesClusterClient.from_config()

        mock_config.load_incluster_config.assert_called_once_with()
