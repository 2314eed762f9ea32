"""Tests for the pod schema models."""

import pytest

from podrecon.errors import ValidationError
from podrecon.models import Container, PodSpec, Probe, ResourceRequirements, Volume, load_pod_spec
from podrecon.models.container import EnvVar


def minimal(**overrides):
    data = {
        "metadata": {"name": "web"},
        "containers": [{"name": "app", "image": "nginx:1.25"}],
    }
    data.update(overrides)
    return data


class TestPodSpec:
    """Test PodSpec model."""

    def test_minimal_pod_spec(self):
        """Test creating a pod spec with minimal fields."""
        spec = load_pod_spec(minimal())

        assert spec.metadata.name == "web"
        assert spec.metadata.namespace == "default"
        assert spec.metadata.labels == {}
        assert spec.pod_id == "default/web"
        assert spec.init_containers == []
        assert spec.security_context is None
        assert spec.automount_service_account_token is None
        assert spec.enable_service_links is None
        assert spec.containers[0].termination_message_policy == "File"

    def test_containers_required(self):
        """Test that a pod needs at least one container."""
        with pytest.raises(ValidationError) as exc_info:
            load_pod_spec(minimal(containers=[]))
        assert exc_info.value.operation == "validate"
        assert exc_info.value.pod_id == "web"

    def test_duplicate_container_names(self):
        """Test container names are unique across init and regular containers."""
        with pytest.raises(ValidationError, match="duplicate container name"):
            load_pod_spec(minimal(init_containers=[{"name": "app", "image": "busybox"}]))

    def test_duplicate_volume_names(self):
        """Test volume names are unique."""
        volumes = [
            {"name": "data", "empty_dir": {}},
            {"name": "data", "empty_dir": {"medium": "Memory"}},
        ]
        with pytest.raises(ValidationError, match="duplicate volume name"):
            load_pod_spec(minimal(volumes=volumes))

    def test_invalid_name(self):
        """Test pod names must be DNS subdomains."""
        with pytest.raises(ValidationError):
            load_pod_spec(minimal(metadata={"name": "Not_Valid"}))

    def test_unknown_field_rejected(self):
        """Test that misspelt fields are not silently dropped."""
        with pytest.raises(ValidationError, match="restart_polcy"):
            load_pod_spec(minimal(restart_polcy="Never"))

    def test_tri_state_preserved(self):
        """Test explicit False differs from unset."""
        spec = load_pod_spec(minimal(automount_service_account_token=False, enable_service_links=False))
        assert spec.automount_service_account_token is False
        assert spec.enable_service_links is False

    def test_reload_existing_spec(self):
        """Test load_pod_spec accepts an already built PodSpec."""
        spec = load_pod_spec(minimal())
        assert load_pod_spec(spec) == spec

    def test_without_server_fields(self):
        """Test server metadata can be cleared."""
        spec = load_pod_spec(minimal(metadata={"name": "web", "uid": "abc", "resource_version": "7"}))
        cleared = spec.without_server_fields()
        assert cleared.metadata.uid is None
        assert cleared.metadata.resource_version is None
        assert cleared.metadata.name == "web"


class TestPolymorphicBlocks:
    """Test exactly-one-of validation."""

    def test_probe_requires_one_handler(self):
        """Test that a probe without a handler is rejected."""
        with pytest.raises(Exception):
            Probe(period_seconds=5)

    def test_probe_rejects_two_handlers(self):
        """Test that a probe with two handlers is ambiguous."""
        with pytest.raises(Exception, match="exactly one"):
            Probe(exec={"command": ["true"]}, tcp_socket={"port": 80})

    def test_probe_variant(self):
        """Test variant() reports the chosen handler."""
        probe = Probe(http_get={"port": 8080, "path": "/healthz"})
        kind, action = probe.variant()
        assert kind == "http_get"
        assert action.port == "8080"

    def test_volume_requires_one_source(self):
        """Test volumes carry exactly one source."""
        with pytest.raises(Exception, match="exactly one"):
            Volume(name="data")
        with pytest.raises(Exception, match="exactly one"):
            Volume(name="data", empty_dir={}, host_path={"path": "/tmp"})

    def test_env_value_and_reference_exclusive(self):
        """Test env vars cannot have both a literal and a reference."""
        with pytest.raises(Exception, match="mutually exclusive"):
            EnvVar(name="A", value="x", value_from={"field_ref": {"field_path": "metadata.name"}})


class TestContainer:
    """Test Container model."""

    def test_empty_resources_distinct_from_absent(self):
        """Test an empty resources block is kept as such."""
        absent = Container(name="app", image="nginx")
        empty = Container(name="app", image="nginx", resources={})
        assert absent.resources is None
        assert empty.resources == ResourceRequirements()

    def test_quantities_canonicalised(self):
        """Test quantities are stored in canonical form."""
        resources = ResourceRequirements(limits={"cpu": "0.5", "memory": "1024Mi"})
        assert resources.limits == {"cpu": "500m", "memory": "1Gi"}

    def test_invalid_quantity(self):
        """Test malformed quantities are rejected."""
        with pytest.raises(Exception):
            ResourceRequirements(limits={"cpu": "lots"})

    def test_termination_message_policy(self):
        """Test termination message policy values."""
        container = Container(name="app", image="nginx", termination_message_policy="FallbackToLogsOnError")
        assert container.termination_message_policy == "FallbackToLogsOnError"
        with pytest.raises(Exception):
            Container(name="app", image="nginx", termination_message_policy="Sometimes")

    def test_file_mode_normalised(self):
        """Test file modes get four octal digits."""
        volume = Volume(name="cfg", config_map={"name": "cfg", "default_mode": "644"})
        assert volume.config_map.default_mode == "0644"
        with pytest.raises(Exception):
            Volume(name="cfg", config_map={"name": "cfg", "default_mode": "0999"})

    def test_seccomp_localhost_requires_profile(self):
        """Test Localhost seccomp profiles need a profile path."""
        with pytest.raises(Exception, match="localhost_profile"):
            Container(name="app", image="nginx", security_context={"seccomp_profile": {"type": "Localhost"}})


def test_pod_spec_equality_is_structural():
    """Test two equal declarations compare equal."""
    assert PodSpec.model_validate(minimal()) == PodSpec.model_validate(minimal())
