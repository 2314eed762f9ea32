"""Tests for change classification."""

import pytest

from podrecon.engine.classifier import (
    ChangeAction,
    FieldPolicy,
    classify,
    comparable,
    diff_paths,
    policy_for,
)
from podrecon.translator import expand


class TestPolicyLookup:
    """Test the field policy table."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            (("metadata", "labels", "app"), FieldPolicy.MUTABLE),
            (("metadata", "annotations"), FieldPolicy.MUTABLE),
            (("metadata", "name"), FieldPolicy.REPLACE),
            (("spec", "containers", 0, "image"), FieldPolicy.MUTABLE),
            (("spec", "containers", 2, "image"), FieldPolicy.MUTABLE),
            (("spec", "containers", 0, "args"), FieldPolicy.REPLACE),
            (("spec", "containers", 0, "env", 1, "value"), FieldPolicy.REPLACE),
            (("spec", "initContainers", 0, "image"), FieldPolicy.REPLACE),
            (("spec", "activeDeadlineSeconds"), FieldPolicy.MUTABLE),
            (("spec", "hostname"), FieldPolicy.REPLACE),
            (("status", "phase"), FieldPolicy.REPLACE),
        ],
    )
    def test_policy_for(self, path, expected):
        """Test the longest matching prefix decides."""
        assert policy_for(path) == expected

    def test_index_wildcard_does_not_match_names(self):
        """Test '*' only matches list indices."""
        assert policy_for(("spec", "containers", "image")) == FieldPolicy.REPLACE


class TestDiffPaths:
    """Test structural differences."""

    def test_equal(self):
        assert diff_paths({"a": [1, {"b": 2}]}, {"a": [1, {"b": 2}]}) == []

    def test_nested_value(self):
        assert diff_paths({"a": [1, {"b": 2}]}, {"a": [1, {"b": 3}]}) == [("a", 1, "b")]

    def test_added_and_removed_keys(self):
        assert diff_paths({"a": 1}, {"b": 1}) == [("a",), ("b",)]

    def test_list_length_change_reported_at_list(self):
        assert diff_paths({"a": [1]}, {"a": [1, 2]}) == [("a",)]


class TestClassify:
    """Test classification of declaration changes."""

    def test_no_change(self, make_spec):
        assert classify(make_spec(), make_spec()).action == ChangeAction.NO_CHANGE

    def test_server_metadata_ignored(self, make_spec):
        """Test uid and resourceVersion never count as changes."""
        live = make_spec(metadata={"name": "web", "labels": {"app": "web"}, "uid": "abc", "resource_version": "9"})
        assert classify(live, make_spec()).action == ChangeAction.NO_CHANGE

    def test_object_input(self, make_spec):
        """Test canonical objects are accepted as well as specs."""
        obj = expand(make_spec())
        obj["metadata"]["uid"] = "abc"
        obj["status"] = {"phase": "Running"}
        assert classify(obj, make_spec()).action == ChangeAction.NO_CHANGE

    def test_image_is_in_place(self, make_spec):
        """Test an image bump keeps the pod."""
        old = make_spec()
        new = make_spec(containers=[{"name": "app", "image": "nginx:1.26"}])

        result = classify(old, new)

        assert result.action == ChangeAction.IN_PLACE
        assert result.changed == [("spec", "containers", 0, "image")]
        assert result.mutable_paths == result.changed
        assert result.affects_readiness
        assert not result.requires_replace

    def test_labels_are_in_place_without_restart(self, make_spec):
        old = make_spec()
        new = make_spec(metadata={"name": "web", "labels": {"app": "web", "tier": "frontend"}})

        result = classify(old, new)

        assert result.action == ChangeAction.IN_PLACE
        assert result.changed == [("metadata", "labels", "tier")]
        assert not result.affects_readiness

    @pytest.mark.parametrize(
        "container",
        [
            {"name": "app", "image": "nginx:1.25", "args": ["--debug"]},
            {"name": "app", "image": "nginx:1.25", "env": [{"name": "A", "value": "1"}]},
            {"name": "app", "image": "nginx:1.25", "resources": {"limits": {"cpu": "1"}}},
            {"name": "app", "image": "nginx:1.25", "ports": [{"container_port": 80}]},
        ],
    )
    def test_immutable_container_fields_replace(self, make_spec, container):
        """Test changes the cluster cannot apply to a running pod force a replacement."""
        result = classify(make_spec(), make_spec(containers=[container]))
        assert result.action == ChangeAction.REPLACE
        assert result.requires_replace

    def test_init_container_image_replaces(self, make_spec):
        old = make_spec(init_containers=[{"name": "init", "image": "busybox:1.35"}])
        new = make_spec(init_containers=[{"name": "init", "image": "busybox:1.36"}])

        result = classify(old, new)

        assert result.action == ChangeAction.REPLACE
        assert result.replace_paths == [("spec", "initContainers", 0, "image")]

    def test_mixed_change_replaces(self, make_spec):
        """Test one immutable path is enough to replace."""
        old = make_spec()
        new = make_spec(
            metadata={"name": "web", "labels": {"app": "web2"}},
            containers=[{"name": "app", "image": "nginx:1.26", "args": ["-g"]}],
        )

        result = classify(old, new)

        assert result.action == ChangeAction.REPLACE
        assert ("metadata", "labels", "app") in result.mutable_paths
        assert ("spec", "containers", 0, "args") in result.replace_paths

    def test_adding_a_container_replaces(self, make_spec):
        new = make_spec(containers=[
            {"name": "app", "image": "nginx:1.25"},
            {"name": "sidecar", "image": "envoy:1.30"},
        ])
        result = classify(make_spec(), new)
        assert result.replace_paths == [("spec", "containers")]

    def test_empty_and_absent_resources_differ(self, make_spec):
        """Test an explicitly empty block is a different declaration."""
        empty = make_spec(containers=[{"name": "app", "image": "nginx:1.25", "resources": {}}])
        assert classify(make_spec(), empty).action == ChangeAction.REPLACE

    def test_equivalent_quantities_are_no_change(self, make_spec):
        old = make_spec(containers=[{"name": "app", "image": "nginx:1.25", "resources": {"limits": {"cpu": "0.5"}}}])
        new = make_spec(containers=[{"name": "app", "image": "nginx:1.25", "resources": {"limits": {"cpu": "500m"}}}])
        assert classify(old, new).action == ChangeAction.NO_CHANGE

    @pytest.mark.parametrize(
        "old_value,new_value",
        [
            ("1Gi", "1073741824"),
            ("1e3", "1k"),
            ("1Ki", "1024"),
            ("2000m", "2"),
        ],
    )
    def test_quantities_spelled_differently_are_no_change(self, make_spec, old_value, new_value):
        """Test resource values compare by amount, not by notation."""
        def spec(value):
            return make_spec(containers=[{
                "name": "app",
                "image": "nginx:1.25",
                "resources": {"limits": {"memory": value}, "requests": {"memory": value}},
            }])

        assert classify(spec(old_value), spec(new_value)).action == ChangeAction.NO_CHANGE

    def test_different_quantities_still_replace(self, make_spec):
        old = make_spec(containers=[{"name": "app", "image": "nginx:1.25", "resources": {"limits": {"memory": "1Gi"}}}])
        new = make_spec(containers=[{"name": "app", "image": "nginx:1.25", "resources": {"limits": {"memory": "1G"}}}])

        result = classify(old, new)

        assert result.action == ChangeAction.REPLACE
        assert result.changed == [("spec", "containers", 0, "resources", "limits", "memory")]

    def test_size_limit_and_divisor_compare_by_value(self, make_spec):
        def spec(size, divisor):
            return make_spec(
                containers=[{
                    "name": "app",
                    "image": "nginx:1.25",
                    "env": [{
                        "name": "CPU",
                        "value_from": {"resource_field_ref": {"resource": "limits.cpu", "divisor": divisor}},
                    }],
                }],
                volumes=[{"name": "data", "empty_dir": {"size_limit": size}}],
            )

        assert classify(spec("1Gi", "1k"), spec("1073741824", "1e3")).action == ChangeAction.NO_CHANGE


class TestQuantityLeaves:
    """Test numeric comparison of quantity leaves in raw objects."""

    def test_limits_and_requests(self):
        old = {"resources": {"limits": {"memory": "1Gi"}, "requests": {"cpu": "1"}}}
        new = {"resources": {"limits": {"memory": "1073741824"}, "requests": {"cpu": "1000m"}}}
        assert diff_paths(old, new) == []

    def test_other_leaves_compare_as_text(self):
        assert diff_paths({"image": "1k"}, {"image": "1e3"}) == [("image",)]

    def test_unparseable_values_differ(self):
        assert diff_paths({"limits": {"cpu": "lots"}}, {"limits": {"cpu": "1"}}) == [("limits", "cpu")]


def test_comparable_drops_status_and_server_metadata(make_spec):
    obj = expand(make_spec())
    obj["metadata"].update({"uid": "abc", "resourceVersion": "3", "creationTimestamp": "now"})
    obj["status"] = {"phase": "Running"}

    result = comparable(obj)

    assert set(result) == {"metadata", "spec"}
    assert "uid" not in result["metadata"]
    assert "creationTimestamp" not in result["metadata"]
