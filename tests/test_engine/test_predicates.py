"""Tests for readiness predicates."""

from podrecon.engine.predicates import (
    containers_ready,
    default_readiness,
    phase_in,
    phase_not_pending,
    pod_running,
    with_readiness_gates,
)


def pod(phase=None, **conditions):
    status = {"conditions": [{"type": key, "status": value} for key, value in conditions.items()]}
    if phase is not None:
        status["phase"] = phase
    return {"metadata": {"name": "web"}, "status": status}


class TestBasicPredicates:
    """Test phase and condition checks."""

    def test_pod_running(self):
        assert pod_running(pod("Running"))
        assert not pod_running(pod("Pending"))

    def test_containers_ready(self):
        assert containers_ready(pod("Running", ContainersReady="True"))
        assert not containers_ready(pod("Running", ContainersReady="False"))
        assert not containers_ready(pod("Pending", ContainersReady="True"))

    def test_phase_not_pending(self):
        assert phase_not_pending(pod("Running"))
        assert phase_not_pending(pod("Succeeded"))
        assert not phase_not_pending(pod("Pending"))
        assert not phase_not_pending({"metadata": {}})

    def test_phase_in(self):
        check = phase_in("Succeeded", "Failed")
        assert check(pod("Succeeded"))
        assert not check(pod("Running"))
        assert check.__name__ == "phase_in(Succeeded, Failed)"


class TestReadinessGates:
    """Test gate conditions layered on a base predicate."""

    def test_no_gates_returns_predicate(self):
        assert with_readiness_gates(pod_running, []) is pod_running

    def test_all_gates_required(self):
        check = with_readiness_gates(containers_ready, ["example.com/a", "example.com/b"])
        ready = {"ContainersReady": "True", "example.com/a": "True"}

        assert not check(pod("Running", **ready))
        assert check(pod("Running", **ready, **{"example.com/b": "True"}))
        assert not check(pod("Running", **ready, **{"example.com/b": "Unknown"}))

    def test_base_predicate_still_applies(self):
        check = with_readiness_gates(containers_ready, ["example.com/a"])
        assert not check(pod("Pending", **{"example.com/a": "True"}))


class TestDefaultReadiness:
    """Test the predicate derived from a declaration."""

    def test_default_scheduler(self, make_spec):
        check = default_readiness(make_spec())
        assert check(pod("Running", ContainersReady="True"))
        assert not check(pod("Running"))

    def test_custom_scheduler_only_needs_to_leave_pending(self, make_spec):
        check = default_readiness(make_spec(scheduler_name="batch-scheduler"))
        assert check(pod("Running"))
        assert not check(pod("Pending"))

    def test_explicit_default_scheduler(self, make_spec):
        check = default_readiness(make_spec(scheduler_name="default-scheduler"))
        assert not check(pod("Running"))

    def test_gates_from_spec(self, make_spec):
        check = default_readiness(make_spec(readiness_gates=[{"condition_type": "example.com/lb"}]))
        assert not check(pod("Running", ContainersReady="True"))
        assert check(pod("Running", ContainersReady="True", **{"example.com/lb": "True"}))
