"""Tests for the container state machine, probes, OOM kills and termination."""

from __future__ import annotations

from typing import Any

import pytest

from kubesim.engine.pod_lifecycle import (
    CRASH_LOOP,
    PodLifecycle,
    backoff_seconds,
    probe_attempt_healthy,
)
from kubesim.models.config import EngineConfig
from kubesim.models.resources import (
    ContainerSpec,
    ContainerState,
    ContainerStateKind,
    ContainerStatus,
    PodPhase,
    Resource,
    ResourceList,
    ResourceRequirements,
    Usage,
)
from kubesim.notifications import EventBus, Topic
from kubesim.store import ClusterStore

from tests.conftest import make_context, make_node, make_pod, make_running_pod


def _container(**fields: Any) -> dict[str, Any]:
    container: dict[str, Any] = {
        "name": "app",
        "image": "nginx:1.27",
        "resources": {"requests": {"cpu": "100m", "memory": "64Mi"}},
    }
    container.update(fields)
    return container


def _start(store: ClusterStore, pod: Resource, now: float = 0.0) -> ContainerStatus:
    """Put *pod* into Running with a started, ready container."""
    cs = ContainerStatus(
        name="app",
        image="nginx:1.27",
        ready=True,
        started=True,
        state=ContainerState(ContainerStateKind.RUNNING, started_at=now),
        startup_succeeded=True,
    )
    pod.status.phase = PodPhase.RUNNING.value
    pod.status.container_statuses = [cs]
    pod.set_condition("Ready", True, now, "PodReady")
    store.commit(pod)
    return cs


@pytest.fixture
def lifecycle() -> PodLifecycle:
    return PodLifecycle(EngineConfig(random_failure_rate=0.0))


class TestHelpers:
    @pytest.mark.parametrize(("restarts", "expected"), [(0, 10.0), (1, 10.0), (2, 20.0), (3, 40.0), (10, 300.0)])
    def test_backoff_doubles_and_caps(self, restarts: int, expected: float) -> None:
        assert backoff_seconds(restarts) == expected

    def test_probe_fails_near_limit(self) -> None:
        spec = ContainerSpec(resources=ResourceRequirements(limits=ResourceList(cpu=100.0)))
        status = ContainerStatus(name="app", usage=Usage(cpu=96.0))
        assert not probe_attempt_healthy(status, spec, 0.95)
        status.usage.cpu = 90.0
        assert probe_attempt_healthy(status, spec, 0.95)

    def test_probe_without_limits_is_healthy(self) -> None:
        status = ContainerStatus(name="app", usage=Usage(cpu=1e6, memory=1e6))
        assert probe_attempt_healthy(status, ContainerSpec(), 0.95)


class TestAdvance:
    def test_creating_container_starts_then_becomes_ready(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_pod(store, node_name="node-1")
        pod.status.phase = PodPhase.RUNNING.value
        pod.status.container_statuses = [
            ContainerStatus(name="app", state=ContainerState(ContainerStateKind.WAITING, reason="ContainerCreating"))
        ]
        store.commit(pod)

        lifecycle.advance(make_context(store, now=1.0))
        cs = pod.status.container_statuses[0]
        assert cs.state.state == ContainerStateKind.RUNNING
        assert not cs.ready
        assert not pod.is_condition_true("Ready")

        lifecycle.advance(make_context(store, now=1.05))
        assert cs.ready
        assert pod.is_condition_true("Ready")
        assert pod.is_condition_true("ContainersReady")

    def test_startup_probe_holds_readiness(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_pod(store, node_name="node-1", containers=[_container(startupProbe={"failureThreshold": 3})])
        pod.status.phase = PodPhase.RUNNING.value
        pod.status.container_statuses = [
            ContainerStatus(name="app", state=ContainerState(ContainerStateKind.WAITING, reason="ContainerCreating"))
        ]
        lifecycle.advance(make_context(store, now=1.0))
        lifecycle.advance(make_context(store, now=1.05))
        cs = pod.status.container_statuses[0]
        assert not cs.startup_succeeded
        assert not cs.ready

        lifecycle.probe(make_context(store, now=1.1))
        lifecycle.advance(make_context(store, now=1.15))
        assert cs.startup_succeeded
        assert cs.ready

    def test_backoff_expiry_restarts_container(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_running_pod(store, "api", {"app": "api"})
        cs = pod.status.container_statuses[0]
        lifecycle.crash(pod, cs, make_context(store, now=5.0), "Error", 1)

        lifecycle.advance(make_context(store, now=14.0))
        assert cs.state.reason == CRASH_LOOP

        lifecycle.advance(make_context(store, now=15.0))
        assert cs.state.state == ContainerStateKind.RUNNING
        assert cs.backoff_until is None


class TestCrash:
    def test_restart_always_enters_backoff(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_running_pod(store, "api", {"app": "api"})
        cs = pod.status.container_statuses[0]
        lifecycle.crash(pod, cs, make_context(store, now=2.0), "Error", 1, "exited")
        assert pod.phase == PodPhase.RUNNING
        assert cs.restart_count == 1
        assert cs.backoff_until == pytest.approx(12.0)
        assert cs.state.state == ContainerStateKind.WAITING
        assert cs.state.reason == CRASH_LOOP
        assert cs.last_state.exit_code == 1
        assert not pod.is_condition_true("Ready")

    def test_backoff_grows_with_restarts(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_running_pod(store, "api", {"app": "api"})
        cs = pod.status.container_statuses[0]
        lifecycle.crash(pod, cs, make_context(store, now=0.0), "Error", 1)
        lifecycle.crash(pod, cs, make_context(store, now=10.0), "Error", 1)
        assert cs.restart_count == 2
        assert cs.backoff_until == pytest.approx(30.0)

    def test_restart_never_fails_pod(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_running_pod(store, "batch", {"app": "batch"})
        pod.spec.restart_policy = "Never"
        cs = pod.status.container_statuses[0]
        lifecycle.crash(pod, cs, make_context(store, now=3.0), "Error", 2)
        assert pod.phase == PodPhase.FAILED
        assert cs.state.state == ContainerStateKind.TERMINATED
        assert cs.restart_count == 0


class TestProbesAndOOM:
    def test_liveness_failure_restarts_container(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_pod(
            store,
            node_name="node-1",
            containers=[_container(resources={"limits": {"cpu": "100m"}}, livenessProbe={"failureThreshold": 2})],
        )
        cs = _start(store, pod)
        ctx = make_context(store, now=1.0)
        cs.usage.cpu = 99.0
        lifecycle.probe(ctx)
        assert cs.liveness_failures == 1
        lifecycle.probe(ctx)
        assert cs.restart_count == 1
        assert cs.last_state.reason == "LivenessProbeFailure"

    def test_readiness_failure_marks_unready(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_pod(
            store,
            node_name="node-1",
            containers=[_container(resources={"limits": {"memory": "100Mi"}}, readinessProbe={"failureThreshold": 1})],
        )
        cs = _start(store, pod)
        cs.usage.memory = 99.0
        lifecycle.probe(make_context(store, now=1.0))
        assert not cs.ready
        assert not pod.is_condition_true("Ready")
        assert pod.phase == PodPhase.RUNNING

    def test_oom_kill_publishes(self, store: ClusterStore, bus: EventBus, lifecycle: PodLifecycle) -> None:
        killed: list[object] = []
        bus.subscribe(Topic.CONTAINER_OOM_KILLED, killed.append)
        pod = make_pod(store, node_name="node-1", containers=[_container(resources={"limits": {"memory": "100Mi"}})])
        cs = _start(store, pod)
        cs.usage.memory = 150.0
        lifecycle.oom_kill(make_context(store, now=1.0, bus=bus))
        assert cs.restart_count == 1
        assert cs.last_state.reason == "OOMKilled"
        assert len(killed) == 1
        assert killed[0].memory_limit == 100.0

    def test_usage_stays_under_cap_without_limits(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_running_pod(store, "api", {"app": "api"})
        cs = pod.status.container_statuses[0]
        for i in range(50):
            lifecycle.simulate(make_context(store, now=i * 0.05))
        assert 0 < cs.usage.memory <= 256.0
        assert cs.usage.cpu >= 0


class TestTerminate:
    def test_grace_period_then_removed(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        make_node(store)
        pod = make_running_pod(store, "api", {"app": "api"})
        pod.mark_for_deletion(0.0)

        lifecycle.terminate(make_context(store, now=10.0))
        assert pod.uid in store

        lifecycle.terminate(make_context(store, now=30.0))
        assert pod.uid not in store
        assert pod.phase == PodPhase.SUCCEEDED

    def test_finalizers_are_cleared_on_termination(self, store: ClusterStore, lifecycle: PodLifecycle) -> None:
        pod = make_running_pod(store, "api", {"app": "api"})
        pod.add_finalizer("kubesim.io/protect")
        store.remove(pod.uid)
        assert pod.uid in store
        lifecycle.terminate(make_context(store, now=31.0))
        assert pod.uid not in store
