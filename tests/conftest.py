"""Shared factories and fixtures for KubeSim tests.

Factories (``make_*``) build resources directly in a store so unit tests
can exercise one component at a time; fixtures wire the real components
together with a fixed seed and random failures switched off.
"""

from __future__ import annotations

import random
from typing import Any

import pytest

from kubesim.controllers import ReconcileContext
from kubesim.engine import ControlLoopEngine, SimulationClock
from kubesim.incidents import IncidentCategory, IncidentDefinition, IncidentEngine
from kubesim.models.config import EngineConfig, IncidentConfig, KubeSimConfig
from kubesim.models.resources import (
    ContainerState,
    ContainerStateKind,
    ContainerStatus,
    Kind,
    PodPhase,
    Resource,
    Usage,
)
from kubesim.notifications import EventBus
from kubesim.store import ClusterStore

SEED = 42

# ---------------------------------------------------------------------------
# Config and context helpers
# ---------------------------------------------------------------------------


def make_config(seed: int | None = SEED, **engine_overrides: Any) -> KubeSimConfig:
    """Config with deterministic defaults: no random container failures."""
    engine_values: dict[str, Any] = {"random_failure_rate": 0.0}
    engine_values.update(engine_overrides)
    return KubeSimConfig(seed=seed, engine=EngineConfig(**engine_values))


def make_context(
    store: ClusterStore,
    now: float = 0.0,
    *,
    bus: EventBus | None = None,
    rng: random.Random | None = None,
    config: KubeSimConfig | None = None,
    dt: float = 0.05,
    tick: int = 1,
) -> ReconcileContext:
    return ReconcileContext(
        now=now,
        dt=dt,
        tick=tick,
        store=store,
        rng=rng or random.Random(SEED),
        bus=bus or EventBus(),
        config=config or make_config(),
    )


# ---------------------------------------------------------------------------
# Resource factories
# ---------------------------------------------------------------------------


def make_node(
    store: ClusterStore,
    name: str = "node-1",
    cpu: str = "4",
    memory: str = "8Gi",
    labels: dict[str, str] | None = None,
    taints: list[dict[str, str]] | None = None,
) -> Resource:
    spec: dict[str, Any] = {"capacity": {"cpu": cpu, "memory": memory}}
    if taints:
        spec["taints"] = taints
    return store.create(Kind.NODE, name, spec=spec, labels=labels or {"kubernetes.io/hostname": name})


def make_pod(
    store: ClusterStore,
    name: str = "api-pod",
    namespace: str = "default",
    cpu: str = "100m",
    memory: str = "128Mi",
    node_name: str = "",
    labels: dict[str, str] | None = None,
    **spec: Any,
) -> Resource:
    pod_spec: dict[str, Any] = {
        "containers": [{"name": "app", "image": "nginx:1.27", "resources": {"requests": {"cpu": cpu, "memory": memory}}}],
    }
    if node_name:
        pod_spec["nodeName"] = node_name
    pod_spec.update(spec)
    return store.create(Kind.POD, name, namespace, spec=pod_spec, labels=labels or {"app": "api"})


def make_running_pod(
    store: ClusterStore,
    name: str,
    labels: dict[str, str],
    node_name: str = "node-1",
    cpu_usage: float = 0.0,
    now: float = 0.0,
) -> Resource:
    """A pod already bound, started and Ready, with a fixed CPU usage."""
    pod = make_pod(store, name, node_name=node_name, labels=labels)
    pod.status.phase = PodPhase.RUNNING.value
    pod.status.container_statuses = [
        ContainerStatus(
            name="app",
            image="nginx:1.27",
            ready=True,
            started=True,
            state=ContainerState(ContainerStateKind.RUNNING, started_at=now),
            usage=Usage(cpu=cpu_usage),
            startup_succeeded=True,
        )
    ]
    pod.set_condition("Ready", True, now, "PodReady")
    store.commit(pod)
    return pod


def workload_spec(app: str, replicas: int = 1, cpu: str = "100m", memory: str = "128Mi") -> dict[str, Any]:
    return {
        "replicas": replicas,
        "selector": {"matchLabels": {"app": app}},
        "template": {
            "metadata": {"labels": {"app": app}},
            "spec": {
                "containers": [
                    {"name": app, "image": f"{app}:1.0", "resources": {"requests": {"cpu": cpu, "memory": memory}}}
                ]
            },
        },
    }


def daemon_spec(app: str, cpu: str = "100m", memory: str = "128Mi") -> dict[str, Any]:
    """A DaemonSet spec: a workload spec without a replica count."""
    spec = workload_spec(app, cpu=cpu, memory=memory)
    del spec["replicas"]
    return spec


def make_deployment(store: ClusterStore, name: str = "web", replicas: int = 3, namespace: str = "default") -> Resource:
    return store.create(Kind.DEPLOYMENT, name, namespace, spec=workload_spec(name, replicas), labels={"app": name})


def make_definition(
    definition_id: str = "test-incident",
    name: str = "TestIncident",
    severity: int = 3,
    auto_resolve_seconds: float | None = None,
    steps: int = 0,
) -> IncidentDefinition:
    from kubesim.incidents.models import InvestigationStep

    return IncidentDefinition(
        id=definition_id,
        name=name,
        category=IncidentCategory.POD,
        severity=severity,
        description="Synthetic incident used by tests",
        visual_effect="pulse-red",
        affected_kinds=(Kind.POD,),
        investigation_steps=tuple(InvestigationStep(f"kubectl get pods #{i}", "look") for i in range(steps)),
        auto_resolve_seconds=auto_resolve_seconds,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def clock() -> SimulationClock:
    return SimulationClock(0.05)


@pytest.fixture
def store(bus: EventBus, clock: SimulationClock) -> ClusterStore:
    return ClusterStore(bus=bus, clock=clock)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(SEED)


@pytest.fixture
def config() -> KubeSimConfig:
    return make_config()


@pytest.fixture
def engine(
    store: ClusterStore,
    bus: EventBus,
    clock: SimulationClock,
    rng: random.Random,
    config: KubeSimConfig,
) -> ControlLoopEngine:
    return ControlLoopEngine(store, bus, clock, rng, config)


@pytest.fixture
def incident_engine(store: ClusterStore, bus: EventBus, rng: random.Random) -> IncidentEngine:
    return IncidentEngine(store, bus, rng, IncidentConfig(), cascade_rules=())
