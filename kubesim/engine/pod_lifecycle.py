"""Container state machine, resource usage, probes, OOM and termination.

Each public method is one step of the engine tick and touches only pods in
phase Running (``terminate`` handles any pod marked for deletion):

    advance      waiting(ContainerCreating) -> running -> ready, backoff expiry
    simulate     usage drift, chaos stress, random crashes
    probe        startup / liveness / readiness evaluation
    oom_kill     memory above limit -> OOMKilled
    terminate    deletion grace period elapsed -> Succeeded, removed

A crash either puts the container into ``CrashLoopBackOff`` with a
deterministic deadline, or fails the pod when ``restartPolicy`` is Never.
"""

from __future__ import annotations

from kubesim.controllers.base import ReconcileContext
from kubesim.models.config import EngineConfig
from kubesim.models.events import EventType
from kubesim.models.resources import (
    ContainerSpec,
    ContainerState,
    ContainerStateKind,
    ContainerStatus,
    Kind,
    PodPhase,
    Probe,
    Resource,
)
from kubesim.notifications import Topic
from kubesim.notifications.payloads import ContainerOOMKilled
from kubesim.observability.logging import get_logger
from kubesim.observability.metrics import container_restarts_total

_logger = get_logger("engine.pod_lifecycle")

CRASH_LOOP = "CrashLoopBackOff"
CONTAINER_CREATING = "ContainerCreating"


def backoff_seconds(restarts: int, base: float = 10.0, maximum: float = 300.0) -> float:
    """Restart delay after the *restarts*-th crash: base doubling, capped."""
    return min(maximum, base * 2 ** max(0, restarts - 1))


def probe_attempt_healthy(status: ContainerStatus, spec: ContainerSpec, ratio: float) -> bool:
    """A probe attempt fails while usage exceeds *ratio* of a positive limit."""
    cpu_limit = spec.cpu_limit
    memory_limit = spec.memory_limit
    if cpu_limit > 0 and status.usage.cpu > cpu_limit * ratio:
        return False
    if memory_limit > 0 and status.usage.memory > memory_limit * ratio:
        return False
    return True


def _running_pods(ctx: ReconcileContext) -> list[Resource]:
    return [pod for pod in ctx.store.by_kind(Kind.POD) if pod.status.phase == PodPhase.RUNNING]


def _containers(pod: Resource) -> list[tuple[ContainerSpec, ContainerStatus]]:
    specs = {container.name: container for container in pod.spec.containers}
    return [(specs[cs.name], cs) for cs in pod.status.container_statuses if cs.name in specs]


def _is_running(cs: ContainerStatus) -> bool:
    return cs.state.state == ContainerStateKind.RUNNING


class PodLifecycle:
    def __init__(self, config: EngineConfig) -> None:
        self._config = config

    # -- step 3: container state machine ---------------------------------

    def advance(self, ctx: ReconcileContext) -> None:
        for pod in _running_pods(ctx):
            changed = False
            for spec, cs in _containers(pod):
                state = cs.state
                if state.state == ContainerStateKind.WAITING:
                    if state.reason == CONTAINER_CREATING or (
                        state.reason == CRASH_LOOP and cs.backoff_until is not None and ctx.now >= cs.backoff_until
                    ):
                        self._start(pod, spec, cs, ctx.now)
                        changed = True
                    continue
                if _is_running(cs) and cs.started and not cs.ready and self._may_become_ready(spec, cs):
                    cs.ready = True
                    pod.record_event(EventType.NORMAL, "Ready", f"Container {cs.name} is ready", ctx.now)
                    changed = True
            if changed:
                pod.bump()
            self._sync_ready(pod, ctx.now)
            ctx.store.commit(pod)

    def _start(self, pod: Resource, spec: ContainerSpec, cs: ContainerStatus, now: float) -> None:
        cs.state = ContainerState(ContainerStateKind.RUNNING, started_at=now)
        cs.started = True
        cs.ready = False
        cs.backoff_until = None
        cs.startup_succeeded = spec.startup_probe is None
        cs.liveness_failures = cs.readiness_failures = cs.startup_failures = 0
        pod.record_event(EventType.NORMAL, "Started", f"Started container {cs.name}", now)

    def _may_become_ready(self, spec: ContainerSpec, cs: ContainerStatus) -> bool:
        if not cs.startup_succeeded:
            return False
        probe = spec.readiness_probe
        return probe is None or cs.readiness_failures < probe.failure_threshold

    def _sync_ready(self, pod: Resource, now: float) -> None:
        statuses = pod.status.container_statuses
        ready = bool(statuses) and all(cs.ready for cs in statuses)
        if ready:
            pod.ensure_condition("ContainersReady", True, now, "ContainersReady")
            pod.ensure_condition("Ready", True, now, "PodReady")
        else:
            pod.ensure_condition("ContainersReady", False, now, "ContainersNotReady")
            pod.ensure_condition("Ready", False, now, "ContainersNotReady")

    # -- step 4: resource usage -------------------------------------------

    def simulate(self, ctx: ReconcileContext) -> None:
        chaos = ctx.config.chaos
        failure_chance = self._config.random_failure_rate * ctx.dt
        rng = ctx.rng
        for pod in _running_pods(ctx):
            for spec, cs in _containers(pod):
                if not _is_running(cs):
                    continue
                cpu_request = spec.cpu_request
                memory_request = spec.memory_request
                cs.usage.cpu = max(0.0, cpu_request * 0.6 + (rng.random() - 0.5) * cpu_request * 0.3)

                base = memory_request * 0.7
                growth = memory_request * 0.01 * rng.random()
                carry = (cs.usage.memory - base) * 0.99 if cs.usage.memory > base else 0.0
                cap = spec.memory_limit * 1.1 if spec.memory_limit > 0 else memory_request * 2
                cs.usage.memory = min(cap, base + growth + carry)

                if chaos.cpu_stress > 0:
                    cs.usage.cpu += cpu_request * chaos.cpu_stress
                if chaos.memory_stress > 0:
                    cs.usage.memory += memory_request * chaos.memory_stress

                if failure_chance > 0 and rng.random() < failure_chance:
                    self.crash(pod, cs, ctx, "Error", 1, f"Container {cs.name} exited with an error")
                    if pod.status.phase != PodPhase.RUNNING:
                        break
            ctx.store.commit(pod)

    # -- step 5: probes ---------------------------------------------------

    def probe(self, ctx: ReconcileContext) -> None:
        ratio = self._config.probe_threshold_ratio
        for pod in _running_pods(ctx):
            for spec, cs in _containers(pod):
                if pod.status.phase != PodPhase.RUNNING:
                    break
                if not _is_running(cs):
                    continue
                healthy = probe_attempt_healthy(cs, spec, ratio)
                if not cs.startup_succeeded:
                    self._startup(spec.startup_probe, cs, healthy)
                    continue
                if spec.liveness_probe is not None and self._liveness(spec.liveness_probe, cs, healthy):
                    pod.record_event(EventType.WARNING, "Unhealthy", f"Liveness probe failed for container {cs.name}", ctx.now)
                    self.crash(pod, cs, ctx, "LivenessProbeFailure", 137, f"Container {cs.name} failed liveness probe")
                    continue
                if spec.readiness_probe is not None:
                    self._readiness(pod, spec.readiness_probe, cs, healthy, ctx.now)
            if pod.status.phase == PodPhase.RUNNING:
                self._sync_ready(pod, ctx.now)
            ctx.store.commit(pod)

    def _startup(self, probe: Probe | None, cs: ContainerStatus, healthy: bool) -> None:
        if probe is None or healthy:
            cs.startup_succeeded = True
            cs.startup_failures = 0
            return
        cs.startup_failures += 1
        cs.ready = False

    def _liveness(self, probe: Probe, cs: ContainerStatus, healthy: bool) -> bool:
        """Returns True when the liveness probe has now failed."""
        if healthy:
            cs.liveness_failures = 0
            return False
        cs.liveness_failures += 1
        return cs.liveness_failures >= probe.failure_threshold

    def _readiness(self, pod: Resource, probe: Probe, cs: ContainerStatus, healthy: bool, now: float) -> None:
        if healthy:
            cs.readiness_failures = 0
            return
        cs.readiness_failures += 1
        if cs.readiness_failures >= probe.failure_threshold and cs.ready:
            cs.ready = False
            pod.record_event(EventType.WARNING, "Unhealthy", f"Readiness probe failed for container {cs.name}", now)
            pod.bump()

    # -- step 6: OOM killer -----------------------------------------------

    def oom_kill(self, ctx: ReconcileContext) -> None:
        for pod in _running_pods(ctx):
            for spec, cs in _containers(pod):
                if pod.status.phase != PodPhase.RUNNING:
                    break
                limit = spec.memory_limit
                if not _is_running(cs) or limit <= 0 or cs.usage.memory <= limit:
                    continue
                used = cs.usage.memory
                message = f"Container {cs.name} exceeded memory limit ({round(used)}Mi > {limit:g}Mi)"
                pod.record_event(EventType.WARNING, "OOMKilled", f"Container {cs.name} was OOM killed", ctx.now)
                self.crash(pod, cs, ctx, "OOMKilled", 137, message)
                _logger.info("container_oom_killed", pod=pod.name, namespace=pod.namespace, container=cs.name)
                ctx.bus.publish(
                    Topic.CONTAINER_OOM_KILLED,
                    ContainerOOMKilled(
                        pod=pod.name,
                        namespace=pod.namespace,
                        container=cs.name,
                        node=pod.spec.node_name,
                        memory_used=used,
                        memory_limit=limit,
                    ),
                )
            ctx.store.commit(pod)

    # -- step 7: termination ----------------------------------------------

    def terminate(self, ctx: ReconcileContext) -> None:
        for pod in ctx.store.by_kind(Kind.POD):
            deleted_at = pod.metadata.deletion_timestamp
            if deleted_at is None or ctx.now - deleted_at < pod.spec.termination_grace_period_seconds:
                continue
            for cs in pod.status.container_statuses:
                if cs.state.state != ContainerStateKind.TERMINATED:
                    cs.state = ContainerState(
                        ContainerStateKind.TERMINATED,
                        reason="Completed",
                        exit_code=0,
                        started_at=cs.state.started_at,
                        finished_at=ctx.now,
                    )
                cs.ready = False
            pod.set_phase(PodPhase.SUCCEEDED, ctx.now)
            ctx.store.commit(pod)
            for finalizer in list(pod.metadata.finalizers):
                ctx.store.remove_finalizer(pod.uid, finalizer)
            ctx.store.remove(pod.uid)
            _logger.debug("pod_terminated", pod=pod.name, namespace=pod.namespace)

    # -- crash handling ---------------------------------------------------

    def crash(
        self,
        pod: Resource,
        cs: ContainerStatus,
        ctx: ReconcileContext,
        reason: str,
        exit_code: int,
        message: str = "",
    ) -> None:
        """Terminate a running container; back off or fail the pod."""
        now = ctx.now
        terminated = ContainerState(
            ContainerStateKind.TERMINATED,
            reason=reason,
            message=message,
            exit_code=exit_code,
            started_at=cs.state.started_at,
            finished_at=now,
        )
        cs.ready = False
        cs.started = False
        cs.usage.cpu = 0.0
        cs.usage.memory = 0.0
        cs.liveness_failures = cs.readiness_failures = cs.startup_failures = 0
        container_restarts_total.labels(reason=reason).inc()

        if pod.spec.restart_policy == "Never":
            cs.state = terminated
            pod.set_phase(PodPhase.FAILED, now)
            pod.ensure_condition("Ready", False, now, "PodFailed")
            pod.record_event(EventType.WARNING, "Failed", f"Container {cs.name} terminated: {reason}", now)
            _logger.debug("pod_failed", pod=pod.name, namespace=pod.namespace, reason=reason)
            return

        cs.last_state = terminated
        cs.restart_count += 1
        delay = backoff_seconds(cs.restart_count, self._config.backoff_base_seconds, self._config.backoff_max_seconds)
        cs.backoff_until = now + delay
        cs.state = ContainerState(ContainerStateKind.WAITING, reason=CRASH_LOOP, message=message)
        pod.record_event(EventType.WARNING, "BackOff", f"Back-off restarting failed container {cs.name}", now)
        pod.ensure_condition("Ready", False, now, "ContainersNotReady")
        pod.bump()
        _logger.debug(
            "container_crashed",
            pod=pod.name,
            namespace=pod.namespace,
            container=cs.name,
            reason=reason,
            restarts=cs.restart_count,
            backoff=delay,
        )
