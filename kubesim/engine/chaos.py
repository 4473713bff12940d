"""Chaos injection: random pod kills and node failures.

CPU and memory stress are applied by the pod lifecycle's usage simulation;
this module handles the destructive faults that run last in a tick.
"""

from __future__ import annotations

from kubesim.controllers.base import ReconcileContext
from kubesim.models.events import EventType
from kubesim.models.resources import (
    ContainerState,
    ContainerStateKind,
    Kind,
    PodPhase,
    Resource,
    is_node_ready,
)
from kubesim.notifications import Topic
from kubesim.notifications.payloads import ChaosNodeFailed, ChaosPodKilled
from kubesim.observability.logging import get_logger

_logger = get_logger("engine.chaos")


def fail_pod(pod: Resource, reason: str, message: str, now: float) -> None:
    """Move a pod to Failed and terminate its containers."""
    for cs in pod.status.container_statuses:
        cs.state = ContainerState(
            ContainerStateKind.TERMINATED,
            reason=reason,
            message=message,
            exit_code=137,
            started_at=cs.state.started_at,
            finished_at=now,
        )
        cs.ready = False
        cs.started = False
    pod.set_phase(PodPhase.FAILED, now)
    pod.ensure_condition("Ready", False, now, "PodFailed")
    pod.record_event(EventType.WARNING, reason, message, now)


class ChaosInjector:
    def inject(self, ctx: ReconcileContext) -> None:
        chaos = ctx.config.chaos
        if chaos.pod_kill_rate > 0:
            self._kill_pods(ctx, chaos.pod_kill_rate * ctx.dt)
        if chaos.node_fail_rate > 0:
            self._fail_nodes(ctx, chaos.node_fail_rate * ctx.dt)

    def _kill_pods(self, ctx: ReconcileContext, chance: float) -> None:
        for pod in ctx.store.by_kind(Kind.POD):
            if pod.status.phase != PodPhase.RUNNING or ctx.rng.random() >= chance:
                continue
            fail_pod(pod, "ChaosKilled", "Pod killed by chaos engineering", ctx.now)
            ctx.store.commit(pod)
            _logger.info("chaos_pod_killed", pod=pod.name, namespace=pod.namespace, node=pod.spec.node_name)
            ctx.bus.publish(
                Topic.CHAOS_POD_KILLED,
                ChaosPodKilled(pod=pod.name, namespace=pod.namespace, node=pod.spec.node_name),
            )

    def _fail_nodes(self, ctx: ReconcileContext, chance: float) -> None:
        store = ctx.store
        for node in store.by_kind(Kind.NODE):
            if not is_node_ready(node) or ctx.rng.random() >= chance:
                continue
            node.set_phase("NotReady", ctx.now)
            node.ensure_condition("Ready", False, ctx.now, "ChaosNodeFailure")
            node.record_event(EventType.WARNING, "ChaosNodeDown", "Node failed due to chaos injection", ctx.now)
            store.commit(node)

            victims = [
                pod
                for pod in store.by_kind(Kind.POD)
                if pod.spec.node_name == node.name and pod.status.phase == PodPhase.RUNNING
            ]
            for pod in victims:
                fail_pod(pod, "NodeLost", f"Node {node.name} became unreachable", ctx.now)
                store.commit(pod)
            _logger.info("chaos_node_failed", node=node.name, failed_pods=len(victims))
            ctx.bus.publish(Topic.CHAOS_NODE_FAILED, ChaosNodeFailed(node=node.name, failed_pods=len(victims)))
