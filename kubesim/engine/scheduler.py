"""Pod scheduler.

Filters nodes (ready and schedulable, node selector, NoSchedule taints,
free requested capacity), then scores the survivors by average fractional
CPU/memory headroom plus ``weight/100`` per satisfied soft-affinity term.
Ties go to the lexicographically smallest node name. Capacity claimed by
pods placed earlier in the same pass is taken into account.
"""

from __future__ import annotations

import random
import zlib
from dataclasses import dataclass, field

from kubesim.controllers.base import ReconcileContext
from kubesim.models.events import EventType
from kubesim.models.resources import (
    ContainerState,
    ContainerStateKind,
    ContainerStatus,
    Kind,
    PodPhase,
    Resource,
    ResourceList,
    is_node_ready,
)
from kubesim.observability.logging import get_logger
from kubesim.observability.metrics import pods_scheduled_total, scheduling_failures_total
from kubesim.store import ClusterStore

_logger = get_logger("engine.scheduler")


@dataclass
class _NodeSlot:
    node: Resource
    cpu_capacity: float
    memory_capacity: float
    cpu_free: float
    memory_free: float

    def fits(self, requests: ResourceList) -> bool:
        return self.cpu_free >= requests.cpu and self.memory_free >= requests.memory

    def release(self, requests: ResourceList) -> None:
        self.cpu_free += requests.cpu
        self.memory_free += requests.memory

    def score(self, pod: Resource) -> float:
        cpu = self.cpu_free / (self.cpu_capacity or 1.0)
        memory = self.memory_free / (self.memory_capacity or 1.0)
        score = (cpu + memory) / 2
        for term in pod.spec.affinity.preferred:
            if self.node.matches_selector(term.match_labels):
                score += term.weight / 100
        return score


@dataclass
class SchedulingResult:
    bound: list[tuple[str, str]] = field(default_factory=list)
    unschedulable: list[str] = field(default_factory=list)


def node_is_schedulable(node: Resource) -> bool:
    return is_node_ready(node) and not node.spec.unschedulable


def tolerates_taints(pod: Resource, node: Resource) -> bool:
    for taint in node.spec.taints:
        if taint.effect != "NoSchedule":
            continue
        if not any(toleration.tolerates(taint) for toleration in pod.spec.tolerations):
            return False
    return True


def host_ip(node: Resource) -> str:
    digest = zlib.crc32(node.name.encode())
    return f"10.0.{(digest >> 8) & 0xFF}.{digest % 254 + 1}"


def pod_ip(rng: random.Random) -> str:
    return f"10.244.{rng.randrange(255)}.{rng.randrange(1, 255)}"


class Scheduler:
    def schedule(self, ctx: ReconcileContext) -> SchedulingResult:
        """Attempt placement for every pending pod; never drops a pod."""
        store = ctx.store
        result = SchedulingResult()
        pending = [
            pod
            for pod in store.by_kind(Kind.POD)
            if pod.status.phase == PodPhase.PENDING and not pod.is_deleting
        ]
        if not pending:
            return result

        slots = self._slots(store)
        # Pending pinned pods are counted against their node by node_allocation;
        # they only hold capacity once they actually bind.
        for pod in pending:
            slot = slots.get(pod.spec.node_name) if pod.spec.node_name else None
            if slot is not None:
                slot.release(pod.spec.requests())

        for pod in pending:
            if pod.spec.node_name:
                slot = slots.get(pod.spec.node_name)
                if slot is not None and self._passes(pod, slot, pod.spec.requests()):
                    self._bind(pod, slot, ctx)
                    result.bound.append((pod.name, slot.node.name))
                else:
                    self._mark_unschedulable(pod, ctx, len(slots))
                    result.unschedulable.append(pod.name)
                continue

            chosen = self._select(pod, pod.spec.requests(), slots)
            if chosen is None:
                self._mark_unschedulable(pod, ctx, len(slots))
                result.unschedulable.append(pod.name)
                continue
            self._bind(pod, chosen, ctx)
            result.bound.append((pod.name, chosen.node.name))
        return result

    def _slots(self, store: ClusterStore) -> dict[str, _NodeSlot]:
        slots: dict[str, _NodeSlot] = {}
        for node in sorted(store.by_kind(Kind.NODE), key=lambda n: n.name):
            allocation = store.node_allocation(node.name)
            if allocation is None:
                continue
            slots[node.name] = _NodeSlot(
                node=node,
                cpu_capacity=allocation.cpu_capacity,
                memory_capacity=allocation.memory_capacity,
                cpu_free=allocation.cpu_available,
                memory_free=allocation.memory_available,
            )
        return slots

    def _passes(self, pod: Resource, slot: _NodeSlot, requests: ResourceList) -> bool:
        node = slot.node
        return (
            node_is_schedulable(node)
            and node.matches_selector(pod.spec.node_selector)
            and tolerates_taints(pod, node)
            and slot.fits(requests)
        )

    def _select(self, pod: Resource, requests: ResourceList, slots: dict[str, _NodeSlot]) -> _NodeSlot | None:
        best: _NodeSlot | None = None
        best_score = float("-inf")
        # Slots are name-ordered, so strict ">" keeps the smallest name on ties.
        for slot in slots.values():
            if not self._passes(pod, slot, requests):
                continue
            score = slot.score(pod)
            if score > best_score:
                best, best_score = slot, score
        return best

    def _bind(self, pod: Resource, slot: _NodeSlot, ctx: ReconcileContext) -> None:
        node = slot.node
        now = ctx.now
        requests = pod.spec.requests()
        slot.cpu_free -= requests.cpu
        slot.memory_free -= requests.memory

        pod.spec.node_name = node.name
        pod.status.start_time = now
        pod.status.host_ip = host_ip(node)
        pod.status.pod_ip = pod_ip(ctx.rng)
        pod.status.container_statuses = [
            ContainerStatus(
                name=container.name,
                image=container.image,
                state=ContainerState(ContainerStateKind.WAITING, reason="ContainerCreating"),
            )
            for container in pod.spec.containers
        ]
        pod.set_phase(PodPhase.RUNNING, now)
        pod.set_condition("PodScheduled", True, now, "Scheduled", f"Successfully assigned to {node.name}")
        pod.set_condition("Initialized", True, now, "PodInitialized")
        pod.set_condition("Ready", False, now, "ContainersNotReady")
        pod.record_event(
            EventType.NORMAL, "Scheduled", f"Successfully assigned {pod.namespace}/{pod.name} to {node.name}", now
        )
        ctx.store.commit(pod)
        pods_scheduled_total.inc()
        _logger.debug("pod_scheduled", pod=pod.name, namespace=pod.namespace, node=node.name)

    def _mark_unschedulable(self, pod: Resource, ctx: ReconcileContext, node_count: int) -> None:
        message = f"0/{node_count} nodes are available to schedule pod"
        pod.record_event(EventType.WARNING, "FailedScheduling", message, ctx.now)
        if pod.ensure_condition("PodScheduled", False, ctx.now, "Unschedulable", message):
            ctx.store.commit(pod)
            _logger.debug("pod_unschedulable", pod=pod.name, namespace=pod.namespace, nodes=node_count)
        scheduling_failures_total.inc()

