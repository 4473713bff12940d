"""Node health: allocatable capacity, usage and pressure conditions.

Recomputed every tick from the pods currently bound to each node; only
non-terminal pods count.
"""

from __future__ import annotations

from kubesim.controllers.base import ReconcileContext
from kubesim.models.resources import Kind, NodeUsage, ResourceList

MEMORY_PRESSURE_MIB = 100.0
PID_PRESSURE_MILLICORES = 50.0
NOT_READY_PHASES = frozenset({"NotReady", "Unknown"})


class NodeMonitor:
    def refresh(self, ctx: ReconcileContext) -> None:
        store = ctx.store
        for node in store.by_kind(Kind.NODE):
            if node.is_deleting:
                continue
            allocation = store.node_allocation(node.name)
            if allocation is None:
                continue
            cpu_cap = allocation.cpu_capacity
            memory_cap = allocation.memory_capacity
            node.update_status(
                allocatable=ResourceList(cpu=allocation.cpu_available, memory=allocation.memory_available),
                usage=NodeUsage(
                    cpu=allocation.cpu_requested,
                    memory=allocation.memory_requested,
                    cpu_percent=round(allocation.cpu_requested / cpu_cap * 100) if cpu_cap else 0,
                    memory_percent=round(allocation.memory_requested / memory_cap * 100) if memory_cap else 0,
                ),
                pod_count=allocation.pod_count,
            )

            ready = node.status.phase not in NOT_READY_PHASES
            node.ensure_condition("Ready", ready, ctx.now, "KubeletReady" if ready else "KubeletNotReady")
            if allocation.memory_available < MEMORY_PRESSURE_MIB:
                node.ensure_condition("MemoryPressure", True, ctx.now, "KubeletHasInsufficientMemory")
            else:
                node.ensure_condition("MemoryPressure", False, ctx.now, "KubeletHasSufficientMemory")
            if allocation.cpu_available < PID_PRESSURE_MILLICORES:
                node.ensure_condition("PIDPressure", True, ctx.now, "KubeletHasInsufficientPIDs")
            else:
                node.ensure_condition("PIDPressure", False, ctx.now, "KubeletHasSufficientPIDs")
            store.commit(node)
