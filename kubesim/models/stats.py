"""Read-only summaries derived from the cluster store."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass(frozen=True)
class NodeAllocation:
    """Requested capacity on one node, counted over its active pods."""

    node: str
    cpu_capacity: float
    memory_capacity: float
    cpu_requested: float
    memory_requested: float
    pod_count: int

    @property
    def cpu_available(self) -> float:
        return self.cpu_capacity - self.cpu_requested

    @property
    def memory_available(self) -> float:
        return self.memory_capacity - self.memory_requested


@dataclass(frozen=True)
class ResourceTotals:
    total: float = 0.0
    used: float = 0.0

    @property
    def percent(self) -> float:
        return round(self.used / self.total * 100, 1) if self.total else 0.0


@dataclass(frozen=True)
class ClusterStats:
    """Cluster-wide counts and aggregate utilisation."""

    nodes_total: int = 0
    nodes_ready: int = 0
    pods_total: int = 0
    pods_by_phase: dict[str, int] = field(default_factory=dict)
    deployments_total: int = 0
    deployments_available: int = 0
    services: int = 0
    namespaces: int = 0
    resources: int = 0
    cpu: ResourceTotals = field(default_factory=ResourceTotals)
    memory: ResourceTotals = field(default_factory=ResourceTotals)

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["cpu"]["percent"] = self.cpu.percent
        data["memory"]["percent"] = self.memory.percent
        return data
