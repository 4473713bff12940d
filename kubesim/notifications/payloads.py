"""Frozen payloads published on the notification bus, one type per topic."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kubesim.models.events import ChangeType
from kubesim.models.quota import QuotaUsage
from kubesim.models.stats import ClusterStats

if TYPE_CHECKING:
    from kubesim.models.resources import Resource


@dataclass(frozen=True)
class ResourceChange:
    """Identity of a resource that was added, modified or deleted.

    ``resource`` is the live object at flush time; treat it as read-only.
    """

    change: ChangeType
    kind: str
    name: str
    namespace: str
    uid: str
    resource_version: int
    sim_time: float
    deletion_pending: bool = False
    resource: Resource | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ClusterReset:
    sim_time: float


@dataclass(frozen=True)
class TickCompleted:
    tick: int
    dt: float
    sim_time: float
    stats: ClusterStats


@dataclass(frozen=True)
class EngineStateChanged:
    paused: bool
    time_scale: float
    sim_time: float


@dataclass(frozen=True)
class AutoscalerScaled:
    hpa: str
    namespace: str
    target: str
    from_replicas: int
    to_replicas: int
    direction: str
    utilization: float
    sim_time: float


@dataclass(frozen=True)
class QuotaExceeded:
    namespace: str
    violations: tuple[str, ...]
    usage: QuotaUsage


@dataclass(frozen=True)
class ContainerOOMKilled:
    pod: str
    namespace: str
    container: str
    node: str
    memory_used: float
    memory_limit: float


@dataclass(frozen=True)
class ChaosPodKilled:
    pod: str
    namespace: str
    node: str


@dataclass(frozen=True)
class ChaosNodeFailed:
    node: str
    failed_pods: int


@dataclass(frozen=True)
class IncidentChanged:
    incident_id: str
    definition_id: str
    name: str
    severity: int
    state: str
    target: str
    sim_time: float


@dataclass(frozen=True)
class IncidentStepCompleted:
    incident_id: str
    step_index: int
    progress: float


@dataclass(frozen=True)
class IncidentCascaded:
    parent_id: str
    child_id: str
    parent_name: str
    child_name: str
    depth: int
    sim_time: float


@dataclass(frozen=True)
class IncidentResolved:
    incident_id: str
    name: str
    severity: int
    resolution_time: float
    auto: bool
    xp: int
    combo: int
    action: str = ""
    cascade_children_remaining: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommandExecuted:
    command: str
    target: str
    success: bool
    message: str


@dataclass(frozen=True)
class PredicateSatisfied:
    predicate_id: str
    sim_time: float
