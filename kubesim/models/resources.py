"""Simulated cluster resources.

A ``Resource`` is a kind-tagged value: shared ``ObjectMeta`` plus a spec and
a status dataclass chosen by kind from ``SPEC_TYPES`` / ``STATUS_TYPES``.
Consumers build resources with ``new_resource`` (or ``Resource.from_dict``
for wire JSON); both validate the spec at the boundary so controllers can
read typed fields without defensive lookups.

Quantities are normalised on the way in: CPU is millicores and memory MiB.
Timestamps are simulated seconds.
"""

from __future__ import annotations

import copy
import dataclasses
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from kubesim.models.codec import attribute_name, decode, encode
from kubesim.models.events import EventType, ResourceEvent
from kubesim.models.quantity import format_cpu, format_memory, parse_cpu, parse_memory

MAX_EVENTS = 50
DEFAULT_CPU_REQUEST = 100.0
DEFAULT_MEMORY_REQUEST = 128.0


class Kind(StrEnum):
    """Closed set of resource kinds the simulation understands."""

    NODE = "Node"
    NAMESPACE = "Namespace"
    POD = "Pod"
    DEPLOYMENT = "Deployment"
    REPLICA_SET = "ReplicaSet"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    JOB = "Job"
    CRON_JOB = "CronJob"
    SERVICE = "Service"
    INGRESS = "Ingress"
    NETWORK_POLICY = "NetworkPolicy"
    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"
    SERVICE_ACCOUNT = "ServiceAccount"
    PERSISTENT_VOLUME = "PersistentVolume"
    PERSISTENT_VOLUME_CLAIM = "PersistentVolumeClaim"
    STORAGE_CLASS = "StorageClass"
    HORIZONTAL_POD_AUTOSCALER = "HorizontalPodAutoscaler"


API_VERSIONS: dict[Kind, str] = {
    Kind.NODE: "v1",
    Kind.NAMESPACE: "v1",
    Kind.POD: "v1",
    Kind.SERVICE: "v1",
    Kind.CONFIG_MAP: "v1",
    Kind.SECRET: "v1",
    Kind.SERVICE_ACCOUNT: "v1",
    Kind.PERSISTENT_VOLUME: "v1",
    Kind.PERSISTENT_VOLUME_CLAIM: "v1",
    Kind.DEPLOYMENT: "apps/v1",
    Kind.REPLICA_SET: "apps/v1",
    Kind.STATEFUL_SET: "apps/v1",
    Kind.DAEMON_SET: "apps/v1",
    Kind.JOB: "batch/v1",
    Kind.CRON_JOB: "batch/v1",
    Kind.INGRESS: "networking.k8s.io/v1",
    Kind.NETWORK_POLICY: "networking.k8s.io/v1",
    Kind.STORAGE_CLASS: "storage.k8s.io/v1",
    Kind.HORIZONTAL_POD_AUTOSCALER: "autoscaling/v2",
}

CLUSTER_SCOPED = frozenset({Kind.NODE, Kind.NAMESPACE, Kind.PERSISTENT_VOLUME, Kind.STORAGE_CLASS})


class PodPhase(StrEnum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


TERMINAL_PHASES = frozenset({PodPhase.SUCCEEDED, PodPhase.FAILED})


class ContainerStateKind(StrEnum):
    WAITING = "waiting"
    RUNNING = "running"
    TERMINATED = "terminated"


class ConcurrencyPolicy(StrEnum):
    ALLOW = "Allow"
    FORBID = "Forbid"
    REPLACE = "Replace"


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


@dataclass
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True
    block_owner_deletion: bool = True


@dataclass
class ObjectMeta:
    name: str
    namespace: str = "default"
    uid: str = field(default_factory=lambda: str(uuid.uuid4()))
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)
    finalizers: list[str] = field(default_factory=list)
    generation: int = 1
    resource_version: int = 1
    creation_timestamp: float = 0.0
    deletion_timestamp: float | None = None


@dataclass
class Condition:
    type: str
    status: str
    reason: str = ""
    message: str = ""
    last_transition_time: float = 0.0


# ---------------------------------------------------------------------------
# Spec building blocks
# ---------------------------------------------------------------------------


@dataclass
class ResourceList:
    """CPU (millicores) and memory (MiB); accepts quantity strings on the wire."""

    cpu: float = 0.0
    memory: float = 0.0

    def to_wire(self) -> dict[str, str]:
        return {"cpu": format_cpu(self.cpu), "memory": format_memory(self.memory)}

    @classmethod
    def from_wire(cls, data: Any) -> ResourceList:
        if isinstance(data, ResourceList):
            return cls(cpu=data.cpu, memory=data.memory)
        if not isinstance(data, Mapping):
            raise ValueError(f"ResourceList: expected an object, got {type(data).__name__}")
        unknown = set(data) - {"cpu", "memory"}
        if unknown:
            raise ValueError(f"ResourceList: unknown field(s) {sorted(unknown)}")
        return cls(cpu=parse_cpu(data.get("cpu")), memory=parse_memory(data.get("memory")))


@dataclass
class ResourceRequirements:
    requests: ResourceList = field(default_factory=ResourceList)
    limits: ResourceList = field(default_factory=ResourceList)


@dataclass
class Probe:
    failure_threshold: int = 3
    period_seconds: int = 10
    initial_delay_seconds: int = 0


@dataclass
class ContainerSpec:
    name: str = "app"
    image: str = "nginx:latest"
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    liveness_probe: Probe | None = None
    readiness_probe: Probe | None = None
    startup_probe: Probe | None = None

    @property
    def cpu_request(self) -> float:
        return self.resources.requests.cpu or DEFAULT_CPU_REQUEST

    @property
    def memory_request(self) -> float:
        return self.resources.requests.memory or DEFAULT_MEMORY_REQUEST

    @property
    def cpu_limit(self) -> float:
        return self.resources.limits.cpu

    @property
    def memory_limit(self) -> float:
        return self.resources.limits.memory


@dataclass
class Taint:
    key: str
    value: str = ""
    effect: str = "NoSchedule"


@dataclass
class Toleration:
    key: str = ""
    operator: str = "Equal"
    value: str = ""
    effect: str = ""

    def tolerates(self, taint: Taint) -> bool:
        if self.effect and self.effect != taint.effect:
            return False
        if self.operator == "Exists":
            return not self.key or self.key == taint.key
        return self.key == taint.key and self.value == taint.value


@dataclass
class PreferredTerm:
    """Soft node-affinity preference: labels a node should carry."""

    weight: int = 1
    match_labels: dict[str, str] = field(default_factory=dict)


@dataclass
class Affinity:
    preferred: list[PreferredTerm] = field(default_factory=list)


@dataclass
class PodSpec:
    containers: list[ContainerSpec] = field(default_factory=lambda: [ContainerSpec()])
    node_name: str = ""
    node_selector: dict[str, str] = field(default_factory=dict)
    tolerations: list[Toleration] = field(default_factory=list)
    affinity: Affinity = field(default_factory=Affinity)
    restart_policy: str = "Always"
    termination_grace_period_seconds: float = 30.0

    def requests(self) -> ResourceList:
        """Aggregate requests over all containers, defaults applied."""
        return ResourceList(
            cpu=sum(c.cpu_request for c in self.containers),
            memory=sum(c.memory_request for c in self.containers),
        )

    def limits(self) -> ResourceList:
        """Aggregate limits over all containers; an unset limit counts as zero."""
        return ResourceList(
            cpu=sum(c.cpu_limit for c in self.containers),
            memory=sum(c.memory_limit for c in self.containers),
        )


@dataclass
class TemplateMeta:
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class PodTemplate:
    metadata: TemplateMeta = field(default_factory=TemplateMeta)
    spec: PodSpec = field(default_factory=PodSpec)


@dataclass
class LabelSelector:
    match_labels: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Kind-specific specs
# ---------------------------------------------------------------------------


@dataclass
class NodeSpec:
    unschedulable: bool = False
    taints: list[Taint] = field(default_factory=list)
    capacity: ResourceList = field(default_factory=lambda: ResourceList(cpu=4000.0, memory=8192.0))


@dataclass
class NamespaceSpec:
    """Namespaces carry no desired state."""


@dataclass
class DeploymentSpec:
    replicas: int = 1
    selector: LabelSelector = field(default_factory=LabelSelector)
    template: PodTemplate = field(default_factory=PodTemplate)
    revision_history_limit: int = 10


@dataclass
class ReplicaSetSpec:
    replicas: int = 1
    selector: LabelSelector = field(default_factory=LabelSelector)
    template: PodTemplate = field(default_factory=PodTemplate)


@dataclass
class StatefulSetSpec:
    replicas: int = 1
    selector: LabelSelector = field(default_factory=LabelSelector)
    template: PodTemplate = field(default_factory=PodTemplate)
    service_name: str = ""


@dataclass
class DaemonSetSpec:
    selector: LabelSelector = field(default_factory=LabelSelector)
    template: PodTemplate = field(default_factory=PodTemplate)
    node_selector: dict[str, str] = field(default_factory=dict)


@dataclass
class JobSpec:
    completions: int = 1
    parallelism: int = 1
    backoff_limit: int = 6
    estimated_duration_seconds: float = 30.0
    template: PodTemplate = field(default_factory=PodTemplate)


@dataclass
class CronJobSpec:
    schedule: str = "*/5 * * * *"
    concurrency_policy: ConcurrencyPolicy = ConcurrencyPolicy.ALLOW
    suspend: bool = False
    successful_jobs_history_limit: int = 3
    failed_jobs_history_limit: int = 1
    job_template: JobSpec = field(default_factory=JobSpec)


@dataclass
class ServicePort:
    port: int = 80
    target_port: int = 80
    protocol: str = "TCP"


@dataclass
class ServiceSpec:
    selector: dict[str, str] = field(default_factory=dict)
    type: str = "ClusterIP"
    ports: list[ServicePort] = field(default_factory=list)


@dataclass
class ScaleTargetRef:
    kind: str = "Deployment"
    name: str = ""


@dataclass
class HorizontalPodAutoscalerSpec:
    scale_target_ref: ScaleTargetRef = field(default_factory=ScaleTargetRef)
    min_replicas: int = 1
    max_replicas: int = 10
    target_cpu_utilization_percentage: float = field(
        default=50.0, metadata={"wire": "targetCPUUtilizationPercentage"}
    )


@dataclass
class DataSpec:
    """Free-form payload for kinds the control loops never reconcile."""

    data: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Statuses
# ---------------------------------------------------------------------------


@dataclass
class ResourceStatus:
    phase: str = "Active"
    conditions: list[Condition] = field(default_factory=list)
    observed_generation: int = 0


@dataclass
class Usage:
    cpu: float = 0.0
    memory: float = 0.0


@dataclass
class NodeUsage:
    cpu: float = 0.0
    memory: float = 0.0
    cpu_percent: float = 0.0
    memory_percent: float = 0.0


@dataclass
class NodeStatus(ResourceStatus):
    phase: str = "Ready"
    allocatable: ResourceList = field(default_factory=ResourceList)
    usage: NodeUsage = field(default_factory=NodeUsage)
    pod_count: int = 0


@dataclass
class ContainerState:
    state: ContainerStateKind = ContainerStateKind.WAITING
    reason: str = ""
    message: str = ""
    exit_code: int | None = None
    started_at: float | None = None
    finished_at: float | None = None


@dataclass
class ContainerStatus:
    name: str
    image: str = ""
    ready: bool = False
    started: bool = False
    restart_count: int = 0
    state: ContainerState = field(default_factory=ContainerState)
    last_state: ContainerState | None = None
    usage: Usage = field(default_factory=Usage)
    liveness_failures: int = 0
    readiness_failures: int = 0
    startup_failures: int = 0
    startup_succeeded: bool = False
    backoff_until: float | None = None


@dataclass
class PodStatus(ResourceStatus):
    phase: str = PodPhase.PENDING
    container_statuses: list[ContainerStatus] = field(default_factory=list)
    pod_ip: str = field(default="", metadata={"wire": "podIP"})
    host_ip: str = field(default="", metadata={"wire": "hostIP"})
    start_time: float | None = None
    expected_completion_time: float | None = None


@dataclass
class ReplicaStatus(ResourceStatus):
    replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    updated_replicas: int = 0


@dataclass
class DaemonSetStatus(ResourceStatus):
    desired_number_scheduled: int = 0
    current_number_scheduled: int = 0
    number_ready: int = 0


@dataclass
class JobStatus(ResourceStatus):
    phase: str = "Pending"
    active: int = 0
    succeeded: int = 0
    failed: int = 0
    start_time: float | None = None
    completion_time: float | None = None


@dataclass
class CronJobStatus(ResourceStatus):
    last_schedule_time: float | None = None
    active: list[str] = field(default_factory=list)


@dataclass
class ServiceStatus(ResourceStatus):
    ready_endpoints: int = 0
    total_endpoints: int = 0
    load_balancer_ip: str = field(default="", metadata={"wire": "loadBalancerIP"})


@dataclass
class HorizontalPodAutoscalerStatus(ResourceStatus):
    current_replicas: int = 0
    desired_replicas: int = 0
    current_cpu_utilization_percentage: float | None = field(
        default=None, metadata={"wire": "currentCPUUtilizationPercentage"}
    )
    last_scale_time: float | None = None
    last_scale_direction: str = ""


SPEC_TYPES: dict[Kind, type] = {
    Kind.NODE: NodeSpec,
    Kind.NAMESPACE: NamespaceSpec,
    Kind.POD: PodSpec,
    Kind.DEPLOYMENT: DeploymentSpec,
    Kind.REPLICA_SET: ReplicaSetSpec,
    Kind.STATEFUL_SET: StatefulSetSpec,
    Kind.DAEMON_SET: DaemonSetSpec,
    Kind.JOB: JobSpec,
    Kind.CRON_JOB: CronJobSpec,
    Kind.SERVICE: ServiceSpec,
    Kind.HORIZONTAL_POD_AUTOSCALER: HorizontalPodAutoscalerSpec,
    Kind.INGRESS: DataSpec,
    Kind.NETWORK_POLICY: DataSpec,
    Kind.CONFIG_MAP: DataSpec,
    Kind.SECRET: DataSpec,
    Kind.SERVICE_ACCOUNT: DataSpec,
    Kind.PERSISTENT_VOLUME: DataSpec,
    Kind.PERSISTENT_VOLUME_CLAIM: DataSpec,
    Kind.STORAGE_CLASS: DataSpec,
}

STATUS_TYPES: dict[Kind, type] = {
    Kind.NODE: NodeStatus,
    Kind.POD: PodStatus,
    Kind.DEPLOYMENT: ReplicaStatus,
    Kind.REPLICA_SET: ReplicaStatus,
    Kind.STATEFUL_SET: ReplicaStatus,
    Kind.DAEMON_SET: DaemonSetStatus,
    Kind.JOB: JobStatus,
    Kind.CRON_JOB: CronJobStatus,
    Kind.SERVICE: ServiceStatus,
    Kind.HORIZONTAL_POD_AUTOSCALER: HorizontalPodAutoscalerStatus,
}


def _status_type(kind: Kind) -> type:
    return STATUS_TYPES.get(kind, ResourceStatus)


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@dataclass
class Resource:
    """A simulated cluster object.

    The mutation helpers below (``set_phase``, ``set_condition``, ...) bump
    ``resource_version`` themselves. Callers holding a stored resource must
    hand it back through ``ClusterStore.commit`` so indices and watchers see
    the change.
    """

    kind: Kind
    metadata: ObjectMeta
    spec: Any
    status: Any
    events: list[ResourceEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.kind = Kind(self.kind)
        spec_type = SPEC_TYPES[self.kind]
        if not isinstance(self.spec, spec_type):
            raise TypeError(f"{self.kind} spec must be {spec_type.__name__}, got {type(self.spec).__name__}")
        status_type = _status_type(self.kind)
        if not isinstance(self.status, status_type):
            raise TypeError(f"{self.kind} status must be {status_type.__name__}, got {type(self.status).__name__}")

    # -- identity ---------------------------------------------------------

    @property
    def api_version(self) -> str:
        return API_VERSIONS[self.kind]

    @property
    def uid(self) -> str:
        return self.metadata.uid

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels

    @property
    def phase(self) -> str:
        return self.status.phase

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    @property
    def is_terminal(self) -> bool:
        return self.status.phase in TERMINAL_PHASES

    def ref(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"

    # -- mutation helpers -------------------------------------------------

    def bump(self, spec_changed: bool = False) -> None:
        self.metadata.resource_version += 1
        if spec_changed:
            self.metadata.generation += 1

    def record_event(self, type: EventType, reason: str, message: str, now: float) -> None:
        for event in reversed(self.events):
            if event.reason == reason and event.message == message:
                event.count += 1
                event.last_timestamp = now
                return
        self.events.append(ResourceEvent(type, reason, message, now, now))
        if len(self.events) > MAX_EVENTS:
            del self.events[: len(self.events) - MAX_EVENTS]

    def set_phase(self, phase: str, now: float) -> bool:
        old = self.status.phase
        if old == phase:
            return False
        self.status.phase = phase
        self.record_event(EventType.NORMAL, "PhaseChange", f"Phase changed from {old} to {phase}", now)
        self.bump()
        return True

    def get_condition(self, type: str) -> Condition | None:
        for condition in self.status.conditions:
            if condition.type == type:
                return condition
        return None

    def is_condition_true(self, type: str) -> bool:
        condition = self.get_condition(type)
        return condition is not None and condition.status == "True"

    def set_condition(self, type: str, status: bool, now: float, reason: str = "", message: str = "") -> None:
        """Upsert a condition; ``last_transition_time`` only moves on a flip."""
        value = "True" if status else "False"
        condition = self.get_condition(type)
        if condition is None:
            self.status.conditions.append(Condition(type, value, reason, message, now))
        else:
            if condition.status != value:
                condition.last_transition_time = now
            condition.status = value
            condition.reason = reason
            condition.message = message
        self.bump()

    def ensure_condition(self, type: str, status: bool, now: float, reason: str = "", message: str = "") -> bool:
        """Like ``set_condition`` but a no-op (no version bump) when nothing changes."""
        condition = self.get_condition(type)
        value = "True" if status else "False"
        if condition is not None and (condition.status, condition.reason, condition.message) == (value, reason, message):
            return False
        self.set_condition(type, status, now, reason, message)
        return True

    def update_status(self, **values: Any) -> bool:
        """Assign status fields, bumping the version only if one changed."""
        changed = False
        for name, value in values.items():
            if getattr(self.status, name) != value:
                setattr(self.status, name, value)
                changed = True
        if changed:
            self.bump()
        return changed

    def matches_selector(self, selector: Mapping[str, str] | None) -> bool:
        """An empty selector matches every resource."""
        if not selector:
            return True
        labels = self.metadata.labels
        return all(labels.get(key) == value for key, value in selector.items())

    def field_value(self, path: str) -> Any:
        """Resolve a dotted camelCase path (``spec.nodeName``); None when absent."""
        current: Any = self
        for segment in path.split("."):
            if current is None:
                return None
            if isinstance(current, Mapping):
                current = current.get(segment)
            elif isinstance(current, list):
                if not segment.isdigit() or int(segment) >= len(current):
                    return None
                current = current[int(segment)]
            elif current is self and segment in ("kind", "apiVersion"):
                current = self.kind.value if segment == "kind" else self.api_version
            elif dataclasses.is_dataclass(current):
                name = attribute_name(type(current), segment)
                if name is None:
                    return None
                current = getattr(current, name)
            else:
                return None
        return current

    def add_owner_reference(self, owner: Resource, controller: bool = True) -> None:
        if any(ref.uid == owner.uid for ref in self.metadata.owner_references):
            return
        self.metadata.owner_references.append(
            OwnerReference(
                api_version=owner.api_version,
                kind=owner.kind.value,
                name=owner.name,
                uid=owner.uid,
                controller=controller,
            )
        )
        self.bump()

    def controller_owner(self) -> OwnerReference | None:
        for ref in self.metadata.owner_references:
            if ref.controller:
                return ref
        return None

    def add_finalizer(self, name: str) -> None:
        if name not in self.metadata.finalizers:
            self.metadata.finalizers.append(name)
            self.bump()

    def remove_finalizer(self, name: str) -> bool:
        if name not in self.metadata.finalizers:
            return False
        self.metadata.finalizers.remove(name)
        self.bump()
        return True

    def mark_for_deletion(self, now: float) -> None:
        if self.metadata.deletion_timestamp is not None:
            return
        self.metadata.deletion_timestamp = now
        self.record_event(EventType.NORMAL, "Killing", f"Stopping {self.kind.value.lower()} {self.name}", now)
        self.bump()

    # -- serialisation ----------------------------------------------------

    def to_dict(self, include_events: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind.value,
            "metadata": encode(self.metadata),
            "spec": encode(self.spec),
            "status": encode(self.status),
        }
        if include_events:
            data["events"] = [event.to_dict() for event in self.events]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Resource:
        """Build a resource from wire JSON, validating spec and status."""
        if not isinstance(data, Mapping):
            raise ValueError(f"Resource: expected an object, got {type(data).__name__}")
        try:
            kind = Kind(data.get("kind"))
        except ValueError:
            raise ValueError(f"Resource: unknown kind {data.get('kind')!r}") from None
        meta_data = data.get("metadata") or {}
        if not isinstance(meta_data, Mapping) or not meta_data.get("name"):
            raise ValueError("Resource: metadata.name is required")
        metadata: ObjectMeta = decode(ObjectMeta, meta_data, "metadata")
        if kind in CLUSTER_SCOPED:
            metadata.namespace = ""
        spec = decode(SPEC_TYPES[kind], data.get("spec") or {}, "spec")
        status_data = data.get("status")
        status = decode(_status_type(kind), status_data, "status") if status_data else default_status(kind)
        return cls(kind=kind, metadata=metadata, spec=spec, status=status)

    def clone(self) -> Resource:
        return copy.deepcopy(self)


_PENDING_BY_DEFAULT = frozenset({Kind.POD, Kind.JOB, Kind.PERSISTENT_VOLUME_CLAIM})


def default_status(kind: Kind) -> Any:
    status = _status_type(kind)()
    if kind in _PENDING_BY_DEFAULT:
        status.phase = PodPhase.PENDING.value
    return status


def new_resource(
    kind: Kind | str,
    name: str,
    namespace: str = "default",
    *,
    spec: Any = None,
    labels: Mapping[str, str] | None = None,
    annotations: Mapping[str, str] | None = None,
    now: float = 0.0,
) -> Resource:
    """Create a resource, decoding *spec* when given as a wire mapping.

    Raises ValueError for an unknown kind or a spec that fails validation,
    and TypeError when *spec* is a dataclass of the wrong type.
    """
    kind = Kind(kind)
    if not name:
        raise ValueError("Resource name must not be empty")
    spec_type = SPEC_TYPES[kind]
    if spec is None:
        spec_value = spec_type()
    elif isinstance(spec, Mapping):
        spec_value = decode(spec_type, spec, "spec")
    else:
        spec_value = copy.deepcopy(spec)
    metadata = ObjectMeta(
        name=name,
        namespace="" if kind in CLUSTER_SCOPED else (namespace or "default"),
        labels=dict(labels or {}),
        annotations=dict(annotations or {}),
        creation_timestamp=now,
    )
    return Resource(kind=kind, metadata=metadata, spec=spec_value, status=default_status(kind))


def is_pod_ready(pod: Resource) -> bool:
    return pod.status.phase == PodPhase.RUNNING and pod.is_condition_true("Ready")


def is_active_pod(pod: Resource) -> bool:
    """Non-terminal pods count toward replicas, allocation and quota."""
    return pod.status.phase not in TERMINAL_PHASES


def is_node_ready(node: Resource) -> bool:
    if node.is_deleting or node.status.phase in ("NotReady", "Unknown"):
        return False
    condition = node.get_condition("Ready")
    return condition is None or condition.status == "True"
