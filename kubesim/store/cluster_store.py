"""In-memory cluster store: the single source of truth for simulated state.

Holds every Resource by uid together with secondary indices (kind,
namespace, compound name, label) and the owner relationship graph. The
store is a pure data and query layer; it has no notion of ticks beyond the
clock callable it uses to stamp timestamps.

Notifications:
    Every mutation publishes ``resource.added|modified|deleted`` on the bus,
    both generically and qualified by kind. Between ``start_batch`` and
    ``flush_batch`` they are buffered; a later ``modified`` for a uid that
    is already buffered refreshes that entry in place instead of adding a
    second one, so observers see one notification per resource per tick.

Engine code mutates stored resources in place and then calls ``commit``,
which re-syncs label indices and owner edges from the resource itself.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import structlog

from kubesim.graph import OwnerGraph
from kubesim.models.codec import decode, encode, wire_name
from kubesim.models.events import ChangeType
from kubesim.models.quantity import parse_cpu, parse_memory
from kubesim.models.quota import QuotaCheckResult, QuotaSpec, QuotaUsage
from kubesim.models.resources import (
    CLUSTER_SCOPED,
    Kind,
    Resource,
    is_active_pod,
    is_node_ready,
    new_resource,
)
from kubesim.models.stats import ClusterStats, NodeAllocation, ResourceTotals
from kubesim.notifications import EventBus, Topic
from kubesim.notifications.payloads import ClusterReset, ResourceChange
from kubesim.observability.metrics import cluster_resources
from kubesim.store import quota as quota_rules
from kubesim.store.query import QueryFilter

_log = structlog.get_logger(component="store")

DEFAULT_NAMESPACES = ("default", "kube-system", "kube-public", "kube-node-lease")

_CHANGE_TOPICS = {
    ChangeType.ADDED: Topic.RESOURCE_ADDED,
    ChangeType.MODIFIED: Topic.RESOURCE_MODIFIED,
    ChangeType.DELETED: Topic.RESOURCE_DELETED,
}

_PATCH_KEYS = frozenset({"metadata", "spec", "status"})


class InvalidResourceError(TypeError):
    """Raised when something other than a Resource is handed to the store."""


class ResourceConflictError(ValueError):
    """Raised when a different uid already owns the (kind, namespace, name)."""


@dataclass
class _Pending:
    topic: Topic
    payload: ResourceChange


class ClusterStore:
    def __init__(
        self,
        bus: EventBus | None = None,
        clock: Callable[[], float] | None = None,
        seed_namespaces: bool = True,
    ) -> None:
        self._bus = bus
        self._clock = clock or (lambda: 0.0)

        self._resources: dict[str, Resource] = {}
        self._by_kind: dict[Kind, dict[str, None]] = {}
        self._by_namespace: dict[str, dict[str, None]] = {}
        self._by_name: dict[tuple[Kind, str, str], str] = {}
        self._by_label: dict[tuple[str, str], dict[str, None]] = {}
        # Labels as last indexed, so in-place label edits can be re-synced.
        self._indexed_labels: dict[str, dict[str, str]] = {}
        self._graph = OwnerGraph()
        self._quotas: dict[str, QuotaSpec] = {}

        self._batch_depth = 0
        self._pending: list[_Pending] = []
        self._pending_index: dict[str, int] = {}
        self._emitted_versions: dict[str, int] = {}

        if seed_namespaces:
            self._seed_namespaces()

    # ------------------------------------------------------------------
    # Basics
    # ------------------------------------------------------------------

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, uid: object) -> bool:
        return uid in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources.values()))

    @property
    def graph(self) -> OwnerGraph:
        return self._graph

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, resource: Resource) -> Resource:
        """Insert *resource*; re-adding a known uid behaves as ``update``."""
        if not isinstance(resource, Resource):
            raise InvalidResourceError(f"Expected a Resource, got {type(resource).__name__}")
        if resource.uid in self._resources:
            updated = self.update(resource.uid, resource)
            if updated is None:
                raise RuntimeError(f"{resource.ref()} vanished while being re-added")
            return updated

        resource.metadata.creation_timestamp = self.now()
        self._insert(resource)
        _log.debug("resource_added", kind=resource.kind.value, name=resource.name, namespace=resource.namespace)
        self._emit(ChangeType.ADDED, resource)
        return resource

    def create(
        self,
        kind: Kind | str,
        name: str,
        namespace: str = "default",
        *,
        spec: Any = None,
        labels: Mapping[str, str] | None = None,
        annotations: Mapping[str, str] | None = None,
        owner: Resource | None = None,
    ) -> Resource:
        """Build a resource with ``new_resource`` and add it, optionally owned."""
        resource = new_resource(kind, name, namespace, spec=spec, labels=labels, annotations=annotations)
        if owner is not None:
            resource.add_owner_reference(owner)
        return self.add(resource)

    def update(self, uid: str, patch: Resource | Mapping[str, Any]) -> Resource | None:
        """Apply a full resource or a partial ``{metadata, spec, status}`` patch.

        Spec changes bump ``generation``; a phase change records a
        ``PhaseChange`` event. Returns None when *uid* is unknown.
        """
        resource = self._resources.get(uid)
        if resource is None:
            return None
        if isinstance(patch, Resource):
            spec_changed = self._replace(resource, patch)
        elif isinstance(patch, Mapping):
            spec_changed = self._merge(resource, patch)
        else:
            raise InvalidResourceError(f"Expected a Resource or mapping patch, got {type(patch).__name__}")
        resource.bump(spec_changed)
        self._sync(resource)
        self._emit(ChangeType.MODIFIED, resource)
        return resource

    def commit(self, resource: Resource) -> bool:
        """Publish in-place changes to a stored resource.

        Re-syncs indices and owner edges, then emits ``modified`` if the
        resource version moved since its last notification. Returns False
        when the resource is no longer stored.
        """
        if self._resources.get(resource.uid) is not resource:
            return False
        self._sync(resource)
        if self._emitted_versions.get(resource.uid) != resource.metadata.resource_version:
            self._emit(ChangeType.MODIFIED, resource, deletion_pending=resource.is_deleting)
        return True

    def remove(self, uid: str) -> bool:
        """Delete *uid* and its descendants, or soft-delete while finalizers remain.

        Returns False when *uid* is unknown.
        """
        resource = self._resources.get(uid)
        if resource is None:
            return False
        if resource.metadata.finalizers:
            self._soft_delete(resource)
            return True
        self._remove_tree(resource)
        return True

    def remove_finalizer(self, uid: str, name: str) -> bool:
        """Clear one finalizer; completes a pending deletion once none remain."""
        resource = self._resources.get(uid)
        if resource is None or not resource.remove_finalizer(name):
            return False
        if resource.is_deleting and not resource.metadata.finalizers:
            self._remove_tree(resource)
        else:
            self.commit(resource)
        return True

    def add_relationship(self, parent_uid: str, child_uid: str) -> bool:
        parent = self._resources.get(parent_uid)
        child = self._resources.get(child_uid)
        if parent is None or child is None:
            return False
        child.add_owner_reference(parent)
        self.commit(child)
        return True

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, uid: str) -> Resource | None:
        return self._resources.get(uid)

    def get_by_name(self, kind: Kind | str, name: str, namespace: str = "default") -> Resource | None:
        kind = Kind(kind)
        if kind in CLUSTER_SCOPED:
            namespace = ""
        uid = self._by_name.get((kind, namespace, name))
        return self._resources.get(uid) if uid else None

    def by_kind(self, kind: Kind | str) -> list[Resource]:
        return self._materialise(self._by_kind.get(Kind(kind), {}))

    def by_namespace(self, namespace: str) -> list[Resource]:
        return self._materialise(self._by_namespace.get(namespace, {}))

    def by_labels(self, selector: Mapping[str, str] | None) -> list[Resource]:
        """Resources carrying every label in *selector*; empty matches all."""
        if not selector:
            return list(self._resources.values())
        buckets = [self._by_label.get((k, v), {}) for k, v in selector.items()]
        smallest = min(buckets, key=len)
        return [self._resources[uid] for uid in smallest if all(uid in b for b in buckets)]

    def query(self, filter: QueryFilter | None = None, **criteria: Any) -> list[Resource]:
        """Filter resources; keyword criteria build a ``QueryFilter``."""
        flt = filter or QueryFilter(**criteria)
        if flt.kind is not None and flt.namespace is not None:
            ns_bucket = self._by_namespace.get(flt.namespace, {})
            candidates = [r for r in self.by_kind(flt.kind) if r.uid in ns_bucket]
        elif flt.kind is not None:
            candidates = self.by_kind(flt.kind)
        elif flt.namespace is not None:
            candidates = self.by_namespace(flt.namespace)
        elif flt.selector:
            candidates = self.by_labels(flt.selector)
        else:
            candidates = list(self._resources.values())
        return flt.apply(candidates)

    def select(self, kind: Kind | str, namespace: str, selector: Mapping[str, str]) -> list[Resource]:
        """Resources of *kind* in *namespace* matching *selector*."""
        return self.query(kind=kind, namespace=namespace, selector=selector)

    def pods_for_service(self, service: Resource) -> list[Resource]:
        if not service.spec.selector:
            return []
        return self.select(Kind.POD, service.namespace, service.spec.selector)

    def services_for_pod(self, pod: Resource) -> list[Resource]:
        return [
            svc
            for svc in self.query(kind=Kind.SERVICE, namespace=pod.namespace)
            if svc.spec.selector and pod.matches_selector(svc.spec.selector)
        ]

    # ------------------------------------------------------------------
    # Graph traversal
    # ------------------------------------------------------------------

    def children(self, uid: str) -> list[Resource]:
        return self._materialise(self._graph.children(uid))

    def parents(self, uid: str) -> list[Resource]:
        return self._materialise(self._graph.parents(uid))

    def descendants(self, uid: str, max_depth: int | None = None) -> list[Resource]:
        return self._materialise(self._graph.descendants(uid, max_depth).uids)

    def owner_chain(self, uid: str) -> list[Resource]:
        """The resource followed by its controller owners up to the root."""
        resource = self._resources.get(uid)
        chain: list[Resource] = []
        seen: set[str] = set()
        while resource is not None and resource.uid not in seen:
            chain.append(resource)
            seen.add(resource.uid)
            owner_ref = resource.controller_owner()
            resource = self._resources.get(owner_ref.uid) if owner_ref else None
        return chain

    def owned(self, owner: Resource, kind: Kind | None = None) -> list[Resource]:
        """Children of *owner* (optionally of one kind) that it controls."""
        return [
            child
            for child in self.children(owner.uid)
            if (kind is None or child.kind == kind) and _is_controlled_by(child, owner)
        ]

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    @property
    def in_batch(self) -> bool:
        return self._batch_depth > 0

    def start_batch(self) -> None:
        self._batch_depth += 1

    def flush_batch(self) -> None:
        if self._batch_depth == 0:
            return
        self._batch_depth -= 1
        if self._batch_depth:
            return
        pending = self._pending
        self._pending = []
        self._pending_index = {}
        for entry in pending:
            self._publish(entry.topic, entry.payload)
        cluster_resources.set(len(self._resources))

    @contextmanager
    def batch(self) -> Iterator[None]:
        self.start_batch()
        try:
            yield
        finally:
            self.flush_batch()

    # ------------------------------------------------------------------
    # Quota and statistics
    # ------------------------------------------------------------------

    def set_resource_quota(self, namespace: str, hard: QuotaSpec | Mapping[str, Any]) -> QuotaSpec:
        spec = hard if isinstance(hard, QuotaSpec) else _quota_from_mapping(hard)
        self._quotas[namespace] = spec
        return spec

    def get_resource_quota(self, namespace: str) -> QuotaSpec | None:
        return self._quotas.get(namespace)

    def quota_namespaces(self) -> list[str]:
        return list(self._quotas)

    def quota_usage(self, namespace: str) -> QuotaUsage:
        return quota_rules.compute_usage(self.query(kind=Kind.POD, namespace=namespace))

    def check_quota(
        self, namespace: str, cpu: float = 0.0, memory: float = 0.0, pods: int = 0
    ) -> QuotaCheckResult:
        return quota_rules.evaluate(self._quotas.get(namespace), self.quota_usage(namespace), cpu, memory, pods)

    def node_allocation(self, node_name: str) -> NodeAllocation | None:
        node = self.get_by_name(Kind.NODE, node_name)
        if node is None:
            return None
        cpu = 0.0
        memory = 0.0
        count = 0
        for pod in self.by_kind(Kind.POD):
            if pod.spec.node_name != node_name or not is_active_pod(pod):
                continue
            requests = pod.spec.requests()
            cpu += requests.cpu
            memory += requests.memory
            count += 1
        capacity = node.spec.capacity
        return NodeAllocation(node_name, capacity.cpu, capacity.memory, cpu, memory, count)

    def cluster_stats(self) -> ClusterStats:
        nodes = self.by_kind(Kind.NODE)
        pods = self.by_kind(Kind.POD)
        deployments = self.by_kind(Kind.DEPLOYMENT)

        by_phase: dict[str, int] = {}
        for pod in pods:
            phase = str(pod.status.phase)
            by_phase[phase] = by_phase.get(phase, 0) + 1

        cpu_total = sum(node.spec.capacity.cpu for node in nodes)
        memory_total = sum(node.spec.capacity.memory for node in nodes)
        node_names = {node.name for node in nodes}
        cpu_used = 0.0
        memory_used = 0.0
        for pod in pods:
            if pod.spec.node_name in node_names and is_active_pod(pod):
                requests = pod.spec.requests()
                cpu_used += requests.cpu
                memory_used += requests.memory

        return ClusterStats(
            nodes_total=len(nodes),
            nodes_ready=sum(1 for node in nodes if is_node_ready(node)),
            pods_total=len(pods),
            pods_by_phase=by_phase,
            deployments_total=len(deployments),
            deployments_available=sum(1 for d in deployments if d.is_condition_true("Available")),
            services=len(self._by_kind.get(Kind.SERVICE, {})),
            namespaces=len(self._by_kind.get(Kind.NAMESPACE, {})),
            resources=len(self._resources),
            cpu=ResourceTotals(total=cpu_total, used=cpu_used),
            memory=ResourceTotals(total=memory_total, used=memory_used),
        )

    # ------------------------------------------------------------------
    # Snapshot / restore
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "timestamp": self.now(),
            "resourceCount": len(self._resources),
            "resources": {uid: resource.to_dict() for uid, resource in self._resources.items()},
            "quotas": {ns: dataclasses.asdict(spec) for ns, spec in self._quotas.items()},
        }

    def restore(self, snapshot: Mapping[str, Any]) -> int:
        """Replace the store contents with *snapshot*.

        Indices and owner edges are rebuilt from each resource's own
        metadata, so the order of entries in the snapshot does not matter.
        """
        entries = snapshot.get("resources")
        if not isinstance(entries, Mapping):
            raise ValueError("Snapshot is missing its 'resources' map")
        restored = [Resource.from_dict(data) for data in entries.values()]
        for uid, resource in zip(entries, restored, strict=True):
            resource.metadata.uid = uid

        self._reset_state()
        for resource in restored:
            self._insert(resource)
        for ns, hard in (snapshot.get("quotas") or {}).items():
            self._quotas[ns] = _quota_from_mapping(hard)

        _log.info("store_restored", resources=len(restored))
        self._publish(Topic.CLUSTER_RESET, ClusterReset(sim_time=self.now()))
        cluster_resources.set(len(self._resources))
        return len(restored)

    def clear(self, seed_namespaces: bool = True) -> None:
        self._reset_state()
        if seed_namespaces:
            self._seed_namespaces(notify=False)
        _log.info("store_cleared")
        self._publish(Topic.CLUSTER_RESET, ClusterReset(sim_time=self.now()))
        cluster_resources.set(len(self._resources))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _seed_namespaces(self, notify: bool = True) -> None:
        for name in DEFAULT_NAMESPACES:
            namespace = new_resource(
                Kind.NAMESPACE, name, labels={"kubernetes.io/metadata.name": name}, now=self.now()
            )
            self._insert(namespace)
            if notify:
                self._emit(ChangeType.ADDED, namespace)

    def _reset_state(self) -> None:
        self._resources.clear()
        self._by_kind.clear()
        self._by_namespace.clear()
        self._by_name.clear()
        self._by_label.clear()
        self._indexed_labels.clear()
        self._graph.clear()
        self._quotas.clear()
        self._pending.clear()
        self._pending_index.clear()
        self._emitted_versions.clear()

    def _insert(self, resource: Resource) -> None:
        key = (resource.kind, resource.namespace, resource.name)
        existing = self._by_name.get(key)
        if existing is not None and existing != resource.uid:
            raise ResourceConflictError(f"{resource.ref()} already exists")
        self._resources[resource.uid] = resource
        self._by_kind.setdefault(resource.kind, {})[resource.uid] = None
        self._by_namespace.setdefault(resource.namespace, {})[resource.uid] = None
        self._by_name[key] = resource.uid
        self._index_labels(resource)
        for ref in resource.metadata.owner_references:
            self._graph.add_edge(ref.uid, resource.uid)

    def _sync(self, resource: Resource) -> None:
        if self._indexed_labels.get(resource.uid) != resource.metadata.labels:
            self._unindex_labels(resource.uid)
            self._index_labels(resource)
        wanted = {ref.uid for ref in resource.metadata.owner_references}
        for parent in self._graph.parents(resource.uid):
            if parent not in wanted:
                self._graph.remove_edge(parent, resource.uid)
        for parent in wanted:
            self._graph.add_edge(parent, resource.uid)

    def _index_labels(self, resource: Resource) -> None:
        labels = dict(resource.metadata.labels)
        for pair in labels.items():
            self._by_label.setdefault(pair, {})[resource.uid] = None
        self._indexed_labels[resource.uid] = labels

    def _unindex_labels(self, uid: str) -> None:
        for pair in self._indexed_labels.pop(uid, {}).items():
            _discard(self._by_label, pair, uid)

    def _replace(self, resource: Resource, incoming: Resource) -> bool:
        if (incoming.kind, incoming.namespace, incoming.name) != (resource.kind, resource.namespace, resource.name):
            raise ResourceConflictError(f"Cannot replace {resource.ref()} with {incoming.ref()}")
        meta = resource.metadata
        meta.labels = dict(incoming.metadata.labels)
        meta.annotations = dict(incoming.metadata.annotations)
        meta.owner_references = [dataclasses.replace(r) for r in incoming.metadata.owner_references]
        meta.finalizers = list(incoming.metadata.finalizers)
        spec_changed = incoming.spec != resource.spec
        if spec_changed:
            resource.spec = _copy_value(incoming.spec)
        if incoming.status is not resource.status:
            new_phase = incoming.status.phase
            status = _copy_value(incoming.status)
            status.phase = resource.status.phase
            resource.status = status
            resource.set_phase(new_phase, self.now())
        return spec_changed

    def _merge(self, resource: Resource, patch: Mapping[str, Any]) -> bool:
        unknown = set(patch) - _PATCH_KEYS
        if unknown:
            raise ValueError(f"Unknown patch section(s): {sorted(unknown)}")

        meta_patch = patch.get("metadata") or {}
        for section in ("labels", "annotations"):
            if section in meta_patch:
                target = getattr(resource.metadata, section)
                for key, value in (meta_patch[section] or {}).items():
                    if value is None:
                        target.pop(key, None)
                    else:
                        target[key] = str(value)

        spec_changed = False
        if patch.get("spec"):
            new_spec = _merged(resource.spec, patch["spec"], "spec")
            if new_spec != resource.spec:
                resource.spec = new_spec
                spec_changed = True

        if patch.get("status"):
            new_status = _merged(resource.status, patch["status"], "status")
            new_phase = new_status.phase
            new_status.phase = resource.status.phase
            resource.status = new_status
            resource.set_phase(new_phase, self.now())
        return spec_changed

    def _soft_delete(self, resource: Resource) -> None:
        resource.mark_for_deletion(self.now())
        _log.debug("resource_deletion_pending", kind=resource.kind.value, name=resource.name)
        self._emit(ChangeType.MODIFIED, resource, deletion_pending=True)

    def _remove_tree(self, root: Resource) -> None:
        """Remove *root* and every descendant without finalizers, children first.

        Each uid is visited once, so an owner cycle cannot loop.
        """
        doomed: list[Resource] = []
        seen = {root.uid}
        stack = [root]
        while stack:
            resource = stack.pop()
            doomed.append(resource)
            for child_uid in self._graph.children(resource.uid):
                child = self._resources.get(child_uid)
                if child is None or child_uid in seen:
                    continue
                seen.add(child_uid)
                if child.metadata.finalizers:
                    self._soft_delete(child)
                else:
                    stack.append(child)
        for resource in reversed(doomed):
            self._drop(resource)

    def _drop(self, resource: Resource) -> None:
        uid = resource.uid
        self._resources.pop(uid, None)
        _discard(self._by_kind, resource.kind, uid)
        _discard(self._by_namespace, resource.namespace, uid)
        key = (resource.kind, resource.namespace, resource.name)
        if self._by_name.get(key) == uid:
            del self._by_name[key]
        self._unindex_labels(uid)
        self._graph.remove_node(uid)
        _log.debug("resource_deleted", kind=resource.kind.value, name=resource.name, namespace=resource.namespace)
        self._emit(ChangeType.DELETED, resource)
        self._emitted_versions.pop(uid, None)

    def _emit(self, change: ChangeType, resource: Resource, deletion_pending: bool = False) -> None:
        payload = ResourceChange(
            change=change,
            kind=resource.kind.value,
            name=resource.name,
            namespace=resource.namespace,
            uid=resource.uid,
            resource_version=resource.metadata.resource_version,
            sim_time=self.now(),
            deletion_pending=deletion_pending,
            resource=resource,
        )
        self._emitted_versions[resource.uid] = resource.metadata.resource_version
        topic = _CHANGE_TOPICS[change]
        if not self._batch_depth:
            self._publish(topic, payload)
            return

        index = self._pending_index.get(resource.uid)
        if change is ChangeType.MODIFIED and index is not None:
            earlier = self._pending[index].payload
            self._pending[index].payload = dataclasses.replace(
                earlier,
                resource_version=payload.resource_version,
                sim_time=payload.sim_time,
                deletion_pending=deletion_pending or earlier.deletion_pending,
            )
            return
        self._pending.append(_Pending(topic, payload))
        if change is ChangeType.DELETED:
            self._pending_index.pop(resource.uid, None)
        else:
            self._pending_index[resource.uid] = len(self._pending) - 1

    def _publish(self, topic: Topic, payload: Any) -> None:
        if self._bus is None:
            return
        qualifier = payload.kind if isinstance(payload, ResourceChange) else None
        self._bus.publish(topic, payload, qualifier=qualifier)

    def _materialise(self, uids: Any) -> list[Resource]:
        resources = self._resources
        return [resources[uid] for uid in uids if uid in resources]


def _merged(current: Any, patch: Mapping[str, Any], path: str) -> Any:
    """Shallow-merge wire *patch* keys over *current* and re-validate."""
    cls = type(current)
    data = encode(current)
    for key, value in patch.items():
        data[wire_name(cls, key)] = value
    return decode(cls, data, path)


def _copy_value(value: Any) -> Any:
    """Value copy of a spec/status dataclass via its wire form."""
    return decode(type(value), encode(value))


def _is_controlled_by(child: Resource, owner: Resource) -> bool:
    ref = child.controller_owner()
    return ref is not None and ref.uid == owner.uid


def _quota_from_mapping(hard: Mapping[str, Any]) -> QuotaSpec:
    """Accept ResourceQuota keys (``requests.cpu``, ``limits.memory``) or snapshot keys."""

    def pick(*keys: str) -> Any:
        for key in keys:
            if hard.get(key) is not None:
                return hard[key]
        return None

    cpu = pick("cpu", "requests.cpu")
    memory = pick("memory", "requests.memory")
    pods = pick("pods")
    limits_cpu = pick("limits.cpu", "limits_cpu", "limitsCpu")
    limits_memory = pick("limits.memory", "limits_memory", "limitsMemory")
    return QuotaSpec(
        cpu=parse_cpu(cpu) if cpu is not None else None,
        memory=parse_memory(memory) if memory is not None else None,
        pods=int(pods) if pods is not None else None,
        limits_cpu=parse_cpu(limits_cpu) if limits_cpu is not None else None,
        limits_memory=parse_memory(limits_memory) if limits_memory is not None else None,
    )


def _discard(table: dict[Any, dict[str, None]], key: Any, uid: str) -> None:
    bucket = table.get(key)
    if bucket is None:
        return
    bucket.pop(uid, None)
    if not bucket:
        del table[key]


__all__ = [
    "DEFAULT_NAMESPACES",
    "ClusterStore",
    "InvalidResourceError",
    "ResourceConflictError",
]
