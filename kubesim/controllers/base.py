"""Base class and shared helpers for workload controllers.

Controllers are stateless between ticks: everything they need is read from
the store through ``ReconcileContext`` and written back with
``ClusterStore.commit``. Children are created with an owner reference so
cascade deletion and traversals work without controller bookkeeping.
"""

from __future__ import annotations

import copy
import hashlib
import json
import random
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass

from kubesim.models.codec import encode
from kubesim.models.config import KubeSimConfig
from kubesim.models.events import EventType
from kubesim.models.resources import (
    Kind,
    PodPhase,
    PodTemplate,
    Resource,
    is_active_pod,
    new_resource,
)
from kubesim.notifications import EventBus
from kubesim.store import ClusterStore

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class ReconcileContext:
    """Everything a controller may touch during one tick."""

    now: float
    dt: float
    tick: int
    store: ClusterStore
    rng: random.Random
    bus: EventBus
    config: KubeSimConfig


class Controller(ABC):
    """Reconciles every live resource of one kind, once per invocation."""

    kind: Kind
    display_name: str = ""

    def run(self, ctx: ReconcileContext) -> None:
        for resource in ctx.store.by_kind(self.kind):
            if resource.is_deleting or resource.uid not in ctx.store:
                continue
            self.reconcile(resource, ctx)
            ctx.store.commit(resource)

    @abstractmethod
    def reconcile(self, resource: Resource, ctx: ReconcileContext) -> None:
        """Drive *resource* one step toward its desired state."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def random_suffix(rng: random.Random, length: int = 5) -> str:
    return "".join(rng.choice(_SUFFIX_ALPHABET) for _ in range(length))


def pod_template_hash(template: PodTemplate) -> str:
    """Stable short hash of a pod template, used to name ReplicaSets."""
    payload = json.dumps(encode(template), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()[:10]


def workload_selector(resource: Resource) -> dict[str, str]:
    """The selector a workload uses; falls back to its template labels."""
    selector = resource.spec.selector.match_labels
    if selector:
        return dict(selector)
    return dict(resource.spec.template.metadata.labels) or dict(resource.labels)


def owned_pods(ctx: ReconcileContext, owner: Resource) -> list[Resource]:
    return ctx.store.owned(owner, Kind.POD)


def live_pods(pods: list[Resource]) -> list[Resource]:
    """Pods that count toward replicas: non-terminal and not being deleted."""
    return [pod for pod in pods if is_active_pod(pod) and not pod.is_deleting]


def create_pod(
    ctx: ReconcileContext,
    owner: Resource,
    template: PodTemplate,
    name: str | None = None,
    *,
    node_name: str = "",
    restart_policy: str | None = None,
    extra_labels: dict[str, str] | None = None,
) -> Resource | None:
    """Stamp a pod from *template*, owned by *owner*.

    Returns None when an explicit *name* is already taken; generated names
    are retried until free.
    """
    store = ctx.store
    if name is None:
        name = f"{owner.name}-{random_suffix(ctx.rng)}"
        while store.get_by_name(Kind.POD, name, owner.namespace) is not None:
            name = f"{owner.name}-{random_suffix(ctx.rng)}"
    elif store.get_by_name(Kind.POD, name, owner.namespace) is not None:
        return None

    spec = copy.deepcopy(template.spec)
    if node_name:
        spec.node_name = node_name
    if restart_policy is not None:
        spec.restart_policy = restart_policy
    labels = dict(template.metadata.labels) or dict(owner.labels)
    labels.update(extra_labels or {})

    pod = new_resource(
        Kind.POD,
        name,
        owner.namespace,
        spec=spec,
        labels=labels,
        annotations=template.metadata.annotations,
    )
    pod.add_owner_reference(owner)
    store.add(pod)
    owner.record_event(EventType.NORMAL, "SuccessfulCreate", f"Created pod: {name}", ctx.now)
    return pod


def collect_failed(ctx: ReconcileContext, pods: list[Resource]) -> int:
    """Garbage-collect failed pods so their controller replaces them."""
    removed = 0
    for pod in pods:
        if pod.status.phase == PodPhase.FAILED and ctx.store.remove(pod.uid):
            removed += 1
    return removed


def pending_first_newest(pods: list[Resource]) -> list[Resource]:
    """Scale-down victim order: Pending pods first, then newest first."""
    return sorted(
        pods,
        key=lambda p: (p.status.phase != PodPhase.PENDING, -p.metadata.creation_timestamp, p.name),
    )
