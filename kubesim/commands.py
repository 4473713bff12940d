"""Operator command surface.

CommandDispatcher applies kubectl-style commands to the cluster store:
create, delete, scale, apply, cordon, uncordon, drain and rollout
restart/status. Every command returns a ``CommandResult`` and publishes
``command.executed``; a missing target is reported in the result rather
than raised.

Commands arrive either as direct method calls or as plain mappings through
``execute`` (the form the driver queues and the HTTP API posts)::

    {"type": "scale", "kind": "Deployment", "name": "web", "replicas": 5}
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from kubesim.models.events import EventType
from kubesim.models.resources import CLUSTER_SCOPED, Kind, PodPhase, Resource
from kubesim.notifications import EventBus, Topic
from kubesim.notifications.payloads import CommandExecuted
from kubesim.observability.logging import get_logger
from kubesim.store import ClusterStore, ResourceConflictError

_logger = get_logger("commands")

UNSCHEDULABLE_LABEL = "node.kubernetes.io/unschedulable"
RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"

SCALABLE_KINDS = frozenset({Kind.DEPLOYMENT, Kind.REPLICA_SET, Kind.STATEFUL_SET})
ROLLOUT_KINDS = frozenset({Kind.DEPLOYMENT, Kind.STATEFUL_SET, Kind.DAEMON_SET})


@dataclass
class CommandResult:
    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message, "data": self.data}


class CommandDispatcher:
    def __init__(self, store: ClusterStore, bus: EventBus | None = None) -> None:
        self._store = store
        self._bus = bus
        self._handlers: dict[str, Callable[[Mapping[str, Any]], CommandResult]] = {
            "create": self._create_cmd,
            "delete": self._delete_cmd,
            "scale": self._scale_cmd,
            "apply": self._apply_cmd,
            "cordon": lambda c: self.cordon(c["name"]),
            "uncordon": lambda c: self.uncordon(c["name"]),
            "drain": lambda c: self.drain(c["name"], force=bool(c.get("force", False))),
            "rollout": self._rollout_cmd,
        }

    @property
    def command_types(self) -> list[str]:
        return sorted(self._handlers)

    def execute(self, command: Mapping[str, Any]) -> CommandResult:
        """Dispatch a mapping-form command.

        Malformed commands (unknown type, missing fields, invalid spec)
        produce a failed result so a queued command never aborts a tick.
        """
        command_type = str(command.get("type", ""))
        handler = self._handlers.get(command_type)
        if handler is None:
            result = CommandResult(False, f"Unknown command: {command_type!r}")
            return self._finish(command_type or "unknown", "", result)
        try:
            return handler(command)
        except KeyError as exc:
            result = CommandResult(False, f"Missing field {exc.args[0]!r} for {command_type}")
        except (TypeError, ValueError) as exc:
            result = CommandResult(False, f"Invalid {command_type} command: {exc}")
        return self._finish(command_type, str(command.get("name", "")), result)

    # ------------------------------------------------------------------
    # Resource commands
    # ------------------------------------------------------------------

    def create(
        self,
        kind: Kind | str,
        name: str,
        namespace: str = "default",
        spec: Any = None,
        labels: Mapping[str, str] | None = None,
        annotations: Mapping[str, str] | None = None,
    ) -> CommandResult:
        kind = Kind(kind)
        target = _target(kind, name, namespace)
        if self._lookup(kind, name, namespace) is not None:
            result = CommandResult(False, f"{kind} {name!r} already exists{_in(kind, namespace)}")
            return self._finish("create", target, result)
        try:
            resource = self._store.create(
                kind, name, namespace, spec=spec, labels=labels, annotations=annotations
            )
        except ResourceConflictError as exc:
            return self._finish("create", target, CommandResult(False, str(exc)))
        result = CommandResult(True, f"{kind} {name!r} created", {"uid": resource.uid})
        return self._finish("create", target, result)

    def delete(self, kind: Kind | str, name: str, namespace: str = "default") -> CommandResult:
        """Pods are deleted gracefully; other kinds are removed with their dependents."""
        kind = Kind(kind)
        target = _target(kind, name, namespace)
        resource = self._lookup(kind, name, namespace)
        if resource is None:
            return self._finish("delete", target, _not_found(kind, name, namespace))
        if kind == Kind.POD:
            self._mark_for_deletion(resource)
            return self._finish("delete", target, CommandResult(True, f"pod {name!r} terminating", {"graceful": True}))
        self._store.remove(resource.uid)
        return self._finish("delete", target, CommandResult(True, f"{kind} {name!r} deleted"))

    def scale(self, kind: Kind | str, name: str, replicas: int, namespace: str = "default") -> CommandResult:
        kind = Kind(kind)
        target = _target(kind, name, namespace)
        if kind not in SCALABLE_KINDS:
            return self._finish("scale", target, CommandResult(False, f"{kind} does not support scaling"))
        if replicas < 0:
            return self._finish("scale", target, CommandResult(False, f"replicas must be >= 0, got {replicas}"))
        resource = self._lookup(kind, name, namespace)
        if resource is None:
            return self._finish("scale", target, _not_found(kind, name, namespace))
        old = resource.spec.replicas
        self._store.update(resource.uid, {"spec": {"replicas": int(replicas)}})
        result = CommandResult(
            True,
            f"{kind} {name!r} scaled from {old} to {replicas}",
            {"oldReplicas": old, "newReplicas": int(replicas)},
        )
        return self._finish("scale", target, result)

    def apply(
        self,
        kind: Kind | str,
        name: str,
        namespace: str = "default",
        spec: Mapping[str, Any] | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Create the resource, or merge *spec* and *labels* into the existing one."""
        kind = Kind(kind)
        resource = self._lookup(kind, name, namespace)
        if resource is None:
            result = self.create(kind, name, namespace, spec=spec, labels=labels)
            result.data["action"] = "created"
            return result
        patch: dict[str, Any] = {}
        if spec:
            patch["spec"] = dict(spec)
        if labels:
            patch["metadata"] = {"labels": dict(labels)}
        if patch:
            self._store.update(resource.uid, patch)
        result = CommandResult(True, f"{kind} {name!r} configured", {"uid": resource.uid, "action": "updated"})
        return self._finish("apply", _target(kind, name, namespace), result)

    # ------------------------------------------------------------------
    # Node commands
    # ------------------------------------------------------------------

    def cordon(self, name: str) -> CommandResult:
        node = self._store.get_by_name(Kind.NODE, name, "")
        if node is None:
            return self._finish("cordon", name, _not_found(Kind.NODE, name, ""))
        self._set_schedulable(node, False)
        return self._finish("cordon", name, CommandResult(True, f"node {name!r} cordoned"))

    def uncordon(self, name: str) -> CommandResult:
        node = self._store.get_by_name(Kind.NODE, name, "")
        if node is None:
            return self._finish("uncordon", name, _not_found(Kind.NODE, name, ""))
        self._set_schedulable(node, True)
        return self._finish("uncordon", name, CommandResult(True, f"node {name!r} uncordoned"))

    def drain(self, name: str, force: bool = False) -> CommandResult:
        """Cordon the node, then evict its running pods.

        DaemonSet pods stay unless *force* is set.
        """
        node = self._store.get_by_name(Kind.NODE, name, "")
        if node is None:
            return self._finish("drain", name, _not_found(Kind.NODE, name, ""))
        self._set_schedulable(node, False)

        evicted: list[str] = []
        skipped: list[str] = []
        for pod in self._store.by_kind(Kind.POD):
            if pod.spec.node_name != name or pod.status.phase != PodPhase.RUNNING or pod.is_deleting:
                continue
            owner = pod.controller_owner()
            if owner is not None and owner.kind == Kind.DAEMON_SET and not force:
                skipped.append(pod.name)
                continue
            self._mark_for_deletion(pod)
            evicted.append(pod.name)
        message = f"Draining node, evicting {len(evicted)} pods"
        node.record_event(EventType.NORMAL, "NodeDrain", message, self._store.now())
        self._store.commit(node)
        result = CommandResult(
            True,
            f"node {name!r} drained, {len(evicted)} pod(s) evicted",
            {"evictedPods": len(evicted), "evicted": evicted, "skipped": skipped},
        )
        return self._finish("drain", name, result)

    # ------------------------------------------------------------------
    # Rollout
    # ------------------------------------------------------------------

    def rollout_restart(self, kind: Kind | str, name: str, namespace: str = "default") -> CommandResult:
        kind = Kind(kind)
        target = _target(kind, name, namespace)
        if kind not in ROLLOUT_KINDS:
            return self._finish("rollout", target, CommandResult(False, f"{kind} does not support rollout"))
        resource = self._lookup(kind, name, namespace)
        if resource is None:
            return self._finish("rollout", target, _not_found(kind, name, namespace))

        now = self._store.now()
        resource.spec.template.metadata.annotations[RESTARTED_AT_ANNOTATION] = f"{now:.3f}"
        resource.bump(spec_changed=True)
        self._store.commit(resource)
        # Deployments roll through a new ReplicaSet; the other kinds replace their pods in place.
        if kind != Kind.DEPLOYMENT:
            for pod in self._store.owned(resource, Kind.POD):
                self._mark_for_deletion(pod)
        return self._finish("rollout", target, CommandResult(True, f"{kind} {name!r} restarted", {"restartedAt": now}))

    def rollout_status(self, kind: Kind | str, name: str, namespace: str = "default") -> CommandResult:
        kind = Kind(kind)
        target = _target(kind, name, namespace)
        resource = self._lookup(kind, name, namespace)
        if resource is None:
            return self._finish("rollout", target, _not_found(kind, name, namespace))
        status = resource.status
        data = {
            "replicas": getattr(status, "replicas", getattr(status, "desired_number_scheduled", 0)),
            "readyReplicas": getattr(status, "ready_replicas", getattr(status, "number_ready", 0)),
            "availableReplicas": getattr(status, "available_replicas", getattr(status, "number_ready", 0)),
            "updatedReplicas": getattr(status, "updated_replicas", getattr(status, "current_number_scheduled", 0)),
        }
        desired = getattr(resource.spec, "replicas", data["replicas"])
        complete = data["updatedReplicas"] >= desired and data["availableReplicas"] >= desired
        message = (
            f"{kind} {name!r} successfully rolled out"
            if complete
            else f"Waiting for {kind} {name!r} rollout: {data['availableReplicas']} of {desired} available"
        )
        data["complete"] = complete
        return self._finish("rollout", target, CommandResult(True, message, data))

    # ------------------------------------------------------------------
    # Mapping-form adapters
    # ------------------------------------------------------------------

    def _create_cmd(self, command: Mapping[str, Any]) -> CommandResult:
        return self.create(
            command["kind"],
            command["name"],
            command.get("namespace") or "default",
            spec=command.get("spec"),
            labels=command.get("labels"),
            annotations=command.get("annotations"),
        )

    def _delete_cmd(self, command: Mapping[str, Any]) -> CommandResult:
        return self.delete(command["kind"], command["name"], command.get("namespace") or "default")

    def _scale_cmd(self, command: Mapping[str, Any]) -> CommandResult:
        return self.scale(
            command["kind"], command["name"], int(command["replicas"]), command.get("namespace") or "default"
        )

    def _apply_cmd(self, command: Mapping[str, Any]) -> CommandResult:
        return self.apply(
            command["kind"],
            command["name"],
            command.get("namespace") or "default",
            spec=command.get("spec"),
            labels=command.get("labels"),
        )

    def _rollout_cmd(self, command: Mapping[str, Any]) -> CommandResult:
        subcommand = command.get("subcommand", "")
        kind = command.get("kind") or Kind.DEPLOYMENT
        namespace = command.get("namespace") or "default"
        if subcommand == "restart":
            return self.rollout_restart(kind, command["name"], namespace)
        if subcommand == "status":
            return self.rollout_status(kind, command["name"], namespace)
        result = CommandResult(False, f"Unknown rollout subcommand: {subcommand!r}")
        return self._finish("rollout", str(command.get("name", "")), result)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lookup(self, kind: Kind, name: str, namespace: str) -> Resource | None:
        return self._store.get_by_name(kind, name, "" if kind in CLUSTER_SCOPED else namespace)

    def _set_schedulable(self, node: Resource, schedulable: bool) -> None:
        now = self._store.now()
        node.spec.unschedulable = not schedulable
        reason = "NodeSchedulable" if schedulable else "NodeNotSchedulable"
        if schedulable:
            node.labels.pop(UNSCHEDULABLE_LABEL, None)
        else:
            node.labels[UNSCHEDULABLE_LABEL] = "true"
        node.record_event(EventType.NORMAL, reason, f"Node {node.name} status is now: {reason}", now)
        node.bump(spec_changed=True)
        self._store.commit(node)

    def _mark_for_deletion(self, resource: Resource) -> None:
        resource.mark_for_deletion(self._store.now())
        self._store.commit(resource)

    def _finish(self, command: str, target: str, result: CommandResult) -> CommandResult:
        log = _logger.info if result.success else _logger.warning
        log("command_executed", command=command, target=target, success=result.success, message=result.message)
        if self._bus is not None:
            self._bus.publish(
                Topic.COMMAND_EXECUTED,
                CommandExecuted(command=command, target=target, success=result.success, message=result.message),
            )
        return result


def _target(kind: Kind, name: str, namespace: str) -> str:
    if kind in CLUSTER_SCOPED:
        return f"{kind}/{name}"
    return f"{kind}/{namespace}/{name}"


def _in(kind: Kind, namespace: str) -> str:
    return "" if kind in CLUSTER_SCOPED else f" in namespace {namespace!r}"


def _not_found(kind: Kind, name: str, namespace: str) -> CommandResult:
    return CommandResult(False, f"{kind} {name!r} not found{_in(kind, namespace)}")
