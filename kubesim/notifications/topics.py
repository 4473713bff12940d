"""Notification topics and the payload type each one carries."""

from __future__ import annotations

from enum import StrEnum

from kubesim.notifications import payloads as p


class Topic(StrEnum):
    RESOURCE_ADDED = "resource.added"
    RESOURCE_MODIFIED = "resource.modified"
    RESOURCE_DELETED = "resource.deleted"
    CLUSTER_RESET = "cluster.reset"
    TICK_COMPLETED = "engine.tick-completed"
    ENGINE_PAUSED = "engine.paused"
    ENGINE_RESUMED = "engine.resumed"
    TIME_SCALE_CHANGED = "engine.time-scale-changed"
    AUTOSCALER_SCALED = "autoscaler.scaled"
    QUOTA_EXCEEDED = "quota.exceeded"
    CONTAINER_OOM_KILLED = "container.oom-killed"
    CHAOS_POD_KILLED = "chaos.pod-killed"
    CHAOS_NODE_FAILED = "chaos.node-failed"
    INCIDENT_CREATED = "incident.created"
    INCIDENT_ACTIVATED = "incident.activated"
    INCIDENT_INVESTIGATING = "incident.investigating"
    INCIDENT_STEP_COMPLETED = "incident.step-completed"
    INCIDENT_CASCADE = "incident.cascade"
    INCIDENT_RESOLVED = "incident.resolved"
    COMMAND_EXECUTED = "command.executed"
    PREDICATE_SATISFIED = "predicate.satisfied"


TOPIC_PAYLOADS: dict[Topic, type] = {
    Topic.RESOURCE_ADDED: p.ResourceChange,
    Topic.RESOURCE_MODIFIED: p.ResourceChange,
    Topic.RESOURCE_DELETED: p.ResourceChange,
    Topic.CLUSTER_RESET: p.ClusterReset,
    Topic.TICK_COMPLETED: p.TickCompleted,
    Topic.ENGINE_PAUSED: p.EngineStateChanged,
    Topic.ENGINE_RESUMED: p.EngineStateChanged,
    Topic.TIME_SCALE_CHANGED: p.EngineStateChanged,
    Topic.AUTOSCALER_SCALED: p.AutoscalerScaled,
    Topic.QUOTA_EXCEEDED: p.QuotaExceeded,
    Topic.CONTAINER_OOM_KILLED: p.ContainerOOMKilled,
    Topic.CHAOS_POD_KILLED: p.ChaosPodKilled,
    Topic.CHAOS_NODE_FAILED: p.ChaosNodeFailed,
    Topic.INCIDENT_CREATED: p.IncidentChanged,
    Topic.INCIDENT_ACTIVATED: p.IncidentChanged,
    Topic.INCIDENT_INVESTIGATING: p.IncidentChanged,
    Topic.INCIDENT_STEP_COMPLETED: p.IncidentStepCompleted,
    Topic.INCIDENT_CASCADE: p.IncidentCascaded,
    Topic.INCIDENT_RESOLVED: p.IncidentResolved,
    Topic.COMMAND_EXECUTED: p.CommandExecuted,
    Topic.PREDICATE_SATISFIED: p.PredicateSatisfied,
}
