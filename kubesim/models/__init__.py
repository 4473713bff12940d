"""Shared data models for the simulation kernel.

Re-exports the most commonly used types for convenience.
"""

from kubesim.models.config import KubeSimConfig
from kubesim.models.events import ChangeType, EventType, ResourceEvent
from kubesim.models.resources import (
    ConcurrencyPolicy,
    ContainerStateKind,
    Kind,
    PodPhase,
    Resource,
    is_active_pod,
    is_pod_ready,
    new_resource,
)

__all__ = [
    "ChangeType",
    "ConcurrencyPolicy",
    "ContainerStateKind",
    "EventType",
    "Kind",
    "KubeSimConfig",
    "PodPhase",
    "Resource",
    "ResourceEvent",
    "is_active_pod",
    "is_pod_ready",
    "new_resource",
]
