"""Incident data types: catalog definitions and live incident state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from kubesim.models.resources import Kind


class IncidentState(StrEnum):
    CREATED = "Created"
    ACTIVE = "Active"
    INVESTIGATING = "Investigating"
    RESOLVED = "Resolved"


class IncidentCategory(StrEnum):
    POD = "Pod"
    NODE = "Node"
    NETWORK = "Network"
    STORAGE = "Storage"
    CONTROL_PLANE = "ControlPlane"
    WORKLOAD = "Workload"


class SpawnSource(StrEnum):
    SCRIPTED = "scripted"
    RANDOM = "random"
    CASCADE = "cascade"
    MANUAL = "manual"


SEVERITY_NAMES: dict[int, str] = {
    1: "Low",
    2: "Medium",
    3: "High",
    4: "Critical",
    5: "Emergency",
}


def check_severity(severity: int) -> int:
    """Return *severity* if it is a catalog level (1..5), else raise ValueError."""
    if isinstance(severity, bool) or severity not in SEVERITY_NAMES:
        raise ValueError(f"Incident severity must be 1..5, got {severity!r}")
    return severity


# ---------------------------------------------------------------------------
# Catalog types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvestigationStep:
    command: str
    hint: str


@dataclass(frozen=True)
class ResolutionAction:
    action: str
    label: str
    difficulty: int = 1


@dataclass(frozen=True)
class IncidentDefinition:
    """A catalog entry describing one kind of failure."""

    id: str
    name: str
    category: IncidentCategory
    severity: int
    description: str
    visual_effect: str
    affected_kinds: tuple[Kind, ...]
    investigation_steps: tuple[InvestigationStep, ...] = ()
    resolution_actions: tuple[ResolutionAction, ...] = ()
    kubectl_commands: tuple[str, ...] = ()
    auto_resolve_seconds: float | None = None

    def __post_init__(self) -> None:
        check_severity(self.severity)


@dataclass(frozen=True)
class CascadeRule:
    """A parent incident may spawn *child* after *delay* simulated seconds."""

    parent: str
    child: str
    probability: float
    delay: float
    severity: int

    def __post_init__(self) -> None:
        check_severity(self.severity)


@dataclass(frozen=True)
class ScriptedIncident:
    """One entry of the pre-loaded scenario queue.

    ``type`` is a definition id or name; ``trigger_time`` is an offset in
    simulated seconds from the start of the incident engine.
    """

    type: str
    trigger_time: float
    target: str | None = None
    severity: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, str):
            raise ValueError(f"Scripted incident type must be a string, got {self.type!r}")
        if self.severity is not None:
            check_severity(self.severity)


# ---------------------------------------------------------------------------
# Live state
# ---------------------------------------------------------------------------


@dataclass
class StepState:
    command: str
    hint: str
    completed: bool = False


@dataclass
class Incident:
    id: str
    definition: IncidentDefinition
    severity: int
    target: str
    created_at: float
    state: IncidentState = IncidentState.CREATED
    steps: list[StepState] = field(default_factory=list)
    cascade_parent: str | None = None
    cascade_children: list[str] = field(default_factory=list)
    depth: int = 0
    activated_at: float | None = None
    resolved_at: float | None = None
    resolution_action: str = ""
    auto_resolved: bool = False

    @property
    def definition_id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def is_resolved(self) -> bool:
        return self.state == IncidentState.RESOLVED

    @property
    def progress(self) -> float:
        """Fraction of investigation steps completed."""
        if not self.steps:
            return 0.0
        return sum(1 for step in self.steps if step.completed) / len(self.steps)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "definitionId": self.definition.id,
            "name": self.definition.name,
            "category": str(self.definition.category),
            "severity": self.severity,
            "severityName": SEVERITY_NAMES[self.severity],
            "state": str(self.state),
            "target": self.target,
            "description": self.definition.description,
            "visualEffect": self.definition.visual_effect,
            "investigationSteps": [
                {"command": step.command, "hint": step.hint, "completed": step.completed} for step in self.steps
            ],
            "resolutionActions": [
                {"action": a.action, "label": a.label, "difficulty": a.difficulty}
                for a in self.definition.resolution_actions
            ],
            "kubectlCommands": list(self.definition.kubectl_commands),
            "progress": self.progress,
            "cascadeParent": self.cascade_parent,
            "cascadeChildren": list(self.cascade_children),
            "createdAt": self.created_at,
            "activatedAt": self.activated_at,
            "resolvedAt": self.resolved_at,
            "resolutionAction": self.resolution_action,
            "autoResolved": self.auto_resolved,
        }


@dataclass(frozen=True)
class ResolutionResult:
    xp: int
    combo: int
    resolution_time: float
    cascade_children_remaining: tuple[str, ...] = ()
