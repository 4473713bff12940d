"""Pydantic request and response models for the KubeSim REST API.

Wire names are camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_COMMAND_TYPES = frozenset({"create", "delete", "scale", "apply", "cordon", "uncordon", "drain", "rollout"})
_ROLLOUT_SUBCOMMANDS = frozenset({"restart", "status"})


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Envelope for every 4xx/5xx response."""

    error: str
    detail: str


class HealthResponse(_Model):
    status: str
    version: str
    sim_time: float
    tick: int
    paused: bool


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class CommandRequest(_Model):
    """A kubectl-style command. ``queue`` defers it to the start of the next tick."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    type: str
    name: str = Field(min_length=1, max_length=253)
    kind: str | None = None
    namespace: str = "default"
    spec: dict[str, Any] | None = None
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None
    replicas: int | None = Field(default=None, ge=0)
    force: bool = False
    subcommand: str | None = None
    queue: bool = False

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in _COMMAND_TYPES:
            raise ValueError(f"unknown command type {value!r}; expected one of {sorted(_COMMAND_TYPES)}")
        return value

    @field_validator("subcommand")
    @classmethod
    def _known_subcommand(cls, value: str | None) -> str | None:
        if value is not None and value not in _ROLLOUT_SUBCOMMANDS:
            raise ValueError(f"unknown rollout subcommand {value!r}")
        return value

    def to_command(self) -> dict[str, Any]:
        """The mapping form accepted by ``CommandDispatcher.execute``."""
        return self.model_dump(exclude={"queue"}, exclude_none=True)


class CommandResponse(_Model):
    success: bool
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    queued: bool = False


# ---------------------------------------------------------------------------
# Incidents
# ---------------------------------------------------------------------------


class ResolveRequest(_Model):
    action: str = Field(default="", max_length=128)


class StepResponse(_Model):
    incident_id: str
    step_index: int
    progress: float


class ResolutionResponse(_Model):
    incident_id: str
    xp: int
    combo: int
    resolution_time: float
    cascade_children_remaining: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Simulation control
# ---------------------------------------------------------------------------


class TimeScaleRequest(_Model):
    scale: float = Field(ge=0.0)


class SimulationStateResponse(_Model):
    paused: bool
    time_scale: float
    sim_time: float
    tick: int
