"""Incident / cascade engine.

Exports:
    IncidentEngine      -- Spawns, cascades, investigates and resolves incidents.
    Incident            -- Live incident state.
    IncidentDefinition  -- Catalog entry.
    CascadeRule         -- Parent -> child rule with probability and delay.
    ScriptedIncident    -- Entry of the pre-loaded scenario queue.
"""

from __future__ import annotations

from kubesim.incidents.catalog import CASCADE_RULES, INCIDENT_DEFINITIONS, SEVERITY_XP, find_definition
from kubesim.incidents.engine import IncidentEngine
from kubesim.incidents.models import (
    CascadeRule,
    Incident,
    IncidentCategory,
    IncidentDefinition,
    IncidentState,
    ResolutionResult,
    ScriptedIncident,
    SpawnSource,
)

__all__ = [
    "CASCADE_RULES",
    "INCIDENT_DEFINITIONS",
    "SEVERITY_XP",
    "CascadeRule",
    "Incident",
    "IncidentCategory",
    "IncidentDefinition",
    "IncidentEngine",
    "IncidentState",
    "ResolutionResult",
    "ScriptedIncident",
    "SpawnSource",
    "find_definition",
]
