"""Incident and cascade engine.

Produces incidents from a scripted queue and, in chaos mode, from a
difficulty-weighted random draw. Cascade rules schedule follow-on incidents
on a ``TimerQueue`` keyed to the engine's own elapsed simulated time; a
timer re-checks its parent before spawning and is dropped otherwise.

The engine only reads the cluster store (to pick targets). Every state
change is published on the bus.
"""

from __future__ import annotations

import math
import random
from collections.abc import Iterable, Mapping
from typing import Any

from kubesim.engine.clock import TimerQueue
from kubesim.incidents.catalog import CASCADE_RULES, INCIDENT_DEFINITIONS, find_definition
from kubesim.incidents.models import (
    CascadeRule,
    Incident,
    IncidentDefinition,
    IncidentState,
    ResolutionResult,
    ScriptedIncident,
    SpawnSource,
    StepState,
    check_severity,
)
from kubesim.incidents.scoring import ComboTracker, score_resolution
from kubesim.models.config import IncidentConfig
from kubesim.notifications import EventBus, Topic
from kubesim.notifications.payloads import (
    IncidentCascaded,
    IncidentChanged,
    IncidentResolved,
    IncidentStepCompleted,
)
from kubesim.observability.logging import get_logger
from kubesim.observability.metrics import (
    active_incidents,
    incident_cascades_total,
    incidents_resolved_total,
    incidents_spawned_total,
)
from kubesim.store import ClusterStore

_logger = get_logger("incidents.engine")

UNKNOWN_TARGET = "unknown"
_BASE_SPAWN_INTERVAL = 15.0
_MIN_SPAWN_INTERVAL = 3.0
_BASE_CONCURRENT_LIMIT = 5


def max_severity_for(level: int) -> int:
    return min(5, math.ceil(level / 2))


def definition_weight(level: int, severity: int) -> int:
    if level >= severity * 2:
        return 3
    if level >= severity:
        return 2
    return 1


def spawn_probability(level: int, dt: float) -> float:
    return dt / max(_MIN_SPAWN_INTERVAL, _BASE_SPAWN_INTERVAL - 1.2 * level)


class IncidentEngine:
    def __init__(
        self,
        store: ClusterStore,
        bus: EventBus,
        rng: random.Random,
        config: IncidentConfig | None = None,
        definitions: Iterable[IncidentDefinition] = INCIDENT_DEFINITIONS,
        cascade_rules: Iterable[CascadeRule] = CASCADE_RULES,
    ) -> None:
        self._store = store
        self._bus = bus
        self._rng = rng
        self._config = config or IncidentConfig()
        self._definitions = tuple(definitions)
        self._rules: list[CascadeRule] = list(cascade_rules)
        self._timers = TimerQueue()
        self._combo = ComboTracker(window=self._config.combo_window_seconds)
        self._incidents: dict[str, Incident] = {}
        self._scripted: list[ScriptedIncident] = []
        self._scripted_index = 0
        self._counter = 0
        self._elapsed = 0.0
        self._difficulty = 1
        self._total_xp = 0
        self._paused = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def difficulty(self) -> int:
        return self._difficulty

    @property
    def combo(self) -> int:
        return self._combo.count

    @property
    def total_xp(self) -> int:
        return self._total_xp

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, dt: float = 1.0) -> None:
        if self._paused:
            return
        self._elapsed += dt
        self._timers.run_due(self._elapsed)
        self._fire_scripted()
        self._auto_resolve()
        self._activate_created()
        if self._config.random_spawning:
            self._random_spawn(dt)
        active_incidents.set(len(self.unresolved()))

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def reset(self) -> None:
        """Drop every incident and timer; the scripted queue is re-armed."""
        self._timers.clear()
        self._incidents.clear()
        self._combo.reset()
        self._scripted_index = 0
        self._counter = 0
        self._elapsed = 0.0
        self._difficulty = 1
        self._total_xp = 0
        self._paused = False
        active_incidents.set(0)

    # ------------------------------------------------------------------
    # Scripted queue
    # ------------------------------------------------------------------

    def load_scripted(self, entries: Iterable[ScriptedIncident | Mapping[str, Any]]) -> int:
        """Replace the scripted queue; malformed entries and unknown types are dropped."""
        queue: list[ScriptedIncident] = []
        for entry in entries:
            if isinstance(entry, Mapping):
                try:
                    entry = ScriptedIncident(
                        type=entry["type"],
                        trigger_time=float(entry.get("triggerTime", entry.get("trigger_time", 0.0))),
                        target=entry.get("target"),
                        severity=entry.get("severity"),
                    )
                except (KeyError, TypeError, ValueError) as exc:
                    _logger.warning("scripted_incident_invalid", entry=dict(entry), error=str(exc))
                    continue
            elif not isinstance(entry, ScriptedIncident):
                _logger.warning("scripted_incident_invalid", entry=repr(entry), error="expected an object")
                continue
            if self._definition(entry.type) is None:
                _logger.warning("scripted_incident_unknown", type=entry.type)
                continue
            queue.append(entry)
        queue.sort(key=lambda e: e.trigger_time)
        self._scripted = queue
        self._scripted_index = 0
        return len(queue)

    def _fire_scripted(self) -> None:
        while self._scripted_index < len(self._scripted):
            entry = self._scripted[self._scripted_index]
            if entry.trigger_time > self._elapsed:
                return
            self._scripted_index += 1
            self.spawn(entry.type, entry.target, entry.severity, source=SpawnSource.SCRIPTED)

    # ------------------------------------------------------------------
    # Spawning and cascades
    # ------------------------------------------------------------------

    def add_cascade_rule(self, rule: CascadeRule) -> None:
        self._rules.append(rule)

    def spawn(
        self,
        definition: str | IncidentDefinition,
        target: str | None = None,
        severity: int | None = None,
        *,
        source: SpawnSource = SpawnSource.MANUAL,
        parent: Incident | None = None,
    ) -> Incident | None:
        """Create an incident in state Created; returns None for an unknown definition.

        Raises ValueError when *severity* is given and is not 1..5.
        """
        if severity is not None:
            check_severity(severity)
        if isinstance(definition, str):
            resolved = self._definition(definition)
            if resolved is None:
                return None
            definition = resolved

        self._counter += 1
        incident = Incident(
            id=f"inc-{self._counter}",
            definition=definition,
            severity=definition.severity if severity is None else severity,
            target=target or self._pick_target(definition),
            created_at=self._elapsed,
            steps=[StepState(step.command, step.hint) for step in definition.investigation_steps],
        )
        if parent is not None:
            incident.cascade_parent = parent.id
            incident.depth = parent.depth + 1
            parent.cascade_children.append(incident.id)
        self._incidents[incident.id] = incident

        incidents_spawned_total.labels(source=str(source)).inc()
        active_incidents.set(len(self.unresolved()))
        _logger.info(
            "incident_spawned",
            incident=incident.id,
            definition=definition.id,
            severity=incident.severity,
            target=incident.target,
            source=str(source),
        )
        self._publish_change(Topic.INCIDENT_CREATED, incident)
        if parent is not None:
            incident_cascades_total.inc()
            self._bus.publish(
                Topic.INCIDENT_CASCADE,
                IncidentCascaded(
                    parent_id=parent.id,
                    child_id=incident.id,
                    parent_name=parent.name,
                    child_name=incident.name,
                    depth=incident.depth,
                    sim_time=self._elapsed,
                ),
            )
        self._sample_cascades(incident)
        return incident

    def _sample_cascades(self, incident: Incident) -> None:
        if incident.depth >= self._config.max_cascade_depth:
            return
        for rule in self._rules:
            if rule.parent not in (incident.name, incident.definition_id):
                continue
            if self._rng.random() >= rule.probability:
                continue
            self._timers.schedule(
                self._elapsed + rule.delay,
                self._cascade_callback(incident.id, rule),
                label=f"{incident.id}->{rule.child}",
            )

    def _cascade_callback(self, parent_id: str, rule: CascadeRule):
        def _fire() -> None:
            parent = self._incidents.get(parent_id)
            if self._paused or parent is None or parent.is_resolved:
                return
            self.spawn(rule.child, parent.target, rule.severity, source=SpawnSource.CASCADE, parent=parent)

        return _fire

    def _random_spawn(self, dt: float) -> None:
        level = 1 + math.floor(self._elapsed / 120)
        self._difficulty = min(self._config.max_difficulty, max(self._difficulty, level))
        if self._rng.random() >= spawn_probability(self._difficulty, dt):
            return
        if len(self.unresolved()) >= _BASE_CONCURRENT_LIMIT + self._difficulty:
            return
        definition = self._weighted_definition(self._difficulty)
        if definition is not None:
            self.spawn(definition, source=SpawnSource.RANDOM)

    def _weighted_definition(self, level: int) -> IncidentDefinition | None:
        ceiling = max_severity_for(level)
        pool = [d for d in self._definitions if d.severity <= ceiling]
        if not pool:
            return None
        weights = [definition_weight(level, d.severity) for d in pool]
        return self._rng.choices(pool, weights=weights, k=1)[0]

    def _pick_target(self, definition: IncidentDefinition) -> str:
        candidates = [r for kind in definition.affected_kinds for r in self._store.by_kind(kind)]
        if not candidates:
            return UNKNOWN_TARGET
        return self._rng.choice(candidates).name

    def _definition(self, key: str) -> IncidentDefinition | None:
        for definition in self._definitions:
            if key in (definition.id, definition.name):
                return definition
        return find_definition(key)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _activate_created(self) -> None:
        for incident in list(self._incidents.values()):
            if incident.state != IncidentState.CREATED:
                continue
            incident.state = IncidentState.ACTIVE
            incident.activated_at = self._elapsed
            self._publish_change(Topic.INCIDENT_ACTIVATED, incident)

    def _auto_resolve(self) -> None:
        for incident in list(self._incidents.values()):
            timeout = incident.definition.auto_resolve_seconds
            if timeout is None or incident.activated_at is None or incident.is_resolved:
                continue
            if self._elapsed - incident.activated_at >= timeout:
                self._finish(incident, action="auto", auto=True)

    def investigate(self, incident_id: str) -> Incident | None:
        """Active -> Investigating. Other unresolved states are left as they are."""
        incident = self._open(incident_id)
        if incident is None:
            return None
        if incident.state == IncidentState.ACTIVE:
            incident.state = IncidentState.INVESTIGATING
            self._publish_change(Topic.INCIDENT_INVESTIGATING, incident)
        return incident

    def complete_step(self, incident_id: str, index: int) -> float | None:
        """Mark one investigation step done; returns the new progress."""
        incident = self._open(incident_id)
        if incident is None or not 0 <= index < len(incident.steps):
            return None
        incident.steps[index].completed = True
        self._bus.publish(
            Topic.INCIDENT_STEP_COMPLETED,
            IncidentStepCompleted(incident_id=incident.id, step_index=index, progress=incident.progress),
        )
        return incident.progress

    def resolve(self, incident_id: str, action: str = "") -> ResolutionResult | None:
        incident = self._open(incident_id)
        if incident is None:
            return None
        return self._finish(incident, action=action, auto=False)

    def _finish(self, incident: Incident, *, action: str, auto: bool) -> ResolutionResult:
        incident.state = IncidentState.RESOLVED
        incident.resolved_at = self._elapsed
        incident.resolution_action = action
        incident.auto_resolved = auto
        started = incident.activated_at if incident.activated_at is not None else incident.created_at
        resolution_time = self._elapsed - started

        if auto:
            xp = 0
        else:
            xp = score_resolution(
                incident.severity,
                resolution_time,
                self._combo,
                self._elapsed,
                self._config.fast_resolve_seconds,
            )
            self._total_xp += xp
        remaining = tuple(
            child_id
            for child_id in incident.cascade_children
            if child_id in self._incidents and not self._incidents[child_id].is_resolved
        )
        result = ResolutionResult(
            xp=xp,
            combo=self._combo.count,
            resolution_time=resolution_time,
            cascade_children_remaining=remaining,
        )

        incidents_resolved_total.labels(auto=str(auto).lower()).inc()
        active_incidents.set(len(self.unresolved()))
        _logger.info(
            "incident_resolved",
            incident=incident.id,
            auto=auto,
            action=action,
            xp=xp,
            combo=result.combo,
            resolution_time=round(resolution_time, 3),
        )
        self._bus.publish(
            Topic.INCIDENT_RESOLVED,
            IncidentResolved(
                incident_id=incident.id,
                name=incident.name,
                severity=incident.severity,
                resolution_time=resolution_time,
                auto=auto,
                xp=xp,
                combo=result.combo,
                action=action,
                cascade_children_remaining=remaining,
            ),
        )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, incident_id: str) -> Incident | None:
        return self._incidents.get(incident_id)

    def incidents(self, state: IncidentState | None = None, *, include_resolved: bool = True) -> list[Incident]:
        incidents = list(self._incidents.values())
        if state is not None:
            return [i for i in incidents if i.state == state]
        if not include_resolved:
            return [i for i in incidents if not i.is_resolved]
        return incidents

    def unresolved(self) -> list[Incident]:
        return [i for i in self._incidents.values() if not i.is_resolved]

    def stats(self) -> dict[str, Any]:
        resolved = [i for i in self._incidents.values() if i.is_resolved]
        by_severity: dict[int, int] = {}
        by_category: dict[str, int] = {}
        for incident in resolved:
            by_severity[incident.severity] = by_severity.get(incident.severity, 0) + 1
            category = str(incident.definition.category)
            by_category[category] = by_category.get(category, 0) + 1
        durations = [i.resolved_at - (i.activated_at or i.created_at) for i in resolved if i.resolved_at is not None]
        return {
            "totalResolved": len(resolved),
            "activeCount": len(self.unresolved()),
            "averageResolveTime": sum(durations) / len(durations) if durations else 0.0,
            "bySeverity": by_severity,
            "byCategory": by_category,
            "cascadeCount": sum(1 for i in self._incidents.values() if i.cascade_parent is not None),
            "currentCombo": self._combo.count,
            "difficultyLevel": self._difficulty,
            "totalXp": self._total_xp,
        }

    def cluster_health(self) -> float:
        """100 for a quiet cluster, falling by 15 per unresolved severity-5 incident."""
        penalty = sum(incident.severity / 5 * 15 for incident in self.unresolved())
        return max(0.0, min(100.0, 100.0 - penalty))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self, incident_id: str) -> Incident | None:
        incident = self._incidents.get(incident_id)
        if incident is None or incident.is_resolved:
            return None
        return incident

    def _publish_change(self, topic: Topic, incident: Incident) -> None:
        self._bus.publish(
            topic,
            IncidentChanged(
                incident_id=incident.id,
                definition_id=incident.definition_id,
                name=incident.name,
                severity=incident.severity,
                state=str(incident.state),
                target=incident.target,
                sim_time=self._elapsed,
            ),
        )
