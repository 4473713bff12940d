"""Tests for the incident catalog, scoring and the incident/cascade engine."""

from __future__ import annotations

import random

import pytest

from kubesim.incidents import (
    CASCADE_RULES,
    INCIDENT_DEFINITIONS,
    SEVERITY_XP,
    CascadeRule,
    IncidentEngine,
    IncidentState,
    find_definition,
)
from kubesim.incidents.engine import (
    UNKNOWN_TARGET,
    definition_weight,
    max_severity_for,
    spawn_probability,
)
from kubesim.incidents.scoring import ComboTracker, apply_combo, apply_fast_bonus
from kubesim.models.config import IncidentConfig
from kubesim.notifications import EventBus, Topic
from kubesim.store import ClusterStore

from tests.conftest import SEED, make_definition, make_pod


def _record(bus: EventBus, topic: Topic) -> list[object]:
    seen: list[object] = []
    bus.subscribe(topic, seen.append)
    return seen


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class TestCatalog:
    def test_catalog_size_and_unique_ids(self) -> None:
        assert len(INCIDENT_DEFINITIONS) == 29
        assert len({d.id for d in INCIDENT_DEFINITIONS}) == 29
        assert len({d.name for d in INCIDENT_DEFINITIONS}) == 29

    def test_lookup_by_id_or_name(self) -> None:
        assert find_definition("oom-killed").name == "OOMKilled"
        assert find_definition("OOMKilled").id == "oom-killed"
        assert find_definition("nope") is None

    def test_readiness_probe_failure_auto_resolves(self) -> None:
        definition = find_definition("readiness-probe-failure")
        assert definition.severity == 2
        assert definition.auto_resolve_seconds == 60.0

    def test_cascade_rules_reference_known_definitions(self) -> None:
        assert len(CASCADE_RULES) == 10
        for rule in CASCADE_RULES:
            assert find_definition(rule.parent) is not None
            assert find_definition(rule.child) is not None
            assert 0.0 < rule.probability <= 1.0

    def test_severity_xp(self) -> None:
        assert SEVERITY_XP == {1: 25, 2: 50, 3: 100, 4: 200, 5: 350}

    def test_severity_is_validated(self) -> None:
        with pytest.raises(ValueError, match="severity must be 1..5"):
            make_definition(severity=6)

    def test_cascade_rule_severity_is_validated(self) -> None:
        with pytest.raises(ValueError, match="severity must be 1..5"):
            CascadeRule("NodeNotReady", "PodEviction", 1.0, 5.0, 7)


# ---------------------------------------------------------------------------
# Scoring and spawn weighting
# ---------------------------------------------------------------------------


class TestScoring:
    def test_apply_combo(self) -> None:
        assert apply_combo(100, 2) == 150

    def test_fast_bonus_only_under_threshold(self) -> None:
        assert apply_fast_bonus(100, 10.0, 30.0) == 150
        assert apply_fast_bonus(100, 30.0, 30.0) == 100

    def test_combo_tracker_window(self) -> None:
        tracker = ComboTracker(window=10.0)
        assert not tracker.register(0.0)
        assert tracker.count == 1
        assert tracker.register(5.0)
        assert tracker.count == 2
        assert not tracker.register(20.0)
        assert tracker.count == 1

    @pytest.mark.parametrize(("level", "expected"), [(1, 1), (2, 1), (3, 2), (8, 4), (10, 5), (20, 5)])
    def test_max_severity_for(self, level: int, expected: int) -> None:
        assert max_severity_for(level) == expected

    def test_definition_weight(self) -> None:
        assert definition_weight(4, 2) == 3
        assert definition_weight(3, 2) == 2
        assert definition_weight(1, 2) == 1

    def test_spawn_probability(self) -> None:
        assert spawn_probability(1, 1.0) == pytest.approx(1 / 13.8)
        assert spawn_probability(10, 1.0) == pytest.approx(1 / 3.0)
        assert spawn_probability(5, 0.5) == pytest.approx(0.5 / 9.0)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestIncidentLifecycle:
    def test_spawn_then_activate_on_tick(self, incident_engine: IncidentEngine, bus: EventBus) -> None:
        created = _record(bus, Topic.INCIDENT_CREATED)
        activated = _record(bus, Topic.INCIDENT_ACTIVATED)
        incident = incident_engine.spawn(make_definition())
        assert incident.state == IncidentState.CREATED
        assert incident.target == UNKNOWN_TARGET
        assert len(created) == 1

        incident_engine.tick(1.0)
        assert incident.state == IncidentState.ACTIVE
        assert incident.activated_at == 1.0
        assert len(activated) == 1

    def test_spawn_unknown_definition(self, incident_engine: IncidentEngine) -> None:
        assert incident_engine.spawn("does-not-exist") is None

    @pytest.mark.parametrize("severity", [0, 6, 9, -1])
    def test_spawn_rejects_out_of_range_severity(self, incident_engine: IncidentEngine, severity: int) -> None:
        with pytest.raises(ValueError, match="severity must be 1..5"):
            incident_engine.spawn("OOMKilled", "web-1", severity)
        assert incident_engine.incidents() == []

    def test_spawn_by_catalog_name_and_severity_override(self, incident_engine: IncidentEngine) -> None:
        incident = incident_engine.spawn("OOMKilled", "web-1", 5)
        assert incident.definition_id == "oom-killed"
        assert incident.severity == 5
        assert incident.target == "web-1"

    def test_target_picked_from_affected_kinds(self, store: ClusterStore, incident_engine: IncidentEngine) -> None:
        make_pod(store, "web-1")
        assert incident_engine.spawn(make_definition()).target == "web-1"

    def test_auto_resolve(self, incident_engine: IncidentEngine, bus: EventBus) -> None:
        resolved = _record(bus, Topic.INCIDENT_RESOLVED)
        incident = incident_engine.spawn(make_definition(severity=3, auto_resolve_seconds=60.0))
        for _ in range(60):
            incident_engine.tick(1.0)
        assert incident.state == IncidentState.ACTIVE

        incident_engine.tick(1.0)
        assert incident.state == IncidentState.RESOLVED
        assert incident.auto_resolved
        assert resolved[0].auto
        assert resolved[0].xp == 0
        assert incident_engine.total_xp == 0

    def test_investigate_and_steps(self, incident_engine: IncidentEngine, bus: EventBus) -> None:
        steps = _record(bus, Topic.INCIDENT_STEP_COMPLETED)
        incident = incident_engine.spawn(make_definition(steps=3))
        assert incident_engine.investigate(incident.id).state == IncidentState.CREATED

        incident_engine.tick(1.0)
        assert incident_engine.investigate(incident.id).state == IncidentState.INVESTIGATING
        assert incident_engine.complete_step(incident.id, 1) == pytest.approx(1 / 3)
        assert incident_engine.complete_step(incident.id, 7) is None
        assert steps[0].step_index == 1
        assert incident.to_dict()["investigationSteps"][1]["completed"] is True

    def test_resolved_incident_is_closed(self, incident_engine: IncidentEngine) -> None:
        incident = incident_engine.spawn(make_definition())
        incident_engine.tick(1.0)
        assert incident_engine.resolve(incident.id, "restart-pod") is not None
        assert incident.resolution_action == "restart-pod"
        assert incident_engine.resolve(incident.id) is None
        assert incident_engine.investigate(incident.id) is None
        assert incident_engine.complete_step(incident.id, 0) is None

    def test_queries(self, incident_engine: IncidentEngine) -> None:
        first = incident_engine.spawn(make_definition())
        second = incident_engine.spawn(make_definition())
        incident_engine.tick(1.0)
        incident_engine.resolve(first.id)
        assert incident_engine.get(second.id) is second
        assert incident_engine.incidents(IncidentState.RESOLVED) == [first]
        assert incident_engine.incidents(include_resolved=False) == [second]
        assert incident_engine.unresolved() == [second]

    def test_pause_freezes_time(self, incident_engine: IncidentEngine) -> None:
        incident_engine.spawn(make_definition())
        incident_engine.pause()
        incident_engine.tick(1.0)
        assert incident_engine.elapsed == 0.0
        assert incident_engine.incidents()[0].state == IncidentState.CREATED
        incident_engine.resume()
        incident_engine.tick(1.0)
        assert incident_engine.elapsed == 1.0

    def test_reset(self, incident_engine: IncidentEngine) -> None:
        incident_engine.spawn(make_definition())
        incident_engine.tick(1.0)
        incident_engine.reset()
        assert incident_engine.incidents() == []
        assert incident_engine.elapsed == 0.0


# ---------------------------------------------------------------------------
# Resolution rewards
# ---------------------------------------------------------------------------


class TestResolution:
    def test_first_fast_resolve(self, incident_engine: IncidentEngine) -> None:
        incident = incident_engine.spawn(make_definition(severity=3))
        incident_engine.tick(1.0)
        result = incident_engine.resolve(incident.id)
        assert result.combo == 1
        assert result.resolution_time == 0.0
        assert result.xp == 150

    def test_slow_resolve_has_no_bonus(self, incident_engine: IncidentEngine) -> None:
        incident = incident_engine.spawn(make_definition(severity=3))
        for _ in range(40):
            incident_engine.tick(1.0)
        result = incident_engine.resolve(incident.id)
        assert result.resolution_time == 39.0
        assert result.xp == 100

    def test_chained_resolves_build_combo(self, incident_engine: IncidentEngine) -> None:
        first = incident_engine.spawn(make_definition(severity=3))
        second = incident_engine.spawn(make_definition(severity=3))
        incident_engine.tick(1.0)
        assert incident_engine.resolve(first.id).xp == 150
        result = incident_engine.resolve(second.id)
        assert result.combo == 2
        assert result.xp == 225
        assert incident_engine.total_xp == 375

    def test_combo_breaks_outside_window(self, incident_engine: IncidentEngine) -> None:
        first = incident_engine.spawn(make_definition(severity=3))
        second = incident_engine.spawn(make_definition(severity=3))
        incident_engine.tick(1.0)
        incident_engine.resolve(first.id)
        for _ in range(15):
            incident_engine.tick(1.0)
        assert incident_engine.resolve(second.id).combo == 1

    def test_stats_and_health(self, incident_engine: IncidentEngine) -> None:
        done = incident_engine.spawn(make_definition(severity=3))
        incident_engine.spawn(make_definition(severity=5))
        incident_engine.spawn(make_definition(severity=5))
        incident_engine.tick(1.0)
        incident_engine.resolve(done.id)

        stats = incident_engine.stats()
        assert stats["totalResolved"] == 1
        assert stats["activeCount"] == 2
        assert stats["bySeverity"] == {3: 1}
        assert stats["byCategory"] == {"Pod": 1}
        assert stats["totalXp"] == 150
        assert incident_engine.cluster_health() == pytest.approx(70.0)


# ---------------------------------------------------------------------------
# Cascades
# ---------------------------------------------------------------------------


class TestCascades:
    def test_rule_spawns_child_after_delay(self, incident_engine: IncidentEngine, bus: EventBus) -> None:
        cascades = _record(bus, Topic.INCIDENT_CASCADE)
        incident_engine.add_cascade_rule(CascadeRule("TestIncident", "PodEviction", 1.0, 5.0, 2))
        parent = incident_engine.spawn(make_definition())
        for _ in range(4):
            incident_engine.tick(1.0)
        assert len(incident_engine.incidents()) == 1

        incident_engine.tick(1.0)
        children = [i for i in incident_engine.incidents() if i.cascade_parent == parent.id]
        assert len(children) == 1
        child = children[0]
        assert child.name == "PodEviction"
        assert child.severity == 2
        assert child.target == parent.target
        assert child.depth == 1
        assert parent.cascade_children == [child.id]
        assert cascades[0].parent_id == parent.id

    def test_zero_probability_never_cascades(self, incident_engine: IncidentEngine) -> None:
        incident_engine.add_cascade_rule(CascadeRule("TestIncident", "PodEviction", 0.0, 1.0, 2))
        incident_engine.spawn(make_definition())
        assert incident_engine.pending_timers == 0

    def test_resolved_parent_drops_cascade(self, incident_engine: IncidentEngine) -> None:
        incident_engine.add_cascade_rule(CascadeRule("TestIncident", "PodEviction", 1.0, 5.0, 2))
        parent = incident_engine.spawn(make_definition())
        incident_engine.tick(1.0)
        incident_engine.resolve(parent.id)
        for _ in range(10):
            incident_engine.tick(1.0)
        assert len(incident_engine.incidents()) == 1
        assert incident_engine.pending_timers == 0

    def test_paused_engine_holds_cascades(self, incident_engine: IncidentEngine) -> None:
        incident_engine.add_cascade_rule(CascadeRule("TestIncident", "PodEviction", 1.0, 2.0, 2))
        incident_engine.spawn(make_definition())
        incident_engine.pause()
        for _ in range(5):
            incident_engine.tick(1.0)
        assert len(incident_engine.incidents()) == 1
        incident_engine.resume()
        incident_engine.tick(1.0)
        incident_engine.tick(1.0)
        assert len(incident_engine.incidents()) == 2

    def test_resolving_parent_reports_open_children(self, incident_engine: IncidentEngine) -> None:
        incident_engine.add_cascade_rule(CascadeRule("TestIncident", "PodEviction", 1.0, 1.0, 2))
        parent = incident_engine.spawn(make_definition())
        incident_engine.tick(1.0)
        result = incident_engine.resolve(parent.id)
        assert result.cascade_children_remaining == tuple(parent.cascade_children)
        assert len(result.cascade_children_remaining) == 1

    def test_depth_limit(self, store: ClusterStore, bus: EventBus) -> None:
        definition = make_definition()
        engine = IncidentEngine(
            store,
            bus,
            random.Random(SEED),
            IncidentConfig(max_cascade_depth=2),
            definitions=(definition,),
            cascade_rules=(CascadeRule("TestIncident", "TestIncident", 1.0, 1.0, 3),),
        )
        engine.spawn(definition)
        for _ in range(10):
            engine.tick(1.0)
        depths = sorted(i.depth for i in engine.incidents())
        assert depths == [0, 1, 2]
        assert engine.stats()["cascadeCount"] == 2

    def test_default_rules_are_keyed_by_name(self, store: ClusterStore, bus: EventBus) -> None:
        engine = IncidentEngine(store, bus, random.Random(SEED))
        parent = engine.spawn("NodeNotReady")
        for _ in range(20):
            engine.tick(1.0)
        names = {i.name for i in engine.incidents() if i.cascade_parent == parent.id}
        assert names <= {"PodEviction", "ServiceEndpointMissing"}


# ---------------------------------------------------------------------------
# Scripted and random spawning
# ---------------------------------------------------------------------------


class TestSpawning:
    def test_scripted_queue(self, incident_engine: IncidentEngine) -> None:
        loaded = incident_engine.load_scripted(
            [
                {"type": "oom-killed", "triggerTime": 2, "target": "web-1"},
                {"type": "bogus", "triggerTime": 1},
                {"type": "NodeNotReady", "trigger_time": 1},
            ]
        )
        assert loaded == 2

        incident_engine.tick(1.0)
        assert [i.name for i in incident_engine.incidents()] == ["NodeNotReady"]

        incident_engine.tick(1.0)
        oom = incident_engine.incidents()[-1]
        assert oom.name == "OOMKilled"
        assert oom.target == "web-1"

    def test_scripted_entries_with_bad_fields_are_dropped(self, incident_engine: IncidentEngine) -> None:
        loaded = incident_engine.load_scripted(
            [
                {"type": "crash-loop-backoff", "triggerTime": 0, "severity": 9},
                {"type": "crash-loop-backoff", "triggerTime": "soon"},
                {"triggerTime": 0},
                "oom-killed",
                {"type": "crash-loop-backoff", "triggerTime": 0, "severity": 4},
            ]
        )
        assert loaded == 1

        incident_engine.tick(1.0)
        [incident] = incident_engine.incidents()
        assert incident.severity == 4
        assert incident.to_dict()["severityName"] == "Critical"

    def test_reset_rearms_scripted_queue(self, incident_engine: IncidentEngine) -> None:
        incident_engine.load_scripted([{"type": "oom-killed", "triggerTime": 1}])
        incident_engine.tick(1.0)
        incident_engine.reset()
        incident_engine.tick(1.0)
        assert len(incident_engine.incidents()) == 1

    def test_random_spawning_respects_severity_ceiling(self, store: ClusterStore, bus: EventBus) -> None:
        engine = IncidentEngine(
            store,
            bus,
            random.Random(SEED),
            IncidentConfig(random_spawning=True),
            definitions=(
                make_definition("minor", "Minor", severity=1),
                make_definition("major", "Major", severity=3),
            ),
            cascade_rules=(),
        )
        for _ in range(300):
            engine.tick(1.0)
        spawned = engine.incidents()
        assert spawned
        assert {i.definition_id for i in spawned} == {"minor"}
        assert engine.difficulty == 3

    def test_random_spawning_off_by_default(self, incident_engine: IncidentEngine) -> None:
        for _ in range(300):
            incident_engine.tick(1.0)
        assert incident_engine.incidents() == []
