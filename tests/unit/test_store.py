"""Tests for ClusterStore: indices, owner graph, batching, quota and snapshots."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from kubesim.models.events import ChangeType
from kubesim.models.resources import Kind, PodPhase, new_resource
from kubesim.notifications import EventBus, Topic
from kubesim.store import (
    DEFAULT_NAMESPACES,
    ClusterStore,
    InvalidResourceError,
    QueryFilter,
    ResourceConflictError,
    parse_selector,
)

from tests.conftest import make_deployment, make_node, make_pod


def _record(bus: EventBus) -> list[tuple[Topic, object]]:
    seen: list[tuple[Topic, object]] = []
    for topic in (Topic.RESOURCE_ADDED, Topic.RESOURCE_MODIFIED, Topic.RESOURCE_DELETED):
        bus.subscribe(topic, lambda payload, t=topic: seen.append((t, payload)))
    return seen


# ---------------------------------------------------------------------------
# Basics and indices
# ---------------------------------------------------------------------------


class TestStoreBasics:
    def test_seeds_default_namespaces(self, store: ClusterStore) -> None:
        names = sorted(ns.name for ns in store.by_kind(Kind.NAMESPACE))
        assert names == sorted(DEFAULT_NAMESPACES)

    def test_unseeded_store_is_empty(self) -> None:
        assert len(ClusterStore(seed_namespaces=False)) == 0

    def test_add_and_lookup(self, store: ClusterStore) -> None:
        pod = make_pod(store, "api-1")
        assert store.get(pod.uid) is pod
        assert store.get_by_name(Kind.POD, "api-1") is pod
        assert pod.uid in store
        assert pod in store.by_namespace("default")

    def test_add_stamps_creation_time(self, store: ClusterStore, clock) -> None:
        clock.advance(20)
        pod = make_pod(store)
        assert pod.metadata.creation_timestamp == pytest.approx(1.0)

    def test_duplicate_name_conflicts(self, store: ClusterStore) -> None:
        make_pod(store, "dup")
        with pytest.raises(ResourceConflictError, match="already exists"):
            make_pod(store, "dup")

    def test_same_name_other_namespace_is_fine(self, store: ClusterStore) -> None:
        make_pod(store, "same")
        other = make_pod(store, "same", namespace="kube-system")
        assert store.get_by_name(Kind.POD, "same", "kube-system") is other

    def test_non_resource_rejected(self, store: ClusterStore) -> None:
        with pytest.raises(InvalidResourceError):
            store.add({"kind": "Pod"})  # type: ignore[arg-type]

    def test_readding_known_uid_updates(self, store: ClusterStore) -> None:
        pod = make_pod(store, "p")
        copy = pod.clone()
        copy.metadata.labels["tier"] = "backend"
        store.add(copy)
        assert len(store.by_kind(Kind.POD)) == 1
        assert store.get(pod.uid).labels["tier"] == "backend"

    def test_label_index_follows_in_place_edits(self, store: ClusterStore) -> None:
        pod = make_pod(store, "p", labels={"app": "old"})
        pod.metadata.labels["app"] = "new"
        pod.bump()
        store.commit(pod)
        assert store.by_labels({"app": "old"}) == []
        assert store.by_labels({"app": "new"}) == [pod]

    def test_commit_of_unknown_resource_is_false(self, store: ClusterStore) -> None:
        assert store.commit(new_resource(Kind.POD, "ghost")) is False

    def test_namespace_change_is_rejected(self, store: ClusterStore) -> None:
        pod = make_pod(store, "p")
        moved = pod.clone()
        moved.metadata.namespace = "kube-system"
        with pytest.raises(ResourceConflictError):
            store.add(moved)
        assert store.get(pod.uid).namespace == "default"
        assert [r.uid for r in store.by_namespace("default") if r.kind == Kind.POD] == [pod.uid]
        assert not [r for r in store.by_namespace("kube-system") if r.kind == Kind.POD]

    def test_readd_raises_when_update_loses_the_resource(
        self, store: ClusterStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        pod = make_pod(store, "p")
        monkeypatch.setattr(store, "update", lambda uid, patch: None)
        with pytest.raises(RuntimeError, match="vanished"):
            store.add(pod.clone())


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_spec_patch_bumps_generation(self, store: ClusterStore) -> None:
        deploy = make_deployment(store, replicas=1)
        generation = deploy.metadata.generation
        store.update(deploy.uid, {"spec": {"replicas": 4}})
        assert deploy.spec.replicas == 4
        assert deploy.metadata.generation == generation + 1

    def test_status_patch_records_phase_change(self, store: ClusterStore) -> None:
        pod = make_pod(store)
        store.update(pod.uid, {"status": {"phase": "Running"}})
        assert pod.phase == PodPhase.RUNNING
        assert pod.events[-1].reason == "PhaseChange"

    def test_label_patch_removes_none_values(self, store: ClusterStore) -> None:
        pod = make_pod(store, labels={"app": "api", "tier": "web"})
        store.update(pod.uid, {"metadata": {"labels": {"tier": None, "env": "prod"}}})
        assert pod.labels == {"app": "api", "env": "prod"}
        assert store.by_labels({"tier": "web"}) == []

    def test_unknown_patch_section_raises(self, store: ClusterStore) -> None:
        pod = make_pod(store)
        with pytest.raises(ValueError, match="Unknown patch section"):
            store.update(pod.uid, {"spek": {}})

    def test_invalid_spec_patch_raises(self, store: ClusterStore) -> None:
        deploy = make_deployment(store)
        with pytest.raises(ValueError):
            store.update(deploy.uid, {"spec": {"replicas": "many"}})

    def test_unknown_uid_returns_none(self, store: ClusterStore) -> None:
        assert store.update("missing", {"spec": {}}) is None


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


class TestQuery:
    @pytest.fixture
    def populated(self, store: ClusterStore) -> ClusterStore:
        make_pod(store, "web-1", labels={"app": "web", "tier": "frontend"}, node_name="node-1")
        make_pod(store, "web-2", labels={"app": "web", "tier": "frontend"}, node_name="node-2")
        make_pod(store, "db-1", labels={"app": "db"}, node_name="node-1")
        make_pod(store, "dns-1", namespace="kube-system", labels={"app": "dns"})
        return store

    def test_kind_and_namespace(self, populated: ClusterStore) -> None:
        names = sorted(p.name for p in populated.query(kind=Kind.POD, namespace="default"))
        assert names == ["db-1", "web-1", "web-2"]

    def test_label_selector(self, populated: ClusterStore) -> None:
        names = sorted(p.name for p in populated.query(selector={"app": "web"}))
        assert names == ["web-1", "web-2"]

    def test_field_selector(self, populated: ClusterStore) -> None:
        result = populated.query(kind="Pod", field_selector={"spec.nodeName": "node-1"})
        assert sorted(p.name for p in result) == ["db-1", "web-1"]

    def test_sort_and_limit(self, populated: ClusterStore) -> None:
        flt = QueryFilter(kind=Kind.POD, sort_by="metadata.name", descending=True, limit=2)
        assert [p.name for p in populated.query(flt)] == ["web-2", "web-1"]

    def test_name_contains_and_phase(self, populated: ClusterStore) -> None:
        result = populated.query(kind=Kind.POD, name_contains="dns", phase="Pending")
        assert [p.name for p in result] == ["dns-1"]

    def test_parse_selector(self) -> None:
        assert parse_selector("app=web, tier=frontend") == {"app": "web", "tier": "frontend"}
        assert parse_selector("app==web") == {"app": "web"}
        assert parse_selector("") == {}

    def test_parse_selector_rejects_bare_key(self) -> None:
        with pytest.raises(ValueError, match="Invalid selector term"):
            parse_selector("app")


# ---------------------------------------------------------------------------
# Owner graph and deletion
# ---------------------------------------------------------------------------


class TestOwnerGraph:
    def test_children_and_parents(self, store: ClusterStore) -> None:
        deploy = make_deployment(store)
        rs = store.create(Kind.REPLICA_SET, "web-abc", owner=deploy)
        assert store.children(deploy.uid) == [rs]
        assert store.parents(rs.uid) == [deploy]
        assert store.owned(deploy, Kind.REPLICA_SET) == [rs]

    def test_descendants_and_owner_chain(self, store: ClusterStore) -> None:
        deploy = make_deployment(store)
        rs = store.create(Kind.REPLICA_SET, "web-abc", owner=deploy)
        pod = store.create(Kind.POD, "web-abc-xyz", owner=rs)
        assert store.descendants(deploy.uid) == [rs, pod]
        assert store.descendants(deploy.uid, max_depth=1) == [rs]
        assert store.owner_chain(pod.uid) == [pod, rs, deploy]

    def test_remove_cascades(self, store: ClusterStore) -> None:
        deploy = make_deployment(store)
        rs = store.create(Kind.REPLICA_SET, "web-abc", owner=deploy)
        pod = store.create(Kind.POD, "web-abc-xyz", owner=rs)
        assert store.remove(deploy.uid)
        assert rs.uid not in store
        assert pod.uid not in store
        assert store.graph.edge_count == 0

    def test_remove_unknown_is_false(self, store: ClusterStore) -> None:
        assert store.remove("missing") is False

    def test_finalizer_soft_deletes(self, store: ClusterStore) -> None:
        pod = make_pod(store)
        pod.add_finalizer("kubesim.io/protect")
        store.commit(pod)
        assert store.remove(pod.uid)
        assert pod.uid in store
        assert pod.is_deleting
        assert store.remove_finalizer(pod.uid, "kubesim.io/protect")
        assert pod.uid not in store

    def test_add_relationship(self, store: ClusterStore) -> None:
        svc = store.create(Kind.SERVICE, "web")
        cm = store.create(Kind.CONFIG_MAP, "web-config")
        assert store.add_relationship(svc.uid, cm.uid)
        assert store.children(svc.uid) == [cm]
        assert not store.add_relationship(svc.uid, "missing")

    def test_remove_survives_owner_cycle(self, store: ClusterStore) -> None:
        a = store.create(Kind.CONFIG_MAP, "a")
        b = store.create(Kind.CONFIG_MAP, "b")
        c = store.create(Kind.CONFIG_MAP, "c")
        assert store.add_relationship(a.uid, b.uid)
        assert store.add_relationship(b.uid, c.uid)
        assert store.add_relationship(c.uid, a.uid)
        assert store.remove(a.uid)
        assert not {a.uid, b.uid, c.uid} & {r.uid for r in store}
        assert store.graph.edge_count == 0

    def test_remove_survives_self_ownership(self, store: ClusterStore) -> None:
        cm = store.create(Kind.CONFIG_MAP, "loop")
        assert store.add_relationship(cm.uid, cm.uid)
        assert store.remove(cm.uid)
        assert cm.uid not in store


# ---------------------------------------------------------------------------
# Notifications and batching
# ---------------------------------------------------------------------------


class TestNotifications:
    def test_lifecycle_notifications(self, store: ClusterStore, bus: EventBus) -> None:
        seen = _record(bus)
        pod = make_pod(store)
        store.update(pod.uid, {"metadata": {"labels": {"x": "1"}}})
        store.remove(pod.uid)
        assert [payload.change for _, payload in seen] == [ChangeType.ADDED, ChangeType.MODIFIED, ChangeType.DELETED]

    def test_kind_qualified_subscribers(self, store: ClusterStore, bus: EventBus) -> None:
        pods: list[str] = []
        bus.subscribe(Topic.RESOURCE_ADDED, lambda p: pods.append(p.name), qualifier="Pod")
        make_node(store)
        make_pod(store, "only-me")
        assert pods == ["only-me"]

    def test_batch_coalesces_per_resource(self, store: ClusterStore, bus: EventBus) -> None:
        seen = _record(bus)
        with store.batch():
            pod = make_pod(store)
            for phase in ("Running", "Failed"):
                pod.set_phase(phase, 0.0)
                store.commit(pod)
            assert seen == []
        assert len(seen) == 1
        topic, payload = seen[0]
        assert topic == Topic.RESOURCE_ADDED
        assert payload.resource_version == pod.metadata.resource_version

    def test_nested_batches_flush_once(self, store: ClusterStore, bus: EventBus) -> None:
        seen = _record(bus)
        with store.batch():
            with store.batch():
                make_pod(store, "a")
            assert seen == []
        assert len(seen) == 1

    def test_commit_without_change_is_silent(self, store: ClusterStore, bus: EventBus) -> None:
        pod = make_pod(store)
        seen = _record(bus)
        store.commit(pod)
        assert seen == []


# ---------------------------------------------------------------------------
# Quota and statistics
# ---------------------------------------------------------------------------


class TestQuotaAndStats:
    def test_quota_usage_counts_active_pods(self, store: ClusterStore) -> None:
        make_pod(store, "a", cpu="200m", memory="256Mi")
        done = make_pod(store, "b", cpu="200m", memory="256Mi")
        done.set_phase(PodPhase.SUCCEEDED, 0.0)
        store.commit(done)
        usage = store.quota_usage("default")
        assert usage.pods == 1
        assert usage.cpu == 200.0
        assert usage.memory == 256.0

    def test_check_quota_reports_violations(self, store: ClusterStore) -> None:
        store.set_resource_quota("default", {"cpu": "500m", "memory": "1Gi", "pods": 2})
        make_pod(store, "a", cpu="300m")
        make_pod(store, "b", cpu="100m")
        result = store.check_quota("default", cpu=200.0, pods=1)
        assert not result.allowed
        assert any("CPU quota exceeded" in v for v in result.violations)
        assert any("Pod count exceeded" in v for v in result.violations)

    def test_limits_budget(self, store: ClusterStore) -> None:
        containers = [
            {
                "name": "app",
                "image": "nginx:1.27",
                "resources": {
                    "requests": {"cpu": "100m", "memory": "128Mi"},
                    "limits": {"cpu": "500m", "memory": "256Mi"},
                },
            }
        ]
        make_pod(store, "a", containers=containers)
        make_pod(store, "b", containers=containers)
        store.set_resource_quota("default", {"requests.cpu": "1", "limits.cpu": "800m", "limits.memory": "1Gi"})

        usage = store.quota_usage("default")
        assert usage.cpu == 200.0
        assert usage.limits_cpu == 1000.0
        assert usage.limits_memory == 512.0
        result = store.check_quota("default")
        assert result.violations == ["CPU limits quota exceeded: 1000m > 800m"]

        fresh = ClusterStore(seed_namespaces=False)
        fresh.restore(store.snapshot())
        hard = fresh.get_resource_quota("default")
        assert hard.cpu == 1000.0
        assert hard.limits_cpu == 800.0
        assert hard.limits_memory == 1024.0

    def test_no_quota_always_allowed(self, store: ClusterStore) -> None:
        assert store.check_quota("default", cpu=1e9).allowed

    def test_node_allocation(self, store: ClusterStore) -> None:
        make_node(store, "node-1", cpu="2", memory="4Gi")
        make_pod(store, "a", cpu="500m", memory="512Mi", node_name="node-1")
        allocation = store.node_allocation("node-1")
        assert allocation.cpu_available == 1500.0
        assert allocation.memory_available == 3584.0
        assert allocation.pod_count == 1
        assert store.node_allocation("nope") is None

    def test_cluster_stats(self, store: ClusterStore) -> None:
        make_node(store, "node-1", cpu="4", memory="8Gi")
        make_pod(store, "a", cpu="1", memory="2Gi", node_name="node-1")
        stats = store.cluster_stats()
        assert stats.nodes_total == 1
        assert stats.nodes_ready == 1
        assert stats.pods_by_phase == {"Pending": 1}
        assert stats.cpu.percent == 25.0
        assert stats.to_dict()["memory"]["percent"] == 25.0


# ---------------------------------------------------------------------------
# Snapshot / restore
# ---------------------------------------------------------------------------


class TestSnapshot:
    def test_round_trip_rebuilds_graph_and_indices(self, store: ClusterStore) -> None:
        deploy = make_deployment(store)
        rs = store.create(Kind.REPLICA_SET, "web-abc", owner=deploy, labels={"app": "web"})
        store.set_resource_quota("default", {"pods": 10})
        snapshot = store.snapshot()

        fresh = ClusterStore(seed_namespaces=False)
        count = fresh.restore(snapshot)

        assert count == len(store)
        assert fresh.get(rs.uid).name == "web-abc"
        assert [r.uid for r in fresh.children(deploy.uid)] == [rs.uid]
        assert {r.uid for r in fresh.by_labels({"app": "web"})} == {deploy.uid, rs.uid}
        assert fresh.get_resource_quota("default").pods == 10

    def test_restore_publishes_reset(self, store: ClusterStore, bus: EventBus) -> None:
        resets: list[object] = []
        bus.subscribe(Topic.CLUSTER_RESET, resets.append)
        store.restore(store.snapshot())
        assert len(resets) == 1

    def test_restore_rejects_missing_resources(self, store: ClusterStore) -> None:
        with pytest.raises(ValueError, match="missing its 'resources' map"):
            store.restore({"timestamp": 0})

    def test_clear_reseeds_namespaces(self, store: ClusterStore) -> None:
        make_pod(store)
        store.clear()
        assert store.by_kind(Kind.POD) == []
        assert len(store.by_kind(Kind.NAMESPACE)) == len(DEFAULT_NAMESPACES)


# ---------------------------------------------------------------------------
# Index consistency under random mutation
# ---------------------------------------------------------------------------

_KINDS = (Kind.CONFIG_MAP, Kind.SERVICE)
_NAMESPACES = ("default", "team-a", "team-b")
_NAMES = ("n0", "n1", "n2", "n3")
_LABEL_VALUES = ("a", "b")

_slot = st.integers(min_value=0, max_value=15)
_steps = st.lists(
    st.one_of(
        st.tuples(
            st.just("add"),
            st.sampled_from(_KINDS),
            st.sampled_from(_NAMESPACES),
            st.sampled_from(_NAMES),
            st.sampled_from(_LABEL_VALUES),
        ),
        st.tuples(st.just("relabel"), _slot, st.sampled_from(_LABEL_VALUES)),
        st.tuples(st.just("edit-labels"), _slot, st.sampled_from(_LABEL_VALUES)),
        st.tuples(st.just("move-namespace"), _slot, st.sampled_from(_NAMESPACES)),
        st.tuples(st.just("own"), _slot, _slot),
        st.tuples(st.just("remove"), _slot),
    ),
    max_size=40,
)


def _apply(store: ClusterStore, step: tuple) -> None:
    op = step[0]
    if op == "add":
        _, kind, namespace, name, app = step
        try:
            store.create(kind, name, namespace, labels={"app": app})
        except ResourceConflictError:
            pass
        return

    live = sorted(store, key=lambda r: r.uid)
    if not live:
        return
    target = live[step[1] % len(live)]
    if op == "relabel":
        store.update(target.uid, {"metadata": {"labels": {"app": step[2]}}})
    elif op == "edit-labels":
        target.metadata.labels["tier"] = step[2]
        store.commit(target)
    elif op == "move-namespace":
        moved = target.clone()
        moved.metadata.namespace = step[2]
        try:
            store.add(moved)
        except ResourceConflictError:
            assert step[2] != target.namespace
    elif op == "own":
        store.add_relationship(target.uid, live[step[2] % len(live)].uid)
    else:
        store.remove(target.uid)


def _assert_indices_match_contents(store: ClusterStore) -> None:
    live = list(store)
    uids = {r.uid for r in live}
    for kind in _KINDS:
        assert {r.uid for r in store.by_kind(kind)} == {r.uid for r in live if r.kind == kind}
    for namespace in _NAMESPACES:
        assert {r.uid for r in store.by_namespace(namespace)} == {r.uid for r in live if r.namespace == namespace}
    for key in ("app", "tier"):
        for value in _LABEL_VALUES:
            expected = {r.uid for r in live if r.labels.get(key) == value}
            assert {r.uid for r in store.by_labels({key: value})} == expected
    for kind in _KINDS:
        for namespace in _NAMESPACES:
            for name in _NAMES:
                matches = [r for r in live if (r.kind, r.namespace, r.name) == (kind, namespace, name)]
                assert len(matches) <= 1
                found = store.get_by_name(kind, name, namespace)
                assert found is (matches[0] if matches else None)
    for resource in live:
        owners = {ref.uid for ref in resource.metadata.owner_references} & uids
        assert {r.uid for r in store.parents(resource.uid)} == owners
        owned = {r.uid for r in live if resource.uid in {ref.uid for ref in r.metadata.owner_references}}
        assert {r.uid for r in store.children(resource.uid)} == owned


class TestIndexConsistency:
    @given(_steps)
    @settings(max_examples=150, deadline=None)
    def test_indices_match_a_full_rescan(self, steps: list[tuple]) -> None:
        store = ClusterStore(seed_namespaces=False)
        for step in steps:
            _apply(store, step)
            _assert_indices_match_contents(store)
