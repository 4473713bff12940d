"""Tests for the kubectl-style command dispatcher."""

from __future__ import annotations

import pytest

from kubesim.commands import RESTARTED_AT_ANNOTATION, UNSCHEDULABLE_LABEL, CommandDispatcher
from kubesim.models.resources import Kind, Resource
from kubesim.notifications import EventBus, Topic
from kubesim.store import ClusterStore

from tests.conftest import daemon_spec, make_deployment, make_node, make_pod, make_running_pod, workload_spec


@pytest.fixture
def dispatcher(store: ClusterStore, bus: EventBus) -> CommandDispatcher:
    return CommandDispatcher(store, bus)


def _daemon_pod(store: ClusterStore, name: str = "agent-x") -> Resource:
    daemonset = store.create(Kind.DAEMON_SET, "agent", spec=daemon_spec("agent"))
    pod = make_running_pod(store, name, {"app": "agent"})
    pod.add_owner_reference(daemonset)
    store.commit(pod)
    return pod


# ---------------------------------------------------------------------------
# execute() mapping form
# ---------------------------------------------------------------------------


class TestExecute:
    def test_command_types(self, dispatcher: CommandDispatcher) -> None:
        assert dispatcher.command_types == [
            "apply",
            "cordon",
            "create",
            "delete",
            "drain",
            "rollout",
            "scale",
            "uncordon",
        ]

    def test_unknown_type(self, dispatcher: CommandDispatcher, bus: EventBus) -> None:
        executed: list[object] = []
        bus.subscribe(Topic.COMMAND_EXECUTED, executed.append)
        result = dispatcher.execute({"type": "explode", "name": "x"})
        assert not result.success
        assert "Unknown command" in result.message
        assert executed[0].command == "explode"
        assert not executed[0].success

    def test_missing_field(self, dispatcher: CommandDispatcher) -> None:
        result = dispatcher.execute({"type": "scale", "kind": "Deployment", "name": "web"})
        assert not result.success
        assert result.message == "Missing field 'replicas' for scale"

    def test_unknown_kind(self, dispatcher: CommandDispatcher) -> None:
        result = dispatcher.execute({"type": "delete", "kind": "Gizmo", "name": "x"})
        assert not result.success
        assert result.message.startswith("Invalid delete command")

    def test_invalid_spec_is_reported(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        result = dispatcher.execute({"type": "create", "kind": "Deployment", "name": "bad", "spec": {"replicas": "x"}})
        assert not result.success
        assert result.message.startswith("Invalid create command")
        assert store.get_by_name(Kind.DEPLOYMENT, "bad") is None

    def test_result_to_dict(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        make_deployment(store, replicas=1)
        result = dispatcher.execute({"type": "scale", "kind": "Deployment", "name": "web", "replicas": 2})
        assert result.to_dict() == {
            "success": True,
            "message": "Deployment 'web' scaled from 1 to 2",
            "data": {"oldReplicas": 1, "newReplicas": 2},
        }


# ---------------------------------------------------------------------------
# Resource commands
# ---------------------------------------------------------------------------


class TestCreateAndDelete:
    def test_create(self, dispatcher: CommandDispatcher, store: ClusterStore, bus: EventBus) -> None:
        executed: list[object] = []
        bus.subscribe(Topic.COMMAND_EXECUTED, executed.append)
        result = dispatcher.create(Kind.DEPLOYMENT, "web", spec=workload_spec("web", 2), labels={"app": "web"})
        assert result.success
        deploy = store.get(result.data["uid"])
        assert deploy.spec.replicas == 2
        assert executed[0].target == "Deployment/default/web"

    def test_create_duplicate(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        make_deployment(store)
        result = dispatcher.create("Deployment", "web")
        assert not result.success
        assert result.message == "Deployment 'web' already exists in namespace 'default'"

    def test_create_cluster_scoped_ignores_namespace(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        result = dispatcher.execute({"type": "create", "kind": "Node", "name": "node-9", "namespace": "prod"})
        assert result.success
        assert store.get_by_name(Kind.NODE, "node-9", "").namespace == ""

    def test_delete_pod_is_graceful(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        pod = make_pod(store)
        result = dispatcher.delete(Kind.POD, "api-pod")
        assert result.success
        assert result.data == {"graceful": True}
        assert pod.uid in store
        assert pod.is_deleting

    def test_delete_cascades_to_dependents(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        deploy = make_deployment(store)
        replicaset = store.create(Kind.REPLICA_SET, "web-abc", spec=workload_spec("web"), owner=deploy)
        result = dispatcher.execute({"type": "delete", "kind": "Deployment", "name": "web"})
        assert result.success
        assert deploy.uid not in store
        assert replicaset.uid not in store

    def test_delete_missing(self, dispatcher: CommandDispatcher) -> None:
        result = dispatcher.delete(Kind.SERVICE, "ghost", "prod")
        assert not result.success
        assert result.message == "Service 'ghost' not found in namespace 'prod'"


class TestScale:
    def test_scale_deployment(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        deploy = make_deployment(store, replicas=3)
        generation = deploy.metadata.generation
        result = dispatcher.scale(Kind.DEPLOYMENT, "web", 5)
        assert result.success
        assert deploy.spec.replicas == 5
        assert deploy.metadata.generation == generation + 1

    def test_unsupported_kind(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        store.create(Kind.DAEMON_SET, "agent", spec=daemon_spec("agent"))
        result = dispatcher.scale(Kind.DAEMON_SET, "agent", 2)
        assert not result.success
        assert "does not support scaling" in result.message

    def test_negative_replicas(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        make_deployment(store)
        assert not dispatcher.scale(Kind.DEPLOYMENT, "web", -1).success

    def test_missing_target(self, dispatcher: CommandDispatcher) -> None:
        assert not dispatcher.scale(Kind.STATEFUL_SET, "db", 3).success


class TestApply:
    def test_apply_creates_then_updates(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        created = dispatcher.apply(Kind.DEPLOYMENT, "web", spec=workload_spec("web", 1))
        assert created.success
        assert created.data["action"] == "created"

        updated = dispatcher.apply(Kind.DEPLOYMENT, "web", spec={"replicas": 4}, labels={"tier": "frontend"})
        assert updated.data["action"] == "updated"
        deploy = store.get_by_name(Kind.DEPLOYMENT, "web")
        assert deploy.spec.replicas == 4
        assert deploy.spec.template.metadata.labels == {"app": "web"}
        assert deploy.labels["tier"] == "frontend"


# ---------------------------------------------------------------------------
# Node commands
# ---------------------------------------------------------------------------


class TestNodeCommands:
    def test_cordon_and_uncordon(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        node = make_node(store)
        assert dispatcher.cordon("node-1").success
        assert node.spec.unschedulable
        assert node.labels[UNSCHEDULABLE_LABEL] == "true"
        assert node.events[-1].reason == "NodeNotSchedulable"

        assert dispatcher.execute({"type": "uncordon", "name": "node-1"}).success
        assert not node.spec.unschedulable
        assert UNSCHEDULABLE_LABEL not in node.labels

    def test_cordon_missing_node(self, dispatcher: CommandDispatcher) -> None:
        result = dispatcher.cordon("node-9")
        assert not result.success
        assert result.message == "Node 'node-9' not found"

    def test_drain_skips_daemonset_pods(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        node = make_node(store)
        web = [make_running_pod(store, f"web-{i}", {"app": "web"}) for i in range(2)]
        agent = _daemon_pod(store)
        elsewhere = make_running_pod(store, "other", {"app": "web"}, node_name="node-2")

        result = dispatcher.drain("node-1")
        assert result.success
        assert result.data["evictedPods"] == 2
        assert result.data["skipped"] == ["agent-x"]
        assert all(pod.is_deleting for pod in web)
        assert not agent.is_deleting
        assert not elsewhere.is_deleting
        assert node.spec.unschedulable
        assert node.events[-1].reason == "NodeDrain"

    def test_forced_drain_evicts_daemonset_pods(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        make_node(store)
        agent = _daemon_pod(store)
        result = dispatcher.execute({"type": "drain", "name": "node-1", "force": True})
        assert result.data["evicted"] == ["agent-x"]
        assert agent.is_deleting


# ---------------------------------------------------------------------------
# Rollout
# ---------------------------------------------------------------------------


class TestRollout:
    def test_restart_deployment_changes_template(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        deploy = make_deployment(store)
        generation = deploy.metadata.generation
        result = dispatcher.execute({"type": "rollout", "subcommand": "restart", "name": "web"})
        assert result.success
        assert RESTARTED_AT_ANNOTATION in deploy.spec.template.metadata.annotations
        assert deploy.metadata.generation == generation + 1

    def test_restart_statefulset_replaces_pods(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        statefulset = store.create(Kind.STATEFUL_SET, "db", spec=workload_spec("db"))
        pod = store.create(Kind.POD, "db-0", spec={"containers": [{"name": "db"}]}, owner=statefulset)
        assert dispatcher.rollout_restart(Kind.STATEFUL_SET, "db").success
        assert pod.is_deleting

    def test_restart_unsupported_kind(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        store.create(Kind.REPLICA_SET, "web-abc", spec=workload_spec("web"))
        result = dispatcher.rollout_restart(Kind.REPLICA_SET, "web-abc")
        assert not result.success
        assert "does not support rollout" in result.message

    def test_status_waits_then_completes(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        deploy = make_deployment(store, replicas=3)
        waiting = dispatcher.rollout_status(Kind.DEPLOYMENT, "web")
        assert waiting.success
        assert not waiting.data["complete"]
        assert waiting.message == "Waiting for Deployment 'web' rollout: 0 of 3 available"

        deploy.status.updated_replicas = 3
        deploy.status.available_replicas = 3
        done = dispatcher.execute({"type": "rollout", "subcommand": "status", "kind": "Deployment", "name": "web"})
        assert done.data["complete"]
        assert done.message == "Deployment 'web' successfully rolled out"

    def test_unknown_subcommand(self, dispatcher: CommandDispatcher, store: ClusterStore) -> None:
        make_deployment(store)
        result = dispatcher.execute({"type": "rollout", "subcommand": "undo", "name": "web"})
        assert not result.success
        assert result.message == "Unknown rollout subcommand: 'undo'"
