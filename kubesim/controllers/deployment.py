"""Deployment controller.

A Deployment owns one ReplicaSet per pod-template revision, named
``{deployment}-{hash}``. The revision matching the current template gets
the desired replica count; older revisions are scaled to zero and, once
empty, trimmed beyond ``revisionHistoryLimit``.
"""

from __future__ import annotations

import copy

import structlog

from kubesim.controllers.base import (
    Controller,
    ReconcileContext,
    live_pods,
    owned_pods,
    pod_template_hash,
    workload_selector,
)
from kubesim.models.events import EventType
from kubesim.models.resources import (
    Kind,
    LabelSelector,
    ReplicaSetSpec,
    Resource,
    is_pod_ready,
    new_resource,
)

_log = structlog.get_logger(component="controllers.deployment")

TEMPLATE_HASH_LABEL = "pod-template-hash"


class DeploymentController(Controller):
    kind = Kind.DEPLOYMENT
    display_name = "Deployment"

    def reconcile(self, deploy: Resource, ctx: ReconcileContext) -> None:
        desired = max(0, deploy.spec.replicas)
        template_hash = pod_template_hash(deploy.spec.template)

        current = self._current_replicaset(deploy, template_hash, ctx)
        if current is None:
            current = self._create_replicaset(deploy, template_hash, ctx)
            if current is None:
                return

        if current.spec.replicas != desired:
            current.spec.replicas = desired
            current.bump(spec_changed=True)
            ctx.store.commit(current)

        revisions = ctx.store.owned(deploy, Kind.REPLICA_SET)
        old = [rs for rs in revisions if rs.uid != current.uid]
        for rs in old:
            if rs.spec.replicas != 0:
                rs.spec.replicas = 0
                rs.bump(spec_changed=True)
                ctx.store.commit(rs)
        self._trim_history(deploy, old, ctx)

        live: list[Resource] = []
        for rs in ctx.store.owned(deploy, Kind.REPLICA_SET):
            live.extend(live_pods(owned_pods(ctx, rs)))
        updated = live_pods(owned_pods(ctx, current))
        ready = sum(1 for pod in live if is_pod_ready(pod))

        deploy.update_status(
            replicas=len(live),
            ready_replicas=ready,
            available_replicas=ready,
            updated_replicas=len(updated),
            observed_generation=deploy.metadata.generation,
        )
        if ready >= desired:
            deploy.ensure_condition("Available", True, ctx.now, "MinimumReplicasAvailable")
            deploy.ensure_condition("Progressing", True, ctx.now, "NewReplicaSetAvailable")
        else:
            deploy.ensure_condition(
                "Available", False, ctx.now, "MinimumReplicasUnavailable", f"{ready}/{desired} replicas available"
            )
            deploy.ensure_condition(
                "Progressing", True, ctx.now, "ReplicaSetUpdated", f"{len(live)}/{desired} replicas created"
            )

    def _current_replicaset(self, deploy: Resource, template_hash: str, ctx: ReconcileContext) -> Resource | None:
        for rs in ctx.store.owned(deploy, Kind.REPLICA_SET):
            if rs.labels.get(TEMPLATE_HASH_LABEL) == template_hash:
                return rs
        # Adopt an orphan revision that already matches selector and hash.
        selector = workload_selector(deploy)
        for rs in ctx.store.select(Kind.REPLICA_SET, deploy.namespace, selector):
            if rs.controller_owner() is None and rs.labels.get(TEMPLATE_HASH_LABEL) == template_hash:
                rs.add_owner_reference(deploy)
                ctx.store.commit(rs)
                return rs
        return None

    def _create_replicaset(self, deploy: Resource, template_hash: str, ctx: ReconcileContext) -> Resource | None:
        name = f"{deploy.name}-{template_hash}"
        if ctx.store.get_by_name(Kind.REPLICA_SET, name, deploy.namespace) is not None:
            _log.warning("replicaset_name_taken", deployment=deploy.name, namespace=deploy.namespace, name=name)
            return None

        template = copy.deepcopy(deploy.spec.template)
        template.metadata.labels[TEMPLATE_HASH_LABEL] = template_hash
        selector = workload_selector(deploy)
        selector[TEMPLATE_HASH_LABEL] = template_hash
        spec = ReplicaSetSpec(
            replicas=max(0, deploy.spec.replicas),
            selector=LabelSelector(match_labels=selector),
            template=template,
        )
        labels = {**template.metadata.labels}
        rs = new_resource(Kind.REPLICA_SET, name, deploy.namespace, spec=spec, labels=labels)
        rs.add_owner_reference(deploy)
        ctx.store.add(rs)
        deploy.record_event(
            EventType.NORMAL,
            "ScalingReplicaSet",
            f"Scaled up replica set {name} to {spec.replicas}",
            ctx.now,
        )
        _log.info("replicaset_created", deployment=deploy.name, namespace=deploy.namespace, replicaset=name)
        return rs

    def _trim_history(self, deploy: Resource, old: list[Resource], ctx: ReconcileContext) -> None:
        limit = max(0, deploy.spec.revision_history_limit)
        drained = [rs for rs in old if rs.spec.replicas == 0 and not live_pods(owned_pods(ctx, rs))]
        if len(drained) <= limit:
            return
        drained.sort(key=lambda rs: (rs.metadata.creation_timestamp, rs.name))
        for rs in drained[: len(drained) - limit]:
            ctx.store.remove(rs.uid)
            _log.debug("replicaset_trimmed", deployment=deploy.name, replicaset=rs.name)
