"""ReplicaSet controller: keeps the live pod count equal to ``spec.replicas``."""

from __future__ import annotations

import structlog

from kubesim.controllers.base import (
    Controller,
    ReconcileContext,
    collect_failed,
    create_pod,
    live_pods,
    owned_pods,
    pending_first_newest,
)
from kubesim.models.resources import Kind, Resource, is_pod_ready

_log = structlog.get_logger(component="controllers.replicaset")


class ReplicaSetController(Controller):
    kind = Kind.REPLICA_SET
    display_name = "ReplicaSet"

    def reconcile(self, rs: Resource, ctx: ReconcileContext) -> None:
        pods = owned_pods(ctx, rs)
        collect_failed(ctx, pods)
        live = live_pods(pods)
        desired = max(0, rs.spec.replicas)

        if len(live) < desired:
            for _ in range(desired - len(live)):
                pod = create_pod(ctx, rs, rs.spec.template)
                if pod is not None:
                    live.append(pod)
            _log.debug("replicaset_scaled_up", replicaset=rs.name, namespace=rs.namespace, replicas=desired)
        elif len(live) > desired:
            victims = pending_first_newest(live)[: len(live) - desired]
            for pod in victims:
                ctx.store.remove(pod.uid)
                live.remove(pod)
            _log.debug("replicaset_scaled_down", replicaset=rs.name, namespace=rs.namespace, replicas=desired)

        ready = sum(1 for pod in live if is_pod_ready(pod))
        rs.update_status(
            replicas=len(live),
            ready_replicas=ready,
            available_replicas=ready,
            updated_replicas=len(live),
            observed_generation=rs.metadata.generation,
        )
