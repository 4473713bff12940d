"""DaemonSet controller: one pod pinned to every qualifying node."""

from __future__ import annotations

import structlog

from kubesim.controllers.base import (
    Controller,
    ReconcileContext,
    collect_failed,
    create_pod,
    live_pods,
    owned_pods,
)
from kubesim.models.resources import Kind, Resource, is_node_ready, is_pod_ready

_log = structlog.get_logger(component="controllers.daemonset")


class DaemonSetController(Controller):
    kind = Kind.DAEMON_SET
    display_name = "DaemonSet"

    def reconcile(self, ds: Resource, ctx: ReconcileContext) -> None:
        eligible = {
            node.name
            for node in ctx.store.by_kind(Kind.NODE)
            if is_node_ready(node) and node.matches_selector(ds.spec.node_selector)
        }
        pods = owned_pods(ctx, ds)
        collect_failed(ctx, pods)

        live: list[Resource] = []
        hosted: set[str] = set()
        for pod in live_pods(pods):
            if pod.spec.node_name not in eligible or pod.spec.node_name in hosted:
                ctx.store.remove(pod.uid)
                _log.debug("daemonset_pod_removed", daemonset=ds.name, node=pod.spec.node_name)
                continue
            hosted.add(pod.spec.node_name)
            live.append(pod)

        for node_name in sorted(eligible - hosted):
            pod = create_pod(ctx, ds, ds.spec.template, node_name=node_name)
            if pod is not None:
                live.append(pod)
                _log.debug("daemonset_pod_created", daemonset=ds.name, node=node_name)

        ds.update_status(
            desired_number_scheduled=len(eligible),
            current_number_scheduled=len(live),
            number_ready=sum(1 for pod in live if is_pod_ready(pod)),
            observed_generation=ds.metadata.generation,
        )
