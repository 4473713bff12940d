"""StatefulSet controller: ordered, one-at-a-time pod management.

Pods are named ``{set}-{ordinal}``. Scale-up fills the lowest missing
ordinal once every lower ordinal is Ready; scale-down removes the highest
ordinal, one pod per tick, so ordinals stay contiguous.
"""

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
from kubesim.models.resources import Kind, Resource, is_pod_ready

_log = structlog.get_logger(component="controllers.statefulset")

POD_NAME_LABEL = "statefulset.kubernetes.io/pod-name"


def pod_ordinal(set_name: str, pod_name: str) -> int | None:
    prefix = f"{set_name}-"
    if not pod_name.startswith(prefix):
        return None
    suffix = pod_name[len(prefix) :]
    return int(suffix) if suffix.isdigit() else None


class StatefulSetController(Controller):
    kind = Kind.STATEFUL_SET
    display_name = "StatefulSet"

    def reconcile(self, sts: Resource, ctx: ReconcileContext) -> None:
        pods = owned_pods(ctx, sts)
        collect_failed(ctx, pods)
        by_ordinal: dict[int, Resource] = {}
        for pod in live_pods(pods):
            ordinal = pod_ordinal(sts.name, pod.name)
            if ordinal is not None:
                by_ordinal[ordinal] = pod
        desired = max(0, sts.spec.replicas)

        if len(by_ordinal) < desired:
            self._scale_up(sts, by_ordinal, desired, ctx)
        elif len(by_ordinal) > desired:
            highest = max(by_ordinal)
            ctx.store.remove(by_ordinal.pop(highest).uid)
            _log.debug("statefulset_pod_removed", statefulset=sts.name, ordinal=highest)

        ready = sum(1 for pod in by_ordinal.values() if is_pod_ready(pod))
        sts.update_status(
            replicas=len(by_ordinal),
            ready_replicas=ready,
            available_replicas=ready,
            updated_replicas=len(by_ordinal),
            observed_generation=sts.metadata.generation,
        )

    def _scale_up(self, sts: Resource, by_ordinal: dict[int, Resource], desired: int, ctx: ReconcileContext) -> None:
        missing = next((i for i in range(desired) if i not in by_ordinal), None)
        if missing is None:
            return
        if not all(is_pod_ready(by_ordinal[i]) for i in by_ordinal if i < missing):
            return
        name = f"{sts.name}-{missing}"
        pod = create_pod(ctx, sts, sts.spec.template, name, extra_labels={POD_NAME_LABEL: name})
        if pod is not None:
            by_ordinal[missing] = pod
            _log.debug("statefulset_pod_created", statefulset=sts.name, ordinal=missing)
