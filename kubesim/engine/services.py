"""Service endpoint probes: ready/total endpoint counts per Service."""

from __future__ import annotations

from kubesim.controllers.base import ReconcileContext
from kubesim.models.resources import Kind, is_active_pod, is_pod_ready


class EndpointProber:
    def probe(self, ctx: ReconcileContext) -> None:
        store = ctx.store
        for svc in store.by_kind(Kind.SERVICE):
            pods = [pod for pod in store.pods_for_service(svc) if is_active_pod(pod)]
            svc.update_status(
                ready_endpoints=sum(1 for pod in pods if is_pod_ready(pod)),
                total_endpoints=len(pods),
            )
            if svc.spec.type == "LoadBalancer" and not svc.status.load_balancer_ip:
                svc.update_status(load_balancer_ip=f"203.0.113.{ctx.rng.randrange(1, 255)}")
            store.commit(svc)
