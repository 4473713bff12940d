"""HorizontalPodAutoscaler controller.

Evaluates each HPA against the mean CPU utilisation of its target's ready
pods and rescales the target's ``spec.replicas``. Per-evaluation step
limits and asymmetric cooldowns keep it from flapping.
"""

from __future__ import annotations

import math

import structlog

from kubesim.controllers.base import Controller, ReconcileContext, workload_selector
from kubesim.models.events import EventType
from kubesim.models.resources import Kind, Resource, is_pod_ready
from kubesim.notifications import Topic
from kubesim.notifications.payloads import AutoscalerScaled
from kubesim.observability.metrics import autoscaler_scale_total

_log = structlog.get_logger(component="controllers.autoscaler")

SCALABLE_KINDS = frozenset({Kind.DEPLOYMENT, Kind.REPLICA_SET, Kind.STATEFUL_SET})


def pod_cpu_utilization(pod: Resource) -> float | None:
    """Instantaneous CPU usage as a percentage of the pod's requests."""
    requested = pod.spec.requests().cpu
    if requested <= 0:
        return None
    used = sum(cs.usage.cpu for cs in pod.status.container_statuses)
    return used / requested * 100.0


def bounded_replicas(current: int, desired: int, minimum: int, maximum: int) -> int:
    """Apply the per-evaluation step limits, then clamp into [minimum, maximum]."""
    if desired > current:
        desired = min(desired, current + max(4, 2 * current))
    elif desired < current:
        desired = max(desired, max(1, current // 2))
    upper = max(minimum, maximum)
    return max(minimum, min(upper, desired))


class AutoscalerController(Controller):
    kind = Kind.HORIZONTAL_POD_AUTOSCALER
    display_name = "HorizontalPodAutoscaler"

    def reconcile(self, hpa: Resource, ctx: ReconcileContext) -> None:
        ref = hpa.spec.scale_target_ref
        target = _scale_target(ctx, hpa)
        if target is None:
            hpa.update_status(current_cpu_utilization_percentage=None)
            hpa.ensure_condition(
                "ScalingActive", False, ctx.now, "FailedGetScale", f"target {ref.kind}/{ref.name} not found"
            )
            return

        current = target.spec.replicas
        selector = workload_selector(target)
        ready = [pod for pod in ctx.store.select(Kind.POD, hpa.namespace, selector) if is_pod_ready(pod)]
        samples = [u for u in (pod_cpu_utilization(pod) for pod in ready) if u is not None]
        if not samples:
            hpa.update_status(current_replicas=current, current_cpu_utilization_percentage=None)
            hpa.ensure_condition("ScalingActive", False, ctx.now, "FailedGetResourceMetric", "no ready pods")
            return
        hpa.ensure_condition("ScalingActive", True, ctx.now, "ValidMetricFound")

        spec = hpa.spec
        utilization = sum(samples) / len(samples)
        target_util = spec.target_cpu_utilization_percentage or 50.0
        raw = math.ceil(round(current * utilization / target_util, 6))
        desired = bounded_replicas(current, raw, spec.min_replicas, spec.max_replicas)
        hpa.update_status(
            current_replicas=current,
            desired_replicas=desired,
            current_cpu_utilization_percentage=round(utilization, 1),
        )
        if desired == current:
            return

        direction = "up" if desired > current else "down"
        cooldowns = ctx.config.autoscaler
        cooldown = cooldowns.scale_up_cooldown if direction == "up" else cooldowns.scale_down_cooldown
        last = hpa.status.last_scale_time
        if last is not None and ctx.now - last < cooldown:
            return

        target.spec.replicas = desired
        target.bump(spec_changed=True)
        target.record_event(EventType.NORMAL, "ScalingReplicaSet", f"Scaled {direction} to {desired} replicas", ctx.now)
        ctx.store.commit(target)

        hpa.update_status(last_scale_time=ctx.now, last_scale_direction=direction, current_replicas=desired)
        hpa.record_event(EventType.NORMAL, "SuccessfulRescale", f"New size: {desired}; reason: cpu utilization", ctx.now)
        autoscaler_scale_total.labels(direction=direction).inc()
        _log.info(
            "autoscaler_scaled",
            hpa=hpa.name,
            namespace=hpa.namespace,
            target=target.name,
            from_replicas=current,
            to_replicas=desired,
            utilization=round(utilization, 1),
        )
        ctx.bus.publish(
            Topic.AUTOSCALER_SCALED,
            AutoscalerScaled(
                hpa=hpa.name,
                namespace=hpa.namespace,
                target=target.name,
                from_replicas=current,
                to_replicas=desired,
                direction=direction,
                utilization=round(utilization, 1),
                sim_time=ctx.now,
            ),
        )


def _scale_target(ctx: ReconcileContext, hpa: Resource) -> Resource | None:
    ref = hpa.spec.scale_target_ref
    if not ref.name or ref.kind not in {kind.value for kind in SCALABLE_KINDS}:
        return None
    return ctx.store.get_by_name(ref.kind, ref.name, hpa.namespace)
