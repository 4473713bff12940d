"""Prometheus metrics for the simulation kernel.

All collectors live on the default registry so ``GET /metrics`` can expose
them with ``prometheus_client.generate_latest()``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

ticks_total = Counter(
    "kubesim_ticks_total",
    "Control-loop ticks executed.",
)

tick_duration_seconds = Histogram(
    "kubesim_tick_duration_seconds",
    "Wall-clock time spent inside one control-loop tick.",
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

pods_scheduled_total = Counter(
    "kubesim_pods_scheduled_total",
    "Pods bound to a node by the scheduler.",
)

scheduling_failures_total = Counter(
    "kubesim_scheduling_failures_total",
    "Scheduling attempts that found no eligible node.",
)

container_restarts_total = Counter(
    "kubesim_container_restarts_total",
    "Container crashes by termination reason.",
    ["reason"],
)

autoscaler_scale_total = Counter(
    "kubesim_autoscaler_scale_total",
    "Scale actions applied by the autoscaler.",
    ["direction"],
)

incidents_spawned_total = Counter(
    "kubesim_incidents_spawned_total",
    "Incidents spawned by source (scripted, random, cascade, manual).",
    ["source"],
)

incidents_resolved_total = Counter(
    "kubesim_incidents_resolved_total",
    "Incidents resolved, split by whether the timeout resolved them.",
    ["auto"],
)

incident_cascades_total = Counter(
    "kubesim_incident_cascades_total",
    "Cascade children spawned from a parent incident.",
)

active_incidents = Gauge(
    "kubesim_active_incidents",
    "Incidents not yet resolved.",
)

cluster_resources = Gauge(
    "kubesim_cluster_resources",
    "Resources currently held by the cluster store.",
)

bus_handler_errors_total = Counter(
    "kubesim_bus_handler_errors_total",
    "Subscriber callbacks that raised while handling a notification.",
    ["topic"],
)
