"""Workload controllers reconciled by the control-loop engine.

Exports:
    Controller            -- Base class: reconciles every resource of one kind.
    ReconcileContext      -- Per-tick inputs handed to each controller.
    ReplicaSetController, DeploymentController, StatefulSetController,
    DaemonSetController, JobController -- run every tick, in this order.
    CronJobController     -- run every ``cron_interval_ticks``.
    AutoscalerController  -- run every ``hpa_interval_ticks``.
"""

from __future__ import annotations

from kubesim.controllers.autoscaler import AutoscalerController
from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.controllers.cronjob import CronJobController
from kubesim.controllers.daemonset import DaemonSetController
from kubesim.controllers.deployment import DeploymentController
from kubesim.controllers.job import JobController
from kubesim.controllers.replicaset import ReplicaSetController
from kubesim.controllers.statefulset import StatefulSetController


def per_tick_controllers() -> list[Controller]:
    return [
        ReplicaSetController(),
        DeploymentController(),
        StatefulSetController(),
        DaemonSetController(),
        JobController(),
    ]


__all__ = [
    "AutoscalerController",
    "Controller",
    "CronJobController",
    "DaemonSetController",
    "DeploymentController",
    "JobController",
    "ReconcileContext",
    "ReplicaSetController",
    "StatefulSetController",
    "per_tick_controllers",
]
