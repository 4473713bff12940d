"""CronJob controller.

Schedules are reduced to a fixed interval (``cron_interval``) measured from
the last run, or from creation for the first one. Runs only every
``cron_interval_ticks`` engine ticks.
"""

from __future__ import annotations

import copy

import structlog

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.controllers.job import JOB_COMPLETE, JOB_FAILED, is_job_finished
from kubesim.models.events import EventType
from kubesim.models.resources import ConcurrencyPolicy, Kind, Resource, new_resource

_log = structlog.get_logger(component="controllers.cronjob")

DEFAULT_INTERVAL_SECONDS = 300.0
SCHEDULED_TIME_ANNOTATION = "batch.kubernetes.io/cronjob-scheduled-timestamp"


def cron_interval(schedule: str) -> float:
    """Seconds between runs for the schedule shapes the simulation supports.

    ``*/N * ...`` is every N minutes, ``<m> */N ...`` every N hours,
    ``0 * ...`` hourly and ``0 0 ...`` daily; anything else is 5 minutes.
    """
    fields = schedule.split()
    if len(fields) < 5:
        return DEFAULT_INTERVAL_SECONDS
    minute, hour = fields[0], fields[1]
    if minute.startswith("*/"):
        step = minute[2:]
        return int(step) * 60.0 if step.isdigit() and int(step) > 0 else DEFAULT_INTERVAL_SECONDS
    if hour.startswith("*/"):
        step = hour[2:]
        return int(step) * 3600.0 if step.isdigit() and int(step) > 0 else DEFAULT_INTERVAL_SECONDS
    if minute == "0" and hour == "*":
        return 3600.0
    if minute == "0" and hour == "0":
        return 86400.0
    return DEFAULT_INTERVAL_SECONDS


class CronJobController(Controller):
    kind = Kind.CRON_JOB
    display_name = "CronJob"

    def reconcile(self, cj: Resource, ctx: ReconcileContext) -> None:
        jobs = ctx.store.owned(cj, Kind.JOB)
        active = [job for job in jobs if not is_job_finished(job) and not job.is_deleting]

        if not cj.spec.suspend and self._is_due(cj, ctx.now):
            active = self._run(cj, active, ctx)

        self._trim_history(cj, ctx)
        names = [job.name for job in active if job.uid in ctx.store]
        cj.update_status(active=names)

    def _is_due(self, cj: Resource, now: float) -> bool:
        last = cj.status.last_schedule_time
        if last is None:
            last = cj.metadata.creation_timestamp
        return now - last >= cron_interval(cj.spec.schedule)

    def _run(self, cj: Resource, active: list[Resource], ctx: ReconcileContext) -> list[Resource]:
        policy = cj.spec.concurrency_policy
        if active and policy == ConcurrencyPolicy.FORBID:
            cj.update_status(last_schedule_time=ctx.now)
            cj.record_event(EventType.NORMAL, "JobAlreadyActive", "Not starting job because prior execution is running", ctx.now)
            _log.debug("cronjob_skipped", cronjob=cj.name, namespace=cj.namespace, active=len(active))
            return active
        if active and policy == ConcurrencyPolicy.REPLACE:
            for job in active:
                ctx.store.remove(job.uid)
                cj.record_event(EventType.NORMAL, "SuccessfulDelete", f"Deleted job {job.name}", ctx.now)
            active = []

        name = f"{cj.name}-{int(ctx.now)}"
        if ctx.store.get_by_name(Kind.JOB, name, cj.namespace) is not None:
            return active
        job = new_resource(
            Kind.JOB,
            name,
            cj.namespace,
            spec=copy.deepcopy(cj.spec.job_template),
            labels={**cj.labels, "cronjob-name": cj.name},
            annotations={SCHEDULED_TIME_ANNOTATION: f"{ctx.now:.3f}"},
            now=ctx.now,
        )
        job.add_owner_reference(cj)
        ctx.store.add(job)
        cj.update_status(last_schedule_time=ctx.now)
        cj.record_event(EventType.NORMAL, "SuccessfulCreate", f"Created job {name}", ctx.now)
        _log.info("cronjob_job_created", cronjob=cj.name, namespace=cj.namespace, job=name)
        return [*active, job]

    def _trim_history(self, cj: Resource, ctx: ReconcileContext) -> None:
        jobs = ctx.store.owned(cj, Kind.JOB)
        for phase, limit in (
            (JOB_COMPLETE, cj.spec.successful_jobs_history_limit),
            (JOB_FAILED, cj.spec.failed_jobs_history_limit),
        ):
            finished = sorted(
                (job for job in jobs if job.status.phase == phase),
                key=_scheduled_time,
            )
            for job in finished[: max(0, len(finished) - max(0, limit))]:
                ctx.store.remove(job.uid)


def _scheduled_time(job: Resource) -> float:
    raw = job.metadata.annotations.get(SCHEDULED_TIME_ANNOTATION)
    try:
        return float(raw) if raw is not None else job.metadata.creation_timestamp
    except ValueError:
        return job.metadata.creation_timestamp
