"""Job controller: run pods to a completion count, within a failure budget."""

from __future__ import annotations

import structlog

from kubesim.controllers.base import Controller, ReconcileContext, create_pod, owned_pods
from kubesim.models.events import EventType
from kubesim.models.resources import (
    ContainerState,
    ContainerStateKind,
    Kind,
    PodPhase,
    Resource,
)

_log = structlog.get_logger(component="controllers.job")

JOB_COMPLETE = "Complete"
JOB_FAILED = "Failed"
JOB_RUNNING = "Running"
FINISHED_PHASES = frozenset({JOB_COMPLETE, JOB_FAILED})


def is_job_finished(job: Resource) -> bool:
    return job.status.phase in FINISHED_PHASES


class JobController(Controller):
    kind = Kind.JOB
    display_name = "Job"

    def reconcile(self, job: Resource, ctx: ReconcileContext) -> None:
        if is_job_finished(job):
            return
        pods = owned_pods(ctx, job)
        self._complete_due_pods(job, pods, ctx)

        succeeded = [p for p in pods if p.status.phase == PodPhase.SUCCEEDED]
        failed = [p for p in pods if p.status.phase == PodPhase.FAILED]
        active = [
            p
            for p in pods
            if p.status.phase in (PodPhase.PENDING, PodPhase.RUNNING) and not p.is_deleting
        ]
        spec = job.spec
        if job.status.start_time is None:
            job.update_status(start_time=ctx.now)

        if len(succeeded) >= spec.completions:
            job.update_status(active=0, succeeded=len(succeeded), failed=len(failed), completion_time=ctx.now)
            job.set_phase(JOB_COMPLETE, ctx.now)
            job.ensure_condition("Complete", True, ctx.now, "JobComplete")
            _log.info("job_complete", job=job.name, namespace=job.namespace, succeeded=len(succeeded))
            return

        if len(failed) > spec.backoff_limit:
            for pod in active:
                ctx.store.remove(pod.uid)
            job.update_status(active=0, succeeded=len(succeeded), failed=len(failed))
            job.set_phase(JOB_FAILED, ctx.now)
            job.ensure_condition(
                "Failed", True, ctx.now, "BackoffLimitExceeded", "Job has reached the specified backoff limit"
            )
            job.record_event(EventType.WARNING, "BackoffLimitExceeded", "Job has reached the specified backoff limit", ctx.now)
            _log.info("job_failed", job=job.name, namespace=job.namespace, failed=len(failed))
            return

        needed = min(spec.parallelism, spec.completions - len(succeeded)) - len(active)
        for _ in range(max(0, needed)):
            pod = create_pod(ctx, job, spec.template, restart_policy="Never", extra_labels={"job-name": job.name})
            if pod is not None:
                active.append(pod)

        job.set_phase(JOB_RUNNING, ctx.now)
        job.update_status(active=len(active), succeeded=len(succeeded), failed=len(failed))

    def _complete_due_pods(self, job: Resource, pods: list[Resource], ctx: ReconcileContext) -> None:
        estimate = job.spec.estimated_duration_seconds
        for pod in pods:
            if pod.status.phase != PodPhase.RUNNING or pod.is_deleting:
                continue
            running = any(cs.state.state == ContainerStateKind.RUNNING for cs in pod.status.container_statuses)
            if pod.status.expected_completion_time is None:
                if running:
                    pod.status.expected_completion_time = ctx.now + estimate * ctx.rng.uniform(0.8, 1.2)
                    pod.bump()
                    ctx.store.commit(pod)
                continue
            if ctx.now < pod.status.expected_completion_time:
                continue
            for cs in pod.status.container_statuses:
                cs.state = ContainerState(
                    ContainerStateKind.TERMINATED,
                    reason="Completed",
                    exit_code=0,
                    started_at=cs.state.started_at,
                    finished_at=ctx.now,
                )
                cs.ready = False
            pod.set_phase(PodPhase.SUCCEEDED, ctx.now)
            pod.set_condition("Ready", False, ctx.now, "PodCompleted")
            ctx.store.commit(pod)
