"""Control-loop engine: one fixed-timestep tick over the whole cluster.

Step order within a tick is fixed and observable:

     1. node health               8. controllers (RS, Deployment, STS, DS, Job; CronJob at cadence)
     2. scheduling                9. autoscaler (at cadence)
     3. container state machine  10. service endpoint probes (at cadence)
     4. resource usage           11. advisory quota
     5. probes                   12. metrics history
     6. OOM killer               13. chaos (when enabled)
     7. termination

All store mutations inside a tick happen under one store batch; the
``tick-completed`` notification is published after the batch flushes.
"""

from __future__ import annotations

import random
import time

from kubesim.controllers import (
    AutoscalerController,
    CronJobController,
    ReconcileContext,
    per_tick_controllers,
)
from kubesim.engine.chaos import ChaosInjector
from kubesim.engine.clock import SimulationClock
from kubesim.engine.history import MetricsHistory
from kubesim.engine.nodes import NodeMonitor
from kubesim.engine.pod_lifecycle import PodLifecycle
from kubesim.engine.quota import QuotaMonitor
from kubesim.engine.scheduler import Scheduler, SchedulingResult
from kubesim.engine.services import EndpointProber
from kubesim.models.config import KubeSimConfig
from kubesim.notifications import EventBus, Topic
from kubesim.notifications.payloads import TickCompleted
from kubesim.observability.logging import get_logger
from kubesim.observability.metrics import tick_duration_seconds, ticks_total
from kubesim.store import ClusterStore

_logger = get_logger("engine.control_loop")


class ControlLoopEngine:
    def __init__(
        self,
        store: ClusterStore,
        bus: EventBus,
        clock: SimulationClock,
        rng: random.Random,
        config: KubeSimConfig | None = None,
    ) -> None:
        self._store = store
        self._bus = bus
        self._clock = clock
        self._rng = rng
        self._config = config or KubeSimConfig()

        self.scheduler = Scheduler()
        self.lifecycle = PodLifecycle(self._config.engine)
        self.nodes = NodeMonitor()
        self.endpoints = EndpointProber()
        self.quota = QuotaMonitor()
        self.chaos = ChaosInjector()
        self.history = MetricsHistory(self._config.engine.metrics_history)
        self._controllers = per_tick_controllers()
        self._cronjobs = CronJobController()
        self._autoscaler = AutoscalerController()

        self._tick_count = 0
        self.last_scheduling = SchedulingResult()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def config(self) -> KubeSimConfig:
        return self._config

    def tick(self, dt: float | None = None) -> TickCompleted:
        """Advance the clock one step and run every pass once.

        *dt* defaults to the clock step; it scales the per-second rates
        (random failures, chaos) used during this tick.
        """
        started = time.perf_counter()
        self._tick_count += 1
        now = self._clock.advance()
        dt = self._clock.step if dt is None else dt
        engine = self._config.engine
        ctx = ReconcileContext(
            now=now,
            dt=dt,
            tick=self._tick_count,
            store=self._store,
            rng=self._rng,
            bus=self._bus,
            config=self._config,
        )

        with self._store.batch():
            self.nodes.refresh(ctx)
            self.last_scheduling = self.scheduler.schedule(ctx)
            self.lifecycle.advance(ctx)
            self.lifecycle.simulate(ctx)
            self.lifecycle.probe(ctx)
            self.lifecycle.oom_kill(ctx)
            self.lifecycle.terminate(ctx)
            for controller in self._controllers:
                controller.run(ctx)
            if _due(self._tick_count, engine.cron_interval_ticks):
                self._cronjobs.run(ctx)
            if _due(self._tick_count, engine.hpa_interval_ticks):
                self._autoscaler.run(ctx)
            if _due(self._tick_count, engine.probe_interval_ticks):
                self.endpoints.probe(ctx)
            self.quota.enforce(ctx)
            stats = self._store.cluster_stats()
            self.history.record(self._tick_count, now, stats)
            if self._config.chaos.enabled:
                self.chaos.inject(ctx)

        ticks_total.inc()
        tick_duration_seconds.observe(time.perf_counter() - started)
        payload = TickCompleted(tick=self._tick_count, dt=dt, sim_time=now, stats=stats)
        self._bus.publish(Topic.TICK_COMPLETED, payload)
        return payload

    def run_ticks(self, count: int) -> None:
        for _ in range(count):
            self.tick()

    def reset(self) -> None:
        self._tick_count = 0
        self.history.clear()
        self.quota.reset()
        self.last_scheduling = SchedulingResult()
        _logger.info("engine_reset")


def _due(tick: int, interval: int) -> bool:
    return interval > 0 and tick % interval == 0
